"""
Unit tests for the connectivity monitor.

Tests the transport flag, reachability probe and reconnect listeners.
"""

import pytest

from offline_contacts.sync.connectivity import ConnectivityMonitor


@pytest.fixture
def monitor(gateway):
    return ConnectivityMonitor(gateway, probe_timeout=2.0)


class TestConnectivityState:
    """Tests for the online/offline state."""

    def test_starts_online(self, monitor):
        """Test the initial state."""
        assert monitor.is_online
        assert not monitor.is_offline

    def test_transport_offline(self, gateway):
        """Test that a transport-level offline flag means offline."""
        monitor = ConnectivityMonitor(gateway, transport_online=False)
        assert monitor.is_offline

    def test_mark_unreachable(self, monitor):
        """Test that a transient failure takes the client offline."""
        monitor.mark_unreachable()
        assert monitor.is_offline

    @pytest.mark.asyncio
    async def test_probe_uses_timeout(self, monitor):
        """Test that the probe passes the configured timeout."""
        assert await monitor.probe() is True
        assert monitor.gateway.calls == [("ping", 2.0)]

    @pytest.mark.asyncio
    async def test_probe_failure_goes_offline(self, monitor):
        """Test that an unanswered probe marks the backend unreachable."""
        monitor.gateway.online = False
        assert await monitor.probe() is False
        assert monitor.is_offline

    @pytest.mark.asyncio
    async def test_refresh_skips_probe_when_transport_offline(self, monitor):
        """Test that no request is made without a network."""
        await monitor.set_transport_online(False)
        monitor.gateway.calls.clear()

        assert await monitor.refresh() is False
        assert monitor.gateway.calls == []


class TestReconnectListeners:
    """Tests for the offline -> online transition."""

    @pytest.mark.asyncio
    async def test_listener_runs_on_reconnect(self, monitor):
        """Test that coming back online runs the listeners once."""
        calls = []

        async def listener():
            calls.append("sync")

        monitor.add_reconnect_listener(listener)
        await monitor.set_transport_online(False)
        assert calls == []

        await monitor.set_transport_online(True)
        assert calls == ["sync"]

        # Already online: no transition, no call
        await monitor.set_transport_online(True)
        assert calls == ["sync"]

    @pytest.mark.asyncio
    async def test_transport_up_but_backend_down(self, monitor):
        """Test that a failed probe on reconnect keeps the client offline."""
        calls = []

        async def listener():
            calls.append("sync")

        monitor.add_reconnect_listener(listener)
        await monitor.set_transport_online(False)
        monitor.gateway.online = False

        await monitor.set_transport_online(True)
        assert monitor.is_offline
        assert calls == []

    @pytest.mark.asyncio
    async def test_probe_recovery_notifies(self, monitor):
        """Test that a successful probe after failures runs the listeners."""
        calls = []

        async def listener():
            calls.append("sync")

        monitor.add_reconnect_listener(listener)
        monitor.mark_unreachable()

        await monitor.probe(notify=False)
        assert monitor.is_online
        assert calls == []

        monitor.mark_unreachable()
        await monitor.probe()
        assert calls == ["sync"]

    @pytest.mark.asyncio
    async def test_removed_listener_is_not_called(self, monitor):
        """Test remove_reconnect_listener."""
        calls = []

        async def listener():
            calls.append("sync")

        monitor.add_reconnect_listener(listener)
        monitor.remove_reconnect_listener(listener)
        monitor.mark_unreachable()
        await monitor.probe()
        assert calls == []
