"""
Connectivity monitor combining the transport flag with a reachability probe.

The client is offline when either the transport reports no network or the
last probe of the backend failed. An offline -> online transition runs the
registered reconnect listeners (reconciliation); going offline only stops
new reconciliation batches from being scheduled.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from offline_contacts.api.gateway import RemoteGateway

# Timeout for the reachability probe
DEFAULT_PROBE_TIMEOUT = 5.0  # seconds

logger = logging.getLogger(__name__)

ReconnectListener = Callable[[], Awaitable[Any]]


class ConnectivityMonitor:
    """
    Tracks whether the backend can be reached.

    Attributes:
        gateway: Gateway used for the probe
        probe_timeout: Probe timeout in seconds
        transport_online: Last reported transport-level state
        reachable: Result of the last probe (or failure report)

    Usage:
        monitor = ConnectivityMonitor(gateway)
        monitor.add_reconnect_listener(store.sync)

        await monitor.set_transport_online(False)
        monitor.is_offline  # True
        await monitor.set_transport_online(True)  # probes, then syncs
    """

    def __init__(
        self,
        gateway: RemoteGateway,
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
        transport_online: bool = True,
    ):
        self.gateway = gateway
        self.probe_timeout = probe_timeout
        self.transport_online = transport_online
        self.reachable = True
        self._listeners: list[ReconnectListener] = []

    @property
    def is_offline(self) -> bool:
        return not self.transport_online or not self.reachable

    @property
    def is_online(self) -> bool:
        return not self.is_offline

    def add_reconnect_listener(self, listener: ReconnectListener) -> None:
        self._listeners.append(listener)

    def remove_reconnect_listener(self, listener: ReconnectListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def probe(self, notify: bool = True) -> bool:
        """
        Check the backend with a minimal request.

        Args:
            notify: Run reconnect listeners if this probe brings the client
                    back online

        Returns:
            True when the backend answered within the probe timeout
        """
        was_offline = self.is_offline
        self.reachable = await self.gateway.ping(timeout=self.probe_timeout)
        if not self.reachable:
            logger.info("Backend unreachable, working offline")
        if notify:
            await self._after_change(was_offline)
        return self.reachable

    async def refresh(self, notify: bool = True) -> bool:
        """
        Re-evaluate connectivity; probes only while the transport is up.

        Returns:
            True when online
        """
        if not self.transport_online:
            return False
        await self.probe(notify=notify)
        return self.is_online

    async def set_transport_online(self, online: bool) -> None:
        """Record a transport-level online/offline event."""
        was_offline = self.is_offline
        self.transport_online = online
        logger.info(f"Transport reported {'online' if online else 'offline'}")
        if online:
            # Probe before declaring the backend reachable again
            self.reachable = await self.gateway.ping(timeout=self.probe_timeout)
        await self._after_change(was_offline)

    def mark_unreachable(self) -> None:
        """Record that a request just failed with a transient network error."""
        if self.reachable:
            logger.warning("Lost connection to backend")
        self.reachable = False

    async def _after_change(self, was_offline: bool) -> None:
        if was_offline and self.is_online:
            logger.info("Connection restored")
            for listener in list(self._listeners):
                await listener()
