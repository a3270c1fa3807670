"""
Tests for the CLI module.

Tests the command-line interface using Click's testing utilities. Most
commands run against a ContactStore backed by the in-memory FakeGateway,
injected through the click context object.
"""

import io
import logging

import pytest
from click.testing import CliRunner
from PIL import Image

from offline_contacts import __version__
from offline_contacts.cli import DEFAULT_CONFIG_DIR, cli, get_config_dir
from offline_contacts.utils.logging import ROOT_LOGGER_NAME


@pytest.fixture(autouse=True)
def reset_package_logger():
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner, store, tmp_path, monkeypatch):
    """Invoke the CLI with the fake-backed store and a temp config dir."""
    monkeypatch.delenv("OFFLINE_CONTACTS_CONFIG_FILE", raising=False)
    monkeypatch.delenv("OFFLINE_CONTACTS_GRAPHQL_URL", raising=False)

    def _invoke(*args, **kwargs):
        return runner.invoke(
            cli, ["--config-dir", str(tmp_path), *args], obj={"store": store}, **kwargs
        )

    return _invoke


class TestHelperFunctions:
    """Tests for CLI helper functions."""

    def test_default_config_dir_is_in_home(self):
        """Test that DEFAULT_CONFIG_DIR is in user's home directory."""
        assert DEFAULT_CONFIG_DIR.name == ".offline-contacts"

    def test_get_config_dir_with_custom_path(self, tmp_path):
        """Test get_config_dir returns custom path when provided."""
        assert get_config_dir(str(tmp_path)) == tmp_path.resolve()


class TestCliGroup:
    """Tests for the main CLI group."""

    def test_help(self, runner):
        """Test that --help lists every command."""
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        for command in (
            "list", "show", "add", "update", "delete", "avatar",
            "pending", "sync", "resend", "status", "reset",
        ):
            assert command in result.output

    def test_version(self, runner):
        """Test --version."""
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_invalid_config_warns(self, invoke, tmp_path):
        """Test that an invalid config file only warns."""
        (tmp_path / "config.yaml").write_text("page_size: 0\n")

        result = invoke("pending")

        assert result.exit_code == 0
        assert "Configuration error" in result.output


class TestBrowseCommands:
    """Tests for list and show."""

    def test_list(self, invoke):
        """Test listing the first page."""
        result = invoke("list")

        assert result.exit_code == 0
        assert "Ana" in result.output
        assert "Bruno" in result.output
        assert "Carla" not in result.output
        assert "Page 1 of 2" in result.output

    def test_list_more_and_sort(self, invoke):
        """Test loading extra pages with a descending sort."""
        result = invoke("list", "--sort-by", "name", "--order", "desc", "--more", "1")

        assert result.exit_code == 0
        output = result.output
        assert output.index("Carla") < output.index("Bruno") < output.index("Ana")

    def test_list_search(self, invoke):
        """Test a search filter."""
        result = invoke("list", "--search", "car")

        assert result.exit_code == 0
        assert "Carla" in result.output
        assert "Ana" not in result.output

    def test_list_rejects_unknown_sort(self, invoke):
        """Test that --sort-by is validated."""
        result = invoke("list", "--sort-by", "email")
        assert result.exit_code == 2

    def test_list_offline(self, invoke, store):
        """Test listing with the network down."""
        store.monitor.transport_online = False

        result = invoke("list")

        assert result.exit_code == 0
        assert "Offline" in result.output

    def test_show(self, invoke):
        """Test showing one contact."""
        result = invoke("show", "1")

        assert result.exit_code == 0
        assert "Carla" in result.output
        assert "555-0103" in result.output

    def test_show_missing(self, invoke):
        """Test showing an unknown contact."""
        result = invoke("show", "404")

        assert result.exit_code == 1
        assert "Contact not found" in result.output


class TestEditCommands:
    """Tests for add, update, delete and avatar."""

    def test_add_online(self, invoke, gateway):
        """Test adding a contact online."""
        result = invoke("add", "--name", "Dora", "--phone", "555-0104")

        assert result.exit_code == 0
        assert "Added 4." in result.output
        assert gateway.records["4"].name == "Dora"

    def test_add_offline_is_queued(self, invoke, store, gateway):
        """Test that an offline add is queued."""
        store.monitor.transport_online = False

        result = invoke("add", "--name", "Dora", "--phone", "555-0104")

        assert result.exit_code == 0
        assert "queued as pending_" in result.output
        assert gateway.count("create") == 0

    def test_add_rejected(self, invoke, gateway):
        """Test that a backend rejection exits with an error."""
        gateway.reject["create"] = "phone is invalid"

        result = invoke("add", "--name", "Dora", "--phone", "x")

        assert result.exit_code == 1
        assert "phone is invalid" in result.output

    def test_update_requires_a_field(self, invoke):
        """Test that update without changes is a usage error."""
        result = invoke("update", "1")
        assert result.exit_code == 2
        assert "Nothing to update" in result.output

    def test_update_unknown_offline(self, invoke, store):
        """Test that an offline update of an unknown contact fails."""
        store.monitor.transport_online = False

        result = invoke("update", "404", "--name", "Nobody")

        assert result.exit_code == 1
        assert "Contact not found" in result.output

    def test_update_online(self, invoke, gateway):
        """Test updating a contact online."""
        result = invoke("update", "2", "--phone", "999")

        assert result.exit_code == 0
        assert gateway.records["2"].phone == "999"

    def test_delete_online(self, invoke, gateway):
        """Test deleting a contact online."""
        result = invoke("delete", "2")

        assert result.exit_code == 0
        assert "Deleted 2." in result.output
        assert "2" not in gateway.records

    def test_delete_offline_is_queued(self, invoke, store):
        """Test that an offline delete is queued."""
        store.monitor.transport_online = False

        result = invoke("delete", "2")

        assert result.exit_code == 0
        assert "queued as pending_" in result.output

    def test_avatar(self, invoke, gateway, tmp_path):
        """Test setting a photo from an image file."""
        image_path = tmp_path / "ana.png"
        output = io.BytesIO()
        Image.new("RGB", (40, 40), (0, 128, 0)).save(output, format="PNG")
        image_path.write_bytes(output.getvalue())

        result = invoke("avatar", "2", str(image_path))

        assert result.exit_code == 0
        assert gateway.records["2"].photo.startswith("data:image/jpeg;base64,")

    def test_avatar_not_an_image(self, invoke, tmp_path):
        """Test that a non-image file is rejected."""
        text_path = tmp_path / "notes.txt"
        text_path.write_text("hello")

        result = invoke("avatar", "2", str(text_path))

        assert result.exit_code == 1
        assert "Cannot use image" in result.output


class TestReconciliationCommands:
    """Tests for pending, sync and resend."""

    def test_pending_empty(self, invoke):
        """Test pending with nothing queued."""
        result = invoke("pending")
        assert "No pending operations." in result.output

    def test_pending_lists_operations(self, invoke, store):
        """Test that queued operations are listed."""
        store.queue.enqueue_create({"name": "Dora", "phone": "555-0104"})
        store.queue.enqueue_delete("2")

        result = invoke("pending")

        assert "Pending Operations (2)" in result.output
        assert "name=Dora" in result.output
        assert "-> 2" in result.output

    def test_sync(self, invoke, store, gateway):
        """Test that sync sends queued changes."""
        store.queue.enqueue_create({"name": "Dora", "phone": "555-0104"})

        result = invoke("sync")

        assert result.exit_code == 0
        assert "1 synced" in result.output
        assert gateway.count("create") == 1
        assert len(store.queue) == 0

    def test_sync_nothing(self, invoke):
        """Test sync with an empty queue."""
        result = invoke("sync")
        assert "Nothing to sync." in result.output

    def test_sync_offline(self, invoke, store, gateway):
        """Test that sync reports an unreachable backend."""
        store.queue.enqueue_create({"name": "Dora", "phone": "555-0104"})
        gateway.online = False

        result = invoke("sync")

        assert result.exit_code == 1
        assert "1 operations remain queued" in result.output

    def test_sync_reports_failures(self, invoke, store, gateway):
        """Test that failed operations are listed."""
        op = store.queue.enqueue_update("1", {"phone": "x"})
        gateway.reject["update"] = "phone is invalid"

        result = invoke("sync")

        assert "1 failed" in result.output
        assert f"{op.local_id}: phone is invalid" in result.output

    def test_resend(self, invoke, store, gateway):
        """Test sending one operation."""
        op = store.queue.enqueue_update("1", {"name": "Carlota"})

        result = invoke("resend", op.local_id)

        assert result.exit_code == 0
        assert f"Sent {op.local_id}." in result.output
        assert gateway.records["1"].name == "Carlota"

    def test_resend_unknown(self, invoke):
        """Test resending an unknown local id."""
        result = invoke("resend", "pending_404")

        assert result.exit_code == 1
        assert "Pending operation not found" in result.output


class TestSessionCommands:
    """Tests for status and reset."""

    def test_status(self, invoke, store):
        """Test the status report."""
        store.queue.enqueue_update("1", {"name": "Carlota"})

        result = invoke("status")

        assert result.exit_code == 0
        assert "Online" in result.output
        assert "Pending operations: 1 (0 failed)" in result.output

    def test_reset_requires_confirmation(self, invoke, store):
        """Test that reset asks before dropping pending work."""
        store.queue.enqueue_create({"name": "Dora"})

        result = invoke("reset", input="n\n")

        assert result.exit_code == 1
        assert len(store.queue) == 1

    def test_reset_yes(self, invoke, store, storage):
        """Test that reset --yes clears the session."""
        store.queue.enqueue_create({"name": "Dora"})

        result = invoke("reset", "--yes")

        assert result.exit_code == 0
        assert "Session cleared." in result.output
        assert len(store.queue) == 0
        assert storage.load_pending_operations() == []


class TestRealSession:
    """Tests that build the store from configuration, without a backend."""

    def test_offline_changes_survive_between_invocations(self, runner, tmp_path, monkeypatch):
        """Test that a queued add is visible to the next command."""
        monkeypatch.delenv("OFFLINE_CONTACTS_CONFIG_FILE", raising=False)
        config_dir = tmp_path / "config"

        added = runner.invoke(
            cli,
            ["--config-dir", str(config_dir), "--offline", "add", "--name", "Dora", "--phone", "1"],
        )
        pending = runner.invoke(cli, ["--config-dir", str(config_dir), "--offline", "pending"])
        status = runner.invoke(cli, ["--config-dir", str(config_dir), "--offline", "status"])

        assert added.exit_code == 0
        assert "queued as pending_" in added.output
        assert (config_dir / "session.db").exists()
        assert "name=Dora" in pending.output
        assert "Offline" in status.output
        assert "Pending operations: 1" in status.output
