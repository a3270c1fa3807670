"""
Command-line interface for offline_contacts.

Provides CLI commands for browsing and editing the contact directory,
including while the backend is unreachable, and for replaying the
changes made offline.

Usage:
    # Show help
    offline-contacts --help

    # Browse
    offline-contacts list --search ana --sort-by createdAt --order desc
    offline-contacts show 42

    # Edit (queued automatically when offline)
    offline-contacts add --name "Ana" --phone "555-0100"
    offline-contacts --offline update 42 --phone "555-0101"

    # Reconcile
    offline-contacts pending
    offline-contacts sync
"""

import asyncio
import sys
from pathlib import Path
from typing import Any, Optional

import click

from offline_contacts import __version__
from offline_contacts.api.gateway import (
    GatewayError,
    NotFoundError,
    RemoteGateway,
    RemoteValidationError,
)
from offline_contacts.cli.formatters import (
    print_contacts,
    print_pending,
    print_record,
    print_sync_result,
)
from offline_contacts.config.loader import DEFAULT_CONFIG_FILE, ConfigError
from offline_contacts.config.settings import ClientSettings, load_settings
from offline_contacts.storage.session import LocalPersistenceError, SessionStorage
from offline_contacts.sync.engine import OfflineError, PendingOperationNotFoundError
from offline_contacts.sync.photo import PhotoError
from offline_contacts.sync.projector import SORT_ORDERS
from offline_contacts.sync.record import SORTABLE_FIELDS, OperationStatus, Record
from offline_contacts.sync.store import ContactStore, RecordNotFoundError
from offline_contacts.utils import resolve_config_dir
from offline_contacts.utils.logging import cleanup_old_logs, get_logger, setup_logging


def get_config_dir(config_dir: Optional[str]) -> Path:
    """Get the configuration directory path."""
    return resolve_config_dir(config_dir)


def fail(message: str) -> None:
    """Print an error and exit with status 1."""
    click.echo(click.style(f"Error: {message}", fg="red"), err=True)
    sys.exit(1)


def get_store(ctx: click.Context) -> ContactStore:
    """
    Build (once) the contact store for this invocation.

    A store already present in ``ctx.obj`` is reused as-is.
    """
    store = ctx.obj.get("store")
    if store is not None:
        return store

    settings: ClientSettings = ctx.obj["settings"]
    db_path = settings.session_db_path(ctx.obj["config_dir"])
    storage = SessionStorage(db_path)
    try:
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        storage.initialize()
    except LocalPersistenceError as e:
        fail(f"Cannot open session storage: {e}")

    store = ContactStore(
        RemoteGateway(settings.graphql_url, timeout=settings.request_timeout),
        storage,
        page_size=settings.page_size,
        cache_duration=settings.cache_duration,
        batch_size=settings.batch_size,
        debounce_delay=settings.debounce_delay,
        probe_timeout=settings.probe_timeout,
        transport_online=not ctx.obj["offline"],
    )
    ctx.obj["store"] = store
    return store


def run(coro: Any) -> Any:
    """Run a coroutine to completion for a synchronous click command."""
    return asyncio.run(coro)


def echo_saved(record: Record, action: str) -> None:
    if record.status:
        click.echo(
            click.style(
                f"{action} offline; queued as {record.id} until the next sync.",
                fg="yellow",
            )
        )
    else:
        click.echo(click.style(f"{action} {record.id}.", fg="green"))


@click.group()
@click.version_option(version=__version__, prog_name="offline-contacts")
@click.option(
    "--verbose", "-v", is_flag=True, help="Enable verbose output with detailed logging."
)
@click.option(
    "--config-dir",
    "-c",
    type=click.Path(exists=False, file_okay=False, dir_okay=True),
    envvar="OFFLINE_CONTACTS_CONFIG_DIR",
    help="Configuration directory path (default: ~/.offline-contacts).",
)
@click.option(
    "--config-file",
    "-f",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    envvar="OFFLINE_CONTACTS_CONFIG_FILE",
    help=f"Configuration file path (default: <config-dir>/{DEFAULT_CONFIG_FILE}).",
)
@click.option(
    "--offline",
    is_flag=True,
    help="Treat the network as unavailable; changes are queued locally.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    config_dir: Optional[str],
    config_file: Optional[str],
    offline: bool,
) -> None:
    """
    Offline-first contact directory.

    Browse and edit contacts stored on a GraphQL backend. Changes made
    while the backend is unreachable are kept locally and replayed by
    'sync'.
    """
    ctx.ensure_object(dict)

    resolved_config_dir = get_config_dir(config_dir)
    ctx.obj["config_dir"] = resolved_config_dir
    ctx.obj["offline"] = offline

    try:
        settings = load_settings(resolved_config_dir, config_file)
    except ConfigError as e:
        # Show error but don't fail - allow CLI to work without config file
        click.echo(
            click.style(f"Warning: Configuration error: {e}", fg="yellow"), err=True
        )
        settings = ClientSettings.from_dict({})

    ctx.obj["settings"] = settings

    effective_verbose = verbose or settings.verbose
    ctx.obj["verbose"] = effective_verbose

    log_dir = settings.log_path() or resolved_config_dir / "logs"
    setup_logging(verbose=effective_verbose, log_dir=log_dir, enable_file_logging=True)

    if settings.log_retention_count > 0:
        cleanup_old_logs(log_dir=log_dir, keep_count=settings.log_retention_count)


# =============================================================================
# Browse Commands
# =============================================================================


@cli.command("list")
@click.option("--page-size", "-n", type=click.IntRange(min=1), help="Contacts per page.")
@click.option("--search", "-s", help="Only show contacts whose name or phone matches.")
@click.option(
    "--sort-by",
    type=click.Choice(SORTABLE_FIELDS),
    help="Field to sort by (default: name).",
)
@click.option("--order", type=click.Choice(SORT_ORDERS), help="Sort direction.")
@click.option(
    "--more",
    "more_pages",
    type=click.IntRange(min=0),
    default=0,
    help="Number of additional pages to load.",
)
@click.pass_context
def list_command(
    ctx: click.Context,
    page_size: Optional[int],
    search: Optional[str],
    sort_by: Optional[str],
    order: Optional[str],
    more_pages: int,
) -> None:
    """
    List contacts.

    Shows pending local changes merged over the contacts last confirmed by
    the backend. Search and sort choices are remembered for the session.

    Examples:

        offline-contacts list
        offline-contacts list --search ana --more 2
        offline-contacts list --sort-by updatedAt --order desc
    """
    store = get_store(ctx)
    if page_size:
        store.page_size = page_size

    async def _list() -> None:
        if sort_by or order:
            await store.apply_sort(sort_by or store.sort_field, order or store.sort_order)
        if search is not None:
            await store.apply_search(search)
        if not (sort_by or order) and search is None:
            await store.fetch()
        for _ in range(more_pages):
            if not store.has_more:
                break
            await store.load_more()

    run(_list())

    if store.is_offline:
        click.echo(click.style("Offline: showing saved contacts.", fg="yellow"))
    if store.error:
        fail(store.error)
    print_contacts(store.contacts, store.pagination)


@cli.command("show")
@click.argument("record_id")
@click.pass_context
def show_command(ctx: click.Context, record_id: str) -> None:
    """
    Show one contact.

    Example:

        offline-contacts show 42
    """
    store = get_store(ctx)
    try:
        record = run(store.get_contact(record_id))
    except OfflineError as e:
        fail(str(e))
    except NotFoundError:
        fail(f"Contact not found: {record_id}")
    except GatewayError as e:
        fail(str(e))
    else:
        print_record(record)


# =============================================================================
# Edit Commands
# =============================================================================


@cli.command("add")
@click.option("--name", required=True, help="Contact name.")
@click.option("--phone", required=True, help="Contact phone number.")
@click.pass_context
def add_command(ctx: click.Context, name: str, phone: str) -> None:
    """
    Add a contact.

    Example:

        offline-contacts add --name "Ana" --phone "555-0100"
    """
    logger = get_logger(__name__)
    store = get_store(ctx)
    try:
        record = run(store.add_contact({"name": name, "phone": phone}))
    except RemoteValidationError as e:
        logger.error(f"Contact rejected: {e}")
        fail(str(e))
    else:
        echo_saved(record, "Added")


@cli.command("update")
@click.argument("record_id")
@click.option("--name", help="New name.")
@click.option("--phone", help="New phone number.")
@click.pass_context
def update_command(
    ctx: click.Context, record_id: str, name: Optional[str], phone: Optional[str]
) -> None:
    """
    Update a contact's name and/or phone.

    RECORD_ID may be a server id or the pending id of a queued contact.

    Example:

        offline-contacts update 42 --phone "555-0101"
    """
    changes = {
        key: value for key, value in (("name", name), ("phone", phone)) if value is not None
    }
    if not changes:
        raise click.UsageError("Nothing to update: pass --name and/or --phone.")

    store = get_store(ctx)
    try:
        record = run(store.update_contact(record_id, changes))
    except RecordNotFoundError as e:
        fail(str(e))
    except RemoteValidationError as e:
        fail(str(e))
    else:
        echo_saved(record, "Updated")


@cli.command("delete")
@click.argument("record_id")
@click.pass_context
def delete_command(ctx: click.Context, record_id: str) -> None:
    """
    Delete a contact.

    Deleting a contact that was never synced only discards it locally.

    Example:

        offline-contacts delete 42
    """
    store = get_store(ctx)
    try:
        run(store.delete_contact(record_id))
    except RemoteValidationError as e:
        fail(str(e))

    op = store.queue.find_by_target(record_id)
    if op is not None:
        click.echo(
            click.style(
                f"Delete of {record_id} queued as {op.local_id} until the next sync.",
                fg="yellow",
            )
        )
    else:
        click.echo(click.style(f"Deleted {record_id}.", fg="green"))


@cli.command("avatar")
@click.argument("record_id")
@click.argument("image", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def avatar_command(ctx: click.Context, record_id: str, image: Path) -> None:
    """
    Set a contact's photo from an image file.

    The image is converted to a JPEG of at most 512x512 pixels.

    Example:

        offline-contacts avatar 42 ~/Pictures/ana.png
    """
    store = get_store(ctx)
    try:
        record = run(store.update_avatar(record_id, image.read_bytes()))
    except PhotoError as e:
        fail(f"Cannot use image: {e}")
    except RecordNotFoundError as e:
        fail(str(e))
    except RemoteValidationError as e:
        fail(str(e))
    else:
        echo_saved(record, "Photo updated for")


# =============================================================================
# Reconciliation Commands
# =============================================================================


@cli.command("pending")
@click.pass_context
def pending_command(ctx: click.Context) -> None:
    """Show changes waiting to be sent to the backend."""
    store = get_store(ctx)
    print_pending(store.pending_operations)


@cli.command("sync")
@click.pass_context
def sync_command(ctx: click.Context) -> None:
    """
    Send queued changes to the backend.

    Operations that fail are kept and retried on the next sync.
    """
    store = get_store(ctx)

    async def _sync() -> Any:
        await store.monitor.refresh(notify=False)
        return await store.sync()

    result = run(_sync())
    if result.skipped and store.is_offline and len(store.queue):
        fail(f"Backend unreachable; {len(store.queue)} operations remain queued.")
    print_sync_result(result)


@cli.command("resend")
@click.argument("local_id")
@click.pass_context
def resend_command(ctx: click.Context, local_id: str) -> None:
    """
    Send one queued operation now.

    Example:

        offline-contacts resend pending_1718447400000
    """
    store = get_store(ctx)

    async def _resend() -> Any:
        await store.monitor.refresh(notify=False)
        return await store.resend(local_id)

    try:
        run(_resend())
    except OfflineError as e:
        fail(str(e))
    except PendingOperationNotFoundError as e:
        fail(str(e))
    except NotFoundError as e:
        click.echo(
            click.style(f"Dropped {local_id}: the contact no longer exists ({e}).", fg="yellow")
        )
    except GatewayError as e:
        fail(f"Resend failed, operation kept: {e}")
    else:
        click.echo(click.style(f"Sent {local_id}.", fg="green"))


# =============================================================================
# Session Commands
# =============================================================================


@cli.command("status")
@click.pass_context
def status_command(ctx: click.Context) -> None:
    """Show backend connectivity and local session state."""
    store = get_store(ctx)
    settings: ClientSettings = ctx.obj["settings"]

    run(store.monitor.refresh(notify=False))

    click.echo("=== Offline Contacts Status ===\n")
    click.echo(f"Configuration directory: {ctx.obj['config_dir']}")
    click.echo(f"Backend: {settings.graphql_url}")
    connection = (
        click.style("Offline", fg="yellow")
        if store.is_offline
        else click.style("Online", fg="green")
    )
    click.echo(f"Connection: {connection}")
    click.echo(f"Session storage: {settings.session_db_path(ctx.obj['config_dir'])}")
    click.echo()

    operations = store.pending_operations
    failed = sum(1 for op in operations if op.status is OperationStatus.FAILED)
    click.echo(f"Saved contacts: {len(store.committed)}")
    click.echo(f"Pending operations: {len(operations)} ({failed} failed)")
    click.echo(
        f"Sort: {store.sort_field} {store.sort_order}"
        + (f", search: {store.search!r}" if store.search else "")
    )

    if operations and store.monitor.is_online:
        click.echo("\nRun 'offline-contacts sync' to send pending changes.")


@cli.command("reset")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def reset_command(ctx: click.Context, yes: bool) -> None:
    """
    Clear the local session.

    Discards saved contacts, search/sort choices and every pending
    operation that has not been synced.
    """
    store = get_store(ctx)
    pending = len(store.queue)
    if not yes and pending:
        click.confirm(
            f"{pending} pending operations will be lost. Continue?", abort=True
        )

    try:
        store.storage.clear()
    except LocalPersistenceError as e:
        fail(f"Could not clear session storage: {e}")
    store.queue.clear()
    store.cache.clear()
    store.committed = []
    store.contacts = []
    click.echo(click.style("Session cleared.", fg="green"))
