"""CLI output formatting functions.

This module contains functions for displaying contacts, queued operations
and reconciliation results on the command line.
"""

from typing import TYPE_CHECKING, Optional

import click

from offline_contacts.sync.record import OperationKind, OperationStatus

if TYPE_CHECKING:
    from offline_contacts.sync.engine import ReconciliationResult
    from offline_contacts.sync.record import PaginationState, PendingOperation, Record

# Column widths for the contact table
ID_WIDTH = 22
NAME_WIDTH = 28
PHONE_WIDTH = 18

KIND_SYMBOLS = {
    OperationKind.CREATE: "+",
    OperationKind.UPDATE: "~",
    OperationKind.DELETE: "-",
}

STATUS_COLORS = {
    OperationStatus.PENDING.value: "yellow",
    OperationStatus.SYNCING.value: "cyan",
    OperationStatus.FAILED.value: "red",
}


def _truncate(text: str, width: int) -> str:
    if len(text) <= width:
        return text
    return text[: width - 3] + "..."


def _status_label(status: Optional[str]) -> str:
    if not status:
        return ""
    return click.style(status, fg=STATUS_COLORS.get(status, "yellow"))


def print_contacts(
    records: list["Record"], pagination: Optional["PaginationState"] = None
) -> None:
    """
    Display contacts as a table.

    Args:
        records: Records to display, in display order
        pagination: Pagination state shown below the table, if given
    """
    if not records:
        click.echo("No contacts found.")
    else:
        header = (
            f"{'ID':<{ID_WIDTH}} {'NAME':<{NAME_WIDTH}} {'PHONE':<{PHONE_WIDTH}} STATUS"
        )
        click.echo(click.style(header, bold=True))
        for record in records:
            click.echo(
                f"{_truncate(record.id, ID_WIDTH):<{ID_WIDTH}} "
                f"{_truncate(record.name, NAME_WIDTH):<{NAME_WIDTH}} "
                f"{_truncate(record.phone, PHONE_WIDTH):<{PHONE_WIDTH}} "
                f"{_status_label(record.status)}".rstrip()
            )

    if pagination is not None:
        pages = pagination.total_pages or 1
        more = " (more available)" if pagination.has_more else ""
        click.echo(
            f"\nPage {pagination.page} of {pages}, "
            f"{len(records)} shown{more}"
        )


def print_record(record: "Record") -> None:
    """Display every field of one contact."""
    click.echo(f"ID:       {record.id}")
    click.echo(f"Name:     {record.name}")
    click.echo(f"Phone:    {record.phone}")
    if record.photo:
        click.echo(f"Photo:    {len(record.photo)} bytes (data URL)")
    else:
        click.echo("Photo:    (none)")
    click.echo(f"Created:  {record.created_at or '-'}")
    click.echo(f"Updated:  {record.updated_at or '-'}")
    if record.status:
        click.echo(f"Status:   {_status_label(record.status)}")


def print_pending(operations: list["PendingOperation"]) -> None:
    """Display queued operations in replay order."""
    if not operations:
        click.echo("No pending operations.")
        return

    click.echo(f"=== Pending Operations ({len(operations)}) ===\n")
    for op in operations:
        symbol = KIND_SYMBOLS.get(op.kind, "?")
        target = f" -> {op.original_id}" if op.original_id else ""
        fields = ", ".join(
            f"{key}={'<photo>' if key == 'photo' else value}"
            for key, value in op.payload.items()
        )
        click.echo(
            f"  {symbol} {op.local_id}{target} [{_status_label(op.status.value)}]"
            + (f" {fields}" if fields else "")
        )
        if op.last_error:
            click.echo(
                click.style(
                    f"      last error (attempt {op.attempts}): {op.last_error}",
                    fg="red",
                )
            )


def print_sync_result(result: "ReconciliationResult") -> None:
    """Display the outcome of a reconciliation pass."""
    if result.skipped:
        click.echo("Nothing to sync.")
        return

    color = "green" if not result.failed and not result.aborted else "yellow"
    click.echo(click.style(result.summary(), fg=color))

    if result.errors:
        click.echo("\nFailed operations:")
        for local_id, message in result.errors.items():
            click.echo(f"  {local_id}: {message}")
        click.echo("\nRun 'offline-contacts resend LOCAL_ID' to retry one now.")
