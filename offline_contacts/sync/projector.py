"""
Sort/filter projection of the merged contact view.

The displayed list is always ``project(merge_view(pending, committed))``:
pending work first, then committed records, deduplicated by id, sorted
stably and filtered last so filtering never reorders retained items.
"""

from __future__ import annotations

import locale
import math
from collections.abc import Iterable

from offline_contacts.sync.record import OperationKind, PendingOperation, Record

SORT_ASC = "asc"
SORT_DESC = "desc"
SORT_ORDERS = (SORT_ASC, SORT_DESC)


def sort_key(record: Record, sort_field: str) -> str:
    """Locale-aware collation key of a field, lower-cased; missing is ''."""
    value = record.get_field(sort_field)
    text = "" if value is None else str(value)
    return locale.strxfrm(text.lower())


def matches(record: Record, search: str) -> bool:
    """Case-insensitive substring match against name or phone."""
    term = search.lower()
    return term in (record.name or "").lower() or term in (record.phone or "").lower()


def project(
    records: Iterable[Record],
    sort_field: str = "name",
    sort_order: str = SORT_ASC,
    search: str = "",
) -> list[Record]:
    """
    Sort then filter records for display.

    Python's sort is stable in both directions, so records with equal keys
    keep their input order whether ascending or descending.
    """
    ordered = sorted(
        records,
        key=lambda record: sort_key(record, sort_field),
        reverse=sort_order == SORT_DESC,
    )
    if not search:
        return ordered
    return [record for record in ordered if matches(record, search)]


def merge_view(
    operations: Iterable[PendingOperation], committed: Iterable[Record]
) -> list[Record]:
    """
    Combine queued operations with committed records.

    Creates appear under their pending id, updates replace the committed
    record they target, deletes hide it. Pending entries come first and
    each id appears once.
    """
    committed_by_id: dict[str, Record] = {}
    for record in committed:
        committed_by_id.setdefault(record.id, record)

    merged: list[Record] = []
    seen: set[str] = set()

    for op in operations:
        target = op.target_id()
        seen.add(target)
        if op.kind is OperationKind.DELETE:
            continue
        merged.append(op.to_record(committed_by_id.get(target)))

    for record_id, record in committed_by_id.items():
        if record_id not in seen:
            merged.append(record)
            seen.add(record_id)

    return merged


def paginate(
    records: list[Record], page: int, page_size: int
) -> tuple[list[Record], int, bool]:
    """
    Local pagination arithmetic.

    Returns:
        Tuple of (records of the requested page, total pages, has more)
    """
    total_pages = math.ceil(len(records) / page_size) if page_size > 0 else 0
    start = (page - 1) * page_size
    return records[start : start + page_size], total_pages, page < total_pages
