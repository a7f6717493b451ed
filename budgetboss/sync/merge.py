"""
Merge Strategy

Whole-record last-write-wins. A record is never merged field by field:
one side's version wins entirely.

The resolver is a plain function so callers can swap the strategy
(e.g. "remote always wins") without touching the sync engine.
"""

from typing import Callable, Iterable, Optional

from budgetboss.models.budget import RecordT


Resolver = Callable[[Optional[RecordT], RecordT], RecordT]


def last_write_wins(local: Optional[RecordT], remote: RecordT) -> RecordT:
    """
    Pick the winner between a local record and its remote counterpart.

    Remote wins only when there is no local copy or it is strictly
    newer. Ties keep local.
    """
    if local is None:
        return remote
    if remote.updated_at > local.updated_at:
        return remote
    return local


def merge_records(
    local: Iterable[RecordT],
    remote: Iterable[RecordT],
    resolve: Resolver = last_write_wins,
) -> list[RecordT]:
    """
    Merge two versions of the same collection by id.

    Records on only one side are kept. Output is ordered by creation
    time so the merged plan keeps a stable order across devices.
    """
    merged: dict[str, RecordT] = {record.id: record for record in local}
    for record in remote:
        merged[record.id] = resolve(merged.get(record.id), record)
    return sorted(merged.values(), key=lambda r: (r.created_at, r.id))
