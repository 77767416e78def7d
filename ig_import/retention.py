from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Iterator, Sequence

from .run_log import NullRunLogger, RunLogger
from .storage import SQLiteStore


@dataclass(frozen=True)
class RetentionResult:
    account: str
    cutoff: datetime
    dry_run: bool
    statuses_deleted: int
    media_deleted: int
    statuses_matched: int
    media_matched: int


def parse_cutoff(value: str) -> datetime:
    """
    Parse a CLI cutoff date.

    A bare date means midnight UTC of that day; naive datetimes are taken as UTC.
    """
    raw = (value or "").strip()
    if not raw:
        raise ValueError("cutoff date must be non-empty")

    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        parsed = datetime.combine(date.fromisoformat(raw), time.min)

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _batches(ids: Sequence[int], size: int) -> Iterator[list[int]]:
    for start in range(0, len(ids), size):
        yield list(ids[start : start + size])


def delete_statuses(
    store: SQLiteStore,
    *,
    account_name: str,
    cutoff: datetime,
    batch_size: int = 50,
    dry_run: bool = False,
    logger: RunLogger | None = None,
) -> RetentionResult:
    """
    Delete an account's statuses created at or before cutoff, media first.

    Work happens in batches of `batch_size` ids. With dry_run the same rows are
    enumerated and logged but nothing is deleted and the deleted counters stay 0.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")

    account = store.find_account(account_name)
    log = (logger or NullRunLogger()).bind(account=account.username)
    log.info("retention_started", cutoff=cutoff.isoformat(), dry_run=bool(dry_run))

    media_ids = store.media_ids_before(account.id, cutoff)
    media_deleted = 0
    for batch in _batches(media_ids, batch_size):
        log.info("deleting_media_attachments", ids=batch, dry_run=bool(dry_run))
        if not dry_run:
            media_deleted += store.delete_media(batch)

    status_ids = store.status_ids_before(account.id, cutoff)
    statuses_deleted = 0
    for batch in _batches(status_ids, batch_size):
        log.info("deleting_statuses", ids=batch, dry_run=bool(dry_run))
        if not dry_run:
            statuses_deleted += store.delete_statuses(batch)

    log.info(
        "retention_completed",
        statuses_deleted=statuses_deleted,
        media_deleted=media_deleted,
        dry_run=bool(dry_run),
    )

    return RetentionResult(
        account=account.username,
        cutoff=cutoff,
        dry_run=bool(dry_run),
        statuses_deleted=statuses_deleted,
        media_deleted=media_deleted,
        statuses_matched=len(status_ids),
        media_matched=len(media_ids),
    )
