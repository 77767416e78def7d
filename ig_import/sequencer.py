from __future__ import annotations

from datetime import datetime, timedelta, timezone

# Spacing between consecutive statuses of one thread.
THREAD_STEP = timedelta(seconds=1)


def base_instant(epoch_seconds: int) -> datetime:
    return datetime.fromtimestamp(int(epoch_seconds), tz=timezone.utc)


def sequence_timestamps(base: datetime, count: int) -> list[datetime]:
    """
    Creation times for a thread of `count` statuses starting at `base`.

    Each status is one second after the previous one, so sorting by creation time
    reproduces reply order.
    """
    if count < 0:
        raise ValueError("count must be >= 0")
    return [base + THREAD_STEP * i for i in range(count)]
