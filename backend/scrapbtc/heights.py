"""Date to block height estimation."""

from datetime import date, datetime, timedelta, timezone

GENESIS_TIME = datetime(2009, 1, 3, 18, 15, 5, tzinfo=timezone.utc)
BLOCK_INTERVAL = timedelta(minutes=10)


def _as_utc(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)


def estimate_height(when: date | datetime) -> int:
    """Estimate the block height mined at ``when``.

    Assumes one block every 10 minutes since genesis, which drifts by a
    few thousand blocks over the chain's lifetime.
    """
    when = _as_utc(when)
    if when < GENESIS_TIME:
        return 0
    return (when - GENESIS_TIME) // BLOCK_INTERVAL


def _one_year_before(now: datetime) -> datetime:
    try:
        return now.replace(year=now.year - 1)
    except ValueError:
        # Feb 29 -> Feb 28
        return now.replace(year=now.year - 1, day=28)


def calculate_height_range(
    best_height: int,
    start_date: date | datetime | None = None,
    end_date: date | datetime | None = None,
    now: datetime | None = None,
) -> tuple[int, int]:
    """Height range for a date range, clamped to [0, best_height].

    Defaults: start one year before ``now``, end at the chain tip.
    """
    now = now or datetime.now(timezone.utc)

    end_height = best_height if end_date is None else estimate_height(end_date)
    start_height = estimate_height(start_date if start_date is not None else _one_year_before(now))

    start_height = max(start_height, 0)
    end_height = min(end_height, best_height)
    return start_height, end_height
