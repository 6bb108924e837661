"""Monthly quota period arithmetic (calendar months, UTC)."""

from datetime import UTC, datetime


def next_period_start(now: datetime) -> datetime:
    """Return 00:00 UTC on the first day of the month after ``now``."""
    current = now.astimezone(UTC)
    if current.month == 12:
        return datetime(current.year + 1, 1, 1, tzinfo=UTC)
    return datetime(current.year, current.month + 1, 1, tzinfo=UTC)


def effective_period_usage(*, used: int, period_reset_at: datetime, now: datetime) -> tuple[int, datetime]:
    """Usage and reset instant as seen at ``now``, without persisting a rollover."""
    if now >= period_reset_at:
        return 0, next_period_start(now)
    return used, period_reset_at
