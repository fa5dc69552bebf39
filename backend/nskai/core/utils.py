"""Small helpers shared across domain services."""

import math
from datetime import UTC, date, datetime, time, timedelta


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (``Math.round`` semantics).

    Python's ``round`` uses banker's rounding, which would turn 62.5 into 62.
    """
    return int(math.floor(value + 0.5))


def percentage(part: int, total: int) -> int:
    """Rounded percentage of ``part`` over ``total``; 0 when ``total`` is 0."""
    if total <= 0:
        return 0
    return round_half_up(part / total * 100)


def utc_now() -> datetime:
    return datetime.now(UTC)


def utc_date_string(moment: datetime | date | None = None) -> str:
    """Format a moment as a ``YYYY-MM-DD`` string in UTC."""
    if moment is None:
        moment = utc_now()
    if isinstance(moment, datetime):
        if moment.tzinfo is not None:
            moment = moment.astimezone(UTC)
        return moment.date().isoformat()
    return moment.isoformat()


def previous_date_string(day: str) -> str:
    """Return the ``YYYY-MM-DD`` string of the day before ``day``."""
    return (date.fromisoformat(day) - timedelta(days=1)).isoformat()


def start_of_day(day: str) -> datetime:
    """Midnight UTC of a ``YYYY-MM-DD`` day."""
    return datetime.combine(date.fromisoformat(day), time.min, tzinfo=UTC)
