"""UTC datetime utilities and the calendar-quarter helpers used for periods."""

import re
from datetime import datetime, timedelta, timezone

_QUARTER_RE = re.compile(r"^(\d{4})-Q([1-4])$")


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def quarter_key(dt: datetime) -> str:
    """2026-11-03T.. -> '2026-Q4'."""
    return f"{dt.year}-Q{(dt.month - 1) // 3 + 1}"


def parse_quarter(key: str) -> tuple[int, int]:
    """'2026-Q4' -> (2026, 4). Raises ValueError on malformed keys."""
    match = _QUARTER_RE.match(key)
    if match is None:
        raise ValueError(f"Invalid quarter format: {key}")
    return int(match.group(1)), int(match.group(2))


def quarter_bounds(key: str) -> tuple[datetime, datetime]:
    """Return (first instant, last instant) of the quarter in UTC.

    The end is inclusive at microsecond precision, so `ends_at <= now` flips
    exactly when the next quarter begins.
    """
    year, quarter = parse_quarter(key)
    start = datetime(year, (quarter - 1) * 3 + 1, 1, tzinfo=timezone.utc)
    if quarter == 4:
        next_start = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        next_start = datetime(year, quarter * 3 + 1, 1, tzinfo=timezone.utc)
    return start, next_start - timedelta(microseconds=1)


def next_quarter_key(key: str) -> str:
    year, quarter = parse_quarter(key)
    if quarter == 4:
        return f"{year + 1}-Q1"
    return f"{year}-Q{quarter + 1}"
