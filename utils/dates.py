"""
Calendar-date arithmetic for billing cycles.

Every value here is a plain `datetime.date`: no time of day, no timezone.
Strings are accepted only in `YYYY-MM-DD` form and are parsed by components,
so a date never drifts across midnight the way a UTC timestamp does.
"""

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

# endDate = startDate + 29, so a cycle covers 30 calendar days inclusive
CYCLE_LENGTH_DAYS = 29


def parse_date(value: date | str) -> date:
    """
    Coerce a date or `YYYY-MM-DD` string into a date.

    Raises:
        ValueError: If the string is malformed or a component is out of range
        TypeError: If value is neither a date nor a string
    """
    if isinstance(value, datetime):
        raise TypeError("Expected a calendar date, got a datetime")
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise TypeError(f"Expected a date or YYYY-MM-DD string, got {type(value).__name__}")

    parts = value.split("-")
    if (
        not value.isascii()
        or len(parts) != 3
        or not all(p.isdigit() for p in parts)
        or [len(p) for p in parts] != [4, 2, 2]
    ):
        raise ValueError(f"Invalid date {value!r}: expected YYYY-MM-DD")

    year, month, day = (int(p) for p in parts)
    try:
        return date(year, month, day)
    except ValueError as e:
        raise ValueError(f"Invalid date {value!r}: {e}") from e


def add_days(value: date | str, days: int) -> date:
    """
    Date `days` calendar days after `value` (negative goes backward).

    Month, year and leap-day rollover come from date arithmetic on the
    calendar components.
    """
    return parse_date(value) + timedelta(days=days)


def today(tz_name: str | None = None) -> date:
    """
    Current local calendar date.

    Args:
        tz_name: IANA timezone to evaluate "today" in. None uses the
            machine's local date.

    Raises:
        ValueError: If timezone name is invalid
    """
    if tz_name is None:
        return date.today()

    try:
        tz = ZoneInfo(tz_name)
    except (KeyError, ValueError):
        raise ValueError(f"Unknown timezone: {tz_name}")

    return datetime.now(tz).date()


def days_until(value: date | str, reference: date | None = None) -> int:
    """
    Signed whole days from `reference` (default today) to `value`.

    Negative means `value` is in the past. Both sides are calendar dates, so
    the result never depends on the time of day.
    """
    if reference is None:
        reference = today()
    return (parse_date(value) - reference).days


def days_since(value: date | str, reference: date | None = None) -> int:
    """Days elapsed since `value`; the inverse sign of days_until."""
    return -days_until(value, reference)


def format_date(value: date | str | None) -> str:
    """Human-readable date, e.g. 27-Feb-2026. Missing dates render as '-'."""
    if value is None or value == "":
        return "-"
    if isinstance(value, str):
        # Tolerate ISO timestamps like 2026-02-27T10:00:00Z
        value = value.split("T")[0]
    return parse_date(value).strftime("%d-%b-%Y")
