"""Utility modules for cross-cutting concerns."""

from utils.timezone import now_utc, to_utc, parse_iso
from utils.dates import (
    CYCLE_LENGTH_DAYS,
    parse_date,
    add_days,
    today,
    days_until,
    days_since,
    format_date,
)
