"""Tests for utils/dates.py - calendar-date arithmetic."""

from datetime import date, datetime, timedelta

import pytest

from utils.dates import (
    CYCLE_LENGTH_DAYS,
    parse_date,
    add_days,
    today,
    days_until,
    days_since,
    format_date,
)


class TestCycleLength:

    def test_cycle_spans_thirty_inclusive_days(self):
        """End date offset is 29, so day 1..day 30 inclusive."""
        assert CYCLE_LENGTH_DAYS == 29
        start = date(2026, 1, 1)
        end = add_days(start, CYCLE_LENGTH_DAYS)
        assert (end - start).days + 1 == 30


class TestParseDate:
    """Tests for parse_date()."""

    def test_parses_iso_string(self):
        assert parse_date("2026-02-28") == date(2026, 2, 28)

    def test_passes_date_through(self):
        d = date(2026, 2, 28)
        assert parse_date(d) is d

    @pytest.mark.parametrize("value", ["2026-02-30", "2025-02-29", "2026-13-01", "2026-00-10"])
    def test_rejects_out_of_range_components(self, value):
        with pytest.raises(ValueError, match="Invalid date"):
            parse_date(value)

    @pytest.mark.parametrize("value", [
        "", "28-02-2026", "2026/02/28", "2026-2", "yesterday", "2026-02-28T00:00",
        "2026-2-28", "2026-02-8",
        "\uff12\uff10\uff12\uff16-02-28",  # full-width digits
    ])
    def test_rejects_malformed_strings(self, value):
        with pytest.raises(ValueError, match="YYYY-MM-DD"):
            parse_date(value)

    def test_rejects_datetime(self):
        """A datetime carries a time of day; only calendar dates are accepted."""
        with pytest.raises(TypeError):
            parse_date(datetime(2026, 2, 28, 12, 0))

    def test_rejects_other_types(self):
        with pytest.raises(TypeError):
            parse_date(20260228)


class TestAddDays:
    """Tests for add_days()."""

    def test_non_leap_february_rolls_into_march(self):
        assert add_days("2026-02-28", CYCLE_LENGTH_DAYS) == date(2026, 3, 29)

    def test_leap_day_start(self):
        assert add_days("2028-02-29", CYCLE_LENGTH_DAYS) == date(2028, 3, 29)

    def test_leap_february_has_29th(self):
        assert add_days("2028-02-28", 1) == date(2028, 2, 29)
        assert add_days("2026-02-28", 1) == date(2026, 3, 1)

    def test_december_rolls_into_next_year(self):
        assert add_days("2026-12-03", CYCLE_LENGTH_DAYS) == date(2027, 1, 1)

    def test_negative_goes_backward(self):
        assert add_days("2026-03-01", -1) == date(2026, 2, 28)
        assert add_days("2027-01-01", -29) == date(2026, 12, 3)

    def test_zero_is_identity(self):
        assert add_days("2026-07-15", 0) == date(2026, 7, 15)

    @pytest.mark.parametrize("start", ["2024-02-29", "2026-12-31", "2026-02-28", "2000-03-01", "1999-12-31"])
    @pytest.mark.parametrize("n", [-400, -29, -1, 1, 29, 366])
    def test_round_trip(self, start, n):
        """add_days(add_days(d, n), -n) == d across month, year and leap boundaries."""
        assert add_days(add_days(start, n), -n) == parse_date(start)

    def test_malformed_input_fails_fast(self):
        with pytest.raises(ValueError):
            add_days("2026-02-31", 1)


class TestToday:
    """Tests for today()."""

    def test_local_today_is_a_date(self):
        result = today()
        assert type(result) is date

    def test_timezone_today_within_a_day_of_local(self):
        result = today("Asia/Karachi")
        assert abs((result - date.today()).days) <= 1

    def test_unknown_timezone_raises(self):
        with pytest.raises(ValueError, match="Unknown timezone"):
            today("Not/A/Timezone")


class TestDaysUntil:
    """Tests for days_until() and days_since()."""

    def test_future_is_positive(self):
        assert days_until("2026-03-29", date(2026, 3, 20)) == 9

    def test_same_day_is_zero(self):
        assert days_until("2026-03-29", date(2026, 3, 29)) == 0

    def test_past_is_negative(self):
        assert days_until("2026-03-29", date(2026, 4, 1)) == -3

    def test_defaults_to_today(self):
        tomorrow = date.today() + timedelta(days=1)
        assert days_until(tomorrow) in (0, 1, 2)

    def test_days_since_is_inverse(self):
        assert days_since("2026-03-29", date(2026, 4, 1)) == 3


class TestFormatDate:
    """Tests for format_date()."""

    def test_formats_day_month_year(self):
        assert format_date("2026-02-27") == "27-Feb-2026"

    def test_formats_date_object(self):
        assert format_date(date(2027, 1, 1)) == "01-Jan-2027"

    def test_accepts_iso_timestamp(self):
        assert format_date("2026-02-27T10:30:00Z") == "27-Feb-2026"

    def test_missing_renders_dash(self):
        assert format_date(None) == "-"
        assert format_date("") == "-"
