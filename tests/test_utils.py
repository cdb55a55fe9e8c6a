"""Tests for shared utility functions."""

from concierge.utils import (
    format_date_for_display,
    format_price,
    format_time_for_display,
    minutes_of_day,
    normalize_phone,
    time_from_minutes,
)


class TestNormalizePhone:
    def test_strips_spaces(self):
        assert normalize_phone("210 123 4567") == "2101234567"

    def test_strips_dashes(self):
        assert normalize_phone("694-123-4567") == "6941234567"

    def test_preserves_leading_plus(self):
        assert normalize_phone("+30 694 123 4567") == "+306941234567"

    def test_mixed_separators(self):
        assert normalize_phone("+30 (694) 123-4567") == "+306941234567"

    def test_strips_whitespace(self):
        assert normalize_phone("  2101234567  ") == "2101234567"


class TestFormatTime:
    def test_on_the_hour(self):
        assert format_time_for_display("20:00") == "8pm"

    def test_with_minutes(self):
        assert format_time_for_display("19:30") == "7:30pm"

    def test_midnight_and_noon(self):
        assert format_time_for_display("00:15") == "12:15am"
        assert format_time_for_display("12:00") == "12pm"

    def test_already_formatted(self):
        assert format_time_for_display("8pm") == "8pm"

    def test_garbage_passes_through(self):
        assert format_time_for_display("later") == "later"


class TestFormatDate:
    def test_iso_date(self):
        assert format_date_for_display("2026-10-17") == "Saturday, October 17, 2026"

    def test_garbage_passes_through(self):
        assert format_date_for_display("someday") == "someday"


class TestMinutes:
    def test_round_trip(self):
        assert minutes_of_day("19:30") == 1170
        assert time_from_minutes(1170) == "19:30"


class TestFormatPrice:
    def test_whole_amount(self):
        assert format_price(25.0, "€") == "€25"

    def test_fractional_amount(self):
        assert format_price(12.5, "€") == "€12.50"
