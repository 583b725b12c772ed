"""Tests for expiry date calculation from shelf-life strings."""
from datetime import date

import pytest

from labelprint.services.expiry import add_months, calculate_expiry_date, parse_shelf_life

PRODUCED = date(2026, 3, 15)


@pytest.mark.parametrize("shelf_life, expected", [
    ("30 days", date(2026, 4, 14)),
    ("1 day", date(2026, 3, 16)),
    ("18 months", date(2027, 9, 15)),
    ("6 mon", date(2026, 9, 15)),
    ("2 years", date(2028, 3, 15)),
    ("1 yr", date(2027, 3, 15)),
    ("12", date(2027, 3, 15)),
    ("6 fortnights", date(2026, 9, 15)),
])
def test_english_units(shelf_life, expected):
    assert calculate_expiry_date(PRODUCED, shelf_life) == expected


@pytest.mark.parametrize("shelf_life, expected", [
    ("10 วัน", date(2026, 3, 25)),
    ("6 เดือน", date(2026, 9, 15)),
    ("1 ปี", date(2027, 3, 15)),
])
def test_thai_units(shelf_life, expected):
    assert calculate_expiry_date(PRODUCED, shelf_life) == expected


@pytest.mark.parametrize("shelf_life", ["", "   ", "0 months", "-3 months", "months", "abc days", None])
def test_unusable_shelf_life_gives_no_expiry(shelf_life):
    assert calculate_expiry_date(PRODUCED, shelf_life) is None


def test_missing_production_date_gives_no_expiry():
    assert calculate_expiry_date(None, "18 months") is None


def test_unit_match_is_case_insensitive():
    assert calculate_expiry_date(PRODUCED, "2 YEARS") == date(2028, 3, 15)


def test_overflow_gives_no_expiry():
    assert calculate_expiry_date(date(9999, 12, 1), "1 month") is None


class TestAddMonths:
    def test_clamps_to_end_of_short_month(self):
        assert add_months(date(2026, 1, 31), 1) == date(2026, 2, 28)

    def test_clamps_to_leap_day(self):
        assert add_months(date(2028, 1, 31), 1) == date(2028, 2, 29)

    def test_crosses_year_boundary(self):
        assert add_months(date(2026, 11, 30), 3) == date(2027, 2, 28)


class TestParseShelfLife:
    def test_amount_and_unit(self):
        assert parse_shelf_life("18 Months") == (18, "months")

    def test_bare_number_defaults_to_months(self):
        assert parse_shelf_life("24") == (24, "months")

    def test_leading_digits_are_enough(self):
        assert parse_shelf_life("3x weeks") == (3, "weeks")
