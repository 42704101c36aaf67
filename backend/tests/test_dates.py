"""
Tests for header date parsing.
"""

import calendar

import pytest

from diveimport.services.dates import parse_date


def epoch(*fields):
    return calendar.timegm(fields + (0, 0, 0))


class TestParseDate:

    def test_four_digit_year(self):
        assert parse_date("15Jan2023 10:20:30") == epoch(2023, 1, 15, 10, 20, 30)

    @pytest.mark.parametrize("text,year", [
        ("01Mar05 00:00:00", 2005),
        ("01Mar69 00:00:00", 2069),
        ("01Mar70 00:00:00", 1970),
        ("01Mar85 00:00:00", 1985),
        ("01Mar1999 00:00:00", 1999),
    ])
    def test_year_window(self, text, year):
        assert parse_date(text) == epoch(year, 3, 1, 0, 0, 0)

    def test_leading_whitespace(self):
        assert parse_date(" 5Dec2020 1:02:03") == epoch(2020, 12, 5, 1, 2, 3)

    @pytest.mark.parametrize("text", [
        "0Jan2023 10:20:30",
        "32Jan2023 10:20:30",
        "Jan2023 10:20:30",
    ])
    def test_day_out_of_range(self, text):
        assert parse_date(text) is None

    def test_month_is_case_sensitive(self):
        assert parse_date("15jan2023 10:20:30") is None
        assert parse_date("15JAN2023 10:20:30") is None

    def test_unknown_month(self):
        assert parse_date("15Foo2023 10:20:30") is None

    def test_missing_year(self):
        assert parse_date("15Jan") is None

    @pytest.mark.parametrize("text", [
        "15Jan2023",
        "15Jan2023 10:20",
        "15Jan2023 10-20-30",
    ])
    def test_incomplete_clock(self, text):
        assert parse_date(text) is None
