"""
Tests for CV date parsing.

Tests cover:
- Direct, month-year and embedded-year strategies
- Fallback to "now" for unparseable or out-of-range input
- Recent-keyword detection and education start estimation

Run: pytest tests/test_date_parser.py -v
"""
from datetime import datetime, timedelta, timezone

import pytest

from cv_timeline.generation.date_parser import DateParser, to_iso


def _now():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _is_now(value: datetime) -> bool:
    return abs(value - _now()) < timedelta(seconds=5)


class TestParse:
    """Test DateParser.parse strategies."""

    @pytest.mark.parametrize("text,expected", [
        ("Jan 2020", datetime(2020, 1, 1)),
        ("January 2020", datetime(2020, 1, 1)),
        ("2020", datetime(2020, 1, 1)),
        ("2019-06-15", datetime(2019, 6, 15)),
        ("Sept 2019", datetime(2019, 9, 1)),
        ("  Mar 2018  ", datetime(2018, 3, 1)),
    ])
    def test_common_formats(self, date_parser, text, expected):
        """Parse common CV date formats."""
        assert date_parser.parse(text) == expected

    def test_month_slash_year(self, date_parser):
        """Parse "MM/YYYY" dates."""
        parsed = date_parser.parse("01/2020")
        assert parsed.year == 2020
        assert parsed.month == 1

    def test_embedded_year(self, date_parser):
        """Free text with a year resolves to Jan 1 of that year."""
        assert date_parser.parse("Spring 2019") == datetime(2019, 1, 1)
        assert date_parser.parse("graduated around 2005 maybe") == datetime(2005, 1, 1)

    def test_timezone_converted_to_utc(self, date_parser):
        """Offset timestamps are converted to naive UTC."""
        assert date_parser.parse("2020-05-01T10:00:00+02:00") == datetime(2020, 5, 1, 8, 0)

    @pytest.mark.parametrize("value", [
        "garbage-text-no-year",
        "present",
        "",
        "   ",
        None,
        123,
        ["2020"],
    ])
    def test_unparseable_defaults_to_now(self, date_parser, value):
        """Unparseable or non-string input resolves to now."""
        assert _is_now(date_parser.parse(value))

    def test_out_of_range_years_default_to_now(self, date_parser):
        """Years outside the accepted range resolve to now."""
        assert _is_now(date_parser.parse("1850"))
        assert _is_now(date_parser.parse("2099"))

    def test_always_in_valid_range(self, date_parser):
        """Every string input yields a date inside [1900-01-01, now + 10y]."""
        samples = [
            "Jan 2020", "2020", "01/2020", "Spring 2019", "garbage", "1850", "2099",
            "0000-00-00", "31/31/31", "Q3 1999", "undefined", "null", "NaN", "12345678",
            "present", "Dec 1899", "1900", "2036-12-31",
        ]
        upper = datetime(_now().year + 10, 12, 31, 23, 59, 59)
        for text in samples:
            parsed = date_parser.parse(text)
            assert isinstance(parsed, datetime), text
            assert datetime(1900, 1, 1) <= parsed <= upper, text

    def test_parse_iso_format(self, date_parser):
        """Verify ISO output with milliseconds and Z suffix."""
        assert date_parser.parse_iso("Jan 2020") == "2020-01-01T00:00:00.000Z"


class TestHelpers:
    """Test recent detection, parseability and education estimates."""

    @pytest.mark.parametrize("value,expected", [
        ("Present", True),
        ("currently enrolled", True),
        ("ongoing", True),
        ("now", True),
        ("2020", False),
        ("", False),
        (None, False),
    ])
    def test_is_recent(self, value, expected):
        """Detect present/current/now/ongoing keywords."""
        assert DateParser.is_recent(value) is expected

    def test_is_parseable(self, date_parser):
        """Only directly parseable strings count as parseable."""
        assert date_parser.is_parseable("2020-01-01T00:00:00.000Z")
        assert date_parser.is_parseable("Jan 2020")
        assert not date_parser.is_parseable("not a date")
        assert not date_parser.is_parseable("")
        assert not date_parser.is_parseable(None)

    def test_is_valid_range(self, date_parser):
        """Verify the inclusive bounds of the accepted range."""
        assert date_parser.is_valid_range(datetime(1900, 1, 1))
        assert date_parser.is_valid_range(datetime(_now().year + 10, 12, 31))
        assert not date_parser.is_valid_range(datetime(1899, 12, 31))
        assert not date_parser.is_valid_range(datetime(_now().year + 11, 1, 1))

    def test_to_iso(self):
        """Naive and aware datetimes are formatted as UTC."""
        assert to_iso(datetime(2020, 1, 1)) == "2020-01-01T00:00:00.000Z"
        aware = datetime(2020, 1, 1, 2, 0, tzinfo=timezone(timedelta(hours=2)))
        assert to_iso(aware) == "2020-01-01T00:00:00.000Z"

    @pytest.mark.parametrize("end,degree,expected", [
        ("2015", "Master of Science", datetime(2013, 1, 1)),
        ("May 2020", "Bachelor of Arts", datetime(2016, 5, 1)),
        ("2020", "PhD", datetime(2015, 1, 1)),
        ("2020", "Associate Degree", datetime(2018, 1, 1)),
        ("2020", "Diploma", datetime(2019, 1, 1)),
        ("2020", None, datetime(2016, 1, 1)),
    ])
    def test_estimate_education_start(self, date_parser, end, degree, expected):
        """Start date is the degree duration before graduation."""
        assert date_parser.estimate_education_start(end, degree) == expected

    def test_estimate_without_end_is_now(self, date_parser):
        """No graduation date resolves to now."""
        assert _is_now(date_parser.estimate_education_start(None, "Bachelor"))
