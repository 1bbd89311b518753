"""
CV Date Parser.

Best-effort parsing of free-text CV dates ("Jan 2020", "2020", "01/2020",
"Spring 2019", garbage). parse() never raises: a single bad date must not
abort a whole timeline, so anything unparseable resolves to "now".

Strategies, first success wins:
1. Reject non-string or blank input
2. Direct parse (dateutil), accepted only inside the valid range
3. "<Month> <Year>" with full or abbreviated month names
4. Any 4-digit year 19xx/20xx found anywhere in the string
5. Current instant
"""
import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional

from dateutil import parser as dateutil_parser

LOGGER = logging.getLogger(__name__)

MIN_YEAR = 1900
MAX_YEARS_AHEAD = 10

MONTHS = {
    "january": 1, "jan": 1,
    "february": 2, "feb": 2,
    "march": 3, "mar": 3,
    "april": 4, "apr": 4,
    "may": 5,
    "june": 6, "jun": 6,
    "july": 7, "jul": 7,
    "august": 8, "aug": 8,
    "september": 9, "sep": 9, "sept": 9,
    "october": 10, "oct": 10,
    "november": 11, "nov": 11,
    "december": 12, "dec": 12,
}

RECENT_KEYWORDS = ("present", "current", "now", "ongoing")

# Years of study by degree keyword, used when a start date is missing
DEGREE_DURATIONS = {
    "bachelor": 4,
    "master": 2,
    "phd": 5,
    "associate": 2,
    "diploma": 1,
    "certificate": 1,
}
DEFAULT_DEGREE_YEARS = 4

_MONTH_YEAR_RE = re.compile(r"^\s*(\w+)\s+(\d{4})\s*$", re.IGNORECASE)
_YEAR_RE = re.compile(r"\b(19|20)\d{2}\b")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_iso(value: datetime) -> str:
    """
    Format a datetime as an ISO-8601 UTC string with milliseconds.

    Naive datetimes are treated as UTC.
    """
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat(timespec="milliseconds") + "Z"


class DateParser:
    """Multi-strategy parser for CV date strings."""

    def __init__(self, min_year: int = MIN_YEAR, max_years_ahead: int = MAX_YEARS_AHEAD):
        self.min_year = min_year
        self.max_years_ahead = max_years_ahead

    def _max_year(self) -> int:
        return _utcnow().year + self.max_years_ahead

    def is_valid_range(self, value: datetime) -> bool:
        """True if value lies within [Jan 1 min_year, Dec 31 of current year + max_years_ahead]."""
        lower = datetime(self.min_year, 1, 1)
        upper = datetime(self._max_year(), 12, 31, 23, 59, 59, 999999)
        return lower <= value <= upper

    def _year_in_range(self, year: int) -> bool:
        return self.min_year <= year <= self._max_year()

    def _parse_direct(self, text: str) -> Optional[datetime]:
        default = datetime(_utcnow().year, 1, 1)
        try:
            parsed = dateutil_parser.parse(text, default=default)
        except (dateutil_parser.ParserError, ValueError, OverflowError, TypeError):
            return None
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed if self.is_valid_range(parsed) else None

    def _parse_month_year(self, text: str) -> Optional[datetime]:
        match = _MONTH_YEAR_RE.match(text)
        if not match:
            return None
        month = MONTHS.get(match.group(1).lower())
        year = int(match.group(2))
        if month is not None and self._year_in_range(year):
            return datetime(year, month, 1)
        return None

    def _parse_embedded_year(self, text: str) -> Optional[datetime]:
        match = _YEAR_RE.search(text)
        if not match:
            return None
        year = int(match.group(0))
        if self._year_in_range(year):
            return datetime(year, 1, 1)
        return None

    def parse(self, value: Any) -> datetime:
        """
        Parse a CV date string into a naive UTC datetime.

        Args:
            value: Untrusted date value (usually a string).

        Returns:
            A valid datetime inside the accepted range; the current instant
            when nothing else works.
        """
        if not isinstance(value, str) or not value.strip():
            return _utcnow()

        text = value.strip()
        for strategy in (self._parse_direct, self._parse_month_year, self._parse_embedded_year):
            try:
                parsed = strategy(text)
            except Exception as e:
                LOGGER.debug("Date strategy %s failed for %r: %s", strategy.__name__, text, e)
                continue
            if parsed is not None:
                return parsed

        LOGGER.debug("Unparseable date %r, defaulting to now", text)
        return _utcnow()

    def parse_iso(self, value: Any) -> str:
        """parse() followed by to_iso()."""
        return to_iso(self.parse(value))

    def is_parseable(self, value: Any) -> bool:
        """True if value is a string that a direct parse accepts (no fallback to now)."""
        if not isinstance(value, str) or not value.strip():
            return False
        try:
            dateutil_parser.parse(value.strip())
        except (dateutil_parser.ParserError, ValueError, OverflowError, TypeError):
            return False
        return True

    @staticmethod
    def is_recent(value: Any) -> bool:
        """True if value mentions present/current/now/ongoing."""
        if not isinstance(value, str) or not value:
            return False
        lowered = value.lower()
        return any(keyword in lowered for keyword in RECENT_KEYWORDS)

    def estimate_education_start(self, end_value: Any, degree: Optional[str] = None) -> datetime:
        """
        Estimate when a degree started from its end date and type.

        Args:
            end_value: Graduation date string.
            degree: Degree name (e.g. "Bachelor of Science").

        Returns:
            First day of the graduation month, the degree's typical duration
            earlier. Current instant if there is no end value.
        """
        if not isinstance(end_value, str) or not end_value.strip():
            return _utcnow()

        end = self.parse(end_value)
        years = DEFAULT_DEGREE_YEARS
        if isinstance(degree, str):
            degree_lower = degree.lower()
            for keyword, duration in DEGREE_DURATIONS.items():
                if keyword in degree_lower:
                    years = duration
                    break

        start_year = end.year - years
        if start_year < self.min_year:
            start_year = self.min_year
        return datetime(start_year, end.month, 1)
