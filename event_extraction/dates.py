"""
Date normalization for syllabus text.

Turns date fragments such as "3/5", "March 5th", "Week 6", "due 11/15" or an
ISO string into a canonical ``YYYY-MM-DD`` (or ``YYYY-MM-DDTHH:MM:SS`` when a
time is known). Year-less dates are anchored to the configured academic year,
never to the wall clock.

Every value is built from year/month/day fields and formatted field by field.
Timezone-aware inputs keep their wall-clock fields and drop the offset, so a
date never shifts by a day through a UTC conversion.
"""
from __future__ import annotations

import logging
import re
import typing as t
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from dateutil import parser as dateutil_parser

from event_extraction.settings import ExtractionSettings


logger = logging.getLogger(__name__)

DateValue = t.Union[date, datetime]

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}
WEEKDAYS = {"mon": 0, "tue": 1, "wed": 2, "thu": 3, "fri": 4, "sat": 5, "sun": 6}

MAX_WEEK_NUMBER = 30
MAX_RANGE_DAYS = 7
MIDTERM_WEEK = 8
FINALS_WEEK = 15


def _month(name: str) -> str:
    return (
        rf"(?P<{name}>jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?"
        rf"|aug(?:ust)?|sept?(?:ember)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)\.?"
    )


_ORDINAL = r"(?:st|nd|rd|th)?"
_DASH = r"\s*(?:-|–|—|to|through|thru)\s*"
# "March 5 - 11:59 PM" is a due time, not a range ending on the 11th
_NOT_A_TIME = r"(?!\s*(?::\d|[ap]\.?m\b))"

# Ordered by priority: the first pattern with a valid match wins.
DATE_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("iso", re.compile(r"\b(?P<year>\d{4})-(?P<month>\d{1,2})-(?P<day>\d{1,2})\b")),
    ("numeric", re.compile(r"\b(?P<month>\d{1,2})/(?P<day>\d{1,2})(?:/(?P<year>\d{2,4}))?\b")),
    ("numeric_dash", re.compile(r"\b(?P<month>\d{1,2})-(?P<day>\d{1,2})-(?P<year>\d{4}|\d{2})\b")),
    ("month_day", re.compile(
        rf"\b{_month('month')}\s+(?P<day>\d{{1,2}}){_ORDINAL}\b(?:,?\s+(?P<year>\d{{4}})\b)?",
        re.IGNORECASE,
    )),
    ("day_month", re.compile(
        rf"\b(?P<day>\d{{1,2}}){_ORDINAL}\s+(?:of\s+)?{_month('month')}(?![a-z])(?:,?\s+(?P<year>\d{{4}})\b)?",
        re.IGNORECASE,
    )),
    ("weekday_week", re.compile(
        r"\b(?P<weekday>mon|tue|wed|thu|fri|sat|sun)[a-z]*\.?,?\s+(?:of\s+)?week\s*(?P<week>\d{1,2})\b",
        re.IGNORECASE,
    )),
    ("week", re.compile(r"\bweek\s*#?\s*(?P<week>\d{1,2})\b", re.IGNORECASE)),
)

RANGE_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("month_range", re.compile(
        rf"\b{_month('month')}\s+(?P<day>\d{{1,2}}){_ORDINAL}{_DASH}"
        rf"(?:{_month('end_month')}\s+)?(?P<end_day>\d{{1,2}}){_ORDINAL}\b{_NOT_A_TIME}",
        re.IGNORECASE,
    )),
    ("numeric_range", re.compile(
        rf"\b(?P<month>\d{{1,2}})/(?P<day>\d{{1,2}}){_DASH}"
        rf"(?P<end_month>\d{{1,2}})/(?P<end_day>\d{{1,2}})\b{_NOT_A_TIME}",
        re.IGNORECASE,
    )),
)

DUE_PREFIX_RE = re.compile(r"^\s*(?:due(?:\s+(?:on|by|date:?))?|by|on|before|deadline:?)\s+", re.IGNORECASE)

TIME_SPAN_RE = re.compile(
    r"\b(?P<h1>\d{1,2})(?::(?P<m1>\d{2}))?\s*(?P<ap1>[ap]\.?m\.?)?"
    r"\s*(?:-|–|—|to)\s*"
    r"(?P<h2>\d{1,2})(?::(?P<m2>\d{2}))?\s*(?P<ap2>[ap]\.?m\.?)(?![a-z])",
    re.IGNORECASE,
)
TIME_RE = re.compile(
    r"\b(?P<h>\d{1,2})(?::(?P<m>\d{2}))?\s*(?P<ap>[ap]\.?m\.?)(?![a-z])"
    r"|\b(?P<h24>[01]?\d|2[0-3]):(?P<m24>[0-5]\d)\b(?!\s*/)",
    re.IGNORECASE,
)
NOON_RE = re.compile(r"\b(noon|midnight)\b", re.IGNORECASE)


@dataclass(frozen=True)
class DateMatch:
    """A date found inside a longer line of text."""
    value: date
    start: int
    end: int
    text: str
    kind: str


@dataclass(frozen=True)
class DateRange:
    """A short, increasing span of days such as "March 5-7"."""
    start_date: date
    end_date: date
    text: str

    def days(self) -> list[date]:
        count = (self.end_date - self.start_date).days
        return [self.start_date + timedelta(days=offset) for offset in range(count + 1)]


def format_date_value(value: DateValue) -> str:
    """Format a date or datetime from its local calendar fields."""
    if isinstance(value, datetime):
        return (
            f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
            f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
        )
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def _expand_year(raw: t.Optional[str], default: int) -> int:
    if not raw:
        return default
    year = int(raw)
    if year < 100:
        year += 2000
    return year


def _safe_date(year: int, month: int, day: int) -> t.Optional[date]:
    if not 1900 <= year <= 2100:
        return None
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _clock(hour: int, minute: int, meridiem: t.Optional[str]) -> t.Optional[time]:
    if meridiem:
        if not 1 <= hour <= 12:
            return None
        is_pm = meridiem.lower().startswith("p")
        if is_pm and hour < 12:
            hour += 12
        elif not is_pm and hour == 12:
            hour = 0
    if hour > 23 or minute > 59:
        return None
    return time(hour, minute)


def find_time_span(text: str) -> t.Optional[tuple[time, t.Optional[time]]]:
    """
    Find a clock time (or a time range) in ``text``.

    "2:00-4:00 PM" gives (14:00, 16:00); "11:59 PM" gives (23:59, None).
    A start time without am/pm borrows the end time's meridiem.
    """
    span = TIME_SPAN_RE.search(text)
    if span:
        end = _clock(int(span["h2"]), int(span["m2"] or 0), span["ap2"])
        start = _clock(int(span["h1"]), int(span["m1"] or 0), span["ap1"] or span["ap2"])
        if start and end:
            if start > end and not span["ap1"]:
                # "11-1 pm": the start is in the morning
                start = _clock(int(span["h1"]), int(span["m1"] or 0), "am")
            if start and start <= end:
                return start, end

    match = TIME_RE.search(text)
    if match:
        if match["h"] is not None:
            start = _clock(int(match["h"]), int(match["m"] or 0), match["ap"])
        else:
            start = _clock(int(match["h24"]), int(match["m24"]), None)
        if start:
            return start, None

    noon = NOON_RE.search(text)
    if noon:
        return (time(12, 0) if noon.group(1).lower() == "noon" else time(23, 59)), None
    return None


class DateNormalizer:
    """Resolve textual date fragments against an academic calendar."""

    def __init__(self, settings: t.Optional[ExtractionSettings] = None) -> None:
        self.settings = settings or ExtractionSettings()

    # -- public API --------------------------------------------------------

    def normalize(self, fragment: t.Any) -> str:
        """
        Return a canonical date string for ``fragment``.

        Never raises: when nothing can be recognized the deterministic
        fallback date (reference date + offset) is returned.
        """
        value = self.parse(fragment) if isinstance(fragment, str) else None
        if value is None:
            logger.debug("Unrecognized date %r, using fallback %s", fragment, self.settings.fallback_date)
            return format_date_value(self.settings.fallback_date)
        return format_date_value(value)

    def parse(self, fragment: str) -> t.Optional[DateValue]:
        """Parse ``fragment`` to a date/datetime, or None if nothing matches."""
        text = re.sub(r"\s+", " ", fragment or "").strip()
        if not text:
            return None

        iso = self._parse_iso(text)
        if iso is not None:
            return iso

        stripped = DUE_PREFIX_RE.sub("", text, count=1)
        if stripped != text and stripped:
            return self.parse(stripped)

        found = self.find_date(text)
        day = found.value if found else self._relative(text)
        if day is None:
            day = self._academic_term(text)
        if day is not None:
            return self._with_time(day, text)

        return self._parse_generic(text)

    def find_date(self, line: str) -> t.Optional[DateMatch]:
        """Return the first date in ``line`` according to pattern priority."""
        for kind, pattern in DATE_PATTERNS:
            for match in pattern.finditer(line):
                value = self._date_from_match(kind, match)
                if value is not None:
                    return DateMatch(value, match.start(), match.end(), match.group(0), kind)
        return None

    def find_range(self, line: str) -> t.Optional[DateRange]:
        """Return a short increasing date range in ``line`` (at most a week)."""
        for kind, pattern in RANGE_PATTERNS:
            for match in pattern.finditer(line):
                year = self.settings.academic_year
                start_month = self._month_number(match["month"])
                end_month = self._month_number(match["end_month"]) if match["end_month"] else start_month
                if start_month is None or end_month is None:
                    continue
                start = _safe_date(year, start_month, int(match["day"]))
                end = _safe_date(year, end_month, int(match["end_day"]))
                if start is None or end is None:
                    continue
                span = (end - start).days
                if 0 < span < MAX_RANGE_DAYS:
                    return DateRange(start, end, match.group(0))
        return None

    def week_start(self, week: int) -> t.Optional[date]:
        if not 1 <= week <= MAX_WEEK_NUMBER:
            return None
        return self.settings.semester_start + timedelta(days=(week - 1) * 7)

    # -- helpers -------------------------------------------------------------

    @staticmethod
    def _month_number(raw: t.Optional[str]) -> t.Optional[int]:
        if raw is None:
            return None
        if raw.isdigit():
            number = int(raw)
            return number if 1 <= number <= 12 else None
        return MONTHS.get(raw[:3].lower())

    def _date_from_match(self, kind: str, match: re.Match[str]) -> t.Optional[date]:
        if kind in ("week", "weekday_week"):
            start = self.week_start(int(match["week"]))
            if start is None:
                return None
            if kind == "weekday_week":
                start += timedelta(days=WEEKDAYS[match["weekday"][:3].lower()])
            return start

        month = self._month_number(match["month"])
        if month is None:
            return None
        year = _expand_year(match["year"], self.settings.academic_year)
        return _safe_date(year, month, int(match["day"]))

    @staticmethod
    def _parse_iso(text: str) -> t.Optional[DateValue]:
        if not re.match(r"^\d{4}-\d{2}-\d{2}", text):
            return None
        try:
            if len(text) == 10:
                return date.fromisoformat(text)
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
        # keep the wall-clock fields exactly as written
        parsed = parsed.replace(tzinfo=None, microsecond=0)
        if parsed.time() == time(0, 0):
            return parsed.date()
        return parsed

    def _relative(self, text: str) -> t.Optional[date]:
        lowered = text.lower()
        anchor = self.settings.anchor_date
        if re.search(r"\btoday\b", lowered):
            return anchor
        if re.search(r"\btomorrow\b", lowered):
            return anchor + timedelta(days=1)
        if re.search(r"\bnext week\b", lowered):
            return anchor + timedelta(days=7)
        if re.search(r"\bnext month\b", lowered):
            month = anchor.month % 12 + 1
            year = anchor.year + (1 if anchor.month == 12 else 0)
            return _safe_date(year, month, min(anchor.day, 28))
        match = re.search(r"\bin (\d{1,3}) (day|week)s?\b", lowered)
        if match:
            amount = int(match.group(1)) * (7 if match.group(2) == "week" else 1)
            return anchor + timedelta(days=amount)
        return None

    def _academic_term(self, text: str) -> t.Optional[date]:
        lowered = text.lower()
        if "midterm" in lowered or "mid-semester" in lowered or "mid-term" in lowered:
            return self.week_start(MIDTERM_WEEK)
        if re.search(r"\bfinals?\b", lowered):
            return self.week_start(FINALS_WEEK)
        if "first day" in lowered or "start of semester" in lowered:
            return self.settings.semester_start
        return None

    @staticmethod
    def _with_time(day: date, text: str) -> DateValue:
        found = find_time_span(text)
        if not found:
            return day
        return datetime.combine(day, found[0])

    def _parse_generic(self, text: str) -> t.Optional[DateValue]:
        # bare small numbers would otherwise become "the Nth of January"
        if not re.search(r"[a-z]", text, re.IGNORECASE) and not re.search(r"\d[/.-]\d", text):
            return None
        default = datetime(self.settings.academic_year, 1, 1)
        try:
            parsed = dateutil_parser.parse(text, default=default)
        except (ValueError, OverflowError) as err:
            logger.debug("dateutil could not parse %r: %s", text, err)
            return None
        if not 1900 <= parsed.year <= 2100:
            return None
        parsed = parsed.replace(tzinfo=None, microsecond=0)
        if parsed.time() == time(0, 0):
            return parsed.date()
        return parsed
