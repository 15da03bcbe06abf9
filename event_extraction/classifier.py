"""
Keyword heuristics for event titles and types.

Each keyword family maps to one event type and a base confidence. Families are
checked in order and the first hit wins, so "Project due Friday" is homework
(deadline language) before it is a project.
"""
from __future__ import annotations

import re
import typing as t
from dataclasses import dataclass

from event_extraction.models import EVENT_TYPES, EventType


MAX_CLEAN_TITLE_LENGTH = 80
TITLE_SEPARATORS = (" - ", ": ", " – ", " | ", " — ")
DEFAULT_CONFIDENCE = 0.55

DUE_LANGUAGE_RE = re.compile(r"\b(?:due|deadline|submit|submission|turn(?:ed)?[\s-]?in)\b", re.IGNORECASE)


@dataclass(frozen=True)
class KeywordFamily:
    name: str
    event_type: EventType
    pattern: re.Pattern[str]
    confidence: float
    generic_title: str


@dataclass(frozen=True)
class Classification:
    event_type: EventType
    confidence: float
    keyword: t.Optional[str] = None
    family: t.Optional[str] = None


KEYWORD_FAMILIES: tuple[KeywordFamily, ...] = (
    KeywordFamily(
        "exam", "exam",
        re.compile(
            r"\b(?:exams?|examinations?|tests?|mid-?terms?|assessments?"
            r"|finals?(?!\s+(?:project|paper|presentation|report|portfolio|essay)))\b",
            re.IGNORECASE,
        ),
        0.9, "Exam",
    ),
    KeywordFamily("quiz", "quiz", re.compile(r"\bquiz(?:zes)?\b", re.IGNORECASE), 0.85, "Quiz"),
    KeywordFamily(
        "homework", "homework",
        re.compile(
            r"\b(?:assignments?|homework|hw\s*#?\d*|problem\s+sets?|psets?|due|submit|submission"
            r"|turn(?:ed)?[\s-]?in|deadline)\b",
            re.IGNORECASE,
        ),
        0.85, "Assignment Due",
    ),
    KeywordFamily(
        "project", "project",
        re.compile(r"\b(?:projects?|presentations?|papers?|proposals?|reports?|essays?)\b", re.IGNORECASE),
        0.8, "Project Due",
    ),
    KeywordFamily(
        "cancelled", "other",
        re.compile(
            r"\bno\s+(?:class(?:es)?|lecture|school)\b|\bclass(?:es)?\s+(?:is\s+|are\s+)?cancell?ed\b"
            r"|\bholiday\b|\bbreak\b|\brecess\b",
            re.IGNORECASE,
        ),
        0.6, "No Class",
    ),
    KeywordFamily(
        "office_hours", "officeHours",
        re.compile(r"\boffice\s+hours?\b|\bconsultations?\b|\bhelp\s+sessions?\b", re.IGNORECASE),
        0.75, "Office Hours",
    ),
    KeywordFamily(
        "lecture", "lecture",
        re.compile(r"\b(?:lectures?|class(?:es)?|sessions?|seminars?|discussions?|labs?)\b", re.IGNORECASE),
        0.7, "Lecture",
    ),
)

_TYPE_ALIASES: dict[str, EventType] = {
    "lecture": "lecture",
    "class": "lecture",
    "homework": "homework",
    "hw": "homework",
    "assignment": "homework",
    "exam": "exam",
    "test": "exam",
    "quiz": "quiz",
    "project": "project",
    "officehours": "officeHours",
    "other": "other",
}

_MONTH = (
    r"(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?"
    r"|sept?(?:ember)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)\.?"
)
_DATE = (
    rf"(?:\d{{1,2}}/\d{{1,2}}(?:/\d{{2,4}})?|\d{{4}}-\d{{1,2}}-\d{{1,2}}"
    rf"|{_MONTH}\s+\d{{1,2}}(?:st|nd|rd|th)?(?:,?\s+\d{{4}})?)"
    rf"(?:\s*[-–—]\s*(?:{_MONTH}\s+)?\d{{1,2}}(?:/\d{{1,2}})?)?"
)
_WEEKDAY = r"(?:(?:mon|tue|wed|thu|fri|sat|sun)[a-z]*\.?,?\s+)"

LIST_MARKER_RE = re.compile(r"^\s*(?:\(?\d{1,3}[.)]\s+|[•\-\*·▪◦–—]+\s*)")
WEEK_PREFIX_RE = re.compile(r"^week\s*\d+\s*[:.\-–—]?\s*", re.IGNORECASE)
LEADING_DATE_RE = re.compile(rf"^{_WEEKDAY}?\(?\s*{_DATE}\s*\)?\s*[:\-–—,|]?\s*", re.IGNORECASE)
TRAILING_DATE_RE = re.compile(
    rf"[\s:,\-–—]*(?:\b(?:due|on|by)\s+)?{_WEEKDAY}?\(?{_DATE}\)?[\s.]*$", re.IGNORECASE
)


def classify(text: str) -> Classification:
    """Return the first keyword family that matches ``text``."""
    for family in KEYWORD_FAMILIES:
        match = family.pattern.search(text or "")
        if match:
            return Classification(family.event_type, family.confidence, match.group(0), family.name)
    return Classification("other", DEFAULT_CONFIDENCE)


def has_due_language(text: str) -> bool:
    return bool(DUE_LANGUAGE_RE.search(text or ""))


def normalize_event_type(value: t.Any, context: str = "") -> EventType:
    """
    Map a free-form type label onto the closed set of event types.

    Exact names and common aliases are accepted first, then the label itself
    is run through the keyword families, then the surrounding ``context``
    (usually title and description). Anything left over is "other".
    """
    if isinstance(value, str) and value.strip():
        if value in EVENT_TYPES:
            return t.cast(EventType, value)
        key = re.sub(r"[\s_\-]", "", value).lower()
        if key in _TYPE_ALIASES:
            return _TYPE_ALIASES[key]
        inferred = classify(value)
        if inferred.family is not None:
            return inferred.event_type
    if context:
        return classify(context).event_type
    return "other"


def generic_title(classification: Classification, course_code: t.Optional[str] = None) -> str:
    """Title used when nothing readable is left of the source line."""
    keyword = (classification.keyword or "").lower()
    if classification.family == "exam":
        if "mid" in keyword:
            return "Midterm Exam"
        if "final" in keyword:
            return "Final Exam"
    for family in KEYWORD_FAMILIES:
        if family.name == classification.family:
            return family.generic_title
    return f"{course_code} Event" if course_code else "Academic Event"


def clean_title(
    line: str,
    classification: t.Optional[Classification] = None,
    course_code: t.Optional[str] = None,
) -> str:
    """
    Derive a display title from a syllabus line.

    Strips list markers, "Week N:" prefixes and leading dates, cuts at the
    first separator found between characters 5 and 60, and capitalizes.
    """
    title = re.sub(r"\s+", " ", line or "").strip()
    title = LIST_MARKER_RE.sub("", title)
    title = WEEK_PREFIX_RE.sub("", title)
    title = LEADING_DATE_RE.sub("", title)

    for separator in TITLE_SEPARATORS:
        index = title.find(separator)
        if 5 < index < 60:
            title = title[:index]
            break

    title = TRAILING_DATE_RE.sub("", title)
    title = title.strip(" \t:;,-–—|()")[:MAX_CLEAN_TITLE_LENGTH].strip()

    if len(title) < 3 or not re.search(r"[A-Za-z]", title):
        return generic_title(classification or classify(line), course_code)
    return title[0].upper() + title[1:]
