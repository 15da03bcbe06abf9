"""
Data models for extracted syllabus events.

ExtractedEvent is the single type that crosses layer boundaries: every
extractor builds it, validation happens once in its validators, and nothing
downstream re-checks the fields.
"""
from __future__ import annotations

import math
import re
import typing as t
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


EventType = t.Literal["lecture", "homework", "exam", "quiz", "project", "officeHours", "other"]
EVENT_TYPES: tuple[str, ...] = t.get_args(EventType)

MAX_TITLE_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500
MAX_LOCATION_LENGTH = 200
DEFAULT_CONFIDENCE = 0.5


def clamp_confidence(value: t.Any, default: float = DEFAULT_CONFIDENCE) -> float:
    """Coerce ``value`` to a float in [0, 1]; unusable input gives ``default``."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number):
        return default
    return min(max(number, 0.0), 1.0)


def parse_event_datetime(value: str) -> datetime:
    """Parse an event date (``YYYY-MM-DD`` or ISO datetime)."""
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class ExtractedEvent(BaseModel):
    """
    One dated academic event found in a syllabus.

    Attribute names are snake_case; the serialized form uses the camelCase
    aliases (``eventType``, ``endDate``) that the review UI and storage layer
    expect.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: t.Optional[str] = None
    title: str
    date: str                                   # "YYYY-MM-DD" or ISO datetime
    end_date: t.Optional[str] = Field(default=None, alias="endDate")
    description: str = ""
    location: t.Optional[str] = None
    event_type: EventType = Field(default="other", alias="eventType")
    confidence: float = DEFAULT_CONFIDENCE
    approved: bool = False

    @field_validator("title", mode="before")
    @classmethod
    def _clean_title(cls, value: t.Any) -> str:
        title = re.sub(r"\s+", " ", str(value or "")).strip()[:MAX_TITLE_LENGTH].strip()
        if not title:
            raise ValueError("title must not be empty")
        return title

    @field_validator("date", "end_date")
    @classmethod
    def _check_date(cls, value: t.Optional[str]) -> t.Optional[str]:
        if value is None:
            return value
        parse_event_datetime(value)
        return value

    @field_validator("description", mode="before")
    @classmethod
    def _truncate_description(cls, value: t.Any) -> str:
        return str(value or "").strip()[:MAX_DESCRIPTION_LENGTH]

    @field_validator("location", mode="before")
    @classmethod
    def _truncate_location(cls, value: t.Any) -> t.Optional[str]:
        if value is None:
            return None
        location = str(value).strip()[:MAX_LOCATION_LENGTH]
        return location or None

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: t.Any) -> float:
        return clamp_confidence(value)

    @property
    def starts_at(self) -> datetime:
        return parse_event_datetime(self.date)

    def dedup_key(self) -> tuple[str, str, str]:
        """Identity used for duplicate removal: (title, date, eventType)."""
        return (self.title.casefold(), self.date, self.event_type)

    def to_dict(self) -> dict[str, t.Any]:
        return self.model_dump(by_alias=True)


class ExtractionResult(BaseModel):
    """Outcome of one extraction run."""
    events: list[ExtractedEvent] = Field(default_factory=list)
    text: str = ""
    source: str = "rule_based"

    def to_dict(self) -> dict[str, t.Any]:
        return self.model_dump(by_alias=True)
