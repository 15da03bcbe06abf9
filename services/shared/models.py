"""
Shared Pydantic models for REST API serialization.

Events are serialized with their camelCase aliases (``eventType``,
``endDate``) so every consumer sees the same JSON shape.
"""
from __future__ import annotations

from pydantic import BaseModel, Field

from event_extraction.course_info import CourseInfo
from event_extraction.models import ExtractedEvent


# Request/Response Models for API endpoints
class ExtractSyllabusRequest(BaseModel):
    """Request model for extracting events from syllabus text."""
    text: str
    document_label: str = "syllabus.txt"


class ExtractSyllabusFileRequest(BaseModel):
    """Request model for extracting events from a PDF or text file (local path or URL)."""
    path_or_url: str


class ExtractSyllabusResponse(BaseModel):
    """
    Events found in one document, plus the document text for display.
    ``source`` names the extractor whose output was used.
    """
    events: list[ExtractedEvent] = Field(default_factory=list)
    text: str = ""
    source: str = "rule_based"
    course_info: CourseInfo = Field(default_factory=CourseInfo)
