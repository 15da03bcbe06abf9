"""Syllabus-to-events extraction: date normalization, classification, generative and rule-based extractors."""
from event_extraction.errors import ExtractionError, ExtractorNotConfiguredError, GenerativeServiceError
from event_extraction.models import EVENT_TYPES, EventType, ExtractedEvent, ExtractionResult
from event_extraction.orchestrator import ExtractionOrchestrator, deduplicate_events, extract, sort_events
from event_extraction.settings import ExtractionSettings

__all__ = [
    "EVENT_TYPES",
    "EventType",
    "ExtractedEvent",
    "ExtractionError",
    "ExtractionOrchestrator",
    "ExtractionResult",
    "ExtractionSettings",
    "ExtractorNotConfiguredError",
    "GenerativeServiceError",
    "deduplicate_events",
    "extract",
    "sort_events",
]
