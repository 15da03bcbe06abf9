"""
Shared machinery for extractors backed by a text-generation service.

A GenerativeExtractor builds the extraction prompt, hands it to ``generate``
(implemented per provider), and turns whatever comes back into validated
ExtractedEvent objects via the JSON repair layer.
"""
from __future__ import annotations

import logging
import typing as t
import uuid

from pydantic import ValidationError

from event_extraction.classifier import classify, clean_title, generic_title, normalize_event_type
from event_extraction.dates import DateNormalizer, format_date_value
from event_extraction.errors import ExtractionError, ExtractorNotConfiguredError
from event_extraction.json_repair import join_split_value, recover_event_dicts
from event_extraction.models import EVENT_TYPES, ExtractedEvent, clamp_confidence
from event_extraction.rule_based import RuleBasedExtractor
from event_extraction.settings import ExtractionSettings
from prompts import render_prompt


logger = logging.getLogger(__name__)

EXTRACTION_PROMPT = "event_extraction_prompt"


def _field(item: t.Mapping[str, t.Any], *names: str) -> t.Any:
    """Look up the first present field, ignoring case and ``_``/``-``/space in keys."""
    folded = {str(key).lower().replace("_", "").replace("-", "").replace(" ", ""): value
              for key, value in item.items()}
    for name in names:
        value = folded.get(name.lower())
        if value not in (None, ""):
            return value
    return None


def _text(value: t.Any) -> t.Any:
    """Undo a colon split that still parsed, e.g. ``{"Room": "203"}`` for "Room 203"."""
    if isinstance(value, t.Mapping) and len(value) == 1:
        [(left, right)] = value.items()
        return join_split_value(str(left), str(right))
    return value


def coerce_event(
    item: t.Mapping[str, t.Any],
    normalizer: DateNormalizer,
    default_confidence: float,
    event_id: t.Optional[str] = None,
) -> t.Optional[ExtractedEvent]:
    """
    Validate one event object from a generative response.

    Objects without any date are dropped. Everything else is coerced: the date
    goes through the normalizer (falling back to the deterministic date when
    unreadable), the type is mapped onto the closed set, and a missing title is
    derived from the description or the type.
    """
    raw_date = _field(item, "date", "dueDate", "startDate")
    if raw_date is None:
        logger.debug("Dropping event without a date: %r", dict(item))
        return None

    description = str(_text(_field(item, "description", "details")) or "")
    raw_type = _field(item, "eventType", "type", "category")
    title = str(_text(_field(item, "title", "name")) or "").strip()
    event_type = normalize_event_type(raw_type, context=f"{title} {description}")
    if not title:
        title = clean_title(description) if description else generic_title(classify(str(raw_type or "")))

    end_date = None
    raw_end = _field(item, "endDate")
    if raw_end is not None:
        parsed_end = normalizer.parse(str(raw_end))
        end_date = format_date_value(parsed_end) if parsed_end is not None else None

    location = _text(_field(item, "location", "room"))
    try:
        return ExtractedEvent(
            id=event_id,
            title=title,
            date=normalizer.normalize(str(raw_date)),
            end_date=end_date,
            description=description,
            location=str(location) if location is not None else None,
            event_type=event_type,
            confidence=clamp_confidence(_field(item, "confidence"), default_confidence),
        )
    except ValidationError as err:
        logger.debug("Dropping invalid event %r: %s", dict(item), err)
        return None


class GenerativeExtractor:
    """
    Base class for prompt-driven extractors.

    With ``fallback=None`` failures surface as ExtractionError subclasses so a
    caller (normally the orchestrator) can move on to the next extractor. With
    a rule-based fallback attached, failures and empty answers are logged and
    the fallback's events are returned instead.
    """

    name = "generative"
    default_confidence = 0.5

    def __init__(
        self,
        settings: t.Optional[ExtractionSettings] = None,
        fallback: t.Optional[RuleBasedExtractor] = None,
        logger_instance: t.Optional[logging.Logger] = None,
    ) -> None:
        self.settings = settings or ExtractionSettings()
        self.fallback = fallback
        self.logger = logger_instance or logger
        self.normalizer = DateNormalizer(self.settings)

    @property
    def is_configured(self) -> bool:
        return True

    def generate(self, prompt: str) -> str:
        """Send ``prompt`` to the service and return its raw text answer."""
        raise NotImplementedError

    def build_prompt(self, text: str, document_label: str) -> str:
        return render_prompt(
            EXTRACTION_PROMPT,
            text=text,
            document_label=document_label or "syllabus",
            event_types=", ".join(EVENT_TYPES),
            event_types_pipe="|".join(EVENT_TYPES),
            academic_year=self.settings.academic_year,
            semester_start=self.settings.semester_start.isoformat(),
        )

    def parse_response(self, response: str) -> list[ExtractedEvent]:
        run_id = uuid.uuid4().hex[:8]
        events = []
        for item in recover_event_dicts(response):
            event = coerce_event(
                item, self.normalizer, self.default_confidence, event_id=f"{self.name}-{run_id}-{len(events)}"
            )
            if event is not None:
                events.append(event)
        return events

    def extract(self, text: str, document_label: str = "") -> list[ExtractedEvent]:
        try:
            if not self.is_configured:
                raise ExtractorNotConfiguredError(f"{self.name} extractor is not configured")
            self.logger.info("Extracting events with %s", self.name)
            events = self.parse_response(self.generate(self.build_prompt(text, document_label)))
        except ExtractionError as err:
            if self.fallback is None:
                raise
            self.logger.warning("%s extraction failed (%s), using rule-based extraction", self.name, err)
            return self.fallback.extract(text, document_label)

        if not events and self.fallback is not None:
            self.logger.info("%s returned no usable events, using rule-based extraction", self.name)
            return self.fallback.extract(text, document_label)
        self.logger.info("%s extracted %d events", self.name, len(events))
        return events
