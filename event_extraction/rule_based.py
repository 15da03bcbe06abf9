"""
Offline, deterministic extraction of events from syllabus text.

This is the floor of the pipeline: it needs no network access, and it returns
an empty list (never an error) for text without recognizable dates.
"""
from __future__ import annotations

import logging
import typing as t
import uuid
from datetime import date, datetime

from event_extraction.classifier import classify, clean_title, has_due_language
from event_extraction.course_info import course_info_from_label
from event_extraction.dates import DateNormalizer, find_time_span, format_date_value
from event_extraction.models import MAX_DESCRIPTION_LENGTH, ExtractedEvent
from event_extraction.settings import ExtractionSettings


logger = logging.getLogger(__name__)

MIN_LINE_LENGTH = 5
DUE_LANGUAGE_BOOST = 0.1


class RuleBasedExtractor:
    """Line-by-line date matching plus keyword classification."""

    name = "rule_based"

    def __init__(
        self,
        settings: t.Optional[ExtractionSettings] = None,
        normalizer: t.Optional[DateNormalizer] = None,
    ) -> None:
        self.settings = settings or ExtractionSettings()
        self.normalizer = normalizer or DateNormalizer(self.settings)

    def extract(self, text: str, document_label: str = "") -> list[ExtractedEvent]:
        if not isinstance(text, str) or not text.strip():
            return []

        course_code = course_info_from_label(document_label).course_code
        run_id = uuid.uuid4().hex[:8]

        candidates: list[dict[str, t.Any]] = []
        for raw_line in text.splitlines():
            line = raw_line.strip()
            if len(line) < MIN_LINE_LENGTH:
                continue
            candidates.extend(self._events_for_line(line, course_code))

        events: list[ExtractedEvent] = []
        seen: set[tuple[str, str]] = set()
        for candidate in candidates:
            key = (candidate["title"].casefold(), candidate["date"])
            if key in seen:
                continue
            seen.add(key)
            events.append(ExtractedEvent(id=f"rule-{run_id}-{len(events)}", **candidate))
            if len(events) >= self.settings.max_rule_events:
                logger.info("Rule-based extraction capped at %d events", self.settings.max_rule_events)
                break

        logger.debug("Rule-based extraction found %d events in %d candidates", len(events), len(candidates))
        return events

    def _events_for_line(self, line: str, course_code: t.Optional[str]) -> list[dict[str, t.Any]]:
        classification = classify(line)
        title = clean_title(line, classification, course_code)
        confidence = classification.confidence
        if has_due_language(line):
            confidence = min(confidence + DUE_LANGUAGE_BOOST, 1.0)

        base = {
            "title": title,
            "description": line[:MAX_DESCRIPTION_LENGTH],
            "event_type": classification.event_type,
            "confidence": round(confidence, 2),
        }

        span = self.normalizer.find_range(line)
        if span is not None:
            if self.settings.expand_date_ranges:
                return [dict(base, date=format_date_value(day)) for day in span.days()]
            return [dict(
                base,
                date=format_date_value(span.start_date),
                end_date=format_date_value(span.end_date),
            )]

        found = self.normalizer.find_date(line)
        if found is None:
            return []
        # the date itself must not be read as a clock time ("March 5 - 11:59 PM")
        start, end = _with_times(found.value, line[:found.start] + " " + line[found.end:])
        return [dict(base, date=start, end_date=end)]


def _with_times(day: date, line: str) -> tuple[str, t.Optional[str]]:
    times = find_time_span(line)
    if not times:
        return format_date_value(day), None
    start, end = times
    return (
        format_date_value(datetime.combine(day, start)),
        format_date_value(datetime.combine(day, end)) if end else None,
    )
