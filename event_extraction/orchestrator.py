"""
Entry point of the extraction core.

Generative extractors are tried one at a time in priority order; the first one
that returns events wins. If none does, the rule-based extractor runs. The
winning list is deduplicated by (title, date, eventType) and sorted by date.
"""
from __future__ import annotations

import asyncio
import logging
import typing as t

from pydantic import ValidationError

from event_extraction.errors import ExtractionError
from event_extraction.generative import GenerativeExtractor
from event_extraction.models import ExtractedEvent, ExtractionResult
from event_extraction.providers import GeminiExtractor, OllamaExtractor, build_extractor
from event_extraction.rule_based import RuleBasedExtractor
from event_extraction.settings import ExtractionSettings


logger = logging.getLogger(__name__)


def deduplicate_events(events: t.Iterable[ExtractedEvent]) -> list[ExtractedEvent]:
    """Keep the first event for each (title, date, eventType); order is preserved."""
    seen: set[tuple[str, str, str]] = set()
    unique = []
    for event in events:
        key = event.dedup_key()
        if key in seen:
            continue
        seen.add(key)
        unique.append(event)
    return unique


def sort_events(events: t.Iterable[ExtractedEvent]) -> list[ExtractedEvent]:
    # date-only values sort before timed values on the same day
    return sorted(events, key=lambda event: (event.date[:10], event.date))


class ExtractionOrchestrator:
    """Runs one extraction per call; holds configuration only, no per-call state."""

    def __init__(
        self,
        settings: t.Optional[ExtractionSettings] = None,
        extractors: t.Optional[t.Sequence[GenerativeExtractor]] = None,
        rule_based: t.Optional[RuleBasedExtractor] = None,
        logger_instance: t.Optional[logging.Logger] = None,
    ) -> None:
        self.settings = settings or ExtractionSettings.from_env()
        self.logger = logger_instance or logger
        self.rule_based = rule_based or RuleBasedExtractor(self.settings)
        if extractors is None:
            extractors = self._build_extractors()
        self.extractors = list(extractors)

    def _build_extractors(self) -> list[GenerativeExtractor]:
        extractors = []
        for name in self.settings.extractor_order:
            try:
                extractors.append(
                    build_extractor(name, self.settings, fallback=None, logger_instance=self.logger)
                )
            except ValueError as err:
                self.logger.warning("Skipping extractor: %s", err)
        return extractors

    def extract(self, document_text: str, document_label: str = "") -> ExtractionResult:
        """
        Extract events from ``document_text``.

        Only a non-string ``document_text`` raises (TypeError). Service
        failures, unparseable answers and undated text all end in a
        (possibly empty) result.
        """
        if not isinstance(document_text, str):
            raise TypeError(f"document_text must be str, not {type(document_text).__name__}")
        label = document_label or ""

        if not document_text.strip():
            self.logger.info("Empty document %r, nothing to extract", label)
            return ExtractionResult(events=[], text=document_text, source=self.rule_based.name)

        events: list[ExtractedEvent] = []
        source = self.rule_based.name
        for extractor in self.extractors:
            if not extractor.is_configured:
                self.logger.debug("Skipping %s: not configured", extractor.name)
                continue
            try:
                events = extractor.extract(document_text, label)
            except (ExtractionError, ValidationError) as err:
                self.logger.warning("%s failed: %s", extractor.name, err)
                continue
            if events:
                source = extractor.name
                break
            self.logger.info("%s returned no events", extractor.name)

        if not events:
            events = self._rule_based(document_text, label)

        events = sort_events(deduplicate_events(events))
        self.logger.info("Extracted %d events from %r using %s", len(events), label, source)
        return ExtractionResult(events=events, text=document_text, source=source)

    async def extract_async(self, document_text: str, document_label: str = "") -> ExtractionResult:
        return await asyncio.to_thread(self.extract, document_text, document_label)

    def _rule_based(self, text: str, label: str) -> list[ExtractedEvent]:
        try:
            return self.rule_based.extract(text, label)
        except Exception:
            self.logger.exception("Rule-based extraction failed for %r", label)
            return []

    def status(self) -> dict[str, dict[str, t.Optional[bool]]]:
        """
        Report each generative extractor as configured and, where a cheap
        probe exists, reachable. ``reachable`` is None when not probed.
        """
        report: dict[str, dict[str, t.Optional[bool]]] = {}
        for extractor in self.extractors:
            reachable: t.Optional[bool] = None
            if extractor.is_configured:
                if isinstance(extractor, GeminiExtractor):
                    reachable = extractor.check_api_key()
                elif isinstance(extractor, OllamaExtractor):
                    reachable = extractor.check_status()
            report[extractor.name] = {"configured": extractor.is_configured, "reachable": reachable}
        return report


def extract(
    document_text: str,
    document_label: str = "",
    settings: t.Optional[ExtractionSettings] = None,
) -> ExtractionResult:
    """Extract events with extractors configured from the environment (or ``settings``)."""
    return ExtractionOrchestrator(settings).extract(document_text, document_label)
