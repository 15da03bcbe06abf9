"""Tests for response parsing and fallback behaviour shared by generative extractors."""
import typing as t

import pytest

from event_extraction.dates import DateNormalizer
from event_extraction.errors import ExtractorNotConfiguredError, GenerativeServiceError
from event_extraction.generative import GenerativeExtractor, coerce_event
from event_extraction.rule_based import RuleBasedExtractor
from event_extraction.settings import ExtractionSettings


QUIZ_RESPONSE = (
    '{"events": [{"title": "Quiz 1", "date": "2025-02-03", "description": "", '
    '"eventType": "quiz", "confidence": 0.9}]}'
)
SYLLABUS = "Midterm Exam: 10/15\nAssignment 1 due: 9/30"


class ScriptedExtractor(GenerativeExtractor):
    """Generative extractor that answers from a script instead of a service."""

    name = "scripted"
    default_confidence = 0.8

    def __init__(
        self,
        settings: ExtractionSettings,
        response: t.Union[str, Exception] = "",
        configured: bool = True,
        fallback: t.Optional[RuleBasedExtractor] = None,
    ) -> None:
        super().__init__(settings, fallback)
        self.response = response
        self.configured = configured
        self.prompts: list[str] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


@pytest.fixture
def normalizer(settings: ExtractionSettings) -> DateNormalizer:
    return DateNormalizer(settings)


def test_prompt_carries_text_label_and_calendar(settings: ExtractionSettings) -> None:
    prompt = ScriptedExtractor(settings).build_prompt("Quiz 1: 2/3", "CS101.pdf")

    assert "Quiz 1: 2/3" in prompt
    assert "CS101.pdf" in prompt
    assert "2025-09-01" in prompt
    assert "officeHours" in prompt


def test_well_formed_response(settings: ExtractionSettings) -> None:
    [event] = ScriptedExtractor(settings).parse_response(QUIZ_RESPONSE)

    assert event.title == "Quiz 1"
    assert event.date == "2025-02-03"
    assert event.description == ""
    assert event.event_type == "quiz"
    assert event.confidence == 0.9
    assert event.id.startswith("scripted-")


def test_colon_split_fields_in_valid_json_are_rejoined(settings: ExtractionSettings) -> None:
    """A value split at its colon can still parse; it must not end up as a dict repr."""
    response = (
        '{"events": [{"title": {"Lab": "3"}, "date": "2025-10-01", '
        '"description": {"Submit by": "11:59 PM"}, "location": {"Room": "203"}, '
        '"eventType": "lecture", "confidence": 0.7}]}'
    )

    [event] = ScriptedExtractor(settings).parse_response(response)

    assert event.title == "Lab 3"
    assert event.description == "Submit by 11:59 PM"
    assert event.location == "Room 203"
    assert event.event_type == "lecture"


def test_truncated_response_gives_no_events(settings: ExtractionSettings) -> None:
    assert ScriptedExtractor(settings).parse_response('{"events": [{"title": "Quiz 1", "dat') == []


def test_coerce_maps_types_and_dates(normalizer: DateNormalizer) -> None:
    event = coerce_event(
        {"Title": "Office Hours", "date": "Oct 15", "event_type": "Office Hours", "room": "GHC 4"},
        normalizer,
        0.8,
    )

    assert event is not None
    assert event.event_type == "officeHours"
    assert event.date == "2025-10-15"
    assert event.location == "GHC 4"
    assert event.confidence == 0.8


def test_coerce_infers_unknown_types_from_title(normalizer: DateNormalizer) -> None:
    event = coerce_event({"title": "Quiz 3", "date": "2025-03-01", "eventType": "banana"}, normalizer, 0.5)

    assert event.event_type == "quiz"


def test_coerce_clamps_confidence(normalizer: DateNormalizer) -> None:
    high = coerce_event({"title": "Exam", "date": "2025-03-01", "confidence": "1.7"}, normalizer, 0.5)
    junk = coerce_event({"title": "Exam", "date": "2025-03-01", "confidence": "high"}, normalizer, 0.5)
    negative = coerce_event({"title": "Exam", "date": "2025-03-01", "confidence": -3}, normalizer, 0.5)

    assert high.confidence == 1.0
    assert junk.confidence == 0.5
    assert negative.confidence == 0.0


def test_coerce_unreadable_date_uses_fallback(normalizer: DateNormalizer) -> None:
    event = coerce_event({"title": "Quiz", "date": "sometime"}, normalizer, 0.5)

    assert event.date == "2025-09-15"


def test_coerce_drops_events_without_date(normalizer: DateNormalizer) -> None:
    assert coerce_event({"title": "Quiz 1", "date": None}, normalizer, 0.5) is None
    assert coerce_event({"title": "Quiz 1"}, normalizer, 0.5) is None


def test_coerce_derives_missing_title(normalizer: DateNormalizer) -> None:
    from_description = coerce_event({"date": "2025-03-01", "description": "Problem set 2 due"}, normalizer, 0.5)
    from_type = coerce_event({"date": "2025-03-01", "eventType": "quiz"}, normalizer, 0.5)

    assert from_description.title == "Problem set 2 due"
    assert from_description.event_type == "homework"
    assert from_type.title == "Quiz"


def test_coerce_keeps_parsable_end_date(normalizer: DateNormalizer) -> None:
    event = coerce_event(
        {"title": "Spring break", "date": "2025-03-10", "endDate": "March 14"}, normalizer, 0.5
    )
    unreadable = coerce_event({"title": "Trip", "date": "2025-03-10", "endDate": "later"}, normalizer, 0.5)

    assert event.end_date == "2025-03-14"
    assert unreadable.end_date is None


def test_errors_propagate_without_fallback(settings: ExtractionSettings) -> None:
    extractor = ScriptedExtractor(settings, response=GenerativeServiceError("boom"))

    with pytest.raises(GenerativeServiceError):
        extractor.extract(SYLLABUS)


def test_unconfigured_without_fallback_raises(settings: ExtractionSettings) -> None:
    extractor = ScriptedExtractor(settings, configured=False)

    with pytest.raises(ExtractorNotConfiguredError):
        extractor.extract(SYLLABUS)
    assert extractor.prompts == []


@pytest.mark.parametrize(
    "response, configured",
    [
        (GenerativeServiceError("boom"), True),
        ("Sorry, I cannot help with that.", True),
        (QUIZ_RESPONSE, False),
    ],
)
def test_fallback_handles_failures(
    settings: ExtractionSettings, response: t.Union[str, Exception], configured: bool
) -> None:
    """Service errors, empty answers and missing configuration all use the rule-based fallback."""
    extractor = ScriptedExtractor(
        settings, response=response, configured=configured, fallback=RuleBasedExtractor(settings)
    )

    events = extractor.extract(SYLLABUS)

    assert {event.event_type for event in events} == {"exam", "homework"}
    assert all(event.id.startswith("rule-") for event in events)


def test_empty_answer_without_fallback_is_empty(settings: ExtractionSettings) -> None:
    assert ScriptedExtractor(settings, response='{"events": []}').extract(SYLLABUS) == []
