"""Tests for the OpenAI, Gemini, Ollama and demo extractors with the network faked out."""
import json
import typing as t
from types import SimpleNamespace

import openai
import pytest
import requests

from event_extraction import providers
from event_extraction.errors import GenerativeServiceError
from event_extraction.models import EVENT_TYPES
from event_extraction.providers import (
    DemoExtractor,
    GeminiExtractor,
    OllamaExtractor,
    OpenAIExtractor,
    build_extractor,
)
from event_extraction.rule_based import RuleBasedExtractor
from event_extraction.settings import ExtractionSettings


QUIZ_RESPONSE = (
    '{"events": [{"title": "Quiz 1", "date": "2025-02-03", "description": "", '
    '"eventType": "quiz", "confidence": 0.9}]}'
)


class FakeResponse:
    """Just enough of requests.Response for the extractors."""

    def __init__(self, status_code: int = 200, payload: t.Any = None, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text or json.dumps(payload)

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> t.Any:
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload

    def raise_for_status(self) -> None:
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeCompletions:
    def __init__(self, content: t.Optional[str] = None, error: t.Optional[Exception] = None) -> None:
        self.content = content
        self.error = error
        self.calls: list[dict[str, t.Any]] = []

    def create(self, **kwargs: t.Any) -> SimpleNamespace:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeOpenAIClient:
    def __init__(self, completions: FakeCompletions) -> None:
        self.chat = SimpleNamespace(completions=completions)


@pytest.fixture
def keyed_settings(settings: ExtractionSettings) -> ExtractionSettings:
    return settings.with_overrides(
        openai_api_key="sk-test",
        gemini_api_key="gemini-test",
        ollama_base_url="http://ollama.test:11434",
    )


# -----------------------------
# OpenAI
# -----------------------------

def test_openai_request_and_parsing(settings: ExtractionSettings) -> None:
    completions = FakeCompletions(content=QUIZ_RESPONSE)
    extractor = OpenAIExtractor(settings, client=FakeOpenAIClient(completions))

    [event] = extractor.extract("Quiz 1 on 2/3", "CS101.pdf")

    assert event.title == "Quiz 1"
    assert event.event_type == "quiz"
    [call] = completions.calls
    assert call["response_format"] == {"type": "json_object"}
    assert call["temperature"] == 0.1
    assert call["model"] == settings.openai_model
    assert [message["role"] for message in call["messages"]] == ["system", "user"]
    assert "Quiz 1 on 2/3" in call["messages"][1]["content"]


def test_openai_errors_become_service_errors(settings: ExtractionSettings) -> None:
    failing = OpenAIExtractor(settings, client=FakeOpenAIClient(FakeCompletions(error=openai.OpenAIError("down"))))
    empty = OpenAIExtractor(settings, client=FakeOpenAIClient(FakeCompletions(content="")))

    with pytest.raises(GenerativeServiceError):
        failing.extract("Quiz 1 on 2/3")
    with pytest.raises(GenerativeServiceError):
        empty.extract("Quiz 1 on 2/3")


def test_openai_is_configured_by_key(settings: ExtractionSettings, keyed_settings: ExtractionSettings) -> None:
    assert not OpenAIExtractor(settings).is_configured
    assert OpenAIExtractor(keyed_settings).is_configured


# -----------------------------
# Gemini
# -----------------------------

def test_gemini_request_and_parsing(keyed_settings: ExtractionSettings, monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict[str, t.Any]] = []

    def fake_post(url: str, **kwargs: t.Any) -> FakeResponse:
        calls.append({"url": url, **kwargs})
        return FakeResponse(200, {"candidates": [{"content": {"parts": [{"text": QUIZ_RESPONSE}]}}]})

    monkeypatch.setattr(providers.requests, "post", fake_post)

    [event] = GeminiExtractor(keyed_settings).extract("Quiz 1 on 2/3")

    assert event.date == "2025-02-03"
    [call] = calls
    assert keyed_settings.gemini_model in call["url"]
    assert call["params"] == {"key": "gemini-test"}
    assert call["json"]["generationConfig"] == {
        "temperature": 0.1, "topK": 1, "topP": 1, "maxOutputTokens": 2048,
    }
    assert len(call["json"]["safetySettings"]) == 4


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse(500, {"error": "internal"}),
        FakeResponse(200, {"candidates": []}),
        FakeResponse(200, None, text="<html>"),
    ],
)
def test_gemini_bad_answers(
    keyed_settings: ExtractionSettings, monkeypatch: pytest.MonkeyPatch, response: FakeResponse
) -> None:
    monkeypatch.setattr(providers.requests, "post", lambda url, **kwargs: response)

    with pytest.raises(GenerativeServiceError):
        GeminiExtractor(keyed_settings).extract("Quiz 1 on 2/3")


def test_gemini_connection_error(keyed_settings: ExtractionSettings, monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_post(url: str, **kwargs: t.Any) -> FakeResponse:
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(providers.requests, "post", fake_post)

    with pytest.raises(GenerativeServiceError):
        GeminiExtractor(keyed_settings).extract("Quiz 1 on 2/3")
    assert GeminiExtractor(keyed_settings).check_api_key() is False


@pytest.mark.parametrize("status, valid", [(200, True), (400, True), (401, False), (403, False)])
def test_gemini_check_api_key(
    keyed_settings: ExtractionSettings, monkeypatch: pytest.MonkeyPatch, status: int, valid: bool
) -> None:
    """Only an authentication rejection marks the key as invalid."""
    monkeypatch.setattr(providers.requests, "post", lambda url, **kwargs: FakeResponse(status, {}))

    assert GeminiExtractor(keyed_settings).check_api_key() is valid


def test_gemini_without_key_is_not_probed(settings: ExtractionSettings, monkeypatch: pytest.MonkeyPatch) -> None:
    def fail(*args: t.Any, **kwargs: t.Any) -> None:
        raise AssertionError("should not be called")

    monkeypatch.setattr(providers.requests, "post", fail)

    assert GeminiExtractor(settings).check_api_key() is False


# -----------------------------
# Ollama
# -----------------------------

def test_ollama_request_and_parsing(keyed_settings: ExtractionSettings, monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict[str, t.Any]] = []

    def fake_post(url: str, **kwargs: t.Any) -> FakeResponse:
        calls.append({"url": url, **kwargs})
        return FakeResponse(200, {"response": QUIZ_RESPONSE})

    monkeypatch.setattr(providers.requests, "post", fake_post)

    [event] = OllamaExtractor(keyed_settings).extract("Quiz 1 on 2/3")

    assert event.title == "Quiz 1"
    [call] = calls
    assert call["url"] == "http://ollama.test:11434/api/generate"
    assert call["json"]["stream"] is False
    assert call["json"]["options"] == {"temperature": 0.1, "num_predict": 2000}


def test_ollama_http_error(keyed_settings: ExtractionSettings, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(providers.requests, "post", lambda url, **kwargs: FakeResponse(404, {"error": "no model"}))

    with pytest.raises(GenerativeServiceError):
        OllamaExtractor(keyed_settings).extract("Quiz 1 on 2/3")


def test_ollama_status_and_models(keyed_settings: ExtractionSettings, monkeypatch: pytest.MonkeyPatch) -> None:
    tags = {"models": [{"name": "llama3.1:8b"}, {"name": "mistral:7b"}, {"size": 1}]}
    monkeypatch.setattr(providers.requests, "get", lambda url, **kwargs: FakeResponse(200, tags))

    extractor = OllamaExtractor(keyed_settings)

    assert extractor.check_status() is True
    assert extractor.list_models() == ["llama3.1:8b", "mistral:7b"]


def test_ollama_unreachable(keyed_settings: ExtractionSettings, monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_get(url: str, **kwargs: t.Any) -> FakeResponse:
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(providers.requests, "get", fake_get)
    extractor = OllamaExtractor(keyed_settings)

    assert extractor.check_status() is False
    assert extractor.list_models() == []


def test_ollama_needs_base_url(settings: ExtractionSettings) -> None:
    extractor = OllamaExtractor(settings)

    assert not extractor.is_configured
    assert extractor.check_status() is False


# -----------------------------
# Demo and factory
# -----------------------------

def test_demo_events_follow_subject(settings: ExtractionSettings) -> None:
    events = DemoExtractor(settings).extract("ignored", "HIST101_American_History.pdf")

    assert len(events) == 7
    assert events[0].title == "Quiz 1: Early American History"
    assert all(event.confidence <= 0.3 for event in events)
    assert all(event.event_type in EVENT_TYPES for event in events)
    assert all(event.date.startswith("2025-") for event in events)
    assert {event.event_type for event in events} >= {"quiz", "exam", "project"}


def test_demo_uses_general_templates_for_unknown_subjects(settings: ExtractionSettings) -> None:
    events = DemoExtractor(settings).extract("", "syllabus.pdf")

    assert events[-1].title == "Final Examination"
    assert events[-1].date == "2025-12-08"


def test_build_extractor(settings: ExtractionSettings) -> None:
    standalone = build_extractor("OpenAI", settings)
    bare = build_extractor("gemini", settings, fallback=None)

    assert isinstance(standalone, OpenAIExtractor)
    assert isinstance(standalone.fallback, RuleBasedExtractor)
    assert isinstance(bare, GeminiExtractor)
    assert bare.fallback is None
    with pytest.raises(ValueError):
        build_extractor("bogus", settings)


def test_standalone_extractor_falls_back_offline(settings: ExtractionSettings) -> None:
    """An unconfigured extractor built for standalone use still returns rule-based events."""
    events = build_extractor("openai", settings).extract("Midterm Exam: 10/15")

    assert [(event.event_type, event.date) for event in events] == [("exam", "2025-10-15")]
