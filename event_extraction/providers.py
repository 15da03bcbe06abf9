"""
Generative extractor implementations: OpenAI, Google Gemini, a local Ollama
server, and an offline demo extractor.
"""
from __future__ import annotations

import json
import logging
import typing as t
from datetime import timedelta

import openai
import requests
from openai import OpenAI

from event_extraction.course_info import course_info_from_label
from event_extraction.errors import GenerativeServiceError
from event_extraction.generative import GenerativeExtractor
from event_extraction.models import ExtractedEvent
from event_extraction.rule_based import RuleBasedExtractor
from event_extraction.settings import ExtractionSettings
from prompts import load_prompt


logger = logging.getLogger(__name__)

SYSTEM_PROMPT = load_prompt("event_extraction_system_prompt")

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
GEMINI_SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)
STATUS_TIMEOUT = 5


class OpenAIExtractor(GenerativeExtractor):
    name = "openai"
    default_confidence = 0.8

    def __init__(
        self,
        settings: t.Optional[ExtractionSettings] = None,
        fallback: t.Optional[RuleBasedExtractor] = None,
        logger_instance: t.Optional[logging.Logger] = None,
        client: t.Optional[OpenAI] = None,
    ) -> None:
        super().__init__(settings, fallback, logger_instance)
        self._client = client

    @property
    def is_configured(self) -> bool:
        return self._client is not None or bool(self.settings.openai_api_key)

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(api_key=self.settings.openai_api_key, timeout=self.settings.llm_timeout)
        return self._client

    def generate(self, prompt: str) -> str:
        try:
            completion = self.client.chat.completions.create(
                model=self.settings.openai_model,
                response_format={"type": "json_object"},
                temperature=0.1,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
            )
        except openai.OpenAIError as err:
            raise GenerativeServiceError(f"OpenAI request failed: {err}") from err

        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise GenerativeServiceError("OpenAI returned an empty response")
        return content


class GeminiExtractor(GenerativeExtractor):
    name = "gemini"
    default_confidence = 0.8

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.gemini_api_key)

    @property
    def url(self) -> str:
        return GEMINI_URL.format(model=self.settings.gemini_model)

    def _post(self, payload: dict[str, t.Any], timeout: float) -> requests.Response:
        return requests.post(
            self.url,
            params={"key": self.settings.gemini_api_key},
            json=payload,
            timeout=timeout,
        )

    def generate(self, prompt: str) -> str:
        payload = {
            "contents": [{"parts": [{"text": f"{SYSTEM_PROMPT}\n\n{prompt}"}]}],
            "generationConfig": {
                "temperature": 0.1,
                "topK": 1,
                "topP": 1,
                "maxOutputTokens": 2048,
            },
            "safetySettings": [
                {"category": category, "threshold": "BLOCK_MEDIUM_AND_ABOVE"}
                for category in GEMINI_SAFETY_CATEGORIES
            ],
        }
        try:
            response = self._post(payload, self.settings.llm_timeout)
        except requests.RequestException as err:
            raise GenerativeServiceError(f"Gemini request failed: {err}") from err

        if not response.ok:
            raise GenerativeServiceError(f"Gemini API error: {response.status_code} - {response.text[:200]}")

        try:
            text = response.json()["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as err:
            raise GenerativeServiceError("No response text from Gemini") from err
        if not text:
            raise GenerativeServiceError("No response text from Gemini")
        return text

    def check_api_key(self) -> bool:
        """Probe the endpoint; only an auth rejection or no connection counts as invalid."""
        if not self.is_configured:
            return False
        try:
            response = self._post({"contents": [{"parts": [{"text": "Test"}]}]}, STATUS_TIMEOUT)
        except requests.RequestException:
            return False
        return response.status_code not in (401, 403)


class OllamaExtractor(GenerativeExtractor):
    name = "ollama"
    default_confidence = 0.5

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.ollama_base_url)

    def generate(self, prompt: str) -> str:
        payload = {
            "model": self.settings.ollama_model,
            "system": SYSTEM_PROMPT,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": 0.1, "num_predict": 2000},
        }
        try:
            response = requests.post(
                f"{self.settings.ollama_base_url}/api/generate", json=payload, timeout=self.settings.llm_timeout
            )
            response.raise_for_status()
            text = response.json().get("response")
        except requests.RequestException as err:
            raise GenerativeServiceError(f"Ollama request failed: {err}") from err
        except (ValueError, AttributeError) as err:
            raise GenerativeServiceError("Ollama returned a malformed response") from err
        if not text:
            raise GenerativeServiceError("Ollama returned an empty response")
        return text

    def _tags(self) -> t.Optional[dict[str, t.Any]]:
        if not self.is_configured:
            return None
        try:
            response = requests.get(f"{self.settings.ollama_base_url}/api/tags", timeout=STATUS_TIMEOUT)
        except requests.RequestException:
            return None
        if not response.ok:
            return None
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    def check_status(self) -> bool:
        return self._tags() is not None

    def list_models(self) -> list[str]:
        data = self._tags() or {}
        return [model["name"] for model in data.get("models") or [] if isinstance(model, dict) and "name" in model]


# week offsets (from semester start) and canned titles per subject
DEMO_EVENTS: dict[str, list[tuple[int, int, str, str]]] = {
    "history": [
        (3, 2, "Quiz 1: Early American History", "quiz"),
        (4, 2, "Essay 1: Colonial America Analysis", "homework"),
        (7, 1, "Essay 2: Civil War Impact Study", "homework"),
        (8, 1, "Midterm Exam: Pre-Civil War Period", "exam"),
        (11, 1, "Quiz 2: Reconstruction Era", "quiz"),
        (12, 3, "Research Paper: 20th Century Topic", "project"),
        (15, 3, "Final Exam: Comprehensive Review", "exam"),
    ],
    "english": [
        (2, 4, "Reading Quiz 1: Chapters 1-3", "quiz"),
        (3, 4, "Essay 1: Personal Narrative", "homework"),
        (7, 4, "Essay 2: Argumentative Essay", "homework"),
        (8, 4, "Midterm Exam: Literary Analysis", "exam"),
        (11, 4, "Essay 3: Research Paper", "project"),
        (14, 2, "Final Portfolio: Revised Essays", "project"),
        (15, 1, "Final Exam: Comprehensive Review", "exam"),
    ],
    "general": [
        (3, 2, "Quiz 1: Foundations", "quiz"),
        (4, 2, "Assignment 1: Core Concepts", "homework"),
        (7, 1, "Assignment 2: Applied Problems", "homework"),
        (8, 1, "Midterm Examination", "exam"),
        (11, 1, "Quiz 2: Intermediate Topics", "quiz"),
        (12, 3, "Final Project Proposal", "project"),
        (15, 0, "Final Examination", "exam"),
    ],
}
DEMO_CONFIDENCE = 0.3


class DemoExtractor(GenerativeExtractor):
    """
    Offline stand-in for a generative service.

    Produces typical events for the course subject guessed from the document
    label and runs them through the normal response parsing path. The
    document text is ignored, so these are examples, not real extractions.
    """

    name = "demo"
    default_confidence = DEMO_CONFIDENCE

    def generate(self, prompt: str) -> str:
        raise GenerativeServiceError("demo extractor does not call a service")

    def extract(self, text: str, document_label: str = "") -> list[ExtractedEvent]:
        self.logger.warning("Using demo extractor: events are generic examples, not read from the document")
        return self.parse_response(self.demo_response(document_label))

    def demo_response(self, document_label: str) -> str:
        info = course_info_from_label(document_label)
        templates = DEMO_EVENTS.get(info.subject, DEMO_EVENTS["general"])
        course = info.course_code or info.course_name
        events = []
        for week, weekday, title, event_type in templates:
            day = self.normalizer.week_start(week) + timedelta(days=weekday)
            events.append({
                "title": title,
                "date": day.isoformat(),
                "description": f"{course}: typical {info.subject} course event",
                "eventType": event_type,
                "confidence": DEMO_CONFIDENCE,
            })
        return json.dumps({"events": events})


EXTRACTORS: dict[str, type[GenerativeExtractor]] = {
    "openai": OpenAIExtractor,
    "gemini": GeminiExtractor,
    "ollama": OllamaExtractor,
    "demo": DemoExtractor,
}


def build_extractor(
    name: str,
    settings: t.Optional[ExtractionSettings] = None,
    fallback: t.Union[RuleBasedExtractor, None, bool] = True,
    logger_instance: t.Optional[logging.Logger] = None,
) -> GenerativeExtractor:
    """
    Create a generative extractor by name.

    ``fallback=True`` (the default) attaches a rule-based extractor so the
    result can be used on its own; pass None when a caller handles failures.
    """
    try:
        extractor_class = EXTRACTORS[name.strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown extractor {name!r}; expected one of {', '.join(EXTRACTORS)}") from None
    settings = settings or ExtractionSettings()
    if fallback is True:
        fallback = RuleBasedExtractor(settings)
    return extractor_class(settings, fallback=fallback or None, logger_instance=logger_instance)
