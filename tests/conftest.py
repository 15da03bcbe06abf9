"""Shared fixtures: a fixed academic calendar so dates never depend on the clock."""
from datetime import date

import pytest

from event_extraction.settings import ExtractionSettings


PROVIDER_ENV_VARS = (
    "OPENAI_API_KEY",
    "GOOGLE_GEMINI_API_KEY",
    "OLLAMA_BASE_URL",
    "EXTRACTOR_ORDER",
    "ACADEMIC_YEAR",
    "SEMESTER_START",
    "EXTRACTION_REFERENCE_DATE",
)


@pytest.fixture
def settings() -> ExtractionSettings:
    """Fall 2025: weeks count from Monday 2025-09-01; fallback date is 2025-09-15."""
    return ExtractionSettings(
        academic_year=2025,
        semester_start=date(2025, 9, 1),
        extractor_order=(),
    )


@pytest.fixture
def offline_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove provider credentials so only rule-based extraction can run."""
    for name in PROVIDER_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ACADEMIC_YEAR", "2025")
