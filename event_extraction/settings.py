"""
Configuration for the extraction pipeline.

All tunables live on a single frozen ExtractionSettings instance that is passed
explicitly into every component. Values come from environment variables, the
same way the service modules read their URLs and API keys.
"""
from __future__ import annotations

import logging
import os
import typing as t
from dataclasses import dataclass, replace
from datetime import date, timedelta


logger = logging.getLogger(__name__)

DEFAULT_ACADEMIC_YEAR = 2025
DEFAULT_EXTRACTOR_ORDER = ("openai", "gemini", "ollama")


def snap_to_monday(day: date) -> date:
    """Return the Monday nearest to ``day`` (Fri-Sun roll forward)."""
    weekday = day.weekday()
    if weekday == 0:
        return day
    if weekday <= 3:
        return day - timedelta(days=weekday)
    return day + timedelta(days=7 - weekday)


@dataclass(frozen=True)
class ExtractionSettings:
    """Academic-calendar anchors and provider configuration for one extraction run."""

    academic_year: int = DEFAULT_ACADEMIC_YEAR
    semester_start: t.Optional[date] = None
    reference_date: t.Optional[date] = None
    fallback_offset_days: int = 14
    max_rule_events: int = 25
    expand_date_ranges: bool = True

    extractor_order: tuple[str, ...] = DEFAULT_EXTRACTOR_ORDER
    openai_api_key: t.Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    gemini_api_key: t.Optional[str] = None
    gemini_model: str = "gemini-1.5-flash-latest"
    ollama_base_url: t.Optional[str] = None
    ollama_model: str = "llama3.1:8b"
    llm_timeout: float = 60.0

    def __post_init__(self) -> None:
        start = self.semester_start or date(self.academic_year, 9, 1)
        # Week numbering always counts from a Monday.
        object.__setattr__(self, "semester_start", snap_to_monday(start))

    @property
    def anchor_date(self) -> date:
        """Date that relative phrases and fallback dates are computed from."""
        return self.reference_date or self.semester_start

    @property
    def fallback_date(self) -> date:
        return self.anchor_date + timedelta(days=self.fallback_offset_days)

    def with_overrides(self, **changes: t.Any) -> "ExtractionSettings":
        return replace(self, **changes)

    @classmethod
    def from_env(cls, environ: t.Optional[t.Mapping[str, str]] = None) -> "ExtractionSettings":
        """
        Build settings from environment variables.

        Malformed values are logged and replaced by their defaults so a bad
        variable never prevents extraction from running.
        """
        env = os.environ if environ is None else environ

        academic_year = _int_env(env, "ACADEMIC_YEAR", DEFAULT_ACADEMIC_YEAR)
        semester_start = _date_env(env, "SEMESTER_START", date(academic_year, 9, 1))
        reference_date = _date_env(env, "EXTRACTION_REFERENCE_DATE", None)

        order_raw = env.get("EXTRACTOR_ORDER", "")
        extractor_order = tuple(
            name.strip().lower() for name in order_raw.split(",") if name.strip()
        ) or DEFAULT_EXTRACTOR_ORDER

        return cls(
            academic_year=academic_year,
            semester_start=semester_start,
            reference_date=reference_date,
            fallback_offset_days=_int_env(env, "FALLBACK_OFFSET_DAYS", 14),
            max_rule_events=_int_env(env, "MAX_RULE_EVENTS", 25),
            expand_date_ranges=_bool_env(env, "EXPAND_DATE_RANGES", True),
            extractor_order=extractor_order,
            openai_api_key=env.get("OPENAI_API_KEY") or None,
            openai_model=env.get("OPENAI_MODEL") or "gpt-4o-mini",
            gemini_api_key=env.get("GOOGLE_GEMINI_API_KEY") or None,
            gemini_model=env.get("GEMINI_MODEL") or "gemini-1.5-flash-latest",
            ollama_base_url=(env.get("OLLAMA_BASE_URL") or "").rstrip("/") or None,
            ollama_model=env.get("OLLAMA_MODEL") or "llama3.1:8b",
            llm_timeout=_float_env(env, "LLM_TIMEOUT", 60.0),
        )


def _int_env(env: t.Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer, using %s", name, raw, default)
        return default


def _float_env(env: t.Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not a number, using %s", name, raw, default)
        return default


def _bool_env(env: t.Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if not raw:
        return default
    lowered = raw.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    logger.warning("Ignoring %s=%r: not a boolean, using %s", name, raw, default)
    return default


def _date_env(env: t.Mapping[str, str], name: str, default: t.Optional[date]) -> t.Optional[date]:
    raw = env.get(name)
    if not raw:
        return default
    try:
        return date.fromisoformat(raw.strip())
    except ValueError:
        logger.warning("Ignoring %s=%r: expected YYYY-MM-DD, using %s", name, raw, default)
        return default
