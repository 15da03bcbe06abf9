"""Exceptions raised inside the extraction core.

Only generative extractors raise these; the orchestrator treats any of them as
"this extractor failed" and moves on to the next one.
"""
from __future__ import annotations


class ExtractionError(RuntimeError):
    """Base class for extraction failures that a caller may recover from."""


class GenerativeServiceError(ExtractionError):
    """The text-generation service could not be reached or answered badly."""


class ExtractorNotConfiguredError(ExtractionError):
    """A generative extractor has no credentials or endpoint configured."""
