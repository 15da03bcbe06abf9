from __future__ import annotations

import typing as t
from pathlib import PurePath

from fastmcp import FastMCP

from event_extraction.orchestrator import ExtractionOrchestrator
from event_extraction.settings import ExtractionSettings
from .pdf_utils import load_document_text


mcp = FastMCP("SyllabusEventServer")

_orchestrator: t.Optional[ExtractionOrchestrator] = None


def get_orchestrator() -> ExtractionOrchestrator:
    """Build the orchestrator from the environment on first use."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = ExtractionOrchestrator(ExtractionSettings.from_env())
    return _orchestrator


def set_orchestrator(orchestrator: t.Optional[ExtractionOrchestrator]) -> None:
    global _orchestrator
    _orchestrator = orchestrator


# -----------------------------
# Tool implementations
# -----------------------------

async def extract_events(text: str, document_label: str = "syllabus.txt") -> dict[str, t.Any]:
    """Extract events from syllabus text; returns the alias-serialized result."""
    result = await get_orchestrator().extract_async(text, document_label)
    return result.to_dict()


async def extract_events_from_file(path_or_url: str) -> dict[str, t.Any]:
    """Load a PDF/text syllabus and extract its events."""
    text = load_document_text(path_or_url)
    label = PurePath(path_or_url.split("?", 1)[0]).name
    return await extract_events(text, label)


# -----------------------------
# MCP tools
# -----------------------------

@mcp.tool()
async def extract_syllabus_events(text: str, document_label: str = "syllabus.txt") -> dict[str, t.Any]:
    """
    Extract dated academic events (lectures, homework, exams, quizzes, projects,
    office hours) from plain syllabus text.

    Args:
        text: The full syllabus text
        document_label: Filename or similar, used for course-name fallbacks

    Returns:
        {"events": [...], "text": str, "source": str}; each event has title, date,
        endDate, description, location, eventType, confidence and approved.
    """
    return await extract_events(text, document_label)


@mcp.tool()
async def extract_syllabus_file(path_or_url: str) -> dict[str, t.Any]:
    """
    Extract dated academic events from a syllabus PDF or text file.

    Args:
        path_or_url: A local file path or an http(s) URL

    Returns:
        The same shape as extract_syllabus_events.
    """
    return await extract_events_from_file(path_or_url)


if __name__ == "__main__":
    # Run as an MCP server over stdio
    mcp.run()
