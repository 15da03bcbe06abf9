"""
MCP wrapper for the syllabus service.

Exposes the same tools as syllabus_server/server.py but forwards each call
over HTTP to the syllabus REST service, so extraction (and its LLM calls)
runs in that service rather than in the MCP process.
"""
from __future__ import annotations

import os
import typing as t
from pathlib import PurePath

import httpx
from fastmcp import FastMCP

from services.shared.models import ExtractSyllabusFileRequest, ExtractSyllabusRequest, ExtractSyllabusResponse
from syllabus_server.pdf_utils import load_document_text


mcp = FastMCP("SyllabusEventMCPWrapper")

# Service URL - configurable via environment variable
SYLLABUS_SERVICE_URL = os.getenv("SYLLABUS_SERVICE_URL", "http://localhost:8001")

# Generative extraction can take a while on long syllabi (in seconds)
EXTRACT_TIMEOUT = 300.0


def _client() -> httpx.Client:
    return httpx.Client(base_url=SYLLABUS_SERVICE_URL, timeout=EXTRACT_TIMEOUT)


def _post(path: str, payload: dict[str, t.Any]) -> dict[str, t.Any]:
    try:
        with _client() as client:
            response = client.post(path, json=payload)
            response.raise_for_status()

        # Validate, then hand back the camelCase wire form
        return ExtractSyllabusResponse.model_validate(response.json()).model_dump(by_alias=True)

    except httpx.TimeoutException:
        raise RuntimeError(f"Event extraction timed out after {EXTRACT_TIMEOUT} seconds")
    except httpx.HTTPStatusError as e:
        raise RuntimeError(f"HTTP error from syllabus service: {e.response.status_code} {e.response.text}")
    except Exception as e:
        raise RuntimeError(f"Error calling syllabus service: {str(e)}")


def _extract_syllabus_events(text: str, document_label: str = "syllabus.txt") -> dict[str, t.Any]:
    """Extract events from syllabus text via the syllabus service."""
    request = ExtractSyllabusRequest(text=text, document_label=document_label)
    return _post("/syllabus:extract", request.model_dump())


def _extract_syllabus_file(path_or_url: str) -> dict[str, t.Any]:
    """
    Extract events from a syllabus file.

    URLs are fetched by the service; local files are read here and their
    text is sent, since the service may not share this filesystem.
    """
    if path_or_url.startswith('http://') or path_or_url.startswith('https://'):
        request = ExtractSyllabusFileRequest(path_or_url=path_or_url)
        return _post("/syllabus:extract-file", request.model_dump())
    text = load_document_text(path_or_url)
    return _extract_syllabus_events(text, PurePath(path_or_url).name)


# MCP tool wrappers that call the raw functions
@mcp.tool()
def extract_syllabus_events(text: str, document_label: str = "syllabus.txt") -> dict[str, t.Any]:
    """Extract dated academic events from plain syllabus text."""
    return _extract_syllabus_events(text, document_label)


@mcp.tool()
def extract_syllabus_file(path_or_url: str) -> dict[str, t.Any]:
    """Extract dated academic events from a syllabus PDF or text file (path or URL)."""
    return _extract_syllabus_file(path_or_url)
