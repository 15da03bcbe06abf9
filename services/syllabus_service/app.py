"""
FastAPI service for syllabus event extraction.

This service exposes the extraction core over REST. A request may take
30-60 seconds when a hosted LLM is used, so the blocking work runs in a
worker thread.
"""
from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import PurePath

from fastapi import FastAPI, HTTPException

from event_extraction.course_info import course_info_from_label
from event_extraction.log import configure_logging
from event_extraction.orchestrator import ExtractionOrchestrator
from event_extraction.settings import ExtractionSettings
from services.shared.models import ExtractSyllabusFileRequest, ExtractSyllabusRequest, ExtractSyllabusResponse
from syllabus_server.pdf_utils import load_document_text

logger = logging.getLogger(__name__)

# Global orchestrator - will be initialized on startup
orchestrator: ExtractionOrchestrator = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize resources on startup and cleanup on shutdown."""
    global orchestrator

    configure_logging()
    if orchestrator is None:
        orchestrator = ExtractionOrchestrator(ExtractionSettings.from_env())
    logger.info("Extractor order: %s", ", ".join(e.name for e in orchestrator.extractors) or "rule_based only")

    yield


app = FastAPI(
    title="Syllabus Service",
    description="REST API for extracting dated academic events from syllabus text",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health_check():
    """Health check endpoint for container orchestration."""
    return {"status": "healthy", "service": "syllabus-service"}


async def _extract(text: str, document_label: str) -> ExtractSyllabusResponse:
    result = await orchestrator.extract_async(text, document_label)
    return ExtractSyllabusResponse(
        events=result.events,
        text=result.text,
        source=result.source,
        course_info=course_info_from_label(document_label),
    )


@app.post("/syllabus:extract", response_model=ExtractSyllabusResponse)
async def extract_syllabus(request: ExtractSyllabusRequest) -> ExtractSyllabusResponse:
    """
    Extract academic events from syllabus text.

    Zero events is a normal result, not an error.
    """
    try:
        return await _extract(request.text, request.document_label)
    except Exception as e:
        logger.exception("Extraction failed for %r", request.document_label)
        raise HTTPException(status_code=500, detail=f"Error extracting events: {str(e)}")


@app.post("/syllabus:extract-file", response_model=ExtractSyllabusResponse)
async def extract_syllabus_file(request: ExtractSyllabusFileRequest) -> ExtractSyllabusResponse:
    """Load a PDF or text file (path or URL) and extract its events."""
    try:
        text = await asyncio.to_thread(load_document_text, request.path_or_url)
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error reading document: {str(e)}")

    label = PurePath(request.path_or_url.split("?", 1)[0]).name
    try:
        return await _extract(text, label)
    except Exception as e:
        logger.exception("Extraction failed for %r", label)
        raise HTTPException(status_code=500, detail=f"Error extracting events: {str(e)}")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host=os.getenv("SYLLABUS_SERVICE_HOST", "0.0.0.0"),
        port=int(os.getenv("SYLLABUS_SERVICE_PORT", "8001")),
    )
