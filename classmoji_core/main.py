"""FastAPI application for import progress — SSE streaming endpoint."""

from __future__ import annotations

import logging
import re

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, StreamingResponse

from classmoji_core.auth import SessionValidator
from classmoji_core.config.settings import Settings
from classmoji_core.streaming import ProgressStreamManager

settings = Settings()

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Classmoji Import Stream", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Singleton stream manager; import jobs in this process publish to it.
stream_manager = ProgressStreamManager(settings=settings)
session_validator = SessionValidator(settings=settings)

IMPORT_ID_PATTERN = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.IGNORECASE
)

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def get_stream_manager() -> ProgressStreamManager:
    return stream_manager


def get_session_validator() -> SessionValidator:
    return session_validator


@app.get("/api/slides/import/stream/{import_id}")
async def stream_import(
    import_id: str,
    request: Request,
    manager: ProgressStreamManager = Depends(get_stream_manager),
    validator: SessionValidator = Depends(get_session_validator),
):
    """SSE endpoint: streams import progress events."""
    if not IMPORT_ID_PATTERN.fullmatch(import_id):
        return PlainTextResponse("Invalid import ID", status_code=400)

    session = await validator.get_session(request)
    if session is None:
        return PlainTextResponse("Unauthorized", status_code=401)

    logger.info(f"SSE client connected for import {import_id}")
    return StreamingResponse(
        manager.stream(import_id),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@app.get("/api/slides/import/stats")
async def import_stats(manager: ProgressStreamManager = Depends(get_stream_manager)):
    """Channel counts for debugging."""
    return manager.stats()


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok"}


def run() -> None:
    import uvicorn

    uvicorn.run(
        "classmoji_core.main:app",
        host=settings.stream_host,
        port=settings.stream_port,
        log_level=settings.log_level.lower(),
    )
