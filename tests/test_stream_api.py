"""Tests for the import stream FastAPI endpoints -- SSE, auth gate, stats, health."""

import json
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from classmoji_core.config.settings import Settings
from classmoji_core.main import app, get_session_validator, get_stream_manager
from classmoji_core.streaming.events import ProgressEvent
from classmoji_core.streaming.manager import ProgressStreamManager

IMPORT_ID = "a1b2c3d4-e5f6-4a7b-8c9d-0e1f2a3b4c5d"


def _frames(body: str) -> list[dict]:
    return [json.loads(chunk[len("data: "):]) for chunk in body.split("\n\n") if chunk]


@pytest.fixture
def manager():
    manager = ProgressStreamManager(settings=Settings(stream_cleanup_delay=5.0))
    app.dependency_overrides[get_stream_manager] = lambda: manager
    yield manager
    manager.force_cleanup(IMPORT_ID)
    app.dependency_overrides.clear()


@pytest.fixture
def session():
    validator = AsyncMock()
    validator.get_session = AsyncMock(return_value={"user": {"id": "u1"}})
    app.dependency_overrides[get_session_validator] = lambda: validator
    return validator


class TestStreamEndpoint:
    @pytest.mark.asyncio
    async def test_invalid_import_id_returns_400(self, manager, session):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.get("/api/slides/import/stream/not-a-uuid")
        assert resp.status_code == 400
        assert resp.text == "Invalid import ID"
        session.get_session.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_session_returns_401(self, manager, session):
        session.get_session.return_value = None
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.get(f"/api/slides/import/stream/{IMPORT_ID}")
        assert resp.status_code == 401
        assert resp.text == "Unauthorized"

    @pytest.mark.asyncio
    async def test_streams_connected_history_and_terminal_event(self, manager, session):
        manager.publish(IMPORT_ID, ProgressEvent.step("processing_images", 5, 20, filename="hero.png"))
        manager.publish(IMPORT_ID, ProgressEvent.done("xyz"))

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.get(f"/api/slides/import/stream/{IMPORT_ID}")

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")
        assert resp.headers["cache-control"] == "no-cache, no-transform"
        assert resp.headers["x-accel-buffering"] == "no"

        frames = _frames(resp.text)
        assert [f["type"] for f in frames] == ["connected", "step", "done"]
        assert frames[0]["importId"] == IMPORT_ID
        assert frames[2]["resultId"] == "xyz"
        assert manager.stats()["subscribers"] == 0

    @pytest.mark.asyncio
    async def test_error_event_surfaces_to_client(self, manager, session):
        manager.publish(IMPORT_ID, ProgressEvent.error("Upload failed"))

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.get(f"/api/slides/import/stream/{IMPORT_ID}")

        frames = _frames(resp.text)
        assert frames[-1] == {"type": "error", "message": "Upload failed"}

    @pytest.mark.asyncio
    async def test_uppercase_import_id_accepted(self, manager, session):
        upper = IMPORT_ID.upper()
        manager.publish(upper, ProgressEvent.done("xyz"))

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.get(f"/api/slides/import/stream/{upper}")

        assert resp.status_code == 200
        assert [f["type"] for f in _frames(resp.text)] == ["connected", "done"]
        manager.force_cleanup(upper)


class TestAuxEndpoints:
    @pytest.mark.asyncio
    async def test_stats_reports_channels(self, manager):
        manager.publish(IMPORT_ID, ProgressEvent.step("parsing_html", 1, 3))
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.get("/api/slides/import/stats")
        assert resp.json() == {"active_imports": 1, "pending_cleanups": 0, "subscribers": 0}

    @pytest.mark.asyncio
    async def test_health_check_endpoint(self):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}
