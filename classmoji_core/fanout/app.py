"""FastAPI application for the webhook fan-out relay.

Listens where the webhook tunnel points and forwards every delivery to all
active hook-station instances. Always answers 200 so the provider never
retries because one target was down.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import PlainTextResponse
from starlette.requests import ClientDisconnect

from classmoji_core.config.settings import Settings

from .relay import FanoutRelay, FanoutResponse

settings = Settings()

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

fanout_relay = FanoutRelay(settings=settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    targets = ", ".join(str(t.port) for t in fanout_relay.discover_targets())
    logger.info(f"Webhook fanout listening on port {settings.fanout_port}")
    logger.info(f"Forwarding to hook-stations: {targets}")
    yield
    logger.info("Shutting down webhook fanout...")
    await fanout_relay.aclose()


app = FastAPI(title="Classmoji Webhook Fanout", version="0.1.0", lifespan=lifespan)


def get_relay() -> FanoutRelay:
    return fanout_relay


@app.api_route(
    "/{path:path}",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD", "TRACE", "CONNECT"],
    response_model=FanoutResponse,
    response_model_exclude_none=True,
)
async def fanout(request: Request, relay: FanoutRelay = Depends(get_relay)):
    """Relay the request verbatim to every target and summarize the outcomes."""
    try:
        body = await request.body()
    except ClientDisconnect as e:
        logger.error(f"Request error: {e}")
        return PlainTextResponse("Internal Server Error", status_code=500)

    # Undecoded path, as sent by the webhook source.
    raw_path = request.scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else request.url.path
    query = request.scope.get("query_string", b"")
    if query:
        path = f"{path}?{query.decode('latin-1')}"

    results = await relay.relay(request.method, path, request.headers.raw, body)
    return FanoutResponse(forwarded_to=results)
