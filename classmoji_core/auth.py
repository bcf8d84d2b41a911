"""Session check against the external auth service."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from fastapi import Request

from classmoji_core.config.settings import Settings

logger = logging.getLogger(__name__)

_FORWARDED_HEADERS = ("cookie", "authorization")


class SessionValidator:
    """Resolves the caller's session by asking the auth service.

    The request's cookie and authorization headers are forwarded to
    `auth_session_url`; a 200 response with a non-empty JSON body is a valid
    session. With no URL configured every request is unauthenticated.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings or Settings()
        self._client = client or httpx.AsyncClient(timeout=self._settings.auth_timeout)

    async def get_session(self, request: Request) -> Optional[dict[str, Any]]:
        url = self._settings.auth_session_url
        if not url:
            logger.warning("auth_session_url is not configured; rejecting request")
            return None

        headers = {
            name: request.headers[name] for name in _FORWARDED_HEADERS if name in request.headers
        }
        if not headers:
            return None

        try:
            resp = await self._client.get(url, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Session check failed: {e}")
            return None

        if resp.status_code != 200:
            return None
        try:
            data = resp.json()
        except ValueError:
            logger.error("Session check returned a non-JSON body")
            return None
        return data if isinstance(data, dict) and data else None
