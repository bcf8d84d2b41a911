"""Webhook fan-out: replicates one inbound request to every live target."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Literal, Mapping, Optional, Union

import httpx
from pydantic import BaseModel

from classmoji_core.config.settings import Settings

from .discovery import DevportDiscovery, Endpoint, TargetDiscovery

logger = logging.getLogger(__name__)

# Recomputed by httpx for the buffered body.
_DROPPED_HEADERS = frozenset({"host", "content-length", "transfer-encoding", "connection"})

HeaderPairs = Iterable[tuple[Union[str, bytes], Union[str, bytes]]]


def _raw(value: Union[str, bytes]) -> bytes:
    return value if isinstance(value, bytes) else value.encode("latin-1")


def outbound_headers(
    headers: Union[Mapping[str, str], HeaderPairs], endpoint: Endpoint
) -> list[tuple[bytes, bytes]]:
    """Header lines to send to `endpoint`, repeats kept, Host rewritten.

    Values travel as raw bytes so non-ASCII header values pass through untouched.
    """
    pairs = headers.items() if isinstance(headers, Mapping) else headers
    outbound = [
        (_raw(name), _raw(value))
        for name, value in pairs
        if _raw(name).lower().decode("latin-1") not in _DROPPED_HEADERS
    ]
    outbound.append((b"host", endpoint.host_header.encode("ascii")))
    return outbound


class ForwardResult(BaseModel):
    port: int
    status: Union[int, Literal["error"]]
    message: Optional[str] = None


class FanoutResponse(BaseModel):
    fanout: bool = True
    forwarded_to: list[ForwardResult]


class FanoutRelay:
    """Forwards a request to all discovered targets concurrently.

    Every target yields a ForwardResult; connection failures are recorded
    as `status="error"` and never raised.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        discovery: Optional[TargetDiscovery] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings or Settings()
        self._discovery = discovery or DevportDiscovery(settings=self._settings)
        self._client = client or httpx.AsyncClient(timeout=self._settings.forward_timeout)

    def discover_targets(self) -> list[Endpoint]:
        try:
            return self._discovery.list_targets()
        except Exception as e:
            logger.warning(f"Target discovery failed, using default only: {e}")
            return [Endpoint(self._settings.hook_base_port, self._settings.target_host)]

    async def forward(
        self,
        endpoint: Endpoint,
        method: str,
        path: str,
        headers: Union[Mapping[str, str], HeaderPairs],
        body: bytes,
    ) -> ForwardResult:
        try:
            resp = await self._client.request(
                method,
                f"{endpoint.base_url}{path}",
                headers=outbound_headers(headers, endpoint),
                content=body,
            )
        except Exception as e:
            return ForwardResult(port=endpoint.port, status="error", message=str(e) or type(e).__name__)
        return ForwardResult(port=endpoint.port, status=resp.status_code)

    async def relay(
        self,
        method: str,
        path: str,
        headers: Union[Mapping[str, str], HeaderPairs],
        body: bytes,
    ) -> list[ForwardResult]:
        headers = list(headers.items() if isinstance(headers, Mapping) else headers)
        targets = self.discover_targets()
        logger.info(f"{method} {path} → {', '.join(str(t.port) for t in targets)}")

        results = await asyncio.gather(
            *(self.forward(target, method, path, headers, body) for target in targets)
        )

        summary = " ".join(f"{r.port}:{r.status}" for r in results)
        logger.info(f"Results: {summary}")
        return list(results)

    async def aclose(self) -> None:
        await self._client.aclose()
