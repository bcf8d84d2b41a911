"""Channel storage for import progress streams.

The manager only talks to a ChannelStore, so the in-process registry can be
replaced by one backed by an external broker without touching callers.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterator, Optional

from .events import ProgressEvent

if TYPE_CHECKING:
    from .manager import Subscription


@dataclass(eq=False)
class Channel:
    """Buffered history and live subscribers for one import."""

    import_id: str
    buffer: deque[ProgressEvent]
    subscribers: dict[int, Subscription] = field(default_factory=dict)
    closed: bool = False
    created_at: float = field(default_factory=time.monotonic)
    expires_at: float = float("inf")
    cleanup_handle: Optional[asyncio.TimerHandle] = None
    expiry_handle: Optional[asyncio.TimerHandle] = None

    def cancel_timers(self) -> None:
        for handle in (self.cleanup_handle, self.expiry_handle):
            if handle is not None:
                handle.cancel()
        self.cleanup_handle = None
        self.expiry_handle = None


class ChannelStore(ABC):
    """Abstract registry of progress channels keyed by import id."""

    @abstractmethod
    def get(self, import_id: str) -> Optional[Channel]:
        ...

    @abstractmethod
    def create(self, import_id: str, max_buffer: int) -> Channel:
        """Create and register an empty channel, replacing any existing one."""
        ...

    @abstractmethod
    def remove(self, import_id: str) -> Optional[Channel]:
        ...

    @abstractmethod
    def __iter__(self) -> Iterator[Channel]:
        ...

    @abstractmethod
    def __len__(self) -> int:
        ...


class InMemoryChannelStore(ChannelStore):
    """Process-local store. Producer and SSE endpoint must share the process."""

    def __init__(self) -> None:
        self._channels: dict[str, Channel] = {}

    def get(self, import_id: str) -> Optional[Channel]:
        return self._channels.get(import_id)

    def create(self, import_id: str, max_buffer: int) -> Channel:
        channel = Channel(import_id=import_id, buffer=deque(maxlen=max_buffer))
        self._channels[import_id] = channel
        return channel

    def remove(self, import_id: str) -> Optional[Channel]:
        return self._channels.pop(import_id, None)

    def __iter__(self) -> Iterator[Channel]:
        return iter(list(self._channels.values()))

    def __len__(self) -> int:
        return len(self._channels)
