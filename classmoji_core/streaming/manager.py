"""ProgressStreamManager — per-import event buffering and SSE subscriber management."""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from typing import Any, AsyncGenerator, Callable, Mapping, Optional

from classmoji_core.config.settings import Settings
from classmoji_core.hooks.progress_hooks import describe_event

from .events import ProgressEvent, coerce_event, encode_frame
from .store import Channel, ChannelStore, InMemoryChannelStore

logger = logging.getLogger(__name__)

EventCallback = Callable[[ProgressEvent], Any]

_subscription_ids = itertools.count(1)


class Subscription:
    """Handle for one subscriber on one channel.

    `cancel()` (or calling the handle) detaches it; both are idempotent and
    safe after the channel has been destroyed.
    """

    def __init__(
        self,
        channel: Channel,
        on_event: EventCallback,
        on_close: Optional[Callable[[], Any]] = None,
    ) -> None:
        self.id = next(_subscription_ids)
        self.import_id = channel.import_id
        self._channel = channel
        self._on_event = on_event
        self._on_close = on_close
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def deliver(self, event: ProgressEvent) -> None:
        if self._active:
            self._on_event(event)

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        self._channel.subscribers.pop(self.id, None)

    def close(self) -> None:
        """Detach because the channel went away, notifying the owner."""
        if not self._active:
            return
        self.cancel()
        if self._on_close is not None:
            self._on_close()

    def __call__(self) -> None:
        self.cancel()


class ProgressStreamManager:
    """Manages SSE event distribution for running imports.

    Each import_id has a channel holding:
    - the subscribers registered for live events
    - a bounded buffer of published events, replayed to late subscribers
    - a closed flag, set once `done` or `error` has been published

    Closed channels are removed after `stream_cleanup_delay` seconds; every
    channel is removed after `stream_max_age` seconds regardless.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[ChannelStore] = None,
    ) -> None:
        self._settings = settings or Settings()
        self._store = store if store is not None else InMemoryChannelStore()
        self._cleanup_delay = self._settings.stream_cleanup_delay
        self._max_age = self._settings.stream_max_age
        self._max_buffer = self._settings.stream_max_buffer

    def publish(self, import_id: str, event: ProgressEvent | Mapping[str, Any]) -> None:
        """Buffer an event and deliver it to every current subscriber."""
        event = coerce_event(event)
        self._sweep()

        channel = self._store.get(import_id)
        if channel is None:
            channel = self._open(import_id)
        elif channel.closed:
            logger.debug(f"Import {import_id} is closed, dropping {event.event_type.value} event")
            return

        channel.buffer.append(event)
        logger.debug(f"Import {import_id}: {describe_event(event)}")

        for subscription in list(channel.subscribers.values()):
            self._deliver(subscription, event)

        if event.is_terminal:
            channel.closed = True
            self._schedule_cleanup(channel, self._cleanup_delay)

    def subscribe(
        self,
        import_id: str,
        on_event: EventCallback,
        on_close: Optional[Callable[[], Any]] = None,
    ) -> Subscription:
        """Replay buffered events to `on_event`, then register it for live events.

        `on_close` is called if the channel is destroyed while still subscribed.
        """
        self._sweep()
        channel = self._store.get(import_id) or self._open(import_id)
        subscription = Subscription(channel, on_event, on_close)

        for event in list(channel.buffer):
            self._deliver(subscription, event)

        if subscription.active:
            channel.subscribers[subscription.id] = subscription
        return subscription

    async def stream(self, import_id: str) -> AsyncGenerator[str, None]:
        """Async generator yielding SSE frames for an import.

        The first frame is always `connected`; buffered and live events follow.
        Ends after a terminal event or when the channel is destroyed.
        """
        queue: asyncio.Queue[Optional[ProgressEvent]] = asyncio.Queue()
        subscription = self.subscribe(
            import_id, queue.put_nowait, on_close=lambda: queue.put_nowait(None)
        )
        try:
            yield ProgressEvent.connected(import_id).to_sse_string()

            while True:
                event = await queue.get()
                if event is None:
                    break
                frame = encode_frame(event)
                if frame is not None:
                    yield frame
                if event.is_terminal:
                    break
        finally:
            subscription.cancel()

    def force_cleanup(self, import_id: str) -> None:
        channel = self._store.get(import_id)
        if channel is not None:
            self._destroy(channel)

    def stats(self) -> dict[str, int]:
        channels = list(self._store)
        return {
            "active_imports": len(channels),
            "pending_cleanups": sum(1 for c in channels if c.closed),
            "subscribers": sum(len(c.subscribers) for c in channels),
        }

    def _deliver(self, subscription: Subscription, event: ProgressEvent) -> None:
        try:
            subscription.deliver(event)
        except Exception:
            logger.exception(
                f"Subscriber {subscription.id} failed on {event.event_type.value} "
                f"event for import {subscription.import_id}"
            )

    def _open(self, import_id: str) -> Channel:
        channel = self._store.create(import_id, max_buffer=self._max_buffer)
        channel.expires_at = channel.created_at + self._max_age
        channel.expiry_handle = self._call_later(self._max_age, channel)
        logger.info(f"Opened progress channel for import {import_id}")
        return channel

    def _schedule_cleanup(self, channel: Channel, delay: float) -> None:
        if channel.cleanup_handle is not None:
            channel.cleanup_handle.cancel()
        channel.expires_at = min(channel.expires_at, time.monotonic() + delay)
        channel.cleanup_handle = self._call_later(delay, channel)

    def _call_later(self, delay: float, channel: Channel) -> Optional[asyncio.TimerHandle]:
        # Without a running loop the channel is removed by _sweep() instead.
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return None
        return loop.call_later(delay, self._expire, channel)

    def _expire(self, channel: Channel) -> None:
        # A timer may outlive its channel if the import id was reopened.
        if self._store.get(channel.import_id) is channel:
            self._destroy(channel)

    def _sweep(self) -> None:
        now = time.monotonic()
        for channel in list(self._store):
            if channel.expires_at <= now:
                self._destroy(channel)

    def _destroy(self, channel: Channel) -> None:
        if self._store.get(channel.import_id) is channel:
            self._store.remove(channel.import_id)
        channel.cancel_timers()
        for subscription in list(channel.subscribers.values()):
            subscription.close()
        channel.subscribers.clear()
        logger.info(f"Removed progress channel for import {channel.import_id}")
