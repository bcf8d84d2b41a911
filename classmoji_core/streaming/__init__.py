"""SSE streaming infrastructure for import progress."""

from .events import ProgressEvent, ProgressEventType
from .manager import ProgressStreamManager, Subscription
from .store import Channel, ChannelStore, InMemoryChannelStore

__all__ = [
    "Channel",
    "ChannelStore",
    "InMemoryChannelStore",
    "ProgressEvent",
    "ProgressEventType",
    "ProgressStreamManager",
    "Subscription",
]
