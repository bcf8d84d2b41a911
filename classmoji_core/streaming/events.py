"""Import progress event types and SSE wire framing."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)


class ProgressEventType(str, Enum):
    """Event types published on an import progress channel."""

    CONNECTED = "connected"
    STEP = "step"
    DONE = "done"
    ERROR = "error"


TERMINAL_EVENT_TYPES = frozenset({ProgressEventType.DONE, ProgressEventType.ERROR})


@dataclass
class ProgressEvent:
    """A single progress event; `data` holds the type-specific fields."""

    event_type: ProgressEventType
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def connected(cls, import_id: str, timestamp: Optional[int] = None) -> ProgressEvent:
        if timestamp is None:
            timestamp = int(time.time() * 1000)
        return cls(ProgressEventType.CONNECTED, {"importId": import_id, "timestamp": timestamp})

    @classmethod
    def step(
        cls,
        step: str,
        current: int,
        total: int,
        filename: Optional[str] = None,
    ) -> ProgressEvent:
        data: dict[str, Any] = {"step": step, "current": current, "total": total}
        if filename is not None:
            data["filename"] = filename
        return cls(ProgressEventType.STEP, data)

    @classmethod
    def done(cls, result_id: str, **extra: Any) -> ProgressEvent:
        return cls(ProgressEventType.DONE, {"resultId": result_id, **extra})

    @classmethod
    def error(cls, message: str) -> ProgressEvent:
        return cls(ProgressEventType.ERROR, {"message": message})

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> ProgressEvent:
        """Build an event from a plain mapping such as `{"type": "step", ...}`.

        Raises ValueError when `type` is missing or unknown.
        """
        if "type" not in raw:
            raise ValueError("Progress event is missing 'type'")
        event_type = ProgressEventType(raw["type"])
        data = {k: v for k, v in raw.items() if k != "type"}
        return cls(event_type, data)

    @property
    def is_terminal(self) -> bool:
        return self.event_type in TERMINAL_EVENT_TYPES

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.event_type.value, **self.data}

    def to_sse_string(self) -> str:
        """Serialize to an unnamed SSE frame: `data: <json>\\n\\n`."""
        return f"data: {json.dumps(self.to_payload())}\n\n"


def coerce_event(event: ProgressEvent | Mapping[str, Any]) -> ProgressEvent:
    if isinstance(event, ProgressEvent):
        return event
    return ProgressEvent.from_dict(event)


def encode_frame(event: ProgressEvent) -> Optional[str]:
    """Return the SSE frame for `event`, or None if it cannot be encoded."""
    try:
        return event.to_sse_string()
    except (TypeError, ValueError) as e:
        logger.warning(f"Dropping unencodable {event.event_type.value} event: {e}")
        return None
