"""Producer-side helpers for running an import job against a progress channel."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Mapping
from uuid import uuid4

from .events import ProgressEvent
from .manager import ProgressStreamManager

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent | Mapping[str, Any]], None]
ImportJob = Callable[[ProgressCallback], Awaitable[Any]]


def new_import_id() -> str:
    """Unguessable id the client uses to open the progress stream."""
    return str(uuid4())


async def run_import(manager: ProgressStreamManager, import_id: str, job: ImportJob) -> Any:
    """Run `job` with an on_progress callback bound to `import_id`.

    The job is expected to publish its own `done` event. If it raises, an
    `error` event is published instead and None is returned.
    """

    def on_progress(event: ProgressEvent | Mapping[str, Any]) -> None:
        manager.publish(import_id, event)

    try:
        return await job(on_progress)
    except Exception as e:
        logger.exception(f"Import {import_id} failed")
        manager.publish(import_id, ProgressEvent.error(str(e) or "Import failed"))
        return None
