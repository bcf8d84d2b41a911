"""Maps import step names to human-readable progress labels."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from classmoji_core.streaming.events import ProgressEvent

# Step name -> user-facing label
STEP_LABELS: dict[str, str] = {
    "extracting_zip": "Extracting ZIP archive",
    "parsing_html": "Parsing slide structure",
    "creating_repo": "Setting up repository",
    "processing_images": "Processing images",
    "processing_videos": "Processing videos",
    "uploading_cloudinary": "Uploading to Cloudinary",
    "saving_theme": "Saving shared theme",
    "generating_html": "Generating HTML",
    "uploading_github": "Uploading to GitHub",
}

_DEFAULT_LABEL = "Processing..."


def get_step_label(step: str | None) -> str:
    """Return the label for a step name; unknown steps get "Processing..."."""
    if step is None:
        return _DEFAULT_LABEL
    return STEP_LABELS.get(step, _DEFAULT_LABEL)


def describe_event(event: ProgressEvent) -> str:
    """One-line summary of a progress event for log output."""
    kind = event.event_type.value
    data = event.data

    if kind == "step":
        text = get_step_label(data.get("step"))
        if data.get("total"):
            text += f" ({data.get('current')}/{data['total']})"
        if data.get("filename"):
            text += f" {data['filename']}"
        return text
    if kind == "done":
        return f"Import complete ({data.get('resultId')})"
    if kind == "error":
        return f"Import failed: {data.get('message')}"
    return "Connected"
