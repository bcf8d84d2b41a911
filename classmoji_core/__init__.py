"""Classmoji event-streaming core: webhook fan-out and import progress SSE."""
