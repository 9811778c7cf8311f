"""Lifecycle events of optimization tasks and commands.

Each event is logged twice over: as a one-line message for the console and log
file, and as structured fields on the record (``record.event``) which the
JSON-lines handler writes out verbatim.
"""

from __future__ import annotations

import logging
from typing import Any

EVT_TASK_STARTED = "task_started"
EVT_TASK_PROGRESS = "task_progress"
EVT_TASK_FINISHED = "task_finished"
EVT_COMMAND_DETACHED = "command_detached"
EVT_COMMAND_MERGED = "command_merged"


def make_event(event_type: str, task_id: str | None, **fields: Any) -> dict[str, Any]:
    """Build an event dict; fields that are None are left out."""
    event: dict[str, Any] = {"event_type": event_type, "task_id": task_id or "-"}
    event.update((key, value) for key, value in fields.items() if value is not None)
    return event


def render_message(event: dict[str, Any]) -> str:
    """``[ffopt] <event_type> | task_id=<id> | key=value ...``"""
    parts = [f"[ffopt] {event['event_type']}", f"task_id={event['task_id']}"]
    for key, value in event.items():
        if key in ("event_type", "task_id"):
            continue
        if isinstance(value, float):
            value = f"{value:.8g}"
        parts.append(f"{key}={value}")
    return " | ".join(parts)


def log_event(
    log: logging.Logger,
    event_type: str,
    task_id: str | None,
    *,
    level: int = logging.INFO,
    **fields: Any,
) -> dict[str, Any] | None:
    """Log a lifecycle event on ``log``; returns the event, or None when filtered by level."""
    if not log.isEnabledFor(level):
        return None
    event = make_event(event_type, task_id, **fields)
    log.log(
        level,
        render_message(event),
        extra={"task_id": event["task_id"], "event": event},
        stacklevel=2,
    )
    return event


__all__ = [
    "EVT_COMMAND_DETACHED",
    "EVT_COMMAND_MERGED",
    "EVT_TASK_FINISHED",
    "EVT_TASK_PROGRESS",
    "EVT_TASK_STARTED",
    "log_event",
    "make_event",
    "render_message",
]
