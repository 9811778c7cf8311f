"""Lifecycle states of an optimization command.

``idle -> running -> {applied, detached}``; once finished the command toggles
between ``applied`` and ``reverted`` on undo/redo. ``detached`` is terminal.
"""

from __future__ import annotations

from runner.errors import InvalidCommandState

STATE_IDLE = "idle"
STATE_RUNNING = "running"
STATE_APPLIED = "applied"
STATE_REVERTED = "reverted"
STATE_DETACHED = "detached"

EVENT_REDO = "redo"
EVENT_UNDO = "undo"
EVENT_FINISH = "finish"

_TRANSITIONS: dict[tuple[str, str], str] = {
    (STATE_IDLE, EVENT_REDO): STATE_RUNNING,
    (STATE_RUNNING, EVENT_FINISH): STATE_APPLIED,
    (STATE_RUNNING, EVENT_UNDO): STATE_DETACHED,
    (STATE_APPLIED, EVENT_UNDO): STATE_REVERTED,
    (STATE_REVERTED, EVENT_REDO): STATE_APPLIED,
}


def next_state(state: str, event: str) -> str:
    """Return the state reached from ``state`` on ``event``.

    Raises:
        InvalidCommandState: If the transition is not allowed.
    """
    try:
        return _TRANSITIONS[(state, event)]
    except KeyError:
        raise InvalidCommandState(
            f"Cannot {event} an optimization command in state '{state}'."
        ) from None


__all__ = [
    "EVENT_FINISH",
    "EVENT_REDO",
    "EVENT_UNDO",
    "STATE_APPLIED",
    "STATE_DETACHED",
    "STATE_IDLE",
    "STATE_REVERTED",
    "STATE_RUNNING",
    "next_state",
]
