"""Linear undo/redo stack.

Modeled on Qt's ``QUndoStack``: ``push`` executes the command, adjacent
commands with equal ``merge_id`` may collapse into one undo step, and commands
that mark themselves obsolete during ``undo`` are dropped from the stack.
"""

from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class UndoCommand(Protocol):
    text: str

    @property
    def merge_id(self) -> str | None: ...

    @property
    def is_obsolete(self) -> bool: ...

    def redo(self) -> None: ...
    def undo(self) -> None: ...
    def try_merge_with(self, other: object) -> bool: ...


class CommandHistory:
    def __init__(self, undo_limit: int = 0) -> None:
        if undo_limit < 0:
            raise ValueError(f"undo_limit must be >= 0, got {undo_limit}.")
        self.undo_limit = undo_limit
        self._commands: list[UndoCommand] = []
        self._index = 0

    def __len__(self) -> int:
        return len(self._commands)

    @property
    def index(self) -> int:
        return self._index

    @property
    def commands(self) -> tuple[UndoCommand, ...]:
        return tuple(self._commands)

    def can_undo(self) -> bool:
        return self._index > 0

    def can_redo(self) -> bool:
        return self._index < len(self._commands)

    def undo_text(self) -> str | None:
        return self._commands[self._index - 1].text if self.can_undo() else None

    def redo_text(self) -> str | None:
        return self._commands[self._index].text if self.can_redo() else None

    def push(self, command: UndoCommand) -> None:
        """Execute ``command`` and record it; failures leave the stack unchanged.

        Pending progress is delivered first so that a command whose task already
        ended is finished (and mergeable) before the new one runs.
        """
        self.process_events()
        command.redo()
        discarded = self._commands[self._index:]
        del self._commands[self._index:]
        if discarded:
            logger.debug("Discarding %d redoable command(s).", len(discarded))
        top = self._commands[-1] if self._commands else None
        if (
            top is not None
            and command.merge_id is not None
            and top.merge_id == command.merge_id
            and command.try_merge_with(top)
        ):
            self._commands[-1] = command
        else:
            self._commands.append(command)
            self._enforce_limit()
        self._index = len(self._commands)

    def undo(self) -> bool:
        if not self.can_undo():
            return False
        self._index -= 1
        command = self._commands[self._index]
        command.undo()
        if command.is_obsolete:
            del self._commands[self._index]
            logger.debug("Dropped obsolete command %r.", command.text)
        return True

    def redo(self) -> bool:
        if not self.can_redo():
            return False
        command = self._commands[self._index]
        command.redo()
        self._index += 1
        return True

    def process_events(self) -> int:
        """Let running commands consume their progress reports."""
        delivered = 0
        for command in list(self._commands):
            process = getattr(command, "process_events", None)
            if process is not None:
                delivered += process()
        return delivered

    def wait_all(self, timeout: float | None = None) -> bool:
        """Shutdown helper: wait for every command's background work."""
        finished = True
        for command in list(self._commands):
            wait = getattr(command, "wait", None)
            if wait is not None:
                finished = wait(timeout) and finished
        return finished

    def clear(self) -> None:
        for command in self._commands:
            request_stop = getattr(command, "request_stop", None)
            if request_stop is not None:
                request_stop()
        self._commands.clear()
        self._index = 0

    def _enforce_limit(self) -> None:
        if not self.undo_limit:
            return
        while len(self._commands) > self.undo_limit:
            evicted = self._commands.pop(0)
            logger.debug("Undo limit reached; evicting %r.", evicted.text)


__all__ = ["CommandHistory", "UndoCommand"]
