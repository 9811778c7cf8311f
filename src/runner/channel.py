"""Progress channel between one worker thread and at most one consumer.

The producer never blocks beyond a short critical section. Intermediate
reports are buffered in a bounded deque (oldest dropped first); the final
report is kept separately so it is always the last one handed to an attached
consumer. Delivery happens on the consumer's thread via ``dispatch()``.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Callable

from .types import ProgressReport

logger = logging.getLogger(__name__)

ProgressConsumer = Callable[[ProgressReport], None]


class ProgressChannel:
    def __init__(self, max_pending: int = 64) -> None:
        if max_pending < 1:
            raise ValueError(f"max_pending must be >= 1, got {max_pending}.")
        self._lock = threading.Lock()
        self._pending: deque[ProgressReport] = deque(maxlen=max_pending)
        self._final: ProgressReport | None = None
        self._final_published = threading.Event()
        self._final_delivered = False
        self._consumer: ProgressConsumer | None = None
        self._started = False
        self._detached = False
        self._dropped = 0
        self._last_steps = 0

    @property
    def attached(self) -> bool:
        with self._lock:
            return self._consumer is not None

    @property
    def dropped(self) -> int:
        """Intermediate reports discarded because the buffer was full."""
        with self._lock:
            return self._dropped

    @property
    def finished(self) -> bool:
        return self._final_published.is_set()

    def attach(self, consumer: ProgressConsumer) -> None:
        with self._lock:
            if self._started:
                raise RuntimeError("Consumers must attach before the task starts.")
            if self._detached:
                raise RuntimeError("Channel consumer already detached.")
            self._consumer = consumer

    def detach(self) -> None:
        """Drop the consumer and anything still queued for it. Never blocks on the producer."""
        with self._lock:
            self._consumer = None
            self._detached = True
            self._pending.clear()
            self._final = None

    def mark_started(self) -> None:
        with self._lock:
            self._started = True

    def publish(self, report: ProgressReport) -> bool:
        """Queue a report; returns False when it was discarded."""
        with self._lock:
            if report.steps_completed < self._last_steps:
                raise ValueError(
                    f"Progress went backwards: {report.steps_completed} < {self._last_steps}."
                )
            self._last_steps = report.steps_completed
            if report.final:
                self._final_published.set()
            if self._consumer is None:
                return False
            if report.final:
                self._final = report
                return True
            if len(self._pending) == self._pending.maxlen:
                self._dropped += 1
            self._pending.append(report)
            return True

    def dispatch(self) -> int:
        """Deliver queued reports to the consumer; call from the consumer's thread."""
        delivered = 0
        while True:
            with self._lock:
                consumer = self._consumer
                if consumer is None:
                    return delivered
                if self._pending:
                    report = self._pending.popleft()
                elif self._final is not None and not self._final_delivered:
                    report = self._final
                    self._final = None
                    self._final_delivered = True
                else:
                    return delivered
            consumer(report)
            delivered += 1

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the final report has been published."""
        return self._final_published.wait(timeout)


__all__ = ["ProgressChannel", "ProgressConsumer"]
