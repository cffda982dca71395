"""Cooperative cancellation shared by every blocking point of a task."""

from __future__ import annotations

import threading

from rightsguard.errors import TaskCancelled


class CancellationToken:
    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; return True early when cancelled."""
        if seconds <= 0:
            return self._event.is_set()
        return self._event.wait(seconds)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise TaskCancelled()

    def sleep(self, seconds: float) -> None:
        if self.wait(seconds):
            raise TaskCancelled()
