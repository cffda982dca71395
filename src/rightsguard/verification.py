"""Operator handoff at verification checkpoints."""

from __future__ import annotations

import threading
import time
from typing import Any

from rightsguard.cancellation import CancellationToken
from rightsguard.constants import HANDOFF_CANCELLED, HANDOFF_RESUMED, HANDOFF_TIMED_OUT


NOTICE_ELEMENT_ID = "__rightsguard_operator_notice"


class VerificationHandoff:
    """Task-scoped resume signal with a bounded wait.

    Signals are not latched: signalling a task nobody is waiting on does
    nothing, so a stale click can never skip a later checkpoint.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._waiting: list[str] = []
        self._signalled: set[str] = set()
        self._cancelled: set[str] = set()

    def await_operator(
        self,
        task_id: str,
        timeout_seconds: float,
        *,
        cancel: CancellationToken | None = None,
        poll_interval: float = 0.5,
    ) -> str:
        poll = max(0.01, float(poll_interval))
        deadline = time.monotonic() + max(0.0, float(timeout_seconds))
        with self._cond:
            if task_id in self._waiting:
                raise RuntimeError(f"Task {task_id} is already waiting for the operator")
            self._waiting.append(task_id)
            try:
                while True:
                    if task_id in self._cancelled or (cancel is not None and cancel.cancelled):
                        return HANDOFF_CANCELLED
                    if task_id in self._signalled:
                        return HANDOFF_RESUMED
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return HANDOFF_TIMED_OUT
                    self._cond.wait(min(poll, remaining))
            finally:
                self._waiting.remove(task_id)
                self._signalled.discard(task_id)
                self._cancelled.discard(task_id)

    def signal(self, task_id: str | None = None) -> bool:
        return self._mark(self._signalled, task_id)

    def cancel(self, task_id: str | None = None) -> bool:
        return self._mark(self._cancelled, task_id)

    def waiting_task_id(self) -> str:
        with self._cond:
            return self._waiting[0] if self._waiting else ""

    def _mark(self, bucket: set[str], task_id: str | None) -> bool:
        with self._cond:
            targets = list(self._waiting) if task_id is None else [task_id]
            targets = [item for item in targets if item in self._waiting]
            if not targets:
                return False
            bucket.update(targets)
            self._cond.notify_all()
            return True


def show_operator_notice(page: Any, message: str) -> None:
    try:
        page.evaluate(
            """
            ([id, msg]) => {
              let el = document.getElementById(id);
              if (!el) {
                el = document.createElement('div');
                el.id = id;
                el.style.position = 'fixed';
                el.style.left = '50%';
                el.style.top = '18px';
                el.style.transform = 'translateX(-50%)';
                el.style.padding = '10px 14px';
                el.style.borderRadius = '10px';
                el.style.background = 'rgba(245,158,11,0.95)';
                el.style.color = '#fff';
                el.style.font = '14px/1.4 sans-serif';
                el.style.zIndex = '2147483647';
                el.style.pointerEvents = 'none';
                el.style.boxShadow = '0 8px 18px rgba(0,0,0,0.3)';
                document.documentElement.appendChild(el);
              }
              el.textContent = String(msg || '');
            }
            """,
            [NOTICE_ELEMENT_ID, message],
        )
    except Exception:
        return


def clear_operator_notice(page: Any) -> None:
    try:
        page.evaluate(
            "([id]) => { const el = document.getElementById(id); if (el) el.remove(); }",
            [NOTICE_ELEMENT_ID],
        )
    except Exception:
        return
