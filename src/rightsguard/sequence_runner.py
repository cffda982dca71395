"""Execution of a rendered automation sequence on a live page."""

from __future__ import annotations

from typing import Any, Callable

from rightsguard.cancellation import CancellationToken
from rightsguard.config import AutomationConfig
from rightsguard.constants import HANDOFF_CANCELLED, HANDOFF_RESUMED, STATE_RESUMING
from rightsguard.errors import AutomationError, StepFailed, TaskCancelled, VerificationTimeout
from rightsguard.page_model import BILIBILI_APPEAL_PAGE, AppealPageModel
from rightsguard.script_generator import (
    DROPDOWN_WAIT_MS,
    STEP_AWAIT_CONFIRMATION,
    STEP_AWAIT_VERIFICATION,
    STEP_CHECK,
    STEP_CHOOSE,
    STEP_CLICK,
    STEP_FILL,
    STEP_NAVIGATE,
    STEP_SUBMIT,
    STEP_UPLOAD,
    AutomationSequence,
    AutomationStep,
)
from rightsguard.upload_strategies import UploadStrategySelector
from rightsguard.verification import VerificationHandoff, clear_operator_notice, show_operator_notice


VERIFICATION_NOTICE = "请完成滑块/短信验证，然后点击“继续”。Complete the verification, then press Continue."
CONFIRMATION_NOTICE = "请检查表单并手动提交，然后点击“继续”。Review and submit the form, then press Continue."

Reporter = Callable[[str, str, float], None]


class SequenceRunner:
    def __init__(
        self,
        page: Any,
        config: AutomationConfig,
        *,
        handoff: VerificationHandoff,
        task_id: str,
        cancel: CancellationToken,
        report: Reporter,
        log: Callable[[str], None] | None = None,
        uploader: UploadStrategySelector | None = None,
        page_model: AppealPageModel = BILIBILI_APPEAL_PAGE,
    ):
        self.page = page
        self.config = config
        self.handoff = handoff
        self.task_id = task_id
        self.cancel = cancel
        self._report = report
        self._log = log or (lambda _msg: None)
        self.page_model = page_model
        self.uploader = uploader or UploadStrategySelector(
            page,
            settle_seconds=config.upload_settle_seconds,
            timeout_ms=config.file_chooser_timeout_ms,
            log=self._log,
        )
        self._progress = 0.0

    def run(self, sequence: AutomationSequence) -> None:
        total = max(1, len(sequence))
        for index, step in enumerate(sequence.steps, start=1):
            self.cancel.raise_if_cancelled()
            self._progress = (index - 1) / total
            self._report(step.phase, step.label, self._progress)
            self._log(f"step {index}/{total} kind={step.kind} label={step.label}")
            self._execute(step)
            pause_ms = step.wait_after_ms or int(self.config.step_pause_seconds * 1000)
            if pause_ms > 0 and index < total:
                self.cancel.sleep(pause_ms / 1000.0)

    def _execute(self, step: AutomationStep) -> None:
        if step.kind == STEP_UPLOAD:
            widget = self.page_model.upload_widget(step.target)
            result = self.uploader.upload(step.files, widget, cancel=self.cancel)
            self._log(f"upload {widget.name} attached via {result.strategy_name} ({result.evidence_count} items)")
            return
        if step.kind == STEP_AWAIT_VERIFICATION:
            self._await_operator(VERIFICATION_NOTICE, self.config.verification_timeout_seconds, resume=True)
            return
        if step.kind == STEP_AWAIT_CONFIRMATION:
            self._await_operator(CONFIRMATION_NOTICE, self.config.confirmation_timeout_seconds, resume=False)
            return

        timeout = self.config.step_timeout_ms
        try:
            if step.kind == STEP_NAVIGATE:
                self.page.goto(step.target, timeout=self.config.navigation_timeout_ms, wait_until="networkidle")
            elif step.kind == STEP_FILL:
                self.page.locator(step.target).first.fill(step.value, timeout=timeout)
            elif step.kind == STEP_CHOOSE:
                self.page.locator(step.target).first.click(timeout=timeout)
                self.cancel.sleep(DROPDOWN_WAIT_MS / 1000.0)
                self.page.locator(step.value).first.click(timeout=timeout)
            elif step.kind in (STEP_CLICK, STEP_CHECK, STEP_SUBMIT):
                self.page.locator(step.target).first.click(timeout=timeout)
            else:
                raise StepFailed(step.label or step.kind, f"unsupported step kind '{step.kind}'")
        except AutomationError:
            raise
        except Exception as exc:
            raise StepFailed(step.label or step.kind, str(exc).splitlines()[0] if str(exc) else type(exc).__name__) from exc

    def _await_operator(self, notice: str, timeout_seconds: float, *, resume: bool) -> None:
        show_operator_notice(self.page, notice)
        self._log(f"waiting for operator (timeout={timeout_seconds:.0f}s)")
        try:
            outcome = self.handoff.await_operator(
                self.task_id,
                timeout_seconds,
                cancel=self.cancel,
                poll_interval=self.config.handoff_poll_seconds,
            )
        finally:
            clear_operator_notice(self.page)
        self._log(f"operator handoff outcome={outcome}")
        if outcome == HANDOFF_CANCELLED:
            raise TaskCancelled()
        if outcome != HANDOFF_RESUMED:
            raise VerificationTimeout(timeout_seconds)
        if resume:
            self._report(STATE_RESUMING, "Resuming after verification", self._progress)
