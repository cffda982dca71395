"""Task lifecycle: setup, background execution, status snapshots and stop."""

from __future__ import annotations

import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Callable

from rightsguard.browser_connection import BrowserConnectionManager
from rightsguard.cancellation import CancellationToken
from rightsguard.config import AutomationConfig, load_config
from rightsguard.constants import (
    CASE_STATUS_SUBMITTED,
    CONNECTION_ORDER,
    STAGING_LAYOUT,
    STATE_CANCELLED,
    STATE_COMPLETED,
    STATE_CONNECTING,
    STATE_FAILED,
    STATE_LAUNCHING,
    STATE_TRANSITIONS,
)
from rightsguard.errors import (
    AutomationError,
    IpAssetMissing,
    ProfileMissing,
    TaskAlreadyRunning,
    TaskCancelled,
)
from rightsguard.file_staging import FileStagingService
from rightsguard.models import AutomationStatus, AutomationTask, Case
from rightsguard.page_model import BILIBILI_APPEAL_PAGE, AppealPageModel
from rightsguard.record_store import RecordStore
from rightsguard.script_generator import (
    STAGED_AUTH_DOCS,
    STAGED_ID_CARDS,
    STAGED_PROOF_DOCS,
    AutomationSequence,
    render,
)
from rightsguard.sequence_runner import SequenceRunner
from rightsguard.storage import RunContext, append_log, create_run_context, write_json, write_status
from rightsguard.upload_strategies import validate_upload_files
from rightsguard.verification import VerificationHandoff


class AutomationController:
    """Owns the single in-flight appeal task.

    ``start`` performs every setup check synchronously and only then hands the
    task to a daemon worker thread. Status is an immutable snapshot replaced
    under ``_lock``; nothing blocks while holding it. Playwright objects are
    created, used and released on the worker thread.
    """

    def __init__(
        self,
        config: AutomationConfig,
        records: RecordStore,
        *,
        staging: FileStagingService | None = None,
        connections: BrowserConnectionManager | None = None,
        handoff: VerificationHandoff | None = None,
        page_model: AppealPageModel = BILIBILI_APPEAL_PAGE,
        runner_factory: Callable[..., SequenceRunner] = SequenceRunner,
    ):
        self.config = config
        self.records = records
        self.staging = staging or FileStagingService(config.files_dir)
        self.connections = connections or BrowserConnectionManager(config)
        self.handoff = handoff or VerificationHandoff()
        self.page_model = page_model
        self._runner_factory = runner_factory
        self._lock = Lock()
        self._publish_lock = Lock()
        self._status = AutomationStatus()
        self._cancel: CancellationToken | None = None
        self._browser: Any | None = None
        self._worker: threading.Thread | None = None
        self._run: RunContext | None = None

    def start(
        self,
        infringing_url: str,
        original_url: str | None = None,
        ip_asset_id: str | None = None,
        strategy: str | None = None,
    ) -> AutomationStatus:
        self._ensure_no_task()

        profile = self.records.get_profile()
        if profile is None:
            raise ProfileMissing()
        asset = None
        if ip_asset_id:
            asset = self.records.get_ip_asset(ip_asset_id)
            if asset is None:
                raise IpAssetMissing(ip_asset_id)

        staged = {STAGED_ID_CARDS: self.staging.resolve_all(profile.id_card_files)}
        if asset is not None:
            staged[STAGED_AUTH_DOCS] = self.staging.resolve_all(asset.auth_files)
            staged[STAGED_PROOF_DOCS] = self.staging.resolve_all(asset.work_proof_files)
        for paths in staged.values():
            if paths:
                validate_upload_files(paths)

        preferred = str(strategy or self.config.pinned_strategy or "").strip().lower()
        if preferred and preferred not in CONNECTION_ORDER:
            raise ValueError(f"Unknown connection strategy: {preferred}")

        task = AutomationTask(
            id=str(uuid.uuid4()),
            infringing_url=str(infringing_url or "").strip(),
            profile=profile,
            created_at=_now(),
            original_url=str(original_url or "").strip(),
            ip_asset=asset,
        )
        sequence = render(task, staged, self.page_model, auto_submit=self.config.auto_submit)

        run = create_run_context(self.config.runs_dir)
        cancel = CancellationToken()
        with self._lock:
            if self._status.is_running:
                raise TaskAlreadyRunning("Another appeal task is already running")
            now = _now()
            self._status = AutomationStatus(
                state=STATE_LAUNCHING,
                current_step="Preparing browser",
                progress=0.0,
                started_at=now,
                task_id=task.id,
                updated_at=now,
            )
            self._cancel = cancel
            self._run = run
            worker = threading.Thread(
                target=self._run_task,
                args=(task, sequence, preferred, cancel, run),
                name=f"rightsguard-task-{task.id[:8]}",
                daemon=True,
            )
            self._worker = worker

        append_log(
            run.log_path,
            f"task {task.id} started url={task.infringing_url} ip_asset={asset.id if asset else '-'} "
            f"steps={len(sequence)} strategy={preferred or 'auto'}",
        )
        write_json(run.sequence_path, _redacted(sequence))
        self._publish()
        worker.start()
        return self.get_status()

    def stop(self) -> AutomationStatus:
        with self._lock:
            cancel = self._cancel
            browser = self._browser
            task_id = self._status.task_id
            running = self._status.is_running
        if cancel is not None:
            cancel.cancel()
        if task_id:
            self.handoff.cancel(task_id)
        if browser is not None and browser.owns_browser:
            browser.terminate_process()
        if running and self._finish(task_id, STATE_CANCELLED, "Cancelled"):
            self._log("stop requested by operator")
        return self.get_status()

    def get_status(self) -> AutomationStatus:
        with self._lock:
            return self._status

    def continue_after_verification(self) -> bool:
        task_id = self.get_status().task_id
        if not task_id:
            return False
        resumed = self.handoff.signal(task_id)
        self._log(f"continue requested; waiting task resumed={resumed}")
        return resumed

    def join(self, timeout: float | None = None) -> bool:
        worker = self._worker
        if worker is None:
            return True
        worker.join(timeout)
        return not worker.is_alive()

    def _ensure_no_task(self) -> None:
        # A terminal task whose worker is still blocked in a browser call does not count.
        if self.get_status().is_running:
            raise TaskAlreadyRunning("Another appeal task is already running")

    def _run_task(
        self,
        task: AutomationTask,
        sequence: AutomationSequence,
        preferred: str,
        cancel: CancellationToken,
        run: RunContext,
    ) -> None:
        browser = None

        def log(message: str) -> None:
            self._log(message, run)

        try:
            browser = self.connections.acquire(
                preferred,
                cancel=cancel,
                on_connecting=lambda name: self._advance(task.id, STATE_CONNECTING, f"Connecting ({name})", None),
                log_dir=run.run_dir,
            )
            with self._lock:
                if self._cancel is cancel:
                    self._browser = browser
            cancel.raise_if_cancelled()
            runner = self._runner_factory(
                browser.page,
                self.config,
                handoff=self.handoff,
                task_id=task.id,
                cancel=cancel,
                report=lambda phase, label, progress: self._advance(task.id, phase, label, progress),
                log=log,
                page_model=self.page_model,
            )
            runner.run(sequence)
            cancel.raise_if_cancelled()
            self._record_case(task, log)
            self._finish(task.id, STATE_COMPLETED, "Completed", progress=1.0)
        except TaskCancelled:
            self._finish(task.id, STATE_CANCELLED, "Cancelled")
        except AutomationError as exc:
            self._finish(task.id, STATE_FAILED, "Failed", error=str(exc), error_kind=exc.kind)
        except Exception as exc:
            self._finish(
                task.id,
                STATE_FAILED,
                "Failed",
                error=f"unexpected error: {type(exc).__name__}: {exc}",
                error_kind="unexpected",
            )
        finally:
            with self._lock:
                if self._cancel is cancel:
                    self._browser = None
                    self._cancel = None
            if browser is not None:
                # Completed or failed pages stay open for the operator; stop tears down.
                browser.release(terminate=cancel.cancelled)

    def _advance(self, task_id: str, phase: str, label: str, progress: float | None) -> None:
        with self._lock:
            current = self._status
            if current.task_id != task_id or current.is_terminal:
                return
            run = self._run
            state = current.state
            if phase and phase != state and phase in STATE_TRANSITIONS.get(state, ()):
                state = phase
            self._status = replace(
                current,
                state=state,
                current_step=label or current.current_step,
                progress=current.progress if progress is None else progress,
                updated_at=_now(),
            )
        if state != current.state:
            self._log(f"state {current.state} -> {state} step={label}", run)
        self._publish()

    def _finish(
        self,
        task_id: str,
        state: str,
        label: str,
        *,
        progress: float | None = None,
        error: str = "",
        error_kind: str = "",
    ) -> bool:
        with self._lock:
            current = self._status
            if current.task_id != task_id or current.is_terminal:
                return False
            run = self._run
            self._status = replace(
                current,
                state=state,
                current_step=label,
                progress=current.progress if progress is None else progress,
                error=error,
                error_kind=error_kind,
                updated_at=_now(),
            )
        self._log(f"state {current.state} -> {state}" + (f" error[{error_kind}]={error}" if error else ""), run)
        self._publish()
        return True

    def _record_case(self, task: AutomationTask, log: Callable[[str], None]) -> None:
        case = Case(
            infringing_url=task.infringing_url,
            original_url=task.original_url,
            associated_ip_id=task.ip_asset.id if task.ip_asset is not None else "",
            status=CASE_STATUS_SUBMITTED,
            submission_date=datetime.now(timezone.utc).date().isoformat(),
        )
        try:
            saved = self.records.save_case(case)
        except (OSError, ValueError) as exc:
            log(f"case record not saved: {exc}")
            return
        log(f"case {saved.id} recorded status={saved.status}")

    def _log(self, message: str, run: RunContext | None = None) -> None:
        run = run or self._run
        if run is None:
            return
        try:
            append_log(run.log_path, message)
        except OSError:
            return

    def _publish(self) -> None:
        with self._publish_lock:
            run = self._run
            snapshot = self.get_status()
            try:
                write_status(
                    self.config.status_path,
                    snapshot.to_dict(),
                    run_id=run.run_id if run else "",
                    run_dir=run.run_dir if run else None,
                )
            except OSError as exc:
                self._log(f"status not written: {exc}")


def create_controller(config: AutomationConfig | None = None) -> AutomationController:
    config = config or load_config()
    staging = FileStagingService(config.files_dir)
    staging.ensure_layout(STAGING_LAYOUT)
    return AutomationController(config, RecordStore(config.records_path), staging=staging)


def _redacted(sequence: AutomationSequence) -> dict[str, Any]:
    payload = sequence.to_dict()
    for step in payload["steps"]:
        step.pop("value", None)
    return payload


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
