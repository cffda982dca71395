"""Error taxonomy for the automation engine.

Every error carries a stable ``kind`` (reported in status payloads) and a short
remediation ``hint`` the presentation layer may show next to the message.
"""

from __future__ import annotations

from typing import Any


class AutomationError(Exception):
    kind = "automation_error"
    hint = ""


class TaskAlreadyRunning(AutomationError):
    kind = "task_already_running"
    hint = "Wait for the current task to finish or stop it first."


class IncompleteTaskData(AutomationError):
    kind = "incomplete_task_data"
    hint = "Complete the listed fields in the profile or IP asset and retry."

    def __init__(self, missing: list[str]):
        self.missing = list(missing)
        super().__init__(f"Task data incomplete, missing: {', '.join(self.missing)}")


class ProfileMissing(AutomationError):
    kind = "profile_missing"
    hint = "Create a personal profile before starting an appeal."

    def __init__(self, message: str = "No personal profile configured"):
        super().__init__(message)


class IpAssetMissing(AutomationError):
    kind = "ip_asset_missing"
    hint = "Pick an existing IP asset or start without one."

    def __init__(self, asset_id: str):
        self.asset_id = asset_id
        super().__init__(f"IP asset not found: {asset_id}")


class InvalidUploadFile(AutomationError):
    kind = "invalid_upload_file"
    hint = "Re-attach the file in the profile or IP asset."

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid upload file ({reason}): {path}")


class StagedFileMissing(AutomationError):
    kind = "staged_file_missing"
    hint = "The staged copy was removed; select the file again."

    def __init__(self, relative_path: str, absolute_path: str = ""):
        self.relative_path = relative_path
        self.absolute_path = absolute_path
        where = f" (expected at {absolute_path})" if absolute_path else ""
        super().__init__(f"Staged file missing: {relative_path}{where}")


class BrowserUnavailable(AutomationError):
    kind = "browser_unavailable"
    hint = "Install Chrome/Chromium or set RIGHTSGUARD_BROWSER_BINARY."


class ConnectionTimeout(AutomationError):
    kind = "connection_timeout"
    hint = "Start the browser with remote debugging manually, then retry."

    def __init__(self, strategy: str, attempts: int, elapsed_seconds: float, endpoint: str = ""):
        self.strategy = strategy
        self.attempts = attempts
        self.elapsed_seconds = elapsed_seconds
        self.endpoint = endpoint
        super().__init__(
            f"Timed out connecting to browser via {strategy} "
            f"(attempts={attempts}, elapsed={elapsed_seconds:.1f}s"
            + (f", endpoint={endpoint})" if endpoint else ")")
        )


class UploadExhausted(AutomationError):
    kind = "upload_exhausted"
    hint = "Inspect the upload widget on the page, then retry the task."

    def __init__(self, target: str, attempts: list[Any]):
        self.target = target
        self.attempts = list(attempts)
        reasons = "; ".join(
            f"{getattr(item, 'strategy_name', '?')}: {getattr(item, 'error', '') or 'no attached item'}"
            for item in self.attempts
        )
        super().__init__(f"All upload strategies failed for {target}: {reasons}")


class StepFailed(AutomationError):
    kind = "step_failed"
    hint = "The page layout may have changed; check the page model selectors."

    def __init__(self, label: str, reason: str):
        self.label = label
        self.reason = reason
        super().__init__(f"Step failed: {label}: {reason}")


class VerificationTimeout(AutomationError):
    kind = "verification_timeout"
    hint = "Complete the verification sooner or raise RIGHTSGUARD_VERIFICATION_TIMEOUT_SECONDS."

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Operator verification not completed within {timeout_seconds:.0f}s")


class TaskCancelled(AutomationError):
    kind = "cancelled"
    hint = ""

    def __init__(self, message: str = "Task cancelled by operator"):
        super().__init__(message)
