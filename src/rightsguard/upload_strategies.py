"""Ordered DOM-interaction strategies for attaching files to an upload widget."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from rightsguard.cancellation import CancellationToken
from rightsguard.errors import InvalidUploadFile, TaskCancelled, UploadExhausted
from rightsguard.page_model import UploadWidget


FILE_INPUT_SELECTOR = 'input[type="file"]'


@dataclass(frozen=True)
class UploadAttempt:
    strategy_name: str
    target_selector: str
    files_attempted: tuple[str, ...]
    succeeded: bool
    evidence_count: int = 0
    error: str = ""


@dataclass(frozen=True)
class UploadResult:
    strategy_name: str
    evidence_count: int
    attempts: tuple[UploadAttempt, ...]


@dataclass(frozen=True)
class UploadStrategy:
    name: str
    selector_role: str
    interact: Callable[[Any, str, UploadWidget, list[str], int], None]

    def selector_for(self, widget: UploadWidget) -> str:
        if self.selector_role == "input":
            return widget.scoped(widget.input_selector)
        if self.selector_role == "trigger":
            return widget.scoped(widget.trigger_selector)
        return widget.scoped(FILE_INPUT_SELECTOR)


def _set_on_hidden_input(page: Any, selector: str, widget: UploadWidget, files: list[str], timeout_ms: int) -> None:
    locator = page.locator(selector)
    if locator.count() == 0:
        raise LookupError(f"no element matches {selector}")
    target = locator.first
    # One file per change event; the widget drops all but one file otherwise.
    for path in files:
        target.set_input_files(path, timeout=timeout_ms)


def _set_on_visible_input(page: Any, selector: str, widget: UploadWidget, files: list[str], timeout_ms: int) -> None:
    locator = page.locator(selector)
    for index in range(locator.count()):
        candidate = locator.nth(index)
        if candidate.is_visible():
            candidate.set_input_files(files, timeout=timeout_ms)
            return
    raise LookupError(f"no visible element matches {selector}")


def _supply_via_file_chooser(page: Any, selector: str, widget: UploadWidget, files: list[str], timeout_ms: int) -> None:
    trigger = page.locator(selector).first
    if not trigger.is_visible():
        raise LookupError(f"upload trigger not visible: {selector}")
    with page.expect_file_chooser(timeout=timeout_ms) as chooser_info:
        trigger.click(timeout=timeout_ms)
    chooser_info.value.set_files(files)


def _click_then_set(page: Any, selector: str, widget: UploadWidget, files: list[str], timeout_ms: int) -> None:
    page.locator(selector).first.click(timeout=timeout_ms, force=True)
    page.locator(widget.scoped(FILE_INPUT_SELECTOR)).first.set_input_files(files, timeout=timeout_ms)


DEFAULT_UPLOAD_STRATEGIES = (
    UploadStrategy("hidden_input", "input", _set_on_hidden_input),
    UploadStrategy("visible_input", "any_file_input", _set_on_visible_input),
    UploadStrategy("file_chooser", "trigger", _supply_via_file_chooser),
    UploadStrategy("click_then_set", "trigger", _click_then_set),
)


def validate_upload_files(files: list[str] | tuple[str, ...]) -> list[str]:
    if not files:
        raise InvalidUploadFile("", "no files given")
    validated: list[str] = []
    for raw in files:
        path = Path(str(raw))
        if not path.is_file():
            raise InvalidUploadFile(str(raw), "missing")
        if path.stat().st_size == 0:
            raise InvalidUploadFile(str(raw), "empty")
        validated.append(str(path))
    return validated


class UploadStrategySelector:
    def __init__(
        self,
        page: Any,
        *,
        strategies: tuple[UploadStrategy, ...] = DEFAULT_UPLOAD_STRATEGIES,
        settle_seconds: float = 3.0,
        timeout_ms: int = 5000,
        log: Callable[[str], None] | None = None,
    ):
        self.page = page
        self.strategies = tuple(strategies)
        self.settle_seconds = settle_seconds
        self.timeout_ms = timeout_ms
        self._log = log or (lambda _msg: None)

    def upload(
        self,
        files: list[str] | tuple[str, ...],
        target: UploadWidget,
        *,
        cancel: CancellationToken | None = None,
    ) -> UploadResult:
        cancel = cancel or CancellationToken()
        paths = validate_upload_files(files)
        baseline = self._count_items(target)
        attempts: list[UploadAttempt] = []

        for strategy in self.strategies:
            cancel.raise_if_cancelled()
            selector = strategy.selector_for(target)
            error = ""
            try:
                strategy.interact(self.page, selector, target, list(paths), self.timeout_ms)
            except TaskCancelled:
                raise
            except Exception as exc:
                error = f"{type(exc).__name__}: {exc}".strip()
            # Settle after errors too; a strategy may attach files and then raise.
            cancel.sleep(self.settle_seconds)
            evidence = max(0, self._count_items(target) - baseline)
            attempt = UploadAttempt(
                strategy_name=strategy.name,
                target_selector=selector,
                files_attempted=tuple(paths),
                succeeded=evidence > 0,
                evidence_count=evidence,
                error=error,
            )
            attempts.append(attempt)
            self._log(
                f"upload widget={target.name} strategy={strategy.name} succeeded={attempt.succeeded} "
                f"evidence={evidence} files={len(paths)}" + (f" error={error}" if error else "")
            )
            if attempt.succeeded:
                return UploadResult(
                    strategy_name=strategy.name,
                    evidence_count=evidence,
                    attempts=tuple(attempts),
                )

        raise UploadExhausted(target.label, attempts)

    def _count_items(self, target: UploadWidget) -> int:
        best = 0
        for selector in target.item_selectors:
            try:
                best = max(best, int(self.page.locator(target.scoped(selector)).count()))
            except Exception:
                if _page_closed(self.page):
                    raise
                continue
        return best


def _page_closed(page: Any) -> bool:
    is_closed = getattr(page, "is_closed", None)
    return bool(is_closed()) if callable(is_closed) else False
