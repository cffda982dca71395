"""Acquisition of a controllable Chromium instance over the DevTools protocol."""

from __future__ import annotations

import json
import os
import shutil
import subprocess
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from rightsguard.cancellation import CancellationToken
from rightsguard.config import AutomationConfig
from rightsguard.constants import (
    BROWSER_BINARY_CANDIDATES,
    BROWSER_INSTALL_PATHS,
    CONNECTION_ORDER,
    STRATEGY_ATTACH_EXISTING,
    STRATEGY_EPHEMERAL,
    STRATEGY_PERSISTENT_PROFILE,
)
from rightsguard.errors import AutomationError, BrowserUnavailable, ConnectionTimeout, TaskCancelled


@dataclass
class ControllableBrowser:
    strategy: str
    endpoint: str
    playwright: Any
    browser: Any
    context: Any
    page: Any
    process: Any | None = None
    owns_browser: bool = False

    def release(self, *, terminate: bool = True) -> None:
        # For CDP-attached browsers close() only drops the connection.
        if self.browser is not None:
            _quietly(self.browser.close)
        if self.playwright is not None:
            _quietly(self.playwright.stop)
        if terminate:
            self.terminate_process()

    def terminate_process(self) -> None:
        proc, self.process = self.process, None
        _terminate(proc)


class BrowserConnectionManager:
    def __init__(
        self,
        config: AutomationConfig,
        *,
        log: Callable[[str], None] | None = None,
        playwright_factory: Callable[[], Any] | None = None,
    ):
        self.config = config
        self._log = log or (lambda _msg: None)
        self._playwright_factory = playwright_factory or _start_sync_playwright

    def acquire(
        self,
        preferred: str = "",
        *,
        cancel: CancellationToken | None = None,
        on_connecting: Callable[[str], None] | None = None,
        log_dir: Path | None = None,
    ) -> ControllableBrowser:
        cancel = cancel or CancellationToken()
        preferred = str(preferred or "").strip().lower()
        if preferred and preferred not in CONNECTION_ORDER:
            raise ValueError(f"Unknown connection strategy: {preferred}")
        strategies = (preferred,) if preferred else CONNECTION_ORDER

        failures: list[str] = []
        last_error: AutomationError | None = None
        for strategy in strategies:
            cancel.raise_if_cancelled()
            if on_connecting is not None:
                on_connecting(strategy)
            self._log(f"connection strategy={strategy} starting")
            try:
                acquired = self._acquire_with(strategy, cancel, log_dir)
            except TaskCancelled:
                raise
            except AutomationError as exc:
                self._log(f"connection strategy={strategy} failed: {exc}")
                if preferred:
                    raise
                failures.append(f"{strategy}: {exc}")
                last_error = exc
                continue
            self._log(f"connection strategy={strategy} connected endpoint={acquired.endpoint or 'playwright'}")
            return acquired

        self._log("connection exhausted: " + " | ".join(failures))
        assert last_error is not None
        raise last_error

    def _acquire_with(self, strategy: str, cancel: CancellationToken, log_dir: Path | None) -> ControllableBrowser:
        if strategy == STRATEGY_ATTACH_EXISTING:
            return self._attach_existing(cancel)
        if strategy == STRATEGY_PERSISTENT_PROFILE:
            return self._launch_persistent_profile(cancel, log_dir)
        return self._launch_ephemeral()

    def _attach_existing(self, cancel: CancellationToken) -> ControllableBrowser:
        cfg = self.config
        started = time.monotonic()
        attempts = 0
        for attempts in range(1, cfg.attach_attempts + 1):
            cancel.raise_if_cancelled()
            if _cdp_alive(cfg.debug_host, cfg.debug_port, cfg.handshake_timeout_seconds):
                return self._connect(STRATEGY_ATTACH_EXISTING)
            if attempts < cfg.attach_attempts:
                cancel.sleep(cfg.attach_interval_seconds)
        raise ConnectionTimeout(
            STRATEGY_ATTACH_EXISTING,
            attempts,
            time.monotonic() - started,
            cfg.debug_endpoint,
        )

    def _launch_persistent_profile(self, cancel: CancellationToken, log_dir: Path | None) -> ControllableBrowser:
        cfg = self.config
        if _cdp_alive(cfg.debug_host, cfg.debug_port, cfg.handshake_timeout_seconds):
            # A previous launch of the dedicated profile is still serving the endpoint.
            return self._connect(STRATEGY_PERSISTENT_PROFILE)

        binary = cfg.browser_binary or _find_browser_binary()
        profile_dir = cfg.browser_profile_dir
        profile_dir.mkdir(parents=True, exist_ok=True)
        cmd = [
            binary,
            f"--remote-debugging-port={cfg.debug_port}",
            f"--user-data-dir={profile_dir}",
            "--no-first-run",
            "--no-default-browser-check",
            *cfg.extra_browser_args,
        ]
        self._log(f"launching browser: {' '.join(cmd)}")
        proc = _spawn_browser(cmd, log_dir)
        try:
            attempts = self._wait_for_endpoint(STRATEGY_PERSISTENT_PROFILE, cancel, proc)
            self._log(f"debug endpoint healthy after {attempts} health checks")
            acquired = self._connect(STRATEGY_PERSISTENT_PROFILE)
        except BaseException:
            _terminate(proc)
            raise
        acquired.process = proc
        acquired.owns_browser = True
        return acquired

    def _launch_ephemeral(self) -> ControllableBrowser:
        playwright = self._start_playwright()
        try:
            browser = playwright.chromium.launch(
                headless=False,
                args=list(self.config.extra_browser_args),
            )
            context = browser.new_context()
            page = context.new_page()
        except Exception as exc:
            _quietly(playwright.stop)
            raise BrowserUnavailable(f"Could not launch ephemeral browser: {exc}") from exc
        return ControllableBrowser(
            strategy=STRATEGY_EPHEMERAL,
            endpoint="",
            playwright=playwright,
            browser=browser,
            context=context,
            page=page,
            owns_browser=True,
        )

    def _wait_for_endpoint(self, strategy: str, cancel: CancellationToken, proc: Any | None) -> int:
        cfg = self.config
        started = time.monotonic()
        cancel.sleep(cfg.launch_initial_delay_seconds)
        for attempt in range(1, cfg.launch_max_attempts + 1):
            if _cdp_alive(cfg.debug_host, cfg.debug_port, cfg.handshake_timeout_seconds):
                return attempt
            if proc is not None and proc.poll() not in (None, 0):
                raise BrowserUnavailable(f"Browser process exited early with code {proc.returncode}")
            if attempt < cfg.launch_max_attempts:
                delay = backoff_delay(attempt, cfg.launch_backoff_seconds)
                self._log(f"health check {attempt}/{cfg.launch_max_attempts} failed; retrying in {delay:.1f}s")
                cancel.sleep(delay)
        raise ConnectionTimeout(
            strategy,
            cfg.launch_max_attempts,
            time.monotonic() - started,
            cfg.debug_endpoint,
        )

    def _connect(self, strategy: str) -> ControllableBrowser:
        endpoint = self.config.debug_endpoint
        playwright = self._start_playwright()
        try:
            browser = playwright.chromium.connect_over_cdp(endpoint, timeout=self.config.connect_timeout_ms)
            context = browser.contexts[0] if browser.contexts else browser.new_context()
            page = context.pages[0] if context.pages else context.new_page()
        except Exception as exc:
            _quietly(playwright.stop)
            raise BrowserUnavailable(f"DevTools handshake succeeded but connect failed: {exc}") from exc
        return ControllableBrowser(
            strategy=strategy,
            endpoint=endpoint,
            playwright=playwright,
            browser=browser,
            context=context,
            page=page,
        )

    def _start_playwright(self) -> Any:
        try:
            return self._playwright_factory()
        except ImportError as exc:
            raise BrowserUnavailable(
                "Playwright is not installed. Run: pip install playwright && playwright install chromium"
            ) from exc


def backoff_delay(attempt: int, schedule: tuple[float, ...]) -> float:
    """Delay after the ``attempt``-th failed health check; the last step repeats."""
    if not schedule:
        return 0.0
    return float(schedule[min(max(attempt, 1), len(schedule)) - 1])


def _start_sync_playwright() -> Any:
    from playwright.sync_api import sync_playwright

    return sync_playwright().start()


def _find_browser_binary() -> str:
    for name in BROWSER_BINARY_CANDIDATES:
        found = shutil.which(name)
        if found:
            return found
    for path in BROWSER_INSTALL_PATHS:
        if Path(path).exists():
            return path
    raise BrowserUnavailable("No supported Chromium browser found for a persistent profile session.")


def _spawn_browser(cmd: list[str], log_dir: Path | None) -> subprocess.Popen:
    popen_kwargs: dict[str, Any] = {
        "stdin": subprocess.DEVNULL,
        "close_fds": True,
        "start_new_session": True,
    }
    if os.name == "nt":
        popen_kwargs["creationflags"] = getattr(subprocess, "DETACHED_PROCESS", 0) | getattr(
            subprocess,
            "CREATE_NEW_PROCESS_GROUP",
            0,
        )
    try:
        if log_dir is None:
            return subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL, **popen_kwargs)
        log_dir.mkdir(parents=True, exist_ok=True)
        with (log_dir / "browser_stdout.log").open("w", encoding="utf-8") as out_fh, (
            log_dir / "browser_stderr.log"
        ).open("w", encoding="utf-8") as err_fh:
            return subprocess.Popen(cmd, stdout=out_fh, stderr=err_fh, **popen_kwargs)
    except OSError as exc:
        raise BrowserUnavailable(f"Could not start browser process {cmd[0]}: {exc}") from exc


def _cdp_alive(host: str, port: int, timeout_seconds: float) -> bool:
    url = f"http://{host}:{port}/json/version"
    try:
        with urllib.request.urlopen(url, timeout=timeout_seconds) as resp:
            if resp.status != 200:
                return False
            payload = json.loads(resp.read().decode("utf-8", errors="replace"))
    except (urllib.error.URLError, TimeoutError, OSError, json.JSONDecodeError, UnicodeDecodeError):
        return False
    return isinstance(payload, dict) and bool(payload.get("webSocketDebuggerUrl"))


def _terminate(proc: Any) -> None:
    if proc is None or proc.poll() is not None:
        return
    try:
        proc.terminate()
        proc.wait(timeout=3)
    except subprocess.TimeoutExpired:
        try:
            proc.kill()
        except OSError:
            pass
    except OSError:
        pass


def _quietly(fn: Callable[[], Any]) -> None:
    try:
        fn()
    except Exception:
        return
