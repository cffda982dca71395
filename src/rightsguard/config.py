"""Environment-driven configuration for the automation engine."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from rightsguard.constants import CONNECTION_ORDER


ENV_PREFIX = "RIGHTSGUARD_"


@dataclass(frozen=True)
class AutomationConfig:
    app_data_dir: Path
    debug_host: str = "127.0.0.1"
    debug_port: int = 9222
    handshake_timeout_seconds: float = 1.5
    attach_attempts: int = 15
    attach_interval_seconds: float = 0.2
    launch_initial_delay_seconds: float = 1.0
    launch_backoff_seconds: tuple[float, ...] = (2.0, 3.0, 5.0)
    launch_max_attempts: int = 8
    connect_timeout_ms: int = 15000
    pinned_strategy: str = ""
    browser_binary: str = ""
    verification_timeout_seconds: float = 900.0
    confirmation_timeout_seconds: float = 1800.0
    handoff_poll_seconds: float = 0.5
    upload_settle_seconds: float = 3.0
    file_chooser_timeout_ms: int = 5000
    step_timeout_ms: int = 30000
    navigation_timeout_ms: int = 60000
    step_pause_seconds: float = 0.5
    auto_submit: bool = False
    control_port: int = 8765
    extra_browser_args: tuple[str, ...] = field(default_factory=tuple)

    @property
    def files_dir(self) -> Path:
        return self.app_data_dir / "files"

    @property
    def browser_profile_dir(self) -> Path:
        return self.app_data_dir / "chrome-profile"

    @property
    def runs_dir(self) -> Path:
        return self.app_data_dir / "runs"

    @property
    def status_path(self) -> Path:
        return self.app_data_dir / "status.json"

    @property
    def records_path(self) -> Path:
        return self.app_data_dir / "records.json"

    @property
    def debug_endpoint(self) -> str:
        return f"http://{self.debug_host}:{self.debug_port}"


def default_app_data_dir(env: Mapping[str, str] | None = None, platform: str | None = None) -> Path:
    env = os.environ if env is None else env
    platform = sys.platform if platform is None else platform
    home = Path(env.get("HOME") or env.get("USERPROFILE") or Path.home())
    if platform.startswith("win"):
        base = env.get("APPDATA")
        return (Path(base) if base else home / "AppData" / "Roaming") / "RightsGuard"
    if platform == "darwin":
        return home / "Library" / "Application Support" / "RightsGuard"
    xdg = env.get("XDG_CONFIG_HOME")
    return (Path(xdg) if xdg else home / ".config") / "rights-guard"


def load_config(env: Mapping[str, str] | None = None) -> AutomationConfig:
    env = os.environ if env is None else env

    def _get(name: str, default: str) -> str:
        return str(env.get(ENV_PREFIX + name, default)).strip()

    home_raw = _get("HOME", "")
    app_data_dir = Path(home_raw).expanduser() if home_raw else default_app_data_dir(env)

    pinned = _get("CONNECTION_STRATEGY", "").lower()
    if pinned and pinned not in CONNECTION_ORDER:
        raise ValueError(
            f"Invalid {ENV_PREFIX}CONNECTION_STRATEGY '{pinned}'. Must be one of {list(CONNECTION_ORDER)}"
        )

    return AutomationConfig(
        app_data_dir=app_data_dir,
        debug_host=_get("DEBUG_HOST", "127.0.0.1"),
        debug_port=int(_get("DEBUG_PORT", "9222")),
        handshake_timeout_seconds=float(_get("HANDSHAKE_TIMEOUT_SECONDS", "1.5")),
        attach_attempts=max(1, int(_get("ATTACH_ATTEMPTS", "15"))),
        attach_interval_seconds=max(0.0, float(_get("ATTACH_INTERVAL_SECONDS", "0.2"))),
        launch_initial_delay_seconds=max(0.0, float(_get("LAUNCH_INITIAL_DELAY_SECONDS", "1.0"))),
        launch_backoff_seconds=_parse_backoff(_get("LAUNCH_BACKOFF_SECONDS", "2,3,5")),
        launch_max_attempts=max(1, int(_get("LAUNCH_MAX_ATTEMPTS", "8"))),
        connect_timeout_ms=int(_get("CONNECT_TIMEOUT_MS", "15000")),
        pinned_strategy=pinned,
        browser_binary=_get("BROWSER_BINARY", ""),
        verification_timeout_seconds=float(_get("VERIFICATION_TIMEOUT_SECONDS", "900")),
        confirmation_timeout_seconds=float(_get("CONFIRMATION_TIMEOUT_SECONDS", "1800")),
        handoff_poll_seconds=max(0.05, float(_get("HANDOFF_POLL_SECONDS", "0.5"))),
        upload_settle_seconds=max(0.0, float(_get("UPLOAD_SETTLE_SECONDS", "3"))),
        file_chooser_timeout_ms=int(_get("FILE_CHOOSER_TIMEOUT_MS", "5000")),
        step_timeout_ms=int(_get("STEP_TIMEOUT_MS", "30000")),
        navigation_timeout_ms=int(_get("NAVIGATION_TIMEOUT_MS", "60000")),
        step_pause_seconds=max(0.0, float(_get("STEP_PAUSE_SECONDS", "0.5"))),
        auto_submit=_get("AUTO_SUBMIT", "0").lower() in {"1", "true", "yes", "on"},
        control_port=int(_get("CONTROL_PORT", "8765")),
        extra_browser_args=tuple(arg for arg in _get("BROWSER_ARGS", "").split() if arg),
    )


def _parse_backoff(raw: str) -> tuple[float, ...]:
    values = tuple(float(part) for part in raw.replace(";", ",").split(",") if part.strip())
    if not values or any(value < 0 for value in values):
        raise ValueError(f"Invalid {ENV_PREFIX}LAUNCH_BACKOFF_SECONDS '{raw}'")
    return values
