"""File storage helpers for run logs and status snapshots."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class RunContext:
    run_id: str
    run_dir: Path
    log_path: Path
    sequence_path: Path


def create_run_context(runs_dir: Path) -> RunContext:
    runs_dir.mkdir(parents=True, exist_ok=True)
    run_dir: Path | None = None
    run_id = ""
    for attempt in range(100):
        base = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        suffix = f"-{attempt:02d}" if attempt else ""
        run_id = f"{base}{suffix}"
        candidate = runs_dir / run_id
        if candidate.exists():
            continue
        candidate.mkdir(parents=True, exist_ok=False)
        run_dir = candidate
        break
    if run_dir is None:
        raise RuntimeError("Could not allocate unique run directory")
    return RunContext(
        run_id=run_id,
        run_dir=run_dir,
        log_path=run_dir / "automation.log",
        sequence_path=run_dir / "sequence.json",
    )


def latest_run_dir(runs_dir: Path) -> Path | None:
    if not runs_dir.exists():
        return None
    candidates = sorted(path for path in runs_dir.iterdir() if path.is_dir())
    return candidates[-1] if candidates else None


def append_log(path: Path, message: str) -> None:
    stamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    with path.open("a", encoding="utf-8") as fh:
        fh.write(f"{stamp} {message.rstrip()}\n")


def write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, ensure_ascii=False)
        fh.write("\n")


def read_json(path: Path, default: Any = None) -> Any:
    if not path.exists():
        return default
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def write_status(path: Path, status: dict[str, Any], *, run_id: str = "", run_dir: Path | None = None) -> None:
    payload = dict(status)
    if run_id:
        payload["runId"] = run_id
    if run_dir is not None:
        payload["runDir"] = str(run_dir)
    payload["writtenAtUtc"] = datetime.now(timezone.utc).isoformat()
    write_json(path, payload)


def status_payload(path: Path) -> dict[str, Any]:
    payload = read_json(path)
    if not isinstance(payload, dict):
        return {"status": "no-runs"}
    return payload


def tail_lines(path: Path, line_count: int) -> list[str]:
    if not path.exists():
        return []
    with path.open("r", encoding="utf-8") as fh:
        lines = fh.readlines()
    return [line.rstrip("\n") for line in lines[-line_count:]]
