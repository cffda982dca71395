"""Localhost control agent: the UI polls status and posts actions here."""

from __future__ import annotations

import argparse
import json
import urllib.error
import urllib.request
from datetime import datetime, timezone
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any

from rightsguard.config import load_config
from rightsguard.controller import AutomationController, create_controller
from rightsguard.errors import AutomationError, TaskAlreadyRunning
from rightsguard.file_staging import select_files


ACTIONS = {"start", "stop", "continue", "stage", "select"}


def _status_payload(controller: AutomationController) -> dict[str, Any]:
    payload = controller.get_status().to_dict()
    payload["waitingForOperator"] = bool(controller.handoff.waiting_task_id())
    payload["updatedAtUtc"] = datetime.now(timezone.utc).isoformat()
    return payload


def perform_action(controller: AutomationController, action: str, payload: dict[str, Any]) -> dict[str, Any]:
    action_name = str(action or "").strip().lower()
    if action_name not in ACTIONS:
        raise ValueError(f"Unsupported action: {action_name}")

    if action_name == "start":
        url = str(payload.get("infringing_url", "") or "").strip()
        controller.start(
            url,
            original_url=payload.get("original_url") or None,
            ip_asset_id=payload.get("ip_asset_id") or None,
            strategy=payload.get("strategy") or None,
        )
        result = _status_payload(controller)
        result["message"] = "task started"
        return result

    if action_name == "stop":
        controller.stop()
        result = _status_payload(controller)
        result["message"] = "task stopped"
        return result

    if action_name == "continue":
        resumed = controller.continue_after_verification()
        result = _status_payload(controller)
        result["resumed"] = resumed
        result["message"] = "task resumed" if resumed else "no task is waiting for the operator"
        return result

    if action_name == "stage":
        staged = controller.staging.stage_file(
            str(payload.get("source_path", "") or ""),
            str(payload.get("category", "") or ""),
            str(payload.get("subcategory", "") or ""),
        )
        return staged.to_dict()

    # select
    paths = payload.get("paths")
    if not isinstance(paths, list):
        raise ValueError("'paths' must be a list of file paths")
    return select_files([str(item) for item in paths]).to_dict()


class _ControlHandler(BaseHTTPRequestHandler):
    server_version = "RightsGuardControlAgent/1.0"

    def _send_json(self, status_code: int, payload: dict[str, Any]) -> None:
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        self.send_response(status_code)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Cache-Control", "no-store")
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Access-Control-Allow-Methods", "GET, POST, OPTIONS")
        self.send_header("Access-Control-Allow-Headers", "Content-Type")
        self.end_headers()
        self.wfile.write(body)

    def do_OPTIONS(self) -> None:  # noqa: N802
        self._send_json(200, {"ok": True})

    def do_GET(self) -> None:  # noqa: N802
        if self.path == "/health":
            self._send_json(200, {"ok": True})
            return
        if self.path == "/status":
            self._send_json(200, _status_payload(self.server.controller))
            return
        self._send_json(404, {"error": "not_found"})

    def do_POST(self) -> None:  # noqa: N802
        if self.path != "/action":
            self._send_json(404, {"error": "not_found"})
            return

        length = int(self.headers.get("Content-Length", "0") or "0")
        raw = self.rfile.read(length) if length > 0 else b"{}"
        try:
            payload = json.loads(raw.decode("utf-8", errors="replace"))
        except json.JSONDecodeError:
            self._send_json(400, {"error": "invalid_json"})
            return
        if not isinstance(payload, dict):
            self._send_json(400, {"error": "invalid_action_payload"})
            return

        try:
            result = perform_action(self.server.controller, str(payload.get("action", "")), payload)
        except TaskAlreadyRunning as exc:
            self._send_json(409, _error_body(exc))
            return
        except AutomationError as exc:
            self._send_json(400, _error_body(exc))
            return
        except (ValueError, FileNotFoundError) as exc:
            self._send_json(400, {"error": str(exc)})
            return
        except Exception as exc:  # pragma: no cover
            self._send_json(500, {"error": str(exc)})
            return

        self._send_json(200, result)

    def log_message(self, _format: str, *_args: Any) -> None:
        return


def _error_body(exc: AutomationError) -> dict[str, Any]:
    body: dict[str, Any] = {"error": str(exc), "kind": exc.kind}
    if exc.hint:
        body["hint"] = exc.hint
    missing = getattr(exc, "missing", None)
    if missing:
        body["missing"] = list(missing)
    return body


class _ControlServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, server_address: tuple[str, int], controller: AutomationController):
        super().__init__(server_address, _ControlHandler)
        self.controller = controller


def serve(controller: AutomationController, host: str = "127.0.0.1", port: int = 8765) -> None:
    server = _ControlServer((host, port), controller)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        controller.stop()
        server.server_close()


def request_action(
    port: int,
    action: str,
    payload: dict[str, Any] | None = None,
    timeout_seconds: float = 4.0,
) -> dict[str, Any]:
    body = dict(payload or {})
    body["action"] = action
    req = urllib.request.Request(
        f"http://127.0.0.1:{port}/action",
        data=json.dumps(body, ensure_ascii=False).encode("utf-8"),
        method="POST",
        headers={"Content-Type": "application/json"},
    )
    try:
        with urllib.request.urlopen(req, timeout=timeout_seconds) as resp:
            raw = resp.read().decode("utf-8", errors="replace")
    except urllib.error.HTTPError as exc:
        reason = exc.read().decode("utf-8", errors="replace")
        raise SystemExit(f"Control action failed ({action}): {reason}") from exc
    except (urllib.error.URLError, TimeoutError) as exc:
        raise SystemExit(f"Control agent offline on port {port} ({action}): {exc}") from exc
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise SystemExit(f"Control action returned invalid JSON ({action})") from exc
    if not isinstance(parsed, dict):
        raise SystemExit(f"Control action returned invalid payload ({action})")
    return parsed


def main() -> None:
    config = load_config()
    parser = argparse.ArgumentParser(prog="python -m rightsguard.control_agent")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=config.control_port)
    args = parser.parse_args()
    serve(create_controller(config), args.host, args.port)


if __name__ == "__main__":
    main()
