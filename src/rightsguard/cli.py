"""CLI entrypoint for rightsguard."""

from __future__ import annotations

import argparse
import json
import time
from dataclasses import replace

from rightsguard.config import AutomationConfig, load_config
from rightsguard.constants import (
    CATEGORY_IP_ASSETS,
    CATEGORY_PROFILES,
    CONNECTION_ORDER,
    DEFAULT_REGION,
    STATE_CANCELLED,
    STATE_FAILED,
    SUBCATEGORY_AUTH_DOCS,
    SUBCATEGORY_ID_CARDS,
    SUBCATEGORY_PROOF_DOCS,
)
from rightsguard.control_agent import request_action, serve
from rightsguard.controller import create_controller
from rightsguard.errors import AutomationError
from rightsguard.file_staging import FileStagingService, select_files
from rightsguard.models import IpAsset, Profile
from rightsguard.record_store import RecordStore
from rightsguard.storage import latest_run_dir, status_payload, tail_lines


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()
    try:
        config = load_config()
    except ValueError as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from exc

    if args.command == "serve":
        serve(create_controller(config), args.host, args.port or config.control_port)
        return
    if args.command == "run":
        run_command(
            config,
            args.url,
            original_url=args.original_url,
            ip_asset_id=args.ip_asset,
            strategy=args.strategy,
        )
        return
    if args.command == "status":
        print(json.dumps(status_payload(config.status_path), indent=2, ensure_ascii=False))
        return
    if args.command in {"stop", "continue"}:
        result = request_action(config.control_port, args.command)
        print(json.dumps(result, indent=2, ensure_ascii=False))
        return
    if args.command == "stage":
        stage_command(config, args.path, args.category, args.subcategory)
        return
    if args.command == "profile":
        profile_command(config, args)
        return
    if args.command == "ip-asset":
        ip_asset_command(config, args)
        return
    if args.command == "case":
        case_command(config, args)
        return
    if args.command == "logs":
        logs_command(config, args.tail)
        return

    parser.print_help()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rightsguard", description="Copyright appeal automation CLI.")
    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser("serve", help="Run the localhost control agent")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=0, help="Defaults to RIGHTSGUARD_CONTROL_PORT.")

    run_parser = subparsers.add_parser("run", help='Run one appeal: rightsguard run "<infringing url>"')
    run_parser.add_argument("url", type=str)
    run_parser.add_argument("--original-url", default="")
    run_parser.add_argument("--ip-asset", default="", help="IP asset id to attach to the appeal.")
    run_parser.add_argument(
        "--strategy",
        choices=CONNECTION_ORDER,
        default=None,
        help="Pin one browser connection strategy (no fallback).",
    )

    subparsers.add_parser("status", help="Show latest task status")
    subparsers.add_parser("stop", help="Stop the task running in the control agent")
    subparsers.add_parser("continue", help="Resume after completing verification in the browser")

    stage_parser = subparsers.add_parser("stage", help="Copy a file into the staging tree")
    stage_parser.add_argument("path", type=str)
    stage_parser.add_argument("--category", required=True)
    stage_parser.add_argument("--subcategory", required=True)

    profile_parser = subparsers.add_parser("profile", help="Show or update the personal profile")
    profile_sub = profile_parser.add_subparsers(dest="profile_command")
    profile_sub.add_parser("show")
    profile_set = profile_sub.add_parser("set")
    profile_set.add_argument("--name")
    profile_set.add_argument("--phone")
    profile_set.add_argument("--email")
    profile_set.add_argument("--id-number")
    profile_set.add_argument("--id-card-file", action="append", default=[], help="Repeatable; replaces staged ID files.")

    asset_parser = subparsers.add_parser("ip-asset", help="Manage IP assets")
    asset_sub = asset_parser.add_subparsers(dest="asset_command")
    asset_sub.add_parser("list")
    asset_add = asset_sub.add_parser("add")
    asset_add.add_argument("--work-name", required=True)
    asset_add.add_argument("--work-type", required=True)
    asset_add.add_argument("--owner", required=True)
    asset_add.add_argument("--region", default=DEFAULT_REGION)
    asset_add.add_argument("--work-start", default="")
    asset_add.add_argument("--work-end", default="")
    asset_add.add_argument("--agent", action="store_true", help="Appeal is filed on behalf of the owner.")
    asset_add.add_argument("--auth-start", default="")
    asset_add.add_argument("--auth-end", default="")
    asset_add.add_argument("--auth-file", action="append", default=[])
    asset_add.add_argument("--proof-file", action="append", default=[])
    asset_remove = asset_sub.add_parser("remove")
    asset_remove.add_argument("asset_id")

    case_parser = subparsers.add_parser("case", help="List or remove recorded appeal cases")
    case_sub = case_parser.add_subparsers(dest="case_command")
    case_sub.add_parser("list")
    case_remove = case_sub.add_parser("remove")
    case_remove.add_argument("case_id")

    logs_parser = subparsers.add_parser("logs", help="Tail logs for latest run")
    logs_parser.add_argument("--tail", type=int, default=200)
    return parser


def run_command(
    config: AutomationConfig,
    url: str,
    *,
    original_url: str = "",
    ip_asset_id: str = "",
    strategy: str | None = None,
    poll_seconds: float = 0.5,
) -> None:
    controller = create_controller(config)
    try:
        controller.start(url, original_url=original_url or None, ip_asset_id=ip_asset_id or None, strategy=strategy)
    except AutomationError as exc:
        raise SystemExit(_describe_error(exc)) from exc
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc

    last_seen = ("", "")
    try:
        while True:
            status = controller.get_status()
            if (status.state, status.current_step) != last_seen:
                last_seen = (status.state, status.current_step)
                print(f"[{status.state}] {status.current_step}", flush=True)
            if status.is_terminal:
                break
            if controller.handoff.waiting_task_id():
                input("Finish the step in the browser, then press Enter to continue... ")
                controller.continue_after_verification()
                continue
            time.sleep(poll_seconds)
    except (KeyboardInterrupt, EOFError):
        controller.stop()
    controller.join(10.0)

    final = controller.get_status()
    if final.state == STATE_FAILED:
        raise SystemExit(f"Appeal failed [{final.error_kind}]: {final.error}")
    if final.state == STATE_CANCELLED:
        raise SystemExit("Appeal cancelled.")
    print(json.dumps(final.to_dict(), indent=2, ensure_ascii=False))


def stage_command(config: AutomationConfig, path: str, category: str, subcategory: str) -> None:
    try:
        staged = FileStagingService(config.files_dir).stage_file(path, category, subcategory)
    except (FileNotFoundError, ValueError) as exc:
        raise SystemExit(str(exc)) from exc
    print(json.dumps(staged.to_dict(), indent=2, ensure_ascii=False))


def profile_command(config: AutomationConfig, args: argparse.Namespace) -> None:
    records = RecordStore(config.records_path)
    current = records.get_profile()
    if args.profile_command != "set":
        if current is None:
            raise SystemExit("No personal profile configured.")
        print(json.dumps(current.to_dict(), indent=2, ensure_ascii=False))
        return

    base = current or Profile(name="", phone="", email="", id_card_number="")
    updated = replace(
        base,
        name=args.name if args.name is not None else base.name,
        phone=args.phone if args.phone is not None else base.phone,
        email=args.email if args.email is not None else base.email,
        id_card_number=args.id_number if args.id_number is not None else base.id_card_number,
    )
    if args.id_card_file:
        files = _stage_selection(config, args.id_card_file, CATEGORY_PROFILES, SUBCATEGORY_ID_CARDS)
        updated = replace(updated, id_card_files=files)
    saved = records.save_profile(updated)
    print(json.dumps(saved.to_dict(), indent=2, ensure_ascii=False))


def ip_asset_command(config: AutomationConfig, args: argparse.Namespace) -> None:
    records = RecordStore(config.records_path)
    if args.asset_command == "add":
        asset = IpAsset(
            work_name=args.work_name,
            work_type=args.work_type,
            owner=args.owner,
            region=args.region,
            work_start_date=args.work_start,
            work_end_date=args.work_end,
            is_agent=bool(args.agent),
            auth_start_date=args.auth_start,
            auth_end_date=args.auth_end,
            auth_files=_stage_selection(config, args.auth_file, CATEGORY_IP_ASSETS, SUBCATEGORY_AUTH_DOCS),
            work_proof_files=_stage_selection(config, args.proof_file, CATEGORY_IP_ASSETS, SUBCATEGORY_PROOF_DOCS),
        )
        saved = records.save_ip_asset(asset)
        print(json.dumps(saved.to_dict(), indent=2, ensure_ascii=False))
        return
    if args.asset_command == "remove":
        if not records.delete_ip_asset(args.asset_id):
            raise SystemExit(f"IP asset not found: {args.asset_id}")
        print(json.dumps({"removed": args.asset_id}, ensure_ascii=False))
        return
    print(json.dumps([item.to_dict() for item in records.list_ip_assets()], indent=2, ensure_ascii=False))


def case_command(config: AutomationConfig, args: argparse.Namespace) -> None:
    records = RecordStore(config.records_path)
    if args.case_command == "remove":
        if not records.delete_case(args.case_id):
            raise SystemExit(f"Case not found: {args.case_id}")
        print(json.dumps({"removed": args.case_id}, ensure_ascii=False))
        return
    print(json.dumps([item.to_dict() for item in records.list_cases()], indent=2, ensure_ascii=False))


def logs_command(config: AutomationConfig, tail_count: int) -> None:
    run_dir = latest_run_dir(config.runs_dir)
    if run_dir is None:
        raise SystemExit("No runs available yet.")
    output_lines = []
    output_lines.extend(tail_lines(run_dir / "automation.log", tail_count))
    output_lines.extend(tail_lines(run_dir / "browser_stderr.log", tail_count))
    print("\n".join(output_lines))


def _stage_selection(config: AutomationConfig, paths: list[str], category: str, subcategory: str) -> tuple[str, ...]:
    if not paths:
        return ()
    try:
        selection = select_files(paths)
    except (FileNotFoundError, ValueError) as exc:
        raise SystemExit(str(exc)) from exc
    staging = FileStagingService(config.files_dir)
    return tuple(staging.stage(path, category, subcategory) for path in selection.paths)


def _describe_error(exc: AutomationError) -> str:
    message = f"{exc} [{exc.kind}]"
    if exc.hint:
        message += f"\nHint: {exc.hint}"
    return message
