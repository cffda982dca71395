"""Data models for records, tasks and automation status."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from rightsguard.constants import (
    CASE_STATUS_NEW,
    DEFAULT_ASSET_STATUS,
    DEFAULT_EQUITY_TYPE,
    DEFAULT_REGION,
    STATE_IDLE,
    TERMINAL_STATES,
)


@dataclass(frozen=True)
class Profile:
    name: str
    phone: str
    email: str
    id_card_number: str
    id_card_files: tuple[str, ...] = ()
    id: str = ""
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Profile":
        return cls(
            name=_expect_str(payload, "name"),
            phone=_expect_str(payload, "phone"),
            email=_expect_str(payload, "email"),
            id_card_number=_expect_str(payload, "id_card_number"),
            id_card_files=_expect_str_tuple(payload, "id_card_files"),
            id=_optional_str(payload, "id"),
            created_at=_optional_str(payload, "created_at"),
            updated_at=_optional_str(payload, "updated_at"),
        )

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["id_card_files"] = list(self.id_card_files)
        return payload


@dataclass(frozen=True)
class IpAsset:
    work_name: str
    work_type: str
    owner: str
    region: str = DEFAULT_REGION
    work_start_date: str = ""
    work_end_date: str = ""
    equity_type: str = DEFAULT_EQUITY_TYPE
    is_agent: bool = False
    auth_start_date: str = ""
    auth_end_date: str = ""
    auth_files: tuple[str, ...] = ()
    work_proof_files: tuple[str, ...] = ()
    status: str = DEFAULT_ASSET_STATUS
    id: str = ""
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "IpAsset":
        is_agent = payload.get("is_agent", False)
        if not isinstance(is_agent, bool):
            raise ValueError("'is_agent' must be a boolean")
        return cls(
            work_name=_expect_str(payload, "work_name"),
            work_type=_expect_str(payload, "work_type"),
            owner=_expect_str(payload, "owner"),
            region=_optional_str(payload, "region") or DEFAULT_REGION,
            work_start_date=_optional_str(payload, "work_start_date"),
            work_end_date=_optional_str(payload, "work_end_date"),
            equity_type=_optional_str(payload, "equity_type") or DEFAULT_EQUITY_TYPE,
            is_agent=is_agent,
            auth_start_date=_optional_str(payload, "auth_start_date"),
            auth_end_date=_optional_str(payload, "auth_end_date"),
            auth_files=_expect_str_tuple(payload, "auth_files"),
            work_proof_files=_expect_str_tuple(payload, "work_proof_files"),
            status=_optional_str(payload, "status") or DEFAULT_ASSET_STATUS,
            id=_optional_str(payload, "id"),
            created_at=_optional_str(payload, "created_at"),
            updated_at=_optional_str(payload, "updated_at"),
        )

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["auth_files"] = list(self.auth_files)
        payload["work_proof_files"] = list(self.work_proof_files)
        return payload


@dataclass(frozen=True)
class Case:
    infringing_url: str
    original_url: str = ""
    associated_ip_id: str = ""
    status: str = CASE_STATUS_NEW
    submission_date: str = ""
    id: str = ""
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Case":
        return cls(
            infringing_url=_expect_str(payload, "infringing_url"),
            original_url=_optional_str(payload, "original_url"),
            associated_ip_id=_optional_str(payload, "associated_ip_id"),
            status=_optional_str(payload, "status") or CASE_STATUS_NEW,
            submission_date=_optional_str(payload, "submission_date"),
            id=_optional_str(payload, "id"),
            created_at=_optional_str(payload, "created_at"),
            updated_at=_optional_str(payload, "updated_at"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AutomationTask:
    id: str
    infringing_url: str
    profile: Profile
    created_at: str
    original_url: str = ""
    ip_asset: IpAsset | None = None


@dataclass(frozen=True)
class AutomationStatus:
    state: str = STATE_IDLE
    current_step: str = ""
    progress: float | None = None
    error: str = ""
    error_kind: str = ""
    started_at: str = ""
    task_id: str = ""
    updated_at: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def is_running(self) -> bool:
        return self.state != STATE_IDLE and not self.is_terminal

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state,
            "isRunning": self.is_running,
            "currentStep": self.current_step or None,
            "progress": self.progress,
            "error": self.error or None,
            "errorKind": self.error_kind or None,
            "startedAt": self.started_at or None,
            "taskId": self.task_id or None,
            "updatedAt": self.updated_at or None,
        }


@dataclass(frozen=True)
class StagedFile:
    category: str
    subcategory: str
    relative_path: str
    original_filename: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class FileSelection:
    paths: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"paths": list(self.paths)}


def _expect_str(payload: dict[str, Any], key: str) -> str:
    if key not in payload:
        raise ValueError(f"'{key}' is required")
    value = payload[key]
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string")
    return value


def _optional_str(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string")
    return value


def _expect_str_tuple(payload: dict[str, Any], key: str) -> tuple[str, ...]:
    value = payload.get(key)
    if value is None:
        return ()
    if not isinstance(value, list):
        raise ValueError(f"'{key}' must be a list of strings")
    if any(not isinstance(item, str) for item in value):
        raise ValueError(f"'{key}' must contain only strings")
    return tuple(value)
