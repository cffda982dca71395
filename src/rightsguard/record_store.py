"""JSON-file record store for the personal profile, IP assets and cases."""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any

from rightsguard.models import Case, IpAsset, Profile
from rightsguard.storage import read_json, write_json


class RecordStore:
    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = Lock()

    def get_profile(self) -> Profile | None:
        payload = self._load().get("profile")
        if not isinstance(payload, dict):
            return None
        return Profile.from_dict(payload)

    def save_profile(self, profile: Profile) -> Profile:
        with self._lock:
            data = self._load()
            existing = data.get("profile") if isinstance(data.get("profile"), dict) else {}
            now = _now()
            saved = replace(
                profile,
                id=profile.id or str(existing.get("id", "")) or _new_id(),
                created_at=profile.created_at or str(existing.get("created_at", "")) or now,
                updated_at=now,
            )
            data["profile"] = saved.to_dict()
            write_json(self.path, data)
        return saved

    def get_ip_asset(self, asset_id: str) -> IpAsset | None:
        for item in self._load().get("ip_assets", []):
            if isinstance(item, dict) and item.get("id") == asset_id:
                return IpAsset.from_dict(item)
        return None

    def list_ip_assets(self) -> list[IpAsset]:
        return [IpAsset.from_dict(item) for item in self._load().get("ip_assets", []) if isinstance(item, dict)]

    def save_ip_asset(self, asset: IpAsset) -> IpAsset:
        with self._lock:
            data = self._load()
            items = [item for item in data.get("ip_assets", []) if isinstance(item, dict)]
            saved = self._upsert(items, asset)
            data["ip_assets"] = items
            write_json(self.path, data)
        return saved

    def delete_ip_asset(self, asset_id: str) -> bool:
        return self._delete("ip_assets", asset_id)

    def list_cases(self) -> list[Case]:
        return [Case.from_dict(item) for item in self._load().get("cases", []) if isinstance(item, dict)]

    def save_case(self, case: Case) -> Case:
        with self._lock:
            data = self._load()
            items = [item for item in data.get("cases", []) if isinstance(item, dict)]
            saved = self._upsert(items, case)
            data["cases"] = items
            write_json(self.path, data)
        return saved

    def delete_case(self, case_id: str) -> bool:
        return self._delete("cases", case_id)

    def _delete(self, key: str, record_id: str) -> bool:
        with self._lock:
            data = self._load()
            items = [item for item in data.get(key, []) if isinstance(item, dict)]
            kept = [item for item in items if item.get("id") != record_id]
            if len(kept) == len(items):
                return False
            data[key] = kept
            write_json(self.path, data)
        return True

    @staticmethod
    def _upsert(items: list[dict[str, Any]], record: Any) -> Any:
        now = _now()
        record_id = record.id or _new_id()
        index = next((i for i, item in enumerate(items) if item.get("id") == record_id), None)
        created_at = record.created_at
        if index is not None:
            created_at = created_at or str(items[index].get("created_at", ""))
        saved = replace(record, id=record_id, created_at=created_at or now, updated_at=now)
        if index is None:
            items.append(saved.to_dict())
        else:
            items[index] = saved.to_dict()
        return saved

    def _load(self) -> dict[str, Any]:
        payload = read_json(self.path, default={})
        if not isinstance(payload, dict):
            raise ValueError(f"Record store is corrupt: {self.path}")
        return payload


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())
