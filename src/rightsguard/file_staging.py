"""Staging of user-selected files into the application data directory."""

from __future__ import annotations

import os
import shutil
import time
from pathlib import Path, PurePosixPath
from typing import Iterable

from rightsguard.constants import DOCUMENT_EXTENSIONS, IMAGE_EXTENSIONS
from rightsguard.errors import StagedFileMissing
from rightsguard.models import FileSelection, StagedFile


DEFAULT_SELECTION_EXTENSIONS = IMAGE_EXTENSIONS + DOCUMENT_EXTENSIONS


class FileStagingService:
    """Copies files under ``root/<category>/<subcategory>`` and resolves them back.

    Relative identifiers always use forward slashes so they can be persisted in
    the record store and moved between hosts; absolute resolution only happens
    when a task consumes them.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def stage(self, source_path: str | os.PathLike[str], category: str, subcategory: str) -> str:
        return self.stage_file(source_path, category, subcategory).relative_path

    def stage_file(
        self,
        source_path: str | os.PathLike[str],
        category: str,
        subcategory: str,
    ) -> StagedFile:
        source = Path(source_path).expanduser()
        if not source.is_file():
            raise FileNotFoundError(f"Source file not found: {source}")
        _check_segment(category, "category")
        _check_segment(subcategory, "subcategory")

        target_dir = self.root / category / subcategory
        target_dir.mkdir(parents=True, exist_ok=True)

        disambiguator = time.time_ns()
        while True:
            name = f"{source.stem}_{disambiguator}{source.suffix}"
            target = target_dir / name
            try:
                with source.open("rb") as src, target.open("xb") as dst:
                    shutil.copyfileobj(src, dst)
            except FileExistsError:
                disambiguator += 1
                continue
            break

        relative = PurePosixPath(category, subcategory, name).as_posix()
        return StagedFile(
            category=category,
            subcategory=subcategory,
            relative_path=relative,
            original_filename=source.name,
        )

    def resolve(self, relative_path: str) -> str:
        raw = str(relative_path or "").strip()
        if not raw:
            raise ValueError("Empty staged file identifier")
        parts = [part for part in raw.replace("\\", "/").split("/") if part and part != "."]
        if not parts or raw.startswith(("/", "\\")) or ":" in parts[0] or ".." in parts:
            raise ValueError(f"Staged file identifier must be relative to the staging root: {raw}")
        absolute = os.path.normpath(str(self.root.joinpath(*parts).resolve()))
        if not os.path.isfile(absolute):
            raise StagedFileMissing(raw, absolute)
        return absolute

    def resolve_all(self, relative_paths: Iterable[str]) -> list[str]:
        return [self.resolve(item) for item in relative_paths]

    def ensure_layout(self, layout: dict[str, tuple[str, ...]]) -> None:
        for category, subcategories in layout.items():
            for subcategory in subcategories:
                (self.root / category / subcategory).mkdir(parents=True, exist_ok=True)


def select_files(
    paths: Iterable[str],
    *,
    extensions: tuple[str, ...] | None = DEFAULT_SELECTION_EXTENSIONS,
) -> FileSelection:
    selected: list[str] = []
    for raw in paths:
        candidate = Path(str(raw)).expanduser()
        if not candidate.is_file():
            raise FileNotFoundError(f"Selected file not found: {candidate}")
        if extensions and candidate.suffix.lower() not in extensions:
            raise ValueError(
                f"Unsupported file type '{candidate.suffix}' for {candidate.name}. "
                f"Allowed: {', '.join(extensions)}"
            )
        selected.append(str(candidate.resolve()))
    return FileSelection(paths=selected)


def _check_segment(value: str, label: str) -> None:
    text = str(value or "")
    if not text or text in {".", ".."} or "/" in text or "\\" in text or ":" in text:
        raise ValueError(f"Invalid staging {label}: {value!r}")
