import os
import tempfile
import unittest
from pathlib import Path

from rightsguard.constants import STAGING_LAYOUT
from rightsguard.errors import StagedFileMissing
from rightsguard.file_staging import FileStagingService, select_files


class FileStagingTests(unittest.TestCase):
    def test_stage_then_resolve_returns_identical_bytes(self) -> None:
        with tempfile.TemporaryDirectory(dir=".") as tmp:
            base = Path(tmp)
            source = base / "身份证 正面.png"
            source.write_bytes(b"\x89PNG\r\n\x1a\nfake-image")
            service = FileStagingService(base / "files")

            relative = service.stage(source, "profiles", "id_cards")
            resolved = service.resolve(relative)

            self.assertTrue(relative.startswith("profiles/id_cards/"))
            self.assertNotIn("\\", relative)
            self.assertEqual(Path(resolved).read_bytes(), source.read_bytes())
            self.assertTrue(os.path.isabs(resolved))

    def test_stage_never_overwrites_existing_copy(self) -> None:
        with tempfile.TemporaryDirectory(dir=".") as tmp:
            base = Path(tmp)
            source = base / "proof.pdf"
            source.write_bytes(b"%PDF-1.4 one")
            service = FileStagingService(base / "files")

            first = service.stage(source, "ip_assets", "proof_docs")
            source.write_bytes(b"%PDF-1.4 two")
            second = service.stage(source, "ip_assets", "proof_docs")

            self.assertNotEqual(first, second)
            self.assertEqual(Path(service.resolve(first)).read_bytes(), b"%PDF-1.4 one")
            self.assertEqual(Path(service.resolve(second)).read_bytes(), b"%PDF-1.4 two")

    def test_stage_file_reports_original_name(self) -> None:
        with tempfile.TemporaryDirectory(dir=".") as tmp:
            base = Path(tmp)
            source = base / "auth.jpg"
            source.write_bytes(b"jpg")
            staged = FileStagingService(base / "files").stage_file(source, "ip_assets", "auth_docs")
            self.assertEqual(staged.original_filename, "auth.jpg")
            self.assertEqual(staged.category, "ip_assets")
            self.assertEqual(staged.subcategory, "auth_docs")
            self.assertTrue(staged.relative_path.endswith(".jpg"))

    def test_missing_source_raises_file_not_found(self) -> None:
        with tempfile.TemporaryDirectory(dir=".") as tmp:
            service = FileStagingService(Path(tmp) / "files")
            with self.assertRaises(FileNotFoundError):
                service.stage(Path(tmp) / "nope.png", "profiles", "id_cards")

    def test_unsafe_category_is_rejected(self) -> None:
        with tempfile.TemporaryDirectory(dir=".") as tmp:
            base = Path(tmp)
            source = base / "a.png"
            source.write_bytes(b"x")
            service = FileStagingService(base / "files")
            with self.assertRaises(ValueError):
                service.stage(source, "../escape", "id_cards")
            with self.assertRaises(ValueError):
                service.stage(source, "profiles", "")

    def test_resolve_after_deletion_raises_staged_file_missing(self) -> None:
        with tempfile.TemporaryDirectory(dir=".") as tmp:
            base = Path(tmp)
            source = base / "id.png"
            source.write_bytes(b"x")
            service = FileStagingService(base / "files")
            relative = service.stage(source, "profiles", "id_cards")
            Path(service.resolve(relative)).unlink()

            with self.assertRaises(StagedFileMissing) as ctx:
                service.resolve(relative)
            self.assertEqual(ctx.exception.relative_path, relative)

    def test_resolve_rejects_absolute_and_escaping_identifiers(self) -> None:
        with tempfile.TemporaryDirectory(dir=".") as tmp:
            service = FileStagingService(Path(tmp) / "files")
            for raw in ("", "/etc/passwd", "profiles/../../secret", "C:/x.png", "."):
                with self.assertRaises(ValueError, msg=raw):
                    service.resolve(raw)

    def test_ensure_layout_is_idempotent(self) -> None:
        with tempfile.TemporaryDirectory(dir=".") as tmp:
            root = Path(tmp) / "files"
            service = FileStagingService(root)
            service.ensure_layout(STAGING_LAYOUT)
            service.ensure_layout(STAGING_LAYOUT)
            self.assertTrue((root / "profiles" / "id_cards").is_dir())
            self.assertTrue((root / "ip_assets" / "auth_docs").is_dir())
            self.assertTrue((root / "ip_assets" / "proof_docs").is_dir())


class SelectFilesTests(unittest.TestCase):
    def test_select_files_filters_extensions(self) -> None:
        with tempfile.TemporaryDirectory(dir=".") as tmp:
            base = Path(tmp)
            ok = base / "scan.PDF"
            ok.write_bytes(b"%PDF")
            bad = base / "notes.txt"
            bad.write_text("x", encoding="utf-8")

            selection = select_files([str(ok)])
            self.assertEqual(selection.paths, [str(ok.resolve())])
            with self.assertRaises(ValueError):
                select_files([str(bad)])
            with self.assertRaises(FileNotFoundError):
                select_files([str(base / "missing.png")])


if __name__ == "__main__":
    unittest.main()
