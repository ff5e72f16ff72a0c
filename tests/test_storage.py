"""Tests for attachment_archiver.storage."""

from __future__ import annotations

from pathlib import Path

import pytest

from attachment_archiver.errors import StorageError
from attachment_archiver.parser import ParsedAttachment
from attachment_archiver.storage import AttachmentStore, sanitize_filename


def _attachment(name: str = "report.pdf", payload: bytes = b"%PDF-1.4") -> ParsedAttachment:
    return ParsedAttachment(filename=name, content_type="application/pdf", payload=payload)


class TestEnsureDirectory:
    def test_creates_missing_directory(self, store: AttachmentStore, destination_dir: Path):
        assert not destination_dir.exists()
        store.ensure_directory()
        assert destination_dir.is_dir()

    def test_existing_directory_is_fine(self, store: AttachmentStore, destination_dir: Path):
        destination_dir.mkdir()
        store.ensure_directory()
        assert destination_dir.is_dir()

    def test_file_in_the_way(self, tmp_path: Path):
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        with pytest.raises(StorageError):
            AttachmentStore(blocker).ensure_directory()


class TestSave:
    def test_writes_under_declared_name(self, store: AttachmentStore, destination_dir: Path):
        store.ensure_directory()
        path = store.save(_attachment(payload=b"first"))
        assert path == destination_dir / "report.pdf"
        assert path.read_bytes() == b"first"

    def test_collision_gets_timestamp_prefix(
        self, store: AttachmentStore, destination_dir: Path
    ):
        store.ensure_directory()
        first = store.save(_attachment(payload=b"first"))
        second = store.save(_attachment(payload=b"second"))
        assert first.name == "report.pdf"
        assert second.name == "20250601_120000_report.pdf"
        assert first.read_bytes() == b"first"
        assert second.read_bytes() == b"second"

    def test_same_second_collision_gets_counter(
        self, store: AttachmentStore, destination_dir: Path
    ):
        store.ensure_directory()
        names = [store.save(_attachment(payload=bytes([i]))).name for i in range(4)]
        assert names == [
            "report.pdf",
            "20250601_120000_report.pdf",
            "20250601_120000_1_report.pdf",
            "20250601_120000_2_report.pdf",
        ]
        assert len(list(destination_dir.iterdir())) == 4

    def test_directory_components_are_dropped(
        self, store: AttachmentStore, destination_dir: Path
    ):
        store.ensure_directory()
        path = store.save(_attachment(name="../../etc/passwd"))
        assert path == destination_dir / "passwd"

    def test_missing_directory_is_fatal(self, store: AttachmentStore):
        with pytest.raises(StorageError):
            store.save(_attachment())

    def test_empty_payload(self, store: AttachmentStore):
        store.ensure_directory()
        path = store.save(_attachment(payload=b""))
        assert path.read_bytes() == b""


class TestSanitizeFilename:
    def test_plain_name_unchanged(self):
        assert sanitize_filename("report.pdf") == "report.pdf"

    def test_unicode_name_unchanged(self):
        assert sanitize_filename("résumé 2025.pdf") == "résumé 2025.pdf"

    def test_windows_path(self):
        assert sanitize_filename("C:\\Users\\me\\scan.png") == "scan.png"

    def test_dot_names(self):
        assert sanitize_filename("..") == "unnamed"
        assert sanitize_filename("dir/.") == "unnamed"
        assert sanitize_filename("   ") == "unnamed"
