"""
Unit tests — Document staging area (services/document_staging.py).
"""
from __future__ import annotations

import pytest

from portal.exceptions import StagingError
from portal.services.business_types import config_for
from portal.services.document_staging import DocumentStagingArea, StagedFile


class TestStage:
    def test_stage_and_read_back(self, make_file) -> None:
        area = DocumentStagingArea()
        area.stage("license", [make_file("a.pdf"), make_file("b.png", "image/png")])
        assert [f.name for f in area.files_for("license")] == ["a.pdf", "b.png"]
        assert len(area) == 2

    def test_stage_replaces_previous_list(self, make_file) -> None:
        area = DocumentStagingArea()
        area.stage("license", [make_file("a.pdf")])
        area.stage("license", [make_file("b.pdf")])
        assert [f.name for f in area.files_for("license")] == ["b.pdf"]

    def test_empty_list_removes_type(self, make_file) -> None:
        area = DocumentStagingArea()
        area.stage("license", [make_file()])
        area.stage("license", [])
        assert "license" not in area.staged_types()
        assert area.is_empty

    def test_too_many_files_rejected(self, make_file) -> None:
        area = DocumentStagingArea(max_files=3)
        with pytest.raises(StagingError, match="Maximum 3"):
            area.stage("license", [make_file(f"{i}.pdf") for i in range(4)])

    def test_unsupported_type_rejected(self, make_file) -> None:
        area = DocumentStagingArea()
        with pytest.raises(StagingError, match="not a supported file type"):
            area.stage("license", [make_file("run.exe", "application/x-msdownload")])

    def test_oversized_file_rejected(self) -> None:
        area = DocumentStagingArea(max_bytes=1024 * 1024)
        big = StagedFile("scan.pdf", b"x" * (1024 * 1024 + 1), "application/pdf")
        with pytest.raises(StagingError, match="too large"):
            area.stage("license", [big])

    def test_duplicate_name_within_type_rejected(self, make_file) -> None:
        area = DocumentStagingArea()
        with pytest.raises(StagingError, match="scan.pdf is already attached"):
            area.stage("license", [make_file("scan.pdf"), make_file("scan.pdf")])
        assert area.is_empty

    def test_same_name_allowed_across_types(self, make_file) -> None:
        area = DocumentStagingArea()
        area.stage("license", [make_file("scan.pdf")])
        area.stage("training", [make_file("scan.pdf")])
        assert len(area) == 2

    def test_rejected_stage_keeps_previous_files(self, make_file) -> None:
        area = DocumentStagingArea()
        area.stage("license", [make_file("keep.pdf")])
        with pytest.raises(StagingError):
            area.stage("license", [make_file("bad.txt", "text/plain")])
        assert [f.name for f in area.files_for("license")] == ["keep.pdf"]


class TestUnstageAndQueries:
    def test_unstage_by_name(self, make_file) -> None:
        area = DocumentStagingArea()
        area.stage("license", [make_file("a.pdf"), make_file("b.pdf")])
        assert area.unstage("license", "a.pdf") is True
        assert [f.name for f in area.files_for("license")] == ["b.pdf"]

    def test_unstage_last_file_drops_type(self, make_file) -> None:
        area = DocumentStagingArea()
        area.stage("license", [make_file("a.pdf")])
        area.unstage("license", "a.pdf")
        assert area.staged_types() == set()

    def test_unstage_unknown_returns_false(self) -> None:
        assert DocumentStagingArea().unstage("license", "nope.pdf") is False

    def test_missing_in_required_order(self, make_file) -> None:
        area = DocumentStagingArea()
        area.stage("background_check", [make_file()])
        missing = area.missing(config_for("security").required_documents)
        assert [spec.type for spec in missing] == ["license", "training"]

    def test_snapshot_is_detached(self, make_file) -> None:
        area = DocumentStagingArea()
        area.stage("license", [make_file("a.pdf")])
        snap = area.snapshot()
        area.clear()
        assert [f.name for f in snap["license"]] == ["a.pdf"]
        assert area.is_empty

    def test_safe_name_drops_directories(self) -> None:
        assert StagedFile("../../etc/passwd.pdf", b"", "application/pdf").safe_name == "passwd.pdf"
        assert StagedFile("C:\\scans\\id.png", b"", "image/png").safe_name == "id.png"
