"""Unit tests for evidence storage utilities."""

import pytest
from pathlib import Path

from bizgov.services.filesystem import (
    validate_path,
    safe_filename,
    sha256_hex,
    store_evidence_file,
    read_evidence_file,
    remove_file,
    PathValidationError,
)


class TestValidatePath:
    """Tests for path validation."""

    def test_valid_path_within_root(self, tmp_path):
        """Test valid path within allowed root."""
        allowed_root = tmp_path
        test_file = tmp_path / "subdir" / "file.txt"
        test_file.parent.mkdir(parents=True, exist_ok=True)
        test_file.touch()

        result = validate_path(test_file, allowed_root)
        assert result == test_file.resolve()

    def test_path_traversal_rejected(self, tmp_path):
        """Test path traversal is rejected."""
        allowed_root = tmp_path / "allowed"
        allowed_root.mkdir()
        outside_path = tmp_path / "allowed" / ".." / "outside"

        with pytest.raises(PathValidationError):
            validate_path(outside_path, allowed_root)

    def test_absolute_path_outside_root_rejected(self, tmp_path):
        """Test absolute path outside root is rejected."""
        allowed_root = tmp_path / "allowed"
        allowed_root.mkdir()

        with pytest.raises(PathValidationError):
            validate_path("/etc/passwd", allowed_root)


class TestSafeFilename:
    """Tests for upload filename sanitization."""

    def test_plain_name_unchanged(self):
        assert safe_filename("report.pdf") == "report.pdf"

    def test_directories_dropped(self):
        assert safe_filename("../../etc/passwd") == "passwd"
        assert safe_filename("C:\\Users\\me\\scan.png") == "scan.png"

    def test_unsafe_characters_replaced(self):
        assert safe_filename("Q1 report (final).pdf") == "Q1_report__final_.pdf"

    def test_empty_uses_fallback(self):
        assert safe_filename(None) == "file"
        assert safe_filename("..", fallback="evidence") == "evidence"


class TestEvidenceFiles:
    """Tests for storing and reading evidence files."""

    def test_store_and_read(self, tmp_path):
        path = store_evidence_file(tmp_path / "uploads", "ev-1", "report.pdf", b"%PDF-1.4")

        assert path.parent == (tmp_path / "uploads").resolve()
        assert path.name == "ev-1-report.pdf"
        assert read_evidence_file(path) == b"%PDF-1.4"

    def test_same_original_name_does_not_collide(self, tmp_path):
        first = store_evidence_file(tmp_path, "ev-1", "report.pdf", b"one")
        second = store_evidence_file(tmp_path, "ev-2", "report.pdf", b"two")

        assert first != second
        assert first.read_bytes() == b"one"
        assert second.read_bytes() == b"two"

    def test_traversal_in_filename_stays_inside_root(self, tmp_path):
        path = store_evidence_file(tmp_path, "ev-1", "../../outside.txt", b"x")

        assert path.parent == tmp_path.resolve()

    def test_read_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_evidence_file(tmp_path / "missing.pdf")

    def test_remove_file_is_idempotent(self, tmp_path):
        path = Path(tmp_path / "gone.txt")
        path.write_bytes(b"x")

        remove_file(path)
        remove_file(path)

        assert not path.exists()

    def test_sha256_hex(self):
        assert sha256_hex(b"") == (
            "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        )
