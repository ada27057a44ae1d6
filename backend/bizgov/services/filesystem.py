"""Evidence file storage and path safety utilities."""

import hashlib
import re
from pathlib import Path


class StorageError(Exception):
    """Evidence storage error."""

    pass


class PathValidationError(StorageError):
    """Path validation failed."""

    pass


def validate_path(path: str | Path, allowed_root: str | Path) -> Path:
    """Validate that a path is within the allowed root directory.

    Args:
        path: The path to validate
        allowed_root: The root directory that path must be within

    Returns:
        The canonicalized path

    Raises:
        PathValidationError: If path is outside allowed root or invalid
    """
    try:
        canonical_path = Path(path).resolve()
        canonical_root = Path(allowed_root).resolve()

        # Check if path is relative to root (prevents traversal)
        if not canonical_path.is_relative_to(canonical_root):
            raise PathValidationError(
                f"Path '{path}' is outside allowed root '{allowed_root}'"
            )

        return canonical_path

    except (ValueError, OSError) as e:
        raise PathValidationError(f"Invalid path '{path}': {e}")


def safe_filename(filename: str | None, fallback: str = "file") -> str:
    """Reduce an uploaded filename to a safe single path component.

    Directory parts are dropped and anything outside ``[\\w.-]`` becomes ``_``.
    """
    if not filename:
        return fallback

    # Drop directory components from either separator style
    name = filename.replace("\\", "/").split("/")[-1]
    name = name.replace("\x00", "")
    name = re.sub(r"[^\w.\-]", "_", name).strip("._")

    return name[:200] or fallback


def ensure_directory(path: str | Path) -> Path:
    """Create a directory if needed and return its canonical path."""
    directory = Path(path).resolve()
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def sha256_hex(content: bytes) -> str:
    """Hex SHA-256 digest of file content."""
    return hashlib.sha256(content).hexdigest()


def store_evidence_file(
    upload_dir: str | Path,
    evidence_id: str,
    original_filename: str | None,
    content: bytes,
) -> Path:
    """Write an evidence file into the upload directory.

    The stored name is prefixed with the evidence id so files with the same
    original name never overwrite each other.

    Returns:
        Absolute path of the written file

    Raises:
        PathValidationError: If the resulting path escapes the upload directory
    """
    root = ensure_directory(upload_dir)
    name = f"{safe_filename(evidence_id, 'evidence')}-{safe_filename(original_filename)}"
    target = validate_path(root / name, root)
    target.write_bytes(content)
    return target


def read_evidence_file(file_path: str | Path) -> bytes:
    """Read an evidence file from disk.

    Raises:
        FileNotFoundError: If the file does not exist
        OSError: If the file cannot be read
    """
    path = Path(file_path)
    if not path.is_file():
        raise FileNotFoundError(f"Evidence file not found: {file_path}")
    return path.read_bytes()


def remove_file(file_path: str | Path) -> None:
    """Delete a file, ignoring one that is already gone."""
    Path(file_path).unlink(missing_ok=True)
