"""ZIP bundle codec for the unified export format.

Layout::

    manifest.json          JSON manifest (entity data + evidence file table)
    files/<evidence id>    raw bytes of each evidence file

Blobs are keyed by evidence id rather than their original filename so two
uploads named ``report.pdf`` never collide; the manifest's ``files`` table
carries the id -> original filename mapping.
"""

import io
import json
import zipfile
import zlib
from typing import Any

from bizgov.services.errors import CorruptArchiveError

MANIFEST_NAME = "manifest.json"
FILES_DIR = "files/"

# Fixed member timestamp so identical input packs to identical bytes
_EPOCH = (1980, 1, 1, 0, 0, 0)


def encode_manifest(manifest: dict[str, Any]) -> bytes:
    """Serialize a manifest deterministically."""
    return json.dumps(manifest, indent=2, sort_keys=True, ensure_ascii=False).encode("utf-8")


def decode_manifest(data: bytes | str) -> dict[str, Any]:
    """Parse manifest JSON.

    Raises:
        CorruptArchiveError: If the text is not a JSON object
    """
    try:
        manifest = json.loads(data)
    except (UnicodeDecodeError, ValueError) as e:
        raise CorruptArchiveError(f"Manifest is not valid JSON: {e}")

    if not isinstance(manifest, dict):
        raise CorruptArchiveError("Manifest must be a JSON object")
    return manifest


def _write_member(archive: zipfile.ZipFile, name: str, payload: bytes) -> None:
    info = zipfile.ZipInfo(name, date_time=_EPOCH)
    info.compress_type = zipfile.ZIP_DEFLATED
    info.external_attr = 0o644 << 16
    archive.writestr(info, payload)


def pack(manifest: dict[str, Any], files: dict[str, bytes]) -> bytes:
    """Pack a manifest and evidence blobs into a ZIP archive.

    Args:
        manifest: Manifest object; its ``files`` table should name every blob
        files: Evidence id -> file content

    Returns:
        Archive bytes
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        _write_member(archive, MANIFEST_NAME, encode_manifest(manifest))
        for evidence_id in sorted(files):
            if not evidence_id or "/" in evidence_id or evidence_id in (".", ".."):
                raise ValueError(f"Invalid evidence id for archive member: {evidence_id!r}")
            _write_member(archive, FILES_DIR + evidence_id, files[evidence_id])
    return buffer.getvalue()


def unpack(data: bytes) -> tuple[dict[str, Any], dict[str, bytes]]:
    """Unpack an archive produced by :func:`pack`.

    Returns:
        (manifest, files) where files maps evidence id -> content

    Raises:
        CorruptArchiveError: If the container, manifest or any blob is damaged,
            or a blob named in the manifest's file table is missing
    """
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except (zipfile.BadZipFile, zipfile.LargeZipFile, ValueError) as e:
        raise CorruptArchiveError(f"Not a readable ZIP archive: {e}")

    with archive:
        names = set(archive.namelist())
        if MANIFEST_NAME not in names:
            raise CorruptArchiveError(f"Archive has no {MANIFEST_NAME}")

        try:
            manifest = decode_manifest(archive.read(MANIFEST_NAME))
            files: dict[str, bytes] = {}
            for name in sorted(names):
                if not name.startswith(FILES_DIR) or name.endswith("/"):
                    continue
                files[name[len(FILES_DIR):]] = archive.read(name)
        except (zipfile.BadZipFile, EOFError, OSError, zlib.error) as e:
            raise CorruptArchiveError(f"Archive member is damaged: {e}")

    file_table = manifest.get("files") or {}
    if not isinstance(file_table, dict):
        raise CorruptArchiveError("Manifest 'files' must be an object")

    missing = sorted(set(file_table) - set(files))
    if missing:
        raise CorruptArchiveError(
            f"Archive is missing {len(missing)} evidence file(s): {', '.join(missing[:5])}"
        )

    return manifest, files
