"""Manifest envelope shared by the JSON and ZIP export formats."""

import hashlib
import json
import logging
from typing import Any

from pydantic.alias_generators import to_camel

from bizgov.core.timestamps import utcnow
from bizgov.services.entities import ENTITIES
from bizgov.services.errors import CorruptArchiveError

logger = logging.getLogger(__name__)

APP_NAME = "BizGov"
FORMAT_VERSION = "1.0"
REQUIRED_COLLECTIONS = ("users", "organizations")


def data_hash(data: dict[str, list[dict[str, Any]]]) -> str:
    """SHA-256 of the canonical JSON form of the entity data."""
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def build_manifest(
    data: dict[str, list[dict[str, Any]]],
    files: dict[str, str] | None = None,
    include_credentials: bool = False,
) -> dict[str, Any]:
    """Wrap exported entity data in the manifest envelope.

    Args:
        data: Manifest key -> serialized records
        files: Evidence id -> original filename for bundled blobs; omitted
            from the JSON-only form
        include_credentials: Whether user password hashes are included
    """
    manifest: dict[str, Any] = {
        "appName": APP_NAME,
        "version": FORMAT_VERSION,
        "exportedAt": utcnow().isoformat(),
        "includesCredentials": include_credentials,
        "hash": data_hash(data),
        "data": data,
    }
    if files is not None:
        manifest["files"] = files
    return manifest


def _check_key_types(key: str, records: list[dict[str, Any]]) -> None:
    """Ids and references must be strings (references may also be null)."""
    keys = [to_camel(fk) for fk in ENTITIES[key].references]
    for index, record in enumerate(records):
        if not isinstance(record.get("id"), str | None):
            raise CorruptArchiveError(f"Collection '{key}' record {index}: id must be a string")
        for name in keys:
            if not isinstance(record.get(name), str | None):
                raise CorruptArchiveError(
                    f"Collection '{key}' record {index}: {name} must be a string"
                )


def validate_manifest(
    manifest: dict[str, Any],
    required: tuple[str, ...] = REQUIRED_COLLECTIONS,
) -> dict[str, list[dict[str, Any]]]:
    """Check a manifest before anything is written.

    Args:
        manifest: Parsed manifest object
        required: Collections that must be present

    Returns:
        The manifest's entity data

    Raises:
        CorruptArchiveError: If the manifest is not a BizGov export, misses a
            required collection, has malformed collections, has ids or
            references that are not strings, or fails its hash
    """
    data = manifest.get("data")
    if not isinstance(data, dict):
        raise CorruptArchiveError("Invalid backup format: missing 'data' object")

    if manifest.get("appName") != APP_NAME:
        raise CorruptArchiveError(
            f"This file is not a {APP_NAME} export (missing 'appName: {APP_NAME}' identifier)"
        )

    missing = [key for key in required if key not in data]
    if missing:
        raise CorruptArchiveError(f"Export is missing required collections: {', '.join(missing)}")

    for key, records in data.items():
        if key not in ENTITIES:
            logger.warning(f"Ignoring unknown collection '{key}' in manifest")
            continue
        if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
            raise CorruptArchiveError(f"Collection '{key}' must be a list of objects")
        _check_key_types(key, records)

    expected = manifest.get("hash")
    if expected and expected != data_hash(data):
        raise CorruptArchiveError("Data integrity check failed - file may be corrupted")

    version = manifest.get("version")
    if version and version != FORMAT_VERSION:
        logger.warning(
            f"Import version {version} may not be fully compatible with version {FORMAT_VERSION}"
        )

    return data
