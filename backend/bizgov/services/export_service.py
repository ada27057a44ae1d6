"""Export assembler: snapshots the database and evidence files."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel, select

from bizgov.services.entities import ENTITIES, serialize_record
from bizgov.services.errors import MissingFileError
from bizgov.services.filesystem import read_evidence_file
from bizgov.services.manifest import build_manifest

logger = logging.getLogger(__name__)

# Collections kept whole in a scoped export
_UNSCOPED = ("users",)


@dataclass
class ExportScope:
    """Which part of the database to export.

    The default exports everything. ``organization_id`` limits the snapshot to
    one organization and the rows hanging off it; ``collections`` limits it
    to the named manifest collections.
    """

    organization_id: str | None = None
    collections: tuple[str, ...] | None = None


@dataclass
class EvidenceBundle:
    """Manifest plus the evidence blobs it names."""

    manifest: dict[str, Any]
    files: dict[str, bytes] = field(default_factory=dict)
    missing_files: list[str] = field(default_factory=list)


class ExportService:
    """Read-only service that assembles exports."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _load(self, model: type[SQLModel]) -> list[SQLModel]:
        result = await self.session.execute(select(model).order_by(model.id))
        return list(result.scalars().all())

    async def collect(self, scope: ExportScope | None = None) -> dict[str, list[SQLModel]]:
        """Load rows for every collection in the scope, in dependency order."""
        scope = scope or ExportScope()
        rows: dict[str, list[SQLModel]] = {}
        kept_ids: set[str] = set()

        for key, spec in ENTITIES.items():
            if scope.collections is not None and key not in scope.collections:
                continue

            loaded = await self._load(spec.model)
            if scope.organization_id is not None:
                loaded = [
                    row for row in loaded
                    if self._in_scope(key, row, scope.organization_id, kept_ids)
                ]
            kept_ids.update(row.id for row in loaded)
            rows[key] = loaded

        return rows

    @staticmethod
    def _in_scope(key: str, row: Any, organization_id: str, kept_ids: set[str]) -> bool:
        if key in _UNSCOPED:
            return True
        if key == "organizations":
            return row.id == organization_id
        if key == "auditLogs":
            return row.entity_id in kept_ids
        # Anything else belongs to the scope through a non-user reference
        spec = ENTITIES[key]
        return any(
            getattr(row, fk) in kept_ids
            for fk, target in spec.references.items()
            if target != "users" and getattr(row, fk) is not None
        )

    async def export_database(self, scope: ExportScope | None = None) -> dict[str, Any]:
        """Build the JSON-only manifest.

        Password hashes are left out and no files are read.
        """
        rows = await self.collect(scope)
        data = {
            key: [serialize_record(row) for row in records]
            for key, records in rows.items()
        }
        total = sum(len(records) for records in data.values())
        logger.info(f"Exported {total} records across {len(data)} collections")
        return build_manifest(data)

    async def assemble_bundle(
        self,
        scope: ExportScope | None = None,
        include_credentials: bool = True,
    ) -> EvidenceBundle:
        """Build the manifest and file table for a unified export.

        An evidence file that cannot be read does not abort the export: the
        record is exported without a file and the blob is left out.

        Args:
            scope: Optional export scope
            include_credentials: Whether user password hashes are included

        Returns:
            EvidenceBundle ready for :func:`bizgov.services.archive.pack`
        """
        rows = await self.collect(scope)
        data: dict[str, list[dict[str, Any]]] = {}
        bundle = EvidenceBundle(manifest={})
        file_table: dict[str, str] = {}

        for key, records in rows.items():
            data[key] = [serialize_record(row, include_credentials) for row in records]

        for record in data.get("evidence", []):
            file_path = record.get("filePath")
            if not file_path:
                continue
            try:
                bundle.files[record["id"]] = read_evidence_file(file_path)
            except OSError:
                error = MissingFileError(record["id"], file_path)
                logger.warning(f"{error}; exporting record without file")
                bundle.missing_files.append(record["id"])
                record["filePath"] = None
                record["fileHash"] = None
                continue
            file_table[record["id"]] = record.get("originalFilename") or Path(file_path).name

        bundle.manifest = build_manifest(data, files=file_table, include_credentials=include_credentials)
        logger.info(
            f"Assembled bundle with {len(data.get('evidence', []))} evidence records, "
            f"{len(bundle.files)} files, {len(bundle.missing_files)} missing"
        )
        return bundle
