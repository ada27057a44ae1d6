"""Import reconciler: decides insert, skip or error for every record.

An import run moves through ``validating -> planning -> inserting ->
reporting``. Only a corrupt archive stops a run, and that can only happen
while validating, before anything is written. Every record is committed on
its own, so a re-run of the same archive picks up where a failed run left
off and inserts nothing that already exists.
"""

import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from pathlib import Path
from typing import Any, get_args

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from bizgov.core.security import get_password_hash
from bizgov.core.timestamps import as_utc
from bizgov.schemas.transfer import ImportSummary
from bizgov.services.entities import ENTITIES, EVIDENCE_FILES_COUNTER, summary_counters
from bizgov.services.errors import (
    ConstraintViolationError,
    CorruptArchiveError,
    DanglingReferenceError,
    DuplicateKeyError,
    RecordError,
)
from bizgov.services.filesystem import StorageError, remove_file, sha256_hex, store_evidence_file
from bizgov.services.manifest import REQUIRED_COLLECTIONS, validate_manifest
from bizgov.services.resolver import PlannedRecord, ReferenceResolver, load_existing_ids

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


class ImportState(str, Enum):
    """Import run states."""

    VALIDATING = "validating"
    PLANNING = "planning"
    INSERTING = "inserting"
    REPORTING = "reporting"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass
class ImportReport:
    """Per-collection counters of an import run."""

    imported: dict[str, int] = field(default_factory=lambda: dict.fromkeys(summary_counters(), 0))
    skipped: dict[str, int] = field(default_factory=lambda: dict.fromkeys(summary_counters(), 0))
    errors: int = 0
    state: ImportState = ImportState.VALIDATING

    @property
    def total(self) -> int:
        """Inserted records; evidence files are not counted twice."""
        return sum(
            count for name, count in self.imported.items() if name != EVIDENCE_FILES_COUNTER
        )

    def to_summary(self) -> ImportSummary:
        if self.total:
            message = f"Successfully imported {self.total} records"
        else:
            message = "No new records were imported. All records already exist in the database."
        return ImportSummary(
            message=message,
            imported=self.imported,
            skipped=self.skipped,
            total=self.total,
            errors=self.errors,
        )


def _computed_total(fields: dict[str, Any]) -> Decimal | None:
    """rate * units of a billable event, or None when either is unusable."""
    try:
        return (Decimal(str(fields["rate"])) * Decimal(str(fields["units"]))).quantize(CENTS)
    except (KeyError, InvalidOperation):
        return None


def _normalise_datetimes(model: Any, fields: dict[str, Any]) -> None:
    """Rewrite datetime fields as UTC; offset-less values are taken as UTC."""
    for name, info in model.model_fields.items():
        if info.annotation is not datetime and datetime not in get_args(info.annotation):
            continue
        value = fields.get(name)
        if isinstance(value, str):
            try:
                value = datetime.fromisoformat(value)
            except ValueError:
                # left for model validation to report
                continue
        if isinstance(value, datetime):
            fields[name] = as_utc(value)


class ImportService:
    """Writes manifest records into the destination database."""

    def __init__(self, session: AsyncSession, upload_dir: str | Path | None = None):
        self.session = session
        self.upload_dir = upload_dir

    async def import_database(self, manifest: dict[str, Any]) -> ImportReport:
        """Import a JSON-only manifest; evidence rows keep their file paths."""
        return await self._run(manifest, files=None, required=REQUIRED_COLLECTIONS)

    async def import_bundle(
        self,
        manifest: dict[str, Any],
        files: dict[str, bytes],
        required: tuple[str, ...] = REQUIRED_COLLECTIONS,
    ) -> ImportReport:
        """Import an unpacked archive, storing blobs of newly inserted evidence.

        Args:
            manifest: Manifest from :func:`bizgov.services.archive.unpack`
            files: Evidence id -> file content
            required: Collections the manifest must contain
        """
        if self.upload_dir is None:
            raise ValueError("upload_dir is required to import evidence files")
        return await self._run(manifest, files=files, required=required)

    async def _run(
        self,
        manifest: dict[str, Any],
        files: dict[str, bytes] | None,
        required: tuple[str, ...],
    ) -> ImportReport:
        report = ImportReport()

        try:
            data = validate_manifest(manifest, required)
        except CorruptArchiveError:
            report.state = ImportState.ABORTED
            raise
        file_table = manifest.get("files") or {}

        report.state = ImportState.PLANNING
        existing = await load_existing_ids(self.session)
        plan = ReferenceResolver(existing).plan(data)
        logger.info(f"Import plan: {', '.join(plan.order)} ({len(plan.dangling)} dangling records)")

        report.state = ImportState.INSERTING
        available = {key: set(ids) for key, ids in existing.items()}
        for step in plan.steps:
            counter = ENTITIES[step.entity].counter
            for record in step.records:
                try:
                    stored_file = await self._insert(record, available, files, file_table)
                except DuplicateKeyError:
                    report.skipped[counter] += 1
                    continue
                except RecordError as e:
                    report.errors += 1
                    logger.warning(f"Import error: {e}")
                    continue

                report.imported[counter] += 1
                if stored_file:
                    report.imported[EVIDENCE_FILES_COUNTER] += 1

            logger.info(
                f"Imported {report.imported[counter]} {step.entity} "
                f"(skipped {report.skipped[counter]} duplicates)"
            )

        report.state = ImportState.REPORTING
        logger.info(f"Import complete. Total records imported: {report.total}, errors: {report.errors}")
        report.state = ImportState.COMPLETED
        return report

    async def _unique_value_taken(self, model: Any, column: str, value: Any) -> bool:
        result = await self.session.execute(
            select(model.id).where(getattr(model, column) == value).limit(1)
        )
        return result.first() is not None

    async def _insert(
        self,
        record: PlannedRecord,
        available: dict[str, set[str]],
        files: dict[str, bytes] | None,
        file_table: dict[str, str],
    ) -> bool:
        """Insert one record.

        Returns:
            True when an evidence file was written for the record

        Raises:
            DuplicateKeyError: The primary key already exists
            DanglingReferenceError: A reference resolves nowhere
            ConstraintViolationError: The record cannot be stored
        """
        entity, record_id = record.entity, record.record_id
        spec = ENTITIES[entity]
        fields = dict(record.fields)

        if not record_id:
            raise ConstraintViolationError(entity, None, "record has no id")
        if record_id in available[entity]:
            raise DuplicateKeyError(entity, record_id, "already exists")
        if record.dangling:
            raise DanglingReferenceError(entity, record_id, "; ".join(record.dangling))

        for fk, target in spec.references.items():
            value = fields.get(fk)
            if value is not None and value not in available[target]:
                raise ConstraintViolationError(
                    entity, record_id, f"{fk} -> {target} {value} was not imported"
                )

        if entity == "users" and not fields.get("hashed_password"):
            # Keeps the account referenceable; nobody can sign in with it
            fields["hashed_password"] = get_password_hash(secrets.token_urlsafe(32))
            fields["is_active"] = False
            logger.warning(f"User {record_id} has no credentials, importing as inactive")

        if entity == "billableEvents" and fields.get("total_amount") is None:
            fields["total_amount"] = _computed_total(fields)

        for column in spec.unique_fields:
            value = fields.get(column)
            if value is not None and await self._unique_value_taken(spec.model, column, value):
                raise ConstraintViolationError(entity, record_id, f"{column} '{value}' is already in use")

        stored_path = None
        if entity == "evidence" and files is not None:
            fields["file_path"] = None
            fields["file_hash"] = None
            content = files.get(record_id)
            if content is not None:
                filename = fields.get("original_filename") or file_table.get(record_id)
                try:
                    stored_path = store_evidence_file(self.upload_dir, record_id, filename, content)
                except (StorageError, OSError) as e:
                    raise ConstraintViolationError(entity, record_id, f"cannot store file: {e}")
                fields["file_path"] = str(stored_path)
                fields["file_hash"] = sha256_hex(content)

        _normalise_datetimes(spec.model, fields)
        try:
            row = spec.model.model_validate(fields)
        except ValidationError as e:
            self._discard(stored_path)
            fields_in_error = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise ConstraintViolationError(entity, record_id, f"invalid fields: {fields_in_error}")

        self.session.add(row)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            self._discard(stored_path)
            # A concurrent import may have inserted the same id first
            if await self.session.get(spec.model, record_id) is not None:
                available[entity].add(record_id)
                raise DuplicateKeyError(entity, record_id, "inserted concurrently")
            raise ConstraintViolationError(entity, record_id, f"integrity error: {e.orig}")

        available[entity].add(record_id)
        return stored_path is not None

    @staticmethod
    def _discard(path: Path | None) -> None:
        if path is not None:
            remove_file(path)
