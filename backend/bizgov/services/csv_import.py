"""Bulk compliance item creation from CSV."""

import csv
import io
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from bizgov.core.timestamps import as_utc, utcnow
from bizgov.models import (
    ComplianceCategory,
    ComplianceItem,
    ComplianceStatus,
    Organization,
    OrganizationType,
)
from bizgov.schemas.transfer import DuplicateHandling, ImportSummary
from bizgov.services.audit import AuditService
from bizgov.services.entities import serialize_record
from bizgov.services.errors import InvalidCsvError, MalformedCsvRowError

logger = logging.getLogger(__name__)

REQUIRED_HEADERS = ("Category", "Commitment", "Responsible Party")
KNOWN_HEADERS = (
    "Category",
    "Type",
    "Commitment",
    "Description",
    "Responsible Party",
    "Status",
    "Due Date",
    "Customer",
    "Organization",
)
DATE_FORMATS = ("%m/%d/%Y", "%Y-%m-%d")

ITEMS_COUNTER = "complianceItems"


def parse_csv(content: bytes) -> list[dict[str, str]]:
    """Read CSV bytes into header-keyed rows.

    Raises:
        InvalidCsvError: If the file is not UTF-8 text, is not CSV, or lacks
            a required column
    """
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise InvalidCsvError(f"CSV must be UTF-8 encoded: {e}")

    reader = csv.DictReader(io.StringIO(text))
    rows = []
    try:
        headers = [h.strip() for h in (reader.fieldnames or [])]
        for row in reader:
            # Short rows yield None values, long rows a list under the None key
            rows.append({
                (key or "").strip(): value.strip() if isinstance(value, str) else ""
                for key, value in row.items()
            })
    except csv.Error as e:
        raise InvalidCsvError(f"CSV parsing failed: {e}")

    missing = [h for h in REQUIRED_HEADERS if h not in headers]
    if missing:
        raise InvalidCsvError(f"CSV is missing required columns: {', '.join(missing)}")

    unknown = [h for h in headers if h and h not in KNOWN_HEADERS]
    if unknown:
        logger.info(f"Ignoring unrecognized CSV columns: {', '.join(unknown)}")

    return rows


def parse_due_date(value: str) -> datetime | None:
    """Parse MM/DD/YYYY, YYYY-MM-DD or ISO-8601 as UTC; blank means no due date.

    Raises:
        ValueError: If the value matches none of the formats
    """
    value = value.strip()
    if not value:
        return None
    for fmt in DATE_FORMATS:
        try:
            return as_utc(datetime.strptime(value, fmt))
        except ValueError:
            continue
    return as_utc(datetime.fromisoformat(value))


def validate_row(row: dict[str, str], row_number: int) -> dict[str, Any] | None:
    """Validate one CSV row.

    Returns:
        Compliance item fields (without organization), or None for a blank row

    Raises:
        MalformedCsvRowError: If a required field is missing or invalid
    """
    category = row.get("Category", "")
    commitment = row.get("Commitment", "")
    responsible_party = row.get("Responsible Party", "")

    if not category and not commitment and not responsible_party:
        return None
    if not category:
        raise MalformedCsvRowError(row_number, "Category is required")
    if not commitment:
        raise MalformedCsvRowError(row_number, "Commitment is required")
    if not responsible_party:
        raise MalformedCsvRowError(row_number, "Responsible Party is required")

    try:
        category_value = ComplianceCategory(category)
    except ValueError:
        valid = ", ".join(c.value for c in ComplianceCategory)
        raise MalformedCsvRowError(row_number, f'Invalid category "{category}". Must be one of: {valid}')

    status_text = (row.get("Status") or "pending").lower()
    try:
        status = ComplianceStatus(status_text)
    except ValueError:
        valid = ", ".join(s.value for s in ComplianceStatus)
        raise MalformedCsvRowError(row_number, f'Invalid status "{row.get("Status")}". Must be one of: {valid}')

    try:
        due_date = parse_due_date(row.get("Due Date", ""))
    except ValueError:
        raise MalformedCsvRowError(
            row_number,
            f'Invalid due date format "{row.get("Due Date")}". Use MM/DD/YYYY or YYYY-MM-DD',
        )

    return {
        "category": category_value,
        "type": row.get("Type", ""),
        "commitment": commitment,
        "description": row.get("Description") or None,
        "responsible_party": responsible_party,
        "status": status,
        "due_date": due_date,
    }


def _duplicate_key(
    organization_id: str,
    category: ComplianceCategory,
    commitment: str,
    due_date: datetime | None,
) -> tuple:
    return (
        organization_id,
        category,
        commitment.strip().lower(),
        due_date.date() if due_date else None,
    )


@dataclass
class CsvImportReport:
    """Counters of a CSV import run."""

    imported: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0

    def to_summary(self) -> ImportSummary:
        return ImportSummary(
            message=f"Successfully imported {self.imported} compliance items",
            imported={ITEMS_COUNTER: self.imported},
            skipped={ITEMS_COUNTER: self.skipped},
            updated={ITEMS_COUNTER: self.updated},
            total=self.imported,
            errors=self.errors,
        )


class CsvImportService:
    """Creates compliance items from parsed CSV rows."""

    def __init__(
        self,
        session: AsyncSession,
        default_organization: str,
        user_id: str | None = None,
        audit: AuditService | None = None,
    ):
        self.session = session
        self.default_organization = default_organization
        self.user_id = user_id
        self.audit = audit or AuditService(session)
        self._by_name: dict[str, str] = {}
        self._by_code: dict[str, str] = {}
        self._default_id: str | None = None

    async def _load_organizations(self) -> None:
        result = await self.session.execute(select(Organization))
        for org in result.scalars().all():
            self._by_name[org.name.lower()] = org.id
            self._by_code[org.code.lower()] = org.id

    async def _default_organization_id(self) -> str:
        if self._default_id is None:
            name = self.default_organization
            org_id = self._by_name.get(name.lower()) or self._by_code.get(name.lower())
            if org_id is None:
                org = Organization(
                    name=name,
                    code=name.replace(" ", "_").upper(),
                    org_type=OrganizationType.CUSTOMER,
                )
                self.session.add(org)
                await self.session.commit()
                logger.info(f"Created default organization '{name}' for CSV import")
                org_id = org.id
                self._by_name[name.lower()] = org_id
            self._default_id = org_id
        return self._default_id

    async def _resolve_organization(self, row: dict[str, str], row_number: int) -> str:
        customer = row.get("Organization") or row.get("Customer") or ""
        if customer:
            org_id = self._by_name.get(customer.lower()) or self._by_code.get(customer.lower())
            if org_id:
                return org_id
            logger.warning(
                f"Row {row_number}: unknown organization '{customer}', "
                f"using '{self.default_organization}'"
            )
        return await self._default_organization_id()

    async def import_rows(
        self,
        rows: list[dict[str, str]],
        duplicate_handling: DuplicateHandling = "skip",
    ) -> CsvImportReport:
        """Create (or update) one compliance item per valid row.

        Malformed rows are counted as errors and skipped; they never stop the
        rest of the file.

        Args:
            rows: Output of :func:`parse_csv`
            duplicate_handling: "skip" leaves matching items alone, "update"
                overwrites them with the row's values

        Returns:
            CsvImportReport with per-outcome counts
        """
        report = CsvImportReport()
        await self._load_organizations()

        result = await self.session.execute(select(ComplianceItem))
        existing = {
            _duplicate_key(i.organization_id, i.category, i.commitment, i.due_date): i
            for i in result.scalars().all()
        }

        for index, row in enumerate(rows):
            row_number = index + 2  # header is row 1
            try:
                fields = validate_row(row, row_number)
            except MalformedCsvRowError as e:
                report.errors += 1
                logger.warning(f"CSV import: {e}")
                continue
            if fields is None:
                continue

            fields["organization_id"] = await self._resolve_organization(row, row_number)
            key = _duplicate_key(
                fields["organization_id"], fields["category"], fields["commitment"], fields["due_date"]
            )
            duplicate = existing.get(key)

            if duplicate is not None and duplicate_handling == "skip":
                report.skipped += 1
                logger.info(f"Row {row_number}: duplicate of compliance item {duplicate.id}, skipped")
                continue

            now = utcnow()
            if duplicate is not None:
                item = duplicate
                was_complete = item.status == ComplianceStatus.COMPLETE
                for name, value in fields.items():
                    setattr(item, name, value)
                item.updated_at = now
            else:
                item = ComplianceItem(**fields)
                was_complete = False

            if item.status == ComplianceStatus.COMPLETE:
                if not was_complete or item.completed_at is None:
                    item.completed_at = now
            else:
                item.completed_at = None

            self.session.add(item)
            try:
                await self.session.commit()
            except IntegrityError as e:
                await self.session.rollback()
                report.errors += 1
                logger.warning(f"Row {row_number}: could not be saved: {e.orig}")
                continue

            if duplicate is not None:
                report.updated += 1
                action = "UPDATE"
            else:
                report.imported += 1
                existing[key] = item
                action = "IMPORT"

            await self.audit.log(
                user_id=self.user_id,
                action=action,
                entity_type="compliance_item",
                entity_id=item.id,
                new_values=serialize_record(item),
            )

        logger.info(
            f"CSV import complete: {report.imported} imported, {report.updated} updated, "
            f"{report.skipped} skipped, {report.errors} errors"
        )
        return report
