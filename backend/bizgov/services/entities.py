"""Registry of entities that take part in export and import."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic.alias_generators import to_camel, to_snake
from sqlmodel import SQLModel

from bizgov.models import (
    AuditLog,
    BillableEvent,
    ComplianceComment,
    ComplianceItem,
    Contract,
    Evidence,
    EvidenceComment,
    Organization,
    OrganizationNote,
    User,
)

CREDENTIAL_FIELDS = frozenset({"hashed_password"})


@dataclass(frozen=True)
class EntitySpec:
    """How one table is exported, referenced and counted."""

    key: str  # manifest collection name
    model: type[SQLModel]
    references: dict[str, str] = field(default_factory=dict)  # fk field -> target key
    unique_fields: tuple[str, ...] = ()
    summary_key: str | None = None

    @property
    def counter(self) -> str:
        return self.summary_key or self.key


ENTITIES: dict[str, EntitySpec] = {
    spec.key: spec
    for spec in (
        EntitySpec("users", User, unique_fields=("username",)),
        EntitySpec("organizations", Organization, unique_fields=("code",)),
        EntitySpec("contracts", Contract, {"organization_id": "organizations"}),
        EntitySpec(
            "complianceItems",
            ComplianceItem,
            {"organization_id": "organizations", "contract_id": "contracts"},
        ),
        EntitySpec(
            "billableEvents",
            BillableEvent,
            {
                "organization_id": "organizations",
                "contract_id": "contracts",
                "compliance_item_id": "complianceItems",
            },
        ),
        EntitySpec(
            "evidence",
            Evidence,
            {
                "compliance_item_id": "complianceItems",
                "billable_event_id": "billableEvents",
                "contract_id": "contracts",
                "uploaded_by": "users",
            },
            summary_key="evidenceRecords",
        ),
        EntitySpec(
            "complianceComments",
            ComplianceComment,
            {"compliance_item_id": "complianceItems", "user_id": "users"},
        ),
        EntitySpec(
            "evidenceComments",
            EvidenceComment,
            {"evidence_id": "evidence", "user_id": "users"},
        ),
        EntitySpec(
            "organizationNotes",
            OrganizationNote,
            {"organization_id": "organizations", "user_id": "users"},
        ),
        EntitySpec("auditLogs", AuditLog, {"user_id": "users"}),
    )
}

EVIDENCE_FILES_COUNTER = "evidenceFiles"


def summary_counters() -> list[str]:
    """Counter names reported by an import, in registry order."""
    counters = [spec.counter for spec in ENTITIES.values()]
    counters.insert(counters.index("evidenceRecords") + 1, EVIDENCE_FILES_COUNTER)
    return counters


def _json_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def serialize_record(row: SQLModel, include_credentials: bool = False) -> dict[str, Any]:
    """Serialize a row to its manifest form.

    Keys are camelCase, dates ISO-8601 and currency a decimal string.
    """
    record = {}
    for name, value in row.model_dump().items():
        if name in CREDENTIAL_FIELDS and not include_credentials:
            continue
        record[to_camel(name)] = _json_value(value)
    return record


def deserialize_record(record: dict[str, Any]) -> dict[str, Any]:
    """Turn a manifest record back into model field names."""
    return {to_snake(key): value for key, value in record.items()}
