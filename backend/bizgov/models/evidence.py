"""Evidence locker models."""

from datetime import datetime
from enum import Enum
from uuid import uuid4

from sqlmodel import Field, SQLModel

from bizgov.core.timestamps import utcnow


class EvidenceType(str, Enum):
    """Kinds of evidence documents."""

    DOCUMENT = "document"
    EMAIL = "email"
    SCREENSHOT = "screenshot"
    REPORT = "report"
    CONTRACT_AND_AMENDMENT = "contract-and-amendment"
    OTHER = "other"


class Evidence(SQLModel, table=True):
    """Stored document supporting a compliance item, billable event or contract.

    A row without ``file_path`` is metadata-only.
    """

    __tablename__ = "evidence"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    compliance_item_id: str | None = Field(default=None, foreign_key="compliance_items.id", index=True)
    billable_event_id: str | None = Field(default=None, foreign_key="billable_events.id", index=True)
    contract_id: str | None = Field(default=None, foreign_key="contracts.id", index=True)
    title: str
    description: str | None = Field(default=None)
    evidence_type: EvidenceType = Field(default=EvidenceType.DOCUMENT)
    file_path: str | None = Field(default=None)
    file_hash: str | None = Field(default=None)  # sha256 hex
    original_filename: str | None = Field(default=None)
    mime_type: str | None = Field(default=None)
    uploaded_by: str | None = Field(default=None, foreign_key="users.id")
    created_at: datetime = Field(default_factory=utcnow)


class EvidenceComment(SQLModel, table=True):
    """Discussion comment on an evidence record."""

    __tablename__ = "evidence_comments"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    evidence_id: str = Field(foreign_key="evidence.id", index=True)
    user_id: str = Field(foreign_key="users.id")
    comment: str
    created_at: datetime = Field(default_factory=utcnow)
