"""Audit log model for compliance audit trail."""

from datetime import datetime
from uuid import uuid4

from sqlmodel import Field, SQLModel

from bizgov.core.timestamps import utcnow


class AuditLog(SQLModel, table=True):
    """Immutable audit log entry. Rows are only ever inserted."""

    __tablename__ = "audit_logs"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    timestamp: datetime = Field(default_factory=utcnow, index=True)
    user_id: str | None = Field(default=None, foreign_key="users.id", index=True)  # None = system
    action: str = Field(index=True)  # e.g., CREATE, UPDATE, DELETE, LOGIN, EXPORT, IMPORT
    entity_type: str  # e.g., "compliance_item", "evidence", "database"
    entity_id: str
    old_values: str | None = Field(default=None)  # JSON string
    new_values: str | None = Field(default=None)  # JSON string
    ip_address: str | None = Field(default=None)
    user_agent: str | None = Field(default=None)


class AuditLogRead(SQLModel):
    """Schema for reading audit log entries."""

    id: str
    timestamp: datetime
    user_id: str | None
    action: str
    entity_type: str
    entity_id: str
    old_values: str | None
    new_values: str | None
    ip_address: str | None
    user_agent: str | None
