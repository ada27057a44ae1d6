"""SQLModel database models."""

from bizgov.models.user import User, UserRole
from bizgov.models.organization import (
    Contract,
    Organization,
    OrganizationNote,
    OrganizationType,
)
from bizgov.models.compliance import (
    BillableEvent,
    ComplianceCategory,
    ComplianceComment,
    ComplianceItem,
    ComplianceStatus,
)
from bizgov.models.evidence import Evidence, EvidenceComment, EvidenceType
from bizgov.models.audit import AuditLog, AuditLogRead

__all__ = [
    # User
    "User",
    "UserRole",
    # Organization
    "Organization",
    "OrganizationType",
    "OrganizationNote",
    "Contract",
    # Compliance
    "ComplianceItem",
    "ComplianceCategory",
    "ComplianceStatus",
    "ComplianceComment",
    "BillableEvent",
    # Evidence
    "Evidence",
    "EvidenceType",
    "EvidenceComment",
    # Audit
    "AuditLog",
    "AuditLogRead",
]
