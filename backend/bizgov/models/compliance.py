"""Compliance commitment and billing models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import uuid4

from sqlmodel import Field, SQLModel

from bizgov.core.timestamps import utcnow


class ComplianceCategory(str, Enum):
    """Compliance item categories."""

    MARKETING_AGREEMENT = "Marketing Agreement"
    BILLING = "Billing"
    DELIVERABLE = "Deliverable"
    COMPLIANCE = "Compliance"
    END_OF_TERM = "End-of-Term"
    ACCOUNTS_PAYABLE = "Accounts Payable"


class ComplianceStatus(str, Enum):
    """Compliance item status."""

    PENDING = "pending"
    COMPLETE = "complete"
    OVERDUE = "overdue"
    NA = "na"


class ComplianceItem(SQLModel, table=True):
    """A trackable commitment with a due date and status."""

    __tablename__ = "compliance_items"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    organization_id: str = Field(foreign_key="organizations.id", index=True)
    contract_id: str | None = Field(default=None, foreign_key="contracts.id", index=True)
    category: ComplianceCategory
    type: str = Field(default="")
    commitment: str
    description: str | None = Field(default=None)
    responsible_party: str
    status: ComplianceStatus = Field(default=ComplianceStatus.PENDING)
    due_date: datetime | None = Field(default=None, index=True)
    completed_at: datetime | None = Field(default=None)  # set on transition to complete
    notes: str | None = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ComplianceComment(SQLModel, table=True):
    """Discussion comment on a compliance item."""

    __tablename__ = "compliance_comments"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    compliance_item_id: str = Field(foreign_key="compliance_items.id", index=True)
    user_id: str = Field(foreign_key="users.id")
    comment: str
    created_at: datetime = Field(default_factory=utcnow)


class BillableEvent(SQLModel, table=True):
    """Billable work item; total_amount is rate * units."""

    __tablename__ = "billable_events"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    organization_id: str = Field(foreign_key="organizations.id", index=True)
    contract_id: str | None = Field(default=None, foreign_key="contracts.id")
    compliance_item_id: str | None = Field(default=None, foreign_key="compliance_items.id")
    description: str
    rate: Decimal = Field(max_digits=10, decimal_places=2)
    units: Decimal = Field(max_digits=10, decimal_places=2)
    total_amount: Decimal = Field(max_digits=10, decimal_places=2)
    billing_date: datetime
    invoice_number: str | None = Field(default=None)
    is_paid: bool = Field(default=False)
    paid_at: datetime | None = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
