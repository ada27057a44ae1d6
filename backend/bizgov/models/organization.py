"""Organization and contract models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import uuid4

from sqlmodel import Field, SQLModel

from bizgov.core.timestamps import utcnow


class OrganizationType(str, Enum):
    """Kinds of organizations tracked by the system."""

    CUSTOMER = "customer"
    VENDOR = "vendor"
    CONTRACTOR = "contractor"
    INTERNAL = "internal"
    STATE_GOVT = "state_govt"
    FEDERAL_GOVT = "federal_govt"


class Organization(SQLModel, table=True):
    """Customer, vendor or other party owning contracts and commitments."""

    __tablename__ = "organizations"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    name: str = Field(index=True)
    code: str = Field(unique=True, index=True)
    org_type: OrganizationType = Field(default=OrganizationType.CUSTOMER)
    contact_email: str | None = Field(default=None)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow)


class Contract(SQLModel, table=True):
    """Contract between the business and an organization."""

    __tablename__ = "contracts"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    organization_id: str = Field(foreign_key="organizations.id", index=True)
    title: str
    description: str | None = Field(default=None)
    start_date: datetime
    end_date: datetime | None = Field(default=None)  # None = open-ended
    max_amount: Decimal | None = Field(default=None, max_digits=10, decimal_places=2)
    is_active: bool = Field(default=True)
    file_path: str | None = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class OrganizationNote(SQLModel, table=True):
    """Free-text note attached to an organization."""

    __tablename__ = "organization_notes"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    organization_id: str = Field(foreign_key="organizations.id", index=True)
    user_id: str = Field(foreign_key="users.id")
    note: str
    created_at: datetime = Field(default_factory=utcnow)
