"""User model for authentication and authorization."""

from datetime import datetime
from enum import Enum
from uuid import uuid4

from sqlmodel import Field, SQLModel

from bizgov.core.timestamps import utcnow


class UserRole(str, Enum):
    """User roles for RBAC."""

    ADMIN = "admin"
    USER = "user"


class UserBase(SQLModel):
    """Base user fields."""

    username: str = Field(unique=True, index=True)
    role: UserRole = Field(default=UserRole.USER)
    full_name: str | None = Field(default=None)
    email: str | None = Field(default=None)
    is_active: bool = Field(default=True)


class User(UserBase, table=True):
    """User database model."""

    __tablename__ = "users"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    hashed_password: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
