"""Audit logging service."""

import json
from typing import Any

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from bizgov.core.timestamps import utcnow

from bizgov.models import AuditLog


def request_origin(request: Request | None) -> tuple[str | None, str | None]:
    """Client IP and user agent of a request, if any."""
    if request is None:
        return None, None
    ip_address = request.client.host if request.client else None
    return ip_address, request.headers.get("user-agent")


class AuditService:
    """Service for logging audit events."""

    def __init__(self, session: AsyncSession, request: Request | None = None):
        self.session = session
        self.ip_address, self.user_agent = request_origin(request)

    async def log(
        self,
        user_id: str | None,
        action: str,
        entity_type: str,
        entity_id: str,
        old_values: Any = None,
        new_values: Any = None,
    ) -> AuditLog:
        """Log an audit event.

        Args:
            user_id: ID of user performing action, None for the system
            action: Action type (e.g., CREATE, EXPORT, IMPORT)
            entity_type: Type of entity (e.g., "compliance_item", "database")
            entity_id: ID of the affected entity
            old_values: Previous value (will be JSON serialized)
            new_values: New value (will be JSON serialized)

        Returns:
            Created AuditLog entry
        """
        entry = AuditLog(
            timestamp=utcnow(),
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            old_values=json.dumps(old_values, default=str) if old_values is not None else None,
            new_values=json.dumps(new_values, default=str) if new_values is not None else None,
            ip_address=self.ip_address,
            user_agent=self.user_agent,
        )
        self.session.add(entry)
        await self.session.commit()
        return entry

    async def log_export(self, user_id: str | None, entity_type: str, entity_id: str) -> AuditLog:
        """Log a data export."""
        return await self.log(
            user_id=user_id,
            action="EXPORT",
            entity_type=entity_type,
            entity_id=entity_id,
        )

    async def log_import(
        self,
        user_id: str | None,
        entity_type: str,
        entity_id: str,
        summary: dict[str, Any] | None = None,
    ) -> AuditLog:
        """Log a data import together with its summary counts."""
        return await self.log(
            user_id=user_id,
            action="IMPORT",
            entity_type=entity_type,
            entity_id=entity_id,
            new_values=summary,
        )

    async def log_login(self, user_id: str) -> AuditLog:
        """Log a successful login."""
        return await self.log(
            user_id=user_id,
            action="LOGIN",
            entity_type="user",
            entity_id=user_id,
        )
