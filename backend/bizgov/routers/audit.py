"""Audit log endpoints."""

import csv
import io
import json
from datetime import datetime
from typing import Literal

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import StreamingResponse
from sqlmodel import select

from bizgov.core.deps import AdminUser, DbSession
from bizgov.core.timestamps import as_utc, utcnow
from bizgov.models import AuditLog, AuditLogRead

router = APIRouter(prefix="/audit-logs")

EXPORT_COLUMNS = [
    "id",
    "timestamp",
    "user_id",
    "action",
    "entity_type",
    "entity_id",
    "old_values",
    "new_values",
    "ip_address",
    "user_agent",
]


def _filtered(
    user_id: str | None,
    action: str | None,
    entity_type: str | None,
    since: datetime | None,
    until: datetime | None,
):
    query = select(AuditLog)
    if user_id is not None:
        query = query.where(AuditLog.user_id == user_id)
    if action is not None:
        query = query.where(AuditLog.action == action)
    if entity_type is not None:
        query = query.where(AuditLog.entity_type == entity_type)
    if since is not None:
        query = query.where(AuditLog.timestamp >= as_utc(since))
    if until is not None:
        query = query.where(AuditLog.timestamp <= as_utc(until))
    return query.order_by(AuditLog.timestamp.desc())


@router.get("", response_model=list[AuditLogRead])
async def list_audit_logs(
    current_user: AdminUser,
    session: DbSession,
    user_id: str | None = None,
    action: str | None = None,
    entity_type: str | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
) -> list[AuditLog]:
    """List audit logs with filters, newest first (Admin only)."""
    query = _filtered(user_id, action, entity_type, since, until).offset(skip).limit(limit)
    result = await session.execute(query)
    return list(result.scalars().all())


@router.get("/export")
async def export_audit_logs(
    current_user: AdminUser,
    session: DbSession,
    format: Literal["csv", "json"] = "csv",
    user_id: str | None = None,
    action: str | None = None,
    entity_type: str | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
    limit: int = Query(10000, ge=1, le=100000),
) -> StreamingResponse:
    """Export audit logs as a CSV or JSON download (Admin only)."""
    result = await session.execute(
        _filtered(user_id, action, entity_type, since, until).limit(limit)
    )
    logs = list(result.scalars().all())

    timestamp = utcnow().strftime("%Y%m%d_%H%M%S")
    if format == "csv":
        body, media_type = _as_csv(logs), "text/csv"
    else:
        body, media_type = _as_json(logs), "application/json"

    return StreamingResponse(
        iter([body]),
        media_type=media_type,
        headers={
            "Content-Disposition": f"attachment; filename=audit_export_{timestamp}.{format}"
        },
    )


@router.get("/{audit_id}", response_model=AuditLogRead)
async def get_audit_log(
    audit_id: str,
    current_user: AdminUser,
    session: DbSession,
) -> AuditLog:
    """Get a specific audit log entry (Admin only)."""
    audit = await session.get(AuditLog, audit_id)
    if not audit:
        raise HTTPException(status_code=404, detail="Audit log not found")
    return audit


def _as_csv(logs: list[AuditLog]) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(EXPORT_COLUMNS)
    for log in logs:
        writer.writerow([
            log.id,
            log.timestamp.isoformat(),
            log.user_id,
            log.action,
            log.entity_type,
            log.entity_id,
            log.old_values,
            log.new_values,
            log.ip_address,
            log.user_agent,
        ])
    return output.getvalue()


def _as_json(logs: list[AuditLog]) -> str:
    data = [
        {
            "id": log.id,
            "timestamp": log.timestamp.isoformat(),
            "user_id": log.user_id,
            "action": log.action,
            "entity_type": log.entity_type,
            "entity_id": log.entity_id,
            # stored as JSON text
            "old_values": json.loads(log.old_values) if log.old_values else None,
            "new_values": json.loads(log.new_values) if log.new_values else None,
            "ip_address": log.ip_address,
            "user_agent": log.user_agent,
        }
        for log in logs
    ]
    return json.dumps(data, indent=2)
