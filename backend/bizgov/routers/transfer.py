"""Database and unified (database + evidence files) export/import endpoints."""

import logging

from fastapi import APIRouter, File, HTTPException, Request, UploadFile
from fastapi.responses import StreamingResponse

from bizgov.core.deps import AdminUser, AppSettings, CurrentUser, DbSession, read_upload
from bizgov.core.timestamps import utcnow
from bizgov.schemas.transfer import ImportSummary
from bizgov.services.archive import decode_manifest, encode_manifest, pack, unpack
from bizgov.services.audit import AuditService
from bizgov.services.errors import CorruptArchiveError
from bizgov.services.export_service import ExportScope, ExportService
from bizgov.services.import_service import ImportService

logger = logging.getLogger(__name__)

router = APIRouter()


def _attachment(payload: bytes, media_type: str, filename: str) -> StreamingResponse:
    return StreamingResponse(
        iter([payload]),
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get("/export/database")
async def export_database(
    request: Request,
    current_user: CurrentUser,
    session: DbSession,
    organization_id: str | None = None,
) -> StreamingResponse:
    """Download the database as a JSON manifest (no credentials, no files)."""
    user_id = current_user.id
    manifest = await ExportService(session).export_database(
        ExportScope(organization_id=organization_id)
    )
    await AuditService(session, request).log_export(
        user_id, "database", organization_id or "full_export"
    )

    day = utcnow().strftime("%Y-%m-%d")
    return _attachment(encode_manifest(manifest), "application/json", f"bizgov-export-{day}.json")


@router.get("/export/unified")
async def export_unified(
    request: Request,
    current_user: AdminUser,
    session: DbSession,
    organization_id: str | None = None,
) -> StreamingResponse:
    """Download the complete system (database, credentials, evidence files) as ZIP (Admin only)."""
    user_id = current_user.id
    bundle = await ExportService(session).assemble_bundle(
        ExportScope(organization_id=organization_id), include_credentials=True
    )
    payload = pack(bundle.manifest, bundle.files)
    await AuditService(session, request).log_export(
        user_id, "system", organization_id or "complete_export"
    )

    day = utcnow().strftime("%Y-%m-%d")
    return _attachment(payload, "application/zip", f"bizgov-complete-export-{day}.zip")


@router.post("/import/database", response_model=ImportSummary)
async def import_database(
    request: Request,
    current_user: AdminUser,
    session: DbSession,
    settings: AppSettings,
    file: UploadFile = File(...),
) -> ImportSummary:
    """Import a JSON manifest produced by /export/database (Admin only)."""
    user_id = current_user.id
    content = await read_upload(file, settings)

    try:
        manifest = decode_manifest(content)
        report = await ImportService(session).import_database(manifest)
    except CorruptArchiveError as e:
        logger.warning(f"Database import rejected: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    summary = report.to_summary()
    await AuditService(session, request).log_import(
        user_id, "database", "full_import", summary.model_dump()
    )
    return summary


@router.post("/import/unified", response_model=ImportSummary)
async def import_unified(
    request: Request,
    current_user: AdminUser,
    session: DbSession,
    settings: AppSettings,
    file: UploadFile = File(...),
) -> ImportSummary:
    """Restore a ZIP produced by /export/unified (Admin only)."""
    user_id = current_user.id
    content = await read_upload(file, settings)

    try:
        manifest, files = unpack(content)
        report = await ImportService(session, settings.upload_dir).import_bundle(manifest, files)
    except CorruptArchiveError as e:
        logger.warning(f"Unified import rejected: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    summary = report.to_summary()
    await AuditService(session, request).log_import(
        user_id, "system", "complete_import", summary.model_dump()
    )
    return summary
