"""Evidence locker export, import and download endpoints."""

import logging
import re

from fastapi import APIRouter, File, HTTPException, Request, UploadFile
from fastapi.responses import FileResponse, StreamingResponse

from bizgov.core.deps import AppSettings, CurrentUser, DbSession, read_upload
from bizgov.core.timestamps import utcnow
from bizgov.models import Evidence
from bizgov.schemas.transfer import ImportSummary
from bizgov.services.archive import pack, unpack
from bizgov.services.audit import AuditService
from bizgov.services.errors import CorruptArchiveError
from bizgov.services.export_service import ExportScope, ExportService
from bizgov.services.filesystem import PathValidationError, validate_path
from bizgov.services.import_service import ImportService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/evidence")

EVIDENCE_ONLY = ("evidence",)


def _fallback_filename(evidence: Evidence) -> str:
    """Build a download name from the title when the original name is unknown."""
    stem = re.sub(r"[^a-z0-9]", "_", evidence.title, flags=re.IGNORECASE).lower()
    mime = evidence.mime_type or ""
    if "pdf" in mime:
        extension = "pdf"
    elif "image" in mime:
        extension = "png"
    elif "word" in mime:
        extension = "docx"
    elif "excel" in mime or "spreadsheet" in mime:
        extension = "xlsx"
    else:
        extension = "bin"
    return f"{stem}.{extension}"


@router.get("/export")
async def export_evidence(
    request: Request,
    current_user: CurrentUser,
    session: DbSession,
) -> StreamingResponse:
    """Download all evidence records and their files as a ZIP."""
    user_id = current_user.id
    bundle = await ExportService(session).assemble_bundle(
        ExportScope(collections=EVIDENCE_ONLY), include_credentials=False
    )
    payload = pack(bundle.manifest, bundle.files)
    await AuditService(session, request).log_export(user_id, "evidence", "all")

    stamp = utcnow().strftime("%Y%m%d_%H%M%S")
    return StreamingResponse(
        iter([payload]),
        media_type="application/zip",
        headers={"Content-Disposition": f"attachment; filename=evidence-export-{stamp}.zip"},
    )


@router.post("/import", response_model=ImportSummary)
async def import_evidence(
    request: Request,
    current_user: CurrentUser,
    session: DbSession,
    settings: AppSettings,
    file: UploadFile = File(...),
) -> ImportSummary:
    """Import an evidence ZIP; references must already exist in this database."""
    user_id = current_user.id
    content = await read_upload(file, settings)

    try:
        manifest, files = unpack(content)
        report = await ImportService(session, settings.upload_dir).import_bundle(
            manifest, files, required=EVIDENCE_ONLY
        )
    except CorruptArchiveError as e:
        logger.warning(f"Evidence import rejected: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    summary = report.to_summary()
    await AuditService(session, request).log_import(
        user_id, "evidence", f"imported_{summary.total}_items", summary.model_dump()
    )
    return summary


@router.get("/{evidence_id}/download")
async def download_evidence(
    evidence_id: str,
    current_user: CurrentUser,
    session: DbSession,
    settings: AppSettings,
    download: bool = False,
) -> FileResponse:
    """Serve an evidence file inline, or as an attachment with ?download=true."""
    evidence = await session.get(Evidence, evidence_id)
    if evidence is None:
        raise HTTPException(status_code=404, detail="Evidence not found")
    if not evidence.file_path:
        raise HTTPException(status_code=404, detail="No file attached to this evidence")

    try:
        path = validate_path(evidence.file_path, settings.upload_dir)
    except PathValidationError as e:
        logger.warning(f"Refusing to serve evidence {evidence_id}: {e}")
        raise HTTPException(status_code=404, detail="File not found on disk")
    if not path.is_file():
        raise HTTPException(status_code=404, detail="File not found on disk")

    return FileResponse(
        path,
        media_type=evidence.mime_type or "application/octet-stream",
        filename=evidence.original_filename or _fallback_filename(evidence),
        content_disposition_type="attachment" if download else "inline",
    )
