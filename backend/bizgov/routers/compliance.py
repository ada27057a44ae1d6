"""Compliance item bulk import endpoint."""

from fastapi import APIRouter, File, Form, HTTPException, Request, UploadFile

from bizgov.core.deps import AppSettings, CurrentUser, DbSession, read_upload
from bizgov.schemas.transfer import DuplicateHandling, ImportSummary
from bizgov.services.audit import AuditService
from bizgov.services.csv_import import CsvImportService, parse_csv
from bizgov.services.errors import InvalidCsvError

router = APIRouter(prefix="/compliance-items")


@router.post("/import-csv", response_model=ImportSummary)
async def import_compliance_csv(
    request: Request,
    current_user: CurrentUser,
    session: DbSession,
    settings: AppSettings,
    file: UploadFile = File(...),
    duplicate_handling: DuplicateHandling = Form("skip"),
) -> ImportSummary:
    """Create compliance items from a CSV file.

    Malformed rows are skipped and reported in ``errors``.
    """
    user_id = current_user.id
    content = await read_upload(file, settings)

    try:
        rows = parse_csv(content)
    except InvalidCsvError as e:
        raise HTTPException(status_code=400, detail=str(e))

    audit = AuditService(session, request)
    service = CsvImportService(
        session,
        default_organization=settings.csv_default_organization,
        user_id=user_id,
        audit=audit,
    )
    report = await service.import_rows(rows, duplicate_handling)

    summary = report.to_summary()
    await audit.log_import(user_id, "compliance_item", "csv_import", summary.model_dump())
    return summary
