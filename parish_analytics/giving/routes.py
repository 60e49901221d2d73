# parish_analytics/giving/routes.py
import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from parish_analytics.auth import require_admin
from parish_analytics.db import get_db
from parish_analytics.giving.imports import ImportFileError, parse_giving_upload
from parish_analytics.models import ReportContext
from parish_analytics.reports import dao

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/giving", tags=["Giving"])


@router.post("/bulk-import")
async def bulk_import_giving(
    file: UploadFile = File(...),
    ctx: ReportContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Upload a giving CSV. Good rows are inserted together; bad rows are
    skipped and listed in `errors`.
    """
    content = await file.read()
    categories = dao.fetch_categories(db, ctx.church_id)
    members = dao.fetch_members(db, ctx.church_id)
    try:
        parsed = parse_giving_upload(content, categories, members)
    except ImportFileError as e:
        raise HTTPException(status_code=400, detail=str(e))

    result = {"success": 0, "failed": parsed.failed, "errors": list(parsed.errors)}
    if parsed.records:
        try:
            result["success"] = dao.insert_giving(db, ctx.church_id, parsed.records)
        except (ValueError, SQLAlchemyError) as e:
            db.rollback()
            log.error("[import] church=%s insert failed: %s", ctx.church_id, e)
            result["failed"] += len(parsed.records)
            result["errors"].append(f"Database error: {e}")

    log.info(
        "[import] church=%s file=%s success=%s failed=%s",
        ctx.church_id, file.filename, result["success"], result["failed"],
    )
    return result
