# parish_analytics/reports/routes.py
from __future__ import annotations
from datetime import date
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from parish_analytics.auth import get_report_context
from parish_analytics.db import get_db
from parish_analytics.models import ReportContext
from parish_analytics.reports import service
from parish_analytics.reports.constants import REPORT_FORMATS
from parish_analytics.reports.exports import csv_response
from parish_analytics.utils.common import parse_ymd, year_bounds

router = APIRouter(prefix="/api/reports", tags=["Reports"])


# ─────────────────────────────
# Query validation
# ─────────────────────────────
def _parse_date(raw: str) -> date:
    try:
        d = parse_ymd(raw)
    except ValueError:
        d = None
    if d is None:
        raise HTTPException(status_code=400, detail=f"Invalid date: {raw}")
    return d


def _check_order(start: date, end: date) -> Tuple[date, date]:
    if start > end:
        raise HTTPException(status_code=400, detail="Start date must be before or equal to end date")
    return start, end


def required_range(start: Optional[str], end: Optional[str]) -> Tuple[date, date]:
    if not start or not end:
        raise HTTPException(status_code=400, detail="Start date and end date are required")
    return _check_order(_parse_date(start), _parse_date(end))


def range_or_current_year(start: Optional[str], end: Optional[str], today: date) -> Tuple[date, date]:
    """Dashboards default each missing bound to the current calendar year."""
    year_start, year_end = year_bounds(today)
    return _check_order(
        _parse_date(start) if start else year_start,
        _parse_date(end) if end else year_end,
    )


def check_format(fmt: str) -> str:
    fmt = (fmt or "csv").lower()
    if fmt not in REPORT_FORMATS:
        raise HTTPException(status_code=400, detail=f"Invalid format: {fmt}")
    return fmt


# ─────────────────────────────
# Attendance
# ─────────────────────────────
@router.get("/attendance")
def api_attendance_analytics(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    ctx: ReportContext = Depends(get_report_context),
    db: Session = Depends(get_db),
):
    start, end = range_or_current_year(start_date, end_date, ctx.today)
    payload = service.attendance_analytics(db, ctx, start, end)
    payload["year"] = None if (start_date and end_date) else ctx.today.year
    return payload


@router.get("/attendance-report")
def api_attendance_report(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    fmt: str = Query("csv", alias="format"),
    ctx: ReportContext = Depends(get_report_context),
    db: Session = Depends(get_db),
):
    start, end = required_range(start_date, end_date)
    fmt = check_format(fmt)
    headers, rows = service.attendance_report(db, ctx, start, end)
    if fmt == "json":
        return {"services": rows}
    return csv_response("attendance-report", headers, rows, stamp=ctx.today.isoformat())


# ─────────────────────────────
# Giving
# ─────────────────────────────
@router.get("/giving-analytics")
def api_giving_analytics(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    ctx: ReportContext = Depends(get_report_context),
    db: Session = Depends(get_db),
):
    start, end = range_or_current_year(start_date, end_date, ctx.today)
    payload = service.giving_analytics(db, ctx, start, end)
    payload["year"] = None if (start_date and end_date) else ctx.today.year
    return payload


@router.get("/giving")
def api_giving_export(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    household_id: Optional[str] = Query(None, alias="householdId"),
    fmt: str = Query("csv", alias="format"),
    ctx: ReportContext = Depends(get_report_context),
    db: Session = Depends(get_db),
):
    """
    One row per gift, attributed to the head of household for the giver's
    envelope, followed by a TOTAL row. Optional householdId narrows it to
    one household's members.
    """
    start, end = required_range(start_date, end_date)
    fmt = check_format(fmt)
    headers, rows, records = service.giving_export(db, ctx, start, end, household_id=household_id)
    if fmt == "json":
        return {"giving": records}
    return csv_response("giving-report", headers, rows, stamp=ctx.today.isoformat())


@router.get("/giving-by-service")
def api_giving_by_service(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    fmt: str = Query("csv", alias="format"),
    ctx: ReportContext = Depends(get_report_context),
    db: Session = Depends(get_db),
):
    start, end = required_range(start_date, end_date)
    fmt = check_format(fmt)
    headers, rows, payload = service.giving_by_service(db, ctx, start, end)
    if fmt == "json":
        return payload
    return csv_response("giving-report-by-service", headers, rows, stamp=ctx.today.isoformat())


# ─────────────────────────────
# Members
# ─────────────────────────────
@router.get("/demographics")
def api_demographics(
    ctx: ReportContext = Depends(get_report_context),
    db: Session = Depends(get_db),
):
    return service.demographics(db, ctx)


@router.get("/households")
def api_households(
    ctx: ReportContext = Depends(get_report_context),
    db: Session = Depends(get_db),
):
    return service.households(db, ctx)


@router.get("/congressional-statistics")
def api_congressional_statistics(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    ctx: ReportContext = Depends(get_report_context),
    db: Session = Depends(get_db),
):
    start, end = required_range(start_date, end_date)
    headers, rows = service.congregational_statistics(db, ctx, start, end)
    return csv_response(
        "congressional-statistics-report", headers, rows,
        stamp=f"{start.isoformat()}-to-{end.isoformat()}",
    )
