# parish_analytics/reports/service.py
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from parish_analytics.models import (
    AttendanceRecord,
    GivingRecord,
    Household,
    Member,
    ReportContext,
    Service,
)
from parish_analytics.reports import aggregator as agg
from parish_analytics.reports import comparator, dao, formatter
from parish_analytics.reports.constants import (
    ATTENDANCE_REPORT_COLUMNS,
    GIVING_BY_SERVICE_ID_COLUMNS,
    GIVING_EXPORT_ID_COLUMNS,
    METRIC_COLUMNS,
    NOT_AVAILABLE,
    TOTAL_LABEL,
)
from parish_analytics.reports.households import (
    heads_by_envelope,
    household_display_name,
    household_summaries,
)
from parish_analytics.utils.common import money, money_str, round_half_up

log = logging.getLogger(__name__)

ZERO = Decimal("0")


# ──────────────────────────────────────────────────────────────────────────────
# Pure builders: one row set in, one payload out
# ──────────────────────────────────────────────────────────────────────────────

def build_attendance_analytics(
    start: date,
    end: date,
    services: Sequence[Service],
    records: Sequence[AttendanceRecord],
) -> Dict[str, Any]:
    per_service = agg.attendance_per_service(services, records)
    trend = agg.monthly_attendance_trend(per_service, multi_year=agg.spans_multiple_years(start, end))
    gender = agg.gender_totals(per_service)
    return {
        "attendancePerService": [formatter.service_attendance_json(s) for s in per_service],
        "divineServiceComparison": formatter.comparison_json(
            comparator.divine_vs_other(per_service), "divineService", "otherServices"
        ),
        "memberVsGuestComparison": formatter.comparison_json(
            comparator.members_vs_guests(per_service), "members", "guests"
        ),
        "monthlyTrend": [formatter.monthly_attendance_json(m) for m in trend],
        "genderTotals": [{"name": "Male", "value": gender["male"]}, {"name": "Female", "value": gender["female"]}],
        "totalAttendance": sum(s.total_attendance for s in per_service),
        "serviceCount": len(per_service),
        "startDate": start.isoformat(),
        "endDate": end.isoformat(),
    }


def build_attendance_report(
    services: Sequence[Service], records: Sequence[AttendanceRecord]
) -> Tuple[List[str], List[Dict[str, str]]]:
    per_service = agg.attendance_per_service(services, records)
    return list(ATTENDANCE_REPORT_COLUMNS), [formatter.attendance_report_row(s) for s in per_service]


def build_giving_analytics(
    ctx: ReportContext,
    start: date,
    end: date,
    records: Sequence[GivingRecord],
    services: Sequence[Service],
    categories: Sequence[str],
) -> Dict[str, Any]:
    lookup = agg.ServiceLookup(services)
    total = agg.total_giving(records)
    return {
        "monthlyTrend": [
            formatter.monthly_giving_json(m)
            for m in agg.monthly_giving_trend(records, start=start, end=end, categories=categories)
        ],
        "monthlyGivingByService": [
            formatter.monthly_giving_by_service_json(m)
            for m in agg.monthly_giving_by_service(records, lookup, start=start, end=end)
        ],
        "serviceTypeData": [formatter.service_type_bucket_json(b) for b in agg.giving_by_service_type(records, lookup)],
        "ageGroupData": [formatter.amount_bucket_json(b) for b in agg.giving_by_age_group(records, ctx.today)],
        "householdTypeData": [formatter.amount_bucket_json(b) for b in agg.giving_by_household_type(records)],
        "categoryBreakdown": formatter.name_value_json(agg.category_breakdown(records, categories), as_money=True),
        "startDate": start.isoformat(),
        "endDate": end.isoformat(),
        "totalGiving": money(total),
        "totalRecords": len(records),
    }


def giving_export_headers(categories: Sequence[str]) -> List[str]:
    return list(GIVING_EXPORT_ID_COLUMNS) + list(categories) + ["Total", "Notes"]


def _export_member(record: GivingRecord, heads: Mapping[int, Member]) -> Optional[Member]:
    """The head of household for the giver's envelope, else the giver."""
    giver = record.member
    if giver is not None and giver.envelope_number is not None:
        head = heads.get(giver.envelope_number)
        if head is not None:
            return head
    return giver


def build_giving_export(
    records: Sequence[GivingRecord],
    heads: Mapping[int, Member],
    households: Mapping[str, Household],
    categories: Sequence[str],
) -> Tuple[List[str], List[Dict[str, str]], List[Dict[str, Any]]]:
    """
    Rows for the giving export: (csv headers, csv rows, json rows).
    Non-empty exports end with a TOTAL row carrying the column sums.
    """
    cats = agg.ordered_categories(records, categories)
    headers = giving_export_headers(cats)
    csv_rows: List[Dict[str, str]] = []
    json_rows: List[Dict[str, Any]] = []
    sums = {c: ZERO for c in cats}

    for g in records:
        giver = g.member
        shown = _export_member(g, heads)
        household = households.get(giver.household_id) if giver and giver.household_id else None
        household_name = household_display_name(household.name, household.members) if household else None
        envelope = giver.envelope_number if giver else None

        row = {
            "Household Name": household_name or NOT_AVAILABLE,
            "Envelope Number": str(envelope) if envelope is not None else NOT_AVAILABLE,
            "Member Name": shown.full_name if shown else "",
            "Date Given": g.date_given.isoformat(),
        }
        for c in cats:
            amount = g.amounts.get(c, ZERO)
            sums[c] += amount
            row[c] = money_str(amount)
        row["Total"] = money_str(g.total)
        row["Notes"] = g.notes or ""
        csv_rows.append(row)

        json_rows.append({
            "id": g.id,
            "memberId": g.member_id,
            "dateGiven": g.date_given.isoformat(),
            "notes": g.notes,
            "amounts": formatter.amounts_json(g.amounts),
            "total": money(g.total),
            "householdName": household_name,
            "member": {
                "id": shown.id if shown else g.member_id,
                "firstName": shown.first_name if shown else "",
                "lastName": shown.last_name if shown else "",
                "envelopeNumber": envelope,
                "householdId": giver.household_id if giver else None,
            },
        })

    if csv_rows:
        total_row = {h: "" for h in GIVING_EXPORT_ID_COLUMNS}
        total_row.update({c: money_str(v) for c, v in sums.items()})
        total_row["Total"] = money_str(sum(sums.values(), ZERO))
        total_row["Notes"] = TOTAL_LABEL
        csv_rows.append(total_row)
    return headers, csv_rows, json_rows


def build_giving_by_service(
    records: Sequence[GivingRecord], services: Sequence[Service], categories: Sequence[str]
) -> Tuple[List[str], List[Dict[str, str]], Dict[str, Any]]:
    rows = agg.giving_by_service(records, services, categories)
    totals = agg.category_totals(records, categories)
    headers = list(GIVING_BY_SERVICE_ID_COLUMNS) + list(totals) + ["Total"]
    return headers, formatter.giving_by_service_csv_rows(rows, totals), formatter.giving_by_service_json(rows, totals)


def build_congregational_statistics(
    start: date,
    end: date,
    members: Sequence[Member],
    services: Sequence[Service],
    records: Sequence[AttendanceRecord],
) -> Tuple[List[str], List[Dict[str, Any]]]:
    per_service = agg.attendance_per_service(services, records)
    rows = []
    for metric, value in agg.congregational_statistics(members, per_service, start, end):
        if isinstance(value, float):
            value = round_half_up(value)
        rows.append({"Metric": metric, "Value": value})
    return list(METRIC_COLUMNS), rows


# ──────────────────────────────────────────────────────────────────────────────
# Loaders used by routes: fetch one row set, then build
# ──────────────────────────────────────────────────────────────────────────────

def attendance_analytics(db: Session, ctx: ReportContext, start: date, end: date) -> Dict[str, Any]:
    services = dao.fetch_services(db, ctx.church_id, start, end)
    records = dao.fetch_attendance(db, ctx.church_id, start, end)
    log.info("[reports] attendance church=%s services=%s rows=%s", ctx.church_id, len(services), len(records))
    return build_attendance_analytics(start, end, services, records)


def attendance_report(db: Session, ctx: ReportContext, start: date, end: date):
    services = dao.fetch_services(db, ctx.church_id, start, end)
    records = dao.fetch_attendance(db, ctx.church_id, start, end) if services else []
    return build_attendance_report(services, records)


def giving_analytics(db: Session, ctx: ReportContext, start: date, end: date) -> Dict[str, Any]:
    records = dao.fetch_giving(db, ctx.church_id, start, end)
    services = dao.fetch_services(db, ctx.church_id, start, end)
    categories = dao.fetch_categories(db, ctx.church_id)
    return build_giving_analytics(ctx, start, end, records, services, categories)


def giving_export(
    db: Session,
    ctx: ReportContext,
    start: date,
    end: date,
    household_id: Optional[str] = None,
):
    categories = dao.fetch_categories(db, ctx.church_id)
    member_ids = None
    if household_id:
        member_ids = dao.household_member_ids(db, ctx.church_id, household_id)
        if not member_ids:
            log.info("[giving-export] household %s has no members", household_id)
            return giving_export_headers(categories), [], []

    records = dao.fetch_giving(db, ctx.church_id, start, end, member_ids=member_ids)
    envelopes = [g.member.envelope_number for g in records if g.member and g.member.envelope_number is not None]
    heads = heads_by_envelope(dao.fetch_members_by_envelope(db, ctx.church_id, envelopes))
    household_ids = {g.member.household_id for g in records if g.member and g.member.household_id}
    households = {h.id: h for h in dao.fetch_households(db, ctx.church_id, household_ids)}
    log.info(
        "[giving-export] church=%s records=%s envelopes=%s households=%s",
        ctx.church_id, len(records), len(heads), len(households),
    )
    return build_giving_export(records, heads, households, categories)


def giving_by_service(db: Session, ctx: ReportContext, start: date, end: date):
    records = dao.fetch_giving(db, ctx.church_id, start, end)
    services = dao.fetch_services(db, ctx.church_id, start, end)
    categories = dao.fetch_categories(db, ctx.church_id)
    return build_giving_by_service(records, services, categories)


def demographics(db: Session, ctx: ReportContext) -> Dict[str, Any]:
    members = dao.fetch_members(db, ctx.church_id)
    return formatter.demographics_json(agg.member_demographics(members, ctx.today))


def households(db: Session, ctx: ReportContext) -> Dict[str, Any]:
    return {"households": household_summaries(dao.fetch_households(db, ctx.church_id))}


def congregational_statistics(db: Session, ctx: ReportContext, start: date, end: date):
    members = dao.fetch_members(db, ctx.church_id)
    services = dao.fetch_services(db, ctx.church_id, start, end)
    records = dao.fetch_attendance(db, ctx.church_id, start, end)
    return build_congregational_statistics(start, end, members, services, records)
