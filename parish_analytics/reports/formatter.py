# parish_analytics/reports/formatter.py
"""
Shapes aggregator/comparator output into the two external contracts:
camelCase JSON for the dashboard charts and CSV text for downloads.

CSV fields are quoted only when they contain a comma, a double quote or a
newline (quotes doubled inside); every other field is written raw. Rows are
joined with "\n" and there is no trailing newline.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from parish_analytics.reports.aggregator import (
    AmountBucket,
    MemberDemographics,
    MonthlyAttendance,
    MonthlyGiving,
    MonthlyGivingByService,
    ServiceAttendance,
    ServiceGiving,
)
from parish_analytics.reports.comparator import Comparison
from parish_analytics.reports.constants import (
    GRAND_TOTAL_LABEL,
    OTHER_SERVICE_DISPLAY,
    SERVICE_TYPE_LABELS,
    UNKNOWN,
    service_type_label,
)
from parish_analytics.utils.common import money, money_str, round_half_up

# ─────────────────────────────
# CSV
# ─────────────────────────────
_NEEDS_QUOTES = (",", '"', "\n")


def escape_csv_value(value: Any) -> str:
    if value is None:
        return ""
    s = str(value)
    if any(ch in s for ch in _NEEDS_QUOTES):
        return '"' + s.replace('"', '""') + '"'
    return s


def build_csv(headers: Sequence[str], rows: Iterable[Mapping[str, Any]] = ()) -> str:
    """Header row always first, even when there are no data rows."""
    lines = [",".join(escape_csv_value(h) for h in headers)]
    for row in rows:
        lines.append(",".join(escape_csv_value(row.get(h)) for h in headers))
    return "\n".join(lines)


# ─────────────────────────────
# JSON: attendance
# ─────────────────────────────
def service_attendance_json(s: ServiceAttendance) -> Dict[str, Any]:
    return {
        "serviceId": s.service_id,
        "serviceDate": s.service_date.isoformat(),
        "serviceType": s.service_type,
        "serviceTime": s.service_time,
        "totalAttendance": s.total_attendance,
        "totalCommunion": s.total_communion,
        "maleCount": s.male_count,
        "femaleCount": s.female_count,
        "malePercent": s.male_percent,
        "femalePercent": s.female_percent,
        "childrenCount": s.children_count,
        "memberCount": s.member_count,
        "guestCount": s.guest_count,
    }


def monthly_attendance_json(m: MonthlyAttendance) -> Dict[str, Any]:
    return {
        "month": m.month,
        "attendance": round_half_up(m.attendance),
        "communion": round_half_up(m.communion),
        "serviceCount": m.service_count,
        "totalAttendance": m.total_attendance,
        "memberAttendance": round_half_up(m.member_attendance),
        "guestAttendance": round_half_up(m.guest_attendance),
    }


def comparison_json(c: Comparison, left: str, right: str, *, with_counts: bool = True) -> Dict[str, Any]:
    def side(s) -> Dict[str, Any]:
        out: Dict[str, Any] = {"totalAttendance": s.total_attendance}
        if with_counts:
            out["serviceCount"] = s.service_count
        out["averageAttendance"] = round_half_up(s.average_attendance)
        return out
    return {left: side(c.left), right: side(c.right)}


def attendance_report_row(s: ServiceAttendance) -> Dict[str, str]:
    return {
        "Service Date": s.service_date.isoformat(),
        "Service Type": s.service_type,
        "Total Attendance": str(s.total_attendance),
        "Total Members": str(s.member_count),
        "Total Guests": str(s.guest_count),
        "Total Communion": str(s.total_communion),
    }


# ─────────────────────────────
# JSON: giving
# ─────────────────────────────
def amounts_json(amounts: Mapping[str, Decimal]) -> Dict[str, float]:
    return {k: money(v) for k, v in amounts.items()}


def monthly_giving_json(m: MonthlyGiving) -> Dict[str, Any]:
    return {
        "month": m.month,
        "totalAmount": money(m.total_amount),
        "recordCount": m.record_count,
        "categoryAmounts": amounts_json(m.category_amounts),
    }


def monthly_giving_by_service_json(m: MonthlyGivingByService) -> Dict[str, Any]:
    a = m.amounts
    return {
        "month": m.month,
        "divineService": money(a["divine_service"]),
        "midweekLent": money(a["midweek_lent"]),
        "midweekAdvent": money(a["midweek_advent"]),
        "festival": money(a["festival"]),
        "other": money(a["other"]),
    }


def amount_bucket_json(b: AmountBucket, name: Optional[str] = None) -> Dict[str, Any]:
    return {
        "name": name or b.name,
        "totalAmount": money(b.total_amount),
        "recordCount": b.record_count,
        "averageAmount": money(b.average_amount),
    }


def service_type_bucket_json(b: AmountBucket) -> Dict[str, Any]:
    return amount_bucket_json(b, name=service_type_label(b.name))


def name_value_json(pairs: Iterable[Tuple[str, Any]], *, as_money: bool = False) -> List[Dict[str, Any]]:
    return [{"name": n, "value": money(v) if as_money else v} for n, v in pairs]


def service_display_name(sg: ServiceGiving) -> str:
    svc = sg.service
    if svc is None:
        return OTHER_SERVICE_DISPLAY
    time_part = f" {svc.service_time}" if svc.service_time else ""
    return f"{svc.service_date.isoformat()}{time_part} - {service_type_label(svc.service_type)}"


def giving_by_service_json(rows: Sequence[ServiceGiving], totals: Mapping[str, Decimal]) -> Dict[str, Any]:
    services = []
    for sg in rows:
        svc = sg.service
        services.append({
            "serviceId": svc.id if svc else None,
            "serviceDate": svc.service_date.isoformat() if svc else None,
            "serviceType": svc.service_type if svc else None,
            "serviceTime": svc.service_time if svc else None,
            "displayName": service_display_name(sg),
            "categoryTotals": {k: money_str(v) for k, v in sg.category_totals.items()},
            "total": money_str(sg.total),
        })
    grand = {k: money_str(v) for k, v in totals.items()}
    grand["total"] = money_str(sum(totals.values(), Decimal("0")))
    return {"services": services, "totals": grand}


def giving_by_service_csv_rows(rows: Sequence[ServiceGiving], totals: Mapping[str, Decimal]) -> List[Dict[str, str]]:
    out: List[Dict[str, str]] = []
    for sg in rows:
        svc = sg.service
        row = {
            "Service Date": svc.service_date.isoformat() if svc else "",
            "Service Type": service_type_label(svc.service_type) if svc else SERVICE_TYPE_LABELS["other"],
            "Service Time": (svc.service_time or "") if svc else "",
        }
        row.update({k: money_str(v) for k, v in sg.category_totals.items()})
        row["Total"] = money_str(sg.total)
        out.append(row)
    total_row = {"Service Date": "", "Service Type": "", "Service Time": GRAND_TOTAL_LABEL}
    total_row.update({k: money_str(v) for k, v in totals.items()})
    total_row["Total"] = money_str(sum(totals.values(), Decimal("0")))
    out.append(total_row)
    return out


# ─────────────────────────────
# JSON: member directory
# ─────────────────────────────
def _title(key: str) -> str:
    return UNKNOWN if key in ("unknown", UNKNOWN) else key[:1].upper() + key[1:]


def demographics_json(d: MemberDemographics) -> Dict[str, Any]:
    gender = [
        {"name": _title(k), "value": v}
        for k, v in d.gender.items() if k != "unknown" and v > 0
    ]
    ages = [{"name": k, "value": v} for k, v in d.age_groups.items() if v > 0]
    households = [{"name": _title(k), "value": v} for k, v in d.household_types.items() if v > 0]
    status = [{"name": _title(k), "value": v} for k, v in d.participation.items() if v > 0]
    return {
        "gender": gender,
        "ageGroups": ages,
        "householdTypes": households,
        "memberStatus": status,
        "totalMembers": d.total,
    }
