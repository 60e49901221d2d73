# parish_analytics/reports/dao.py
"""
Church-scoped reads for the reports. Every query is filtered by church_id
and, where it has one, by the inclusive [start, end] date range. Rows are
validated into typed records here and nowhere else.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy import bindparam, text
from sqlalchemy.orm import Session

from parish_analytics.models import AttendanceRecord, GivingRecord, Household, Member, Service
from parish_analytics.reports.constants import DEFAULT_CATEGORIES

log = logging.getLogger(__name__)

MEMBER_COLUMNS = """
    m.id                AS m_id,
    m.first_name        AS m_first_name,
    m.last_name         AS m_last_name,
    m.sex               AS m_sex,
    m.date_of_birth     AS m_date_of_birth,
    m.household_id      AS m_household_id,
    h.type              AS m_household_type,
    m.envelope_number   AS m_envelope_number,
    m.participation     AS m_participation,
    m.membership_code   AS m_membership_code,
    m.baptism_date      AS m_baptism_date,
    m.confirmation_date AS m_confirmation_date,
    m.deceased_date     AS m_deceased_date,
    m.date_removed      AS m_date_removed
"""


def _split_prefixed(row: Mapping[str, Any], prefix: str) -> Dict[str, Any]:
    n = len(prefix)
    return {k[n:]: v for k, v in row.items() if k.startswith(prefix)}


def _member_from(row: Mapping[str, Any]) -> Optional[Member]:
    fields = _split_prefixed(row, "m_")
    if fields.get("id") is None:
        return None
    return Member.model_validate(fields)


# ─────────────────────────────
# Services & attendance
# ─────────────────────────────
def fetch_services(db: Session, church_id: str, start: date, end: date) -> List[Service]:
    rows = db.execute(text("""
        SELECT id, service_date, service_type, service_time
        FROM services
        WHERE church_id = :church_id
          AND service_date BETWEEN :start AND :end
        ORDER BY service_date, service_time
    """), {"church_id": church_id, "start": start, "end": end}).mappings().all()
    return [Service.model_validate(dict(r)) for r in rows]


def fetch_attendance(db: Session, church_id: str, start: date, end: date) -> List[AttendanceRecord]:
    """
    Attendance rows for the church's services in range, each joined to the
    attendee's member record when one exists in this church.
    """
    rows = db.execute(text(f"""
        SELECT a.member_id, a.service_id, a.attended, a.took_communion,
               {MEMBER_COLUMNS}
        FROM attendance a
        JOIN services s ON s.id = a.service_id
        LEFT JOIN members m ON m.id = a.member_id AND m.church_id = :church_id
        LEFT JOIN household h ON h.id = m.household_id
        WHERE s.church_id = :church_id
          AND s.service_date BETWEEN :start AND :end
    """), {"church_id": church_id, "start": start, "end": end}).mappings().all()

    out: List[AttendanceRecord] = []
    for r in rows:
        out.append(AttendanceRecord(
            member_id=r["member_id"],
            service_id=r["service_id"],
            attended=r["attended"],
            took_communion=r["took_communion"],
            member=_member_from(r),
        ))
    return out


# ─────────────────────────────
# Giving
# ─────────────────────────────
def fetch_categories(db: Session, church_id: str) -> List[str]:
    """Active category names in display order; the standard set when none are configured."""
    rows = db.execute(text("""
        SELECT name
        FROM giving_categories
        WHERE church_id = :church_id AND is_active = TRUE
        ORDER BY display_order, name
    """), {"church_id": church_id}).scalars().all()
    return list(rows) or list(DEFAULT_CATEGORIES)


def fetch_category_ids(db: Session, church_id: str) -> Dict[str, str]:
    rows = db.execute(text("""
        SELECT id, name
        FROM giving_categories
        WHERE church_id = :church_id AND is_active = TRUE
    """), {"church_id": church_id}).mappings().all()
    return {r["name"]: str(r["id"]) for r in rows}


def _giving_items(db: Session, giving_ids: Sequence[str]) -> Dict[str, List[dict]]:
    if not giving_ids:
        return {}
    stmt = text("""
        SELECT gi.giving_id, gc.name AS category, gi.amount
        FROM giving_items gi
        JOIN giving_categories gc ON gc.id = gi.category_id
        WHERE gi.giving_id IN :ids
    """).bindparams(bindparam("ids", expanding=True))
    items: Dict[str, List[dict]] = defaultdict(list)
    for r in db.execute(stmt, {"ids": list(giving_ids)}).mappings():
        items[str(r["giving_id"])].append({"category": r["category"], "amount": r["amount"]})
    return items


def fetch_giving(
    db: Session,
    church_id: str,
    start: date,
    end: date,
    *,
    member_ids: Optional[Sequence[str]] = None,
) -> List[GivingRecord]:
    """Giving records in range with their itemized amounts and giver."""
    sql = f"""
        SELECT g.id, g.member_id, g.service_id, g.date_given, g.notes,
               {MEMBER_COLUMNS}
        FROM giving g
        JOIN members m ON m.id = g.member_id
        LEFT JOIN household h ON h.id = m.household_id
        WHERE m.church_id = :church_id
          AND g.date_given BETWEEN :start AND :end
    """
    params: Dict[str, Any] = {"church_id": church_id, "start": start, "end": end}
    if member_ids is not None:
        sql += " AND g.member_id IN :member_ids"
        params["member_ids"] = list(member_ids)
    sql += " ORDER BY g.date_given, g.id"
    stmt = text(sql)
    if member_ids is not None:
        stmt = stmt.bindparams(bindparam("member_ids", expanding=True))

    rows = db.execute(stmt, params).mappings().all()
    items = _giving_items(db, [str(r["id"]) for r in rows])

    out: List[GivingRecord] = []
    for r in rows:
        out.append(GivingRecord.model_validate({
            "id": r["id"],
            "member_id": r["member_id"],
            "service_id": r["service_id"],
            "date_given": r["date_given"],
            "notes": r["notes"],
            "items": items.get(str(r["id"]), []),
            "member": _member_from(r),
        }))
    log.info("[reports] church=%s giving rows=%s (%s..%s)", church_id, len(out), start, end)
    return out


def insert_giving(db: Session, church_id: str, records: Iterable[GivingRecord]) -> int:
    """
    Insert canonical giving records (header row + one item per category).
    Categories missing from the church's active set are rejected.
    """
    category_ids = fetch_category_ids(db, church_id)
    n = 0
    for g in records:
        missing = [c for c in g.amounts if c not in category_ids]
        if missing:
            raise ValueError(f"Unknown giving categories: {', '.join(missing)}")
        giving_id = db.execute(text("""
            INSERT INTO giving (member_id, service_id, date_given, notes)
            VALUES (:member_id, :service_id, :date_given, :notes)
            RETURNING id
        """), {
            "member_id": g.member_id,
            "service_id": g.service_id,
            "date_given": g.date_given,
            "notes": g.notes,
        }).scalar_one()
        for category, amount in g.amounts.items():
            db.execute(text("""
                INSERT INTO giving_items (giving_id, category_id, amount)
                VALUES (:giving_id, :category_id, :amount)
            """), {"giving_id": giving_id, "category_id": category_ids[category], "amount": amount})
        n += 1
    db.commit()
    return n


# ─────────────────────────────
# Members & households
# ─────────────────────────────
def fetch_members(db: Session, church_id: str) -> List[Member]:
    rows = db.execute(text(f"""
        SELECT {MEMBER_COLUMNS}
        FROM members m
        LEFT JOIN household h ON h.id = m.household_id
        WHERE m.church_id = :church_id
        ORDER BY m.last_name, m.first_name
    """), {"church_id": church_id}).mappings().all()
    return [Member.model_validate(_split_prefixed(r, "m_")) for r in rows]


def fetch_members_by_envelope(db: Session, church_id: str, envelopes: Iterable[int]) -> List[Member]:
    """Everyone sharing any of the given envelope numbers (one query for the whole export)."""
    envelopes = sorted(set(envelopes))
    if not envelopes:
        return []
    stmt = text(f"""
        SELECT {MEMBER_COLUMNS}
        FROM members m
        LEFT JOIN household h ON h.id = m.household_id
        WHERE m.church_id = :church_id
          AND m.envelope_number IN :envelopes
        ORDER BY m.envelope_number, m.id
    """).bindparams(bindparam("envelopes", expanding=True))
    rows = db.execute(stmt, {"church_id": church_id, "envelopes": envelopes}).mappings().all()
    return [Member.model_validate(_split_prefixed(r, "m_")) for r in rows]


def household_member_ids(db: Session, church_id: str, household_id: str) -> List[str]:
    rows = db.execute(text("""
        SELECT id FROM members
        WHERE church_id = :church_id AND household_id = :household_id
    """), {"church_id": church_id, "household_id": household_id}).scalars().all()
    return [str(r) for r in rows]


def fetch_households(
    db: Session, church_id: str, household_ids: Optional[Iterable[str]] = None
) -> List[Household]:
    """Households with their members (member order is stable: by member id)."""
    sql = """
        SELECT id, name, type FROM household
        WHERE church_id = :church_id
    """
    params: Dict[str, Any] = {"church_id": church_id}
    ids = None
    if household_ids is not None:
        ids = sorted(set(household_ids))
        if not ids:
            return []
        sql += " AND id IN :ids"
        params["ids"] = ids
    stmt = text(sql)
    if ids is not None:
        stmt = stmt.bindparams(bindparam("ids", expanding=True))
    households = {str(r["id"]): dict(r) for r in db.execute(stmt, params).mappings()}
    if not households:
        return []

    mstmt = text(f"""
        SELECT {MEMBER_COLUMNS}
        FROM members m
        LEFT JOIN household h ON h.id = m.household_id
        WHERE m.church_id = :church_id
          AND m.household_id IN :ids
        ORDER BY m.household_id, m.id
    """).bindparams(bindparam("ids", expanding=True))
    members: Dict[str, List[Member]] = defaultdict(list)
    for r in db.execute(mstmt, {"church_id": church_id, "ids": list(households)}).mappings():
        m = Member.model_validate(_split_prefixed(r, "m_"))
        members[m.household_id].append(m)

    return [
        Household.model_validate({**h, "members": members.get(hid, [])})
        for hid, h in households.items()
    ]
