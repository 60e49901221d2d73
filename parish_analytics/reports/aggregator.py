# parish_analytics/reports/aggregator.py
"""
Pure reducers from church-scoped row sets to report-shaped summaries.

Nothing here touches the database: callers fetch one row set per report
(see `dao`) and every function below works only from what it is handed.
Money stays Decimal; rounding for display happens in `formatter`.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from parish_analytics.models import AttendanceRecord, GivingRecord, Member, Service
from parish_analytics.reports.constants import (
    ADULT_AGE,
    AGE_GROUPS,
    DEFAULT_CATEGORIES,
    DIVINE_SERVICE,
    GUEST_MEMBERSHIP_CODE,
    HOUSEHOLD_TYPES,
    OTHER_SERVICE,
    PARTICIPATION_STATUSES,
    SERVICE_TYPES,
    SEXES,
    UNKNOWN,
)
from parish_analytics.utils.common import age_on, month_key, month_label, safe_div, safe_percent

ZERO = Decimal("0")


# ──────────────────────────────────────────────────────────────────────────────
# Attendance
# ──────────────────────────────────────────────────────────────────────────────

def is_guest(rec: AttendanceRecord) -> bool:
    """Unresolved attendees and GUEST-coded members count as guests."""
    if rec.member is None:
        return True
    return (rec.member.membership_code or "").upper() == GUEST_MEMBERSHIP_CODE


def spans_multiple_years(start: date, end: date) -> bool:
    return start.year != end.year


def _service_sort_key(s: Service):
    return (s.service_date, s.service_time or "")


@dataclass
class ServiceAttendance:
    service_id: str
    service_date: date
    service_type: str
    service_time: Optional[str]
    total_attendance: int = 0
    total_communion: int = 0
    male_count: int = 0
    female_count: int = 0
    children_count: int = 0
    member_count: int = 0
    guest_count: int = 0

    @property
    def male_percent(self) -> float:
        return safe_percent(self.male_count, self.male_count + self.female_count)

    @property
    def female_percent(self) -> float:
        return safe_percent(self.female_count, self.male_count + self.female_count)


def attendance_per_service(
    services: Iterable[Service], records: Iterable[AttendanceRecord]
) -> List[ServiceAttendance]:
    """One row per service (date order), counting only rows marked attended."""
    by_service: Dict[str, List[AttendanceRecord]] = defaultdict(list)
    for rec in records:
        by_service[rec.service_id].append(rec)

    out: List[ServiceAttendance] = []
    for svc in sorted(services, key=_service_sort_key):
        row = ServiceAttendance(svc.id, svc.service_date, svc.service_type, svc.service_time)
        for rec in by_service.get(svc.id, ()):
            if not rec.attended:
                continue
            row.total_attendance += 1
            if rec.took_communion:
                row.total_communion += 1
            sex = rec.member.sex if rec.member else None
            if sex == "male":
                row.male_count += 1
            elif sex == "female":
                row.female_count += 1
            age = age_on(rec.member.date_of_birth, svc.service_date) if rec.member else None
            if age is not None and age < ADULT_AGE:
                row.children_count += 1
            if is_guest(rec):
                row.guest_count += 1
            else:
                row.member_count += 1
        out.append(row)
    return out


@dataclass
class MonthlyAttendance:
    year: int
    month_num: int
    month: str
    service_count: int = 0
    total_attendance: int = 0
    total_communion: int = 0
    member_total: int = 0
    guest_total: int = 0

    # averages per service held in the month
    @property
    def attendance(self) -> float:
        return safe_div(self.total_attendance, self.service_count)

    @property
    def communion(self) -> float:
        return safe_div(self.total_communion, self.service_count)

    @property
    def member_attendance(self) -> float:
        return safe_div(self.member_total, self.service_count)

    @property
    def guest_attendance(self) -> float:
        return safe_div(self.guest_total, self.service_count)


def monthly_attendance_trend(
    per_service: Sequence[ServiceAttendance], *, multi_year: bool
) -> List[MonthlyAttendance]:
    """
    Calendar-month averages. Only months that held at least one service
    appear, so there is never a 0/0 month.
    """
    months: Dict[Tuple[int, int], MonthlyAttendance] = {}
    for s in per_service:
        y, m = month_key(s.service_date)
        bucket = months.get((y, m))
        if bucket is None:
            bucket = months[(y, m)] = MonthlyAttendance(y, m, month_label(y, m, multi_year))
        bucket.service_count += 1
        bucket.total_attendance += s.total_attendance
        bucket.total_communion += s.total_communion
        bucket.member_total += s.member_count
        bucket.guest_total += s.guest_count
    return [months[k] for k in sorted(months)]


def gender_totals(per_service: Iterable[ServiceAttendance]) -> Dict[str, int]:
    totals = {"male": 0, "female": 0}
    for s in per_service:
        totals["male"] += s.male_count
        totals["female"] += s.female_count
    return totals


# ──────────────────────────────────────────────────────────────────────────────
# Giving
# ──────────────────────────────────────────────────────────────────────────────

@dataclass
class AmountBucket:
    name: str
    total_amount: Decimal = ZERO
    record_count: int = 0

    def add(self, amount: Decimal) -> None:
        self.total_amount += amount
        self.record_count += 1

    @property
    def average_amount(self) -> float:
        return safe_div(self.total_amount, self.record_count)


@dataclass
class MonthlyGiving:
    year: int
    month_num: int
    month: str
    total_amount: Decimal = ZERO
    record_count: int = 0
    category_amounts: Dict[str, Decimal] = field(default_factory=dict)


@dataclass
class MonthlyGivingByService:
    year: int
    month_num: int
    month: str
    amounts: Dict[str, Decimal] = field(
        default_factory=lambda: {t: ZERO for t in SERVICE_TYPES + [OTHER_SERVICE]}
    )


def total_giving(records: Iterable[GivingRecord]) -> Decimal:
    return sum((g.total for g in records), ZERO)


def ordered_categories(records: Iterable[GivingRecord], categories: Sequence[str] = DEFAULT_CATEGORIES) -> List[str]:
    """Known categories in display order, then any others seen, by name."""
    known = list(categories)
    extra = sorted({c for g in records for c in g.amounts if c not in known})
    return known + extra


def _seed_months(start: date, end: date) -> List[Tuple[int, int]]:
    """Every (year, month) from start's month through end's month."""
    out: List[Tuple[int, int]] = []
    y, m = month_key(start)
    while (y, m) <= month_key(end):
        out.append((y, m))
        y, m = (y + 1, 1) if m == 12 else (y, m + 1)
    return out


def monthly_giving_trend(
    records: Iterable[GivingRecord],
    *,
    start: date,
    end: date,
    categories: Sequence[str] = DEFAULT_CATEGORIES,
) -> List[MonthlyGiving]:
    """
    One entry per calendar month in [start, end]; months without gifts are
    zero-filled so the chart series has no holes.
    """
    records = list(records)
    cats = ordered_categories(records, categories)
    multi_year = spans_multiple_years(start, end)

    def new_bucket(y: int, m: int) -> MonthlyGiving:
        return MonthlyGiving(y, m, month_label(y, m, multi_year), category_amounts={c: ZERO for c in cats})

    months: Dict[Tuple[int, int], MonthlyGiving] = {k: new_bucket(*k) for k in _seed_months(start, end)}
    for g in records:
        y, m = month_key(g.date_given)
        bucket = months.get((y, m))
        if bucket is None:
            bucket = months[(y, m)] = new_bucket(y, m)
        bucket.total_amount += g.total
        bucket.record_count += 1
        for cat, amount in g.amounts.items():
            bucket.category_amounts[cat] += amount
    return [months[k] for k in sorted(months)]


class ServiceLookup:
    """
    Attributes a gift to a service: its explicit service id when that
    service is in the row set, else the first service held that day.
    """

    def __init__(self, services: Iterable[Service]):
        ordered = sorted(services, key=_service_sort_key)
        self.by_id: Dict[str, Service] = {s.id: s for s in ordered}
        self.by_date: Dict[date, Service] = {}
        for s in ordered:
            self.by_date.setdefault(s.service_date, s)

    def service_for(self, gift: GivingRecord) -> Optional[Service]:
        if gift.service_id and gift.service_id in self.by_id:
            return self.by_id[gift.service_id]
        return self.by_date.get(gift.date_given)

    def service_type_for(self, gift: GivingRecord) -> str:
        svc = self.service_for(gift)
        return svc.service_type if svc else OTHER_SERVICE


def monthly_giving_by_service(
    records: Iterable[GivingRecord], lookup: ServiceLookup, *, start: date, end: date
) -> List[MonthlyGivingByService]:
    multi_year = spans_multiple_years(start, end)
    months: Dict[Tuple[int, int], MonthlyGivingByService] = {
        (y, m): MonthlyGivingByService(y, m, month_label(y, m, multi_year)) for y, m in _seed_months(start, end)
    }
    for g in records:
        y, m = month_key(g.date_given)
        bucket = months.get((y, m))
        if bucket is None:
            bucket = months[(y, m)] = MonthlyGivingByService(y, m, month_label(y, m, multi_year))
        stype = lookup.service_type_for(g)
        # custom service types roll into "other" for the fixed chart series
        key = stype if stype in bucket.amounts else OTHER_SERVICE
        bucket.amounts[key] += g.total
    return [months[k] for k in sorted(months)]


def giving_by_service_type(records: Iterable[GivingRecord], lookup: ServiceLookup) -> List[AmountBucket]:
    buckets: Dict[str, AmountBucket] = {}
    for g in records:
        stype = lookup.service_type_for(g)
        buckets.setdefault(stype, AmountBucket(stype)).add(g.total)
    order = SERVICE_TYPES + [OTHER_SERVICE]
    return sorted(
        buckets.values(),
        key=lambda b: (order.index(b.name) if b.name in order else len(order), b.name),
    )


def age_group(age: Optional[int]) -> str:
    if age is None:
        return UNKNOWN
    for label, lo, hi in AGE_GROUPS:
        if (lo is None or age >= lo) and (hi is None or age <= hi):
            return label
    return UNKNOWN


def _ordered_buckets(buckets: Dict[str, AmountBucket], order: Sequence[str]) -> List[AmountBucket]:
    return [buckets[name] for name in order if name in buckets and buckets[name].record_count > 0]


def giving_by_age_group(records: Iterable[GivingRecord], today: date) -> List[AmountBucket]:
    buckets: Dict[str, AmountBucket] = {}
    for g in records:
        dob = g.member.date_of_birth if g.member else None
        label = age_group(age_on(dob, today))
        buckets.setdefault(label, AmountBucket(label)).add(g.total)
    return _ordered_buckets(buckets, [a[0] for a in AGE_GROUPS] + [UNKNOWN])


def _household_type_label(member: Optional[Member]) -> str:
    htype = member.household_type if member else None
    if not htype:
        return UNKNOWN
    return htype.capitalize() if htype in HOUSEHOLD_TYPES else "Other"


def giving_by_household_type(records: Iterable[GivingRecord]) -> List[AmountBucket]:
    buckets: Dict[str, AmountBucket] = {}
    for g in records:
        label = _household_type_label(g.member)
        buckets.setdefault(label, AmountBucket(label)).add(g.total)
    return _ordered_buckets(buckets, [t.capitalize() for t in HOUSEHOLD_TYPES] + [UNKNOWN])


def category_totals(
    records: Iterable[GivingRecord], categories: Sequence[str] = DEFAULT_CATEGORIES
) -> Dict[str, Decimal]:
    records = list(records)
    totals = {c: ZERO for c in ordered_categories(records, categories)}
    for g in records:
        for cat, amount in g.amounts.items():
            totals[cat] += amount
    return totals


def category_breakdown(
    records: Iterable[GivingRecord], categories: Sequence[str] = DEFAULT_CATEGORIES
) -> List[Tuple[str, Decimal]]:
    """(category, sum) in display order, zero-sum categories dropped."""
    return [(cat, amt) for cat, amt in category_totals(records, categories).items() if amt != 0]


@dataclass
class ServiceGiving:
    service: Optional[Service]  # None = gifts not tied to any service
    category_totals: Dict[str, Decimal]

    @property
    def total(self) -> Decimal:
        return sum(self.category_totals.values(), ZERO)


def giving_by_service(
    records: Iterable[GivingRecord],
    services: Iterable[Service],
    categories: Sequence[str] = DEFAULT_CATEGORIES,
) -> List[ServiceGiving]:
    """
    Category totals for every service in range (including services with no
    gifts), plus one trailing service-less row when any gifts fall outside
    a service.
    """
    records = list(records)
    services = sorted(services, key=_service_sort_key)
    lookup = ServiceLookup(services)
    cats = ordered_categories(records, categories)

    rows: Dict[Optional[str], ServiceGiving] = {
        s.id: ServiceGiving(s, {c: ZERO for c in cats}) for s in services
    }
    other = ServiceGiving(None, {c: ZERO for c in cats})
    for g in records:
        svc = lookup.service_for(g)
        target = rows[svc.id] if svc else other
        for cat, amount in g.amounts.items():
            target.category_totals[cat] += amount

    out = [rows[s.id] for s in services]
    if any(a != 0 for a in other.category_totals.values()):
        out.append(other)
    return out


# ──────────────────────────────────────────────────────────────────────────────
# Member directory
# ──────────────────────────────────────────────────────────────────────────────

@dataclass
class MemberDemographics:
    total: int = 0
    gender: Dict[str, int] = field(default_factory=lambda: {s: 0 for s in SEXES + ["unknown"]})
    age_groups: Dict[str, int] = field(default_factory=lambda: {a[0]: 0 for a in AGE_GROUPS + [(UNKNOWN, None, None)]})
    household_types: Dict[str, int] = field(default_factory=lambda: {t: 0 for t in HOUSEHOLD_TYPES + ["unknown"]})
    participation: Dict[str, int] = field(default_factory=lambda: {p: 0 for p in PARTICIPATION_STATUSES})


def member_demographics(members: Iterable[Member], today: date) -> MemberDemographics:
    d = MemberDemographics()
    for m in members:
        d.total += 1
        d.gender[m.sex if m.sex in SEXES else "unknown"] += 1
        d.age_groups[age_group(age_on(m.date_of_birth, today))] += 1
        if not m.household_type:
            d.household_types["unknown"] += 1
        elif m.household_type in HOUSEHOLD_TYPES:
            d.household_types[m.household_type] += 1
        else:
            d.household_types["other"] += 1
        if m.participation in d.participation:
            d.participation[m.participation] += 1
    return d


def _in_range(d: Optional[date], start: date, end: date) -> bool:
    return d is not None and start <= d <= end


def _split_by_age(members: Iterable[Member], event_attr: str, start: date, end: date) -> Tuple[int, int]:
    """(under 18, 18+) at the time of the event, for events inside the range."""
    young = adult = 0
    for m in members:
        when = getattr(m, event_attr)
        if not _in_range(when, start, end):
            continue
        age = age_on(m.date_of_birth, when)
        if age is None:
            continue
        if age < ADULT_AGE:
            young += 1
        else:
            adult += 1
    return young, adult


def congregational_statistics(
    members: Sequence[Member],
    per_service: Sequence[ServiceAttendance],
    start: date,
    end: date,
) -> List[Tuple[str, float]]:
    """Year-end statistics rows (metric, value) for the synod report."""
    baptized_young, baptized_adult = _split_by_age(members, "baptism_date", start, end)
    confirmed_young, confirmed_adult = _split_by_age(members, "confirmation_date", start, end)
    losses = sum(
        1 for m in members
        if _in_range(m.deceased_date, start, end) or _in_range(m.date_removed, start, end)
    )
    divine = [s for s in per_service if s.service_type == DIVINE_SERVICE]
    divine_avg = safe_div(sum(s.total_attendance for s in divine), len(divine))
    guest_avg = safe_div(sum(s.guest_count for s in per_service), len(per_service))

    return [
        ("Total Baptized Membership", sum(1 for m in members if m.baptism_date)),
        ("Number Baptized During Year - Infant/Children (<18)", baptized_young),
        ("Number Baptized During Year - Adults (18+)", baptized_adult),
        ("Total Number Baptized During Year", baptized_young + baptized_adult),
        ("Total Confirmed Membership", sum(1 for m in members if m.confirmation_date)),
        ("Confirmation Gains - Juniors (<18)", confirmed_young),
        ("Confirmation Gains - Adults (18+)", confirmed_adult),
        ("Total Confirmation Gains", confirmed_young + confirmed_adult),
        ("Losses (Deceased or Removed)", losses),
        ("Weekly Church Attendance (Average)", divine_avg),
        ("Average Visitors Per Service", guest_avg),
    ]
