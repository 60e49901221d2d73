from datetime import date
from decimal import Decimal

import pytest
from factories import attend, gift, member, svc

from parish_analytics.reports import aggregator as agg

TODAY = date(2024, 6, 15)


# ─────────────────────────────
# Attendance
# ─────────────────────────────
def _attendance_fixture():
    services = [
        svc("s1", date(2024, 1, 7)),
        svc("s2", date(2024, 1, 14)),
        svc("s3", date(2024, 2, 14), "midweek_lent", "19:00"),
    ]
    dad = member("dad", sex="male", date_of_birth=date(1980, 1, 1))
    mom = member("mom", sex="female", date_of_birth=date(1982, 1, 1))
    kid = member("kid", sex="female", date_of_birth=date(2015, 1, 1))
    guest = member("g", sex="male", membership_code="GUEST")
    records = [
        attend(services[0], dad, communion=True),
        attend(services[0], mom, communion=True),
        attend(services[0], kid),
        attend(services[1], dad),
        attend(services[1], guest),
        attend(services[1], None, member_id="stranger"),
        attend(services[1], mom, attended=False),
        attend(services[2], mom, communion=True),
    ]
    return services, records


def test_per_service_counts():
    services, records = _attendance_fixture()
    rows = agg.attendance_per_service(services, records)
    s1, s2, s3 = rows
    assert (s1.total_attendance, s1.total_communion) == (3, 2)
    assert (s1.male_count, s1.female_count, s1.children_count) == (1, 2, 1)
    assert (s1.member_count, s1.guest_count) == (3, 0)
    assert s1.male_percent == 33.33
    # unresolved attendee and GUEST code are both guests; absent rows don't count
    assert (s2.total_attendance, s2.member_count, s2.guest_count) == (3, 1, 2)
    assert (s3.total_attendance, s3.male_percent, s3.female_percent) == (1, 0.0, 100.0)


def test_guest_rule():
    s = svc("s1", date(2024, 1, 7))
    assert agg.is_guest(attend(s, None, member_id="x"))
    assert agg.is_guest(attend(s, member("g", membership_code="guest")))
    assert not agg.is_guest(attend(s, member("m", membership_code="CONFIRMED")))
    assert not agg.is_guest(attend(s, member("m")))


def test_monthly_trend_averages_reconstruct_total_attendance():
    services, records = _attendance_fixture()
    per_service = agg.attendance_per_service(services, records)
    trend = agg.monthly_attendance_trend(per_service, multi_year=False)

    assert [m.month for m in trend] == ["January", "February"]
    assert trend[0].service_count == 2
    assert trend[0].attendance == 3.0
    assert trend[0].guest_attendance == 1.0
    total = sum(s.total_attendance for s in per_service)
    assert sum(m.attendance * m.service_count for m in trend) == pytest.approx(total)


def test_monthly_trend_is_empty_without_services():
    assert agg.monthly_attendance_trend([], multi_year=False) == []


def test_monthly_trend_labels_across_years_are_chronological():
    services = [svc("b", date(2024, 1, 7)), svc("a", date(2023, 12, 24))]
    trend = agg.monthly_attendance_trend(agg.attendance_per_service(services, []), multi_year=True)
    assert [m.month for m in trend] == ["December 2023", "January 2024"]
    assert all(m.attendance == 0.0 for m in trend)


def test_gender_totals():
    services, records = _attendance_fixture()
    assert agg.gender_totals(agg.attendance_per_service(services, records)) == {"male": 3, "female": 3}


# ─────────────────────────────
# Giving
# ─────────────────────────────
def test_january_flat_gifts():
    records = [
        gift("g1", date(2024, 1, 7), "50"),
        gift("g2", date(2024, 1, 14), "100"),
        gift("g3", date(2024, 1, 21), "25.50"),
    ]
    (jan,) = agg.monthly_giving_trend(records, start=date(2024, 1, 1), end=date(2024, 1, 31))
    assert jan.month == "January"
    assert jan.total_amount == Decimal("175.50")
    assert jan.record_count == 3
    assert jan.category_amounts["Current"] == Decimal("175.50")
    assert jan.category_amounts["Mission"] == Decimal("0")


def test_giving_months_without_gifts_are_zero_filled():
    lookup = agg.ServiceLookup([svc("s1", date(2024, 1, 7))])
    records = [gift("g1", date(2024, 1, 7), "50"), gift("g2", date(2024, 3, 3), "20")]
    start, end = date(2024, 1, 1), date(2024, 3, 31)

    trend = agg.monthly_giving_trend(records, start=start, end=end)
    assert [m.month for m in trend] == ["January", "February", "March"]
    feb = trend[1]
    assert feb.total_amount == Decimal("0")
    assert feb.record_count == 0
    assert all(v == 0 for v in feb.category_amounts.values())

    by_service = agg.monthly_giving_by_service(records, lookup, start=start, end=end)
    assert [m.month for m in by_service] == ["January", "February", "March"]
    assert all(v == 0 for v in by_service[1].amounts.values())
    assert by_service[0].amounts["divine_service"] == Decimal("50")
    assert by_service[2].amounts["other"] == Decimal("20")


def test_giving_trend_across_years_labels_with_year():
    records = [gift("g1", date(2024, 1, 7), "10")]
    trend = agg.monthly_giving_trend(records, start=date(2023, 11, 15), end=date(2024, 1, 10))
    assert [m.month for m in trend] == ["November 2023", "December 2023", "January 2024"]
    assert [m.record_count for m in trend] == [0, 0, 1]


def test_category_breakdown_sums_to_total_and_drops_zeros():
    records = [
        gift("g1", date(2024, 1, 7), amounts={"Current": "40", "Mission": "10"}),
        gift("g2", date(2024, 2, 4), amounts={"School": "5.25"}),
        gift("g3", date(2024, 2, 4), amounts={"Building": "3"}),
    ]
    breakdown = agg.category_breakdown(records)
    assert breakdown == [
        ("Current", Decimal("40")),
        ("Mission", Decimal("10")),
        ("School", Decimal("5.25")),
        ("Building", Decimal("3")),
    ]
    assert sum(v for _, v in breakdown) == agg.total_giving(records)


def test_gifts_attributed_to_one_service_each():
    services = [
        svc("late", date(2024, 3, 3), "divine_service", "10:30"),
        svc("early", date(2024, 3, 3), "festival", "08:00"),
        svc("lent", date(2024, 3, 6), "midweek_lent", "19:00"),
    ]
    lookup = agg.ServiceLookup(services)
    records = [
        gift("explicit", date(2024, 3, 3), "10", service_id="late"),
        gift("same-day", date(2024, 3, 3), "20"),
        gift("stale-id", date(2024, 3, 6), "30", service_id="not-in-range"),
        gift("no-service", date(2024, 3, 9), "40"),
    ]
    assert [lookup.service_type_for(g) for g in records] == [
        "divine_service", "festival", "midweek_lent", "other",
    ]

    (march,) = agg.monthly_giving_by_service(records, lookup, start=date(2024, 3, 1), end=date(2024, 3, 31))
    assert march.amounts == {
        "divine_service": Decimal("10"),
        "midweek_lent": Decimal("30"),
        "midweek_advent": Decimal("0"),
        "festival": Decimal("20"),
        "other": Decimal("40"),
    }
    assert sum(march.amounts.values()) == agg.total_giving(records)

    buckets = agg.giving_by_service_type(records, lookup)
    assert [b.name for b in buckets] == ["divine_service", "midweek_lent", "festival", "other"]


def test_age_group_buckets():
    assert agg.age_group(None) == "Unknown"
    assert agg.age_group(14) == "under 15"
    assert agg.age_group(15) == "15-18"
    assert agg.age_group(34) == "19-34"
    assert agg.age_group(64) == "50-64"
    assert agg.age_group(90) == "65+"


def test_giving_by_age_group_uses_today_and_drops_empty_buckets():
    young = member("y", date_of_birth=date(2000, 6, 16))   # 23 on TODAY
    senior = member("s", date_of_birth=date(1950, 1, 1))
    records = [
        gift("g1", date(2024, 1, 7), "30", who=young),
        gift("g2", date(2024, 1, 7), "10", who=young),
        gift("g3", date(2024, 1, 7), "100", who=senior),
        gift("g4", date(2024, 1, 7), "7", who=member("n")),
    ]
    buckets = agg.giving_by_age_group(records, TODAY)
    assert [(b.name, b.total_amount, b.record_count) for b in buckets] == [
        ("19-34", Decimal("40"), 2),
        ("65+", Decimal("100"), 1),
        ("Unknown", Decimal("7"), 1),
    ]
    assert buckets[0].average_amount == 20.0


def test_giving_by_household_type():
    records = [
        gift("g1", date(2024, 1, 7), "30", who=member("a", household_type="family")),
        gift("g2", date(2024, 1, 7), "10", who=member("b", household_type="single")),
        gift("g3", date(2024, 1, 7), "5", who=member("c")),
        gift("g4", date(2024, 1, 7), "5", who=member("d", household_type="commune")),
    ]
    names = [b.name for b in agg.giving_by_household_type(records)]
    assert names == ["Family", "Single", "Other", "Unknown"]


def test_average_amount_zero_for_empty_bucket():
    assert agg.AmountBucket("x").average_amount == 0


def test_giving_by_service_includes_every_service_and_other_row():
    services = [svc("s1", date(2024, 3, 3)), svc("s2", date(2024, 3, 10))]
    records = [
        gift("g1", date(2024, 3, 3), amounts={"Current": "10", "Mission": "2"}),
        gift("g2", date(2024, 3, 5), amounts={"Current": "4"}),
    ]
    rows = agg.giving_by_service(records, services)
    assert [r.service.id if r.service else None for r in rows] == ["s1", "s2", None]
    assert rows[0].total == Decimal("12")
    assert rows[1].total == Decimal("0")
    assert rows[2].category_totals["Current"] == Decimal("4")


def test_giving_by_service_without_unattributed_gifts_has_no_other_row():
    services = [svc("s1", date(2024, 3, 3))]
    rows = agg.giving_by_service([gift("g1", date(2024, 3, 3), "5")], services)
    assert len(rows) == 1


# ─────────────────────────────
# Member directory
# ─────────────────────────────
def test_member_demographics_counts():
    members = [
        member("a", sex="male", date_of_birth=date(1950, 1, 1), household_type="family", participation="active"),
        member("b", sex="female", household_type="single", participation="homebound"),
        member("c", household_type="shared", participation="active"),
    ]
    d = agg.member_demographics(members, TODAY)
    assert d.total == 3
    assert d.gender == {"male": 1, "female": 1, "other": 0, "unknown": 1}
    assert d.age_groups["65+"] == 1
    assert d.age_groups["Unknown"] == 2
    assert d.household_types == {"family": 1, "single": 1, "other": 1, "unknown": 0}
    assert d.participation["active"] == 2


def test_congregational_statistics():
    start, end = date(2023, 1, 1), date(2023, 12, 31)
    members = [
        member("infant", date_of_birth=date(2022, 6, 1), baptism_date=date(2023, 2, 1)),
        member("adult", date_of_birth=date(1990, 1, 1), baptism_date=date(2023, 5, 1),
               confirmation_date=date(2023, 5, 1)),
        member("teen", date_of_birth=date(2009, 1, 1), baptism_date=date(2009, 3, 1),
               confirmation_date=date(2023, 4, 2)),
        member("gone", baptism_date=date(1960, 1, 1), deceased_date=date(2023, 8, 1),
               date_removed=date(2023, 9, 1)),
    ]
    services = [svc("d1", date(2023, 1, 1)), svc("d2", date(2023, 1, 8)), svc("l1", date(2023, 3, 1), "midweek_lent")]
    records = [
        attend(services[0], members[1]),
        attend(services[0], None, member_id="visitor"),
        attend(services[1], members[1]),
        attend(services[2], members[2]),
    ]
    stats = dict(agg.congregational_statistics(members, agg.attendance_per_service(services, records), start, end))
    assert stats["Total Baptized Membership"] == 4
    assert stats["Number Baptized During Year - Infant/Children (<18)"] == 1
    assert stats["Number Baptized During Year - Adults (18+)"] == 1
    assert stats["Total Confirmed Membership"] == 2
    assert stats["Confirmation Gains - Juniors (<18)"] == 1
    assert stats["Confirmation Gains - Adults (18+)"] == 1
    assert stats["Losses (Deceased or Removed)"] == 1
    assert stats["Weekly Church Attendance (Average)"] == 1.5
    assert stats["Average Visitors Per Service"] == pytest.approx(1 / 3)
