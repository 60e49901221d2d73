from datetime import date
from decimal import Decimal

import pytest
from factories import attend, gift, household, member, svc

from parish_analytics.models import ReportContext
from parish_analytics.reports import service
from parish_analytics.reports.households import heads_by_envelope

CTX = ReportContext(church_id="church-1", today=date(2024, 6, 15))


def test_attendance_analytics_payload():
    services = [svc("s1", date(2024, 1, 7)), svc("s2", date(2024, 1, 10), "midweek_lent")]
    m = member("m1", sex="male")
    records = [attend(services[0], m, communion=True), attend(services[0], None), attend(services[1], m)]
    out = service.build_attendance_analytics(date(2024, 1, 1), date(2024, 12, 31), services, records)

    assert out["totalAttendance"] == 3
    assert out["serviceCount"] == 2
    assert out["divineServiceComparison"] == {
        "divineService": {"totalAttendance": 2, "serviceCount": 1, "averageAttendance": 2.0},
        "otherServices": {"totalAttendance": 1, "serviceCount": 1, "averageAttendance": 1.0},
    }
    assert out["memberVsGuestComparison"]["guests"]["averageAttendance"] == 0.5
    assert out["monthlyTrend"] == [{
        "month": "January", "attendance": 1.5, "communion": 0.5, "serviceCount": 2,
        "totalAttendance": 3, "memberAttendance": 1.0, "guestAttendance": 0.5,
    }]
    assert out["genderTotals"] == [{"name": "Male", "value": 2}, {"name": "Female", "value": 0}]
    assert (out["startDate"], out["endDate"]) == ("2024-01-01", "2024-12-31")


def test_attendance_analytics_with_no_services():
    out = service.build_attendance_analytics(date(2024, 1, 1), date(2024, 12, 31), [], [])
    assert out["monthlyTrend"] == []
    assert out["attendancePerService"] == []
    assert out["divineServiceComparison"]["divineService"]["averageAttendance"] == 0


def test_giving_analytics_totals_agree():
    services = [svc("s1", date(2024, 1, 7))]
    records = [
        gift("g1", date(2024, 1, 7), "50", who=member("a", date_of_birth=date(1980, 1, 1))),
        gift("g2", date(2024, 1, 14), "100"),
        gift("g3", date(2024, 1, 21), amounts={"Current": "20", "Mission": "5.50"}),
    ]
    out = service.build_giving_analytics(
        CTX, date(2024, 1, 1), date(2024, 12, 31), records, services, ["Current", "Mission"],
    )
    assert out["totalGiving"] == 175.5
    assert out["totalRecords"] == 3
    assert sum(c["value"] for c in out["categoryBreakdown"]) == pytest.approx(out["totalGiving"])
    assert out["monthlyTrend"][0]["totalAmount"] == 175.5
    assert len(out["monthlyTrend"]) == len(out["monthlyGivingByService"]) == 12
    assert out["monthlyTrend"][1]["totalAmount"] == 0.0
    assert out["monthlyGivingByService"][0] == {
        "month": "January", "divineService": 50.0, "midweekLent": 0.0,
        "midweekAdvent": 0.0, "festival": 0.0, "other": 125.5,
    }
    assert [b["name"] for b in out["serviceTypeData"]] == ["Divine Service", "Other"]
    assert [b["name"] for b in out["ageGroupData"]] == ["35-49", "Unknown"]


def _export_fixture():
    wife = member("wife", "Ruth", "Olsen", sex="female", date_of_birth=date(1954, 1, 1),
                  envelope_number=12, household_id="h1")
    husband = member("husband", "Erik", "Olsen", sex="male", date_of_birth=date(1979, 1, 1),
                     envelope_number=12, household_id="h1")
    loner = member("loner", "Pat", "Doe")
    records = [
        gift("g1", date(2024, 1, 7), amounts={"Current": "50", "Mission": "10"}, who=wife,
             notes="In memory of Carl, Sr."),
        gift("g2", date(2024, 1, 14), "25.5", who=loner),
    ]
    heads = heads_by_envelope([wife, husband])
    households = {"h1": household("h1", [wife, husband])}
    return records, heads, households


def test_giving_export_rows_use_head_of_household():
    records, heads, households = _export_fixture()
    headers, rows, payload = service.build_giving_export(records, heads, households, ["Current", "Mission"])

    assert headers == [
        "Household Name", "Envelope Number", "Member Name", "Date Given",
        "Current", "Mission", "Total", "Notes",
    ]
    first, second, total = rows
    assert first["Member Name"] == "Erik Olsen"
    assert first["Household Name"] == "Ruth & Erik Olsen"
    assert first["Envelope Number"] == "12"
    assert (first["Current"], first["Mission"], first["Total"]) == ("50.00", "10.00", "60.00")
    assert second["Member Name"] == "Pat Doe"
    assert (second["Household Name"], second["Envelope Number"]) == ("N/A", "N/A")
    assert total["Notes"] == "TOTAL"
    assert total["Member Name"] == ""
    assert (total["Current"], total["Mission"], total["Total"]) == ("75.50", "10.00", "85.50")

    assert payload[0]["member"]["firstName"] == "Erik"
    assert payload[0]["total"] == 60.0


def test_empty_giving_export_has_no_total_row():
    headers, rows, payload = service.build_giving_export([], {}, {}, ["Current"])
    assert headers[-2:] == ["Total", "Notes"]
    assert rows == []
    assert payload == []


def test_congregational_statistics_rows_are_rounded():
    services = [svc("d1", date(2023, 1, 1)), svc("d2", date(2023, 1, 8)), svc("d3", date(2023, 1, 15))]
    m = member("m")
    records = [attend(services[0], m), attend(services[1], m), attend(services[1], None)]
    headers, rows = service.build_congregational_statistics(
        date(2023, 1, 1), date(2023, 12, 31), [m], services, records,
    )
    assert headers == ["Metric", "Value"]
    values = {r["Metric"]: r["Value"] for r in rows}
    assert values["Weekly Church Attendance (Average)"] == 1.0
    assert values["Average Visitors Per Service"] == 0.33
    assert values["Total Baptized Membership"] == 0


def test_giving_export_loader_batches_head_lookup(monkeypatch):
    from parish_analytics.reports import dao

    records, _, households = _export_fixture()
    calls = []

    def fake_by_envelope(db, church_id, envelopes):
        calls.append(sorted(set(envelopes)))
        return [m for h in households.values() for m in h.members]

    monkeypatch.setattr(dao, "fetch_categories", lambda db, church_id: ["Current", "Mission"])
    monkeypatch.setattr(dao, "fetch_giving", lambda db, church_id, start, end, member_ids=None: records)
    monkeypatch.setattr(dao, "fetch_members_by_envelope", fake_by_envelope)
    monkeypatch.setattr(dao, "fetch_households", lambda db, church_id, ids=None: list(households.values()))

    _, rows, _ = service.giving_export(None, CTX, date(2024, 1, 1), date(2024, 1, 31))
    assert calls == [[12]]
    assert rows[0]["Member Name"] == "Erik Olsen"


def test_giving_export_for_empty_household(monkeypatch):
    from parish_analytics.reports import dao

    monkeypatch.setattr(dao, "fetch_categories", lambda db, church_id: ["Current"])
    monkeypatch.setattr(dao, "household_member_ids", lambda db, church_id, household_id: [])
    headers, rows, payload = service.giving_export(None, CTX, date(2024, 1, 1), date(2024, 1, 31), household_id="h9")
    assert rows == [] and payload == []
    assert "Current" in headers
