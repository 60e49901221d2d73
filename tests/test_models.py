from datetime import date
from decimal import Decimal
from uuid import UUID

import pytest
from pydantic import ValidationError

from parish_analytics.models import AttendanceRecord, GivingRecord, Member, Service, giving_amounts_from_row


def test_flat_amount_maps_to_current():
    g = GivingRecord.model_validate({"id": "g1", "member_id": "m1", "date_given": "2024-01-07", "amount": "50.00"})
    assert g.amounts == {"Current": Decimal("50.00")}
    assert g.total == Decimal("50.00")
    assert g.date_given == date(2024, 1, 7)


def test_category_columns_map_to_categories():
    row = {
        "id": "g1",
        "member_id": "m1",
        "date_given": date(2024, 1, 7),
        "current_amount": Decimal("100"),
        "mission_amount": "25.50",
        "memorials_amount": None,
        "school_amount": "",
    }
    g = GivingRecord.model_validate(row)
    assert g.amounts == {"Current": Decimal("100"), "Mission": Decimal("25.50")}
    assert g.total == Decimal("125.50")


def test_legacy_columns_map_to_current_and_mission():
    amounts = giving_amounts_from_row({"general_fund_amount": "10", "district_synod_amount": "5"})
    assert amounts == {"Current": Decimal("10"), "Mission": Decimal("5")}


def test_itemized_rows_sum_per_category():
    amounts = giving_amounts_from_row({
        "items": [
            {"category": "Current", "amount": Decimal("20")},
            {"category": "Debt", "amount": Decimal("5")},
            {"category": "Current", "amount": Decimal("1.25")},
        ]
    })
    assert amounts == {"Current": Decimal("21.25"), "Debt": Decimal("5")}


def test_record_without_amounts_totals_zero():
    g = GivingRecord(id="g1", member_id="m1", date_given=date(2024, 1, 7))
    assert g.amounts == {}
    assert g.total == Decimal("0")


def test_communion_without_attendance_is_rejected():
    with pytest.raises(ValidationError, match="communion without attendance"):
        AttendanceRecord(member_id="m1", service_id="s1", attended=False, took_communion=True)


def test_attendance_flags_default_false():
    rec = AttendanceRecord(member_id="m1", service_id="s1", attended=None, took_communion=None)
    assert rec.attended is False
    assert rec.took_communion is False


def test_uuid_ids_become_strings():
    sid = UUID("12345678-1234-5678-1234-567812345678")
    s = Service(id=sid, service_date="2024-03-31", service_type="festival")
    assert s.id == str(sid)
    assert s.service_date == date(2024, 3, 31)


def test_member_normalizes_enums_and_names():
    m = Member(id=1, first_name="  Anna ", last_name="Berg", sex="Female", household_type=" FAMILY ", participation="")
    assert m.id == "1"
    assert m.sex == "female"
    assert m.household_type == "family"
    assert m.participation is None
    assert m.full_name == "Anna Berg"


def test_invalid_service_date_fails_validation():
    with pytest.raises(ValidationError):
        Service(id="s1", service_date="2024-02-30", service_type="divine_service")
