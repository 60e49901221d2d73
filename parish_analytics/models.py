# parish_analytics/models.py
"""
Typed records the reports work on.

Rows coming out of the database (or an uploaded CSV) are validated into
these models once, at the edge. Everything downstream can rely on the
shapes and invariants checked here.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from parish_analytics.reports.constants import CATEGORY_COLUMNS, FLAT_AMOUNT_CATEGORY
from parish_analytics.utils.common import parse_ymd, to_decimal


def _as_str(v: Any) -> Any:
    # UUID columns come back as uuid.UUID; ids are compared as strings
    if v is None or isinstance(v, str):
        return v
    return str(v)


def _as_date(v: Any) -> Optional[date]:
    return parse_ymd(v)


def _lower(v: Any) -> Any:
    if isinstance(v, str):
        v = v.strip().lower()
        return v or None
    return v


@dataclass
class ReportContext:
    """Per-request state handed to every report builder."""
    church_id: str
    today: date
    user_id: Optional[str] = None
    is_admin: bool = False


class Service(BaseModel):
    id: str
    service_date: date
    service_type: str
    service_time: Optional[str] = None

    @field_validator("id", "service_time", mode="before")
    @classmethod
    def _strings(cls, v: Any) -> Any:
        return _as_str(v)

    @field_validator("service_date", mode="before")
    @classmethod
    def _dates(cls, v: Any) -> Optional[date]:
        return _as_date(v)


class Member(BaseModel):
    id: str
    first_name: str = ""
    last_name: str = ""
    sex: Optional[str] = None
    date_of_birth: Optional[date] = None
    household_id: Optional[str] = None
    household_type: Optional[str] = None
    envelope_number: Optional[int] = None
    participation: Optional[str] = None
    membership_code: Optional[str] = None
    baptism_date: Optional[date] = None
    confirmation_date: Optional[date] = None
    deceased_date: Optional[date] = None
    date_removed: Optional[date] = None

    @field_validator("id", "household_id", mode="before")
    @classmethod
    def _strings(cls, v: Any) -> Any:
        return _as_str(v)

    @field_validator(
        "date_of_birth", "baptism_date", "confirmation_date", "deceased_date", "date_removed",
        mode="before",
    )
    @classmethod
    def _dates(cls, v: Any) -> Optional[date]:
        return _as_date(v)

    @field_validator("sex", "household_type", "participation", mode="before")
    @classmethod
    def _enums(cls, v: Any) -> Any:
        return _lower(v)

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def _names(cls, v: Any) -> str:
        return (v or "").strip()

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Household(BaseModel):
    id: str
    name: Optional[str] = None
    type: Optional[str] = None
    members: List[Member] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def _strings(cls, v: Any) -> Any:
        return _as_str(v)

    @field_validator("type", mode="before")
    @classmethod
    def _type(cls, v: Any) -> Any:
        return _lower(v)


class AttendanceRecord(BaseModel):
    """
    One attendance row joined with the attendee it resolved to.
    `member` is None when the row's member id matched no member record.
    """
    member_id: str
    service_id: str
    attended: bool = False
    took_communion: bool = False
    member: Optional[Member] = None

    @field_validator("member_id", "service_id", mode="before")
    @classmethod
    def _strings(cls, v: Any) -> Any:
        return _as_str(v)

    @field_validator("attended", "took_communion", mode="before")
    @classmethod
    def _flags(cls, v: Any) -> bool:
        return bool(v)

    @model_validator(mode="after")
    def _communion_requires_attendance(self) -> "AttendanceRecord":
        if self.took_communion and not self.attended:
            raise ValueError(
                f"attendance for member {self.member_id} at service {self.service_id} "
                "records communion without attendance"
            )
        return self


def giving_amounts_from_row(row: Mapping[str, Any]) -> Dict[str, Decimal]:
    """
    Adapt the three giving row shapes to category -> amount:
      - itemized: row["items"] = [{"category": name, "amount": ...}, ...]
      - column-per-category: current_amount, mission_amount, ...
      - flat: a single `amount`, booked to the general (Current) fund
    Null and blank amounts are skipped.
    """
    amounts: Dict[str, Decimal] = {}

    def add(category: str, raw: Any) -> None:
        if raw is None or raw == "":
            return
        amounts[category] = amounts.get(category, Decimal("0")) + to_decimal(raw)

    for item in row.get("items") or []:
        add(item.get("category") or item.get("category_name"), item.get("amount"))
    for column, category in CATEGORY_COLUMNS.items():
        add(category, row.get(column))
    add(FLAT_AMOUNT_CATEGORY, row.get("amount"))
    return amounts


class GivingRecord(BaseModel):
    id: Optional[str] = None
    member_id: str
    date_given: date
    service_id: Optional[str] = None
    notes: Optional[str] = None
    amounts: Dict[str, Decimal] = Field(default_factory=dict)
    member: Optional[Member] = None

    @field_validator("id", "member_id", "service_id", mode="before")
    @classmethod
    def _strings(cls, v: Any) -> Any:
        return _as_str(v)

    @field_validator("date_given", mode="before")
    @classmethod
    def _dates(cls, v: Any) -> Optional[date]:
        return _as_date(v)

    @model_validator(mode="before")
    @classmethod
    def _adapt_amount_columns(cls, data: Any) -> Any:
        if isinstance(data, Mapping) and "amounts" not in data:
            data = dict(data)
            data["amounts"] = giving_amounts_from_row(data)
        return data

    @property
    def total(self) -> Decimal:
        return sum(self.amounts.values(), Decimal("0"))
