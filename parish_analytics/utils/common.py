from __future__ import annotations
from calendar import month_name
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Optional, Tuple, Union
from zoneinfo import ZoneInfo

from parish_analytics.config import report_tz

Number = Union[int, float, Decimal]

CENTS = Decimal("0.01")

# ─────────────────────────────
# Time & Date helpers
# ─────────────────────────────
def now_local(tz: Optional[ZoneInfo] = None) -> datetime:
    return datetime.now(tz=tz or report_tz())

def today_local(tz: Optional[ZoneInfo] = None) -> date:
    return now_local(tz).date()

def parse_ymd(raw: Any) -> Optional[date]:
    """
    Calendar-date parsing for YYYY-MM-DD values.

    The string is split on "-" and rebuilt as a plain date so no timezone
    conversion can shift it by a day. date/datetime values pass through.
    Raises ValueError for anything that is not a valid calendar date.
    """
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    s = str(raw).strip()
    # a trailing time part ("2024-01-07T00:00:00Z", "2024-01-07 09:30") is ignored
    if len(s) > 10 and s[10] not in ("T", " "):
        raise ValueError(f"Invalid date: {raw}")
    parts = s[:10].split("-")
    if len(parts) != 3 or len(parts[0]) != 4 or not all(p.isdigit() for p in parts):
        raise ValueError(f"Invalid date: {raw}")
    try:
        y, m, d = (int(p) for p in parts)
        return date(y, m, d)
    except ValueError:
        raise ValueError(f"Invalid date: {raw}") from None

def year_bounds(d: date) -> Tuple[date, date]:
    return date(d.year, 1, 1), date(d.year, 12, 31)

def month_key(d: date) -> Tuple[int, int]:
    return d.year, d.month

def month_label(year: int, month: int, multi_year: bool) -> str:
    """"January", or "January 2024" when a report spans several years."""
    name = month_name[month]
    return f"{name} {year}" if multi_year else name

def age_on(dob: Optional[date], on: date) -> Optional[int]:
    if dob is None:
        return None
    age = on.year - dob.year
    if (on.month, on.day) < (dob.month, dob.day):
        age -= 1
    return age

# ─────────────────────────────
# Math / display helpers
# ─────────────────────────────
def to_decimal(raw: Any) -> Decimal:
    """Amounts from numeric columns, CSV cells or floats; blank/None is 0."""
    if raw is None:
        return Decimal("0")
    if isinstance(raw, Decimal):
        return raw
    if isinstance(raw, float):
        return Decimal(repr(raw))
    s = str(raw).strip().replace("$", "").replace(",", "")
    if not s:
        return Decimal("0")
    try:
        return Decimal(s)
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {raw}") from None

def round_half_up(value: Number, precision: int = 2) -> float:
    q = Decimal(1).scaleb(-precision)
    return float(to_decimal(value).quantize(q, rounding=ROUND_HALF_UP))

def money(value: Number) -> float:
    return round_half_up(value, 2)

def money_str(value: Number) -> str:
    """Two-decimal text for CSV cells."""
    return str(to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP))

def safe_div(numer: Number, denom: Number) -> float:
    if not denom:
        return 0.0
    return float(numer) / float(denom)

def safe_percent(numer: float, denom: float, precision: int = 2) -> float:
    if not denom:
        return 0.0
    return round_half_up((numer / denom) * 100.0, precision)
