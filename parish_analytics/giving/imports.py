# parish_analytics/giving/imports.py
"""
Bulk giving upload: a CSV exported from the offering count sheet, one gift
per row, turned into canonical giving records.

Headers are matched case-insensitively and ignore spaces/underscores, so
"Date Given", "date_given" and "DATEGIVEN" are the same column. Amounts can
come as a single `amount` column (general fund), one column per category,
or the legacy "General Fund" / "District Synod" columns.

Bad rows don't stop the upload: each one is reported as "Row N: reason"
(N counts data rows from 1) and skipped.
"""
from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd

from parish_analytics.models import GivingRecord, Member
from parish_analytics.reports.constants import FLAT_AMOUNT_CATEGORY
from parish_analytics.reports.households import heads_by_envelope
from parish_analytics.utils.common import parse_ymd, to_decimal

log = logging.getLogger(__name__)

DATE_HEADERS = ("dategiven", "date")
ENVELOPE_HEADERS = ("envelopenumber", "envelope")
MEMBER_ID_HEADERS = ("memberid",)
NOTES_HEADERS = ("notes", "note")
SERVICE_ID_HEADERS = ("serviceid",)

LEGACY_AMOUNT_HEADERS = {
    "generalfund": "Current",
    "districtsynod": "Mission",
}


class ImportFileError(ValueError):
    """The upload as a whole can't be read (empty, not CSV, missing columns)."""


@dataclass
class ImportResult:
    records: List[GivingRecord] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.errors)


def normalize_header(h: str) -> str:
    return re.sub(r"[\s_\-]+", "", str(h or "")).lower()


def _find(columns: Dict[str, str], names: Iterable[str]) -> Optional[str]:
    for n in names:
        if n in columns:
            return columns[n]
    return None


def amount_columns(columns: Dict[str, str], categories: Sequence[str]) -> Dict[str, str]:
    """
    Upload column -> giving category. Category columns match by name with
    or without an "amount" suffix ("Mission", "mission_amount").
    """
    out: Dict[str, str] = {}
    if "amount" in columns:
        out[columns["amount"]] = FLAT_AMOUNT_CATEGORY
    for category in categories:
        key = normalize_header(category)
        for candidate in (key, f"{key}amount"):
            if candidate in columns:
                out[columns[candidate]] = category
    for legacy, category in LEGACY_AMOUNT_HEADERS.items():
        for candidate in (legacy, f"{legacy}amount"):
            if candidate in columns:
                out[columns[candidate]] = category
    return out


def read_upload(content: bytes) -> pd.DataFrame:
    if not content or not content.strip():
        raise ImportFileError("File is empty")
    try:
        # every cell as text; "" (not NaN) for blanks
        df = pd.read_csv(io.BytesIO(content), dtype=str, keep_default_na=False, encoding="utf-8-sig")
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise ImportFileError(f"Could not read CSV: {e}") from None
    if df.empty:
        raise ImportFileError("File has no data rows")
    return df


def parse_giving_upload(
    content: bytes,
    categories: Sequence[str],
    members: Sequence[Member],
) -> ImportResult:
    """
    Parse an uploaded giving CSV against the church's active categories and
    members. Envelope numbers are booked to the head of household for that
    envelope; a member id is used as given.
    """
    df = read_upload(content)
    columns = {normalize_header(c): c for c in df.columns}

    date_col = _find(columns, DATE_HEADERS)
    if date_col is None:
        raise ImportFileError("Missing required column: Date Given")
    envelope_col = _find(columns, ENVELOPE_HEADERS)
    member_col = _find(columns, MEMBER_ID_HEADERS)
    if envelope_col is None and member_col is None:
        raise ImportFileError("Missing required column: Envelope Number or Member ID")
    notes_col = _find(columns, NOTES_HEADERS)
    service_col = _find(columns, SERVICE_ID_HEADERS)
    amounts_by_col = amount_columns(columns, categories)
    if not amounts_by_col:
        raise ImportFileError("No amount columns found")

    heads = heads_by_envelope(members)
    member_ids = {m.id for m in members}

    result = ImportResult()
    for i, row in enumerate(df.to_dict(orient="records"), start=1):
        error = None
        member_id = None

        envelope_raw = row.get(envelope_col, "").strip() if envelope_col else ""
        member_raw = row.get(member_col, "").strip() if member_col else ""
        date_raw = row.get(date_col, "").strip()

        if not date_raw:
            error = "Missing required field (Date Given)"
        elif envelope_raw:
            try:
                envelope = int(envelope_raw)
            except ValueError:
                error = "Invalid envelope number"
            else:
                head = heads.get(envelope)
                if head is None:
                    error = f"No members found for envelope number {envelope}"
                else:
                    member_id = head.id
        elif member_raw:
            if member_raw not in member_ids:
                error = f"Member {member_raw} not found"
            else:
                member_id = member_raw
        else:
            error = "Missing envelope number or member id"

        date_given = None
        if error is None:
            try:
                date_given = parse_ymd(date_raw)
            except ValueError:
                error = "Invalid date format (use YYYY-MM-DD)"

        amounts: Dict[str, Decimal] = {}
        if error is None:
            for col, category in amounts_by_col.items():
                raw = (row.get(col) or "").strip()
                if not raw:
                    continue
                try:
                    value = to_decimal(raw)
                except ValueError:
                    value = None
                if value is None or not value.is_finite() or value < 0:
                    error = f"Invalid {category.lower()} amount (must be a non-negative number)"
                    break
                if value:
                    amounts[category] = amounts.get(category, Decimal("0")) + value
            if error is None and not amounts:
                error = "At least one amount is required"

        if error is not None:
            result.errors.append(f"Row {i}: {error}")
            continue

        notes = (row.get(notes_col) or "").strip() if notes_col else ""
        service_id = (row.get(service_col) or "").strip() if service_col else ""
        result.records.append(GivingRecord(
            member_id=member_id,
            date_given=date_given,
            service_id=service_id or None,
            notes=notes or None,
            amounts=amounts,
        ))

    log.info("[import] parsed rows=%s ok=%s failed=%s", len(df), len(result.records), result.failed)
    return result
