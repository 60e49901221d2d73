from __future__ import annotations
from typing import Any, Iterable, Mapping, Sequence

from fastapi import Response

from parish_analytics.reports.formatter import build_csv
from parish_analytics.utils.common import today_local


def csv_response(
    report: str,
    headers: Sequence[str],
    rows: Iterable[Mapping[str, Any]],
    *,
    stamp: str | None = None,
) -> Response:
    """
    Download response for a CSV report; the filename is
    "<report>-<stamp>.csv" with today's report-local ISO date as the default stamp.
    """
    content = build_csv(headers, rows)
    filename = f"{report}-{stamp or today_local().isoformat()}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
