# parish_analytics/reports/comparator.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from parish_analytics.reports.aggregator import ServiceAttendance
from parish_analytics.reports.constants import DIVINE_SERVICE
from parish_analytics.utils.common import safe_div


@dataclass
class CohortSide:
    total_attendance: int
    service_count: int

    @property
    def average_attendance(self) -> float:
        return safe_div(self.total_attendance, self.service_count)


@dataclass
class Comparison:
    left: CohortSide
    right: CohortSide


def divine_vs_other(per_service: Sequence[ServiceAttendance]) -> Comparison:
    """Divine Service against every other service type."""
    divine = [s for s in per_service if s.service_type == DIVINE_SERVICE]
    other = [s for s in per_service if s.service_type != DIVINE_SERVICE]
    return Comparison(
        CohortSide(sum(s.total_attendance for s in divine), len(divine)),
        CohortSide(sum(s.total_attendance for s in other), len(other)),
    )


def members_vs_guests(per_service: Sequence[ServiceAttendance]) -> Comparison:
    """Both sides are averaged over every service in range."""
    n = len(per_service)
    return Comparison(
        CohortSide(sum(s.member_count for s in per_service), n),
        CohortSide(sum(s.guest_count for s in per_service), n),
    )
