# parish_analytics/reports/households.py
from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence

from parish_analytics.models import Household, Member


def household_display_name(name: Optional[str], members: Sequence[Member]) -> Optional[str]:
    """
    Explicit household name, else one synthesized from its members:
      1 member   -> "First Last"
      2 members  -> "First & First2 Last2"
      3+ members -> "First Last (+N)"   (N = the other members)
    None for an unnamed household with no members.
    """
    if name:
        return name
    if not members:
        return None
    first = members[0]
    if len(members) == 1:
        return f"{first.first_name} {first.last_name}"
    if len(members) == 2:
        second = members[1]
        return f"{first.first_name} & {second.first_name} {second.last_name}"
    return f"{first.first_name} {first.last_name} (+{len(members) - 1})"


def _birth_order_key(m: Member):
    # members without a date of birth sort after everyone with one
    return (m.date_of_birth is None, m.date_of_birth or date.max)


def find_head_of_household(members: Sequence[Member]) -> Optional[Member]:
    """
    Males take priority regardless of age: the earliest-born male is head.
    With no male, the earliest-born member overall. Ties keep input order.
    """
    if not members:
        return None
    males = [m for m in members if m.sex == "male"]
    pool = males or list(members)
    return min(pool, key=_birth_order_key)


def heads_by_envelope(members: Iterable[Member]) -> Dict[int, Member]:
    """Head of household for every envelope number present in `members`."""
    by_env: Dict[int, List[Member]] = defaultdict(list)
    for m in members:
        if m.envelope_number is not None:
            by_env[m.envelope_number].append(m)
    return {env: find_head_of_household(group) for env, group in by_env.items()}


def household_summaries(households: Iterable[Household]) -> List[dict]:
    """
    Households that give by envelope, with display names, sorted by
    envelope number.
    """
    out: List[dict] = []
    for h in households:
        envelope = next((m.envelope_number for m in h.members if m.envelope_number is not None), None)
        if envelope is None:
            continue
        out.append({
            "id": h.id,
            "name": household_display_name(h.name, h.members),
            "type": h.type,
            "envelopeNumber": envelope,
            "memberCount": len(h.members),
        })
    out.sort(key=lambda h: h["envelopeNumber"])
    return out
