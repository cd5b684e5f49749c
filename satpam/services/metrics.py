from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from satpam.services.projections import AssignmentStatus, RosterEntry


@dataclass(frozen=True, slots=True)
class CompletionSummary:
    total: int
    completed_both: int
    completion_rate_percent: int


@dataclass(frozen=True, slots=True)
class RosterSummary:
    total_personnel: int
    total: int
    completed_both: int
    completion_rate_percent: int
    area_checked: int
    apar_checked: int


def completion_rate_percent(completed: int, total: int) -> int:
    if total <= 0:
        return 0
    # Round half up, matching Math.round on the dashboards.
    return (completed * 200 + total) // (total * 2)


def summarize(statuses: Iterable[AssignmentStatus]) -> CompletionSummary:
    items = list(statuses)
    total = len(items)
    completed_both = sum(1 for item in items if item.is_area_checked and item.is_apar_checked)
    return CompletionSummary(
        total=total,
        completed_both=completed_both,
        completion_rate_percent=completion_rate_percent(completed_both, total),
    )


def summarize_roster(entries: Iterable[RosterEntry]) -> RosterSummary:
    items = list(entries)
    statuses = [status for entry in items for status in entry.statuses]
    base = summarize(statuses)
    return RosterSummary(
        total_personnel=len(items),
        total=base.total,
        completed_both=base.completed_both,
        completion_rate_percent=base.completion_rate_percent,
        area_checked=sum(1 for item in statuses if item.is_area_checked),
        apar_checked=sum(1 for item in statuses if item.is_apar_checked),
    )
