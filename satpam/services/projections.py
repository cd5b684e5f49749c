from __future__ import annotations

import enum
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy.orm import Session

from satpam.models import CheckType, Location, ScheduleAssignment
from satpam.services.assignments import get_assignments, get_assignments_for_day, group_assignments_by_guard
from satpam.services.directory import find_guard_profiles, find_locations, guard_display_name
from satpam.services.inspections import EventKey, EventScope, InspectionEvent, get_events
from satpam.services.metrics import CompletionSummary, RosterSummary, summarize, summarize_roster
from satpam.services.operational_day import (
    DEFAULT_CUTOVER_HOUR,
    OperationalDayWindow,
    resolve_operational_day,
    window_for_day,
)

logger = logging.getLogger("satpam.projections")

ALL_LOCATIONS_LABEL = "all locations"
MIXED_LOCATIONS_LABEL = "mixed locations"
UNASSIGNED_LABEL = "unassigned"


class LocationScope(str, enum.Enum):
    ALL = "ALL"
    ZONE = "ZONE"
    MIXED = "MIXED"
    UNASSIGNED = "UNASSIGNED"


@dataclass(frozen=True, slots=True)
class LocationClassification:
    scope: LocationScope
    label: str


@dataclass(frozen=True, slots=True)
class AssignmentStatus:
    assignment: ScheduleAssignment
    is_area_checked: bool
    is_apar_checked: bool
    area_checked_at: datetime | None = None
    apar_checked_at: datetime | None = None
    evidence_url: str | None = None

    @property
    def location(self) -> Location | None:
        return self.assignment.location

    @property
    def location_name(self) -> str:
        location = self.assignment.location
        return location.name if location is not None else self.assignment.location_id


@dataclass(frozen=True, slots=True)
class GuardBoard:
    guard_id: str
    window: OperationalDayWindow
    is_scheduled: bool
    statuses: list[AssignmentStatus] = field(default_factory=list)

    @property
    def day_id(self) -> date:
        return self.window.day_id

    @property
    def summary(self) -> CompletionSummary:
        return summarize(self.statuses)


@dataclass(frozen=True, slots=True)
class RosterEntry:
    guard_id: str
    guard_name: str
    location_classification: LocationClassification
    statuses: list[AssignmentStatus] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class Roster:
    window: OperationalDayWindow
    entries: list[RosterEntry] = field(default_factory=list)

    @property
    def day_id(self) -> date:
        return self.window.day_id

    @property
    def summary(self) -> RosterSummary:
        return summarize_roster(self.entries)


def build_zone_partition(locations: Iterable[Location]) -> dict[str, frozenset[str]]:
    partition: dict[str, set[str]] = {}
    for location in locations:
        zone = (location.zone or "").strip()
        if not zone:
            continue
        partition.setdefault(zone, set()).add(location.id)
    return {zone: frozenset(ids) for zone, ids in partition.items()}


def classify_location_set(
    assigned_location_ids: Iterable[str],
    *,
    all_location_ids: Iterable[str],
    zone_partition: Mapping[str, frozenset[str]],
) -> LocationClassification:
    """Label a guard's assigned set for the roster header.

    The whole catalogue wins over a single zone; zones are tried in name order.
    The label carries no authorization meaning.
    """
    assigned = frozenset(assigned_location_ids)
    if not assigned:
        return LocationClassification(LocationScope.UNASSIGNED, UNASSIGNED_LABEL)

    catalogue_ids = frozenset(all_location_ids)
    if catalogue_ids and assigned == catalogue_ids:
        return LocationClassification(LocationScope.ALL, ALL_LOCATIONS_LABEL)

    for zone in sorted(zone_partition):
        zone_ids = zone_partition[zone]
        if zone_ids and assigned == zone_ids:
            return LocationClassification(LocationScope.ZONE, zone)

    return LocationClassification(LocationScope.MIXED, MIXED_LOCATIONS_LABEL)


def build_assignment_status(
    assignment: ScheduleAssignment,
    events: Mapping[EventKey, InspectionEvent],
) -> AssignmentStatus:
    area_event = events.get((assignment.guard_id, assignment.location_id, CheckType.AREA))
    apar_event = events.get((assignment.guard_id, assignment.location_id, CheckType.APAR))
    evidence_url = None
    if area_event is not None and area_event.evidence_url:
        evidence_url = area_event.evidence_url
    elif apar_event is not None and apar_event.evidence_url:
        evidence_url = apar_event.evidence_url
    return AssignmentStatus(
        assignment=assignment,
        is_area_checked=area_event is not None,
        is_apar_checked=apar_event is not None,
        area_checked_at=area_event.ts_utc if area_event is not None else None,
        apar_checked_at=apar_event.ts_utc if apar_event is not None else None,
        evidence_url=evidence_url,
    )


def _status_sort_key(status: AssignmentStatus) -> tuple[str, str]:
    return status.location_name.casefold(), status.assignment.location_id


def _build_statuses(
    assignments: Iterable[ScheduleAssignment],
    events: Mapping[EventKey, InspectionEvent],
) -> list[AssignmentStatus]:
    statuses = [build_assignment_status(assignment, events) for assignment in assignments]
    statuses.sort(key=_status_sort_key)
    return statuses


def filter_statuses_by_location_name(
    statuses: Iterable[AssignmentStatus],
    query: str | None,
) -> list[AssignmentStatus]:
    needle = (query or "").strip().casefold()
    if not needle:
        return list(statuses)
    return [status for status in statuses if needle in status.location_name.casefold()]


def project_guard_board(
    db: Session,
    *,
    guard_id: str,
    reference_ts: datetime,
    cutover_hour: int = DEFAULT_CUTOVER_HOUR,
    utc_offset_minutes: int,
) -> GuardBoard:
    window = resolve_operational_day(
        reference_ts,
        cutover_hour=cutover_hour,
        utc_offset_minutes=utc_offset_minutes,
    )
    assignments = get_assignments(db, guard_id=guard_id, day_id=window.day_id)
    if not assignments:
        logger.info(
            "guard_board_projected",
            extra={"guard_id": guard_id, "day_id": window.day_id.isoformat(), "is_scheduled": False},
        )
        return GuardBoard(guard_id=guard_id, window=window, is_scheduled=False, statuses=[])

    events = get_events(
        db,
        scope=EventScope.for_guard(guard_id, location_ids=(item.location_id for item in assignments)),
        window=window,
    )
    statuses = _build_statuses(assignments, events)
    logger.info(
        "guard_board_projected",
        extra={
            "guard_id": guard_id,
            "day_id": window.day_id.isoformat(),
            "is_scheduled": True,
            "assignment_count": len(statuses),
            "event_count": len(events),
        },
    )
    return GuardBoard(guard_id=guard_id, window=window, is_scheduled=True, statuses=statuses)


def project_roster(
    db: Session,
    *,
    day_id: date,
    cutover_hour: int = DEFAULT_CUTOVER_HOUR,
    utc_offset_minutes: int,
) -> Roster:
    window = window_for_day(day_id, cutover_hour=cutover_hour, utc_offset_minutes=utc_offset_minutes)
    assignments = get_assignments_for_day(db, day_id=day_id)
    if not assignments:
        logger.info("roster_projected", extra={"day_id": day_id.isoformat(), "guard_count": 0})
        return Roster(window=window, entries=[])

    catalogue = find_locations(db)
    zone_partition = build_zone_partition(catalogue)
    all_location_ids = [location.id for location in catalogue]

    grouped = group_assignments_by_guard(assignments)
    profiles = find_guard_profiles(db, grouped.keys())
    events = get_events(db, scope=EventScope.for_assignments(assignments), window=window)

    entries: list[RosterEntry] = []
    for guard_id, guard_assignments in grouped.items():
        entries.append(
            RosterEntry(
                guard_id=guard_id,
                guard_name=guard_display_name(profiles.get(guard_id)),
                location_classification=classify_location_set(
                    (item.location_id for item in guard_assignments),
                    all_location_ids=all_location_ids,
                    zone_partition=zone_partition,
                ),
                statuses=_build_statuses(guard_assignments, events),
            )
        )
    entries.sort(key=lambda item: (item.guard_name.casefold(), item.guard_id))

    logger.info(
        "roster_projected",
        extra={
            "day_id": day_id.isoformat(),
            "guard_count": len(entries),
            "assignment_count": len(assignments),
            "event_count": len(events),
        },
    )
    return Roster(window=window, entries=entries)
