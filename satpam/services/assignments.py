from __future__ import annotations

from collections import defaultdict
from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from satpam.errors import ApiError
from satpam.models import GuardProfile, Location, ScheduleAssignment
from satpam.services.storage import storage_query


def normalize_location_ids(raw_location_ids: list[str] | None) -> list[str]:
    normalized: list[str] = []
    seen: set[str] = set()
    for raw_location_id in raw_location_ids or []:
        location_id = str(raw_location_id).strip()
        if not location_id or location_id in seen:
            continue
        seen.add(location_id)
        normalized.append(location_id)
    return normalized


def list_schedule_assignments(
    db: Session,
    *,
    day_id: date,
    guard_id: str | None = None,
) -> list[ScheduleAssignment]:
    stmt = (
        select(ScheduleAssignment)
        .options(selectinload(ScheduleAssignment.location))
        .where(ScheduleAssignment.schedule_date == day_id)
        .order_by(ScheduleAssignment.guard_id.asc(), ScheduleAssignment.id.asc())
    )
    if guard_id is not None:
        stmt = stmt.where(ScheduleAssignment.guard_id == guard_id)
    with storage_query("schedule_assignments"):
        return list(db.scalars(stmt).all())


def get_assignments(db: Session, *, guard_id: str, day_id: date) -> list[ScheduleAssignment]:
    return list_schedule_assignments(db, day_id=day_id, guard_id=guard_id)


def get_assignments_for_day(db: Session, *, day_id: date) -> list[ScheduleAssignment]:
    return list_schedule_assignments(db, day_id=day_id)


def group_assignments_by_guard(
    assignments: list[ScheduleAssignment],
) -> dict[str, list[ScheduleAssignment]]:
    grouped: dict[str, list[ScheduleAssignment]] = defaultdict(list)
    for assignment in assignments:
        grouped[assignment.guard_id].append(assignment)
    return dict(grouped)


def create_schedule_assignments(
    db: Session,
    *,
    guard_id: str,
    day_id: date,
    location_ids: list[str],
    created_by: str,
) -> list[ScheduleAssignment]:
    normalized_ids = normalize_location_ids(location_ids)
    if not normalized_ids:
        raise ApiError(
            status_code=422,
            code="SCHEDULE_LOCATIONS_REQUIRED",
            message="At least one location is required.",
        )

    with storage_query("guard_profiles"):
        guard = db.get(GuardProfile, guard_id)
    if guard is None:
        raise ApiError(status_code=404, code="GUARD_NOT_FOUND", message="Guard profile not found.")

    with storage_query("locations"):
        known_ids = set(db.scalars(select(Location.id).where(Location.id.in_(normalized_ids))).all())
    missing_ids = [item for item in normalized_ids if item not in known_ids]
    if missing_ids:
        raise ApiError(
            status_code=404,
            code="LOCATION_NOT_FOUND",
            message=f"Unknown location ids: {', '.join(missing_ids)}",
        )

    with storage_query("schedule_assignments"):
        existing_ids = set(
            db.scalars(
                select(ScheduleAssignment.location_id).where(
                    ScheduleAssignment.guard_id == guard_id,
                    ScheduleAssignment.schedule_date == day_id,
                    ScheduleAssignment.location_id.in_(normalized_ids),
                )
            ).all()
        )
    if existing_ids:
        raise ApiError(
            status_code=409,
            code="SCHEDULE_ASSIGNMENT_EXISTS",
            message=f"Guard is already scheduled for: {', '.join(sorted(existing_ids))}",
        )

    created = [
        ScheduleAssignment(
            guard_id=guard_id,
            location_id=location_id,
            schedule_date=day_id,
            created_by=created_by,
        )
        for location_id in normalized_ids
    ]
    db.add_all(created)
    try:
        db.commit()
    except IntegrityError as exc:
        # Lost a race against a concurrent insert of the same triple.
        db.rollback()
        raise ApiError(
            status_code=409,
            code="SCHEDULE_ASSIGNMENT_EXISTS",
            message="Guard is already scheduled for one of these locations.",
        ) from exc
    for item in created:
        db.refresh(item)
    return created


def delete_schedule_assignment(db: Session, assignment_id: int) -> ScheduleAssignment:
    with storage_query("schedule_assignments"):
        assignment = db.get(ScheduleAssignment, assignment_id)
    if assignment is None:
        raise ApiError(
            status_code=404,
            code="SCHEDULE_ASSIGNMENT_NOT_FOUND",
            message="Schedule assignment not found.",
        )
    db.delete(assignment)
    db.commit()
    return assignment
