from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from satpam.errors import ApiError
from satpam.models import AparCheck, AparCondition, AreaCheckReport, CheckType, ScheduleAssignment
from satpam.services.directory import find_location_by_qr, get_location
from satpam.services.operational_day import OperationalDayWindow, normalize_utc
from satpam.services.storage import storage_query

logger = logging.getLogger("satpam.inspections")

EventKey = tuple[str, str, CheckType]


@dataclass(frozen=True, slots=True)
class InspectionEvent:
    source_id: int
    guard_id: str
    location_id: str
    check_type: CheckType
    ts_utc: datetime
    evidence_url: str | None = None


@dataclass(frozen=True, slots=True)
class EventScope:
    """Narrows an event query. ``None`` means unrestricted on that axis."""

    guard_id: str | None = None
    guard_ids: frozenset[str] | None = None
    location_ids: frozenset[str] | None = None

    @classmethod
    def for_guard(cls, guard_id: str, *, location_ids: Iterable[str] | None = None) -> EventScope:
        return cls(
            guard_id=guard_id,
            location_ids=frozenset(location_ids) if location_ids is not None else None,
        )

    @classmethod
    def for_assignments(cls, assignments: Iterable[ScheduleAssignment]) -> EventScope:
        items = list(assignments)
        return cls(
            guard_ids=frozenset(item.guard_id for item in items),
            location_ids=frozenset(item.location_id for item in items),
        )

    def is_empty(self) -> bool:
        return (self.guard_ids is not None and not self.guard_ids) or (
            self.location_ids is not None and not self.location_ids
        )


def coerce_event_ts(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return normalize_utc(value)
    if isinstance(value, str) and value.strip():
        try:
            return normalize_utc(datetime.fromisoformat(value.strip()))
        except ValueError:
            return None
    return None


def _event_from_row(row: AreaCheckReport | AparCheck, check_type: CheckType) -> InspectionEvent | None:
    ts_utc = coerce_event_ts(row.ts_utc)
    if ts_utc is None:
        logger.warning(
            "inspection_event_timestamp_invalid",
            extra={
                "check_type": check_type.value,
                "source_id": row.id,
                "guard_id": row.guard_id,
                "location_id": row.location_id,
                "raw_ts": row.ts_utc,
            },
        )
        return None
    return InspectionEvent(
        source_id=row.id,
        guard_id=row.guard_id,
        location_id=row.location_id,
        check_type=check_type,
        ts_utc=ts_utc,
        evidence_url=row.photo_url or None,
    )


def _find_events(
    db: Session,
    *,
    model: type[AreaCheckReport] | type[AparCheck],
    check_type: CheckType,
    scope: EventScope,
    window: OperationalDayWindow,
) -> list[InspectionEvent]:
    if scope.is_empty():
        return []

    stmt = (
        select(model)
        .where(
            model.ts_utc >= window.start_utc,
            model.ts_utc < window.end_utc,
        )
        .order_by(model.ts_utc.asc(), model.id.asc())
    )
    if scope.guard_id is not None:
        stmt = stmt.where(model.guard_id == scope.guard_id)
    if scope.guard_ids is not None:
        stmt = stmt.where(model.guard_id.in_(sorted(scope.guard_ids)))
    if scope.location_ids is not None:
        stmt = stmt.where(model.location_id.in_(sorted(scope.location_ids)))

    with storage_query(model.__tablename__):
        rows = list(db.scalars(stmt).all())

    events: list[InspectionEvent] = []
    for row in rows:
        event = _event_from_row(row, check_type)
        if event is not None:
            events.append(event)
    return events


def find_area_events(db: Session, *, scope: EventScope, window: OperationalDayWindow) -> list[InspectionEvent]:
    return _find_events(db, model=AreaCheckReport, check_type=CheckType.AREA, scope=scope, window=window)


def find_apar_events(db: Session, *, scope: EventScope, window: OperationalDayWindow) -> list[InspectionEvent]:
    return _find_events(db, model=AparCheck, check_type=CheckType.APAR, scope=scope, window=window)


def index_earliest_events(
    events: Iterable[InspectionEvent],
    *,
    window: OperationalDayWindow,
) -> dict[EventKey, InspectionEvent]:
    indexed: dict[EventKey, InspectionEvent] = {}
    for event in events:
        if not window.contains(event.ts_utc):
            continue
        key = (event.guard_id, event.location_id, event.check_type)
        current = indexed.get(key)
        if current is None or (event.ts_utc, event.source_id) < (current.ts_utc, current.source_id):
            indexed[key] = event
    return indexed


def get_events(
    db: Session,
    *,
    scope: EventScope,
    window: OperationalDayWindow,
) -> dict[EventKey, InspectionEvent]:
    # Area and APAR come from separate workflows and tables; never merged before keying.
    area_events = find_area_events(db, scope=scope, window=window)
    apar_events = find_apar_events(db, scope=scope, window=window)
    return index_earliest_events([*area_events, *apar_events], window=window)


def record_area_check(
    db: Session,
    *,
    guard_id: str,
    qr_payload: str,
    photo_url: str | None = None,
    note: str | None = None,
    now_utc: datetime | None = None,
) -> AreaCheckReport:
    location = find_location_by_qr(db, qr_payload=qr_payload)
    if location is None:
        raise ApiError(
            status_code=404,
            code="LOCATION_QR_NOT_FOUND",
            message="No active location matches this QR code.",
        )

    report = AreaCheckReport(
        guard_id=guard_id,
        location_id=location.id,
        ts_utc=normalize_utc(now_utc) if now_utc else datetime.now(timezone.utc),
        photo_url=(photo_url or "").strip() or None,
        note=(note or "").strip() or None,
    )
    report.location = location
    db.add(report)
    db.commit()
    db.refresh(report)
    logger.info(
        "inspection_event_recorded",
        extra={
            "check_type": CheckType.AREA.value,
            "guard_id": guard_id,
            "location_id": location.id,
            "source_id": report.id,
        },
    )
    return report


def record_apar_check(
    db: Session,
    *,
    guard_id: str,
    location_id: str,
    apar_code: str,
    condition: AparCondition,
    photo_url: str | None = None,
    now_utc: datetime | None = None,
) -> AparCheck:
    normalized_code = apar_code.strip()
    if not normalized_code:
        raise ApiError(status_code=422, code="APAR_CODE_REQUIRED", message="APAR code is required.")

    location = get_location(db, location_id)
    if location is None or not location.is_active:
        raise ApiError(status_code=404, code="LOCATION_NOT_FOUND", message="Location not found.")

    check = AparCheck(
        guard_id=guard_id,
        location_id=location.id,
        apar_code=normalized_code,
        condition=condition,
        ts_utc=normalize_utc(now_utc) if now_utc else datetime.now(timezone.utc),
        photo_url=(photo_url or "").strip() or None,
    )
    check.location = location
    db.add(check)
    db.commit()
    db.refresh(check)
    logger.info(
        "inspection_event_recorded",
        extra={
            "check_type": CheckType.APAR.value,
            "guard_id": guard_id,
            "location_id": location.id,
            "source_id": check.id,
            "condition": condition.value,
        },
    )
    return check
