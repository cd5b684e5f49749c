from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from satpam.audit import log_audit, request_context
from satpam.db import get_db
from satpam.models import AparCheck, AreaCheckReport, AuditActorType, CheckType
from satpam.schemas import (
    AparCheckCreateRequest,
    AreaCheckCreateRequest,
    GuardBoardResponse,
    InspectionEventRead,
    LocationRead,
    OperationalDayRead,
)
from satpam.security import PatrolIdentity, get_current_identity, require_guard
from satpam.services.inspections import record_apar_check, record_area_check
from satpam.services.operational_day import resolve_operational_day
from satpam.services.projections import filter_statuses_by_location_name, project_guard_board
from satpam.settings import get_settings

router = APIRouter(tags=["patrol"])


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _event_read(event: AreaCheckReport | AparCheck, check_type: CheckType) -> InspectionEventRead:
    settings = get_settings()
    window = resolve_operational_day(
        event.ts_utc,
        cutover_hour=settings.patrol_cutover_hour,
        utc_offset_minutes=settings.patrol_utc_offset_minutes,
    )
    return InspectionEventRead(
        id=event.id,
        check_type=check_type,
        guard_id=event.guard_id,
        location=LocationRead.model_validate(event.location),
        ts_utc=event.ts_utc,
        day_id=window.day_id,
        evidence_url=event.photo_url,
        apar_code=getattr(event, "apar_code", None),
        condition=getattr(event, "condition", None),
    )


@router.get("/api/patrol/operational-day", response_model=OperationalDayRead)
def get_operational_day(
    _identity: PatrolIdentity = Depends(get_current_identity),
) -> OperationalDayRead:
    settings = get_settings()
    window = resolve_operational_day(
        _utcnow(),
        cutover_hour=settings.patrol_cutover_hour,
        utc_offset_minutes=settings.patrol_utc_offset_minutes,
    )
    return OperationalDayRead.from_window(window)


@router.get("/api/patrol/board", response_model=GuardBoardResponse)
def get_guard_board(
    request: Request,
    q: str | None = Query(default=None, max_length=255),
    identity: PatrolIdentity = Depends(require_guard),
    db: Session = Depends(get_db),
) -> GuardBoardResponse:
    settings = get_settings()
    request.state.guard_id = identity.subject
    board = project_guard_board(
        db,
        guard_id=identity.subject,
        reference_ts=_utcnow(),
        cutover_hour=settings.patrol_cutover_hour,
        utc_offset_minutes=settings.patrol_utc_offset_minutes,
    )
    return GuardBoardResponse.from_board(
        board,
        statuses=filter_statuses_by_location_name(board.statuses, q),
        utc_offset_minutes=settings.patrol_utc_offset_minutes,
    )


@router.post(
    "/api/patrol/area-checks",
    response_model=InspectionEventRead,
    status_code=status.HTTP_201_CREATED,
)
def create_area_check(
    payload: AreaCheckCreateRequest,
    request: Request,
    identity: PatrolIdentity = Depends(require_guard),
    db: Session = Depends(get_db),
) -> InspectionEventRead:
    request.state.guard_id = identity.subject
    report = record_area_check(
        db,
        guard_id=identity.subject,
        qr_payload=payload.qr_payload,
        photo_url=payload.photo_url,
        note=payload.note,
        now_utc=_utcnow(),
    )
    request.state.event_id = report.id
    log_audit(
        db,
        actor_type=AuditActorType.GUARD,
        actor_id=identity.subject,
        action="AREA_CHECK_RECORDED",
        entity_type="check_area_report",
        entity_id=str(report.id),
        details={"location_id": report.location_id, "has_photo": bool(report.photo_url)},
        context=request_context(request),
    )
    return _event_read(report, CheckType.AREA)


@router.post(
    "/api/patrol/apar-checks",
    response_model=InspectionEventRead,
    status_code=status.HTTP_201_CREATED,
)
def create_apar_check(
    payload: AparCheckCreateRequest,
    request: Request,
    identity: PatrolIdentity = Depends(require_guard),
    db: Session = Depends(get_db),
) -> InspectionEventRead:
    request.state.guard_id = identity.subject
    check = record_apar_check(
        db,
        guard_id=identity.subject,
        location_id=payload.location_id,
        apar_code=payload.apar_code,
        condition=payload.condition,
        photo_url=payload.photo_url,
        now_utc=_utcnow(),
    )
    request.state.event_id = check.id
    log_audit(
        db,
        actor_type=AuditActorType.GUARD,
        actor_id=identity.subject,
        action="APAR_CHECK_RECORDED",
        entity_type="apar_check",
        entity_id=str(check.id),
        details={
            "location_id": check.location_id,
            "apar_code": check.apar_code,
            "condition": check.condition.value,
        },
        context=request_context(request),
    )
    return _event_read(check, CheckType.APAR)
