from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from satpam.audit import log_audit, request_context
from satpam.db import get_db
from satpam.models import AuditActorType
from satpam.schemas import ScheduleAssignmentCreateRequest, ScheduleAssignmentRead
from satpam.security import PatrolIdentity, require_admin
from satpam.services.assignments import create_schedule_assignments, delete_schedule_assignment

router = APIRouter(tags=["admin"])


@router.post(
    "/api/admin/schedules",
    response_model=list[ScheduleAssignmentRead],
    status_code=status.HTTP_201_CREATED,
)
def create_schedules(
    payload: ScheduleAssignmentCreateRequest,
    request: Request,
    identity: PatrolIdentity = Depends(require_admin),
    db: Session = Depends(get_db),
) -> list[ScheduleAssignmentRead]:
    created = create_schedule_assignments(
        db,
        guard_id=payload.guard_id,
        day_id=payload.day_id,
        location_ids=payload.location_ids,
        created_by=identity.subject,
    )
    log_audit(
        db,
        actor_type=AuditActorType.ADMIN,
        actor_id=identity.subject,
        action="SCHEDULE_ASSIGNMENTS_CREATED",
        entity_type="guard_profile",
        entity_id=payload.guard_id,
        details={
            "day_id": payload.day_id.isoformat(),
            "location_ids": [item.location_id for item in created],
        },
        context=request_context(request),
    )
    return [ScheduleAssignmentRead.model_validate(item) for item in created]


@router.delete("/api/admin/schedules/{assignment_id}", response_model=ScheduleAssignmentRead)
def delete_schedule(
    assignment_id: int,
    request: Request,
    identity: PatrolIdentity = Depends(require_admin),
    db: Session = Depends(get_db),
) -> ScheduleAssignmentRead:
    assignment = delete_schedule_assignment(db, assignment_id)
    log_audit(
        db,
        actor_type=AuditActorType.ADMIN,
        actor_id=identity.subject,
        action="SCHEDULE_ASSIGNMENT_DELETED",
        entity_type="schedule_assignment",
        entity_id=str(assignment_id),
        details={
            "guard_id": assignment.guard_id,
            "location_id": assignment.location_id,
            "day_id": assignment.schedule_date.isoformat(),
        },
        context=request_context(request),
    )
    return ScheduleAssignmentRead.model_validate(assignment)
