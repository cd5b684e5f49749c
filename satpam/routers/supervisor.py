from datetime import date

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from satpam.db import get_db
from satpam.schemas import RosterResponse
from satpam.security import PatrolIdentity, require_supervisor
from satpam.services.operational_day import current_operational_day
from satpam.services.projections import project_roster
from satpam.settings import get_settings

router = APIRouter(tags=["supervisor"])


@router.get("/api/supervisor/roster", response_model=RosterResponse)
def get_roster(
    request: Request,
    day: date | None = Query(default=None, description="Operational day (YYYY-MM-DD); defaults to the current one."),
    _identity: PatrolIdentity = Depends(require_supervisor),
    db: Session = Depends(get_db),
) -> RosterResponse:
    settings = get_settings()
    day_id = day or current_operational_day().day_id
    request.state.day_id = day_id.isoformat()
    roster = project_roster(
        db,
        day_id=day_id,
        cutover_hour=settings.patrol_cutover_hour,
        utc_offset_minutes=settings.patrol_utc_offset_minutes,
    )
    return RosterResponse.from_roster(roster, utc_offset_minutes=settings.patrol_utc_offset_minutes)
