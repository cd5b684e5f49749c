from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from satpam.models import GuardProfile, Location
from satpam.services.storage import storage_query

UNKNOWN_GUARD_NAME = "N/A"


def find_locations(db: Session, *, active_only: bool = True) -> list[Location]:
    stmt = select(Location).order_by(Location.name.asc(), Location.id.asc())
    if active_only:
        stmt = stmt.where(Location.is_active.is_(True))
    with storage_query("locations"):
        return list(db.scalars(stmt).all())


def find_location_by_qr(db: Session, *, qr_payload: str) -> Location | None:
    normalized = qr_payload.strip()
    if not normalized:
        return None
    with storage_query("locations"):
        return db.scalar(
            select(Location).where(
                Location.qr_code_data == normalized,
                Location.is_active.is_(True),
            )
        )


def get_location(db: Session, location_id: str) -> Location | None:
    with storage_query("locations"):
        return db.get(Location, location_id)


def find_guard_profiles(db: Session, guard_ids: Iterable[str]) -> dict[str, GuardProfile]:
    ids = sorted(set(guard_ids))
    if not ids:
        return {}
    with storage_query("guard_profiles"):
        profiles = db.scalars(select(GuardProfile).where(GuardProfile.id.in_(ids))).all()
    return {profile.id: profile for profile in profiles}


def guard_display_name(profile: GuardProfile | None) -> str:
    if profile is None:
        return UNKNOWN_GUARD_NAME
    return profile.display_name or UNKNOWN_GUARD_NAME
