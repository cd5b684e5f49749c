from __future__ import annotations

import enum
from datetime import date, datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from satpam.db import Base


def _uuid_str() -> str:
    return str(uuid4())


class CheckType(str, enum.Enum):
    AREA = "AREA"
    APAR = "APAR"


class AparCondition(str, enum.Enum):
    GOOD = "GOOD"
    DAMAGED = "DAMAGED"
    NEEDS_MAINTENANCE = "NEEDS_MAINTENANCE"


class AuditActorType(str, enum.Enum):
    GUARD = "GUARD"
    SUPERVISOR = "SUPERVISOR"
    ADMIN = "ADMIN"
    SYSTEM = "SYSTEM"


class Location(Base):
    __tablename__ = "locations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_str)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    zone: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    qr_code_data: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    assignments: Mapped[list[ScheduleAssignment]] = relationship(back_populates="location")


class GuardProfile(Base):
    __tablename__ = "guard_profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    first_name: Mapped[str] = mapped_column(String(255), nullable=False)
    last_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="satpam", server_default=text("'satpam'"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    assignments: Mapped[list[ScheduleAssignment]] = relationship(back_populates="guard")

    @property
    def display_name(self) -> str:
        parts = [(self.first_name or "").strip(), (self.last_name or "").strip()]
        return " ".join(part for part in parts if part)


class ScheduleAssignment(Base):
    __tablename__ = "schedule_assignments"
    __table_args__ = (
        UniqueConstraint(
            "guard_id",
            "location_id",
            "schedule_date",
            name="uq_schedule_assignments_guard_location_date",
        ),
        Index("ix_schedule_assignments_date_guard", "schedule_date", "guard_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    guard_id: Mapped[str] = mapped_column(
        ForeignKey("guard_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    location_id: Mapped[str] = mapped_column(
        ForeignKey("locations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    schedule_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False, default="admin")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    guard: Mapped[GuardProfile] = relationship(back_populates="assignments")
    location: Mapped[Location] = relationship(back_populates="assignments")


class AreaCheckReport(Base):
    __tablename__ = "check_area_reports"
    __table_args__ = (
        Index("ix_check_area_reports_guard_ts", "guard_id", "ts_utc"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    guard_id: Mapped[str] = mapped_column(
        ForeignKey("guard_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    location_id: Mapped[str] = mapped_column(
        ForeignKey("locations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    ts_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    photo_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    note: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    location: Mapped[Location] = relationship()


class AparCheck(Base):
    __tablename__ = "apar_checks"
    __table_args__ = (
        Index("ix_apar_checks_guard_ts", "guard_id", "ts_utc"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    guard_id: Mapped[str] = mapped_column(
        ForeignKey("guard_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    location_id: Mapped[str] = mapped_column(
        ForeignKey("locations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    apar_code: Mapped[str] = mapped_column(String(255), nullable=False)
    condition: Mapped[AparCondition] = mapped_column(
        Enum(AparCondition, name="apar_condition"),
        nullable=False,
    )
    ts_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    photo_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    location: Mapped[Location] = relationship()


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ts_utc: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        index=True,
    )
    actor_type: Mapped[AuditActorType] = mapped_column(
        Enum(AuditActorType, name="audit_actor_type"),
        nullable=False,
    )
    actor_id: Mapped[str] = mapped_column(String(255), nullable=False)
    action: Mapped[str] = mapped_column(String(255), nullable=False)
    entity_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ip: Mapped[str | None] = mapped_column(String(128), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    details: Mapped[dict[str, Any]] = mapped_column(
        JSONB,
        nullable=False,
        default=dict,
        server_default=text("'{}'::jsonb"),
    )
