from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from satpam.models import AparCondition, CheckType
from satpam.services.metrics import CompletionSummary, RosterSummary, summarize
from satpam.services.operational_day import OperationalDayWindow, format_local_hhmm
from satpam.services.projections import AssignmentStatus, GuardBoard, Roster, RosterEntry


class OperationalDayRead(BaseModel):
    day_id: date
    window_start_utc: datetime
    window_end_utc: datetime

    @classmethod
    def from_window(cls, window: OperationalDayWindow) -> "OperationalDayRead":
        return cls(
            day_id=window.day_id,
            window_start_utc=window.start_utc,
            window_end_utc=window.end_utc,
        )


class LocationRead(BaseModel):
    id: str
    name: str
    zone: str | None = None

    model_config = ConfigDict(from_attributes=True)


class AssignmentStatusRead(BaseModel):
    assignment_id: int | None
    guard_id: str
    location: LocationRead
    is_area_checked: bool
    is_apar_checked: bool
    area_checked_at: datetime | None = None
    apar_checked_at: datetime | None = None
    area_checked_at_local: str | None = None
    apar_checked_at_local: str | None = None
    evidence_url: str | None = None

    @classmethod
    def from_status(cls, status: AssignmentStatus, *, utc_offset_minutes: int) -> "AssignmentStatusRead":
        assignment = status.assignment
        location = assignment.location
        return cls(
            assignment_id=assignment.id,
            guard_id=assignment.guard_id,
            location=(
                LocationRead.model_validate(location)
                if location is not None
                else LocationRead(id=assignment.location_id, name=assignment.location_id)
            ),
            is_area_checked=status.is_area_checked,
            is_apar_checked=status.is_apar_checked,
            area_checked_at=status.area_checked_at,
            apar_checked_at=status.apar_checked_at,
            area_checked_at_local=format_local_hhmm(status.area_checked_at, utc_offset_minutes=utc_offset_minutes),
            apar_checked_at_local=format_local_hhmm(status.apar_checked_at, utc_offset_minutes=utc_offset_minutes),
            evidence_url=status.evidence_url,
        )


class CompletionSummaryRead(BaseModel):
    total: int
    completed_both: int
    completion_rate_percent: int

    @classmethod
    def from_summary(cls, summary: CompletionSummary) -> "CompletionSummaryRead":
        return cls(
            total=summary.total,
            completed_both=summary.completed_both,
            completion_rate_percent=summary.completion_rate_percent,
        )


class RosterSummaryRead(CompletionSummaryRead):
    total_personnel: int
    area_checked: int
    apar_checked: int

    @classmethod
    def from_roster_summary(cls, summary: RosterSummary) -> "RosterSummaryRead":
        return cls(
            total_personnel=summary.total_personnel,
            total=summary.total,
            completed_both=summary.completed_both,
            completion_rate_percent=summary.completion_rate_percent,
            area_checked=summary.area_checked,
            apar_checked=summary.apar_checked,
        )


class GuardBoardResponse(BaseModel):
    guard_id: str
    operational_day: OperationalDayRead
    is_scheduled: bool
    statuses: list[AssignmentStatusRead]
    summary: CompletionSummaryRead

    @classmethod
    def from_board(
        cls,
        board: GuardBoard,
        *,
        statuses: list[AssignmentStatus],
        utc_offset_minutes: int,
    ) -> "GuardBoardResponse":
        return cls(
            guard_id=board.guard_id,
            operational_day=OperationalDayRead.from_window(board.window),
            is_scheduled=board.is_scheduled,
            statuses=[
                AssignmentStatusRead.from_status(item, utc_offset_minutes=utc_offset_minutes) for item in statuses
            ],
            summary=CompletionSummaryRead.from_summary(summarize(statuses)),
        )


class LocationClassificationRead(BaseModel):
    scope: Literal["ALL", "ZONE", "MIXED", "UNASSIGNED"]
    label: str


class RosterEntryRead(BaseModel):
    guard_id: str
    guard_name: str
    location_classification: LocationClassificationRead
    statuses: list[AssignmentStatusRead]
    summary: CompletionSummaryRead

    @classmethod
    def from_entry(cls, entry: RosterEntry, *, utc_offset_minutes: int) -> "RosterEntryRead":
        return cls(
            guard_id=entry.guard_id,
            guard_name=entry.guard_name,
            location_classification=LocationClassificationRead(
                scope=entry.location_classification.scope.value,
                label=entry.location_classification.label,
            ),
            statuses=[
                AssignmentStatusRead.from_status(item, utc_offset_minutes=utc_offset_minutes)
                for item in entry.statuses
            ],
            summary=CompletionSummaryRead.from_summary(summarize(entry.statuses)),
        )


class RosterResponse(BaseModel):
    operational_day: OperationalDayRead
    entries: list[RosterEntryRead]
    summary: RosterSummaryRead

    @classmethod
    def from_roster(cls, roster: Roster, *, utc_offset_minutes: int) -> "RosterResponse":
        return cls(
            operational_day=OperationalDayRead.from_window(roster.window),
            entries=[RosterEntryRead.from_entry(item, utc_offset_minutes=utc_offset_minutes) for item in roster.entries],
            summary=RosterSummaryRead.from_roster_summary(roster.summary),
        )


class AreaCheckCreateRequest(BaseModel):
    qr_payload: str = Field(min_length=1, max_length=255)
    photo_url: str | None = Field(default=None, max_length=2048)
    note: str | None = Field(default=None, max_length=1000)


class AparCheckCreateRequest(BaseModel):
    location_id: str = Field(min_length=1, max_length=36)
    apar_code: str = Field(min_length=1, max_length=255)
    condition: AparCondition
    photo_url: str | None = Field(default=None, max_length=2048)


class InspectionEventRead(BaseModel):
    id: int
    check_type: CheckType
    guard_id: str
    location: LocationRead
    ts_utc: datetime
    day_id: date
    evidence_url: str | None = None
    apar_code: str | None = None
    condition: AparCondition | None = None


class ScheduleAssignmentCreateRequest(BaseModel):
    guard_id: str = Field(min_length=1, max_length=36)
    day_id: date
    location_ids: list[str] = Field(min_length=1)


class ScheduleAssignmentRead(BaseModel):
    id: int
    guard_id: str
    location_id: str
    schedule_date: date
    created_by: str

    model_config = ConfigDict(from_attributes=True)
