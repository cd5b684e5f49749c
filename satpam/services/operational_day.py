from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

from satpam.settings import get_settings

DEFAULT_CUTOVER_HOUR = 6
OPERATIONAL_DAY_LENGTH = timedelta(hours=24)


@dataclass(frozen=True, slots=True)
class OperationalDayWindow:
    """One patrol duty cycle: [start_utc, end_utc) tagged with its calendar date."""

    day_id: date
    start_utc: datetime
    end_utc: datetime

    def contains(self, ts_utc: datetime) -> bool:
        return self.start_utc <= normalize_utc(ts_utc) < self.end_utc


def normalize_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def fixed_offset(utc_offset_minutes: int) -> timezone:
    return timezone(timedelta(minutes=utc_offset_minutes))


def window_for_day(
    day_id: date,
    *,
    cutover_hour: int = DEFAULT_CUTOVER_HOUR,
    utc_offset_minutes: int,
) -> OperationalDayWindow:
    local_start = datetime.combine(day_id, time(cutover_hour, 0), tzinfo=fixed_offset(utc_offset_minutes))
    start_utc = local_start.astimezone(timezone.utc)
    return OperationalDayWindow(
        day_id=day_id,
        start_utc=start_utc,
        end_utc=start_utc + OPERATIONAL_DAY_LENGTH,
    )


def resolve_operational_day(
    reference_ts: datetime,
    *,
    cutover_hour: int = DEFAULT_CUTOVER_HOUR,
    utc_offset_minutes: int,
) -> OperationalDayWindow:
    # Fixed offset only; the host timezone must never leak into the day boundary.
    local_reference = normalize_utc(reference_ts).astimezone(fixed_offset(utc_offset_minutes))
    day_id = local_reference.date()
    if local_reference.hour < cutover_hour:
        day_id -= timedelta(days=1)
    return window_for_day(day_id, cutover_hour=cutover_hour, utc_offset_minutes=utc_offset_minutes)


def current_operational_day(now_utc: datetime | None = None) -> OperationalDayWindow:
    settings = get_settings()
    return resolve_operational_day(
        now_utc or datetime.now(timezone.utc),
        cutover_hour=settings.patrol_cutover_hour,
        utc_offset_minutes=settings.patrol_utc_offset_minutes,
    )


def configured_window_for_day(day_id: date) -> OperationalDayWindow:
    settings = get_settings()
    return window_for_day(
        day_id,
        cutover_hour=settings.patrol_cutover_hour,
        utc_offset_minutes=settings.patrol_utc_offset_minutes,
    )


def format_local_hhmm(ts_utc: datetime | None, *, utc_offset_minutes: int) -> str | None:
    if ts_utc is None:
        return None
    return normalize_utc(ts_utc).astimezone(fixed_offset(utc_offset_minutes)).strftime("%H:%M")
