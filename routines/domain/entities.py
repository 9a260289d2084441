from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Optional, Union

from .enums import (
    AbsencePolicy,
    AssignmentStatus,
    AuditStatus,
    Frequency,
    PriorityLevel,
    SkipReason,
    TaskStatus,
)


@dataclass(frozen=True)
class DailySchedule:
    days: frozenset[int] = frozenset()


@dataclass(frozen=True)
class WeeklySchedule:
    days: frozenset[int] = frozenset()


@dataclass(frozen=True)
class MonthlySchedule:
    due_day: int | None = None


@dataclass(frozen=True)
class BiweeklySchedule:
    cutoff_1: int | None = None
    cutoff_2: int | None = None


@dataclass(frozen=True)
class SpecificDatesSchedule:
    dates: frozenset[date] = frozenset()


ScheduleRule = Union[
    DailySchedule,
    WeeklySchedule,
    MonthlySchedule,
    BiweeklySchedule,
    SpecificDatesSchedule,
]

SCHEDULE_FREQUENCIES: dict[type, Frequency] = {
    DailySchedule: Frequency.DAILY,
    WeeklySchedule: Frequency.WEEKLY,
    MonthlySchedule: Frequency.MONTHLY,
    BiweeklySchedule: Frequency.BIWEEKLY,
    SpecificDatesSchedule: Frequency.SPECIFIC_DATES,
}


@dataclass(frozen=True)
class RoutineDefinition:
    id: int | None
    name: str
    schedule: ScheduleRule
    priority: PriorityLevel = PriorityLevel.MEDIUM
    start_time: Optional[time] = None
    due_time: Optional[time] = None
    active: bool = True
    gps_required: bool = False

    @property
    def frequency(self) -> Frequency:
        return SCHEDULE_FREQUENCIES[type(self.schedule)]


@dataclass(frozen=True)
class Location:
    id: int | None
    name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    gps_radius_m: Optional[int] = None


@dataclass(frozen=True)
class Assignment:
    id: int | None
    routine: RoutineDefinition
    location: Location
    status: AssignmentStatus = AssignmentStatus.ACTIVE


@dataclass(frozen=True)
class Absence:
    id: int | None
    actor_id: str
    date_from: date
    date_to: date
    policy: AbsencePolicy
    receptor_id: str | None = None

    def covers(self, day: date) -> bool:
        return self.date_from <= day <= self.date_to


@dataclass(frozen=True)
class TaskSnapshot:
    """Routine fields copied onto an instance when it is materialized."""

    routine_name: str
    priority: PriorityLevel
    start_time: Optional[time]
    due_time: Optional[time]
    gps_required: bool = False


@dataclass(frozen=True)
class TaskCandidate:
    assignment_id: int
    routine_id: int
    location_id: int
    responsible_id: str
    scheduled_date: date
    due_at: datetime
    snapshot: TaskSnapshot


@dataclass(frozen=True)
class TaskInstance:
    id: int | None
    assignment_id: int
    routine_id: int
    location_id: int
    responsible_id: str
    scheduled_date: date
    due_at: datetime
    snapshot: TaskSnapshot
    status: TaskStatus
    created_at: datetime
    completed_at: Optional[datetime] = None
    completed_by: str | None = None
    comment: str | None = None
    gps_latitude: Optional[float] = None
    gps_longitude: Optional[float] = None
    gps_in_range: Optional[bool] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: str | None = None
    cancel_reason: str | None = None
    audit_status: AuditStatus = AuditStatus.PENDING
    audit_notes: str | None = None
    audited_at: Optional[datetime] = None
    audited_by: str | None = None


@dataclass(frozen=True)
class GpsReading:
    latitude: float
    longitude: float
    accuracy: Optional[float] = None


@dataclass(frozen=True)
class SkipRecord:
    assignment_id: int
    reason: SkipReason


@dataclass(frozen=True)
class RunResult:
    target_date: date
    candidates: int
    created: int
    skipped: list[SkipRecord] = field(default_factory=list)


@dataclass(frozen=True)
class CloseResult:
    updated: int
    closed_at: datetime
