from __future__ import annotations

from enum import IntEnum, StrEnum


class Frequency(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    SPECIFIC_DATES = "specific_dates"


class PriorityLevel(IntEnum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4


class AssignmentStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class AbsencePolicy(StrEnum):
    OMIT = "omit"
    REASSIGN = "reassign"


class TaskStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED_ON_TIME = "completed_on_time"
    COMPLETED_LATE = "completed_late"
    MISSED = "missed"
    CANCELLED = "cancelled"

    @property
    def is_open(self) -> bool:
        return self in OPEN_STATUSES

    @property
    def is_completed(self) -> bool:
        return self in COMPLETED_STATUSES


OPEN_STATUSES = frozenset({TaskStatus.PENDING, TaskStatus.IN_PROGRESS})
COMPLETED_STATUSES = frozenset({TaskStatus.COMPLETED_ON_TIME, TaskStatus.COMPLETED_LATE})


class AuditStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class CancelScope(StrEnum):
    INSTANCE = "instance"
    ASSIGNMENT_AND_FUTURE = "assignment-and-future"


class SkipReason(StrEnum):
    EXCEPTION = "exception"
    NO_RESPONSIBLE = "no-responsible"
    ABSENT_OMITTED = "absent-omitted"
    INVALID_ROUTINE = "invalid-routine"


class Role(StrEnum):
    DIRECTOR = "director"
    LEADER = "lider"
    AUDITOR = "auditor"
    ADMINISTRATOR = "administrador"


# Roles that may work on, cancel or audit any task instance.
SUPERVISING_ROLES = frozenset({Role.DIRECTOR, Role.LEADER, Role.AUDITOR})
CANCELLING_ROLES = frozenset({Role.DIRECTOR, Role.LEADER})
AUDITING_ROLES = SUPERVISING_ROLES
