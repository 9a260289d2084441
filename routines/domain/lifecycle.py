"""Transition rules for task instances and their audit annotation.

pending -> in_progress -> completed_on_time | completed_late
pending | in_progress -> missed      (nightly closer, once due_at has passed)
pending | in_progress -> cancelled   (director or lider, reason required)

The audit status is orthogonal: pending -> approved | rejected, only on a
completed instance, and final once decided.
"""
from __future__ import annotations

import math
from datetime import datetime

from .entities import GpsReading, Location, TaskInstance
from .enums import SUPERVISING_ROLES, AuditStatus, Role, TaskStatus
from .errors import InvalidTransition, PermissionDenied, ValidationError

EARTH_RADIUS_M = 6_371_000


def completion_status(due_at: datetime, completed_at: datetime) -> TaskStatus:
    if completed_at <= due_at:
        return TaskStatus.COMPLETED_ON_TIME
    return TaskStatus.COMPLETED_LATE


def ensure_may_work_on(task: TaskInstance, actor_id: str, role: Role) -> None:
    """Only the responsible actor, whoever executed the task, or a supervisor may act on it."""
    if role in SUPERVISING_ROLES or actor_id in (task.responsible_id, task.completed_by):
        return
    raise PermissionDenied(f"{actor_id} is not allowed to work on task {task.id}")


def ensure_role(role: Role, allowed: frozenset[Role], action: str) -> None:
    if role not in allowed:
        raise PermissionDenied(f"role {role.value} may not {action}")


def ensure_can_start(task: TaskInstance) -> None:
    if task.status != TaskStatus.PENDING:
        raise InvalidTransition(f"task {task.id} is {task.status.value}; only pending tasks can be started")


def ensure_can_complete(task: TaskInstance) -> None:
    if not task.status.is_open:
        raise InvalidTransition(f"task {task.id} is {task.status.value} and can no longer be completed")


def ensure_can_cancel(task: TaskInstance, reason: str | None) -> str:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A cancellation reason is required.")
    if not task.status.is_open:
        raise InvalidTransition(f"task {task.id} is {task.status.value} and cannot be cancelled")
    return reason


def ensure_can_audit(task: TaskInstance, decision: AuditStatus, note: str | None) -> str | None:
    if decision not in (AuditStatus.APPROVED, AuditStatus.REJECTED):
        raise ValidationError("Audit decision must be approved or rejected.")
    note = (note or "").strip() or None
    if decision == AuditStatus.REJECTED and not note:
        raise ValidationError("A note is required to reject a task.")
    if not task.status.is_completed:
        raise InvalidTransition(f"task {task.id} is {task.status.value}; only completed tasks can be audited")
    if task.audit_status != AuditStatus.PENDING:
        raise InvalidTransition(f"task {task.id} was already {task.audit_status.value}")
    return note


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def check_gps(
    required: bool,
    location: Location,
    reading: GpsReading | None,
    default_radius_m: int,
) -> bool | None:
    """Return whether the reading lies inside the location radius.

    ``None`` means nothing could be measured. Raises ``ValidationError`` when
    the routine requires a position and the reading is missing or out of range.
    """
    has_site = location.latitude is not None and location.longitude is not None
    if required:
        if reading is None:
            raise ValidationError("GPS coordinates are required for this task.")
        if not has_site:
            raise ValidationError("Location coordinates are not configured.")
    if reading is None or not has_site:
        return None

    radius = location.gps_radius_m or default_radius_m
    distance = haversine_m(reading.latitude, reading.longitude, location.latitude, location.longitude)
    in_range = distance <= radius
    if required and not in_range:
        raise ValidationError(f"Position is out of range ({round(distance)}m). Maximum allowed: {radius}m.")
    return in_range
