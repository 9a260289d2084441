from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Callable

from routines.domain.entities import CloseResult, GpsReading, Location, TaskInstance
from routines.domain.enums import CANCELLING_ROLES, OPEN_STATUSES, CancelScope, Role, TaskStatus
from routines.domain.errors import InvalidTransition, TaskNotFound
from routines.domain.filters import TaskFilters
from routines.domain.lifecycle import (
    check_gps,
    completion_status,
    ensure_can_cancel,
    ensure_can_complete,
    ensure_can_start,
    ensure_may_work_on,
    ensure_role,
)
from routines.infra.repository import (
    AuditLogRepository,
    CatalogRepository,
    TaskRepository,
    to_storage,
)

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TaskService:
    def __init__(
        self,
        repo: TaskRepository,
        catalog: CatalogRepository,
        audit_log: AuditLogRepository | None = None,
        clock: Callable[[], datetime] = utc_now,
        default_gps_radius_m: int = 100,
    ) -> None:
        self._repo = repo
        self._catalog = catalog
        self._audit_log = audit_log
        self._clock = clock
        self._default_gps_radius_m = default_gps_radius_m

    def get_task(self, task_id: int) -> TaskInstance:
        task = self._repo.get_task(task_id)
        if task is None:
            raise TaskNotFound(task_id)
        return task

    def list_tasks(self, filters: TaskFilters) -> list[TaskInstance]:
        return self._repo.list_tasks(filters)

    def start(self, task_id: int, actor_id: str, role: Role = Role.ADMINISTRATOR) -> TaskInstance:
        task = self.get_task(task_id)
        ensure_may_work_on(task, actor_id, role)
        ensure_can_start(task)
        updated = self._repo.transition(
            task_id, [TaskStatus.PENDING], {"status": TaskStatus.IN_PROGRESS.value}
        )
        if updated is None:
            raise InvalidTransition(f"task {task_id} changed state before it could be started")
        logger.info("Task %s started by %s", task_id, actor_id)
        return updated

    def complete(
        self,
        task_id: int,
        actor_id: str,
        gps: GpsReading | None = None,
        comment: str | None = None,
        role: Role = Role.ADMINISTRATOR,
    ) -> TaskInstance:
        task = self.get_task(task_id)
        ensure_may_work_on(task, actor_id, role)
        ensure_can_complete(task)

        location = self._catalog.get_location(task.location_id) or Location(id=task.location_id, name="")
        gps_in_range = check_gps(task.snapshot.gps_required, location, gps, self._default_gps_radius_m)

        now = self._clock()
        status = completion_status(task.due_at, now)
        updated = self._repo.transition(
            task_id,
            OPEN_STATUSES,
            {
                "status": status.value,
                "completed_at": to_storage(now),
                "completed_by": actor_id,
                "comment": (comment or "").strip() or None,
                "gps_latitude": gps.latitude if gps else None,
                "gps_longitude": gps.longitude if gps else None,
                "gps_accuracy": gps.accuracy if gps else None,
                "gps_in_range": gps_in_range,
            },
        )
        if updated is None:
            raise InvalidTransition(f"task {task_id} was closed before the completion was recorded")
        logger.info("Task %s completed by %s as %s", task_id, actor_id, status.value)
        return updated

    def cancel(
        self,
        task_id: int,
        actor_id: str,
        reason: str | None,
        scope: CancelScope,
        role: Role = Role.ADMINISTRATOR,
    ) -> TaskInstance:
        ensure_role(role, CANCELLING_ROLES, "cancel tasks")
        task = self.get_task(task_id)
        reason = ensure_can_cancel(task, reason)

        deactivate_note = None
        if scope == CancelScope.ASSIGNMENT_AND_FUTURE:
            deactivate_note = f"Deactivated when cancelling task {task_id}. Reason: {reason}"

        updated = self._repo.cancel(
            task_id,
            {
                "status": TaskStatus.CANCELLED.value,
                "cancelled_at": to_storage(self._clock()),
                "cancelled_by": actor_id,
                "cancel_reason": reason,
            },
            deactivate_note=deactivate_note,
        )
        if updated is None:
            raise InvalidTransition(f"task {task_id} changed state before it could be cancelled")

        logger.info("Task %s cancelled by %s (scope=%s)", task_id, actor_id, scope.value)
        if self._audit_log is not None:
            self._audit_log.record(
                actor_id=actor_id,
                action="cancel_task",
                table_name="task_instances",
                record_id=task_id,
                payload={"reason": reason, "scope": scope.value, "status": TaskStatus.CANCELLED.value},
            )
        return updated

    def close_overdue(self) -> CloseResult:
        """Move every open task whose deadline has passed to missed."""
        now = self._clock()
        updated = self._repo.mark_missed(now)
        logger.info("Nightly close at %s marked %s tasks as missed", now.isoformat(), updated)
        return CloseResult(updated=updated, closed_at=now)

    def compliance_summary(
        self,
        date_from: date | None = None,
        date_to: date | None = None,
        location_id: int | None = None,
    ) -> dict[str, int]:
        counts = self._repo.count_by_status(
            TaskFilters(
                location_id=location_id,
                scheduled_from=date_from,
                scheduled_to=date_to,
                include_cancelled=False,
            )
        )
        on_time = counts.get(TaskStatus.COMPLETED_ON_TIME, 0)
        late = counts.get(TaskStatus.COMPLETED_LATE, 0)
        total = sum(counts.values())
        return {
            "total": total,
            "pending": counts.get(TaskStatus.PENDING, 0),
            "in_progress": counts.get(TaskStatus.IN_PROGRESS, 0),
            "completed_on_time": on_time,
            "completed_late": late,
            "missed": counts.get(TaskStatus.MISSED, 0),
            "compliance": round(100 * (on_time + late) / total) if total else 0,
        }
