from __future__ import annotations

import logging
from datetime import date
from zoneinfo import ZoneInfo

from routines.domain.deadline import compute_due_at
from routines.domain.entities import (
    Assignment,
    RunResult,
    SkipRecord,
    TaskCandidate,
    TaskSnapshot,
)
from routines.domain.enums import SkipReason
from routines.domain.responsible import ResponsibleResolver
from routines.domain.schedule import is_due
from routines.infra.repository import AuditLogRepository, CatalogRepository, TaskRepository

logger = logging.getLogger(__name__)


def snapshot_of(assignment: Assignment) -> TaskSnapshot:
    routine = assignment.routine
    return TaskSnapshot(
        routine_name=routine.name,
        priority=routine.priority,
        start_time=routine.start_time,
        due_time=routine.due_time,
        gps_required=routine.gps_required,
    )


class TaskMaterializer:
    """Creates the task instances due on a target date.

    Re-running a date is safe: instances are keyed on (assignment, anchor date)
    and duplicates are absorbed by the store.
    """

    def __init__(
        self,
        catalog: CatalogRepository,
        tasks: TaskRepository,
        timezone: ZoneInfo,
        audit_log: AuditLogRepository | None = None,
    ) -> None:
        self._catalog = catalog
        self._tasks = tasks
        self._tz = timezone
        self._audit_log = audit_log

    def plan(self, target: date) -> tuple[list[TaskCandidate], list[SkipRecord]]:
        """Candidates due on ``target`` and the assignments skipped along the way.

        An exception for the target date suppresses the assignment before its
        schedule is looked at, so it is reported even on a day it is not due.
        """
        # Each ledger is read once, up front; a read failure aborts before any write.
        assignments, malformed = self._catalog.list_active_assignments()
        resolver = ResponsibleResolver(
            self._catalog.current_responsibles(),
            self._catalog.absences_covering(target),
        )
        excepted = self._catalog.exceptions_on(target)

        candidates: list[TaskCandidate] = []
        skipped = [SkipRecord(assignment_id, SkipReason.INVALID_ROUTINE) for assignment_id in malformed]
        for assignment in assignments:
            if assignment.id in excepted:
                skipped.append(SkipRecord(assignment.id, SkipReason.EXCEPTION))
                continue

            decision = is_due(assignment.routine, target)
            if not decision.due:
                continue

            resolution = resolver.resolve(assignment.location.id, target)
            if resolution.skipped:
                skipped.append(SkipRecord(assignment.id, resolution.skip_reason))
                continue

            candidates.append(
                TaskCandidate(
                    assignment_id=assignment.id,
                    routine_id=assignment.routine.id,
                    location_id=assignment.location.id,
                    responsible_id=resolution.actor_id,
                    scheduled_date=decision.anchor_date,
                    due_at=compute_due_at(assignment.routine, decision.anchor_date, self._tz),
                    snapshot=snapshot_of(assignment),
                )
            )
        return candidates, skipped

    def run(self, target: date, triggered_by: str = "scheduler") -> RunResult:
        logger.info("Materializing tasks for %s (triggered by %s)", target.isoformat(), triggered_by)
        candidates, skipped = self.plan(target)
        for skip in skipped:
            logger.debug("Skipped assignment %s: %s", skip.assignment_id, skip.reason.value)

        created = self._tasks.insert_ignore(candidates)
        logger.info(
            "Materialized %s of %s candidates for %s, %s skipped",
            created,
            len(candidates),
            target.isoformat(),
            len(skipped),
        )

        if self._audit_log is not None:
            self._audit_log.record(
                actor_id=triggered_by,
                action="generate_tasks",
                table_name="task_instances",
                payload={
                    "date": target.isoformat(),
                    "candidates": len(candidates),
                    "created": created,
                    "skipped": len(skipped),
                },
            )
        return RunResult(target_date=target, candidates=len(candidates), created=created, skipped=skipped)
