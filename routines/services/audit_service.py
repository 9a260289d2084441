from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from routines.domain.entities import TaskInstance
from routines.domain.enums import AUDITING_ROLES, AuditStatus, Role
from routines.domain.errors import InvalidTransition, TaskNotFound
from routines.domain.lifecycle import ensure_can_audit, ensure_role
from routines.infra.repository import AuditLogRepository, TaskRepository, to_storage

from .task_service import utc_now

logger = logging.getLogger(__name__)


class AuditService:
    """Approve or reject completed tasks. A decision is final.

    Only directors, leaders and auditors may decide.
    """

    def __init__(
        self,
        repo: TaskRepository,
        audit_log: AuditLogRepository | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repo = repo
        self._audit_log = audit_log
        self._clock = clock

    def review(
        self,
        task_id: int,
        auditor_id: str,
        decision: AuditStatus,
        note: str | None = None,
        role: Role = Role.ADMINISTRATOR,
    ) -> TaskInstance:
        ensure_role(role, AUDITING_ROLES, "audit tasks")
        task = self._repo.get_task(task_id)
        if task is None:
            raise TaskNotFound(task_id)
        note = ensure_can_audit(task, decision, note)

        updated = self._repo.record_audit(
            task_id,
            {
                "audit_status": decision.value,
                "audit_notes": note,
                "audited_at": to_storage(self._clock()),
                "audited_by": auditor_id,
            },
        )
        if updated is None:
            raise InvalidTransition(f"task {task_id} was audited concurrently")

        logger.info("Task %s %s by %s", task_id, decision.value, auditor_id)
        if self._audit_log is not None:
            self._audit_log.record(
                actor_id=auditor_id,
                action="audit_task",
                table_name="task_instances",
                record_id=task_id,
                payload={"decision": decision.value, "note": note},
            )
        return updated

    def approve(
        self, task_id: int, auditor_id: str, note: str | None = None, role: Role = Role.ADMINISTRATOR
    ) -> TaskInstance:
        return self.review(task_id, auditor_id, AuditStatus.APPROVED, note, role)

    def reject(
        self, task_id: int, auditor_id: str, note: str | None, role: Role = Role.ADMINISTRATOR
    ) -> TaskInstance:
        return self.review(task_id, auditor_id, AuditStatus.REJECTED, note, role)
