from __future__ import annotations

import json
import logging
from datetime import date, datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError

from routines.domain.entities import (
    Absence,
    Assignment,
    BiweeklySchedule,
    DailySchedule,
    Location,
    MonthlySchedule,
    RoutineDefinition,
    ScheduleRule,
    SpecificDatesSchedule,
    TaskCandidate,
    TaskInstance,
    TaskSnapshot,
    WeeklySchedule,
)
from routines.domain.enums import (
    OPEN_STATUSES,
    AbsencePolicy,
    AssignmentStatus,
    AuditStatus,
    Frequency,
    PriorityLevel,
    TaskStatus,
)
from routines.domain.errors import CollaboratorReadError
from routines.domain.filters import TaskFilters

from .db import SessionLocal
from .models import (
    AbsenceModel,
    AssignmentExceptionModel,
    AssignmentModel,
    LocationModel,
    ResponsibleBindingModel,
    RoutineModel,
    SystemAuditLogModel,
    TaskInstanceModel,
    utcnow,
)

logger = logging.getLogger(__name__)

OPEN_VALUES = [status.value for status in OPEN_STATUSES]
COMPLETED_VALUES = [TaskStatus.COMPLETED_ON_TIME.value, TaskStatus.COMPLETED_LATE.value]
INSERT_CHUNK_SIZE = 500

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def to_storage(value: datetime) -> datetime:
    """Aware datetime -> naive UTC, the way timestamps are persisted."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def from_storage(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc)


def _parse_days(raw: str) -> frozenset[int]:
    return frozenset(int(part) for part in raw.split(",") if part.strip())


def _parse_dates(raw: str) -> frozenset[date]:
    return frozenset(date.fromisoformat(part.strip()) for part in raw.split(",") if part.strip())


def _to_schedule(model: RoutineModel) -> ScheduleRule:
    frequency = Frequency(model.frequency)
    if frequency == Frequency.DAILY:
        return DailySchedule(_parse_days(model.execution_days or ""))
    if frequency == Frequency.WEEKLY:
        return WeeklySchedule(_parse_days(model.execution_days or ""))
    if frequency == Frequency.MONTHLY:
        return MonthlySchedule(model.monthly_due_day)
    if frequency == Frequency.BIWEEKLY:
        return BiweeklySchedule(model.cutoff_1_day, model.cutoff_2_day)
    return SpecificDatesSchedule(_parse_dates(model.specific_dates or ""))


def _routine_to_entity(model: RoutineModel) -> RoutineDefinition:
    return RoutineDefinition(
        id=model.id,
        name=model.name,
        schedule=_to_schedule(model),
        priority=PriorityLevel(model.priority),
        start_time=model.start_time,
        due_time=model.due_time,
        active=model.active,
        gps_required=model.gps_required,
    )


def _location_to_entity(model: LocationModel) -> Location:
    return Location(
        id=model.id,
        name=model.name,
        latitude=model.latitude,
        longitude=model.longitude,
        gps_radius_m=model.gps_radius_m,
    )


def _absence_to_entity(model: AbsenceModel) -> Absence:
    return Absence(
        id=model.id,
        actor_id=model.actor_id,
        date_from=model.date_from,
        date_to=model.date_to,
        policy=AbsencePolicy(model.policy),
        receptor_id=model.receptor_id,
    )


def _task_to_entity(model: TaskInstanceModel) -> TaskInstance:
    return TaskInstance(
        id=model.id,
        assignment_id=model.assignment_id,
        routine_id=model.routine_id,
        location_id=model.location_id,
        responsible_id=model.responsible_id,
        scheduled_date=model.scheduled_date,
        due_at=from_storage(model.due_at),
        snapshot=TaskSnapshot(
            routine_name=model.routine_name_snapshot,
            priority=PriorityLevel(model.priority_snapshot),
            start_time=model.start_time_snapshot,
            due_time=model.due_time_snapshot,
            gps_required=model.gps_required_snapshot,
        ),
        status=TaskStatus(model.status),
        created_at=from_storage(model.created_at),
        completed_at=from_storage(model.completed_at),
        completed_by=model.completed_by,
        comment=model.comment,
        gps_latitude=model.gps_latitude,
        gps_longitude=model.gps_longitude,
        gps_in_range=model.gps_in_range,
        cancelled_at=from_storage(model.cancelled_at),
        cancelled_by=model.cancelled_by,
        cancel_reason=model.cancel_reason,
        audit_status=AuditStatus(model.audit_status),
        audit_notes=model.audit_notes,
        audited_at=from_storage(model.audited_at),
        audited_by=model.audited_by,
    )


def _candidate_row(candidate: TaskCandidate, created_at: datetime) -> dict:
    snapshot = candidate.snapshot
    return {
        "assignment_id": candidate.assignment_id,
        "routine_id": candidate.routine_id,
        "location_id": candidate.location_id,
        "responsible_id": candidate.responsible_id,
        "scheduled_date": candidate.scheduled_date,
        "due_at": to_storage(candidate.due_at),
        "status": TaskStatus.PENDING.value,
        "routine_name_snapshot": snapshot.routine_name,
        "priority_snapshot": int(snapshot.priority),
        "start_time_snapshot": snapshot.start_time,
        "due_time_snapshot": snapshot.due_time,
        "gps_required_snapshot": snapshot.gps_required,
        "audit_status": AuditStatus.PENDING.value,
        "created_at": created_at,
    }


def _apply_filters(stmt, filters: TaskFilters) -> object:
    if filters.status is not None:
        stmt = stmt.where(TaskInstanceModel.status == filters.status.value)
    elif not filters.include_cancelled:
        stmt = stmt.where(TaskInstanceModel.status != TaskStatus.CANCELLED.value)

    if filters.location_id is not None:
        stmt = stmt.where(TaskInstanceModel.location_id == filters.location_id)

    if filters.responsible_id:
        stmt = stmt.where(TaskInstanceModel.responsible_id == filters.responsible_id)

    if filters.scheduled_from:
        stmt = stmt.where(TaskInstanceModel.scheduled_date >= filters.scheduled_from)

    if filters.scheduled_to:
        stmt = stmt.where(TaskInstanceModel.scheduled_date <= filters.scheduled_to)

    return stmt


def _assignments_from_rows(rows) -> tuple[list[Assignment], list[int]]:
    assignments: list[Assignment] = []
    malformed: list[int] = []
    for assignment, routine, location in rows:
        try:
            routine_entity = _routine_to_entity(routine)
        except ValueError as exc:
            logger.warning(
                "Assignment %s skipped: routine %s is malformed (%s)", assignment.id, routine.id, exc
            )
            malformed.append(assignment.id)
            continue
        assignments.append(
            Assignment(
                id=assignment.id,
                routine=routine_entity,
                location=_location_to_entity(location),
                status=AssignmentStatus(assignment.status),
            )
        )
    return assignments, malformed


class CatalogRepository:
    """Read-only point-in-time views over the routine catalog and its ledgers."""

    def __init__(self, session_factory=SessionLocal) -> None:
        self._session_factory = session_factory

    def list_active_assignments(self) -> tuple[list[Assignment], list[int]]:
        """Active assignments, plus the ids of those whose routine row cannot be read."""
        try:
            with self._session_factory() as session:
                rows = session.execute(
                    select(AssignmentModel, RoutineModel, LocationModel)
                    .join(RoutineModel, AssignmentModel.routine_id == RoutineModel.id)
                    .join(LocationModel, AssignmentModel.location_id == LocationModel.id)
                    .where(
                        AssignmentModel.status == AssignmentStatus.ACTIVE.value,
                        RoutineModel.active.is_(True),
                    )
                    .order_by(AssignmentModel.id.asc())
                ).all()
                return _assignments_from_rows(rows)
        except SQLAlchemyError as exc:
            raise CollaboratorReadError("assignment registry", str(exc)) from exc

    def current_responsibles(self) -> dict[int, str]:
        try:
            with self._session_factory() as session:
                rows = session.execute(
                    select(ResponsibleBindingModel.location_id, ResponsibleBindingModel.actor_id)
                    .where(ResponsibleBindingModel.is_current.is_(True))
                    .order_by(ResponsibleBindingModel.assigned_at.asc(), ResponsibleBindingModel.id.asc())
                ).all()
                return {row.location_id: row.actor_id for row in rows}
        except SQLAlchemyError as exc:
            raise CollaboratorReadError("responsible directory", str(exc)) from exc

    def absences_covering(self, day: date) -> list[Absence]:
        try:
            with self._session_factory() as session:
                stmt = select(AbsenceModel).where(
                    AbsenceModel.date_from <= day,
                    AbsenceModel.date_to >= day,
                )
                return [_absence_to_entity(model) for model in session.scalars(stmt)]
        except (SQLAlchemyError, ValueError) as exc:
            raise CollaboratorReadError("absence ledger", str(exc)) from exc

    def exceptions_on(self, day: date) -> set[int]:
        try:
            with self._session_factory() as session:
                stmt = select(AssignmentExceptionModel.assignment_id).where(
                    AssignmentExceptionModel.day == day
                )
                return set(session.scalars(stmt))
        except SQLAlchemyError as exc:
            raise CollaboratorReadError("exception ledger", str(exc)) from exc

    def get_location(self, location_id: int) -> Optional[Location]:
        with self._session_factory() as session:
            location = session.get(LocationModel, location_id)
            return _location_to_entity(location) if location else None


class TaskRepository:
    def __init__(self, session_factory=SessionLocal) -> None:
        self._session_factory = session_factory

    def insert_ignore(self, candidates: Iterable[TaskCandidate]) -> int:
        """Insert candidates, silently skipping (assignment, date) pairs that exist.

        All chunks share one transaction. Returns the number of rows created.
        """
        created_at = utcnow()
        rows = [_candidate_row(candidate, created_at) for candidate in candidates]
        if not rows:
            return 0

        created = 0
        with self._session_factory() as session:
            insert = _DIALECT_INSERTS.get(session.get_bind().dialect.name)
            if insert is None:
                raise RuntimeError(
                    f"Unsupported database dialect: {session.get_bind().dialect.name}"
                )
            for start in range(0, len(rows), INSERT_CHUNK_SIZE):
                stmt = (
                    insert(TaskInstanceModel)
                    .values(rows[start:start + INSERT_CHUNK_SIZE])
                    .on_conflict_do_nothing(index_elements=["assignment_id", "scheduled_date"])
                    .returning(TaskInstanceModel.id)
                )
                created += len(session.execute(stmt).all())
            session.commit()
        return created

    def get_task(self, task_id: int) -> Optional[TaskInstance]:
        with self._session_factory() as session:
            task = session.get(TaskInstanceModel, task_id)
            return _task_to_entity(task) if task else None

    def list_tasks(self, filters: TaskFilters) -> list[TaskInstance]:
        with self._session_factory() as session:
            stmt = select(TaskInstanceModel)
            stmt = _apply_filters(stmt, filters)
            stmt = stmt.order_by(
                TaskInstanceModel.scheduled_date.desc(),
                TaskInstanceModel.priority_snapshot.desc(),
                TaskInstanceModel.due_at.asc(),
                TaskInstanceModel.id.asc(),
            )
            return [_task_to_entity(task) for task in session.scalars(stmt)]

    def transition(self, task_id: int, allowed: Iterable[TaskStatus], data: dict) -> Optional[TaskInstance]:
        """Apply ``data`` only while the task is still in one of ``allowed``.

        The status check and the write happen in a single UPDATE, so whichever
        concurrent writer commits first wins. Returns None when the row moved on.
        """
        with self._session_factory() as session:
            result = session.execute(
                update(TaskInstanceModel)
                .where(
                    TaskInstanceModel.id == task_id,
                    TaskInstanceModel.status.in_([status.value for status in allowed]),
                )
                .values(**data)
                .execution_options(synchronize_session=False)
            )
            session.commit()
            if result.rowcount != 1:
                return None
            return _task_to_entity(session.get(TaskInstanceModel, task_id))

    def cancel(self, task_id: int, data: dict, deactivate_note: str | None = None) -> Optional[TaskInstance]:
        with self._session_factory() as session:
            result = session.execute(
                update(TaskInstanceModel)
                .where(
                    TaskInstanceModel.id == task_id,
                    TaskInstanceModel.status.in_(OPEN_VALUES),
                )
                .values(**data)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                session.rollback()
                return None
            task = session.get(TaskInstanceModel, task_id)
            if deactivate_note is not None:
                session.execute(
                    update(AssignmentModel)
                    .where(AssignmentModel.id == task.assignment_id)
                    .values(status=AssignmentStatus.INACTIVE.value, notes=deactivate_note)
                    .execution_options(synchronize_session=False)
                )
            session.commit()
            session.refresh(task)
            return _task_to_entity(task)

    def record_audit(self, task_id: int, data: dict) -> Optional[TaskInstance]:
        with self._session_factory() as session:
            result = session.execute(
                update(TaskInstanceModel)
                .where(
                    TaskInstanceModel.id == task_id,
                    TaskInstanceModel.status.in_(COMPLETED_VALUES),
                    TaskInstanceModel.audit_status == AuditStatus.PENDING.value,
                )
                .values(**data)
                .execution_options(synchronize_session=False)
            )
            session.commit()
            if result.rowcount != 1:
                return None
            return _task_to_entity(session.get(TaskInstanceModel, task_id))

    def mark_missed(self, now: datetime) -> int:
        with self._session_factory() as session:
            result = session.execute(
                update(TaskInstanceModel)
                .where(
                    TaskInstanceModel.status.in_(OPEN_VALUES),
                    TaskInstanceModel.due_at < to_storage(now),
                )
                .values(status=TaskStatus.MISSED.value)
                .execution_options(synchronize_session=False)
            )
            session.commit()
            return result.rowcount or 0

    def count_by_status(self, filters: TaskFilters) -> dict[TaskStatus, int]:
        with self._session_factory() as session:
            stmt = select(TaskInstanceModel.status, func.count().label("count"))
            stmt = _apply_filters(stmt, filters).group_by(TaskInstanceModel.status)
            return {TaskStatus(row.status): row.count for row in session.execute(stmt)}


class AuditLogRepository:
    def __init__(self, session_factory=SessionLocal) -> None:
        self._session_factory = session_factory

    def record(
        self,
        actor_id: str,
        action: str,
        table_name: str,
        record_id: object = None,
        payload: dict | None = None,
    ) -> None:
        with self._session_factory() as session:
            session.add(
                SystemAuditLogModel(
                    actor_id=actor_id,
                    action=action,
                    table_name=table_name,
                    record_id=str(record_id) if record_id is not None else None,
                    payload=json.dumps(payload or {}, default=str),
                )
            )
            session.commit()

    def list_entries(self, action: str | None = None) -> list[dict]:
        with self._session_factory() as session:
            stmt = select(SystemAuditLogModel).order_by(SystemAuditLogModel.id.asc())
            if action:
                stmt = stmt.where(SystemAuditLogModel.action == action)
            return [
                {
                    "actor_id": entry.actor_id,
                    "action": entry.action,
                    "table_name": entry.table_name,
                    "record_id": entry.record_id,
                    "payload": json.loads(entry.payload),
                    "created_at": entry.created_at,
                }
                for entry in session.scalars(stmt)
            ]
