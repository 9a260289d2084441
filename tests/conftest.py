from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from datetime import date, datetime, time, timezone  # noqa: E402
from zoneinfo import ZoneInfo  # noqa: E402

import pytest  # noqa: E402

from routines.domain.enums import AbsencePolicy, Frequency, PriorityLevel  # noqa: E402
from routines.infra.db import Base, make_engine, make_session_factory  # noqa: E402
from routines.infra.models import (  # noqa: E402
    AbsenceModel,
    AssignmentExceptionModel,
    AssignmentModel,
    LocationModel,
    ResponsibleBindingModel,
    RoutineModel,
)
from routines.infra.repository import AuditLogRepository, CatalogRepository, TaskRepository  # noqa: E402
from routines.services.materializer import TaskMaterializer  # noqa: E402
from routines.services.task_service import TaskService  # noqa: E402

TZ = ZoneInfo("America/Bogota")


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set_local(self, year: int, month: int, day: int, hour: int = 0, minute: int = 0, second: int = 0) -> None:
        self.now = datetime(year, month, day, hour, minute, second, tzinfo=TZ)


class CatalogBuilder:
    """Seeds the leaf tables the materializer reads from."""

    def __init__(self, session_factory) -> None:
        self._session_factory = session_factory

    def _add(self, model):
        with self._session_factory() as session:
            session.add(model)
            session.commit()
            session.refresh(model)
            return model.id

    def routine(
        self,
        frequency: Frequency = Frequency.DAILY,
        name: str = "Open store checklist",
        execution_days: str = "",
        monthly_due_day: int | None = None,
        cutoff_1_day: int | None = None,
        cutoff_2_day: int | None = None,
        specific_dates: str = "",
        due_time: time | None = time(18, 0),
        start_time: time | None = time(8, 0),
        priority: PriorityLevel = PriorityLevel.MEDIUM,
        gps_required: bool = False,
        active: bool = True,
    ) -> int:
        return self._add(
            RoutineModel(
                name=name,
                frequency=frequency.value,
                execution_days=execution_days,
                monthly_due_day=monthly_due_day,
                cutoff_1_day=cutoff_1_day,
                cutoff_2_day=cutoff_2_day,
                specific_dates=specific_dates,
                due_time=due_time,
                start_time=start_time,
                priority=int(priority),
                gps_required=gps_required,
                active=active,
            )
        )

    def location(
        self,
        name: str = "Store 1",
        latitude: float | None = None,
        longitude: float | None = None,
        gps_radius_m: int | None = None,
    ) -> int:
        return self._add(
            LocationModel(name=name, latitude=latitude, longitude=longitude, gps_radius_m=gps_radius_m)
        )

    def assign(self, routine_id: int, location_id: int, status: str = "active") -> int:
        return self._add(AssignmentModel(routine_id=routine_id, location_id=location_id, status=status))

    def responsible(self, location_id: int, actor_id: str, is_current: bool = True) -> int:
        return self._add(
            ResponsibleBindingModel(location_id=location_id, actor_id=actor_id, is_current=is_current)
        )

    def absence(
        self,
        actor_id: str,
        date_from: date,
        date_to: date,
        policy: AbsencePolicy = AbsencePolicy.OMIT,
        receptor_id: str | None = None,
    ) -> int:
        return self._add(
            AbsenceModel(
                actor_id=actor_id,
                date_from=date_from,
                date_to=date_to,
                policy=policy.value,
                receptor_id=receptor_id,
            )
        )

    def exception(self, assignment_id: int, day: date, reason: str = "") -> int:
        return self._add(AssignmentExceptionModel(assignment_id=assignment_id, day=day, reason=reason))

    def store(self, frequency: Frequency = Frequency.DAILY, actor_id: str | None = "ana", **routine_kwargs) -> dict:
        """One routine assigned to one location, optionally with a responsible actor."""
        routine_id = self.routine(frequency=frequency, **routine_kwargs)
        location_id = self.location()
        assignment_id = self.assign(routine_id, location_id)
        if actor_id:
            self.responsible(location_id, actor_id)
        return {"routine_id": routine_id, "location_id": location_id, "assignment_id": assignment_id}


@pytest.fixture
def session_factory():
    engine = make_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def catalog(session_factory) -> CatalogBuilder:
    return CatalogBuilder(session_factory)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def task_repo(session_factory) -> TaskRepository:
    return TaskRepository(session_factory)


@pytest.fixture
def audit_log(session_factory) -> AuditLogRepository:
    return AuditLogRepository(session_factory)


@pytest.fixture
def materializer(session_factory, task_repo, audit_log) -> TaskMaterializer:
    return TaskMaterializer(CatalogRepository(session_factory), task_repo, TZ, audit_log=audit_log)


@pytest.fixture
def task_service(session_factory, task_repo, audit_log, clock) -> TaskService:
    return TaskService(task_repo, CatalogRepository(session_factory), audit_log=audit_log, clock=clock)
