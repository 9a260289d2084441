from __future__ import annotations

from datetime import date, datetime, time
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import update

from routines.domain.enums import AbsencePolicy, Frequency, PriorityLevel, SkipReason, TaskStatus
from routines.domain.errors import CollaboratorReadError
from routines.domain.filters import TaskFilters
from routines.infra.db import Base
from routines.infra.models import AbsenceModel, ResponsibleBindingModel, RoutineModel
from routines.infra.repository import CatalogRepository
from routines.services.materializer import TaskMaterializer

TZ = ZoneInfo("America/Bogota")


def all_tasks(task_repo):
    return task_repo.list_tasks(TaskFilters())


def test_daily_routine_creates_snapshotted_instance(catalog, materializer, task_repo) -> None:
    ids = catalog.store(Frequency.DAILY, priority=PriorityLevel.CRITICAL, gps_required=True)

    result = materializer.run(date(2026, 6, 3))

    assert result.created == 1
    assert result.candidates == 1
    assert result.skipped == []
    [task] = all_tasks(task_repo)
    assert task.assignment_id == ids["assignment_id"]
    assert task.location_id == ids["location_id"]
    assert task.responsible_id == "ana"
    assert task.scheduled_date == date(2026, 6, 3)
    assert task.due_at == datetime(2026, 6, 3, 18, 0, tzinfo=TZ)
    assert task.status == TaskStatus.PENDING
    assert task.snapshot.priority == PriorityLevel.CRITICAL
    assert task.snapshot.start_time == time(8, 0)
    assert task.snapshot.due_time == time(18, 0)
    assert task.snapshot.gps_required is True


def test_rerun_same_date_creates_nothing(catalog, materializer, task_repo) -> None:
    catalog.store(Frequency.DAILY)
    catalog.store(Frequency.DAILY, actor_id="luis")

    first = materializer.run(date(2026, 6, 3))
    second = materializer.run(date(2026, 6, 3))

    assert first.created == 2
    assert second.created == 0
    assert second.candidates == 2
    assert len(all_tasks(task_repo)) == 2


def test_concurrent_runs_share_the_store_without_duplicates(session_factory, catalog, task_repo) -> None:
    catalog.store(Frequency.DAILY)
    first = TaskMaterializer(CatalogRepository(session_factory), task_repo, TZ)
    second = TaskMaterializer(CatalogRepository(session_factory), task_repo, TZ)

    planned_first, _ = first.plan(date(2026, 6, 3))
    planned_second, _ = second.plan(date(2026, 6, 3))

    assert task_repo.insert_ignore(planned_first) == 1
    assert task_repo.insert_ignore(planned_second) == 0
    assert len(all_tasks(task_repo)) == 1


def test_monthly_instance_opens_on_day_one(catalog, materializer, task_repo) -> None:
    catalog.store(Frequency.MONTHLY, monthly_due_day=5)

    assert materializer.run(date(2026, 6, 3)).created == 1
    assert materializer.run(date(2026, 6, 4)).created == 0
    assert materializer.run(date(2026, 6, 6)).candidates == 0

    [task] = all_tasks(task_repo)
    assert task.scheduled_date == date(2026, 6, 1)
    assert task.due_at == datetime(2026, 6, 5, 18, 0, tzinfo=TZ)


def test_monthly_due_day_clamped_in_short_month(catalog, materializer, task_repo) -> None:
    catalog.store(Frequency.MONTHLY, monthly_due_day=31)

    materializer.run(date(2026, 9, 30))
    materializer.run(date(2026, 2, 10))

    due_dates = sorted(task.due_at.astimezone(TZ).date() for task in all_tasks(task_repo))
    assert due_dates == [date(2026, 2, 28), date(2026, 9, 30)]


def test_biweekly_boundary_creates_two_instances(catalog, materializer, task_repo) -> None:
    catalog.store(Frequency.BIWEEKLY, cutoff_1_day=10, cutoff_2_day=31)

    assert materializer.run(date(2026, 6, 15)).created == 1
    assert materializer.run(date(2026, 6, 16)).created == 1

    tasks = sorted(all_tasks(task_repo), key=lambda t: t.scheduled_date)
    assert [t.scheduled_date for t in tasks] == [date(2026, 6, 1), date(2026, 6, 16)]
    assert [t.due_at.astimezone(TZ).date() for t in tasks] == [date(2026, 6, 10), date(2026, 6, 30)]


def test_weekly_and_specific_dates(catalog, materializer, task_repo) -> None:
    catalog.store(Frequency.WEEKLY, execution_days="1")
    catalog.store(Frequency.SPECIFIC_DATES, actor_id="luis", specific_dates="2026-06-02,2026-06-20")

    assert materializer.run(date(2026, 6, 1)).created == 1
    assert materializer.run(date(2026, 6, 2)).created == 1
    assert materializer.run(date(2026, 6, 3)).created == 0
    assert len(all_tasks(task_repo)) == 2


def test_omit_absence_suppresses_instance(catalog, materializer, task_repo) -> None:
    ids = catalog.store(Frequency.DAILY)
    catalog.absence("ana", date(2026, 6, 1), date(2026, 6, 5), AbsencePolicy.OMIT)

    result = materializer.run(date(2026, 6, 3))

    assert result.created == 0
    assert [(s.assignment_id, s.reason) for s in result.skipped] == [
        (ids["assignment_id"], SkipReason.ABSENT_OMITTED)
    ]
    assert all_tasks(task_repo) == []


def test_reassign_absence_uses_receptor(catalog, materializer, task_repo) -> None:
    catalog.store(Frequency.DAILY)
    catalog.absence("ana", date(2026, 6, 1), date(2026, 6, 5), AbsencePolicy.REASSIGN, receptor_id="luis")

    materializer.run(date(2026, 6, 3))
    materializer.run(date(2026, 6, 6))

    owners = {task.scheduled_date: task.responsible_id for task in all_tasks(task_repo)}
    assert owners == {date(2026, 6, 3): "luis", date(2026, 6, 6): "ana"}


def test_exception_suppresses_even_when_everything_else_succeeds(catalog, materializer, task_repo) -> None:
    ids = catalog.store(Frequency.DAILY)
    catalog.exception(ids["assignment_id"], date(2026, 6, 3), reason="inventory day")

    result = materializer.run(date(2026, 6, 3))

    assert result.created == 0
    assert result.skipped[0].reason == SkipReason.EXCEPTION
    assert materializer.run(date(2026, 6, 4)).created == 1


def test_exception_is_reported_on_a_day_the_routine_is_not_due(catalog, materializer) -> None:
    ids = catalog.store(Frequency.WEEKLY, execution_days="1")
    catalog.exception(ids["assignment_id"], date(2026, 6, 3), reason="store closed")

    result = materializer.run(date(2026, 6, 3))

    assert result.candidates == 0
    assert [(s.assignment_id, s.reason) for s in result.skipped] == [
        (ids["assignment_id"], SkipReason.EXCEPTION)
    ]


def test_malformed_routines_are_skipped_without_blocking_the_run(
    session_factory, catalog, materializer, task_repo
) -> None:
    good = catalog.store(Frequency.DAILY)
    bad_days = catalog.store(Frequency.WEEKLY, actor_id="luis", execution_days="1")
    legacy = catalog.store(Frequency.DAILY, actor_id="pedro")
    bad_priority = catalog.store(Frequency.DAILY, actor_id="sofia")
    with session_factory() as session:
        for routine_id, values in (
            (bad_days["routine_id"], {"execution_days": "mon"}),
            (legacy["routine_id"], {"frequency": "quincenal"}),
            (bad_priority["routine_id"], {"priority": 9}),
        ):
            session.execute(update(RoutineModel).where(RoutineModel.id == routine_id).values(**values))
        session.commit()

    result = materializer.run(date(2026, 6, 3))

    assert result.created == 1
    assert sorted((s.assignment_id, s.reason) for s in result.skipped) == [
        (bad_days["assignment_id"], SkipReason.INVALID_ROUTINE),
        (legacy["assignment_id"], SkipReason.INVALID_ROUTINE),
        (bad_priority["assignment_id"], SkipReason.INVALID_ROUTINE),
    ]
    [task] = all_tasks(task_repo)
    assert task.assignment_id == good["assignment_id"]


def test_malformed_absence_aborts_the_run(session_factory, catalog, materializer, task_repo) -> None:
    catalog.store(Frequency.DAILY)
    catalog.absence("ana", date(2026, 6, 1), date(2026, 6, 5), policy=AbsencePolicy.OMIT)
    catalog.absence("luis", date(2026, 6, 1), date(2026, 6, 5), policy=AbsencePolicy.OMIT)
    with session_factory() as session:
        session.execute(update(AbsenceModel).values(policy="vacation"))
        session.commit()

    with pytest.raises(CollaboratorReadError) as excinfo:
        materializer.run(date(2026, 6, 3))
    assert excinfo.value.source == "absence ledger"
    assert all_tasks(task_repo) == []


def test_location_without_responsible_is_reported(catalog, materializer) -> None:
    ids = catalog.store(Frequency.DAILY, actor_id=None)
    catalog.responsible(ids["location_id"], "former", is_current=False)

    result = materializer.run(date(2026, 6, 3))

    assert result.created == 0
    assert result.skipped[0].reason == SkipReason.NO_RESPONSIBLE


def test_inactive_routine_and_assignment_are_ignored(catalog, materializer) -> None:
    catalog.store(Frequency.DAILY, active=False)
    routine_id = catalog.routine(Frequency.DAILY)
    location_id = catalog.location()
    catalog.responsible(location_id, "ana")
    catalog.assign(routine_id, location_id, status="inactive")

    result = materializer.run(date(2026, 6, 3))

    assert result.candidates == 0
    assert result.skipped == []


def test_instances_keep_their_snapshot(session_factory, catalog, materializer, task_repo) -> None:
    ids = catalog.store(Frequency.MONTHLY, monthly_due_day=20)
    materializer.run(date(2026, 6, 3))

    with session_factory() as session:
        session.execute(
            update(RoutineModel)
            .where(RoutineModel.id == ids["routine_id"])
            .values(priority=int(PriorityLevel.LOW), due_time=time(9, 0), name="Renamed")
        )
        session.execute(
            update(ResponsibleBindingModel)
            .where(ResponsibleBindingModel.location_id == ids["location_id"])
            .values(is_current=False)
        )
        session.commit()
    catalog.responsible(ids["location_id"], "luis")

    assert materializer.run(date(2026, 6, 4)).created == 0
    [task] = all_tasks(task_repo)
    assert task.responsible_id == "ana"
    assert task.snapshot.routine_name == "Open store checklist"
    assert task.snapshot.priority == PriorityLevel.MEDIUM
    assert task.snapshot.due_time == time(18, 0)


class BrokenCatalog(CatalogRepository):
    def exceptions_on(self, day: date) -> set[int]:
        raise CollaboratorReadError("exception ledger", "connection reset")


def test_read_failure_aborts_the_whole_run(session_factory, catalog, task_repo) -> None:
    catalog.store(Frequency.DAILY)
    materializer = TaskMaterializer(BrokenCatalog(session_factory), task_repo, TZ)

    with pytest.raises(CollaboratorReadError):
        materializer.run(date(2026, 6, 3))
    assert all_tasks(task_repo) == []


def test_storage_errors_surface_as_collaborator_errors(session_factory, catalog, materializer) -> None:
    catalog.store(Frequency.DAILY)
    Base.metadata.tables["absences"].drop(session_factory.kw["bind"])

    with pytest.raises(CollaboratorReadError) as excinfo:
        materializer.run(date(2026, 6, 3))
    assert excinfo.value.source == "absence ledger"


def test_run_is_recorded_in_audit_log(catalog, materializer, audit_log) -> None:
    catalog.store(Frequency.DAILY)
    materializer.run(date(2026, 6, 3), triggered_by="director-1")

    [entry] = audit_log.list_entries("generate_tasks")
    assert entry["actor_id"] == "director-1"
    assert entry["payload"] == {"date": "2026-06-03", "candidates": 1, "created": 1, "skipped": 0}
