from __future__ import annotations

from datetime import date

from routines.domain.entities import Absence
from routines.domain.enums import AbsencePolicy, SkipReason
from routines.domain.responsible import ResponsibleResolver

DAY = date(2026, 6, 3)


def absence(policy: AbsencePolicy, receptor: str | None = None, **kwargs) -> Absence:
    defaults = {"id": 1, "actor_id": "ana", "date_from": date(2026, 6, 1), "date_to": date(2026, 6, 5)}
    defaults.update(kwargs)
    return Absence(policy=policy, receptor_id=receptor, **defaults)


def test_location_without_responsible_is_skipped() -> None:
    resolution = ResponsibleResolver({}, []).resolve(10, DAY)
    assert resolution.skipped
    assert resolution.skip_reason == SkipReason.NO_RESPONSIBLE


def test_present_actor_keeps_task() -> None:
    resolution = ResponsibleResolver({10: "ana"}, []).resolve(10, DAY)
    assert resolution.actor_id == "ana"
    assert not resolution.skipped


def test_omit_absence_skips() -> None:
    resolution = ResponsibleResolver({10: "ana"}, [absence(AbsencePolicy.OMIT)]).resolve(10, DAY)
    assert resolution.skip_reason == SkipReason.ABSENT_OMITTED


def test_reassign_absence_hands_task_to_receptor() -> None:
    resolver = ResponsibleResolver({10: "ana"}, [absence(AbsencePolicy.REASSIGN, "luis")])
    assert resolver.resolve(10, DAY).actor_id == "luis"


def test_absence_outside_range_is_ignored() -> None:
    resolver = ResponsibleResolver({10: "ana"}, [absence(AbsencePolicy.OMIT)])
    assert resolver.resolve(10, date(2026, 6, 6)).actor_id == "ana"


def test_absence_range_is_inclusive() -> None:
    resolver = ResponsibleResolver({10: "ana"}, [absence(AbsencePolicy.OMIT)])
    assert resolver.resolve(10, date(2026, 6, 1)).skipped
    assert resolver.resolve(10, date(2026, 6, 5)).skipped


def test_reassign_without_receptor_keeps_original_owner() -> None:
    resolver = ResponsibleResolver({10: "ana"}, [absence(AbsencePolicy.REASSIGN)])
    assert resolver.resolve(10, DAY).actor_id == "ana"


def test_latest_absence_wins_when_overlapping() -> None:
    resolver = ResponsibleResolver(
        {10: "ana"},
        [
            absence(AbsencePolicy.OMIT, id=1, date_from=date(2026, 5, 25)),
            absence(AbsencePolicy.REASSIGN, "luis", id=2, date_from=date(2026, 6, 2)),
        ],
    )
    assert resolver.resolve(10, DAY).actor_id == "luis"


def test_absence_of_other_actor_does_not_apply() -> None:
    resolver = ResponsibleResolver({10: "ana"}, [absence(AbsencePolicy.OMIT, actor_id="pedro")])
    assert resolver.resolve(10, DAY).actor_id == "ana"
