from __future__ import annotations

from datetime import date

import pytest

from routines.domain.entities import (
    BiweeklySchedule,
    DailySchedule,
    MonthlySchedule,
    RoutineDefinition,
    SpecificDatesSchedule,
    WeeklySchedule,
)
from routines.domain.enums import Frequency
from routines.domain.schedule import days_in_month, is_due, sunday_based_weekday


def routine(schedule) -> RoutineDefinition:
    return RoutineDefinition(id=1, name="Checklist", schedule=schedule)


def test_sunday_based_weekday() -> None:
    assert sunday_based_weekday(date(2026, 6, 7)) == 0  # Sunday
    assert sunday_based_weekday(date(2026, 6, 1)) == 1  # Monday
    assert sunday_based_weekday(date(2026, 6, 6)) == 6  # Saturday


def test_days_in_month_handles_february_and_december() -> None:
    assert days_in_month(2026, 2) == 28
    assert days_in_month(2028, 2) == 29
    assert days_in_month(2026, 12) == 31
    assert days_in_month(2026, 9) == 30


def test_daily_without_days_runs_every_day() -> None:
    decision = is_due(routine(DailySchedule()), date(2026, 6, 7))
    assert decision.due
    assert decision.anchor_date == date(2026, 6, 7)


def test_daily_with_days_only_runs_on_those_days() -> None:
    weekdays = routine(DailySchedule(frozenset({1, 2, 3, 4, 5})))
    assert is_due(weekdays, date(2026, 6, 1)).due
    assert not is_due(weekdays, date(2026, 6, 7)).due


def test_weekly_requires_matching_day() -> None:
    mondays = routine(WeeklySchedule(frozenset({1})))
    decision = is_due(mondays, date(2026, 6, 8))
    assert decision.due
    assert decision.anchor_date == date(2026, 6, 8)
    assert not is_due(mondays, date(2026, 6, 9)).due


def test_weekly_without_days_never_runs() -> None:
    assert not is_due(routine(WeeklySchedule()), date(2026, 6, 8)).due


def test_monthly_anchors_on_first_of_month_inside_window() -> None:
    monthly = routine(MonthlySchedule(due_day=5))
    for day in (1, 3, 5):
        decision = is_due(monthly, date(2026, 6, day))
        assert decision.due
        assert decision.anchor_date == date(2026, 6, 1)
    assert not is_due(monthly, date(2026, 6, 6)).due


def test_monthly_due_day_beyond_month_is_clamped() -> None:
    monthly = routine(MonthlySchedule(due_day=31))
    decision = is_due(monthly, date(2026, 2, 28))
    assert decision.due
    assert decision.anchor_date == date(2026, 2, 1)


def test_monthly_without_due_day_covers_whole_month() -> None:
    assert is_due(routine(MonthlySchedule()), date(2026, 9, 30)).due


@pytest.mark.parametrize(
    ("target", "anchor"),
    [
        (date(2026, 6, 1), date(2026, 6, 1)),
        (date(2026, 6, 15), date(2026, 6, 1)),
        (date(2026, 6, 16), date(2026, 6, 16)),
        (date(2026, 6, 30), date(2026, 6, 16)),
    ],
)
def test_biweekly_anchors_on_period_start(target: date, anchor: date) -> None:
    decision = is_due(routine(BiweeklySchedule(cutoff_1=10, cutoff_2=25)), target)
    assert decision.due
    assert decision.anchor_date == anchor


def test_specific_dates_match_exactly() -> None:
    specific = routine(SpecificDatesSchedule(frozenset({date(2026, 6, 10), date(2026, 7, 1)})))
    assert is_due(specific, date(2026, 6, 10)).anchor_date == date(2026, 6, 10)
    assert not is_due(specific, date(2026, 6, 11)).due


def test_frequency_is_derived_from_schedule_type() -> None:
    assert routine(BiweeklySchedule()).frequency == Frequency.BIWEEKLY
    assert routine(SpecificDatesSchedule()).frequency == Frequency.SPECIFIC_DATES
