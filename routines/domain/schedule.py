"""Decide whether a routine is due on a given date and which period it belongs to.

The anchor date is the identity of a task instance: daily, weekly and
specific-date routines anchor on the target date itself, monthly routines on
the first of the month and biweekly routines on the 1st or the 16th. Repeated
runs inside the same period resolve to the same anchor, which is what keeps
materialization idempotent.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from .entities import (
    BiweeklySchedule,
    DailySchedule,
    MonthlySchedule,
    RoutineDefinition,
    SpecificDatesSchedule,
    WeeklySchedule,
)

FIRST_PERIOD_LAST_DAY = 15
SECOND_PERIOD_FIRST_DAY = 16
DEFAULT_MONTHLY_DUE_DAY = 31


@dataclass(frozen=True)
class ScheduleDecision:
    due: bool
    anchor_date: Optional[date] = None


NOT_DUE = ScheduleDecision(due=False)


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - timedelta(days=1)).day


def last_day_of_month(day: date) -> int:
    return days_in_month(day.year, day.month)


def sunday_based_weekday(day: date) -> int:
    """0 = Sunday ... 6 = Saturday, the numbering execution days are stored in."""
    return (day.weekday() + 1) % 7


def period_anchor(day: date) -> date:
    if day.day <= FIRST_PERIOD_LAST_DAY:
        return day.replace(day=1)
    return day.replace(day=SECOND_PERIOD_FIRST_DAY)


def is_due(routine: RoutineDefinition, target: date) -> ScheduleDecision:
    rule = routine.schedule

    if isinstance(rule, DailySchedule):
        if not rule.days or sunday_based_weekday(target) in rule.days:
            return ScheduleDecision(True, target)
        return NOT_DUE

    if isinstance(rule, WeeklySchedule):
        if sunday_based_weekday(target) in rule.days:
            return ScheduleDecision(True, target)
        return NOT_DUE

    if isinstance(rule, MonthlySchedule):
        due_day = min(rule.due_day or DEFAULT_MONTHLY_DUE_DAY, last_day_of_month(target))
        if target.day <= due_day:
            return ScheduleDecision(True, target.replace(day=1))
        return NOT_DUE

    if isinstance(rule, BiweeklySchedule):
        return ScheduleDecision(True, period_anchor(target))

    if isinstance(rule, SpecificDatesSchedule):
        if target in rule.dates:
            return ScheduleDecision(True, target)
        return NOT_DUE

    raise TypeError(f"Unsupported schedule rule: {type(rule).__name__}")
