from __future__ import annotations

from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from .entities import BiweeklySchedule, MonthlySchedule, RoutineDefinition
from .schedule import DEFAULT_MONTHLY_DUE_DAY, FIRST_PERIOD_LAST_DAY, last_day_of_month

END_OF_DAY = time(23, 59, 59)
DEFAULT_FIRST_CUTOFF = 15
DEFAULT_SECOND_CUTOFF = 30


def due_date_for(routine: RoutineDefinition, anchor: date) -> date:
    rule = routine.schedule
    last_day = last_day_of_month(anchor)

    if isinstance(rule, MonthlySchedule):
        day = min(rule.due_day or DEFAULT_MONTHLY_DUE_DAY, last_day)
    elif isinstance(rule, BiweeklySchedule):
        if anchor.day <= FIRST_PERIOD_LAST_DAY:
            day = min(rule.cutoff_1 or DEFAULT_FIRST_CUTOFF, FIRST_PERIOD_LAST_DAY)
        else:
            day = min(rule.cutoff_2 or DEFAULT_SECOND_CUTOFF, last_day)
    else:
        day = anchor.day

    return anchor.replace(day=day)


def compute_due_at(routine: RoutineDefinition, anchor: date, tz: ZoneInfo) -> datetime:
    """Absolute deadline for the instance anchored on ``anchor``.

    Depends only on its arguments, never on the current time.
    """
    due_time = routine.due_time or END_OF_DAY
    return datetime.combine(due_date_for(routine, anchor), due_time, tzinfo=tz)
