"""Entry points used by the scheduler, the CLI and the HTTP API.

Results are plain dicts shaped for JSON so every caller reports the same thing.
"""
from __future__ import annotations

import re
from datetime import date, datetime
from zoneinfo import ZoneInfo

from routines.domain.errors import InputError

from .materializer import TaskMaterializer
from .task_service import TaskService, utc_now

ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def operating_today(tz: ZoneInfo, now: datetime | None = None) -> date:
    return (now or utc_now()).astimezone(tz).date()


def parse_target_date(raw: str | None, tz: ZoneInfo, now: datetime | None = None) -> date:
    if raw is None or not str(raw).strip():
        return operating_today(tz, now)
    raw = str(raw).strip()
    if not ISO_DATE.match(raw):
        raise InputError("Date must be YYYY-MM-DD")
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise InputError(f"Invalid date: {raw}") from exc


def generate_tasks(
    materializer: TaskMaterializer,
    raw_date: str | None,
    tz: ZoneInfo,
    triggered_by: str = "scheduler",
    now: datetime | None = None,
) -> dict:
    target = parse_target_date(raw_date, tz, now)
    result = materializer.run(target, triggered_by=triggered_by)
    return {
        "success": True,
        "date": target.isoformat(),
        "generatedCount": result.created,
        "message": (
            f"Generated {result.created} of {result.candidates} due tasks for {target.isoformat()}; "
            f"{len(result.skipped)} skipped."
        ),
        "skipReasons": [
            {"assignmentId": skip.assignment_id, "reason": skip.reason.value}
            for skip in result.skipped
        ],
    }


def close_overdue_tasks(service: TaskService) -> dict:
    result = service.close_overdue()
    return {
        "updatedCount": result.updated,
        "message": f"Marked {result.updated} tasks as missed at {result.closed_at.isoformat()}",
    }
