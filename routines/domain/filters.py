from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from .enums import TaskStatus


@dataclass(frozen=True)
class TaskFilters:
    status: Optional[TaskStatus] = None
    location_id: int | None = None
    responsible_id: str | None = None
    scheduled_from: Optional[date] = None
    scheduled_to: Optional[date] = None
    include_cancelled: bool = True
