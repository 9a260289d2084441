from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable
from zoneinfo import ZoneInfo

from routines.config import SETTINGS, Settings
from routines.infra.db import SessionLocal
from routines.infra.repository import AuditLogRepository, CatalogRepository, TaskRepository

from .audit_service import AuditService
from .materializer import TaskMaterializer
from .task_service import TaskService, utc_now


@dataclass(frozen=True)
class Services:
    timezone: ZoneInfo
    materializer: TaskMaterializer
    tasks: TaskService
    audits: AuditService


def build_services(
    session_factory=SessionLocal,
    settings: Settings = SETTINGS,
    clock: Callable[[], datetime] = utc_now,
) -> Services:
    tz = ZoneInfo(settings.operating_timezone)
    catalog = CatalogRepository(session_factory)
    tasks = TaskRepository(session_factory)
    audit_log = AuditLogRepository(session_factory)
    return Services(
        timezone=tz,
        materializer=TaskMaterializer(catalog, tasks, tz, audit_log=audit_log),
        tasks=TaskService(
            tasks,
            catalog,
            audit_log=audit_log,
            clock=clock,
            default_gps_radius_m=settings.default_gps_radius_m,
        ),
        audits=AuditService(tasks, audit_log=audit_log, clock=clock),
    )
