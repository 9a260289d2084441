"""HTTP surface for the scheduler, the nightly closer and operator actions.

Callers present ``Authorization: Bearer <token>`` where the token is either
the scheduler's shared secret or a configured operator key. Each operator
key carries a role: directors and leaders may cancel, directors, leaders and
auditors may audit, and anyone else may only work on tasks they are
responsible for.
"""

from __future__ import annotations

import dataclasses
import hmac
import logging
from dataclasses import dataclass
from datetime import date
from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import Body, Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from routines.config import SETTINGS, Settings
from routines.domain.entities import GpsReading, TaskInstance
from routines.domain.enums import AuditStatus, CancelScope, Role, TaskStatus
from routines.domain.errors import (
    CollaboratorReadError,
    InputError,
    InvalidTransition,
    PermissionDenied,
    TaskNotFound,
    ValidationError,
)
from routines.domain.filters import TaskFilters
from routines.services.container import Services, build_services
from routines.services.triggers import close_overdue_tasks, generate_tasks

logger = logging.getLogger(__name__)

app = FastAPI(title="Routine Task Engine API", version="0.1")


@dataclass(frozen=True)
class Caller:
    actor_id: str
    role: Optional[Role] = None
    is_scheduler: bool = False


def get_settings() -> Settings:
    return SETTINGS


@lru_cache(maxsize=1)
def get_services() -> Services:
    return build_services()


def get_caller(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> Caller:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing Authorization header")
    token = authorization[len("Bearer "):].strip()

    if settings.scheduler_secret and hmac.compare_digest(token, settings.scheduler_secret):
        return Caller(actor_id="scheduler", is_scheduler=True)

    for key, operator in settings.operator_keys.items():
        if hmac.compare_digest(token, key):
            return Caller(actor_id=operator.actor_id, role=operator.role)

    logger.warning("Rejected request with an unknown token")
    raise HTTPException(status_code=401, detail="Invalid credentials")


def require_operator(caller: Caller = Depends(get_caller)) -> Caller:
    if caller.is_scheduler:
        raise HTTPException(status_code=403, detail="This action requires an operator")
    return caller


def require_scheduler(caller: Caller = Depends(get_caller)) -> Caller:
    if not caller.is_scheduler:
        raise HTTPException(status_code=403, detail="Only the scheduler may run the nightly close")
    return caller


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message, **extra})


@app.exception_handler(InputError)
async def _input_error(request: Request, exc: InputError) -> JSONResponse:
    return _error(400, str(exc))


@app.exception_handler(ValidationError)
async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return _error(400, str(exc))


@app.exception_handler(PermissionDenied)
async def _permission_denied(request: Request, exc: PermissionDenied) -> JSONResponse:
    logger.warning("Denied %s %s: %s", request.method, request.url.path, exc)
    return _error(403, str(exc))


@app.exception_handler(TaskNotFound)
async def _not_found(request: Request, exc: TaskNotFound) -> JSONResponse:
    return _error(404, str(exc))


@app.exception_handler(InvalidTransition)
async def _invalid_transition(request: Request, exc: InvalidTransition) -> JSONResponse:
    return _error(409, str(exc))


@app.exception_handler(CollaboratorReadError)
async def _collaborator_unavailable(request: Request, exc: CollaboratorReadError) -> JSONResponse:
    logger.error("Run aborted: %s", exc)
    return _error(503, str(exc), generatedCount=0, skipReasons=[])


def _serialize_task(task: TaskInstance) -> Dict[str, Any]:
    return jsonable_encoder(dataclasses.asdict(task))


def _optional_float(payload: Dict[str, Any], key: str) -> Optional[float]:
    value = payload.get(key)
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise InputError(f"{key} must be a number")


def _parse_gps(payload: Dict[str, Any]) -> Optional[GpsReading]:
    latitude = _optional_float(payload, "latitude")
    longitude = _optional_float(payload, "longitude")
    if latitude is None or longitude is None:
        return None
    return GpsReading(latitude, longitude, _optional_float(payload, "accuracy"))


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/api/v1/tasks/generate")
def generate(
    payload: Optional[Dict[str, Any]] = Body(None),
    caller: Caller = Depends(get_caller),
    services: Services = Depends(get_services),
) -> JSONResponse:
    raw_date = (payload or {}).get("date")
    result = generate_tasks(services.materializer, raw_date, services.timezone, triggered_by=caller.actor_id)
    return JSONResponse(content=result)


@app.post("/api/v1/tasks/close")
def close(
    caller: Caller = Depends(require_scheduler),
    services: Services = Depends(get_services),
) -> JSONResponse:
    return JSONResponse(content=close_overdue_tasks(services.tasks))


@app.get("/api/v1/tasks")
def list_tasks(
    status: Optional[str] = Query(None),
    location_id: Optional[int] = Query(None),
    responsible_id: Optional[str] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    caller: Caller = Depends(require_operator),
    services: Services = Depends(get_services),
) -> JSONResponse:
    try:
        status_filter = TaskStatus(status) if status else None
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown status: {status}")
    tasks = services.tasks.list_tasks(
        TaskFilters(
            status=status_filter,
            location_id=location_id,
            responsible_id=responsible_id,
            scheduled_from=date_from,
            scheduled_to=date_to,
        )
    )
    return JSONResponse(content={"tasks": [_serialize_task(task) for task in tasks]})


@app.post("/api/v1/tasks/{task_id}/start")
def start_task(
    task_id: int,
    caller: Caller = Depends(require_operator),
    services: Services = Depends(get_services),
) -> JSONResponse:
    task = services.tasks.start(task_id, caller.actor_id, role=caller.role)
    return JSONResponse(content={"success": True, "task": _serialize_task(task)})


@app.post("/api/v1/tasks/{task_id}/complete")
def complete_task(
    task_id: int,
    payload: Optional[Dict[str, Any]] = Body(None),
    caller: Caller = Depends(require_operator),
    services: Services = Depends(get_services),
) -> JSONResponse:
    payload = payload or {}
    task = services.tasks.complete(
        task_id,
        caller.actor_id,
        gps=_parse_gps(payload),
        comment=payload.get("comment"),
        role=caller.role,
    )
    return JSONResponse(content={"success": True, "status": task.status.value, "task": _serialize_task(task)})


@app.post("/api/v1/tasks/{task_id}/cancel")
def cancel_task(
    task_id: int,
    payload: Dict[str, Any],
    caller: Caller = Depends(require_operator),
    services: Services = Depends(get_services),
) -> JSONResponse:
    try:
        scope = CancelScope(payload.get("scope") or CancelScope.INSTANCE.value)
    except ValueError:
        raise HTTPException(status_code=400, detail="scope must be 'instance' or 'assignment-and-future'")
    task = services.tasks.cancel(task_id, caller.actor_id, payload.get("reason"), scope, role=caller.role)
    message = "Task cancelled"
    if scope == CancelScope.ASSIGNMENT_AND_FUTURE:
        message += " and the recurring assignment was deactivated"
    return JSONResponse(content={"success": True, "message": message, "task": _serialize_task(task)})


@app.post("/api/v1/tasks/{task_id}/audit")
def audit_task(
    task_id: int,
    payload: Dict[str, Any],
    caller: Caller = Depends(require_operator),
    services: Services = Depends(get_services),
) -> JSONResponse:
    decision = payload.get("decision")
    if decision not in (AuditStatus.APPROVED.value, AuditStatus.REJECTED.value):
        raise HTTPException(status_code=400, detail="decision must be 'approved' or 'rejected'")
    task = services.audits.review(
        task_id, caller.actor_id, AuditStatus(decision), payload.get("note"), role=caller.role
    )
    return JSONResponse(content={"success": True, "task": _serialize_task(task)})


@app.get("/api/v1/compliance")
def compliance(
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    location_id: Optional[int] = Query(None),
    caller: Caller = Depends(require_operator),
    services: Services = Depends(get_services),
) -> JSONResponse:
    summary = services.tasks.compliance_summary(date_from, date_to, location_id)
    return JSONResponse(content=summary)
