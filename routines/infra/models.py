from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
)

from .db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class RoutineModel(Base):
    __tablename__ = "routines"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    frequency = Column(String(20), nullable=False)
    execution_days = Column(Text, nullable=False, default="")
    monthly_due_day = Column(Integer, nullable=True)
    cutoff_1_day = Column(Integer, nullable=True)
    cutoff_2_day = Column(Integer, nullable=True)
    specific_dates = Column(Text, nullable=False, default="")
    start_time = Column(Time, nullable=True)
    due_time = Column(Time, nullable=True)
    priority = Column(Integer, nullable=False, default=2)
    gps_required = Column(Boolean, nullable=False, default=False)
    active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class LocationModel(Base):
    __tablename__ = "locations"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    gps_radius_m = Column(Integer, nullable=True)


class AssignmentModel(Base):
    __tablename__ = "routine_assignments"

    id = Column(Integer, primary_key=True)
    routine_id = Column(Integer, ForeignKey("routines.id"), nullable=False, index=True)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="active", index=True)
    notes = Column(Text, nullable=False, default="")
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class ResponsibleBindingModel(Base):
    __tablename__ = "responsible_bindings"

    id = Column(Integer, primary_key=True)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=False, index=True)
    actor_id = Column(String(64), nullable=False)
    is_current = Column(Boolean, nullable=False, default=True)
    assigned_at = Column(DateTime, nullable=False, default=utcnow)


class AbsenceModel(Base):
    __tablename__ = "absences"

    id = Column(Integer, primary_key=True)
    actor_id = Column(String(64), nullable=False, index=True)
    date_from = Column(Date, nullable=False)
    date_to = Column(Date, nullable=False)
    policy = Column(String(20), nullable=False, default="omit")
    receptor_id = Column(String(64), nullable=True)
    notes = Column(Text, nullable=False, default="")


class AssignmentExceptionModel(Base):
    __tablename__ = "assignment_exceptions"
    __table_args__ = (UniqueConstraint("assignment_id", "day", name="uq_assignment_exceptions_day"),)

    id = Column(Integer, primary_key=True)
    assignment_id = Column(Integer, ForeignKey("routine_assignments.id"), nullable=False)
    day = Column(Date, nullable=False, index=True)
    reason = Column(Text, nullable=False, default="")


class TaskInstanceModel(Base):
    __tablename__ = "task_instances"
    __table_args__ = (
        UniqueConstraint("assignment_id", "scheduled_date", name="uq_task_instances_assignment_date"),
    )

    id = Column(Integer, primary_key=True)
    assignment_id = Column(Integer, ForeignKey("routine_assignments.id"), nullable=False)
    routine_id = Column(Integer, ForeignKey("routines.id"), nullable=False)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=False, index=True)
    responsible_id = Column(String(64), nullable=False, index=True)
    scheduled_date = Column(Date, nullable=False, index=True)
    due_at = Column(DateTime, nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    routine_name_snapshot = Column(String(200), nullable=False)
    priority_snapshot = Column(Integer, nullable=False, default=2)
    start_time_snapshot = Column(Time, nullable=True)
    due_time_snapshot = Column(Time, nullable=True)
    gps_required_snapshot = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    completed_at = Column(DateTime, nullable=True)
    completed_by = Column(String(64), nullable=True)
    comment = Column(Text, nullable=True)
    gps_latitude = Column(Float, nullable=True)
    gps_longitude = Column(Float, nullable=True)
    gps_accuracy = Column(Float, nullable=True)
    gps_in_range = Column(Boolean, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancelled_by = Column(String(64), nullable=True)
    cancel_reason = Column(Text, nullable=True)
    audit_status = Column(String(20), nullable=False, default="pending")
    audit_notes = Column(Text, nullable=True)
    audited_at = Column(DateTime, nullable=True)
    audited_by = Column(String(64), nullable=True)


class SystemAuditLogModel(Base):
    __tablename__ = "system_audit_log"

    id = Column(Integer, primary_key=True)
    actor_id = Column(String(64), nullable=False)
    action = Column(String(50), nullable=False, index=True)
    table_name = Column(String(50), nullable=False)
    record_id = Column(String(64), nullable=True)
    payload = Column(Text, nullable=False, default="{}")
    created_at = Column(DateTime, nullable=False, default=utcnow)
