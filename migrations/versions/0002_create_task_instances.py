"""create task instances table"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0002_create_task_instances"
down_revision = "0001_create_catalog"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "task_instances",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("assignment_id", sa.Integer(), sa.ForeignKey("routine_assignments.id"), nullable=False),
        sa.Column("routine_id", sa.Integer(), sa.ForeignKey("routines.id"), nullable=False),
        sa.Column("location_id", sa.Integer(), sa.ForeignKey("locations.id"), nullable=False),
        sa.Column("responsible_id", sa.String(length=64), nullable=False),
        sa.Column("scheduled_date", sa.Date(), nullable=False),
        sa.Column("due_at", sa.DateTime(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("routine_name_snapshot", sa.String(length=200), nullable=False),
        sa.Column("priority_snapshot", sa.Integer(), nullable=False, server_default="2"),
        sa.Column("start_time_snapshot", sa.Time(), nullable=True),
        sa.Column("due_time_snapshot", sa.Time(), nullable=True),
        sa.Column("gps_required_snapshot", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("completed_by", sa.String(length=64), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("gps_latitude", sa.Float(), nullable=True),
        sa.Column("gps_longitude", sa.Float(), nullable=True),
        sa.Column("gps_accuracy", sa.Float(), nullable=True),
        sa.Column("gps_in_range", sa.Boolean(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_by", sa.String(length=64), nullable=True),
        sa.Column("cancel_reason", sa.Text(), nullable=True),
        sa.Column("audit_status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("audit_notes", sa.Text(), nullable=True),
        sa.Column("audited_at", sa.DateTime(), nullable=True),
        sa.Column("audited_by", sa.String(length=64), nullable=True),
        sa.UniqueConstraint("assignment_id", "scheduled_date", name="uq_task_instances_assignment_date"),
    )
    op.create_index("ix_task_instances_status", "task_instances", ["status"], unique=False)
    op.create_index("ix_task_instances_scheduled_date", "task_instances", ["scheduled_date"], unique=False)
    op.create_index("ix_task_instances_location_id", "task_instances", ["location_id"], unique=False)
    op.create_index("ix_task_instances_responsible_id", "task_instances", ["responsible_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_task_instances_responsible_id", table_name="task_instances")
    op.drop_index("ix_task_instances_location_id", table_name="task_instances")
    op.drop_index("ix_task_instances_scheduled_date", table_name="task_instances")
    op.drop_index("ix_task_instances_status", table_name="task_instances")
    op.drop_table("task_instances")
