"""create routine catalog tables"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_create_catalog"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "routines",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("frequency", sa.String(length=20), nullable=False),
        sa.Column("execution_days", sa.Text(), nullable=False, server_default=""),
        sa.Column("monthly_due_day", sa.Integer(), nullable=True),
        sa.Column("cutoff_1_day", sa.Integer(), nullable=True),
        sa.Column("cutoff_2_day", sa.Integer(), nullable=True),
        sa.Column("specific_dates", sa.Text(), nullable=False, server_default=""),
        sa.Column("start_time", sa.Time(), nullable=True),
        sa.Column("due_time", sa.Time(), nullable=True),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="2"),
        sa.Column("gps_required", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_routines_active", "routines", ["active"], unique=False)

    op.create_table(
        "locations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("gps_radius_m", sa.Integer(), nullable=True),
    )

    op.create_table(
        "routine_assignments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("routine_id", sa.Integer(), sa.ForeignKey("routines.id"), nullable=False),
        sa.Column("location_id", sa.Integer(), sa.ForeignKey("locations.id"), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_routine_assignments_routine_id", "routine_assignments", ["routine_id"], unique=False)
    op.create_index("ix_routine_assignments_location_id", "routine_assignments", ["location_id"], unique=False)
    op.create_index("ix_routine_assignments_status", "routine_assignments", ["status"], unique=False)

    op.create_table(
        "responsible_bindings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("location_id", sa.Integer(), sa.ForeignKey("locations.id"), nullable=False),
        sa.Column("actor_id", sa.String(length=64), nullable=False),
        sa.Column("is_current", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("assigned_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_responsible_bindings_location_id", "responsible_bindings", ["location_id"], unique=False)

    op.create_table(
        "absences",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("actor_id", sa.String(length=64), nullable=False),
        sa.Column("date_from", sa.Date(), nullable=False),
        sa.Column("date_to", sa.Date(), nullable=False),
        sa.Column("policy", sa.String(length=20), nullable=False, server_default="omit"),
        sa.Column("receptor_id", sa.String(length=64), nullable=True),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
    )
    op.create_index("ix_absences_actor_id", "absences", ["actor_id"], unique=False)

    op.create_table(
        "assignment_exceptions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("assignment_id", sa.Integer(), sa.ForeignKey("routine_assignments.id"), nullable=False),
        sa.Column("day", sa.Date(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False, server_default=""),
        sa.UniqueConstraint("assignment_id", "day", name="uq_assignment_exceptions_day"),
    )
    op.create_index("ix_assignment_exceptions_day", "assignment_exceptions", ["day"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_assignment_exceptions_day", table_name="assignment_exceptions")
    op.drop_table("assignment_exceptions")
    op.drop_index("ix_absences_actor_id", table_name="absences")
    op.drop_table("absences")
    op.drop_index("ix_responsible_bindings_location_id", table_name="responsible_bindings")
    op.drop_table("responsible_bindings")
    op.drop_index("ix_routine_assignments_status", table_name="routine_assignments")
    op.drop_index("ix_routine_assignments_location_id", table_name="routine_assignments")
    op.drop_index("ix_routine_assignments_routine_id", table_name="routine_assignments")
    op.drop_table("routine_assignments")
    op.drop_table("locations")
    op.drop_index("ix_routines_active", table_name="routines")
    op.drop_table("routines")
