"""add system audit log"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0003_add_system_audit_log"
down_revision = "0002_create_task_instances"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "system_audit_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("actor_id", sa.String(length=64), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("table_name", sa.String(length=50), nullable=False),
        sa.Column("record_id", sa.String(length=64), nullable=True),
        sa.Column("payload", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_system_audit_log_action", "system_audit_log", ["action"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_system_audit_log_action", table_name="system_audit_log")
    op.drop_table("system_audit_log")
