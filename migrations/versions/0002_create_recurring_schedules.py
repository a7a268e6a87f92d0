"""create recurring schedules table"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0002_create_recurring_schedules"
down_revision = "0001_create_tasks"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "recurring_schedules",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.String(length=64), nullable=False),
        sa.Column("project_id", sa.String(length=64), nullable=True),
        sa.Column("workspace_id", sa.String(length=64), nullable=True),
        sa.Column("frequency", sa.String(length=20), nullable=False),
        sa.Column("interval", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("days_of_week", sa.JSON(), nullable=False),
        sa.Column("days_of_month", sa.JSON(), nullable=False),
        sa.Column("months_of_year", sa.JSON(), nullable=False),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.Column("end_type", sa.String(length=20), nullable=False, server_default="never"),
        sa.Column("end_date", sa.DateTime(), nullable=True),
        sa.Column("occurrences", sa.Integer(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("next_run_date", sa.DateTime(), nullable=True),
        sa.Column("last_materialized_date", sa.DateTime(), nullable=True),
        sa.Column("materialized_task_ids", sa.JSON(), nullable=False),
        sa.Column("task_template", sa.JSON(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_recurring_schedules_owner_id", "recurring_schedules", ["owner_id"], unique=False
    )
    op.create_index(
        "ix_recurring_schedules_project_id", "recurring_schedules", ["project_id"], unique=False
    )
    op.create_index(
        "ix_recurring_schedules_workspace_id", "recurring_schedules", ["workspace_id"], unique=False
    )
    op.create_index(
        "ix_recurring_schedules_due",
        "recurring_schedules",
        ["active", "next_run_date"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_recurring_schedules_due", table_name="recurring_schedules")
    op.drop_index("ix_recurring_schedules_workspace_id", table_name="recurring_schedules")
    op.drop_index("ix_recurring_schedules_project_id", table_name="recurring_schedules")
    op.drop_index("ix_recurring_schedules_owner_id", table_name="recurring_schedules")
    op.drop_table("recurring_schedules")
