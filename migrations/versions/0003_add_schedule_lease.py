"""add schedule claim lease"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0003_add_schedule_lease"
down_revision = "0002_create_recurring_schedules"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "recurring_schedules",
        sa.Column("claim_token", sa.String(length=32), nullable=True),
    )
    op.add_column(
        "recurring_schedules",
        sa.Column("claimed_until", sa.DateTime(), nullable=True),
    )


def downgrade() -> None:
    op.drop_column("recurring_schedules", "claimed_until")
    op.drop_column("recurring_schedules", "claim_token")
