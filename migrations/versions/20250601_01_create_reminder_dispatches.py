"""create reminder_dispatches

Revision ID: 3f2c1a7d9b10
Revises:
Create Date: 2025-06-01 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3f2c1a7d9b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """One row per (group, day offset, run date) payment reminder already sent."""
    op.create_table(
        "reminder_dispatches",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("group_id", sa.String(), nullable=False),
        sa.Column("offset", sa.Integer(), nullable=False),
        sa.Column("reminder_date", sa.Date(), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("group_id", "offset", "reminder_date", name="uq_reminder_dispatch"),
    )
    op.create_index(
        "ix_reminder_dispatches_reminder_date", "reminder_dispatches", ["reminder_date"]
    )


def downgrade() -> None:
    op.drop_index("ix_reminder_dispatches_reminder_date", table_name="reminder_dispatches")
    op.drop_table("reminder_dispatches")
