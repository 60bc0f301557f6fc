"""booking reminders

Revision ID: 7d2e91c4a5b8
Revises: 3c1f6a2b9d40
Create Date: 2025-11-26 16:41:37.902114

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = '7d2e91c4a5b8'
down_revision: Union[str, None] = '3c1f6a2b9d40'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column(
        "booking",
        sa.Column("reminder_sent", sa.Boolean, nullable=False, server_default=sa.false()),
    )
    # The hourly sweep only looks at upcoming bookings that still need a reminder.
    op.create_index(
        "ix_booking_reminder_due",
        "booking",
        ["start_ts"],
        postgresql_where=sa.text("reminder_sent = false AND status IN ('PENDING', 'CONFIRMED')"),
    )


def downgrade() -> None:
    op.drop_index("ix_booking_reminder_due", table_name="booking")
    op.drop_column("booking", "reminder_sent")
