"""reservation engine schema

Revision ID: 3c1f6a2b9d40
Revises: 
Create Date: 2025-11-12 09:14:02.518311

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = '3c1f6a2b9d40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist;")

    op.create_table(
        "restaurant",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("timezone", sa.String(64), nullable=False, server_default="UTC"),
        sa.Column("address", sa.String(300)),
        sa.Column("slot_duration_minutes", sa.Integer, nullable=False, server_default="30"),
        sa.Column("min_advance_hours", sa.Integer, nullable=False, server_default="2"),
        sa.Column("max_advance_days", sa.Integer, nullable=False, server_default="60"),
        sa.Column("opening_hours", sa.Text),
        sa.CheckConstraint("slot_duration_minutes > 0", name="ck_restaurant_slot_positive"),
    )

    op.create_table(
        "dining_table",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("restaurant_id", sa.String(36), sa.ForeignKey("restaurant.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("capacity", sa.Integer, nullable=False),
        sa.Column("location", sa.String(100)),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.CheckConstraint("capacity > 0", name="ck_dining_table_capacity_positive"),
    )
    op.create_index("ix_dining_table_restaurant_id", "dining_table", ["restaurant_id"])

    op.create_table(
        "guest",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("restaurant_id", sa.String(36), sa.ForeignKey("restaurant.id", ondelete="CASCADE"), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("phone", sa.String(32), nullable=False),
        sa.Column("email", sa.String(254)),
        sa.Column("total_bookings", sa.Integer, nullable=False, server_default="0"),
        sa.Column("no_show_count", sa.Integer, nullable=False, server_default="0"),
        sa.UniqueConstraint("restaurant_id", "phone", name="uq_guest_restaurant_phone"),
    )

    op.create_table(
        "booking",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("restaurant_id", sa.String(36), sa.ForeignKey("restaurant.id", ondelete="CASCADE"), nullable=False),
        sa.Column("guest_id", sa.String(36), sa.ForeignKey("guest.id")),
        sa.Column("table_id", sa.String(36), sa.ForeignKey("dining_table.id")),
        sa.Column("start_ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Integer, nullable=False),
        sa.Column("party_size", sa.Integer, nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="CONFIRMED"),
        sa.Column("special_requests", sa.Text),
        sa.Column("cancel_token", sa.String(64), nullable=False, unique=True),
        sa.Column("confirmation_sent", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("end_ts > start_ts", name="ck_booking_interval"),
        sa.CheckConstraint("party_size > 0", name="ck_booking_party_positive"),
    )
    op.create_index("ix_booking_restaurant_id", "booking", ["restaurant_id"])
    op.create_index("ix_booking_table_window", "booking", ["table_id", "start_ts", "end_ts"])
    # Store-level guard behind the application lock: active bookings on one table never overlap.
    op.execute(
        """
        ALTER TABLE booking ADD CONSTRAINT booking_no_overlap
        EXCLUDE USING gist (
          table_id WITH =,
          tstzrange(start_ts, end_ts, '[)') WITH &&
        ) WHERE (status IN ('PENDING', 'CONFIRMED', 'SEATED') AND table_id IS NOT NULL);
        """
    )

    op.create_table(
        "waitlist_entry",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("restaurant_id", sa.String(36), sa.ForeignKey("restaurant.id", ondelete="CASCADE"), nullable=False),
        sa.Column("guest_name", sa.String(200), nullable=False),
        sa.Column("guest_phone", sa.String(32), nullable=False),
        sa.Column("guest_email", sa.String(254)),
        sa.Column("party_size", sa.Integer, nullable=False),
        sa.Column("notes", sa.Text),
        sa.Column("status", sa.String(16), nullable=False, server_default="WAITING"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("notified_at", sa.DateTime(timezone=True)),
        sa.Column("seated_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_waitlist_entry_restaurant_id", "waitlist_entry", ["restaurant_id"])

    op.create_table(
        "event_log",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("restaurant_id", sa.String(36)),
        sa.Column("kind", sa.String(64), nullable=False),
        sa.Column("subject_id", sa.String(36)),
        sa.Column("detail", sa.Text),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("event_log")
    op.drop_table("waitlist_entry")
    op.execute("ALTER TABLE booking DROP CONSTRAINT IF EXISTS booking_no_overlap;")
    op.drop_table("booking")
    op.drop_table("guest")
    op.drop_table("dining_table")
    op.drop_table("restaurant")
    op.execute("DROP EXTENSION IF EXISTS btree_gist;")
