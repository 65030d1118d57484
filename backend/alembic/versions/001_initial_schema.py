"""Initial schema: venue, event bookings and the confirmation log.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Venue table: single row, version is the optimistic lock for confirms
    op.create_table(
        "venues",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
    )
    op.execute("INSERT INTO venues (id, name, version) VALUES (1, 'Main Event Hall', 1)")

    # Event bookings table
    op.create_table(
        "event_bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("customer_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(100), nullable=False),
        sa.Column("contact_number", sa.String(20), nullable=False),
        sa.Column("event_type", sa.String(255), nullable=True),
        sa.Column("event_name", sa.String(255), nullable=True),
        sa.Column("special_request", sa.Text(), nullable=True),
        sa.Column("event_start_date", sa.Date(), nullable=False),
        sa.Column("event_end_date", sa.Date(), nullable=False),
        # NULL is read as Pending; legacy rows predate the column
        sa.Column("status", sa.String(20), nullable=True, server_default=sa.text("'Pending'")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("event_end_date >= event_start_date", name="check_event_dates_ordered"),
    )
    op.create_index("ix_event_bookings_id", "event_bookings", ["id"])
    # Covers the overlap query: WHERE status = 'Confirmed' AND start <= :end AND end >= :start
    op.create_index(
        "ix_event_bookings_status_dates",
        "event_bookings",
        ["status", "event_start_date", "event_end_date"],
    )

    # Confirmation log: append-only, no FK so entries outlive their booking
    op.create_table(
        "event_reservation_logs",
        sa.Column("log_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer(), nullable=True),
        sa.Column("event_type", sa.String(255), nullable=True),
        sa.Column("customer_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(100), nullable=False, server_default=sa.text("''")),
        sa.Column("contact_number", sa.String(20), nullable=False, server_default=sa.text("''")),
        sa.Column("special_request", sa.Text(), nullable=True),
        sa.Column("event_start_date", sa.Date(), nullable=False),
        sa.Column("event_end_date", sa.Date(), nullable=False),
        sa.Column("confirmed_at", sa.DateTime(timezone=False), nullable=False),
        sa.Column("confirmed_by", sa.String(100), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'Confirmed'")),
    )
    op.create_index("ix_event_reservation_logs_booking_id", "event_reservation_logs", ["booking_id"])
    op.create_index(
        "ix_event_reservation_logs_dates",
        "event_reservation_logs",
        ["event_start_date", "event_end_date"],
    )
    op.create_index("ix_event_reservation_logs_confirmed_at", "event_reservation_logs", ["confirmed_at"])


def downgrade() -> None:
    op.drop_table("event_reservation_logs")
    op.drop_table("event_bookings")
    op.drop_table("venues")
