"""users, events and bookings

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    user_role = sa.Enum("user", "organizer", name="userrole")

    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True, unique=True),
        sa.Column("phone", sa.String(length=20), nullable=True, unique=True),
        sa.Column("hashed_password", sa.String(), nullable=False),
        sa.Column("role", user_role, nullable=False, server_default="user"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=True,
        ),
        sa.CheckConstraint("email IS NOT NULL OR phone IS NOT NULL", name="ck_user_contact"),
    )
    op.create_index("idx_user_role", "users", ["role"])

    op.create_table(
        "events",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "organizer_id",
            sa.Uuid(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=50), nullable=False, server_default="Conference"),
        sa.Column("location_name", sa.String(length=300), nullable=False),
        sa.Column("event_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("total_seats", sa.Integer(), nullable=True),
        sa.Column("seats_available", sa.Integer(), nullable=True),
        sa.Column(
            "price_per_seat", sa.Numeric(10, 2), nullable=False, server_default="0.00"
        ),
        sa.Column("currency", sa.String(length=10), nullable=False, server_default="INR"),
        sa.Column("upi_id", sa.String(length=100), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=True,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=True,
        ),
        sa.CheckConstraint(
            "(total_seats IS NULL AND seats_available IS NULL) OR "
            "(total_seats IS NOT NULL AND seats_available IS NOT NULL "
            "AND seats_available >= 0 AND seats_available <= total_seats)",
            name="ck_event_seats_within_capacity",
        ),
    )
    op.create_index("ix_events_organizer_id", "events", ["organizer_id"])
    op.create_index("idx_event_organizer_active", "events", ["organizer_id", "is_active"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "event_id",
            sa.Uuid(),
            sa.ForeignKey("events.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.Uuid(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("seats_booked", sa.Integer(), nullable=False),
        sa.Column("seat_labels", sa.JSON(), nullable=False),
        sa.Column("payment_utr", sa.String(length=20), nullable=False),
        sa.Column(
            "payment_verified", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("qr_token", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.CheckConstraint("seats_booked >= 1", name="ck_booking_positive_seats"),
    )
    op.create_index("ix_bookings_event_id", "bookings", ["event_id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("idx_booking_user_created", "bookings", ["user_id", "created_at"])


def downgrade() -> None:
    op.drop_index("idx_booking_user_created", table_name="bookings")
    op.drop_index("ix_bookings_user_id", table_name="bookings")
    op.drop_index("ix_bookings_event_id", table_name="bookings")
    op.drop_table("bookings")

    op.drop_index("idx_event_organizer_active", table_name="events")
    op.drop_index("ix_events_organizer_id", table_name="events")
    op.drop_table("events")

    op.drop_index("idx_user_role", table_name="users")
    op.drop_table("users")
    sa.Enum(name="userrole").drop(op.get_bind(), checkfirst=True)
