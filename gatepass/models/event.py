import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from ..database import Base

if TYPE_CHECKING:
    from .booking import Booking
    from .user import User


class Event(Base):
    __tablename__ = "events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organizer_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(50), default="Conference", nullable=False)
    location_name: Mapped[str] = mapped_column(String(300), nullable=False)
    event_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # NULL capacity means unbounded seating
    total_seats: Mapped[Optional[int]] = mapped_column(nullable=True)
    seats_available: Mapped[Optional[int]] = mapped_column(nullable=True)

    price_per_seat: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), default=Decimal("0.00"), nullable=False
    )
    currency: Mapped[str] = mapped_column(String(10), default="INR", nullable=False)
    upi_id: Mapped[str] = mapped_column(String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    organizer: Mapped["User"] = relationship("User", back_populates="events")
    bookings: Mapped[List["Booking"]] = relationship(
        "Booking", back_populates="event", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint(
            "(total_seats IS NULL AND seats_available IS NULL) OR "
            "(total_seats IS NOT NULL AND seats_available IS NOT NULL "
            "AND seats_available >= 0 AND seats_available <= total_seats)",
            name="ck_event_seats_within_capacity",
        ),
        Index("idx_event_organizer_active", "organizer_id", "is_active"),
    )

    @property
    def is_bounded(self) -> bool:
        return self.total_seats is not None
