import uuid
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from ..database import Base

if TYPE_CHECKING:
    from .event import Event
    from .user import User


class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    seats_booked: Mapped[int] = mapped_column(nullable=False)
    seat_labels: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    payment_utr: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # Set inside the reservation transaction, right after the row is inserted
    qr_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    user: Mapped["User"] = relationship("User", back_populates="bookings")
    event: Mapped["Event"] = relationship("Event", back_populates="bookings")

    __table_args__ = (
        CheckConstraint("seats_booked >= 1", name="ck_booking_positive_seats"),
        Index("idx_booking_user_created", "user_id", "created_at"),
    )
