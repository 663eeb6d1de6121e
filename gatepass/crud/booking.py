import uuid
from typing import Any, List, Optional, Sequence

from sqlalchemy import Row, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gatepass.models.booking import Booking
from gatepass.models.event import Event
from gatepass.models.user import User


async def get_booking(db: AsyncSession, booking_id: uuid.UUID) -> Optional[Booking]:
    result = await db.execute(select(Booking).filter(Booking.id == booking_id))
    first: Optional[Booking] = result.scalars().first()
    return first


async def insert_booking(
    db: AsyncSession,
    *,
    event_id: uuid.UUID,
    user_id: uuid.UUID,
    seats_booked: int,
    payment_utr: str,
    seat_labels: Sequence[str] = (),
) -> Booking:
    """Insert a booking row and load its generated id and created_at"""
    booking = Booking(
        event_id=event_id,
        user_id=user_id,
        seats_booked=seats_booked,
        seat_labels=list(seat_labels),
        payment_utr=payment_utr,
        payment_verified=False,
    )
    db.add(booking)
    await db.flush()
    await db.refresh(booking)
    return booking


async def attach_pass_token(db: AsyncSession, booking: Booking, qr_token: str) -> None:
    await db.execute(
        update(Booking).where(Booking.id == booking.id).values(qr_token=qr_token)
    )
    booking.qr_token = qr_token


async def delete_booking(db: AsyncSession, booking_id: uuid.UUID) -> int:
    result = await db.execute(delete(Booking).where(Booking.id == booking_id))
    return int(result.rowcount or 0)


async def get_user_passes(db: AsyncSession, user_id: uuid.UUID) -> List[Row[Any]]:
    """Bookings held by a user joined with their event, newest first"""
    result = await db.execute(
        select(
            Booking,
            Event.title.label("event_title"),
            Event.event_date,
            Event.location_name,
        )
        .join(Event, Booking.event_id == Event.id)
        .filter(Booking.user_id == user_id)
        .order_by(Booking.created_at.desc())
    )
    return list(result.all())


async def find_live_pass(
    db: AsyncSession, booking_id: uuid.UUID, qr_token: str
) -> Optional[Row[Any]]:
    """Holder and event names for a booking whose stored token matches exactly"""
    result = await db.execute(
        select(
            Booking.id.label("booking_id"),
            User.name.label("user_name"),
            Event.title.label("event_name"),
        )
        .join(User, Booking.user_id == User.id)
        .join(Event, Booking.event_id == Event.id)
        .filter(Booking.id == booking_id, Booking.qr_token == qr_token)
    )
    return result.first()
