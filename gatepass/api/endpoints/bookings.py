import uuid
from typing import Any

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from gatepass.api import deps
from gatepass.core.exceptions import BookingNotFound, PermissionDenied
from gatepass.crud import booking as crud_booking
from gatepass.crud import event as crud_event
from gatepass.schemas.booking import (
    Booking,
    BookingCreate,
    BookingCreated,
    IssuedBooking,
    Pass,
    PassList,
)
from gatepass.schemas.user import TokenPayload
from gatepass.services.passes import render_data_uri
from gatepass.services.reservation import ReservationCoordinator, ReservationRequest

router = APIRouter()


@router.post(
    "",
    response_model=BookingCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Book Seats",
)  # type: ignore[misc]
async def create_booking(
    *,
    db: AsyncSession = Depends(deps.get_db),
    booking_in: BookingCreate,
    current_user: TokenPayload = Depends(deps.get_current_user),
) -> Any:
    """
    **Reserve Seats and Receive an Entry Pass**

    Deducts `seats_requested` from the event and creates the booking in one
    transaction. The response carries the signed pass (`qr_token`) and a PNG
    data URI of it as a QR code (`qr_image_url`).

    Submitting the same request twice books twice.

    **Errors:**
    - `400`: Invalid body, bad UTR, fewer than 1 seat, inactive event
    - `401`: Missing or invalid bearer token
    - `404`: Event not found
    - `409`: Not enough seats left
    """
    result = await ReservationCoordinator(db).reserve(
        ReservationRequest(
            event_id=booking_in.event_id,
            holder_id=current_user.user_id,
            payment_utr=booking_in.payment_utr,
            seats_requested=booking_in.seats_requested,
            seat_labels=tuple(booking_in.seats or ()),
        )
    )
    booking = IssuedBooking(
        **Booking.model_validate(result.booking).model_dump(exclude={"qr_token"}),
        qr_token=result.token,
        qr_image_url=render_data_uri(result.token),
    )
    return BookingCreated(message="Booking successfully created.", booking=booking)


@router.get("", response_model=PassList, summary="My Passes")  # type: ignore[misc]
async def read_passes(
    db: AsyncSession = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
) -> Any:
    """Bookings held by the caller, newest first, with the event each admits to."""
    rows = await crud_booking.get_user_passes(db, current_user.user_id)
    passes = [
        Pass(
            **Booking.model_validate(row.Booking).model_dump(),
            event_title=row.event_title,
            event_date=row.event_date,
            location_name=row.location_name,
        )
        for row in rows
    ]
    return PassList(passes=passes)


@router.get("/{booking_id}", response_model=Booking)  # type: ignore[misc]
async def read_booking(
    *,
    db: AsyncSession = Depends(deps.get_db),
    booking_id: uuid.UUID,
    current_user: TokenPayload = Depends(deps.get_current_user),
) -> Any:
    """
    Get booking by ID. Visible to its holder and to the event's organizer.
    """
    booking = await crud_booking.get_booking(db, booking_id)
    if not booking:
        raise BookingNotFound()
    if booking.user_id != current_user.user_id:
        event = await crud_event.get_event(db, booking.event_id)
        if event is None or event.organizer_id != current_user.user_id:
            raise PermissionDenied("Forbidden. Not enough permissions.")
    return Booking.model_validate(booking)


@router.delete("/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)  # type: ignore[misc]
async def revoke_booking(
    *,
    db: AsyncSession = Depends(deps.get_db),
    booking_id: uuid.UUID,
    current_user: TokenPayload = Depends(deps.get_current_user),
) -> Response:
    """
    Revoke a booking. Its seats go back to the event and its pass stops verifying.
    """
    await ReservationCoordinator(db).revoke(booking_id, current_user.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
