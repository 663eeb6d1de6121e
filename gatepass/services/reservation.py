"""
Reservation coordinator.

One reservation is one database transaction:

    lock event row -> validate -> decrement capacity -> insert booking
    -> mint pass -> store pass on booking -> commit

Any failure after the lock rolls the whole transaction back, so a booking row
never exists without its seats having been deducted and its pass attached.
Retries are not deduplicated: every successful call creates a new booking.
"""

import enum
import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from gatepass.core.db_utils import db_transaction
from gatepass.core.exceptions import (
    BookingNotFound,
    EventInactive,
    GatepassError,
    InsufficientCapacity,
    InvalidRequest,
    PermissionDenied,
    ReservationFailed,
)
from gatepass.core.metrics import metrics
from gatepass.core.settings import get_settings
from gatepass.crud import booking as crud_booking
from gatepass.crud import event as crud_event
from gatepass.models.booking import Booking
from gatepass.services.capacity_ledger import CapacityLedger
from gatepass.services.event_service import invalidate_event
from gatepass.services.passes import PassIssuer, pass_issuer

logger = logging.getLogger(__name__)
settings = get_settings()


class ReservationState(str, enum.Enum):
    STARTED = "started"
    LOCKED = "locked"
    VALIDATED = "validated"
    DECREMENTED = "decremented"
    BOOKING_PERSISTED = "booking_persisted"
    CREDENTIAL_ISSUED = "credential_issued"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass(frozen=True)
class ReservationRequest:
    event_id: uuid.UUID
    holder_id: uuid.UUID
    payment_utr: str
    seats_requested: int = 1
    seat_labels: Tuple[str, ...] = field(default_factory=tuple)


@dataclass
class ReservationResult:
    booking: Booking
    token: str
    state: ReservationState


def _check_request(request: ReservationRequest) -> None:
    # Input errors are reported before any transaction is opened
    if request.seats_requested < 1:
        raise InvalidRequest("Must book at least 1 seat.")
    limit = settings.booking.MAX_SEATS_PER_BOOKING
    if request.seats_requested > limit:
        raise InvalidRequest(f"Can not book more than {limit} seats at once.")
    if not re.fullmatch(settings.booking.PAYMENT_UTR_PATTERN, request.payment_utr or ""):
        raise InvalidRequest(
            "Invalid Payment UTR format. UTRs are typically 12-digit alphanumeric codes."
        )
    if request.seat_labels and len(request.seat_labels) != request.seats_requested:
        raise InvalidRequest("Number of seat labels must equal seats_requested.")


class ReservationCoordinator:
    def __init__(self, db: AsyncSession, issuer: Optional[PassIssuer] = None) -> None:
        self.db = db
        self.issuer = issuer or pass_issuer

    async def reserve(self, request: ReservationRequest) -> ReservationResult:
        """Reserve seats and issue a pass, all or nothing.

        Raises ``EventNotFound``, ``EventInactive`` or ``InsufficientCapacity``
        for the failed precondition, and ``ReservationFailed`` for anything
        unexpected. In every failure case the transaction has been rolled back.
        """
        _check_request(request)

        state = ReservationState.STARTED
        ledger = CapacityLedger(self.db)
        try:
            async with db_transaction(self.db):
                snapshot = await ledger.acquire_for_update(request.event_id)
                state = ReservationState.LOCKED

                if not snapshot.is_active:
                    raise EventInactive()
                if not snapshot.can_accommodate(request.seats_requested):
                    raise InsufficientCapacity(
                        seats_available=snapshot.seats_available or 0,
                        seats_requested=request.seats_requested,
                    )
                state = ReservationState.VALIDATED

                await ledger.decrement(request.event_id, request.seats_requested)
                state = ReservationState.DECREMENTED

                booking = await crud_booking.insert_booking(
                    self.db,
                    event_id=request.event_id,
                    user_id=request.holder_id,
                    seats_booked=request.seats_requested,
                    payment_utr=request.payment_utr,
                    seat_labels=request.seat_labels,
                )
                state = ReservationState.BOOKING_PERSISTED

                token = self.issuer.mint(
                    booking.id, request.holder_id, request.event_id, request.seat_labels
                )
                await crud_booking.attach_pass_token(self.db, booking, token)
                state = ReservationState.CREDENTIAL_ISSUED
        except GatepassError as e:
            logger.info(
                f"Reservation for event {request.event_id} by user {request.holder_id} "
                f"{ReservationState.ROLLED_BACK.value} after {state.value}: {e.code}"
            )
            metrics.reservations_total.labels(outcome=e.code).inc()
            raise
        except Exception as e:
            logger.error(
                f"Reservation for event {request.event_id} by user {request.holder_id} "
                f"{ReservationState.ROLLED_BACK.value} after {state.value}: {e}",
                exc_info=True,
            )
            metrics.reservations_total.labels(outcome=ReservationFailed.code).inc()
            raise ReservationFailed() from e

        state = ReservationState.COMMITTED
        metrics.reservations_total.labels(outcome=state.value).inc()
        metrics.seats_reserved_total.inc(request.seats_requested)
        logger.info(
            f"Booking {booking.id} committed: event {request.event_id}, "
            f"user {request.holder_id}, seats {request.seats_requested}"
        )
        await invalidate_event(request.event_id)
        return ReservationResult(booking=booking, token=token, state=state)

    async def revoke(
        self, booking_id: uuid.UUID, requester_id: uuid.UUID
    ) -> Booking:
        """Delete a booking and give its seats back to the event.

        Allowed for the booking holder and for the organizer of the event.
        Once deleted, the booking's pass no longer verifies.
        """
        ledger = CapacityLedger(self.db)
        try:
            async with db_transaction(self.db):
                booking = await crud_booking.get_booking(self.db, booking_id)
                if booking is None:
                    raise BookingNotFound()

                await ledger.acquire_for_update(booking.event_id)
                event = await crud_event.get_event(self.db, booking.event_id)
                organizer_id = event.organizer_id if event else None
                if requester_id not in (booking.user_id, organizer_id):
                    raise PermissionDenied("Forbidden. You can not revoke this booking.")

                # Re-checked under the lock: a concurrent revoke may have won
                if not await crud_booking.delete_booking(self.db, booking_id):
                    raise BookingNotFound()
                await ledger.release(booking.event_id, booking.seats_booked)
        except GatepassError:
            raise
        except Exception as e:
            logger.error(f"Revocation of booking {booking_id} failed: {e}", exc_info=True)
            raise ReservationFailed(
                "Internal server error while revoking booking."
            ) from e

        logger.info(
            f"Booking {booking_id} revoked by user {requester_id}, "
            f"{booking.seats_booked} seats released to event {booking.event_id}"
        )
        await invalidate_event(booking.event_id)
        return booking

    async def reserve_seats(
        self,
        event_id: uuid.UUID,
        holder_id: uuid.UUID,
        payment_utr: str,
        seats_requested: int = 1,
        seat_labels: Sequence[str] = (),
    ) -> ReservationResult:
        return await self.reserve(
            ReservationRequest(
                event_id=event_id,
                holder_id=holder_id,
                payment_utr=payment_utr,
                seats_requested=seats_requested,
                seat_labels=tuple(seat_labels),
            )
        )
