import re
import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from gatepass.core.settings import get_settings

settings = get_settings()


class BookingCreate(BaseModel):
    event_id: uuid.UUID
    seats_requested: int = 1
    payment_utr: str
    seats: Optional[List[str]] = Field(
        None, description="Optional seat labels; their count must match seats_requested."
    )

    @field_validator("seats_requested")
    @classmethod
    def at_least_one_seat(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Must book at least 1 seat.")
        limit = settings.booking.MAX_SEATS_PER_BOOKING
        if v > limit:
            raise ValueError(f"Can not book more than {limit} seats at once.")
        return v

    @field_validator("payment_utr")
    @classmethod
    def valid_payment_utr(cls, v: str) -> str:
        if not re.fullmatch(settings.booking.PAYMENT_UTR_PATTERN, v):
            raise ValueError(
                "Invalid Payment UTR format. UTRs are typically 12-digit alphanumeric codes."
            )
        return v

    @field_validator("seats")
    @classmethod
    def distinct_seat_labels(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        labels = [label.strip() for label in v]
        if any(not label for label in labels):
            raise ValueError("Seat labels must not be empty.")
        if len(set(labels)) != len(labels):
            raise ValueError("Seat labels must be unique.")
        return labels

    @model_validator(mode="after")
    def seats_match_count(self) -> "BookingCreate":
        if not self.seats:
            return self
        if "seats_requested" not in self.model_fields_set:
            self.seats_requested = len(self.seats)
        elif len(self.seats) != self.seats_requested:
            raise ValueError("Number of seat labels must equal seats_requested.")
        return self


class Booking(BaseModel):
    id: uuid.UUID
    event_id: uuid.UUID
    seats_booked: int
    seat_labels: List[str] = []
    payment_utr: str
    payment_verified: bool
    created_at: datetime
    qr_token: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class IssuedBooking(Booking):
    qr_token: str
    qr_image_url: str


class BookingCreated(BaseModel):
    message: str
    booking: IssuedBooking


class Pass(Booking):
    """A booking as listed to its holder, with the event it admits to"""

    event_title: str
    event_date: datetime
    location_name: str


class PassList(BaseModel):
    passes: List[Pass]
