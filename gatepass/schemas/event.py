import re
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from gatepass.core.settings import get_settings

settings = get_settings()


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    category: str = Field("Conference", max_length=50)
    location_name: str = Field(..., min_length=1, max_length=300)
    event_date: datetime
    end_date: Optional[datetime] = None
    total_seats: Optional[int] = Field(
        None, description="Seat capacity. Omit or send 0 for unbounded seating."
    )
    price_per_seat: Decimal = Field(Decimal("0.00"), ge=0, max_digits=10, decimal_places=2)
    currency: str = Field(settings.booking.DEFAULT_CURRENCY, min_length=3, max_length=10)
    upi_id: str

    @field_validator("event_date")
    @classmethod
    def event_date_in_future(cls, v: datetime) -> datetime:
        v = _as_utc(v)
        if v <= datetime.now(timezone.utc):
            raise ValueError("Invalid event_date. Events must be scheduled in the future.")
        return v

    @field_validator("total_seats")
    @classmethod
    def normalize_capacity(cls, v: Optional[int]) -> Optional[int]:
        if v is None or v == 0:
            return None
        if v < 0:
            raise ValueError("total_seats must be a positive number.")
        if v > settings.booking.MAX_EVENT_CAPACITY:
            raise ValueError(
                f"total_seats can not exceed {settings.booking.MAX_EVENT_CAPACITY}."
            )
        return v

    @field_validator("upi_id")
    @classmethod
    def valid_upi_id(cls, v: str) -> str:
        if not re.fullmatch(settings.booking.UPI_ID_PATTERN, v):
            raise ValueError("Invalid UPI ID format. Typical format: handle@bank.")
        return v

    @model_validator(mode="after")
    def end_after_start(self) -> "EventCreate":
        if self.end_date is not None:
            self.end_date = _as_utc(self.end_date)
            if self.end_date < self.event_date:
                raise ValueError("end_date must not be before event_date.")
        return self


class Event(BaseModel):
    id: uuid.UUID
    organizer_id: uuid.UUID
    title: str
    description: Optional[str] = None
    category: str
    location_name: str
    event_date: datetime
    end_date: Optional[datetime] = None
    total_seats: Optional[int] = None
    seats_available: Optional[int] = None
    price_per_seat: Decimal
    currency: str
    upi_id: str
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class EventCreated(BaseModel):
    message: str
    event: Event


class EventList(BaseModel):
    events: List[Event]
    count: int
