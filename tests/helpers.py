"""Request and database seeding helpers shared by the tests."""
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

from httpx import AsyncClient, Response
from sqlalchemy import func, select

from gatepass.core.database_manager import DatabaseManager
from gatepass.crud import event as crud_event
from gatepass.models.booking import Booking
from gatepass.models.event import Event
from gatepass.models.user import User, UserRole

API = "/api/v1"
DEFAULT_PASSWORD = "Passw0rd!"
VALID_UTR = "UTR123456789"


def auth_headers(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def register(
    client: AsyncClient,
    name: str,
    email: str,
    role: str = "user",
    password: str = DEFAULT_PASSWORD,
) -> Dict[str, Any]:
    response = await client.post(
        f"{API}/auth/register",
        json={"name": name, "email": email, "password": password, "role": role},
    )
    assert response.status_code == 201, response.text
    body = response.json()
    return {
        "id": body["user"]["id"],
        "name": name,
        "token": body["token"],
        "headers": auth_headers(body["token"]),
    }


def event_payload(total_seats: Optional[int] = 10, **overrides: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "title": "Indie Night",
        "description": "Three bands, one stage",
        "category": "Music",
        "location_name": "Town Hall",
        "event_date": (datetime.now(timezone.utc) + timedelta(days=30)).isoformat(),
        "price_per_seat": "499.00",
        "upi_id": "organizer@okbank",
    }
    if total_seats is not None:
        payload["total_seats"] = total_seats
    payload.update(overrides)
    return payload


async def create_event(
    client: AsyncClient,
    organizer: Dict[str, Any],
    total_seats: Optional[int] = 10,
    **overrides: Any,
) -> Dict[str, Any]:
    response = await client.post(
        f"{API}/events",
        json=event_payload(total_seats, **overrides),
        headers=organizer["headers"],
    )
    assert response.status_code == 201, response.text
    event: Dict[str, Any] = response.json()["event"]
    return event


async def book(
    client: AsyncClient,
    holder: Dict[str, Any],
    event_id: str,
    seats_requested: int = 1,
    **extra: Any,
) -> Response:
    body: Dict[str, Any] = {
        "event_id": event_id,
        "seats_requested": seats_requested,
        "payment_utr": VALID_UTR,
    }
    body.update(extra)
    return await client.post(f"{API}/bookings", json=body, headers=holder["headers"])


async def seats_available(client: AsyncClient, event_id: str) -> Optional[int]:
    response = await client.get(f"{API}/events/{event_id}")
    assert response.status_code == 200, response.text
    value: Optional[int] = response.json()["seats_available"]
    return value


async def seed_event(
    database: DatabaseManager, total_seats: Optional[int] = 5, is_active: bool = True
) -> Tuple[uuid.UUID, uuid.UUID]:
    """Insert an organizer and one of their events; returns (event_id, organizer_id)"""
    async with database.get_session() as session:
        organizer = User(
            name="Olivia Organizer",
            email=f"{uuid.uuid4().hex[:12]}@example.com",
            hashed_password="not-a-real-hash",
            role=UserRole.ORGANIZER,
        )
        session.add(organizer)
        await session.flush()
        event = Event(
            organizer_id=organizer.id,
            title="Indie Night",
            location_name="Town Hall",
            event_date=datetime.now(timezone.utc) + timedelta(days=7),
            total_seats=total_seats,
            seats_available=total_seats,
            upi_id="organizer@okbank",
            is_active=is_active,
        )
        session.add(event)
        await session.flush()
        return event.id, organizer.id


async def seed_holder(database: DatabaseManager, name: str = "Hari Holder") -> uuid.UUID:
    async with database.get_session() as session:
        user = User(
            name=name,
            email=f"{uuid.uuid4().hex[:12]}@example.com",
            hashed_password="not-a-real-hash",
            role=UserRole.USER,
        )
        session.add(user)
        await session.flush()
        return user.id


async def read_seats(database: DatabaseManager, event_id: uuid.UUID) -> Optional[int]:
    async with database.get_session() as session:
        event = await crud_event.get_event(session, event_id)
        assert event is not None
        return event.seats_available


async def count_bookings(database: DatabaseManager) -> int:
    async with database.get_session() as session:
        result = await session.execute(select(func.count(Booking.id)))
        return int(result.scalar_one())
