"""Booking API tests, including concurrent reservations against one event."""
import asyncio
import uuid
from typing import Any, Dict

import pytest
from helpers import API, book, create_event, register, seats_available
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_create_booking(
    client: AsyncClient, organizer: Dict[str, Any], holder: Dict[str, Any]
) -> None:
    event = await create_event(client, organizer, total_seats=10)

    response = await book(client, holder, event["id"], seats_requested=2)

    assert response.status_code == 201
    data = response.json()
    assert data["message"] == "Booking successfully created."
    booking = data["booking"]
    assert booking["event_id"] == event["id"]
    assert booking["seats_booked"] == 2
    assert booking["payment_utr"] == "UTR123456789"
    assert booking["payment_verified"] is False
    assert booking["qr_token"]
    assert booking["qr_image_url"].startswith("data:image/png;base64,")
    assert "id" in booking and "created_at" in booking
    assert await seats_available(client, event["id"]) == 8


@pytest.mark.asyncio
async def test_two_concurrent_requests_for_the_last_seat(
    client: AsyncClient,
    organizer: Dict[str, Any],
    holder: Dict[str, Any],
    other_holder: Dict[str, Any],
) -> None:
    event = await create_event(client, organizer, total_seats=1)

    first, second = await asyncio.gather(
        book(client, holder, event["id"]), book(client, other_holder, event["id"])
    )

    assert sorted([first.status_code, second.status_code]) == [201, 409]
    loser = first if first.status_code == 409 else second
    assert loser.json()["code"] == "insufficient_capacity"
    assert loser.json()["detail"] == "Insufficient seats available. Only 0 seats remaining."
    assert await seats_available(client, event["id"]) == 0


@pytest.mark.asyncio
async def test_concurrent_bookings_never_oversell(
    client: AsyncClient, organizer: Dict[str, Any], holder: Dict[str, Any]
) -> None:
    event = await create_event(client, organizer, total_seats=5)

    responses = await asyncio.gather(
        *(book(client, holder, event["id"], seats_requested=2) for _ in range(6))
    )

    statuses = [r.status_code for r in responses]
    assert statuses.count(201) == 2
    assert statuses.count(409) == 4
    assert await seats_available(client, event["id"]) == 1

    passes = (await client.get(f"{API}/bookings", headers=holder["headers"])).json()["passes"]
    assert sum(p["seats_booked"] for p in passes) == 4


@pytest.mark.asyncio
async def test_booking_exactly_the_remaining_seats(
    client: AsyncClient, organizer: Dict[str, Any], holder: Dict[str, Any]
) -> None:
    event = await create_event(client, organizer, total_seats=3)

    response = await book(client, holder, event["id"], seats_requested=3)

    assert response.status_code == 201
    assert await seats_available(client, event["id"]) == 0


@pytest.mark.asyncio
async def test_booking_one_more_than_remaining(
    client: AsyncClient, organizer: Dict[str, Any], holder: Dict[str, Any]
) -> None:
    event = await create_event(client, organizer, total_seats=3)

    response = await book(client, holder, event["id"], seats_requested=4)

    assert response.status_code == 409
    body = response.json()
    assert body["seats_available"] == 3
    assert body["seats_requested"] == 4
    assert await seats_available(client, event["id"]) == 3

    passes = (await client.get(f"{API}/bookings", headers=holder["headers"])).json()["passes"]
    assert passes == []


@pytest.mark.asyncio
async def test_unbounded_event_accepts_any_count(
    client: AsyncClient, organizer: Dict[str, Any], holder: Dict[str, Any]
) -> None:
    event = await create_event(client, organizer, total_seats=None)
    assert event["total_seats"] is None

    response = await book(client, holder, event["id"], seats_requested=500)

    assert response.status_code == 201
    assert await seats_available(client, event["id"]) is None


@pytest.mark.asyncio
async def test_unbounded_event_rejects_oversized_count(
    client: AsyncClient, organizer: Dict[str, Any], holder: Dict[str, Any]
) -> None:
    event = await create_event(client, organizer, total_seats=None)

    response = await book(client, holder, event["id"], seats_requested=2**63)

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_request"
    passes = (await client.get(f"{API}/bookings", headers=holder["headers"])).json()["passes"]
    assert passes == []


@pytest.mark.asyncio
async def test_seat_labels_set_the_count(
    client: AsyncClient, organizer: Dict[str, Any], holder: Dict[str, Any]
) -> None:
    event = await create_event(client, organizer, total_seats=10)

    response = await client.post(
        f"{API}/bookings",
        json={"event_id": event["id"], "payment_utr": "UTR123456789", "seats": ["C1", "C2"]},
        headers=holder["headers"],
    )

    assert response.status_code == 201
    booking = response.json()["booking"]
    assert booking["seats_booked"] == 2
    assert booking["seat_labels"] == ["C1", "C2"]


@pytest.mark.parametrize(
    "body, message",
    [
        ({"seats_requested": 0}, "Must book at least 1 seat."),
        ({"payment_utr": "bad!"}, "Invalid Payment UTR format."),
        ({"payment_utr": None}, None),
        ({"seats_requested": 3, "seats": ["A1"]}, "Number of seat labels"),
        ({"seats": ["A1", "A1"]}, "Seat labels must be unique."),
        ({"payment_utr": "ABCDEFGH12\n"}, "Invalid Payment UTR format."),
        ({"seats_requested": 1001}, "Can not book more than 1000 seats at once."),
    ],
)
@pytest.mark.asyncio
async def test_invalid_booking_bodies(
    client: AsyncClient,
    organizer: Dict[str, Any],
    holder: Dict[str, Any],
    body: Dict[str, Any],
    message: Any,
) -> None:
    event = await create_event(client, organizer, total_seats=5)
    payload = {"event_id": event["id"], "seats_requested": 1, "payment_utr": "UTR123456789"}
    payload.update(body)

    response = await client.post(f"{API}/bookings", json=payload, headers=holder["headers"])

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_request"
    if message:
        assert response.json()["detail"].startswith(message)
    assert await seats_available(client, event["id"]) == 5


@pytest.mark.asyncio
async def test_missing_field_is_named(
    client: AsyncClient, organizer: Dict[str, Any], holder: Dict[str, Any]
) -> None:
    event = await create_event(client, organizer, total_seats=5)

    response = await client.post(
        f"{API}/bookings", json={"event_id": event["id"]}, headers=holder["headers"]
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Missing required field: payment_utr"


@pytest.mark.asyncio
async def test_booking_requires_bearer_token(
    client: AsyncClient, organizer: Dict[str, Any]
) -> None:
    event = await create_event(client, organizer, total_seats=5)
    body = {"event_id": event["id"], "payment_utr": "UTR123456789"}

    missing = await client.post(f"{API}/bookings", json=body)
    garbage = await client.post(
        f"{API}/bookings", json=body, headers={"Authorization": "Bearer nope"}
    )

    assert missing.status_code == 401
    assert missing.json()["detail"] == "Unauthorized. Missing or invalid Bearer token."
    assert garbage.status_code == 401
    assert await seats_available(client, event["id"]) == 5


@pytest.mark.asyncio
async def test_booking_unknown_event(client: AsyncClient, holder: Dict[str, Any]) -> None:
    response = await book(client, holder, str(uuid.uuid4()))

    assert response.status_code == 404
    assert response.json()["code"] == "event_not_found"


@pytest.mark.asyncio
async def test_booking_inactive_event(
    client: AsyncClient, organizer: Dict[str, Any], holder: Dict[str, Any]
) -> None:
    event = await create_event(client, organizer, total_seats=5)
    deactivated = await client.post(
        f"{API}/events/{event['id']}/deactivate", headers=organizer["headers"]
    )
    assert deactivated.status_code == 200

    response = await book(client, holder, event["id"])

    assert response.status_code == 400
    assert response.json()["detail"] == "This event is no longer active."
    assert await seats_available(client, event["id"]) == 5


@pytest.mark.asyncio
async def test_identical_requests_create_two_bookings(
    client: AsyncClient, organizer: Dict[str, Any], holder: Dict[str, Any]
) -> None:
    event = await create_event(client, organizer, total_seats=5)

    first = await book(client, holder, event["id"])
    second = await book(client, holder, event["id"])

    assert first.status_code == second.status_code == 201
    assert first.json()["booking"]["id"] != second.json()["booking"]["id"]
    assert await seats_available(client, event["id"]) == 3


@pytest.mark.asyncio
async def test_list_passes_newest_first(
    client: AsyncClient, organizer: Dict[str, Any], holder: Dict[str, Any]
) -> None:
    event = await create_event(client, organizer, total_seats=5, title="Jazz Brunch")
    await book(client, holder, event["id"])

    response = await client.get(f"{API}/bookings", headers=holder["headers"])

    assert response.status_code == 200
    passes = response.json()["passes"]
    assert len(passes) == 1
    assert passes[0]["event_title"] == "Jazz Brunch"
    assert passes[0]["location_name"] == "Town Hall"
    assert passes[0]["qr_token"]


@pytest.mark.asyncio
async def test_read_booking_permissions(
    client: AsyncClient,
    organizer: Dict[str, Any],
    holder: Dict[str, Any],
    other_holder: Dict[str, Any],
) -> None:
    event = await create_event(client, organizer, total_seats=5)
    booking_id = (await book(client, holder, event["id"])).json()["booking"]["id"]
    url = f"{API}/bookings/{booking_id}"

    assert (await client.get(url, headers=holder["headers"])).status_code == 200
    assert (await client.get(url, headers=organizer["headers"])).status_code == 200
    assert (await client.get(url, headers=other_holder["headers"])).status_code == 403
    assert (
        await client.get(f"{API}/bookings/{uuid.uuid4()}", headers=holder["headers"])
    ).status_code == 404


@pytest.mark.asyncio
async def test_revoke_booking_returns_seats_and_kills_pass(
    client: AsyncClient, organizer: Dict[str, Any], holder: Dict[str, Any]
) -> None:
    event = await create_event(client, organizer, total_seats=5)
    booking = (await book(client, holder, event["id"], seats_requested=2)).json()["booking"]
    assert await seats_available(client, event["id"]) == 3

    response = await client.delete(
        f"{API}/bookings/{booking['id']}", headers=holder["headers"]
    )

    assert response.status_code == 204
    assert await seats_available(client, event["id"]) == 5
    validate = await client.post(f"{API}/validate", json={"qr_token": booking["qr_token"]})
    assert validate.status_code == 404
    assert validate.json()["reason"] == "not_found"


@pytest.mark.asyncio
async def test_revoke_by_other_user_is_forbidden(
    client: AsyncClient, organizer: Dict[str, Any], holder: Dict[str, Any]
) -> None:
    intruder = await register(client, "Ivan Intruder", "ivan@example.com")
    event = await create_event(client, organizer, total_seats=5)
    booking = (await book(client, holder, event["id"])).json()["booking"]

    response = await client.delete(
        f"{API}/bookings/{booking['id']}", headers=intruder["headers"]
    )

    assert response.status_code == 403
    assert await seats_available(client, event["id"]) == 4
