import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import pytest
from helpers import API, book, create_event, event_payload, register
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_create_event(client: AsyncClient, organizer: Dict[str, Any]) -> None:
    response = await client.post(
        f"{API}/events", json=event_payload(total_seats=120), headers=organizer["headers"]
    )

    assert response.status_code == 201
    data = response.json()
    assert data["message"] == "Event created successfully."
    event = data["event"]
    assert event["organizer_id"] == organizer["id"]
    assert event["total_seats"] == 120
    assert event["seats_available"] == 120
    assert event["is_active"] is True


@pytest.mark.asyncio
async def test_create_event_requires_organizer(
    client: AsyncClient, holder: Dict[str, Any]
) -> None:
    as_user = await client.post(f"{API}/events", json=event_payload(), headers=holder["headers"])
    anonymous = await client.post(f"{API}/events", json=event_payload())

    assert as_user.status_code == 403
    assert as_user.json()["detail"] == "Forbidden. Endpoint requires organizer privileges."
    assert anonymous.status_code == 401


@pytest.mark.parametrize(
    "overrides, message",
    [
        (
            {"event_date": (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()},
            "Invalid event_date. Events must be scheduled in the future.",
        ),
        ({"total_seats": -5}, "total_seats must be a positive number."),
        ({"total_seats": 2**40}, "total_seats can not exceed 1000000."),
        ({"upi_id": "organizer@okbank\n"}, "Invalid UPI ID format. Typical format: handle@bank."),
        ({"upi_id": "not a handle"}, "Invalid UPI ID format. Typical format: handle@bank."),
    ],
)
@pytest.mark.asyncio
async def test_create_event_rejects_invalid_fields(
    client: AsyncClient, organizer: Dict[str, Any], overrides: Dict[str, Any], message: str
) -> None:
    response = await client.post(
        f"{API}/events", json=event_payload(**overrides), headers=organizer["headers"]
    )

    assert response.status_code == 400
    assert response.json()["detail"] == message


@pytest.mark.asyncio
async def test_zero_seats_means_unbounded(
    client: AsyncClient, organizer: Dict[str, Any]
) -> None:
    event = await create_event(client, organizer, total_seats=0)

    assert event["total_seats"] is None
    assert event["seats_available"] is None


@pytest.mark.asyncio
async def test_active_event_limit(client: AsyncClient, organizer: Dict[str, Any]) -> None:
    events = [await create_event(client, organizer, title=f"Show {i}") for i in range(3)]

    blocked = await client.post(
        f"{API}/events", json=event_payload(title="Show 4"), headers=organizer["headers"]
    )
    assert blocked.status_code == 403
    assert blocked.json()["code"] == "active_event_limit"
    assert blocked.json()["active_events"] == 3

    deactivated = await client.post(
        f"{API}/events/{events[0]['id']}/deactivate", headers=organizer["headers"]
    )
    assert deactivated.status_code == 200
    assert deactivated.json()["is_active"] is False

    allowed = await client.post(
        f"{API}/events", json=event_payload(title="Show 4"), headers=organizer["headers"]
    )
    assert allowed.status_code == 201


@pytest.mark.asyncio
async def test_list_my_events(client: AsyncClient, organizer: Dict[str, Any]) -> None:
    other = await register(client, "Omar Organizer", "omar@example.com", role="organizer")
    await create_event(client, organizer, title="Mine")
    await create_event(client, other, title="Theirs")

    response = await client.get(f"{API}/events/mine", headers=organizer["headers"])

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 1
    assert [e["title"] for e in body["events"]] == ["Mine"]


@pytest.mark.asyncio
async def test_read_event(client: AsyncClient, organizer: Dict[str, Any]) -> None:
    event = await create_event(client, organizer, total_seats=7)

    found = await client.get(f"{API}/events/{event['id']}")
    missing = await client.get(f"{API}/events/{uuid.uuid4()}")
    malformed = await client.get(f"{API}/events/not-a-uuid")

    assert found.status_code == 200
    assert found.json()["seats_available"] == 7
    assert missing.status_code == 404
    assert missing.json()["code"] == "event_not_found"
    assert malformed.status_code == 400


@pytest.mark.asyncio
async def test_only_owner_can_deactivate_or_delete(
    client: AsyncClient, organizer: Dict[str, Any]
) -> None:
    other = await register(client, "Omar Organizer", "omar@example.com", role="organizer")
    event = await create_event(client, organizer)

    deactivate = await client.post(
        f"{API}/events/{event['id']}/deactivate", headers=other["headers"]
    )
    delete = await client.delete(f"{API}/events/{event['id']}", headers=other["headers"])

    assert deactivate.status_code == 403
    assert deactivate.json()["detail"] == "Forbidden. You do not own this event."
    assert delete.status_code == 403
    assert (await client.get(f"{API}/events/{event['id']}")).json()["is_active"] is True


@pytest.mark.asyncio
async def test_delete_event_removes_its_bookings(
    client: AsyncClient, organizer: Dict[str, Any], holder: Dict[str, Any]
) -> None:
    event = await create_event(client, organizer, total_seats=5)
    assert (await book(client, holder, event["id"])).status_code == 201

    response = await client.delete(f"{API}/events/{event['id']}", headers=organizer["headers"])

    assert response.status_code == 204
    assert (await client.get(f"{API}/events/{event['id']}")).status_code == 404
    passes = (await client.get(f"{API}/bookings", headers=holder["headers"])).json()["passes"]
    assert passes == []
