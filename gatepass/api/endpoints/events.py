import uuid
from typing import Any

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from gatepass.api import deps
from gatepass.schemas.event import Event, EventCreate, EventCreated, EventList
from gatepass.schemas.user import TokenPayload
from gatepass.services import event_service

router = APIRouter()


@router.post(
    "",
    response_model=EventCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Create Event",
)  # type: ignore[misc]
async def create_event(
    *,
    db: AsyncSession = Depends(deps.get_db),
    event_in: EventCreate,
    current_user: TokenPayload = Depends(deps.get_current_organizer),
) -> Any:
    """
    **Create an Event (organizers only)**

    `seats_available` starts equal to `total_seats`. Omit `total_seats` (or
    send `0`) for an event without a seat limit.

    **Errors:**
    - `400`: Past `event_date`, bad UPI handle or negative `total_seats`
    - `403`: Not an organizer, or already at the active event limit
    """
    event = await event_service.create_event(db, event_in, current_user.user_id)
    return EventCreated(message="Event created successfully.", event=event)


@router.get("/mine", response_model=EventList, summary="My Events")  # type: ignore[misc]
async def read_my_events(
    db: AsyncSession = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_organizer),
) -> Any:
    """Events created by the calling organizer, latest event date first."""
    events = await event_service.list_organizer_events(db, current_user.user_id)
    return EventList(events=events, count=len(events))


@router.get("/{event_id}", response_model=Event, summary="Get Event")  # type: ignore[misc]
async def read_event(
    event_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    return await event_service.get_event_by_id_cached(db, event_id)


@router.post("/{event_id}/deactivate", response_model=Event)  # type: ignore[misc]
async def deactivate_event(
    event_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_organizer),
) -> Any:
    return await event_service.deactivate_event(db, event_id, current_user.user_id)


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)  # type: ignore[misc]
async def delete_event(
    event_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_organizer),
) -> Response:
    """Delete an event owned by the caller. Its bookings are deleted with it."""
    await event_service.delete_event(db, event_id, current_user.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
