import logging
import uuid
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from gatepass.core.cache import cache
from gatepass.core.db_utils import db_transaction
from gatepass.core.exceptions import (
    ActiveEventLimitReached,
    AuthenticationFailed,
    EventNotFound,
    PermissionDenied,
)
from gatepass.core.settings import get_settings
from gatepass.crud import event as event_crud
from gatepass.crud import user as user_crud
from gatepass.models.event import Event as EventModel
from gatepass.schemas.event import Event, EventCreate

logger = logging.getLogger(__name__)
settings = get_settings()


def event_cache_key(event_id: uuid.UUID) -> str:
    return f"event:{event_id}"


def event_generation_key(event_id: uuid.UUID) -> str:
    return f"event:{event_id}:gen"


async def invalidate_event(event_id: uuid.UUID) -> None:
    # Bump before delete: a reader that loaded before the bump sees the new
    # generation and skips its write, and the delete clears any earlier one.
    await cache.increment(event_generation_key(event_id), settings.scalability.CACHE_TTL * 2)
    await cache.delete(event_cache_key(event_id))


async def create_event(
    db: AsyncSession, event_in: EventCreate, organizer_id: uuid.UUID
) -> Event:
    """
    Create an event for an organizer, enforcing the cap on active events.

    The organizer row is locked first so two concurrent creations by the same
    organizer can not both pass the count check.
    """
    limit = settings.booking.MAX_ACTIVE_EVENTS_PER_ORGANIZER
    async with db_transaction(db):
        organizer = await user_crud.lock(db, organizer_id)
        if organizer is None:
            raise AuthenticationFailed("Unauthorized. Token user no longer exists.")

        active = await event_crud.count_active_events(db, organizer_id)
        if active >= limit:
            raise ActiveEventLimitReached(
                f"Limit exceeded. Organizers can only have {limit} active events "
                "at a time. Deactivate or delete an existing event first.",
                active_events=active,
            )
        db_event = await event_crud.create_event(db, event_in, organizer_id)

    logger.info(f"Event {db_event.id} created by organizer {organizer_id}")
    return Event.model_validate(db_event)


async def get_event_by_id_cached(db: AsyncSession, event_id: uuid.UUID) -> Event:
    """
    Reads an event from the cache if available, otherwise from the database.

    A row loaded while a booking or revoke was committing may already be
    stale, so it is only cached when the event was not invalidated between
    the load and the write.
    """
    key = event_cache_key(event_id)
    cached = await cache.get(key)
    if cached is not None:
        return Event.model_validate(cached)

    generation = await cache.get(event_generation_key(event_id))
    db_event = await event_crud.get_event(db, event_id)
    if db_event is None:
        raise EventNotFound()

    event = Event.model_validate(db_event)
    if await cache.get(event_generation_key(event_id)) == generation:
        await cache.set(
            key, event.model_dump(mode="json"), ttl=settings.scalability.EVENT_CACHE_TTL
        )
    else:
        logger.debug(f"Event {event_id} changed while loading, not caching")
    return event


async def list_organizer_events(db: AsyncSession, organizer_id: uuid.UUID) -> List[Event]:
    events = await event_crud.get_events_by_organizer(db, organizer_id)
    return [Event.model_validate(e) for e in events]


async def _get_owned_event(
    db: AsyncSession, event_id: uuid.UUID, organizer_id: uuid.UUID
) -> EventModel:
    db_event = await event_crud.get_event(db, event_id)
    if db_event is None:
        raise EventNotFound()
    if db_event.organizer_id != organizer_id:
        raise PermissionDenied("Forbidden. You do not own this event.")
    return db_event


async def deactivate_event(
    db: AsyncSession, event_id: uuid.UUID, organizer_id: uuid.UUID
) -> Event:
    """Stop accepting bookings for an event. Existing passes stay valid."""
    async with db_transaction(db):
        db_event = await _get_owned_event(db, event_id, organizer_id)
        await event_crud.deactivate_event(db, event_id)
        await db.refresh(db_event)

    await invalidate_event(event_id)
    logger.info(f"Event {event_id} deactivated by organizer {organizer_id}")
    return Event.model_validate(db_event)


async def delete_event(
    db: AsyncSession, event_id: uuid.UUID, organizer_id: uuid.UUID
) -> None:
    """Delete an event together with all of its bookings."""
    async with db_transaction(db):
        db_event = await _get_owned_event(db, event_id, organizer_id)
        await event_crud.delete_event(db, db_event)

    await invalidate_event(event_id)
    logger.info(f"Event {event_id} deleted by organizer {organizer_id}")
