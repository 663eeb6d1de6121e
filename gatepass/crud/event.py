import uuid
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gatepass.models.event import Event
from gatepass.schemas.event import EventCreate


async def get_event(db: AsyncSession, event_id: uuid.UUID) -> Optional[Event]:
    result = await db.execute(select(Event).filter(Event.id == event_id))
    first: Optional[Event] = result.scalars().first()
    return first


async def get_events_by_organizer(
    db: AsyncSession, organizer_id: uuid.UUID
) -> List[Event]:
    result = await db.execute(
        select(Event)
        .filter(Event.organizer_id == organizer_id)
        .order_by(Event.event_date.desc())
    )
    return list(result.scalars().all())


async def count_active_events(db: AsyncSession, organizer_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.count(Event.id)).filter(
            Event.organizer_id == organizer_id, Event.is_active.is_(True)
        )
    )
    return int(result.scalar_one())


async def create_event(
    db: AsyncSession, event: EventCreate, organizer_id: uuid.UUID
) -> Event:
    # Available starts identical to total; both NULL when unbounded
    db_event = Event(
        **event.model_dump(),
        organizer_id=organizer_id,
        seats_available=event.total_seats,
        is_active=True,
    )
    db.add(db_event)
    await db.flush()
    await db.refresh(db_event)
    return db_event


async def deactivate_event(db: AsyncSession, event_id: uuid.UUID) -> None:
    await db.execute(update(Event).where(Event.id == event_id).values(is_active=False))


async def delete_event(db: AsyncSession, db_event: Event) -> None:
    await db.delete(db_event)
    await db.flush()
