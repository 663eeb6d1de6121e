"""
Capacity ledger: the authoritative seats-remaining counter of each event.

A ``CapacityLedger`` is bound to one session. ``acquire_for_update`` takes an
exclusive lock on the event row for the rest of the enclosing transaction, and
``decrement``/``release`` are only accepted for events locked through the same
ledger, so every mutation of ``seats_available`` happens under that lock.
"""

import logging
import time
import uuid
from dataclasses import dataclass, replace
from typing import Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gatepass.core.exceptions import EventNotFound, InsufficientCapacity
from gatepass.core.metrics import metrics
from gatepass.models.event import Event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CapacitySnapshot:
    """Capacity fields of an event as seen while holding its row lock"""

    event_id: uuid.UUID
    is_active: bool
    total_seats: Optional[int]
    seats_available: Optional[int]

    @property
    def is_bounded(self) -> bool:
        return self.total_seats is not None

    def can_accommodate(self, seats: int) -> bool:
        if not self.is_bounded:
            return True
        return seats <= (self.seats_available or 0)


class CapacityLedger:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self._locked: Dict[uuid.UUID, CapacitySnapshot] = {}

    async def acquire_for_update(self, event_id: uuid.UUID) -> CapacitySnapshot:
        """Lock the event row and return its capacity fields.

        Blocks while another transaction holds the lock on the same event.
        """
        started = time.perf_counter()
        result = await self.db.execute(
            select(Event.id, Event.is_active, Event.total_seats, Event.seats_available)
            .where(Event.id == event_id)
            .with_for_update()
        )
        row = result.first()
        metrics.capacity_lock_wait_seconds.observe(time.perf_counter() - started)

        if row is None:
            raise EventNotFound()

        snapshot = CapacitySnapshot(
            event_id=row.id,
            is_active=bool(row.is_active),
            total_seats=row.total_seats,
            seats_available=row.seats_available,
        )
        self._locked[event_id] = snapshot
        return snapshot

    def _held(self, event_id: uuid.UUID) -> CapacitySnapshot:
        snapshot = self._locked.get(event_id)
        if snapshot is None or not self.db.in_transaction():
            raise RuntimeError(
                f"Capacity of event {event_id} is not locked by this ledger"
            )
        return snapshot

    async def decrement(self, event_id: uuid.UUID, seats: int) -> CapacitySnapshot:
        """Deduct ``seats`` from a locked event; a no-op for unbounded events."""
        if seats < 1:
            raise ValueError("seats must be a positive integer")

        snapshot = self._held(event_id)
        if not snapshot.is_bounded:
            return snapshot

        if not snapshot.can_accommodate(seats):
            raise InsufficientCapacity(
                seats_available=snapshot.seats_available or 0, seats_requested=seats
            )

        remaining = (snapshot.seats_available or 0) - seats
        await self.db.execute(
            update(Event).where(Event.id == event_id).values(seats_available=remaining)
        )
        updated = replace(snapshot, seats_available=remaining)
        self._locked[event_id] = updated
        logger.debug(f"Event {event_id} seats_available {snapshot.seats_available} -> {remaining}")
        return updated

    async def release(self, event_id: uuid.UUID, seats: int) -> CapacitySnapshot:
        """Return ``seats`` to a locked event, never exceeding its total."""
        if seats < 1:
            raise ValueError("seats must be a positive integer")

        snapshot = self._held(event_id)
        if not snapshot.is_bounded:
            return snapshot

        restored = min(
            (snapshot.seats_available or 0) + seats, snapshot.total_seats or 0
        )
        await self.db.execute(
            update(Event).where(Event.id == event_id).values(seats_available=restored)
        )
        updated = replace(snapshot, seats_available=restored)
        self._locked[event_id] = updated
        return updated
