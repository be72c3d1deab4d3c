"""Event repository.

Provides data access methods for admin-registered events, including the lookup
by Luma identifier used by the check-in pipeline.
"""

from typing import Any, Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_nft.core.timezone import utcnow
from attendance_nft.models.event import Event

# Fields admins may change after creation. luma_event_id is intentionally absent.
UPDATABLE_FIELDS = ("name", "date", "location", "organizer", "description", "image_url", "active")


class EventRepository:
    """Repository for Event entities.

    Methods:
    - get_by_id: Retrieve event by UUID
    - get_by_luma_id: Retrieve event by its Luma identifier
    - add: Persist new event
    - list_all: Filtered list of events, newest date first
    - update: Apply allowed field changes
    - delete: Remove event by UUID
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, event_id: UUID) -> Event | None:
        result = await self.session.execute(select(Event).where(Event.id == event_id))  # type: ignore[arg-type]
        return result.scalar_one_or_none()

    async def get_by_luma_id(self, luma_event_id: str) -> Event | None:
        """Retrieve event by Luma event identifier (exact match).

        Args:
            luma_event_id: Identifier of the event on the Luma platform

        Returns:
            Event if registered, None otherwise
        """
        result = await self.session.execute(
            select(Event).where(Event.luma_event_id == luma_event_id)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def add(self, event: Event) -> Event:
        self.session.add(event)
        await self.session.flush()
        return event

    async def list_all(
        self,
        active: Optional[bool] = None,
        organizer: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> list[Event]:
        """Retrieve events matching optional filters.

        Dates are ISO strings, so lexical comparison matches chronological order.

        Args:
            active: Only active (True) or inactive (False) events
            organizer: Exact organizer match
            start_date: Inclusive lower bound on event date
            end_date: Inclusive upper bound on event date

        Returns:
            Events ordered by date (newest first)
        """
        stmt = select(Event)
        if active is not None:
            stmt = stmt.where(Event.active == active)  # type: ignore[arg-type]
        if organizer:
            stmt = stmt.where(Event.organizer == organizer)  # type: ignore[arg-type]
        if start_date:
            stmt = stmt.where(Event.date >= start_date)  # type: ignore[arg-type]
        if end_date:
            stmt = stmt.where(Event.date <= end_date)  # type: ignore[arg-type]

        result = await self.session.execute(stmt.order_by(Event.date.desc()))  # type: ignore[attr-defined]
        return list(result.scalars().all())

    async def update(self, event: Event, changes: dict[str, Any]) -> Event:
        """Apply changes to an event, ignoring fields that must not change.

        Args:
            event: Persisted event to modify
            changes: Field values keyed by attribute name

        Returns:
            Updated event
        """
        for field, value in changes.items():
            if field in UPDATABLE_FIELDS:
                setattr(event, field, value)
        event.updated_at = utcnow()
        await self.session.flush()
        return event

    async def delete(self, event_id: UUID) -> bool:
        """Delete event by UUID.

        Returns:
            True if an event was deleted, False if it did not exist
        """
        result = await self.session.execute(delete(Event).where(Event.id == event_id))  # type: ignore[arg-type]
        await self.session.flush()
        return result.rowcount > 0  # type: ignore[attr-defined]
