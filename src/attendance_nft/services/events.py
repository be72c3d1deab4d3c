"""Read access to admin-registered events for the check-in pipeline."""

from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from attendance_nft.models.event import Event
from attendance_nft.services.exceptions import StorageError
from attendance_nft.uow import UnitOfWorkFactory


class EventCatalog:
    """Resolve Luma event identifiers to registered events."""

    def __init__(self, uow_factory: UnitOfWorkFactory):
        self.uow_factory = uow_factory

    async def get_event_by_external_id(self, luma_event_id: str) -> Optional[Event]:
        """Return the registered event for a Luma id, or None.

        Raises:
            StorageError: Database unavailable
        """
        try:
            async with await self.uow_factory() as uow:
                return await uow.events.get_by_luma_id(luma_event_id)
        except SQLAlchemyError as e:
            raise StorageError(f"Event lookup failed: {e}") from e
