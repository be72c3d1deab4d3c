"""MintRecord repository.

Provides the idempotency lookup and the conflict-aware insert backing the mint
ledger, plus the read-only listings used by admin screens.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_nft.models.mint_record import MintRecord


class MintRecordRepository:
    """Repository for MintRecord entities.

    Records are append-only: there is no update or delete method.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find(self, event_id: UUID, attendee_email: str) -> MintRecord | None:
        """Retrieve the mint record for an (event, attendee) pair.

        Args:
            event_id: Internal event UUID
            attendee_email: Lower-cased attendee email

        Returns:
            MintRecord if the attendee already received the event's NFT, None otherwise
        """
        result = await self.session.execute(
            select(MintRecord).where(
                MintRecord.event_id == event_id,  # type: ignore[arg-type]
                MintRecord.attendee_email == attendee_email,  # type: ignore[arg-type]
            )
        )
        return result.scalar_one_or_none()

    async def insert_if_absent(self, record: MintRecord) -> MintRecord | None:
        """Insert mint record unless the (event, attendee) pair already has one.

        Query explanation:
        - INSERT: Try to insert the new row
        - ON CONFLICT (event_id, attendee_email) DO NOTHING: Leave existing row untouched
        - RETURNING: Yields the row only when this statement inserted it

        Args:
            record: Mint record to append

        Returns:
            The inserted record, or None when the pair was already recorded
        """
        stmt = (
            insert(MintRecord)
            .values(
                id=record.id,
                token_id=record.token_id,
                event_id=record.event_id,
                attendee_email=record.attendee_email,
                wallet_address=record.wallet_address,
                tx_hash=record.tx_hash,
                minted_at=record.minted_at,
                created_at=record.created_at,
            )
            .on_conflict_do_nothing(index_elements=["event_id", "attendee_email"])
            .returning(MintRecord)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_event(self, event_id: UUID, limit: int | None = None) -> list[MintRecord]:
        """Retrieve mint records for an event, newest first.

        Args:
            event_id: Internal event UUID
            limit: Optional maximum number of records

        Returns:
            Mint records ordered by minted_at descending
        """
        stmt = (
            select(MintRecord)
            .where(MintRecord.event_id == event_id)  # type: ignore[arg-type]
            .order_by(MintRecord.minted_at.desc())  # type: ignore[attr-defined]
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_by_attendee(self, attendee_email: str) -> list[MintRecord]:
        """Retrieve mint records for an attendee across all events, newest first."""
        result = await self.session.execute(
            select(MintRecord)
            .where(MintRecord.attendee_email == attendee_email)  # type: ignore[arg-type]
            .order_by(MintRecord.minted_at.desc())  # type: ignore[attr-defined]
        )
        return list(result.scalars().all())

    async def count_by_event(self, event_id: UUID) -> int:
        result = await self.session.execute(
            select(func.count(MintRecord.id)).where(MintRecord.event_id == event_id)  # type: ignore[arg-type]
        )
        return result.scalar_one()
