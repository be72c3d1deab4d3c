"""WalletRecord repository.

Wallet creation is insert-or-fetch: the unique index on email decides which of
several concurrent inserts wins, and every caller reads back the winning row.
"""

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_nft.models.wallet_record import WalletRecord
from attendance_nft.services.exceptions import StorageError


class WalletRecordRepository:
    """Repository for WalletRecord entities."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_email(self, email: str) -> WalletRecord | None:
        """Retrieve wallet record by (normalised) email.

        Args:
            email: Lower-cased attendee email

        Returns:
            WalletRecord if one exists, None otherwise
        """
        result = await self.session.execute(
            select(WalletRecord).where(WalletRecord.email == email)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def insert_if_absent(self, record: WalletRecord) -> WalletRecord:
        """Insert wallet record unless the email already has one.

        Uses INSERT ... ON CONFLICT (email) DO NOTHING. When another transaction
        holds an uncommitted row for the same email, PostgreSQL blocks the insert
        until that transaction finishes, so the follow-up SELECT sees the winner.

        Args:
            record: Candidate wallet record

        Returns:
            The stored record for the email (the candidate or the existing row)
        """
        stmt = (
            insert(WalletRecord)
            .values(
                id=record.id,
                email=record.email,
                wallet_address=record.wallet_address,
                keystore=record.keystore,
                created_at=record.created_at,
            )
            .on_conflict_do_nothing(index_elements=["email"])
            .returning(WalletRecord)
        )
        result = await self.session.execute(stmt)
        inserted = result.scalar_one_or_none()
        if inserted is not None:
            return inserted

        existing = await self.get_by_email(record.email)
        if existing is None:
            raise StorageError(f"Wallet insert for {record.email} conflicted but no row was found")
        return existing
