"""Mint ledger: durable (event, attendee) -> mint outcome history.

The ledger is the source of truth for idempotency. find_record is a fast path
checked before any chain transaction; the unique constraint behind record_mint
is what actually guarantees a single record per pair.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy.exc import SQLAlchemyError

from attendance_nft.models.mint_record import MintRecord
from attendance_nft.services.attendee import normalize_email
from attendance_nft.services.exceptions import DuplicateMintError, StorageError
from attendance_nft.uow import UnitOfWorkFactory

logger = structlog.get_logger()


class MintLedger:
    """Append-only ledger of minted attendance NFTs."""

    def __init__(self, uow_factory: UnitOfWorkFactory):
        self.uow_factory = uow_factory

    async def find_record(self, event_id: UUID, attendee_email: str) -> Optional[MintRecord]:
        """Look up an existing mint for the pair.

        Raises:
            StorageError: Database unavailable
        """
        try:
            async with await self.uow_factory() as uow:
                return await uow.mint_records.find(event_id, normalize_email(attendee_email))
        except SQLAlchemyError as e:
            logger.error("ledger.lookup_failed", event_id=str(event_id), error=str(e))
            raise StorageError(f"Mint ledger lookup failed: {e}") from e

    async def record_mint(
        self,
        token_id: int,
        event_id: UUID,
        attendee_email: str,
        wallet_address: str,
        minted_at: datetime,
        tx_hash: Optional[str] = None,
    ) -> MintRecord:
        """Append a mint record.

        Args:
            token_id: Token identifier reported by the chain
            event_id: Internal event UUID
            attendee_email: Attendee email (normalised before storage)
            wallet_address: Wallet that received the token
            minted_at: Time the mint was confirmed
            tx_hash: Mint transaction hash

        Returns:
            The newly stored record

        Raises:
            DuplicateMintError: The pair was already recorded (carries that record)
            StorageError: Any other database failure
        """
        if token_id < 0:
            raise ValueError(f"token_id must be non-negative, got {token_id}")

        email = normalize_email(attendee_email)
        candidate = MintRecord(
            token_id=token_id,
            event_id=event_id,
            attendee_email=email,
            wallet_address=wallet_address,
            tx_hash=tx_hash,
            minted_at=minted_at,
        )

        try:
            async with await self.uow_factory() as uow:
                inserted = await uow.mint_records.insert_if_absent(candidate)
                existing = None
                if inserted is None:
                    existing = await uow.mint_records.find(event_id, email)
        except SQLAlchemyError as e:
            logger.error(
                "ledger.record_failed",
                event_id=str(event_id),
                attendee_email=email,
                token_id=token_id,
                error=str(e),
            )
            raise StorageError(f"Recording mint failed: {e}") from e

        if inserted is None:
            if existing is None:
                raise StorageError(
                    f"Mint insert for event {event_id} conflicted but no record was found"
                )
            logger.info(
                "ledger.duplicate_mint",
                event_id=str(event_id),
                attendee_email=email,
                existing_token_id=existing.token_id,
                rejected_token_id=token_id,
            )
            raise DuplicateMintError(existing)

        logger.info(
            "ledger.mint_recorded",
            event_id=str(event_id),
            attendee_email=email,
            token_id=token_id,
            tx_hash=tx_hash,
        )
        return inserted

    async def list_by_event(self, event_id: UUID, limit: Optional[int] = None) -> list[MintRecord]:
        try:
            async with await self.uow_factory() as uow:
                return await uow.mint_records.list_by_event(event_id, limit=limit)
        except SQLAlchemyError as e:
            raise StorageError(f"Listing mints for event failed: {e}") from e

    async def list_by_attendee(self, attendee_email: str) -> list[MintRecord]:
        try:
            async with await self.uow_factory() as uow:
                return await uow.mint_records.list_by_attendee(normalize_email(attendee_email))
        except SQLAlchemyError as e:
            raise StorageError(f"Listing mints for attendee failed: {e}") from e

    async def count_by_event(self, event_id: UUID) -> int:
        try:
            async with await self.uow_factory() as uow:
                return await uow.mint_records.count_by_event(event_id)
        except SQLAlchemyError as e:
            raise StorageError(f"Counting mints for event failed: {e}") from e
