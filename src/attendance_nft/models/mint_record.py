"""MintRecord entity - ledger of attendance NFTs minted per event and attendee."""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, UniqueConstraint
from sqlmodel import Field, SQLModel

from attendance_nft.core.timezone import utcnow


class MintRecord(SQLModel, table=True):
    """MintRecord is written only after the chain reported a minted token.

    The (event_id, attendee_email) pair is unique; that constraint is what keeps
    duplicate check-ins from crediting an attendee twice.
    """

    __tablename__ = "mint_records"  # type: ignore[assignment]
    __table_args__ = (
        UniqueConstraint("event_id", "attendee_email", name="uq_mint_records_event_attendee"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    token_id: int = Field(ge=0, index=True, sa_type=BigInteger)
    event_id: UUID = Field(index=True)
    attendee_email: str = Field(max_length=320, index=True)
    wallet_address: str = Field(max_length=42)
    tx_hash: Optional[str] = Field(default=None, max_length=66)
    minted_at: datetime = Field(index=True)
    created_at: datetime = Field(default_factory=utcnow)
