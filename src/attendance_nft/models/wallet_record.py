"""WalletRecord entity - custodial wallet assigned to an attendee email."""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from attendance_nft.core.timezone import utcnow


class WalletRecord(SQLModel, table=True):
    """One wallet per attendee email, created lazily on first check-in.

    Rows are inserted once and never updated.
    """

    __tablename__ = "wallet_records"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    email: str = Field(max_length=320, unique=True, index=True)
    wallet_address: str = Field(max_length=42)
    keystore: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow)
