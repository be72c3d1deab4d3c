"""SQLModel database entities.

All models are imported here to ensure they're registered with SQLModel metadata
for Alembic autogenerate support.
"""

from attendance_nft.models.event import Event
from attendance_nft.models.mint_record import MintRecord
from attendance_nft.models.wallet_record import WalletRecord

__all__ = [
    "Event",
    "MintRecord",
    "WalletRecord",
]
