"""Repository layer.

Provides data access abstractions for all domain entities.
Each repository is self-contained and wraps a single AsyncSession.
"""

from attendance_nft.repositories.event import EventRepository
from attendance_nft.repositories.mint_record import MintRecordRepository
from attendance_nft.repositories.wallet_record import WalletRecordRepository

__all__ = [
    "EventRepository",
    "MintRecordRepository",
    "WalletRecordRepository",
]
