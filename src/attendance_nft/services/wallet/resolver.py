"""Custodial wallet resolution for attendees.

Each attendee email maps to exactly one wallet address. The address is created
lazily on first check-in and never changes afterwards.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional, Protocol

import structlog
from eth_account import Account
from eth_utils.address import to_checksum_address
from sqlalchemy.exc import SQLAlchemyError

from attendance_nft.models.wallet_record import WalletRecord
from attendance_nft.services.attendee import normalize_email
from attendance_nft.services.exceptions import StorageError, ValidationError
from attendance_nft.uow import UnitOfWorkFactory

logger = structlog.get_logger()


@dataclass(frozen=True)
class GeneratedWallet:
    """Freshly generated keypair as handed to the resolver."""

    address: str
    keystore: Optional[dict] = None


class WalletGenerator(Protocol):
    def generate(self) -> GeneratedWallet: ...


class EthAccountWalletGenerator:
    """Generate wallets with eth-account.

    When a keystore password is configured the private key is encrypted into a
    Web3 Secret Storage keystore and stored with the wallet record; otherwise
    only the address is kept.
    """

    def __init__(self, keystore_password: str = "", kdf_iterations: Optional[int] = None):
        self.keystore_password = keystore_password
        self.kdf_iterations = kdf_iterations

    def generate(self) -> GeneratedWallet:
        account = Account.create()
        keystore = None
        if self.keystore_password:
            keystore = Account.encrypt(
                account.key, self.keystore_password, iterations=self.kdf_iterations
            )
        return GeneratedWallet(address=account.address, keystore=keystore)


class WalletResolver:
    """Resolve attendee emails to wallet addresses.

    Creation is serialised by the unique index on wallet_records.email, not by
    in-process locks: concurrent first check-ins may each generate a keypair,
    but only one row is stored and every caller returns its address.
    """

    def __init__(self, uow_factory: UnitOfWorkFactory, generator: WalletGenerator):
        self.uow_factory = uow_factory
        self.generator = generator

    async def resolve_wallet(self, email: str) -> str:
        """Return the wallet address for an email, creating one if needed.

        Args:
            email: Attendee email (case and surrounding whitespace ignored)

        Returns:
            Checksummed wallet address

        Raises:
            ValidationError: Email is empty
            StorageError: Database read or write failed
        """
        normalized = normalize_email(email)
        if not normalized:
            raise ValidationError("Attendee email is required to resolve a wallet")

        try:
            async with await self.uow_factory() as uow:
                existing = await uow.wallets.get_by_email(normalized)
        except SQLAlchemyError as e:
            logger.error("wallet.lookup_failed", email=normalized, error=str(e))
            raise StorageError(f"Wallet lookup failed: {e}") from e

        if existing is not None:
            logger.debug("wallet.found", email=normalized, wallet_address=existing.wallet_address)
            return existing.wallet_address

        generated = await asyncio.to_thread(self.generator.generate)
        address = to_checksum_address(generated.address)

        try:
            async with await self.uow_factory() as uow:
                stored = await uow.wallets.insert_if_absent(
                    WalletRecord(
                        email=normalized,
                        wallet_address=address,
                        keystore=generated.keystore,
                    )
                )
        except SQLAlchemyError as e:
            logger.error("wallet.create_failed", email=normalized, error=str(e))
            raise StorageError(f"Wallet creation failed: {e}") from e

        if stored.wallet_address != address:
            # Lost the race; the generated keypair is discarded.
            logger.info(
                "wallet.concurrent_creation_resolved",
                email=normalized,
                wallet_address=stored.wallet_address,
            )
        else:
            logger.info(
                "wallet.created",
                email=normalized,
                wallet_address=stored.wallet_address,
                custodial_key_stored=generated.keystore is not None,
            )

        return stored.wallet_address
