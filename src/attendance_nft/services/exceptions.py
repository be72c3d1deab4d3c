"""Service error hierarchy for the check-in-to-mint pipeline.

- ServiceError: Base for all service errors
- TransientError: Retryable errors (network, database availability, unconfirmed transactions)
- PermanentError: Non-retryable errors (bad input, unknown event, chain rejection)
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from attendance_nft.models.mint_record import MintRecord


class ServiceError(Exception):
    """Base exception for all service errors."""

    pass


class TransientError(ServiceError):
    """Transient error that may succeed on retry."""

    pass


class PermanentError(ServiceError):
    """Permanent error that will not succeed on retry."""

    pass


# Input and configuration errors
class ValidationError(PermanentError):
    """Input failed validation (missing or malformed fields)."""

    pass


class NotConfiguredError(PermanentError):
    """Event is unknown to the system; it must be registered by an admin first."""

    pass


# Upstream and storage errors
class UpstreamLookupError(TransientError):
    """The Luma event platform could not be reached or refused the request."""

    pass


class StorageError(TransientError):
    """Database unavailable or a write failed."""

    pass


class DuplicateMintError(StorageError):
    """A mint record for the same (event, attendee) pair already exists.

    Carries the stored record so callers can report the winner's token id.
    """

    def __init__(self, existing: "MintRecord"):
        super().__init__(
            f"Mint already recorded for event {existing.event_id} "
            f"and attendee {existing.attendee_email} (token {existing.token_id})"
        )
        self.existing = existing


# Blockchain errors
class BlockchainError(ServiceError):
    """Base exception for blockchain errors."""

    pass


class ChainRejected(BlockchainError, PermanentError):
    """The chain explicitly rejected the mint (revert, failed status, missing Mint event)."""

    def __init__(self, message: str, tx_hash: Optional[str] = None):
        super().__init__(message)
        self.tx_hash = tx_hash


class ChainUnconfirmed(BlockchainError, TransientError):
    """Inclusion of a submitted transaction was not observed in time.

    The outcome is ambiguous: the transaction may still land. Retrying the whole
    check-in is safe because the mint ledger refuses a second record.
    """

    def __init__(self, message: str, tx_hash: Optional[str] = None):
        super().__init__(message)
        self.tx_hash = tx_hash


class GatewayNotInitializedError(BlockchainError, PermanentError):
    """Mint attempted before the minter authorization check succeeded."""

    pass


class NotAuthorizedError(BlockchainError, PermanentError):
    """Minter account is not authorized on the contract. Fatal at startup."""

    pass
