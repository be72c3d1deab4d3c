"""Check-in orchestrator: turns a Luma check-in into at most one attendance NFT.

Pipeline per check-in:
    received -> validated -> event_resolved -> wallet_resolved -> ledger_checked
    -> minting -> recorded -> completed
with terminal failures rejected(reason) and failed(reason).

There is no in-process retry. A failed or unconfirmed check-in is retried by
resubmitting it (Luma redelivers webhooks); the ledger lookup before minting and
the unique constraint behind record_mint absorb the duplicates.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Protocol, Union
from uuid import UUID

import structlog

from attendance_nft.core.timezone import utcnow
from attendance_nft.models.event import Event
from attendance_nft.models.mint_record import MintRecord
from attendance_nft.services.attendee import Attendee, normalize_email
from attendance_nft.services.blockchain.minting_gateway import EventMetadata, MintResult
from attendance_nft.services.exceptions import (
    ChainRejected,
    ChainUnconfirmed,
    DuplicateMintError,
    GatewayNotInitializedError,
    StorageError,
    UpstreamLookupError,
    ValidationError,
)
from attendance_nft.services.metadata import TokenUriBuilder

logger = structlog.get_logger()


class CheckInState(str, Enum):
    """Check-in pipeline state."""

    RECEIVED = "received"
    VALIDATED = "validated"
    EVENT_RESOLVED = "event_resolved"
    WALLET_RESOLVED = "wallet_resolved"
    LEDGER_CHECKED = "ledger_checked"
    MINTING = "minting"
    RECORDED = "recorded"
    COMPLETED = "completed"
    REJECTED = "rejected"
    FAILED = "failed"


class CheckInReason(str, Enum):
    """Why a check-in ended in rejected or failed."""

    INVALID_INPUT = "invalid_input"
    EVENT_NOT_CONFIGURED = "event_not_configured"
    EVENT_INACTIVE = "event_inactive"
    ATTENDEE_LOOKUP_FAILED = "attendee_lookup_failed"
    WALLET_RESOLUTION_FAILED = "wallet_resolution_failed"
    STORAGE_ERROR = "storage_error"
    MINT_REJECTED = "mint_rejected"
    MINT_UNCONFIRMED = "mint_unconfirmed"
    RECORD_FAILED = "record_failed"


MESSAGES = {
    CheckInReason.INVALID_INPUT: "Invalid check-in data",
    CheckInReason.EVENT_NOT_CONFIGURED: "Event not configured in the system",
    CheckInReason.EVENT_INACTIVE: "Event is not active",
    CheckInReason.ATTENDEE_LOOKUP_FAILED: "Could not fetch attendee details",
    CheckInReason.WALLET_RESOLUTION_FAILED: "Could not prepare wallet for NFT delivery",
    CheckInReason.STORAGE_ERROR: "Could not verify minting status",
    CheckInReason.MINT_REJECTED: "NFT minting was rejected",
    CheckInReason.MINT_UNCONFIRMED: "NFT minting could not be confirmed, please retry the check-in",
    CheckInReason.RECORD_FAILED: "NFT minted but could not be recorded",
}

# Failures worth a redelivery from the webhook sender; other failures are 400
RETRYABLE_STATUS = {
    CheckInReason.WALLET_RESOLUTION_FAILED: 503,
    CheckInReason.STORAGE_ERROR: 503,
    CheckInReason.MINT_UNCONFIRMED: 503,
    CheckInReason.RECORD_FAILED: 500,
}


@dataclass
class CheckInResult:
    """Structured outcome of one check-in."""

    state: CheckInState
    message: str
    reason: Optional[CheckInReason] = None
    token_id: Optional[int] = None
    already_minted: Optional[bool] = None
    trail: list[CheckInState] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.state == CheckInState.COMPLETED

    @property
    def http_status(self) -> int:
        """200 when completed, 400 for rejections and permanent failures, 5xx when retryable."""
        if self.success:
            return 200
        if self.state == CheckInState.FAILED and self.reason in RETRYABLE_STATUS:
            return RETRYABLE_STATUS[self.reason]
        return 400

    def to_response(self) -> dict[str, Any]:
        """Render the public webhook response body."""
        body: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.token_id is not None:
            body["tokenId"] = self.token_id
        if self.already_minted is not None:
            body["alreadyMinted"] = self.already_minted
        return body


class EventSource(Protocol):
    async def get_event_by_external_id(self, luma_event_id: str) -> Optional[Event]: ...


class AttendeeSource(Protocol):
    async def get_attendee(self, event_id: str, attendee_id: str) -> Optional[Attendee]: ...


class WalletSource(Protocol):
    async def resolve_wallet(self, email: str) -> str: ...


class Ledger(Protocol):
    async def find_record(self, event_id: UUID, attendee_email: str) -> Optional[MintRecord]: ...

    async def record_mint(
        self,
        token_id: int,
        event_id: UUID,
        attendee_email: str,
        wallet_address: str,
        minted_at: datetime,
        tx_hash: Optional[str] = None,
    ) -> MintRecord: ...


class Minter(Protocol):
    async def mint(self, wallet_address: str, metadata: EventMetadata) -> MintResult: ...


class CheckInOrchestrator:
    """Drive one check-in through the mint pipeline.

    All collaborators are injected once at startup and shared by concurrent
    check-ins; none of them holds per-request state.
    """

    def __init__(
        self,
        events: EventSource,
        attendees: AttendeeSource,
        wallets: WalletSource,
        ledger: Ledger,
        gateway: Minter,
        token_uris: TokenUriBuilder,
    ):
        self.events = events
        self.attendees = attendees
        self.wallets = wallets
        self.ledger = ledger
        self.gateway = gateway
        self.token_uris = token_uris

    async def handle_check_in(
        self,
        event_external_id: Optional[str],
        attendee_external_id: Optional[str],
        check_in_time: Union[str, datetime, None],
    ) -> CheckInResult:
        """Process a check-in notification.

        Args:
            event_external_id: Luma event identifier
            attendee_external_id: Luma attendee identifier
            check_in_time: When the attendee checked in (ISO string or datetime)

        Returns:
            CheckInResult; completed (possibly already_minted), rejected or failed
        """
        trail = [CheckInState.RECEIVED]
        log = logger.bind(event_id=event_external_id, attendee_id=attendee_external_id)
        log.info("checkin.received", check_in_time=str(check_in_time) if check_in_time else None)

        def advance(state: CheckInState) -> None:
            trail.append(state)
            log.debug("checkin.state", state=state.value)

        def end(
            state: CheckInState,
            reason: Optional[CheckInReason] = None,
            token_id: Optional[int] = None,
            already_minted: Optional[bool] = None,
            message: Optional[str] = None,
        ) -> CheckInResult:
            trail.append(state)
            return CheckInResult(
                state=state,
                message=message or MESSAGES[reason],  # type: ignore[index]
                reason=reason,
                token_id=token_id,
                already_minted=already_minted,
                trail=trail,
            )

        # 1. Validate
        if not event_external_id or not attendee_external_id or not check_in_time:
            log.warning("checkin.invalid_input")
            return end(CheckInState.REJECTED, CheckInReason.INVALID_INPUT)
        advance(CheckInState.VALIDATED)

        # 2. Resolve event (must be pre-registered by an admin)
        try:
            event = await self.events.get_event_by_external_id(event_external_id)
        except StorageError as e:
            log.error("checkin.event_lookup_failed", error=str(e))
            return end(CheckInState.FAILED, CheckInReason.STORAGE_ERROR)
        if event is None:
            log.warning("checkin.event_not_configured")
            return end(CheckInState.REJECTED, CheckInReason.EVENT_NOT_CONFIGURED)
        if not event.active:
            log.warning("checkin.event_inactive", internal_event_id=str(event.id))
            return end(CheckInState.REJECTED, CheckInReason.EVENT_INACTIVE)
        advance(CheckInState.EVENT_RESOLVED)

        # 3. Resolve attendee on Luma
        try:
            attendee = await self.attendees.get_attendee(event_external_id, attendee_external_id)
        except UpstreamLookupError as e:
            log.error("checkin.attendee_lookup_failed", error=str(e))
            return end(CheckInState.REJECTED, CheckInReason.ATTENDEE_LOOKUP_FAILED)
        if attendee is None or not normalize_email(attendee.email):
            log.warning("checkin.attendee_not_found", has_attendee=attendee is not None)
            return end(CheckInState.REJECTED, CheckInReason.ATTENDEE_LOOKUP_FAILED)
        email = normalize_email(attendee.email)
        log = log.bind(attendee_email=email)

        # 4. Resolve wallet; no wallet means no mint
        try:
            wallet_address = await self.wallets.resolve_wallet(email)
        except (StorageError, ValidationError) as e:
            log.error("checkin.wallet_resolution_failed", error=str(e))
            return end(CheckInState.FAILED, CheckInReason.WALLET_RESOLUTION_FAILED)
        advance(CheckInState.WALLET_RESOLVED)

        # 5. Idempotency gate
        try:
            existing = await self.ledger.find_record(event.id, email)
        except StorageError as e:
            log.error("checkin.ledger_lookup_failed", error=str(e))
            return end(CheckInState.FAILED, CheckInReason.STORAGE_ERROR)
        advance(CheckInState.LEDGER_CHECKED)
        if existing is not None:
            log.info("checkin.already_minted", token_id=existing.token_id)
            return end(
                CheckInState.COMPLETED,
                token_id=existing.token_id,
                already_minted=True,
                message="NFT already minted",
            )

        # 6. Mint (the only step with an irreversible side effect)
        advance(CheckInState.MINTING)
        metadata = EventMetadata(
            event_id=str(event.id),
            name=event.name,
            date=event.date,
            location=event.location,
            token_uri=self.token_uris.build(str(event.id), attendee.id),
        )
        try:
            minted = await self.gateway.mint(wallet_address, metadata)
        except (ChainRejected, GatewayNotInitializedError) as e:
            log.error(
                "checkin.mint_rejected",
                error=str(e),
                error_type=type(e).__name__,
                tx_hash=getattr(e, "tx_hash", None),
                wallet_address=wallet_address,
            )
            return end(CheckInState.FAILED, CheckInReason.MINT_REJECTED)
        except ChainUnconfirmed as e:
            log.warning(
                "checkin.mint_unconfirmed",
                error=str(e),
                tx_hash=e.tx_hash,
                wallet_address=wallet_address,
            )
            return end(CheckInState.FAILED, CheckInReason.MINT_UNCONFIRMED)

        # 7. Record; a concurrent duplicate may have recorded first
        try:
            await self.ledger.record_mint(
                token_id=minted.token_id,
                event_id=event.id,
                attendee_email=email,
                wallet_address=wallet_address,
                minted_at=utcnow(),
                tx_hash=minted.tx_hash,
            )
        except DuplicateMintError as e:
            log.warning(
                "checkin.duplicate_chain_mint",
                recorded_token_id=e.existing.token_id,
                orphan_token_id=minted.token_id,
                orphan_tx_hash=minted.tx_hash,
            )
            return end(
                CheckInState.COMPLETED,
                token_id=e.existing.token_id,
                already_minted=True,
                message="NFT already minted",
            )
        except StorageError as e:
            log.error(
                "checkin.record_failed",
                error=str(e),
                token_id=minted.token_id,
                tx_hash=minted.tx_hash,
                wallet_address=wallet_address,
            )
            return end(CheckInState.FAILED, CheckInReason.RECORD_FAILED)
        advance(CheckInState.RECORDED)

        log.info(
            "checkin.notification",
            attendee_name=attendee.name,
            token_id=minted.token_id,
            event_name=event.name,
        )
        log.info("checkin.completed", token_id=minted.token_id, tx_hash=minted.tx_hash)

        # 8. Complete
        return end(
            CheckInState.COMPLETED,
            token_id=minted.token_id,
            already_minted=False,
            message="NFT minted successfully",
        )
