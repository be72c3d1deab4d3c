"""Check-in orchestrator tests.

Uses the in-memory pipeline doubles from conftest, so the properties are
checked independently of PostgreSQL and the chain:
- Exactly one mint per (event, attendee), including under concurrent duplicates
- No mint without a wallet
- No ledger write unless the chain reported a minted token
- Reason and message mapping for every terminal failure
"""

import asyncio

import pytest

from attendance_nft.core.timezone import utcnow
from attendance_nft.models.mint_record import MintRecord
from attendance_nft.services.attendee import Attendee
from attendance_nft.services.checkin.orchestrator import CheckInReason, CheckInState
from attendance_nft.services.exceptions import (
    ChainRejected,
    ChainUnconfirmed,
    GatewayNotInitializedError,
    StorageError,
    UpstreamLookupError,
    ValidationError,
)


async def check_in(pipeline, check_in_time, event_id="evt-summit", attendee_id="gst-alice"):
    return await pipeline.orchestrator.handle_check_in(event_id, attendee_id, check_in_time)


@pytest.mark.asyncio
async def test_first_check_in_mints_and_records(pipeline, check_in_time):
    """First check-in mints one token and records it."""
    result = await check_in(pipeline, check_in_time)

    assert result.state == CheckInState.COMPLETED
    assert result.success is True
    assert result.http_status == 200
    assert result.token_id == 1
    assert result.already_minted is False
    assert result.message == "NFT minted successfully"
    assert result.to_response() == {
        "success": True,
        "message": "NFT minted successfully",
        "tokenId": 1,
        "alreadyMinted": False,
    }

    assert len(pipeline.gateway.calls) == 1
    assert len(pipeline.ledger.records) == 1
    record = next(iter(pipeline.ledger.records.values()))
    assert record.attendee_email == "alice@example.com"
    assert record.token_id == 1
    assert record.tx_hash == f"0x{1:064x}"


@pytest.mark.asyncio
async def test_state_trail_follows_pipeline_order(pipeline, check_in_time):
    result = await check_in(pipeline, check_in_time)

    assert result.trail == [
        CheckInState.RECEIVED,
        CheckInState.VALIDATED,
        CheckInState.EVENT_RESOLVED,
        CheckInState.WALLET_RESOLVED,
        CheckInState.LEDGER_CHECKED,
        CheckInState.MINTING,
        CheckInState.RECORDED,
        CheckInState.COMPLETED,
    ]


@pytest.mark.asyncio
async def test_mint_carries_event_metadata_and_token_uri(pipeline, check_in_time):
    await check_in(pipeline, check_in_time)

    wallet_address, metadata = pipeline.gateway.calls[0]
    assert wallet_address == pipeline.wallets.wallets["alice@example.com"]
    assert metadata.event_id == str(pipeline.event.id)
    assert metadata.name == "Polkadot Summit"
    assert metadata.date == "2026-05-01"
    assert metadata.location == "Lisbon"
    assert metadata.token_uri == f"ipfs://placeholder/{pipeline.event.id}/gst-alice"


@pytest.mark.asyncio
async def test_repeated_check_in_reports_existing_token(pipeline, check_in_time):
    """Second check-in for the same pair does not mint again."""
    first = await check_in(pipeline, check_in_time)
    second = await check_in(pipeline, check_in_time)

    assert second.state == CheckInState.COMPLETED
    assert second.token_id == first.token_id
    assert second.already_minted is True
    assert second.message == "NFT already minted"
    assert len(pipeline.gateway.calls) == 1
    assert len(pipeline.ledger.records) == 1


@pytest.mark.asyncio
async def test_email_case_does_not_create_second_mint(pipeline, check_in_time):
    """Same attendee seen with a differently cased email is still one pair."""
    pipeline.attendees.add(
        "evt-summit", Attendee(id="gst-alice-2", name="Alice", email="  alice@EXAMPLE.com ")
    )

    first = await check_in(pipeline, check_in_time)
    second = await check_in(pipeline, check_in_time, attendee_id="gst-alice-2")

    assert second.already_minted is True
    assert second.token_id == first.token_id
    assert len(pipeline.gateway.calls) == 1


@pytest.mark.asyncio
async def test_unknown_event_is_rejected_without_side_effects(pipeline, check_in_time):
    """Event not registered by an admin."""
    result = await check_in(pipeline, check_in_time, event_id="evt-unknown")

    assert result.state == CheckInState.REJECTED
    assert result.reason == CheckInReason.EVENT_NOT_CONFIGURED
    assert result.http_status == 400
    assert result.to_response() == {
        "success": False,
        "message": "Event not configured in the system",
    }
    assert pipeline.wallets.calls == []
    assert pipeline.gateway.calls == []
    assert pipeline.ledger.records == {}


@pytest.mark.asyncio
async def test_inactive_event_is_rejected(pipeline, check_in_time):
    pipeline.event.active = False

    result = await check_in(pipeline, check_in_time)

    assert result.state == CheckInState.REJECTED
    assert result.reason == CheckInReason.EVENT_INACTIVE
    assert pipeline.gateway.calls == []


@pytest.mark.asyncio
async def test_chain_failure_leaves_ledger_empty_and_retry_succeeds(pipeline, check_in_time):
    """Unconfirmed mint is reported as retryable; a later retry mints once."""
    pipeline.gateway.error = ChainUnconfirmed("not confirmed in time", tx_hash="0xabc")

    failed = await check_in(pipeline, check_in_time)

    assert failed.state == CheckInState.FAILED
    assert failed.reason == CheckInReason.MINT_UNCONFIRMED
    assert failed.success is False
    assert failed.http_status == 503
    assert "tokenId" not in failed.to_response()
    assert pipeline.ledger.record_calls == 0

    pipeline.gateway.error = None
    retried = await check_in(pipeline, check_in_time)

    assert retried.state == CheckInState.COMPLETED
    assert retried.already_minted is False
    assert len(pipeline.ledger.records) == 1


@pytest.mark.asyncio
async def test_retry_after_unconfirmed_mint_returns_record_written_elsewhere(
    pipeline, check_in_time
):
    """The unconfirmed transaction lands and another delivery records it first."""
    pipeline.gateway.error = ChainUnconfirmed("not confirmed in time", tx_hash="0xabc")

    failed = await check_in(pipeline, check_in_time)
    assert failed.reason == CheckInReason.MINT_UNCONFIRMED

    email = "alice@example.com"
    pipeline.ledger.records[(pipeline.event.id, email)] = MintRecord(
        token_id=7,
        event_id=pipeline.event.id,
        attendee_email=email,
        wallet_address=pipeline.wallets.wallets[email],
        tx_hash="0xabc",
        minted_at=utcnow(),
    )
    pipeline.gateway.error = None

    retried = await check_in(pipeline, check_in_time)

    assert retried.state == CheckInState.COMPLETED
    assert retried.already_minted is True
    assert retried.token_id == 7
    assert retried.http_status == 200
    assert len(pipeline.gateway.calls) == 1
    assert len(pipeline.ledger.records) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        ChainRejected("execution reverted: not authorized"),
        GatewayNotInitializedError("not initialized"),
    ],
)
async def test_chain_rejection_is_failed_without_ledger_write(pipeline, check_in_time, error):
    pipeline.gateway.error = error

    result = await check_in(pipeline, check_in_time)

    assert result.state == CheckInState.FAILED
    assert result.reason == CheckInReason.MINT_REJECTED
    assert result.http_status == 400
    assert pipeline.ledger.record_calls == 0
    # Raw chain detail stays in the logs
    assert "execution reverted" not in result.message


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "event_id, attendee_id, when",
    [
        (None, "gst-alice", "2026-05-01T10:00:00Z"),
        ("evt-summit", "", "2026-05-01T10:00:00Z"),
        ("evt-summit", "gst-alice", None),
    ],
)
async def test_missing_fields_are_invalid_input(pipeline, event_id, attendee_id, when):
    result = await pipeline.orchestrator.handle_check_in(event_id, attendee_id, when)

    assert result.state == CheckInState.REJECTED
    assert result.reason == CheckInReason.INVALID_INPUT
    assert result.message == "Invalid check-in data"
    assert pipeline.gateway.calls == []


@pytest.mark.asyncio
async def test_attendee_lookup_error_is_rejected(pipeline, check_in_time):
    pipeline.attendees.error = UpstreamLookupError("Luma request timeout")

    result = await check_in(pipeline, check_in_time)

    assert result.state == CheckInState.REJECTED
    assert result.reason == CheckInReason.ATTENDEE_LOOKUP_FAILED
    assert result.message == "Could not fetch attendee details"
    assert result.http_status == 400
    assert pipeline.wallets.calls == []


@pytest.mark.asyncio
async def test_unknown_attendee_is_rejected(pipeline, check_in_time):
    result = await check_in(pipeline, check_in_time, attendee_id="gst-nobody")

    assert result.reason == CheckInReason.ATTENDEE_LOOKUP_FAILED
    assert pipeline.gateway.calls == []


@pytest.mark.asyncio
async def test_attendee_without_email_is_rejected(pipeline, check_in_time):
    pipeline.attendees.add("evt-summit", Attendee(id="gst-bob", name="Bob", email=""))

    result = await check_in(pipeline, check_in_time, attendee_id="gst-bob")

    assert result.reason == CheckInReason.ATTENDEE_LOOKUP_FAILED
    assert pipeline.wallets.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error", [StorageError("connection refused"), ValidationError("empty email")]
)
async def test_no_mint_without_wallet(pipeline, check_in_time, error):
    pipeline.wallets.error = error

    result = await check_in(pipeline, check_in_time)

    assert result.state == CheckInState.FAILED
    assert result.reason == CheckInReason.WALLET_RESOLUTION_FAILED
    assert result.http_status == 503
    assert result.message == "Could not prepare wallet for NFT delivery"
    assert pipeline.gateway.calls == []


@pytest.mark.asyncio
async def test_ledger_unavailable_blocks_mint(pipeline, check_in_time):
    pipeline.ledger.find_error = StorageError("database unavailable")

    result = await check_in(pipeline, check_in_time)

    assert result.state == CheckInState.FAILED
    assert result.reason == CheckInReason.STORAGE_ERROR
    assert result.http_status == 503
    assert pipeline.gateway.calls == []


@pytest.mark.asyncio
async def test_event_lookup_storage_error_is_failed(pipeline, check_in_time):
    pipeline.events.error = StorageError("database unavailable")

    result = await check_in(pipeline, check_in_time)

    assert result.state == CheckInState.FAILED
    assert result.reason == CheckInReason.STORAGE_ERROR


@pytest.mark.asyncio
async def test_record_failure_after_mint_is_failed(pipeline, check_in_time):
    pipeline.ledger.record_error = StorageError("write failed")

    result = await check_in(pipeline, check_in_time)

    assert result.state == CheckInState.FAILED
    assert result.reason == CheckInReason.RECORD_FAILED
    assert result.http_status == 500
    assert len(pipeline.gateway.calls) == 1


@pytest.mark.asyncio
async def test_concurrent_duplicates_record_once_and_agree_on_token(pipeline, check_in_time):
    """N simultaneous deliveries of one check-in end with one ledger record.

    Every delivery passes the ledger lookup before any of them records, so the
    conflict on record_mint decides the winner; losers report its token id.
    """
    results = await asyncio.gather(*[check_in(pipeline, check_in_time) for _ in range(5)])

    assert all(r.state == CheckInState.COMPLETED for r in results)
    assert len(pipeline.ledger.records) == 1
    recorded = next(iter(pipeline.ledger.records.values())).token_id
    assert {r.token_id for r in results} == {recorded}
    assert sum(1 for r in results if r.already_minted is False) == 1
    assert sum(1 for r in results if r.already_minted is True) == 4


@pytest.mark.asyncio
async def test_different_attendees_mint_independently(pipeline, check_in_time):
    pipeline.attendees.add("evt-summit", Attendee(id="gst-bob", name="Bob", email="bob@example.com"))

    alice, bob = await asyncio.gather(
        check_in(pipeline, check_in_time), check_in(pipeline, check_in_time, attendee_id="gst-bob")
    )

    assert alice.already_minted is False
    assert bob.already_minted is False
    assert alice.token_id != bob.token_id
    assert len(pipeline.ledger.records) == 2
