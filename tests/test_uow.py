"""Unit of Work pattern tests.

Tests focus on transaction management:
- Successful commits persist changes
- Exceptions trigger rollback and propagate
"""

import pytest

from attendance_nft.models.wallet_record import WalletRecord
from conftest import make_event


@pytest.mark.asyncio
async def test_uow_commits_on_successful_exit(uow_factory):
    async with await uow_factory() as uow:
        event = await uow.events.add(make_event("evt-commit"))
        event_id = event.id

    async with await uow_factory() as uow:
        found = await uow.events.get_by_id(event_id)
        assert found is not None
        assert found.luma_event_id == "evt-commit"


@pytest.mark.asyncio
async def test_uow_rollback_on_exception(uow_factory):
    with pytest.raises(ValueError, match="Simulated error"):
        async with await uow_factory() as uow:
            await uow.wallets.insert_if_absent(
                WalletRecord(email="rollback@example.com", wallet_address="0x" + "3" * 40)
            )
            raise ValueError("Simulated error")

    async with await uow_factory() as uow:
        assert await uow.wallets.get_by_email("rollback@example.com") is None


@pytest.mark.asyncio
async def test_uow_repositories_share_one_transaction(uow_factory):
    with pytest.raises(RuntimeError):
        async with await uow_factory() as uow:
            await uow.events.add(make_event("evt-atomic"))
            await uow.wallets.insert_if_absent(
                WalletRecord(email="atomic@example.com", wallet_address="0x" + "4" * 40)
            )
            raise RuntimeError("abort")

    async with await uow_factory() as uow:
        assert await uow.events.get_by_luma_id("evt-atomic") is None
        assert await uow.wallets.get_by_email("atomic@example.com") is None
