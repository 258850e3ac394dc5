"""Tests for the WalletService money-movement primitives."""

from __future__ import annotations

import uuid
from decimal import Decimal

import pytest

from milestone_escrow.domain.enums import TransactionType
from milestone_escrow.domain.exceptions import (
    InsufficientFundsError,
    InvalidAmountError,
    InvariantViolationError,
)


@pytest.fixture
async def wallets(store):
    """Client, worker and platform wallets; the client holds 100.00."""
    async with store.begin() as uow:
        client = await uow.wallets.create(uuid.uuid4())
        worker = await uow.wallets.create(uuid.uuid4())
        platform = await uow.wallets.create(uuid.uuid4())
        await uow.wallets.update_balances(client.id, Decimal("100.00"), Decimal("0"))
    return client.id, worker.id, platform.id


async def _balances(store, wallet_id):
    async with store.begin() as uow:
        wallet = await uow.wallets.get_by_id(wallet_id)
    return wallet.available_balance, wallet.frozen_balance


async def _entries(store, wallet_id):
    async with store.begin() as uow:
        return await uow.transactions.list_by_wallet(wallet_id)


class TestDeposit:
    async def test_deposit_credits_available(self, store, wallet_service, wallets) -> None:
        client, _, _ = wallets
        async with store.begin() as uow:
            await wallet_service.deposit(uow, client, "25.50", "bank ref 1")

        assert await _balances(store, client) == (Decimal("125.50"), Decimal("0.00"))
        [entry] = await _entries(store, client)
        assert entry.type == TransactionType.DEPOSIT
        assert entry.amount == Decimal("25.50")
        assert entry.reference_note == "bank ref 1"

    @pytest.mark.parametrize("amount", ["0", "-5", "1.234"])
    async def test_invalid_amount(self, store, wallet_service, wallets, amount) -> None:
        client, _, _ = wallets
        with pytest.raises(InvalidAmountError):
            async with store.begin() as uow:
                await wallet_service.deposit(uow, client, amount, "bad")
        assert await _entries(store, client) == []


class TestFreeze:
    async def test_freeze_moves_available_to_frozen(self, store, wallet_service, wallets) -> None:
        client, _, _ = wallets
        milestone_id = uuid.uuid4()
        async with store.begin() as uow:
            await wallet_service.freeze(uow, client, Decimal("40.00"), milestone_id)

        assert await _balances(store, client) == (Decimal("60.00"), Decimal("40.00"))
        [entry] = await _entries(store, client)
        assert entry.type == TransactionType.ESCROW_LOCK
        assert entry.milestone_id == milestone_id

    async def test_insufficient_funds_changes_nothing(self, store, wallet_service, wallets) -> None:
        client, _, _ = wallets
        with pytest.raises(InsufficientFundsError) as exc_info:
            async with store.begin() as uow:
                await wallet_service.freeze(uow, client, Decimal("100.01"), uuid.uuid4())

        assert exc_info.value.available == "100.00"
        assert exc_info.value.required == "100.01"
        assert await _balances(store, client) == (Decimal("100.00"), Decimal("0.00"))
        assert await _entries(store, client) == []

    async def test_exact_balance_can_be_frozen(self, store, wallet_service, wallets) -> None:
        client, _, _ = wallets
        async with store.begin() as uow:
            await wallet_service.freeze(uow, client, Decimal("100.00"), uuid.uuid4())
        assert await _balances(store, client) == (Decimal("0.00"), Decimal("100.00"))


class TestRelease:
    async def _freeze(self, store, wallet_service, wallet_id, amount, milestone_id):
        async with store.begin() as uow:
            await wallet_service.freeze(uow, wallet_id, amount, milestone_id)

    async def test_release_pays_worker_and_platform(self, store, wallet_service, wallets) -> None:
        client, worker, platform = wallets
        milestone_id = uuid.uuid4()
        await self._freeze(store, wallet_service, client, Decimal("100.00"), milestone_id)

        async with store.begin() as uow:
            await wallet_service.release(
                uow,
                client_wallet_id=client,
                worker_wallet_id=worker,
                platform_wallet_id=platform,
                amount=Decimal("100.00"),
                fee_amount=Decimal("5.00"),
                worker_amount=Decimal("95.00"),
                milestone_id=milestone_id,
            )

        assert await _balances(store, client) == (Decimal("0.00"), Decimal("0.00"))
        assert await _balances(store, worker) == (Decimal("95.00"), Decimal("0.00"))
        assert await _balances(store, platform) == (Decimal("5.00"), Decimal("0.00"))

        async with store.begin() as uow:
            entries = await uow.transactions.list_by_milestone(milestone_id)
        by_wallet = {(e.wallet_id, e.type): e.amount for e in entries}
        assert by_wallet[(client, "RELEASE")] == Decimal("100.00")
        assert by_wallet[(worker, "RELEASE")] == Decimal("95.00")
        assert by_wallet[(platform, "PLATFORM_FEE")] == Decimal("5.00")

    async def test_mismatched_split_rejected(self, store, wallet_service, wallets) -> None:
        client, worker, platform = wallets
        milestone_id = uuid.uuid4()
        await self._freeze(store, wallet_service, client, Decimal("100.00"), milestone_id)

        with pytest.raises(InvariantViolationError):
            async with store.begin() as uow:
                await wallet_service.release(
                    uow,
                    client_wallet_id=client,
                    worker_wallet_id=worker,
                    platform_wallet_id=platform,
                    amount=Decimal("100.00"),
                    fee_amount=Decimal("5.00"),
                    worker_amount=Decimal("96.00"),
                    milestone_id=milestone_id,
                )
        assert await _balances(store, client) == (Decimal("0.00"), Decimal("100.00"))

    async def test_release_beyond_frozen_rolls_back(self, store, wallet_service, wallets) -> None:
        client, worker, platform = wallets
        with pytest.raises(InvariantViolationError):
            async with store.begin() as uow:
                await wallet_service.release(
                    uow,
                    client_wallet_id=client,
                    worker_wallet_id=worker,
                    platform_wallet_id=platform,
                    amount=Decimal("10.00"),
                    fee_amount=Decimal("0.50"),
                    worker_amount=Decimal("9.50"),
                    milestone_id=uuid.uuid4(),
                )
        assert await _balances(store, worker) == (Decimal("0.00"), Decimal("0.00"))
        assert await _entries(store, client) == []


class TestRefund:
    async def test_refund_returns_frozen_funds(self, store, wallet_service, wallets) -> None:
        client, _, _ = wallets
        milestone_id = uuid.uuid4()
        async with store.begin() as uow:
            await wallet_service.freeze(uow, client, Decimal("30.00"), milestone_id)
        async with store.begin() as uow:
            await wallet_service.refund(uow, client, Decimal("30.00"), milestone_id)

        assert await _balances(store, client) == (Decimal("100.00"), Decimal("0.00"))
        types = {e.type for e in await _entries(store, client)}
        assert types == {"ESCROW_LOCK", "REFUND"}

    async def test_refund_more_than_frozen(self, store, wallet_service, wallets) -> None:
        client, _, _ = wallets
        with pytest.raises(InvariantViolationError):
            async with store.begin() as uow:
                await wallet_service.refund(uow, client, Decimal("1.00"), uuid.uuid4())
