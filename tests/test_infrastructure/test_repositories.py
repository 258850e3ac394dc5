"""Tests for the repositories: locking reads, balance guards, ledger queries."""

from __future__ import annotations

import uuid
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from milestone_escrow.domain.enums import JobStatus, MilestoneStatus, TransactionType
from milestone_escrow.domain.exceptions import InvariantViolationError, NotFoundError
from milestone_escrow.infrastructure.database.orm_models import Wallet


class TestWalletRepository:
    async def test_create_starts_empty(self, store) -> None:
        async with store.begin() as uow:
            wallet = await uow.wallets.create(uuid.uuid4())
            assert wallet.available_balance == Decimal("0.00")
            assert wallet.frozen_balance == Decimal("0.00")

    async def test_create_twice_returns_the_same_wallet(self, store) -> None:
        user_id = uuid.uuid4()
        async with store.begin() as uow:
            first = await uow.wallets.create(user_id)
            await uow.wallets.update_balances(first.id, Decimal("12.50"), Decimal("0"))

        async with store.begin() as uow:
            second = await uow.wallets.create(user_id)
            again = await uow.wallets.create(user_id)

        assert second.id == first.id
        assert again.id == first.id
        assert second.available_balance == Decimal("12.50")

    async def test_user_id_is_unique(self, store) -> None:
        user_id = uuid.uuid4()
        async with store.begin() as uow:
            await uow.wallets.create(user_id)

        with pytest.raises(IntegrityError):
            async with store.begin() as uow:
                uow.session.add(Wallet(user_id=user_id))
                await uow.session.flush()

    async def test_get_for_update_missing(self, store) -> None:
        async with store.begin() as uow:
            with pytest.raises(NotFoundError):
                await uow.wallets.get_for_update(uuid.uuid4())
            with pytest.raises(NotFoundError):
                await uow.wallets.get_for_update_by_user(uuid.uuid4())

    async def test_negative_balance_is_an_invariant_violation(self, store) -> None:
        with pytest.raises(InvariantViolationError) as exc_info:
            async with store.begin() as uow:
                wallet = await uow.wallets.create(uuid.uuid4())
                await uow.wallets.update_balances(wallet.id, Decimal("-0.01"), Decimal("0"))
        assert exc_info.value.details["available_delta"] == "-0.01"

    async def test_lock_many_returns_each_wallet_once(self, store) -> None:
        async with store.begin() as uow:
            a = await uow.wallets.create(uuid.uuid4())
            b = await uow.wallets.create(uuid.uuid4())
            locked = await uow.wallets.lock_many([b.id, a.id, b.id])
        assert set(locked) == {a.id, b.id}
        assert list(locked) == sorted([a.id, b.id])

    async def test_totals(self, store) -> None:
        async with store.begin() as uow:
            a = await uow.wallets.create(uuid.uuid4())
            b = await uow.wallets.create(uuid.uuid4())
            await uow.wallets.update_balances(a.id, Decimal("10.10"), Decimal("0.20"))
            await uow.wallets.update_balances(b.id, Decimal("0.20"), Decimal("5.00"))

        async with store.begin() as uow:
            assert await uow.wallets.totals() == (Decimal("10.30"), Decimal("5.20"))
            assert await uow.wallets.count_negative() == 0


class TestTransactionRepository:
    async def test_non_positive_amount_rejected(self, store) -> None:
        async with store.begin() as uow:
            wallet = await uow.wallets.create(uuid.uuid4())
            with pytest.raises(InvariantViolationError):
                await uow.transactions.append(wallet.id, TransactionType.DEPOSIT, Decimal("0"))

    async def test_list_and_sum_by_type(self, store) -> None:
        async with store.begin() as uow:
            wallet = await uow.wallets.create(uuid.uuid4())
            await uow.transactions.append(wallet.id, TransactionType.DEPOSIT, Decimal("0.10"))
            await uow.transactions.append(wallet.id, TransactionType.DEPOSIT, Decimal("0.20"))
            await uow.transactions.append(wallet.id, TransactionType.WITHDRAWAL, Decimal("0.05"))

        async with store.begin() as uow:
            assert await uow.transactions.sum_by_type(TransactionType.DEPOSIT) == Decimal("0.30")
            assert await uow.transactions.sum_by_type(TransactionType.REFUND) == Decimal("0.00")
            deposits = await uow.transactions.list_by_wallet(
                wallet.id, tx_type=TransactionType.DEPOSIT
            )
            everything = await uow.transactions.list_by_wallet(wallet.id, limit=2)

        assert {t.type for t in deposits} == {"DEPOSIT"}
        assert len(deposits) == 2
        assert len(everything) == 2


class TestJobAndMilestoneRepositories:
    async def test_create_job_with_milestones(self, store) -> None:
        client_id, worker_id = uuid.uuid4(), uuid.uuid4()
        async with store.begin() as uow:
            job = await uow.jobs.create(
                client_id=client_id,
                worker_id=worker_id,
                title="Site",
                milestones=[("Design", Decimal("40.00")), ("Build", Decimal("60.00"))],
            )
            milestone_ids = [m.id for m in job.milestones]

        async with store.begin() as uow:
            job = await uow.jobs.get_by_id(job.id)
            assert job.status == JobStatus.ASSIGNED
            assert job.total_budget == Decimal("100.00")
            assert [m.order for m in job.milestones] == [1, 2]
            assert await uow.milestones.count_not_completed(job.id) == 2

            milestone = await uow.milestones.get_with_job_for_update(milestone_ids[0])
            assert milestone.status == MilestoneStatus.PENDING
            assert milestone.job.client_id == client_id

    async def test_job_without_worker_is_open(self, store) -> None:
        async with store.begin() as uow:
            job = await uow.jobs.create(uuid.uuid4(), "Open job", [("Only", Decimal("1.00"))])
            assert job.status == JobStatus.OPEN

    async def test_missing_milestone(self, store) -> None:
        async with store.begin() as uow:
            assert await uow.milestones.get_by_id(uuid.uuid4()) is None
            with pytest.raises(NotFoundError):
                await uow.milestones.get_with_job_for_update(uuid.uuid4())
