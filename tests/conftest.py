"""Shared test fixtures for the milestone escrow test suite.

Provides:
    - A file-backed SQLite database per test (sqlite+aiosqlite, BEGIN IMMEDIATE)
    - A LedgerStore and the services wired to it
    - Factory fixtures for wallets and jobs with milestones
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from decimal import Decimal

import pytest

from milestone_escrow.domain.access import Caller
from milestone_escrow.domain.enums import UserRole
from milestone_escrow.infrastructure.database.engine import (
    build_engine,
    build_session_factory,
    create_schema,
)
from milestone_escrow.infrastructure.database.unit_of_work import LedgerStore
from milestone_escrow.services import AccountService, EscrowService, WalletService

FEE_RATE = Decimal("0.05")


# ---------------------------------------------------------------------------
# Database Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def engine(tmp_path):
    """A fresh SQLite database file for every test."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'escrow.db'}", pool_timeout=5)
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(engine) -> LedgerStore:
    return LedgerStore(build_session_factory(engine), timeout_seconds=10.0)


# ---------------------------------------------------------------------------
# Identity Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def admin() -> Caller:
    return Caller(user_id=uuid.UUID("00000000-0000-0000-0000-00000000ad01"), role=UserRole.ADMIN)


@pytest.fixture
def client_id() -> uuid.UUID:
    return uuid.UUID("11111111-1111-1111-1111-111111111111")


@pytest.fixture
def worker_id() -> uuid.UUID:
    return uuid.UUID("22222222-2222-2222-2222-222222222222")


# ---------------------------------------------------------------------------
# Service Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def wallet_service() -> WalletService:
    return WalletService()


@pytest.fixture
def account_service(store, wallet_service) -> AccountService:
    return AccountService(store, wallet_service=wallet_service)


@pytest.fixture
async def platform_wallet_id(account_service, admin) -> uuid.UUID:
    return await account_service.provision_platform_wallet(admin.user_id)


@pytest.fixture
def escrow_service(store, platform_wallet_id, wallet_service) -> EscrowService:
    return EscrowService(
        store,
        platform_wallet_id=platform_wallet_id,
        fee_rate=FEE_RATE,
        wallet_service=wallet_service,
    )


# ---------------------------------------------------------------------------
# Data Factories
# ---------------------------------------------------------------------------


@dataclass
class Marketplace:
    """Seeds wallets and jobs straight through the repositories."""

    store: LedgerStore
    account_service: AccountService
    admin: Caller
    created_jobs: list[uuid.UUID] = field(default_factory=list)

    async def fund_wallet(self, user_id: uuid.UUID, amount: str) -> None:
        await self.account_service.deposit_funds(self.admin, user_id, amount, "test deposit")

    async def post_job(
        self,
        client_id: uuid.UUID,
        amounts: list[str],
        worker_id: uuid.UUID | None = None,
    ) -> list[uuid.UUID]:
        """Create a job with one milestone per amount; returns milestone ids in order."""
        async with self.store.begin() as uow:
            job = await uow.jobs.create(
                client_id=client_id,
                worker_id=worker_id,
                title="Test job",
                milestones=[(f"Milestone {i}", Decimal(a)) for i, a in enumerate(amounts, 1)],
            )
            self.created_jobs.append(job.id)
            return [m.id for m in job.milestones]

    async def balances(self, user_id: uuid.UUID) -> tuple[Decimal, Decimal]:
        async with self.store.begin() as uow:
            wallet = await uow.wallets.get_by_user(user_id)
        assert wallet is not None
        return wallet.available_balance, wallet.frozen_balance

    async def wallet_balances(self, wallet_id: uuid.UUID) -> tuple[Decimal, Decimal]:
        async with self.store.begin() as uow:
            wallet = await uow.wallets.get_by_id(wallet_id)
        assert wallet is not None
        return wallet.available_balance, wallet.frozen_balance

    async def milestone_status(self, milestone_id: uuid.UUID) -> str:
        async with self.store.begin() as uow:
            milestone = await uow.milestones.get_by_id(milestone_id)
        assert milestone is not None
        return milestone.status

    async def job_status(self, milestone_id: uuid.UUID) -> str:
        async with self.store.begin() as uow:
            milestone = await uow.milestones.get_by_id(milestone_id)
        assert milestone is not None
        return milestone.job.status

    async def set_milestone_status(self, milestone_id: uuid.UUID, status: str) -> None:
        async with self.store.begin() as uow:
            milestone = await uow.milestones.get_by_id(milestone_id)
            milestone.status = status


@pytest.fixture
def market(store, account_service, admin) -> Marketplace:
    return Marketplace(store=store, account_service=account_service, admin=admin)
