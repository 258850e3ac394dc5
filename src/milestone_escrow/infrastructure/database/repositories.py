"""Repository classes for database access.

Repositories encapsulate all SQL queries and provide a clean interface
to the service layer. They accept an AsyncSession and never manage
their own transactions (that's the UnitOfWork's responsibility).

Reads that precede a write use SELECT ... FOR UPDATE so the guard and the
mutation see the same row version (PostgreSQL row lock; a no-op on SQLite,
where the unit of work already holds the database write lock).
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import joinedload

from milestone_escrow.domain.enums import JobStatus, MilestoneStatus, TransactionType
from milestone_escrow.domain.exceptions import InvariantViolationError, NotFoundError
from milestone_escrow.domain.money import CENT
from milestone_escrow.infrastructure.database.orm_models import (
    Job,
    LedgerTransaction,
    Milestone,
    Wallet,
)
from milestone_escrow.logging_config import get_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

# Dialects with INSERT ... ON CONFLICT DO NOTHING.
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _to_money(value: object) -> Decimal:
    """Normalize an aggregate to cents; SQLite may hand SUM() back as a float."""
    return Decimal(str(value)).quantize(CENT)


class WalletRepository:
    """Data access for wallets."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, wallet_id: uuid.UUID) -> Wallet | None:
        result = await self._session.execute(select(Wallet).where(Wallet.id == wallet_id))
        return result.scalar_one_or_none()

    async def get_by_user(self, user_id: uuid.UUID) -> Wallet | None:
        result = await self._session.execute(select(Wallet).where(Wallet.user_id == user_id))
        return result.scalar_one_or_none()

    async def get_for_update(self, wallet_id: uuid.UUID) -> Wallet:
        """Locking read of a wallet row. Raises NotFoundError if absent."""
        result = await self._session.execute(
            select(Wallet)
            .where(Wallet.id == wallet_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        wallet = result.scalar_one_or_none()
        if wallet is None:
            raise NotFoundError("wallet", wallet_id)
        return wallet

    async def get_for_update_by_user(self, user_id: uuid.UUID) -> Wallet:
        """Locking read of the wallet owned by a user. Raises NotFoundError if absent."""
        result = await self._session.execute(
            select(Wallet)
            .where(Wallet.user_id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        wallet = result.scalar_one_or_none()
        if wallet is None:
            raise NotFoundError("wallet", f"user {user_id}")
        return wallet

    async def lock_many(self, wallet_ids: list[uuid.UUID]) -> dict[uuid.UUID, Wallet]:
        """Lock several wallets in ascending id order (deadlock-free ordering)."""
        locked: dict[uuid.UUID, Wallet] = {}
        for wallet_id in sorted(set(wallet_ids)):
            locked[wallet_id] = await self.get_for_update(wallet_id)
        return locked

    async def create(self, user_id: uuid.UUID) -> Wallet:
        """Provision an empty wallet for a user and return it locked.

        Upsert on ``user_id``: when the wallet already exists, or a concurrent
        transaction inserts it first, the existing row is returned unchanged.
        """
        insert = _UPSERT_INSERTS[self._session.get_bind().dialect.name]
        result = await self._session.execute(
            insert(Wallet.__table__)
            .values(
                id=uuid.uuid4(),
                user_id=user_id,
                available_balance=Decimal("0.00"),
                frozen_balance=Decimal("0.00"),
            )
            .on_conflict_do_nothing(index_elements=["user_id"])
        )
        if result.rowcount:
            logger.info("wallet.provisioned", user_id=str(user_id))
        return await self.get_for_update_by_user(user_id)

    async def update_balances(
        self,
        wallet_id: uuid.UUID,
        available_delta: Decimal,
        frozen_delta: Decimal,
    ) -> Wallet:
        """Apply balance deltas to a locked wallet.

        Raises InvariantViolationError if either balance would go negative.
        Callers check sufficiency first; reaching the error means a race or a bug.
        """
        wallet = await self.get_for_update(wallet_id)
        new_available = wallet.available_balance + available_delta
        new_frozen = wallet.frozen_balance + frozen_delta

        if new_available < 0 or new_frozen < 0:
            details = {
                "wallet_id": str(wallet_id),
                "available": str(wallet.available_balance),
                "frozen": str(wallet.frozen_balance),
                "available_delta": str(available_delta),
                "frozen_delta": str(frozen_delta),
            }
            logger.critical("ledger.negative_balance_prevented", details=details)
            raise InvariantViolationError(
                f"Balance update would leave wallet {wallet_id} negative",
                details=details,
            )

        wallet.available_balance = new_available
        wallet.frozen_balance = new_frozen
        await self._session.flush()
        return wallet

    async def totals(self) -> tuple[Decimal, Decimal]:
        """Sum of available and frozen balances across every wallet."""
        result = await self._session.execute(
            select(
                func.coalesce(func.sum(Wallet.available_balance), 0),
                func.coalesce(func.sum(Wallet.frozen_balance), 0),
            )
        )
        available, frozen = result.one()
        return _to_money(available), _to_money(frozen)

    async def count_negative(self) -> int:
        result = await self._session.execute(
            select(func.count())
            .select_from(Wallet)
            .where((Wallet.available_balance < 0) | (Wallet.frozen_balance < 0))
        )
        return int(result.scalar_one())


class TransactionRepository:
    """Data access for the append-only ledger."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def append(
        self,
        wallet_id: uuid.UUID,
        tx_type: TransactionType,
        amount: Decimal,
        milestone_id: uuid.UUID | None = None,
        reference_note: str | None = None,
    ) -> LedgerTransaction:
        """Append a new ledger entry. This is the ONLY write operation allowed."""
        if amount <= 0:
            raise InvariantViolationError(
                "Ledger entries must carry a positive amount",
                details={"wallet_id": str(wallet_id), "type": tx_type.value, "amount": str(amount)},
            )
        entry = LedgerTransaction(
            wallet_id=wallet_id,
            type=tx_type.value,
            amount=amount,
            milestone_id=milestone_id,
            reference_note=reference_note,
        )
        self._session.add(entry)
        await self._session.flush()
        return entry

    async def list_by_wallet(
        self,
        wallet_id: uuid.UUID,
        limit: int = 50,
        tx_type: TransactionType | None = None,
    ) -> list[LedgerTransaction]:
        """Fetch ledger entries for a wallet, newest first."""
        query = select(LedgerTransaction).where(LedgerTransaction.wallet_id == wallet_id)
        if tx_type is not None:
            query = query.where(LedgerTransaction.type == tx_type.value)
        result = await self._session.execute(
            query.order_by(LedgerTransaction.created_at.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def list_by_milestone(self, milestone_id: uuid.UUID) -> list[LedgerTransaction]:
        """Fetch every ledger entry tied to a milestone in chronological order."""
        result = await self._session.execute(
            select(LedgerTransaction)
            .where(LedgerTransaction.milestone_id == milestone_id)
            .order_by(LedgerTransaction.created_at.asc())
        )
        return list(result.scalars().all())

    async def sum_by_type(self, tx_type: TransactionType) -> Decimal:
        result = await self._session.execute(
            select(func.coalesce(func.sum(LedgerTransaction.amount), 0)).where(
                LedgerTransaction.type == tx_type.value
            )
        )
        return _to_money(result.scalar_one())

    async def count(self) -> int:
        result = await self._session.execute(select(func.count()).select_from(LedgerTransaction))
        return int(result.scalar_one())


class MilestoneRepository:
    """Data access for milestones (status only; content is read-only here)."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, milestone_id: uuid.UUID) -> Milestone | None:
        result = await self._session.execute(
            select(Milestone)
            .options(joinedload(Milestone.job, innerjoin=True))
            .where(Milestone.id == milestone_id)
        )
        return result.unique().scalar_one_or_none()

    async def get_with_job_for_update(self, milestone_id: uuid.UUID) -> Milestone:
        """Locking read of a milestone joined with its parent job.

        The status guard must be evaluated on this read, inside the same unit
        of work that performs the transition. Raises NotFoundError if absent.
        """
        result = await self._session.execute(
            select(Milestone)
            .options(joinedload(Milestone.job, innerjoin=True))
            .where(Milestone.id == milestone_id)
            .with_for_update(of=Milestone)
            .execution_options(populate_existing=True)
        )
        milestone = result.unique().scalar_one_or_none()
        if milestone is None:
            raise NotFoundError("milestone", milestone_id)
        return milestone

    async def update_status(self, milestone: Milestone, new_status: MilestoneStatus) -> Milestone:
        """Update the status of a milestone (call AFTER state machine validation)."""
        milestone.status = new_status.value
        await self._session.flush()
        return milestone

    async def count_not_completed(self, job_id: uuid.UUID) -> int:
        """Number of the job's milestones still outside COMPLETED."""
        result = await self._session.execute(
            select(func.count())
            .select_from(Milestone)
            .where(
                Milestone.job_id == job_id,
                Milestone.status != MilestoneStatus.COMPLETED.value,
            )
        )
        return int(result.scalar_one())


class JobRepository:
    """Data access for jobs (derived status only)."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, job_id: uuid.UUID) -> Job | None:
        result = await self._session.execute(select(Job).where(Job.id == job_id))
        return result.scalar_one_or_none()

    async def update_status(self, job: Job, new_status: JobStatus) -> Job:
        job.status = new_status.value
        await self._session.flush()
        return job

    async def create(
        self,
        client_id: uuid.UUID,
        title: str,
        milestones: list[tuple[str, Decimal]],
        worker_id: uuid.UUID | None = None,
        description: str | None = None,
        category: str | None = None,
    ) -> Job:
        """Persist a job with its ordered milestones, all starting PENDING.

        The job starts ASSIGNED when a worker is given and OPEN otherwise.
        """
        job = Job(
            client_id=client_id,
            worker_id=worker_id,
            title=title,
            description=description,
            category=category,
            total_budget=sum((amount for _, amount in milestones), Decimal("0")),
            status=(JobStatus.ASSIGNED if worker_id is not None else JobStatus.OPEN).value,
        )
        job.milestones = [
            Milestone(title=m_title, amount=amount, order=index, status=MilestoneStatus.PENDING.value)
            for index, (m_title, amount) in enumerate(milestones, start=1)
        ]
        self._session.add(job)
        await self._session.flush()
        logger.info("job.created", job_id=str(job.id), milestones=len(milestones))
        return job
