"""Escrow Service — the single entry point for milestone money movement.

This is the application layer that coordinates between:
    - Access guards (who may act)
    - Domain state machine (transition guard)
    - Wallet primitives (balance movement + ledger entries)
    - Repositories, through one UnitOfWork per operation

Each operation re-reads the milestone with a row lock inside its own unit of
work, checks the guards on that read, moves money, and persists the new
status. Any failure rolls back the whole operation. Repeating an operation
(e.g. a second release) fails with InvalidStateError because the first one
already moved the milestone on.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from decimal import Decimal
from typing import TYPE_CHECKING

from milestone_escrow.domain.access import (
    assert_can_view_job,
    assert_is_job_client,
    assert_is_job_party,
    assert_is_job_worker,
    assert_is_platform_admin,
)
from milestone_escrow.domain.enums import MilestoneStatus
from milestone_escrow.domain.exceptions import (
    InvariantViolationError,
    NoAssignedWorkerError,
    NotFoundError,
)
from milestone_escrow.domain.money import ReleaseSplit, format_amount, split_release_amount
from milestone_escrow.domain.state_machine import (
    allowed_events,
    job_status_after_completion,
    job_status_after_funding,
    validate_transition,
)
from milestone_escrow.logging_config import get_logger
from milestone_escrow.schemas.escrow import (
    DisputeResult,
    LockFundsResult,
    MilestoneStatusResponse,
    RefundResult,
    ReleaseResult,
    SubmitMilestoneResult,
)
from milestone_escrow.services.wallet_service import WalletService

if TYPE_CHECKING:
    import uuid
    from collections.abc import AsyncIterator

    from milestone_escrow.domain.access import Caller
    from milestone_escrow.infrastructure.database.orm_models import Milestone
    from milestone_escrow.infrastructure.database.unit_of_work import LedgerStore, UnitOfWork

logger = get_logger(__name__)


class EscrowService:
    """Lock / submit / release / dispute / resolve workflow for milestones."""

    def __init__(
        self,
        store: LedgerStore,
        platform_wallet_id: uuid.UUID,
        fee_rate: Decimal = Decimal("0.05"),
        wallet_service: WalletService | None = None,
    ) -> None:
        if platform_wallet_id is None:
            raise ValueError("platform_wallet_id is required")
        self._store = store
        self._platform_wallet_id = platform_wallet_id
        self._fee_rate = Decimal(fee_rate)
        self._wallets = wallet_service or WalletService()

    # ------------------------------------------------------------------
    # Funding
    # ------------------------------------------------------------------

    async def lock_funds_for_milestone(
        self,
        client_id: uuid.UUID,
        milestone_id: uuid.UUID,
    ) -> LockFundsResult:
        """Freeze the milestone amount in the client's wallet. PENDING -> FUNDED.

        A job still in ASSIGNED moves to IN_PROGRESS with its first funding.
        """
        async with self._transaction("lock_funds", milestone_id) as uow:
            milestone = await uow.milestones.get_with_job_for_update(milestone_id)
            job = milestone.job

            assert_is_job_client(client_id, job)
            new_status = validate_transition(milestone.status, "lock_funds")

            client_wallet = await uow.wallets.get_for_update_by_user(job.client_id)
            await self._wallets.freeze(uow, client_wallet.id, milestone.amount, milestone.id)
            await uow.milestones.update_status(milestone, new_status)

            job_status = job_status_after_funding(job.status)
            if job_status != job.status:
                await uow.jobs.update_status(job, job_status)

        logger.info(
            "escrow.funds_locked",
            milestone_id=str(milestone_id),
            amount=format_amount(milestone.amount),
            job_status=job.status,
        )
        return LockFundsResult(
            milestone_id=milestone.id,
            amount_locked=format_amount(milestone.amount),
            status=milestone.status,
            job_status=job.status,
        )

    # ------------------------------------------------------------------
    # Work Submission
    # ------------------------------------------------------------------

    async def submit_milestone(
        self,
        worker_id: uuid.UUID,
        milestone_id: uuid.UUID,
    ) -> SubmitMilestoneResult:
        """Assigned worker hands in work for a funded milestone. FUNDED -> REVIEW."""
        async with self._transaction("submit", milestone_id) as uow:
            milestone = await uow.milestones.get_with_job_for_update(milestone_id)

            assert_is_job_worker(worker_id, milestone.job)
            new_status = validate_transition(milestone.status, "submit_work")
            await uow.milestones.update_status(milestone, new_status)

        logger.info("escrow.work_submitted", milestone_id=str(milestone_id))
        return SubmitMilestoneResult(milestone_id=milestone.id, status=milestone.status)

    # ------------------------------------------------------------------
    # Release
    # ------------------------------------------------------------------

    async def release_milestone(
        self,
        client_id: uuid.UUID,
        milestone_id: uuid.UUID,
    ) -> ReleaseResult:
        """Client approves the work; pay worker and platform. REVIEW -> COMPLETED."""
        async with self._transaction("release", milestone_id) as uow:
            milestone = await uow.milestones.get_with_job_for_update(milestone_id)

            assert_is_job_client(client_id, milestone.job)
            new_status = validate_transition(milestone.status, "release_payment")
            result = await self._pay_out(uow, milestone, new_status)

        logger.info(
            "escrow.milestone_released",
            milestone_id=str(milestone_id),
            released=result.released,
            fee=result.platform_fee,
            job_completed=result.job_completed,
        )
        return result

    # ------------------------------------------------------------------
    # Disputes
    # ------------------------------------------------------------------

    async def dispute_milestone(
        self,
        caller_id: uuid.UUID,
        milestone_id: uuid.UUID,
    ) -> DisputeResult:
        """Either party disputes a funded or in-review milestone. Funds stay frozen."""
        async with self._transaction("dispute", milestone_id) as uow:
            milestone = await uow.milestones.get_with_job_for_update(milestone_id)
            job = milestone.job
            previous_status = milestone.status

            assert_is_job_party(caller_id, job)
            new_status = validate_transition(milestone.status, "raise_dispute")
            if job.worker_id is None:
                raise NoAssignedWorkerError(job.status)
            await uow.milestones.update_status(milestone, new_status)

        logger.info(
            "escrow.dispute_raised",
            milestone_id=str(milestone_id),
            raised_by=str(caller_id),
            previous_status=previous_status,
        )
        return DisputeResult(
            milestone_id=milestone.id,
            previous_status=previous_status,
            status=milestone.status,
        )

    async def resolve_dispute_refund(
        self,
        admin: Caller,
        milestone_id: uuid.UUID,
    ) -> RefundResult:
        """Admin sides with the client: frozen funds return to available. DISPUTED -> PENDING."""
        assert_is_platform_admin(admin)

        async with self._transaction("resolve_refund", milestone_id) as uow:
            milestone = await uow.milestones.get_with_job_for_update(milestone_id)
            new_status = validate_transition(milestone.status, "resolve_refund")

            client_wallet = await uow.wallets.get_for_update_by_user(milestone.job.client_id)
            await self._wallets.refund(uow, client_wallet.id, milestone.amount, milestone.id)
            await uow.milestones.update_status(milestone, new_status)

        logger.info(
            "escrow.dispute_refunded",
            milestone_id=str(milestone_id),
            amount=format_amount(milestone.amount),
            resolved_by=str(admin.user_id),
        )
        return RefundResult(
            milestone_id=milestone.id,
            refunded=format_amount(milestone.amount),
            status=milestone.status,
        )

    async def resolve_dispute_release(
        self,
        admin: Caller,
        milestone_id: uuid.UUID,
    ) -> ReleaseResult:
        """Admin sides with the worker: same payout as a normal release. DISPUTED -> COMPLETED."""
        assert_is_platform_admin(admin)

        async with self._transaction("resolve_release", milestone_id) as uow:
            milestone = await uow.milestones.get_with_job_for_update(milestone_id)
            new_status = validate_transition(milestone.status, "resolve_release")
            result = await self._pay_out(uow, milestone, new_status)

        logger.info(
            "escrow.dispute_released",
            milestone_id=str(milestone_id),
            released=result.released,
            resolved_by=str(admin.user_id),
            job_completed=result.job_completed,
        )
        return result

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    async def get_milestone_status(
        self,
        caller: Caller,
        milestone_id: uuid.UUID,
    ) -> MilestoneStatusResponse:
        """Current status plus the events that may fire from it.

        Visible to the job's client, its assigned worker, and platform admins.
        """
        async with self._store.begin() as uow:
            milestone = await uow.milestones.get_by_id(milestone_id)
            if milestone is None:
                raise NotFoundError("milestone", milestone_id)
        assert_can_view_job(caller, milestone.job)

        return MilestoneStatusResponse(
            milestone_id=milestone.id,
            job_id=milestone.job_id,
            status=milestone.status,
            job_status=milestone.job.status,
            amount=format_amount(milestone.amount),
            allowed_events=allowed_events(milestone.status),
        )

    def compute_release_split(self, amount: Decimal) -> ReleaseSplit:
        return split_release_amount(amount, self._fee_rate)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _transaction(
        self,
        operation: str,
        milestone_id: uuid.UUID,
    ) -> AsyncIterator[UnitOfWork]:
        """One unit of work per operation; invariant breaches are reported loudly."""
        try:
            async with self._store.begin() as uow:
                yield uow
        except InvariantViolationError as exc:
            logger.critical(
                "escrow.invariant_violation",
                operation=operation,
                milestone_id=str(milestone_id),
                error=exc.message,
                details=exc.details,
            )
            raise

    async def _pay_out(
        self,
        uow: UnitOfWork,
        milestone: Milestone,
        new_status: MilestoneStatus,
    ) -> ReleaseResult:
        """Move a milestone's escrow to worker and platform, then complete it."""
        job = milestone.job
        if job.worker_id is None:
            raise NoAssignedWorkerError(job.status)

        split = self.compute_release_split(milestone.amount)

        client_wallet = await uow.wallets.get_by_user(job.client_id)
        if client_wallet is None:
            raise NotFoundError("wallet", f"user {job.client_id}")
        worker_wallet = await uow.wallets.get_by_user(job.worker_id)
        if worker_wallet is None:
            # First payout to this worker.
            worker_wallet = await uow.wallets.create(job.worker_id)

        await self._wallets.release(
            uow,
            client_wallet_id=client_wallet.id,
            worker_wallet_id=worker_wallet.id,
            platform_wallet_id=self._platform_wallet_id,
            amount=split.amount,
            fee_amount=split.fee_amount,
            worker_amount=split.worker_amount,
            milestone_id=milestone.id,
        )
        await uow.milestones.update_status(milestone, new_status)

        remaining = await uow.milestones.count_not_completed(job.id)
        job_status = job_status_after_completion(job.status, remaining)
        if job_status != job.status:
            await uow.jobs.update_status(job, job_status)

        return ReleaseResult(
            milestone_id=milestone.id,
            released=format_amount(split.amount),
            platform_fee=format_amount(split.fee_amount),
            worker_received=format_amount(split.worker_amount),
            status=milestone.status,
            job_status=job.status,
            job_completed=remaining == 0,
        )
