"""Milestone escrow REST API routes.

Routes:
    POST   /api/v1/escrow/milestones/{id}/lock             — Client locks funds
    POST   /api/v1/escrow/milestones/{id}/submit           — Worker submits work
    POST   /api/v1/escrow/milestones/{id}/release          — Client approves and pays
    POST   /api/v1/escrow/milestones/{id}/dispute          — Either party disputes
    POST   /api/v1/escrow/milestones/{id}/resolve-refund   — Admin refunds the client
    POST   /api/v1/escrow/milestones/{id}/resolve-release  — Admin pays the worker
    GET    /api/v1/escrow/milestones/{id}/status           — Status and allowed events
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from milestone_escrow.api.deps import get_caller, get_escrow_service
from milestone_escrow.api.retry import call_with_retry
from milestone_escrow.domain.access import Caller
from milestone_escrow.schemas.escrow import (
    DisputeResult,
    LockFundsResult,
    MilestoneStatusResponse,
    RefundResult,
    ReleaseResult,
    SubmitMilestoneResult,
)
from milestone_escrow.services.escrow_service import EscrowService

router = APIRouter(prefix="/api/v1/escrow/milestones", tags=["Escrow"])


# ---------------------------------------------------------------------------
# Client / worker actions
# ---------------------------------------------------------------------------


@router.post(
    "/{milestone_id}/lock",
    response_model=LockFundsResult,
    summary="Lock milestone funds in escrow",
)
async def lock_funds(
    milestone_id: uuid.UUID,
    caller: Caller = Depends(get_caller),
    svc: EscrowService = Depends(get_escrow_service),
) -> LockFundsResult:
    """Freeze the milestone amount in the client's wallet. PENDING -> FUNDED."""
    return await call_with_retry(svc.lock_funds_for_milestone, caller.user_id, milestone_id)


@router.post(
    "/{milestone_id}/submit",
    response_model=SubmitMilestoneResult,
    summary="Submit milestone work for review",
)
async def submit_milestone(
    milestone_id: uuid.UUID,
    caller: Caller = Depends(get_caller),
    svc: EscrowService = Depends(get_escrow_service),
) -> SubmitMilestoneResult:
    """FUNDED -> REVIEW."""
    return await call_with_retry(svc.submit_milestone, caller.user_id, milestone_id)


@router.post(
    "/{milestone_id}/release",
    response_model=ReleaseResult,
    summary="Approve work and release payment",
)
async def release_milestone(
    milestone_id: uuid.UUID,
    caller: Caller = Depends(get_caller),
    svc: EscrowService = Depends(get_escrow_service),
) -> ReleaseResult:
    """Pay the worker minus the platform fee. REVIEW -> COMPLETED."""
    return await call_with_retry(svc.release_milestone, caller.user_id, milestone_id)


@router.post(
    "/{milestone_id}/dispute",
    response_model=DisputeResult,
    summary="Raise a dispute",
)
async def dispute_milestone(
    milestone_id: uuid.UUID,
    caller: Caller = Depends(get_caller),
    svc: EscrowService = Depends(get_escrow_service),
) -> DisputeResult:
    """Valid from FUNDED or REVIEW. Escrowed funds stay frozen."""
    return await call_with_retry(svc.dispute_milestone, caller.user_id, milestone_id)


# ---------------------------------------------------------------------------
# Admin dispute resolution
# ---------------------------------------------------------------------------


@router.post(
    "/{milestone_id}/resolve-refund",
    response_model=RefundResult,
    summary="Resolve a dispute in the client's favour",
)
async def resolve_refund(
    milestone_id: uuid.UUID,
    caller: Caller = Depends(get_caller),
    svc: EscrowService = Depends(get_escrow_service),
) -> RefundResult:
    """DISPUTED -> PENDING; the frozen amount returns to the client."""
    return await call_with_retry(svc.resolve_dispute_refund, caller, milestone_id)


@router.post(
    "/{milestone_id}/resolve-release",
    response_model=ReleaseResult,
    summary="Resolve a dispute in the worker's favour",
)
async def resolve_release(
    milestone_id: uuid.UUID,
    caller: Caller = Depends(get_caller),
    svc: EscrowService = Depends(get_escrow_service),
) -> ReleaseResult:
    """DISPUTED -> COMPLETED with the same payout as a normal release."""
    return await call_with_retry(svc.resolve_dispute_release, caller, milestone_id)


# ---------------------------------------------------------------------------
# Read endpoints
# ---------------------------------------------------------------------------


@router.get(
    "/{milestone_id}/status",
    response_model=MilestoneStatusResponse,
    summary="Get milestone status",
)
async def get_status(
    milestone_id: uuid.UUID,
    caller: Caller = Depends(get_caller),
    svc: EscrowService = Depends(get_escrow_service),
) -> MilestoneStatusResponse:
    """Return the current status and the events allowed from it."""
    return await svc.get_milestone_status(caller, milestone_id)
