"""Pydantic result schemas for the escrow operations.

Every escrow operation returns one of these: milestone id, the amounts moved
as decimal strings, and the resulting statuses. Raw wallet rows never leave
the service layer.
"""

from __future__ import annotations

import uuid

from pydantic import BaseModel, Field


class LockFundsResult(BaseModel):
    """Outcome of locking a milestone's amount in escrow."""

    milestone_id: uuid.UUID
    amount_locked: str = Field(..., examples=["40.00"])
    status: str = Field(..., examples=["FUNDED"])
    job_status: str = Field(..., examples=["IN_PROGRESS"])


class SubmitMilestoneResult(BaseModel):
    """Outcome of a worker submitting a funded milestone for review."""

    milestone_id: uuid.UUID
    status: str = Field(..., examples=["REVIEW"])
    message: str = "Work submitted for client review"


class ReleaseResult(BaseModel):
    """Outcome of paying out a milestone (normal release or dispute release)."""

    milestone_id: uuid.UUID
    released: str = Field(..., description="Amount leaving the client's escrow", examples=["100.00"])
    platform_fee: str = Field(..., examples=["5.00"])
    worker_received: str = Field(..., examples=["95.00"])
    status: str = Field(..., examples=["COMPLETED"])
    job_status: str
    job_completed: bool = Field(
        ...,
        description="True when this release completed the job's last open milestone",
    )


class DisputeResult(BaseModel):
    """Outcome of raising a dispute. Funds stay frozen until an admin resolves it."""

    milestone_id: uuid.UUID
    previous_status: str
    status: str = Field(..., examples=["DISPUTED"])


class RefundResult(BaseModel):
    """Outcome of resolving a dispute in the client's favour."""

    milestone_id: uuid.UUID
    refunded: str = Field(..., examples=["40.00"])
    status: str = Field(..., examples=["PENDING"])


class MilestoneStatusResponse(BaseModel):
    """Lightweight status check response."""

    milestone_id: uuid.UUID
    job_id: uuid.UUID
    status: str
    job_status: str
    amount: str
    allowed_events: list[str] = Field(
        description="State machine events that can fire from the current status"
    )
