"""Pydantic API schemas."""

from milestone_escrow.schemas.escrow import (
    DisputeResult,
    LockFundsResult,
    MilestoneStatusResponse,
    RefundResult,
    ReleaseResult,
    SubmitMilestoneResult,
)
from milestone_escrow.schemas.wallet import (
    BalanceResponse,
    DepositRequest,
    DepositResult,
    HealthResponse,
    LedgerAuditResponse,
    TransactionResponse,
)

__all__ = [
    "BalanceResponse",
    "DepositRequest",
    "DepositResult",
    "DisputeResult",
    "HealthResponse",
    "LedgerAuditResponse",
    "LockFundsResult",
    "MilestoneStatusResponse",
    "RefundResult",
    "ReleaseResult",
    "SubmitMilestoneResult",
    "TransactionResponse",
]
