"""Domain layer — pure business logic with zero framework dependencies."""

from milestone_escrow.domain.access import (
    Caller,
    assert_is_job_client,
    assert_is_job_party,
    assert_is_job_worker,
    assert_is_platform_admin,
)
from milestone_escrow.domain.enums import (
    JobStatus,
    MilestoneStatus,
    TransactionType,
    UserRole,
)
from milestone_escrow.domain.exceptions import (
    EscrowError,
    ForbiddenError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidStateError,
    InvariantViolationError,
    NoAssignedWorkerError,
    NotFoundError,
    UnitOfWorkTimeoutError,
)
from milestone_escrow.domain.money import ReleaseSplit, parse_amount, split_release_amount
from milestone_escrow.domain.state_machine import (
    MilestoneStateMachine,
    validate_transition,
)

__all__ = [
    "Caller",
    "assert_is_job_client",
    "assert_is_job_party",
    "assert_is_job_worker",
    "assert_is_platform_admin",
    "JobStatus",
    "MilestoneStatus",
    "TransactionType",
    "UserRole",
    "EscrowError",
    "ForbiddenError",
    "InsufficientFundsError",
    "InvalidAmountError",
    "InvalidStateError",
    "InvariantViolationError",
    "NoAssignedWorkerError",
    "NotFoundError",
    "UnitOfWorkTimeoutError",
    "ReleaseSplit",
    "parse_amount",
    "split_release_amount",
    "MilestoneStateMachine",
    "validate_transition",
]
