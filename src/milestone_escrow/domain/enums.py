"""Domain enumerations for the milestone escrow engine.

These enums define the canonical states and types used throughout the system.
They are framework-agnostic (no SQLAlchemy, no FastAPI imports).
"""

import enum


class MilestoneStatus(enum.StrEnum):
    """Lifecycle states of a milestone.

    State transitions are enforced by the MilestoneStateMachine guard.
    See domain/state_machine.py for the transition table.
    """

    PENDING = "PENDING"
    FUNDED = "FUNDED"
    REVIEW = "REVIEW"
    COMPLETED = "COMPLETED"
    DISPUTED = "DISPUTED"


class JobStatus(enum.StrEnum):
    """Lifecycle states of a job.

    The escrow engine only ever derives ASSIGNED -> IN_PROGRESS (first funding)
    and -> COMPLETED (last milestone completed). Every other status is owned by
    the job-management collaborator.
    """

    OPEN = "OPEN"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    DISPUTED = "DISPUTED"
    CANCELLED = "CANCELLED"


class TransactionType(enum.StrEnum):
    """Types of ledger entries recorded in the transactions table.

    Every balance mutation MUST produce exactly one entry on the wallet it touches.
    """

    DEPOSIT = "DEPOSIT"
    ESCROW_LOCK = "ESCROW_LOCK"
    RELEASE = "RELEASE"
    PLATFORM_FEE = "PLATFORM_FEE"
    REFUND = "REFUND"
    WITHDRAWAL = "WITHDRAWAL"


class UserRole(enum.StrEnum):
    """Authoritative caller role, resolved by the identity collaborator."""

    CLIENT = "CLIENT"
    WORKER = "WORKER"
    ADMIN = "ADMIN"
