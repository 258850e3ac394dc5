"""Domain exceptions for the milestone escrow engine.

These exceptions are framework-agnostic and represent business rule violations.
They are caught and translated to HTTP responses by the API layer's middleware.
"""

from __future__ import annotations

from collections.abc import Iterable


class EscrowError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, code: str = "ESCROW_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Render the error as a JSON-safe payload for the application layer."""
        return {"error": self.code, "message": self.message}


# --- Lookup Errors ---


class NotFoundError(EscrowError):
    """Raised when a referenced wallet, job, or milestone does not exist."""

    def __init__(self, entity: str, entity_id: object) -> None:
        super().__init__(
            message=f"{entity.capitalize()} not found: {entity_id}",
            code="NOT_FOUND",
        )
        self.entity = entity
        self.entity_id = str(entity_id)


# --- Authorization Errors ---


class ForbiddenError(EscrowError):
    """Raised when the caller does not own the role the action requires."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, code="FORBIDDEN")


# --- State Machine Errors ---


class InvalidStateError(EscrowError):
    """Raised when an entity is not in the status a transition requires.

    Example: submitting work on a PENDING milestone (must be FUNDED).
    """

    def __init__(
        self,
        message: str,
        current_status: str,
        required_statuses: Iterable[str] = (),
    ) -> None:
        super().__init__(message=message, code="INVALID_STATE")
        self.current_status = str(current_status)
        self.required_statuses = [str(s) for s in required_statuses]

    def to_dict(self) -> dict:
        return {
            **super().to_dict(),
            "current_status": self.current_status,
            "required_statuses": self.required_statuses,
        }


class NoAssignedWorkerError(InvalidStateError):
    """Raised when money would be paid out on a job without an assigned worker."""

    def __init__(self, job_status: str) -> None:
        super().__init__(
            message="Job has no assigned worker",
            current_status=job_status,
        )
        self.code = "NO_ASSIGNED_WORKER"


# --- Money Errors ---


class InsufficientFundsError(EscrowError):
    """Raised when a wallet's available balance cannot cover a freeze."""

    def __init__(self, required: str, available: str) -> None:
        super().__init__(
            message=f"Insufficient available balance. Available: {available}, Required: {required}",
            code="INSUFFICIENT_FUNDS",
        )
        self.required = required
        self.available = available

    def to_dict(self) -> dict:
        return {**super().to_dict(), "available": self.available, "required": self.required}


class InvalidAmountError(EscrowError):
    """Raised for a non-positive or malformed monetary amount."""

    def __init__(self, value: object, reason: str = "must be a positive amount") -> None:
        super().__init__(
            message=f"Invalid amount {value!r}: {reason}",
            code="INVALID_AMOUNT",
        )
        self.value = str(value)


class InvariantViolationError(EscrowError):
    """Raised when an internal consistency check fails.

    This means a guard that already passed has been contradicted (a race or a
    bug). The unit of work is rolled back; the error must never be swallowed.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message=message, code="INVARIANT_VIOLATION")
        self.details = details or {}


# --- Infrastructure Errors ---


class UnitOfWorkTimeoutError(EscrowError):
    """Raised when a unit of work exceeds its execution budget and is rolled back."""

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(
            message=f"Unit of work timed out after {timeout_seconds}s and was rolled back",
            code="UNIT_OF_WORK_TIMEOUT",
        )
        self.timeout_seconds = timeout_seconds
