"""Tests for domain exception payloads."""

from __future__ import annotations

from milestone_escrow.domain.exceptions import (
    EscrowError,
    InsufficientFundsError,
    InvalidStateError,
    InvariantViolationError,
    NoAssignedWorkerError,
    NotFoundError,
    UnitOfWorkTimeoutError,
)


class TestExceptionPayloads:
    def test_not_found(self) -> None:
        err = NotFoundError("milestone", "abc")
        assert err.to_dict() == {"error": "NOT_FOUND", "message": "Milestone not found: abc"}
        assert err.entity == "milestone"

    def test_insufficient_funds_includes_amounts(self) -> None:
        err = InsufficientFundsError(required="70.00", available="60.00")
        payload = err.to_dict()
        assert payload["error"] == "INSUFFICIENT_FUNDS"
        assert payload["available"] == "60.00"
        assert payload["required"] == "70.00"

    def test_invalid_state_includes_statuses(self) -> None:
        err = InvalidStateError("nope", current_status="PENDING", required_statuses=["FUNDED"])
        assert err.to_dict()["required_statuses"] == ["FUNDED"]
        assert err.to_dict()["current_status"] == "PENDING"

    def test_no_assigned_worker_is_invalid_state(self) -> None:
        err = NoAssignedWorkerError("OPEN")
        assert isinstance(err, InvalidStateError)
        assert err.code == "NO_ASSIGNED_WORKER"
        assert err.current_status == "OPEN"

    def test_invariant_violation_details(self) -> None:
        err = InvariantViolationError("broken", details={"wallet_id": "w1"})
        assert err.details == {"wallet_id": "w1"}
        assert InvariantViolationError("broken").details == {}

    def test_all_errors_share_base(self) -> None:
        assert isinstance(UnitOfWorkTimeoutError(1.0), EscrowError)
        assert UnitOfWorkTimeoutError(1.5).timeout_seconds == 1.5
