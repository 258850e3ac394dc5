"""Tests for application-layer retry of transient failures."""

from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError

from milestone_escrow.api.retry import call_with_retry
from milestone_escrow.domain.exceptions import InvalidStateError, UnitOfWorkTimeoutError


class Flaky:
    def __init__(self, failures: list[Exception]) -> None:
        self.failures = list(failures)
        self.calls = 0

    async def __call__(self, value: str) -> str:
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return value


class TestCallWithRetry:
    async def test_transient_failures_are_retried(self) -> None:
        flaky = Flaky([
            OperationalError("BEGIN IMMEDIATE", {}, Exception("database is locked")),
            UnitOfWorkTimeoutError(0.1),
        ])
        assert await call_with_retry(flaky, "done") == "done"
        assert flaky.calls == 3

    async def test_gives_up_after_configured_attempts(self) -> None:
        flaky = Flaky([UnitOfWorkTimeoutError(0.1)] * 5)
        with pytest.raises(UnitOfWorkTimeoutError):
            await call_with_retry(flaky, "never")
        assert flaky.calls == 3

    async def test_business_errors_are_not_retried(self) -> None:
        flaky = Flaky([InvalidStateError("no", current_status="COMPLETED")])
        with pytest.raises(InvalidStateError):
            await call_with_retry(flaky, "x")
        assert flaky.calls == 1
