"""Retry of transient infrastructure failures.

Only lock timeouts and dropped connections are retried. Each attempt calls
the service again, so it runs in a fresh unit of work; a retried operation
that already took effect fails its state guard instead of applying twice.
Business errors propagate on the first attempt.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, ParamSpec, TypeVar

from sqlalchemy.exc import OperationalError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from milestone_escrow.config import get_settings
from milestone_escrow.domain.exceptions import UnitOfWorkTimeoutError
from milestone_escrow.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from tenacity import RetryCallState

P = ParamSpec("P")
T = TypeVar("T")

logger = get_logger(__name__)

TRANSIENT_ERRORS = (OperationalError, UnitOfWorkTimeoutError)


def _retry_logger(operation: str) -> Callable[[RetryCallState], None]:
    def _log(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "retry.transient_failure",
            operation=operation,
            attempt=retry_state.attempt_number,
            error=str(exc),
        )

    return _log


async def call_with_retry(
    fn: Callable[P, Awaitable[T]],
    *args: P.args,
    **kwargs: P.kwargs,
) -> T:
    """Await ``fn(*args, **kwargs)``, retrying transient failures with backoff."""
    retrying = AsyncRetrying(
        stop=stop_after_attempt(get_settings().transient_retry_attempts),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        before_sleep=_retry_logger(getattr(fn, "__qualname__", repr(fn))),
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            return await fn(*args, **kwargs)
    raise AssertionError("unreachable")  # pragma: no cover
