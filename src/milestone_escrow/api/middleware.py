"""FastAPI middleware for request tracing, error handling, and CORS.

Middleware stack (applied bottom-up):
    1. RequestIDMiddleware — injects X-Request-ID into every request/response
    2. ErrorHandlerMiddleware — catches domain exceptions -> structured JSON errors
    3. CORSMiddleware
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import structlog
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from milestone_escrow.domain.exceptions import (
    EscrowError,
    ForbiddenError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidStateError,
    InvariantViolationError,
    NotFoundError,
    UnitOfWorkTimeoutError,
)

if TYPE_CHECKING:
    from fastapi import FastAPI, Request, Response

logger = structlog.get_logger(__name__)

# Most specific first; NoAssignedWorkerError is an InvalidStateError.
STATUS_BY_ERROR: tuple[tuple[type[EscrowError], int], ...] = (
    (NotFoundError, 404),
    (ForbiddenError, 403),
    (InvalidStateError, 409),
    (InsufficientFundsError, 422),
    (InvalidAmountError, 422),
    (InvariantViolationError, 500),
    (UnitOfWorkTimeoutError, 503),
)


def status_for(exc: EscrowError) -> int:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 400


# ---------------------------------------------------------------------------
# 1. Request ID Middleware
# ---------------------------------------------------------------------------
class RequestIDMiddleware(BaseHTTPMiddleware):
    """Inject a unique X-Request-ID into every request for log correlation."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


# ---------------------------------------------------------------------------
# 2. Error Handler Middleware
# ---------------------------------------------------------------------------
class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Catch domain exceptions and return structured JSON error responses."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except InvariantViolationError as exc:
            # Already logged CRITICAL where it was raised.
            return JSONResponse(status_code=500, content=exc.to_dict())
        except (InvalidStateError, ForbiddenError, NotFoundError) as exc:
            logger.info("request.rejected", code=exc.code, error=exc.message)
            return JSONResponse(status_code=status_for(exc), content=exc.to_dict())
        except EscrowError as exc:
            logger.warning("request.failed", code=exc.code, error=exc.message)
            return JSONResponse(status_code=status_for(exc), content=exc.to_dict())
        except Exception as exc:
            logger.exception("unhandled.error", error=str(exc))
            return JSONResponse(
                status_code=500,
                content={
                    "error": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                },
            )


# ---------------------------------------------------------------------------
# Setup function
# ---------------------------------------------------------------------------
def setup_middleware(app: FastAPI, allowed_origins: list[str] | None = None) -> None:
    """Register all middleware on the FastAPI application.

    Middleware is applied bottom-up, so the last added middleware runs first.
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(RequestIDMiddleware)
