"""FastAPI dependency injection providers.

Services are built once in the lifespan and stored on ``app.state``; these
providers hand them to route handlers. The caller's identity is asserted by
the upstream gateway through the X-User-Id / X-User-Role headers.
"""

from __future__ import annotations

import uuid

from fastapi import Header, HTTPException, Request

from milestone_escrow.domain.access import Caller
from milestone_escrow.domain.enums import UserRole
from milestone_escrow.services.account_service import AccountService
from milestone_escrow.services.escrow_service import EscrowService


def get_caller(
    x_user_id: str = Header(..., alias="X-User-Id"),
    x_user_role: str = Header(..., alias="X-User-Role"),
) -> Caller:
    """Turn the gateway's identity headers into a Caller."""
    try:
        user_id = uuid.UUID(x_user_id)
    except ValueError as exc:
        raise HTTPException(status_code=401, detail="Malformed X-User-Id header") from exc
    try:
        role = UserRole(x_user_role.upper())
    except ValueError as exc:
        raise HTTPException(status_code=401, detail="Unknown X-User-Role header") from exc
    return Caller(user_id=user_id, role=role)


def get_escrow_service(request: Request) -> EscrowService:
    """Provide the EscrowService built at startup."""
    return request.app.state.escrow_service


def get_account_service(request: Request) -> AccountService:
    """Provide the AccountService built at startup."""
    return request.app.state.account_service
