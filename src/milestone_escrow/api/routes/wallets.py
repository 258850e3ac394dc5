"""Wallet REST API routes.

Routes:
    GET    /api/v1/wallets/me/balance          — Caller's balance
    GET    /api/v1/wallets/me/transactions     — Caller's ledger entries
    POST   /api/v1/wallets/{user_id}/deposit   — Admin credits a verified transfer
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query

from milestone_escrow.api.deps import get_account_service, get_caller
from milestone_escrow.api.retry import call_with_retry
from milestone_escrow.domain.access import Caller
from milestone_escrow.domain.enums import TransactionType
from milestone_escrow.schemas.wallet import (
    BalanceResponse,
    DepositRequest,
    DepositResult,
    TransactionResponse,
)
from milestone_escrow.services.account_service import AccountService

router = APIRouter(prefix="/api/v1/wallets", tags=["Wallets"])


@router.get("/me/balance", response_model=BalanceResponse, summary="Get my balance")
async def get_my_balance(
    caller: Caller = Depends(get_caller),
    svc: AccountService = Depends(get_account_service),
) -> BalanceResponse:
    return await svc.get_balance(caller.user_id)


@router.get(
    "/me/transactions",
    response_model=list[TransactionResponse],
    summary="List my ledger entries",
)
async def list_my_transactions(
    limit: int = Query(50, ge=1, le=500),
    tx_type: TransactionType | None = Query(None, alias="type"),
    caller: Caller = Depends(get_caller),
    svc: AccountService = Depends(get_account_service),
) -> list[TransactionResponse]:
    """Newest first, optionally filtered by transaction type."""
    return await svc.list_transactions(caller.user_id, limit=limit, tx_type=tx_type)


@router.post(
    "/{user_id}/deposit",
    response_model=DepositResult,
    status_code=201,
    summary="Credit a user's wallet (admin)",
)
async def deposit(
    user_id: uuid.UUID,
    request: DepositRequest,
    caller: Caller = Depends(get_caller),
    svc: AccountService = Depends(get_account_service),
) -> DepositResult:
    """Record an external transfer that an admin has verified."""
    return await call_with_retry(
        svc.deposit_funds, caller, user_id, request.amount, request.reference_note
    )
