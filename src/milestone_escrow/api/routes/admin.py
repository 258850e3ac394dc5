"""Admin-only REST API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from milestone_escrow.api.deps import get_account_service, get_caller
from milestone_escrow.domain.access import Caller
from milestone_escrow.schemas.wallet import LedgerAuditResponse
from milestone_escrow.services.account_service import AccountService

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"])


@router.get(
    "/ledger/audit",
    response_model=LedgerAuditResponse,
    summary="Check global ledger invariants",
)
async def audit_ledger(
    caller: Caller = Depends(get_caller),
    svc: AccountService = Depends(get_account_service),
) -> LedgerAuditResponse:
    """Conservation of money and non-negative balances across every wallet."""
    return await svc.audit_ledger(caller)
