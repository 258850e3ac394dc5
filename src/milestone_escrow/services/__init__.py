"""Application services — use case orchestration."""

from milestone_escrow.services.account_service import AccountService
from milestone_escrow.services.escrow_service import EscrowService
from milestone_escrow.services.ledger_audit import (
    LedgerAuditReport,
    audit_ledger,
    verify_ledger_invariants,
)
from milestone_escrow.services.wallet_service import WalletService

__all__ = [
    "AccountService",
    "EscrowService",
    "LedgerAuditReport",
    "WalletService",
    "audit_ledger",
    "verify_ledger_invariants",
]
