"""Global ledger invariants.

Money only enters the system through deposits and only leaves through
withdrawals, so at any committed point in time:

    sum(available + frozen over all wallets) == sum(DEPOSIT) - sum(WITHDRAWAL)

and no wallet holds a negative balance.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING

from milestone_escrow.domain.enums import TransactionType
from milestone_escrow.logging_config import get_logger

if TYPE_CHECKING:
    from milestone_escrow.infrastructure.database.unit_of_work import UnitOfWork

logger = get_logger(__name__)


@dataclass
class LedgerAuditReport:
    total_available: Decimal
    total_frozen: Decimal
    net_deposits: Decimal
    violations: list[str] = field(default_factory=list)

    @property
    def balanced(self) -> bool:
        return not self.violations


async def audit_ledger(uow: UnitOfWork) -> LedgerAuditReport:
    """Check conservation and non-negativity. Each violation is logged at ERROR."""
    total_available, total_frozen = await uow.wallets.totals()
    deposits = await uow.transactions.sum_by_type(TransactionType.DEPOSIT)
    withdrawals = await uow.transactions.sum_by_type(TransactionType.WITHDRAWAL)
    net_deposits = deposits - withdrawals

    report = LedgerAuditReport(
        total_available=total_available,
        total_frozen=total_frozen,
        net_deposits=net_deposits,
    )

    total_assets = total_available + total_frozen
    if total_assets != net_deposits:
        report.violations.append(
            f"Conservation violated: available({total_available}) + "
            f"frozen({total_frozen}) = {total_assets} != net_deposits({net_deposits})"
        )

    negative = await uow.wallets.count_negative()
    if negative:
        report.violations.append(f"{negative} wallet(s) hold a negative balance")

    for violation in report.violations:
        logger.error("ledger.audit_violation", violation=violation)
    return report


async def verify_ledger_invariants(uow: UnitOfWork) -> list[str]:
    """Return the list of broken ledger invariants; empty when the books balance."""
    report = await audit_ledger(uow)
    return report.violations
