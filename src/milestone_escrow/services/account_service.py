"""Account Service — wallet provisioning, balances, deposits, and history.

Unlike WalletService, every method here opens its own unit of work; these
are the self-contained wallet operations the application layer calls
directly.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from milestone_escrow.domain.access import assert_is_platform_admin
from milestone_escrow.domain.exceptions import NotFoundError
from milestone_escrow.domain.money import format_amount, parse_amount
from milestone_escrow.logging_config import get_logger
from milestone_escrow.schemas.wallet import (
    BalanceResponse,
    DepositResult,
    LedgerAuditResponse,
    TransactionResponse,
)
from milestone_escrow.services.ledger_audit import audit_ledger as run_ledger_audit
from milestone_escrow.services.wallet_service import WalletService

if TYPE_CHECKING:
    import uuid

    from milestone_escrow.domain.access import Caller
    from milestone_escrow.domain.enums import TransactionType
    from milestone_escrow.infrastructure.database.orm_models import Wallet
    from milestone_escrow.infrastructure.database.unit_of_work import LedgerStore

logger = get_logger(__name__)


class AccountService:
    """Wallet lifecycle and admin money operations."""

    def __init__(self, store: LedgerStore, wallet_service: WalletService | None = None) -> None:
        self._store = store
        self._wallets = wallet_service or WalletService()

    # ------------------------------------------------------------------
    # Provisioning
    # ------------------------------------------------------------------

    async def get_or_create_wallet(self, user_id: uuid.UUID) -> Wallet:
        """Return the user's wallet, creating an empty one if needed."""
        async with self._store.begin() as uow:
            return await uow.wallets.create(user_id)

    async def provision_platform_wallet(self, admin_user_id: uuid.UUID) -> uuid.UUID:
        """Create (or find) the wallet that collects platform fees.

        The returned id is what PLATFORM_WALLET_ID must be set to.
        """
        wallet = await self.get_or_create_wallet(admin_user_id)
        logger.info(
            "wallet.platform_provisioned",
            wallet_id=str(wallet.id),
            user_id=str(admin_user_id),
        )
        return wallet.id

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_balance(self, user_id: uuid.UUID) -> BalanceResponse:
        async with self._store.begin() as uow:
            wallet = await uow.wallets.get_by_user(user_id)
        if wallet is None:
            raise NotFoundError("wallet", f"user {user_id}")

        return BalanceResponse(
            user_id=user_id,
            available=format_amount(wallet.available_balance),
            frozen=format_amount(wallet.frozen_balance),
            total=format_amount(wallet.available_balance + wallet.frozen_balance),
        )

    async def list_transactions(
        self,
        user_id: uuid.UUID,
        limit: int = 50,
        tx_type: TransactionType | None = None,
    ) -> list[TransactionResponse]:
        """Ledger entries on the user's wallet, newest first."""
        async with self._store.begin() as uow:
            wallet = await uow.wallets.get_by_user(user_id)
            if wallet is None:
                raise NotFoundError("wallet", f"user {user_id}")
            entries = await uow.transactions.list_by_wallet(wallet.id, limit=limit, tx_type=tx_type)
        return [TransactionResponse.model_validate(entry) for entry in entries]

    async def audit_ledger(self, admin: Caller) -> LedgerAuditResponse:
        assert_is_platform_admin(admin)
        async with self._store.begin() as uow:
            report = await run_ledger_audit(uow)
        return LedgerAuditResponse(
            balanced=report.balanced,
            total_available=format_amount(report.total_available),
            total_frozen=format_amount(report.total_frozen),
            net_deposits=format_amount(report.net_deposits),
            violations=report.violations,
        )

    # ------------------------------------------------------------------
    # Admin deposit
    # ------------------------------------------------------------------

    async def deposit_funds(
        self,
        admin: Caller,
        user_id: uuid.UUID,
        amount: Decimal | str | int,
        reference_note: str,
    ) -> DepositResult:
        """Credit a user after an external transfer has been verified by an admin."""
        assert_is_platform_admin(admin)
        amount = parse_amount(amount)

        async with self._store.begin() as uow:
            wallet = await uow.wallets.create(user_id)
            wallet = await self._wallets.deposit(uow, wallet.id, amount, reference_note)

        logger.info(
            "wallet.manual_deposit",
            user_id=str(user_id),
            amount=format_amount(amount),
            admin_id=str(admin.user_id),
        )
        return DepositResult(
            user_id=user_id,
            deposited=format_amount(amount),
            available=format_amount(wallet.available_balance),
        )
