"""Wallet Service — atomic balance-mutation primitives.

Each primitive is one all-or-nothing step inside a caller-supplied
UnitOfWork: the balance update and the ledger entry explaining it are
written in the same transaction, so either both persist or neither does.

    deposit  available += amount                        DEPOSIT
    freeze   available -= amount, frozen += amount      ESCROW_LOCK
    release  client frozen -= amount,                   RELEASE (client)
             worker available += worker_amount,         RELEASE (worker)
             platform available += fee_amount           PLATFORM_FEE (platform)
    refund   frozen -= amount, available += amount      REFUND
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from milestone_escrow.domain.enums import TransactionType
from milestone_escrow.domain.exceptions import InsufficientFundsError, InvariantViolationError
from milestone_escrow.domain.money import ZERO, format_amount, parse_amount
from milestone_escrow.logging_config import get_logger

if TYPE_CHECKING:
    import uuid

    from milestone_escrow.infrastructure.database.orm_models import Wallet
    from milestone_escrow.infrastructure.database.unit_of_work import UnitOfWork

logger = get_logger(__name__)


class WalletService:
    """Money-movement primitives. Stateless; never opens its own transaction."""

    async def deposit(
        self,
        uow: UnitOfWork,
        wallet_id: uuid.UUID,
        amount: Decimal | str | int,
        reference_note: str,
    ) -> Wallet:
        """Credit a wallet's available balance and log a DEPOSIT entry."""
        amount = parse_amount(amount)

        wallet = await uow.wallets.update_balances(wallet_id, amount, ZERO)
        await uow.transactions.append(
            wallet_id=wallet_id,
            tx_type=TransactionType.DEPOSIT,
            amount=amount,
            reference_note=reference_note,
        )

        logger.info("wallet.deposited", wallet_id=str(wallet_id), amount=format_amount(amount))
        return wallet

    async def freeze(
        self,
        uow: UnitOfWork,
        wallet_id: uuid.UUID,
        amount: Decimal | str | int,
        milestone_id: uuid.UUID,
    ) -> Wallet:
        """Move funds from available to frozen for a milestone.

        Raises:
            InsufficientFundsError: available < amount.
        """
        amount = parse_amount(amount)

        wallet = await uow.wallets.get_for_update(wallet_id)
        if wallet.available_balance < amount:
            raise InsufficientFundsError(
                required=format_amount(amount),
                available=format_amount(wallet.available_balance),
            )

        wallet = await uow.wallets.update_balances(wallet_id, -amount, amount)
        await uow.transactions.append(
            wallet_id=wallet_id,
            tx_type=TransactionType.ESCROW_LOCK,
            amount=amount,
            milestone_id=milestone_id,
            reference_note=f"Escrow lock for milestone {milestone_id}",
        )

        logger.info(
            "wallet.funds_frozen",
            wallet_id=str(wallet_id),
            milestone_id=str(milestone_id),
            amount=format_amount(amount),
        )
        return wallet

    async def release(
        self,
        uow: UnitOfWork,
        client_wallet_id: uuid.UUID,
        worker_wallet_id: uuid.UUID,
        platform_wallet_id: uuid.UUID,
        amount: Decimal,
        fee_amount: Decimal,
        worker_amount: Decimal,
        milestone_id: uuid.UUID,
    ) -> None:
        """Pay a milestone's frozen funds out to the worker and the platform.

        Raises:
            InvariantViolationError: fee_amount + worker_amount != amount, or the
                client's frozen balance cannot cover amount.
        """
        amount = parse_amount(amount)
        if fee_amount < 0 or worker_amount < 0 or fee_amount + worker_amount != amount:
            details = {
                "milestone_id": str(milestone_id),
                "amount": str(amount),
                "fee_amount": str(fee_amount),
                "worker_amount": str(worker_amount),
            }
            logger.critical("wallet.release_split_mismatch", details=details)
            raise InvariantViolationError("Release split does not add up to amount", details)

        # Lock every touched wallet up front, in ascending id order.
        await uow.wallets.lock_many([client_wallet_id, worker_wallet_id, platform_wallet_id])

        await uow.wallets.update_balances(client_wallet_id, ZERO, -amount)
        await uow.transactions.append(
            wallet_id=client_wallet_id,
            tx_type=TransactionType.RELEASE,
            amount=amount,
            milestone_id=milestone_id,
            reference_note=f"Release for milestone {milestone_id}",
        )

        if worker_amount > 0:
            await uow.wallets.update_balances(worker_wallet_id, worker_amount, ZERO)
            await uow.transactions.append(
                wallet_id=worker_wallet_id,
                tx_type=TransactionType.RELEASE,
                amount=worker_amount,
                milestone_id=milestone_id,
                reference_note=f"Payout for milestone {milestone_id}",
            )

        if fee_amount > 0:
            await uow.wallets.update_balances(platform_wallet_id, fee_amount, ZERO)
            await uow.transactions.append(
                wallet_id=platform_wallet_id,
                tx_type=TransactionType.PLATFORM_FEE,
                amount=fee_amount,
                milestone_id=milestone_id,
                reference_note=f"Platform fee on milestone {milestone_id}",
            )

        logger.info(
            "wallet.funds_released",
            milestone_id=str(milestone_id),
            amount=format_amount(amount),
            fee=format_amount(fee_amount),
            worker_amount=format_amount(worker_amount),
        )

    async def refund(
        self,
        uow: UnitOfWork,
        wallet_id: uuid.UUID,
        amount: Decimal | str | int,
        milestone_id: uuid.UUID,
    ) -> Wallet:
        """Return frozen funds to the same wallet's available balance."""
        amount = parse_amount(amount)

        wallet = await uow.wallets.update_balances(wallet_id, amount, -amount)
        await uow.transactions.append(
            wallet_id=wallet_id,
            tx_type=TransactionType.REFUND,
            amount=amount,
            milestone_id=milestone_id,
            reference_note=f"Refund for disputed milestone {milestone_id}",
        )

        logger.info(
            "wallet.funds_refunded",
            wallet_id=str(wallet_id),
            milestone_id=str(milestone_id),
            amount=format_amount(amount),
        )
        return wallet
