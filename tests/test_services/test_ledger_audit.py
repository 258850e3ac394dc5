"""Tests for the global ledger invariant check."""

from __future__ import annotations

import uuid
from decimal import Decimal

import pytest

from milestone_escrow.domain.access import Caller
from milestone_escrow.domain.enums import UserRole
from milestone_escrow.domain.exceptions import ForbiddenError
from milestone_escrow.services.ledger_audit import audit_ledger, verify_ledger_invariants


class TestLedgerAudit:
    async def test_empty_ledger_balances(self, store) -> None:
        async with store.begin() as uow:
            assert await verify_ledger_invariants(uow) == []

    async def test_full_workflow_balances(
        self, store, market, escrow_service, admin, client_id, worker_id
    ) -> None:
        await market.fund_wallet(client_id, "300.00")
        m1, m2, m3 = await market.post_job(
            client_id, ["100.00", "33.33", "50.00"], worker_id=worker_id
        )
        for milestone_id in (m1, m2, m3):
            await escrow_service.lock_funds_for_milestone(client_id, milestone_id)
        await escrow_service.submit_milestone(worker_id, m1)
        await escrow_service.release_milestone(client_id, m1)
        await escrow_service.dispute_milestone(client_id, m2)
        await escrow_service.resolve_dispute_release(admin, m2)
        await escrow_service.dispute_milestone(worker_id, m3)
        await escrow_service.resolve_dispute_refund(admin, m3)

        async with store.begin() as uow:
            report = await audit_ledger(uow)

        assert report.balanced
        assert report.net_deposits == Decimal("300.00")
        assert report.total_available + report.total_frozen == Decimal("300.00")

    async def test_detects_money_created_outside_the_ledger(self, store) -> None:
        async with store.begin() as uow:
            wallet = await uow.wallets.create(uuid.uuid4())
            # Balance credited without a DEPOSIT entry
            await uow.wallets.update_balances(wallet.id, Decimal("10.00"), Decimal("0"))

        async with store.begin() as uow:
            violations = await verify_ledger_invariants(uow)

        assert len(violations) == 1
        assert "Conservation violated" in violations[0]

    async def test_admin_audit_view(self, account_service, admin, market) -> None:
        await market.fund_wallet(uuid.uuid4(), "12.50")
        report = await account_service.audit_ledger(admin)
        assert report.balanced is True
        assert report.net_deposits == "12.50"
        assert report.violations == []

    async def test_audit_requires_admin(self, account_service) -> None:
        with pytest.raises(ForbiddenError):
            await account_service.audit_ledger(Caller(uuid.uuid4(), UserRole.WORKER))
