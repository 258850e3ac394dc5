#!/usr/bin/env python3
"""Milestone Escrow — End-to-End Simulation.

Drives the escrow workflow with ClientBot, WorkerBot and AdminBot actors:

    Scenario 1: Happy Path
        - Admin credits the client, client locks a milestone
        - Worker submits, client releases -> worker paid, platform fee taken

    Scenario 2: Insufficient Funds
        - Client tries to lock more than is available -> rejected, wallet unchanged

    Scenario 3: Dispute
        - A milestone in review is disputed
        - Admin refunds the client, the client re-locks, the worker disputes again
        - Admin releases to the worker

    Scenario 4: Concurrent Locks
        - Two locks race for a balance that covers only one of them

Usage:
    # Option A: PostgreSQL (DATABASE_URL from the environment / .env):
    python simulation.py

    # Option B: SQLite in a temporary file (no server needed):
    python simulation.py --sqlite

    # Run a specific scenario:
    python simulation.py --sqlite --scenario 1
"""

from __future__ import annotations

import argparse
import asyncio
import tempfile
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path

# ---------------------------------------------------------------------------
# Configure structured logging BEFORE importing app modules
# ---------------------------------------------------------------------------
from milestone_escrow.logging_config import get_logger, setup_logging

setup_logging(log_level="INFO", json_logs=False)
logger = get_logger("simulation")

from milestone_escrow.config import get_settings  # noqa: E402
from milestone_escrow.domain.access import Caller  # noqa: E402
from milestone_escrow.domain.enums import UserRole  # noqa: E402
from milestone_escrow.domain.exceptions import EscrowError  # noqa: E402
from milestone_escrow.infrastructure.database.engine import (  # noqa: E402
    build_engine,
    build_session_factory,
    create_schema,
)
from milestone_escrow.infrastructure.database.unit_of_work import LedgerStore  # noqa: E402
from milestone_escrow.services import (  # noqa: E402
    AccountService,
    EscrowService,
    verify_ledger_invariants,
)


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------
@dataclass
class Marketplace:
    """Everything a scenario needs: the store plus both services."""

    store: LedgerStore
    escrow: EscrowService
    accounts: AccountService
    admin: Caller


async def open_marketplace(use_sqlite: bool, workdir: Path):
    settings = get_settings()
    url = (
        f"sqlite+aiosqlite:///{workdir / 'simulation.db'}"
        if use_sqlite
        else settings.database_url
    )
    engine = build_engine(url)
    await create_schema(engine)
    store = LedgerStore(build_session_factory(engine), settings.unit_of_work_timeout_seconds)

    admin = Caller(user_id=uuid.uuid4(), role=UserRole.ADMIN)
    accounts = AccountService(store)
    platform_wallet_id = await accounts.provision_platform_wallet(admin.user_id)
    escrow = EscrowService(store, platform_wallet_id, fee_rate=settings.platform_fee_rate)
    logger.info("database.initialized", backend=engine.dialect.name)
    return engine, Marketplace(store=store, escrow=escrow, accounts=accounts, admin=admin)


async def post_job(
    market: Marketplace,
    client: ClientBot,
    worker: WorkerBot,
    title: str,
    milestones: list[tuple[str, Decimal]],
) -> list[uuid.UUID]:
    """Seed a job already assigned to the worker. Returns milestone ids in order."""
    async with market.store.begin() as uow:
        job = await uow.jobs.create(
            client_id=client.user_id,
            worker_id=worker.user_id,
            title=title,
            milestones=milestones,
        )
        milestone_ids = [m.id for m in job.milestones]
    print(f"  📋 Job posted: {title} ({len(milestone_ids)} milestones)")
    return milestone_ids


# ---------------------------------------------------------------------------
# Bots
# ---------------------------------------------------------------------------
@dataclass
class ClientBot:
    """Simulated client that funds and approves milestones."""

    market: Marketplace
    user_id: uuid.UUID = field(default_factory=uuid.uuid4)

    async def lock(self, milestone_id: uuid.UUID) -> None:
        result = await self.market.escrow.lock_funds_for_milestone(self.user_id, milestone_id)
        logger.info("🔵 CLIENT: Funds locked", amount=result.amount_locked, job=result.job_status)

    async def release(self, milestone_id: uuid.UUID) -> None:
        result = await self.market.escrow.release_milestone(self.user_id, milestone_id)
        logger.info(
            "🔵 CLIENT: Payment released",
            released=result.released,
            fee=result.platform_fee,
            job_completed=result.job_completed,
        )

    async def dispute(self, milestone_id: uuid.UUID) -> None:
        await self.market.escrow.dispute_milestone(self.user_id, milestone_id)
        logger.info("🔵 CLIENT: Dispute raised", milestone_id=str(milestone_id))


@dataclass
class WorkerBot:
    """Simulated worker that submits milestones."""

    market: Marketplace
    user_id: uuid.UUID = field(default_factory=uuid.uuid4)

    async def submit(self, milestone_id: uuid.UUID) -> None:
        result = await self.market.escrow.submit_milestone(self.user_id, milestone_id)
        logger.info("🟢 WORKER: Work submitted", status=result.status)

    async def dispute(self, milestone_id: uuid.UUID) -> None:
        await self.market.escrow.dispute_milestone(self.user_id, milestone_id)
        logger.info("🟢 WORKER: Dispute raised", milestone_id=str(milestone_id))


@dataclass
class AdminBot:
    """Simulated platform admin: credits deposits and settles disputes."""

    market: Marketplace

    async def credit(self, user_id: uuid.UUID, amount: str) -> None:
        await self.market.accounts.deposit_funds(
            self.market.admin, user_id, amount, reference_note="simulated bank transfer"
        )
        logger.info("🟠 ADMIN: Deposit credited", amount=amount)

    async def refund(self, milestone_id: uuid.UUID) -> None:
        result = await self.market.escrow.resolve_dispute_refund(self.market.admin, milestone_id)
        logger.info("🟠 ADMIN: Refunded client", refunded=result.refunded)

    async def pay_worker(self, milestone_id: uuid.UUID) -> None:
        result = await self.market.escrow.resolve_dispute_release(self.market.admin, milestone_id)
        logger.info("🟠 ADMIN: Released to worker", worker_received=result.worker_received)


# ---------------------------------------------------------------------------
# Display helpers
# ---------------------------------------------------------------------------
def section(title: str) -> None:
    print(f"\n{'=' * 70}\n  {title}\n{'=' * 70}")


async def print_balance(market: Marketplace, label: str, user_id: uuid.UUID) -> None:
    balance = await market.accounts.get_balance(user_id)
    print(f"  💰 {label:<8} available={balance.available:>10}  frozen={balance.frozen:>10}")


async def print_audit(market: Marketplace) -> None:
    async with market.store.begin() as uow:
        violations = await verify_ledger_invariants(uow)
    if violations:
        for violation in violations:
            print(f"  ❌ {violation}")
    else:
        print("  ✅ Ledger balanced")


# ===========================================================================
# Scenarios
# ===========================================================================
async def scenario_1_happy_path(market: Marketplace) -> None:
    section("SCENARIO 1: Happy Path")
    client, worker, admin = ClientBot(market), WorkerBot(market), AdminBot(market)
    [m1] = await post_job(market, client, worker, "Landing page", [("Build it", Decimal("100.00"))])

    await admin.credit(client.user_id, "100.00")
    await client.lock(m1)
    await worker.submit(m1)
    await client.release(m1)

    await print_balance(market, "client", client.user_id)
    await print_balance(market, "worker", worker.user_id)
    await print_audit(market)


async def scenario_2_insufficient_funds(market: Marketplace) -> None:
    section("SCENARIO 2: Insufficient Funds")
    client, worker, admin = ClientBot(market), WorkerBot(market), AdminBot(market)
    m1, m2 = await post_job(
        market,
        client,
        worker,
        "Data pipeline",
        [("Ingest", Decimal("40.00")), ("Transform", Decimal("70.00"))],
    )

    await admin.credit(client.user_id, "100.00")
    await client.lock(m1)
    try:
        await client.lock(m2)
    except EscrowError as exc:
        print(f"  🛑 Rejected as expected: {exc.code} ({exc.message})")

    await print_balance(market, "client", client.user_id)
    await print_audit(market)


async def scenario_3_dispute(market: Marketplace) -> None:
    section("SCENARIO 3: Dispute, Refund, Re-lock, Release")
    client, worker, admin = ClientBot(market), WorkerBot(market), AdminBot(market)
    [m1] = await post_job(market, client, worker, "Logo design", [("Logo", Decimal("100.00"))])

    await admin.credit(client.user_id, "100.00")
    await client.lock(m1)
    await worker.submit(m1)
    await client.dispute(m1)
    await admin.refund(m1)
    await print_balance(market, "client", client.user_id)

    await client.lock(m1)
    await worker.dispute(m1)
    await admin.pay_worker(m1)

    status = await market.escrow.get_milestone_status(market.admin, m1)
    print(f"\n  🛡️  Milestone final status: {status.status} (job {status.job_status})")
    await print_balance(market, "client", client.user_id)
    await print_balance(market, "worker", worker.user_id)
    await print_audit(market)


async def scenario_4_concurrent_locks(market: Marketplace) -> None:
    section("SCENARIO 4: Concurrent Locks")
    client, worker, admin = ClientBot(market), WorkerBot(market), AdminBot(market)
    m1, m2 = await post_job(
        market,
        client,
        worker,
        "Mobile app",
        [("iOS", Decimal("60.00")), ("Android", Decimal("60.00"))],
    )
    await admin.credit(client.user_id, "100.00")

    outcomes = await asyncio.gather(client.lock(m1), client.lock(m2), return_exceptions=True)
    for milestone_id, outcome in zip((m1, m2), outcomes, strict=True):
        verdict = "locked" if outcome is None else f"rejected: {outcome}"
        print(f"  ⚔️  {milestone_id}: {verdict}")

    await print_balance(market, "client", client.user_id)
    await print_audit(market)


SCENARIOS = {
    1: scenario_1_happy_path,
    2: scenario_2_insufficient_funds,
    3: scenario_3_dispute,
    4: scenario_4_concurrent_locks,
}


# ===========================================================================
# Main
# ===========================================================================
async def run(scenarios: list[int], use_sqlite: bool) -> None:
    with tempfile.TemporaryDirectory() as workdir:
        engine, market = await open_marketplace(use_sqlite, Path(workdir))
        try:
            print("\n" + "🚀" * 35)
            print("  MILESTONE ESCROW — SIMULATION")
            print(f"  Database: {'SQLite (temp file)' if use_sqlite else 'PostgreSQL'}")
            print("🚀" * 35)

            for num in scenarios:
                await SCENARIOS[num](market)

            print("\n" + "=" * 70)
            print("  ✅ ALL SCENARIOS COMPLETED")
            print("=" * 70 + "\n")
        finally:
            await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Milestone Escrow Simulation")
    parser.add_argument(
        "--scenario",
        type=int,
        default=0,
        choices=[0, *SCENARIOS],
        help="Run a specific scenario. Default: run all.",
    )
    parser.add_argument(
        "--sqlite",
        action="store_true",
        help="Use a temporary SQLite file instead of PostgreSQL.",
    )
    args = parser.parse_args()

    selected = list(SCENARIOS) if args.scenario == 0 else [args.scenario]
    asyncio.run(run(selected, use_sqlite=args.sqlite))
