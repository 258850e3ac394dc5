"""Ledger Store — transactional boundary for every balance mutation.

A UnitOfWork wraps one AsyncSession / database transaction and exposes the
repositories bound to it. It is always passed explicitly to the services
that use it; nothing here is ambient or thread-local.

Usage:
    store = LedgerStore(session_factory, timeout_seconds=20)
    async with store.begin() as uow:
        wallet = await uow.wallets.get_for_update(wallet_id)
        ...
    # committed here; any exception or timeout rolled everything back
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from milestone_escrow.domain.exceptions import UnitOfWorkTimeoutError
from milestone_escrow.infrastructure.database.repositories import (
    JobRepository,
    MilestoneRepository,
    TransactionRepository,
    WalletRepository,
)
from milestone_escrow.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = get_logger(__name__)


class UnitOfWork:
    """One isolated transaction and the repositories that share it."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.wallets = WalletRepository(session)
        self.transactions = TransactionRepository(session)
        self.milestones = MilestoneRepository(session)
        self.jobs = JobRepository(session)

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()


class LedgerStore:
    """Factory for units of work with a bounded execution time."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        timeout_seconds: float = 20.0,
    ) -> None:
        self._session_factory = session_factory
        self._timeout_seconds = timeout_seconds

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    @asynccontextmanager
    async def begin(self) -> AsyncIterator[UnitOfWork]:
        """Start a unit of work; commit on clean exit, roll back otherwise.

        Raises:
            UnitOfWorkTimeoutError: The body (or commit) exceeded the timeout.
                Nothing was persisted, so the caller may retry with a fresh unit.
        """
        async with self._session_factory() as session:
            uow = UnitOfWork(session)
            try:
                async with asyncio.timeout(self._timeout_seconds):
                    yield uow
                    await uow.commit()
            except TimeoutError as exc:
                await uow.rollback()
                logger.warning(
                    "ledger.unit_of_work_timeout",
                    timeout_seconds=self._timeout_seconds,
                )
                raise UnitOfWorkTimeoutError(self._timeout_seconds) from exc
            except Exception:
                await uow.rollback()
                raise
