"""Database infrastructure — engine, ORM models, repositories, and the ledger store."""

from milestone_escrow.infrastructure.database.engine import (
    build_engine,
    build_session_factory,
    close_db,
    create_schema,
    get_ledger_store,
    init_db,
)
from milestone_escrow.infrastructure.database.orm_models import (
    Base,
    Job,
    LedgerTransaction,
    Milestone,
    Wallet,
)
from milestone_escrow.infrastructure.database.repositories import (
    JobRepository,
    MilestoneRepository,
    TransactionRepository,
    WalletRepository,
)
from milestone_escrow.infrastructure.database.unit_of_work import LedgerStore, UnitOfWork

__all__ = [
    "Base",
    "Job",
    "LedgerTransaction",
    "Milestone",
    "Wallet",
    "JobRepository",
    "MilestoneRepository",
    "TransactionRepository",
    "WalletRepository",
    "LedgerStore",
    "UnitOfWork",
    "build_engine",
    "build_session_factory",
    "close_db",
    "create_schema",
    "get_ledger_store",
    "init_db",
]
