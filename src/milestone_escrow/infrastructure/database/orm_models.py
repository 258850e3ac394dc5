"""SQLAlchemy 2.0 ORM models for the milestone escrow engine.

Four tables:
    1. wallets       — One per user: available and frozen balances.
    2. transactions  — Append-only ledger; one row per balance mutation.
    3. jobs          — Job header (content owned by the job-management service).
    4. milestones    — Independently funded sub-units of a job.

Design decisions:
    - UUIDs as primary keys (no sequential leakage).
    - Numeric(18, 2) for money (no floating point rounding errors).
    - CHECK constraints mirror the domain invariants: balances never negative,
      ledger amounts always positive, statuses always valid enum values.
    - transactions is append-only: no UPDATE or DELETE at the application level.
    - Generic Uuid/Numeric types so the same schema runs on PostgreSQL and SQLite.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import Decimal  # noqa: TC003 - needed at runtime by SQLAlchemy Mapped[]

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    event,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from milestone_escrow.domain.enums import JobStatus, MilestoneStatus, TransactionType

MONEY = Numeric(18, 2)


def _in_clause(column: str, enum_cls: type) -> str:
    values = ", ".join(f"'{member.value}'" for member in enum_cls)
    return f"{column} IN ({values})"


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# ---------------------------------------------------------------------------
# Helper: auto-set updated_at on flush
# ---------------------------------------------------------------------------
def _set_updated_at(mapper, connection, target):  # noqa: ANN001
    """SQLAlchemy event listener that updates `updated_at` before flush."""
    if hasattr(target, "updated_at"):
        target.updated_at = datetime.now(UTC)


# ---------------------------------------------------------------------------
# 1. wallets
# ---------------------------------------------------------------------------
class Wallet(Base):
    """A user's balance, split into spendable and escrow-frozen funds."""

    __tablename__ = "wallets"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        nullable=False,
        unique=True,
        comment="Owning user (one wallet per user)",
    )

    available_balance: Mapped[Decimal] = mapped_column(
        MONEY,
        nullable=False,
        default=Decimal("0.00"),
        comment="Spendable funds",
    )
    frozen_balance: Mapped[Decimal] = mapped_column(
        MONEY,
        nullable=False,
        default=Decimal("0.00"),
        comment="Funds locked in escrow for funded milestones",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        CheckConstraint("available_balance >= 0", name="ck_wallet_available_non_negative"),
        CheckConstraint("frozen_balance >= 0", name="ck_wallet_frozen_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<Wallet id={self.id} user={self.user_id} "
            f"available={self.available_balance} frozen={self.frozen_balance}>"
        )


# ---------------------------------------------------------------------------
# 2. transactions (Append-Only Ledger)
# ---------------------------------------------------------------------------
class LedgerTransaction(Base):
    """Immutable record explaining one balance mutation on one wallet.

    This table is APPEND-ONLY. A movement between two wallets is recorded as
    one row per wallet touched.
    """

    __tablename__ = "transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    wallet_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("wallets.id", ondelete="RESTRICT"),
        nullable=False,
        comment="Wallet whose balance this entry explains",
    )
    type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="TransactionType enum value",
    )
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    milestone_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("milestones.id", ondelete="RESTRICT"),
        nullable=True,
        default=None,
    )
    reference_note: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        CheckConstraint(_in_clause("type", TransactionType), name="ck_transaction_valid_type"),
        CheckConstraint("amount > 0", name="ck_transaction_positive_amount"),
        Index("idx_transaction_wallet", "wallet_id"),
        Index("idx_transaction_milestone", "milestone_id"),
        Index("idx_transaction_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<LedgerTransaction id={self.id} type={self.type} amount={self.amount}>"


# ---------------------------------------------------------------------------
# 3. jobs
# ---------------------------------------------------------------------------
class Job(Base):
    """A job posted by a client. Content fields are read-only to this engine."""

    __tablename__ = "jobs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    client_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    worker_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        nullable=True,
        default=None,
        comment="Assigned worker (set once on proposal acceptance)",
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    total_budget: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=JobStatus.OPEN.value,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    milestones: Mapped[list[Milestone]] = relationship(
        "Milestone",
        back_populates="job",
        order_by="Milestone.order.asc()",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint(_in_clause("status", JobStatus), name="ck_job_valid_status"),
        CheckConstraint("total_budget > 0", name="ck_job_positive_budget"),
        Index("idx_job_client", "client_id"),
        Index("idx_job_worker", "worker_id"),
    )

    def __repr__(self) -> str:
        return f"<Job id={self.id} status={self.status} budget={self.total_budget}>"


# ---------------------------------------------------------------------------
# 4. milestones
# ---------------------------------------------------------------------------
class Milestone(Base):
    """A sub-unit of a job with its own budget and escrow lifecycle."""

    __tablename__ = "milestones"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("jobs.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    order: Mapped[int] = mapped_column("order", Integer, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=MilestoneStatus.PENDING.value,
        comment="Current lifecycle state (guarded by MilestoneStateMachine)",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    job: Mapped[Job] = relationship("Job", back_populates="milestones")

    __table_args__ = (
        CheckConstraint(_in_clause("status", MilestoneStatus), name="ck_milestone_valid_status"),
        CheckConstraint("amount > 0", name="ck_milestone_positive_amount"),
        CheckConstraint('"order" > 0', name="ck_milestone_positive_order"),
        UniqueConstraint("job_id", "order", name="uq_milestone_job_order"),
        Index("idx_milestone_job_status", "job_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Milestone id={self.id} status={self.status} amount={self.amount}>"


# ---------------------------------------------------------------------------
# Register the auto-update listener for updated_at
# ---------------------------------------------------------------------------
for _model in (Wallet, Job, Milestone):
    event.listen(_model, "before_update", _set_updated_at)
