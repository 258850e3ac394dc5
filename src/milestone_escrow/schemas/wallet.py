"""Pydantic schemas for wallet balances, deposits, and the ledger."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from milestone_escrow.domain.money import format_amount

# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------


class DepositRequest(BaseModel):
    """Request body for an admin crediting a user after an external transfer."""

    amount: str = Field(
        ...,
        min_length=1,
        max_length=32,
        description="Positive decimal string with at most two fractional digits",
        examples=["250.00"],
    )
    reference_note: str = Field(
        ...,
        min_length=1,
        max_length=500,
        description="Bank reference or other proof of the external transfer",
    )


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    user_id: uuid.UUID
    available: str
    frozen: str
    total: str


class DepositResult(BaseModel):
    user_id: uuid.UUID
    deposited: str
    available: str


class TransactionResponse(BaseModel):
    """One ledger entry."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    wallet_id: uuid.UUID
    type: str
    amount: Decimal
    milestone_id: uuid.UUID | None
    reference_note: str | None
    created_at: datetime

    @field_serializer("amount")
    def _serialize_amount(self, amount: Decimal) -> str:
        return format_amount(amount)


class LedgerAuditResponse(BaseModel):
    """Result of the global conservation check."""

    balanced: bool
    total_available: str
    total_frozen: str
    net_deposits: str
    violations: list[str]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "0.1.0"
    database: str = "unknown"
