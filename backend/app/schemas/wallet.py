from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from uuid import UUID
from pydantic import BaseModel, ConfigDict

class WalletRow(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="ignore")

    user_id: UUID
    balance: Decimal = Decimal("0.00")
    total_points: int = 0
    tier: str = "bronze"
    updated_at: datetime | None = None

class WalletTransactionRow(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="ignore")

    id: UUID
    user_id: UUID
    amount: Decimal
    type: str
    description: str | None = None
    reference_id: str | None = None
    source_id: UUID | None = None
    source_type: str | None = None
    balance_after: Decimal | None = None
    created_at: datetime | None = None

class WalletSnapshot(BaseModel):
    wallet: WalletRow
    transactions: list[WalletTransactionRow]

class WalletReconciliation(BaseModel):
    user_id: UUID
    balance: Decimal
    ledger_sum: Decimal
    drift: Decimal
    transactions: int
    consistent: bool
