from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field

class WithdrawalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PROCESSING = "processing"
    COMPLETED = "completed"
    REJECTED = "rejected"

# pending -> approved|rejected, approved -> processing -> completed
ALLOWED_TRANSITIONS: dict[WithdrawalStatus, frozenset[WithdrawalStatus]] = {
    WithdrawalStatus.PENDING: frozenset({WithdrawalStatus.APPROVED, WithdrawalStatus.REJECTED}),
    WithdrawalStatus.APPROVED: frozenset({WithdrawalStatus.PROCESSING}),
    WithdrawalStatus.PROCESSING: frozenset({WithdrawalStatus.COMPLETED}),
    WithdrawalStatus.COMPLETED: frozenset(),
    WithdrawalStatus.REJECTED: frozenset(),
}

# Statuses that stamp processed_at
PROCESSED_STATUSES = frozenset({WithdrawalStatus.APPROVED, WithdrawalStatus.PROCESSING, WithdrawalStatus.COMPLETED})

class WithdrawalRow(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="ignore")

    id: UUID
    user_id: UUID
    amount: Decimal
    status: WithdrawalStatus
    notes: str | None = None
    payout_method: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    processed_at: datetime | None = None

class WithdrawalStatusUpdate(BaseModel):
    """PATCH body; field names follow the admin portal's camelCase payload."""
    status: str | None = None
    admin_notes: str | None = Field(default=None, alias="adminNotes")
    payout_method: str | None = Field(default=None, alias="payoutMethod")

    model_config = ConfigDict(populate_by_name=True)

class WithdrawalUpdateResponse(BaseModel):
    withdrawal: WithdrawalRow
    message: str | None = None
    warning: str | None = None

class WithdrawalList(BaseModel):
    withdrawals: list[WithdrawalRow]
    total: int
