from __future__ import annotations
from datetime import datetime, timezone as dt_tz
from decimal import Decimal
from uuid import UUID

import structlog

from app.errors import NotFound, ReconciliationError
from app.schemas.wallet import WalletReconciliation, WalletRow, WalletSnapshot, WalletTransactionRow
from app.store.base import Err, LedgerStore

log = structlog.get_logger()

WITHDRAWAL = "withdrawal"
ZERO = Decimal("0.00")


class WalletSyncError(Exception):
    """A wallet step failed; ``stage`` names the step, ``new_balance`` is set once the balance was written."""

    def __init__(self, stage: str, message: str, new_balance: Decimal | None = None):
        super().__init__(f"{stage}: {message}")
        self.stage = stage
        self.message = message
        self.new_balance = new_balance


def _money(value) -> Decimal:
    return Decimal(str(value if value is not None else 0))


def clamp_debit(balance: Decimal, amount: Decimal) -> Decimal:
    """Balance after a debit; floored at zero even when that loses track of the debt."""
    return max(ZERO, balance - amount)


async def get_wallet(store: LedgerStore, user_id: UUID | str) -> WalletRow:
    res = await store.get_row("wallets", {"user_id": str(user_id)})
    if isinstance(res, Err):
        raise WalletSyncError("wallet_fetch", res.message)
    if res.value is None:
        raise WalletSyncError("wallet_fetch", f"no wallet for user {user_id}")
    return WalletRow.model_validate(res.value)


async def append_transaction(
    store: LedgerStore,
    *,
    user_id: UUID | str,
    amount: Decimal,
    tx_type: str,
    description: str,
    reference_id: str,
    balance_after: Decimal,
) -> WalletTransactionRow:
    res = await store.insert_row("wallet_transactions", {
        "user_id": str(user_id),
        "amount": amount,
        "type": tx_type,
        "description": description,
        "reference_id": reference_id,
        "balance_after": balance_after,
    })
    if isinstance(res, Err):
        raise WalletSyncError("transaction_insert", res.message, new_balance=balance_after)
    return WalletTransactionRow.model_validate(res.value)


async def debit_wallet(
    store: LedgerStore,
    *,
    user_id: UUID | str,
    amount: Decimal,
    reference_id: str,
    description: str,
    tx_type: str = WITHDRAWAL,
) -> WalletTransactionRow:
    """
    Debit a wallet and append the paired ledger row.
    No lock is taken between the balance read and write.
    """
    amount = _money(amount)
    wallet = await get_wallet(store, user_id)
    new_balance = clamp_debit(_money(wallet.balance), amount)

    res = await store.update_row(
        "wallets", {"user_id": str(user_id)},
        {"balance": new_balance, "updated_at": datetime.now(dt_tz.utc)},
    )
    if isinstance(res, Err):
        raise WalletSyncError("balance_update", res.message)

    return await append_transaction(
        store,
        user_id=user_id,
        amount=-amount,
        tx_type=tx_type,
        description=description,
        reference_id=reference_id,
        balance_after=new_balance,
    )


async def find_transaction(store: LedgerStore, *, reference_id: str, tx_type: str = WITHDRAWAL) -> WalletTransactionRow | None:
    res = await store.list_rows("wallet_transactions", {"reference_id": reference_id, "type": tx_type}, limit=1)
    if isinstance(res, Err):
        raise WalletSyncError("transaction_lookup", res.message)
    return WalletTransactionRow.model_validate(res.value[0]) if res.value else None


async def _load_wallet(store: LedgerStore, user_id: UUID | str) -> WalletRow:
    res = await store.get_row("wallets", {"user_id": str(user_id)})
    if isinstance(res, Err):
        raise ReconciliationError(res.message)
    if res.value is None:
        raise NotFound("Wallet not found")
    return WalletRow.model_validate(res.value)


async def _transactions(store: LedgerStore, user_id: UUID | str, limit: int | None) -> list[WalletTransactionRow]:
    res = await store.list_rows(
        "wallet_transactions", {"user_id": str(user_id)},
        limit=limit, order_by="created_at", descending=True,
    )
    if isinstance(res, Err):
        raise ReconciliationError(res.message)
    return [WalletTransactionRow.model_validate(r) for r in res.value]


async def wallet_snapshot(store: LedgerStore, user_id: UUID | str, limit: int = 50) -> WalletSnapshot:
    wallet = await _load_wallet(store, user_id)
    return WalletSnapshot(wallet=wallet, transactions=await _transactions(store, user_id, limit))


async def wallet_reconciliation(store: LedgerStore, user_id: UUID | str) -> WalletReconciliation:
    """Compare the stored balance with the sum of the wallet's ledger deltas."""
    wallet = await _load_wallet(store, user_id)
    rows = await _transactions(store, user_id, None)
    ledger_sum = sum((_money(r.amount) for r in rows), ZERO)
    balance = _money(wallet.balance)
    drift = balance - ledger_sum
    if drift != 0:
        log.warning("wallet_ledger_drift", user_id=str(user_id), balance=str(balance), ledger_sum=str(ledger_sum))
    return WalletReconciliation(
        user_id=wallet.user_id,
        balance=balance,
        ledger_sum=ledger_sum,
        drift=drift,
        transactions=len(rows),
        consistent=drift == 0,
    )
