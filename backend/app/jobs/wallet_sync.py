from __future__ import annotations
import asyncio
from functools import lru_cache

import structlog
from redis import Redis
from rq import Queue

from app.config import settings
from app.db import make_engine
from app.schemas.withdrawal import PROCESSED_STATUSES, WithdrawalRow
from app.services.wallet import WITHDRAWAL, WalletSyncError, append_transaction, debit_wallet, find_transaction, get_wallet
from app.store.base import Err, LedgerStore

log = structlog.get_logger()

QUEUE_NAME = "wallet-sync"

@lru_cache(maxsize=1)
def _queue() -> Queue:
    return Queue(QUEUE_NAME, connection=Redis.from_url(settings.redis_url))

def enqueue_wallet_sync(withdrawal_id: str, stage: str) -> None:
    """Hook for WithdrawalApprovalEngine: retry the wallet side of an approval later."""
    _queue().enqueue(sync_withdrawal_wallet, withdrawal_id, stage, job_timeout=60)
    log.info("wallet_sync_enqueued", withdrawal_id=withdrawal_id, stage=stage)

async def run_wallet_sync(store: LedgerStore, withdrawal_id: str, stage: str) -> str:
    """
    Finish the wallet side of an approved withdrawal, including one the admin
    has since moved on to processing or completed. Returns what happened:
    "skipped_not_approved", "skipped_already_recorded", "recorded" or "debited".
    """
    res = await store.get_row("withdrawal_requests", {"id": withdrawal_id})
    if isinstance(res, Err):
        raise WalletSyncError("withdrawal_fetch", res.message)
    if res.value is None:
        return "skipped_not_approved"
    w = WithdrawalRow.model_validate(res.value)
    # approved, processing or completed all mean the payout stands
    if w.status not in PROCESSED_STATUSES:
        log.info("wallet_sync_skipped", withdrawal_id=withdrawal_id, status=w.status.value)
        return "skipped_not_approved"

    if await find_transaction(store, reference_id=withdrawal_id) is not None:
        return "skipped_already_recorded"

    if stage == "transaction_insert":
        # balance was already written; only the ledger row is missing
        wallet = await get_wallet(store, w.user_id)
        await append_transaction(
            store,
            user_id=w.user_id,
            amount=-w.amount,
            tx_type=WITHDRAWAL,
            description=f"Withdrawal approved - {w.payout_method or 'bank_transfer'}",
            reference_id=withdrawal_id,
            balance_after=wallet.balance,
        )
        log.info("wallet_sync_recorded", withdrawal_id=withdrawal_id)
        return "recorded"

    await debit_wallet(
        store,
        user_id=w.user_id,
        amount=w.amount,
        reference_id=withdrawal_id,
        description=f"Withdrawal approved - {w.payout_method or 'bank_transfer'}",
    )
    log.info("wallet_sync_debited", withdrawal_id=withdrawal_id)
    return "debited"

async def _run(withdrawal_id: str, stage: str) -> str:
    from app.store.sql import SqlLedgerStore
    engine = make_engine()
    try:
        return await run_wallet_sync(SqlLedgerStore(engine), withdrawal_id, stage)
    finally:
        await engine.dispose()

def sync_withdrawal_wallet(withdrawal_id: str, stage: str) -> str:
    # RQ entry point (sync); run the async coroutine
    return asyncio.run(_run(withdrawal_id, stage))
