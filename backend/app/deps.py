from __future__ import annotations
from fastapi import Depends
from app.config import settings
from app.db import get_engine
from app.jobs.wallet_sync import enqueue_wallet_sync
from app.services.collections import CascadingDeletionEngine
from app.services.withdrawals import WithdrawalApprovalEngine
from app.store.base import LedgerStore
from app.store.sql import SqlLedgerStore

async def get_store() -> LedgerStore:
    # raises StoreUnavailable when DATABASE_URL is unset
    return SqlLedgerStore(get_engine())

async def get_deletion_engine(store: LedgerStore = Depends(get_store)) -> CascadingDeletionEngine:
    return CascadingDeletionEngine(store, procedure=settings.delete_collection_procedure)

async def get_withdrawal_engine(store: LedgerStore = Depends(get_store)) -> WithdrawalApprovalEngine:
    return WithdrawalApprovalEngine(
        store,
        strict_transitions=settings.strict_withdrawal_transitions,
        on_wallet_sync_failed=enqueue_wallet_sync if settings.wallet_sync_queue_enabled else None,
    )
