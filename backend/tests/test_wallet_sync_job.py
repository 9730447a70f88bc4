from __future__ import annotations
import uuid
from decimal import Decimal

import pytest

from app.jobs import wallet_sync
from app.jobs.wallet_sync import enqueue_wallet_sync, run_wallet_sync
from app.store.memory import InMemoryLedgerStore


def _approved(balance="80.00", amount="30.00", status="approved"):
    store = InMemoryLedgerStore()
    user_id = str(uuid.uuid4())
    wid = str(uuid.uuid4())
    store.seed("wallets", {"user_id": user_id, "balance": Decimal(balance)})
    store.seed("withdrawal_requests", {"id": wid, "user_id": user_id, "amount": Decimal(amount), "status": status})
    return store, wid


@pytest.mark.asyncio
async def test_retry_debits_when_balance_never_moved():
    store, wid = _approved()

    outcome = await run_wallet_sync(store, wid, "wallet_fetch")

    assert outcome == "debited"
    assert store.rows("wallets")[0]["balance"] == Decimal("50.00")
    [tx] = store.rows("wallet_transactions")
    assert tx["reference_id"] == wid and tx["amount"] == Decimal("-30.00")


@pytest.mark.asyncio
async def test_retry_only_records_after_balance_write():
    # balance already debited to 50 by the failed approval
    store, wid = _approved(balance="50.00")

    outcome = await run_wallet_sync(store, wid, "transaction_insert")

    assert outcome == "recorded"
    assert store.rows("wallets")[0]["balance"] == Decimal("50.00")
    [tx] = store.rows("wallet_transactions")
    assert tx["balance_after"] == Decimal("50.00")


@pytest.mark.asyncio
async def test_retry_is_a_no_op_once_recorded():
    store, wid = _approved()
    await run_wallet_sync(store, wid, "wallet_fetch")

    outcome = await run_wallet_sync(store, wid, "wallet_fetch")

    assert outcome == "skipped_already_recorded"
    assert store.rows("wallets")[0]["balance"] == Decimal("50.00")


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["rejected", "pending"])
async def test_retry_skips_withdrawals_no_longer_approved(status):
    store, wid = _approved(status=status)
    assert await run_wallet_sync(store, wid, "wallet_fetch") == "skipped_not_approved"
    assert store.rows("wallet_transactions") == []


def test_enqueue_uses_rq_queue(monkeypatch):
    jobs = []

    class _FakeQueue:
        def enqueue(self, fn, *args, **kwargs):
            jobs.append((fn, args, kwargs))

    monkeypatch.setattr(wallet_sync, "_queue", lambda: _FakeQueue())
    enqueue_wallet_sync("w-1", "balance_update")

    [(fn, args, kwargs)] = jobs
    assert fn is wallet_sync.sync_withdrawal_wallet
    assert args == ("w-1", "balance_update")
    assert kwargs["job_timeout"] == 60


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["processing", "completed"])
async def test_retry_still_debits_after_payout_moved_on(status):
    store, wid = _approved(balance="100.00", amount="40.00", status=status)

    outcome = await run_wallet_sync(store, wid, "wallet_fetch")

    assert outcome == "debited"
    assert store.rows("wallets")[0]["balance"] == Decimal("60.00")
    [tx] = store.rows("wallet_transactions")
    assert tx["type"] == "withdrawal" and tx["reference_id"] == wid
