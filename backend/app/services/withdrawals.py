from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone as dt_tz
from typing import Callable

import structlog

from app.errors import InvalidInput, InvalidTransition, ReconciliationError, UnexpectedError, UpdateFailed
from app.schemas.withdrawal import (
    ALLOWED_TRANSITIONS,
    PROCESSED_STATUSES,
    WithdrawalRow,
    WithdrawalStatus,
)
from app.schemas.wallet import WalletTransactionRow
from app.services.wallet import WalletSyncError, debit_wallet, find_transaction
from app.store.base import Err, LedgerStore

log = structlog.get_logger()

UPDATED_MESSAGE = "Withdrawal status updated successfully"
BALANCE_NOT_UPDATED = "Withdrawal approved but wallet balance not updated"
TRANSACTION_NOT_RECORDED = "Withdrawal approved but wallet transaction not recorded"
WALLET_OPS_FAILED = "Withdrawal approved but wallet operations failed"

WalletSyncHook = Callable[[str, str], None]


@dataclass
class WithdrawalUpdate:
    withdrawal: WithdrawalRow
    message: str | None = None
    warning: str | None = None
    transaction: WalletTransactionRow | None = None


def parse_status(raw: str | None) -> WithdrawalStatus:
    if not raw:
        raise InvalidInput("Status is required")
    try:
        return WithdrawalStatus(raw.strip().lower())
    except ValueError:
        raise InvalidInput(f"Unknown withdrawal status: {raw}")


class WithdrawalApprovalEngine:
    """
    Moves withdrawal requests through their status machine.

    The status row is the source of truth. On approval the wallet is debited
    and a ledger row appended; if any of that fails the status change stands
    and the caller gets a warning instead of an error, so the wallet can be
    reconciled later (see ``on_wallet_sync_failed``).
    """

    def __init__(
        self,
        store: LedgerStore,
        *,
        strict_transitions: bool = False,
        on_wallet_sync_failed: WalletSyncHook | None = None,
    ):
        self.store = store
        self.strict_transitions = strict_transitions
        self.on_wallet_sync_failed = on_wallet_sync_failed

    async def set_status(
        self,
        withdrawal_id: str,
        status: str | None,
        notes: str | None = None,
        payout_method: str | None = None,
    ) -> WithdrawalUpdate:
        target = parse_status(status)
        try:
            return await self._set_status(str(withdrawal_id), target, notes, payout_method)
        except ReconciliationError:
            raise
        except Exception as e:
            log.exception("withdrawal_update_unexpected", withdrawal_id=str(withdrawal_id))
            raise UnexpectedError("Internal server error") from e

    async def _set_status(
        self, withdrawal_id: str, target: WithdrawalStatus, notes: str | None, payout_method: str | None,
    ) -> WithdrawalUpdate:
        if self.strict_transitions:
            await self._check_transition(withdrawal_id, target)

        now = datetime.now(dt_tz.utc)
        fields = {"status": target.value, "notes": notes or None, "updated_at": now}
        if target in PROCESSED_STATUSES:
            fields["processed_at"] = now
        if payout_method:
            fields["payout_method"] = payout_method

        res = await self.store.update_row("withdrawal_requests", {"id": withdrawal_id}, fields)
        if isinstance(res, Err):
            log.error("withdrawal_update_failed", withdrawal_id=withdrawal_id, kind=res.kind.value, error=res.message)
            raise UpdateFailed(res.message)
        withdrawal = WithdrawalRow.model_validate(res.value)
        log.info("withdrawal_status_updated", withdrawal_id=withdrawal_id, status=target.value)

        if target is not WithdrawalStatus.APPROVED:
            return WithdrawalUpdate(withdrawal=withdrawal, message=UPDATED_MESSAGE)
        return await self._debit_for(withdrawal, payout_method)

    async def _check_transition(self, withdrawal_id: str, target: WithdrawalStatus) -> None:
        res = await self.store.get_row("withdrawal_requests", {"id": withdrawal_id})
        if isinstance(res, Err):
            raise UpdateFailed(res.message)
        if res.value is None:
            raise UpdateFailed(f"withdrawal {withdrawal_id} not found")
        stored = str(res.value.get("status") or "")
        try:
            current = WithdrawalStatus(stored.strip().lower())
        except ValueError:
            raise UpdateFailed(f"withdrawal {withdrawal_id} has unrecognised status {stored!r}")
        if target not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransition(f"Cannot move withdrawal from {current.value} to {target.value}")

    async def _debit_for(self, withdrawal: WithdrawalRow, payout_method: str | None) -> WithdrawalUpdate:
        wid = str(withdrawal.id)
        try:
            # re-read so the debit uses the stored owner and amount
            res = await self.store.get_row("withdrawal_requests", {"id": wid})
            if isinstance(res, Err) or res.value is None:
                raise WalletSyncError("withdrawal_fetch", res.message if isinstance(res, Err) else "withdrawal vanished")
            stored = WithdrawalRow.model_validate(res.value)

            existing = await find_transaction(self.store, reference_id=wid)
            if existing is not None:
                log.info("withdrawal_already_debited", withdrawal_id=wid, transaction_id=str(existing.id))
                return WithdrawalUpdate(withdrawal=withdrawal, message=UPDATED_MESSAGE, transaction=existing)

            tx = await debit_wallet(
                self.store,
                user_id=stored.user_id,
                amount=stored.amount,
                reference_id=wid,
                description=f"Withdrawal approved - {payout_method or 'bank_transfer'}",
            )
        except WalletSyncError as e:
            log.warning("withdrawal_wallet_sync_failed", withdrawal_id=wid, stage=e.stage, error=e.message)
            self._notify(wid, e.stage)
            warning = TRANSACTION_NOT_RECORDED if e.stage == "transaction_insert" else BALANCE_NOT_UPDATED
            return WithdrawalUpdate(withdrawal=withdrawal, warning=warning)
        except Exception:
            log.exception("withdrawal_wallet_ops_error", withdrawal_id=wid)
            self._notify(wid, "unknown")
            return WithdrawalUpdate(withdrawal=withdrawal, warning=WALLET_OPS_FAILED)

        log.info("withdrawal_wallet_debited", withdrawal_id=wid, user_id=str(tx.user_id),
                 amount=str(tx.amount), balance_after=str(tx.balance_after))
        return WithdrawalUpdate(withdrawal=withdrawal, message=UPDATED_MESSAGE, transaction=tx)

    def _notify(self, withdrawal_id: str, stage: str) -> None:
        if self.on_wallet_sync_failed is None:
            return
        try:
            self.on_wallet_sync_failed(withdrawal_id, stage)
        except Exception:
            log.exception("wallet_sync_enqueue_failed", withdrawal_id=withdrawal_id, stage=stage)


async def list_withdrawals(store: LedgerStore, status: str | None = None, limit: int = 50) -> list[WithdrawalRow]:
    filter = {"status": parse_status(status).value} if status else {}
    res = await store.list_rows("withdrawal_requests", filter, limit=limit, order_by="created_at", descending=True)
    if isinstance(res, Err):
        raise ReconciliationError(res.message)
    return [WithdrawalRow.model_validate(r) for r in res.value]
