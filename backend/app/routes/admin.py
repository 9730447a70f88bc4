from __future__ import annotations
from typing import Any
from fastapi import APIRouter, Depends, Path, Query, Request
from pydantic import ValidationError

from app.auth_deps import require_admin
from app.errors import InvalidInput
from app.deps import get_deletion_engine, get_store, get_withdrawal_engine
from app.schemas.collection import DeleteCollectionRequest, DeleteCollectionResponse
from app.schemas.wallet import WalletReconciliation
from app.schemas.withdrawal import WithdrawalList, WithdrawalStatusUpdate
from app.services.collections import CascadingDeletionEngine, parse_collection_id
from app.services.wallet import wallet_reconciliation
from app.services.withdrawals import WithdrawalApprovalEngine, list_withdrawals, parse_status
from app.store.base import LedgerStore

router = APIRouter(prefix="/admin", tags=["admin"])

async def _json_body(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}

# Body dependencies are declared before the store so bad input answers 400
# even when the store is not configured.

async def collection_id_from_body(request: Request) -> str:
    payload = DeleteCollectionRequest.model_validate(await _json_body(request))
    return parse_collection_id(payload.collectionId)

async def status_update_from_body(request: Request) -> WithdrawalStatusUpdate:
    try:
        payload = WithdrawalStatusUpdate.model_validate(await _json_body(request))
    except ValidationError:
        raise InvalidInput("Invalid request body")
    parse_status(payload.status)
    return payload

@router.post("/delete-collection", response_model=DeleteCollectionResponse)
async def delete_collection(
    admin=Depends(require_admin),
    collection_id: str = Depends(collection_id_from_body),
    engine: CascadingDeletionEngine = Depends(get_deletion_engine),
):
    result = await engine.delete_collection(collection_id)
    return DeleteCollectionResponse(ok=True, via=result.via)

@router.patch("/withdrawals/{withdrawal_id}")
async def update_withdrawal(
    withdrawal_id: str = Path(...),
    admin=Depends(require_admin),
    payload: WithdrawalStatusUpdate = Depends(status_update_from_body),
    engine: WithdrawalApprovalEngine = Depends(get_withdrawal_engine),
):
    update = await engine.set_status(
        withdrawal_id,
        payload.status,
        notes=payload.admin_notes,
        payout_method=payload.payout_method,
    )
    body: dict[str, Any] = {"withdrawal": update.withdrawal.model_dump(mode="json")}
    if update.warning:
        body["warning"] = update.warning
    else:
        body["message"] = update.message
    return body

@router.get("/withdrawals", response_model=WithdrawalList)
async def get_withdrawals(
    status: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    admin=Depends(require_admin),
    store: LedgerStore = Depends(get_store),
):
    rows = await list_withdrawals(store, status, limit)
    return WithdrawalList(withdrawals=rows, total=len(rows))

@router.get("/wallets/{user_id}/reconciliation", response_model=WalletReconciliation)
async def get_wallet_reconciliation(
    user_id: str = Path(...),
    admin=Depends(require_admin),
    store: LedgerStore = Depends(get_store),
):
    return await wallet_reconciliation(store, user_id)
