from __future__ import annotations
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, Query

from app.auth_deps import get_current_claims
from app.deps import get_store
from app.schemas.wallet import WalletSnapshot
from app.security import is_admin
from app.services.wallet import wallet_snapshot
from app.store.base import LedgerStore

router = APIRouter(prefix="/wallet", tags=["wallet"])

@router.get("/{user_id}", response_model=WalletSnapshot)
async def get_wallet(
    user_id: UUID,
    limit: int = Query(default=50, ge=1, le=500),
    claims: dict = Depends(get_current_claims),
    store: LedgerStore = Depends(get_store),
):
    if str(claims.get("sub")) != str(user_id) and not is_admin(claims):
        raise HTTPException(status_code=403, detail="Not your wallet")
    return await wallet_snapshot(store, user_id, limit)
