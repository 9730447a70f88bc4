from __future__ import annotations
from typing import Any
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from app.security import decode_token, is_admin

security = HTTPBearer(auto_error=False)

async def get_current_claims(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> dict[str, Any]:
    if credentials is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    try:
        claims = decode_token(credentials.credentials)
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid token")
    if not claims.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token")
    return claims

async def require_admin(claims: dict[str, Any] = Depends(get_current_claims)) -> dict[str, Any]:
    if not is_admin(claims):
        raise HTTPException(status_code=403, detail="Insufficient permissions")
    return claims
