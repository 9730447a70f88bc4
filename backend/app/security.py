from __future__ import annotations
from typing import Any
import jwt
from app.config import settings

# Tokens are minted by the hosted auth backend; this service only verifies them.

def decode_token(token: str) -> dict[str, Any]:
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
        options={"verify_aud": False},
    )

def token_role(claims: dict[str, Any]) -> str:
    """Role from app_metadata (hosted auth) or a top-level claim."""
    meta = claims.get("app_metadata") or {}
    role = meta.get("role") or claims.get("user_role") or claims.get("role") or ""
    return str(role).upper()

def is_admin(claims: dict[str, Any]) -> bool:
    return token_role(claims) in settings.admin_roles
