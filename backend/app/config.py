from __future__ import annotations
import os
from pydantic import BaseModel

class Settings(BaseModel):
    environment: str = os.getenv("ENVIRONMENT", "dev")
    app_name: str = os.getenv("APP_NAME", "recycling-rewards-api")
    app_display_name: str = os.getenv("APP_DISPLAY_NAME", "Recycling Rewards")
    app_version: str = os.getenv("APP_VERSION", "0.1.0")
    git_sha: str = os.getenv("GIT_SHA", "dev")
    cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Empty means the ledger store is not configured; requests answer 500.
    database_url: str = os.getenv("DATABASE_URL", "")
    redis_url: str = os.getenv("REDIS_URL", "redis://redis:6379/0")

    # Tokens are issued by the hosted auth backend and signed with its secret
    jwt_secret: str = os.getenv("JWT_SECRET", "dev-only-jwt-secret-change-me-in-prod")
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
    admin_roles: list[str] = [r.strip().upper() for r in os.getenv("ADMIN_ROLES", "ADMIN,STAFF").split(",") if r.strip()]

    # Reconciliation behaviour
    wallet_sync_queue_enabled: bool = os.getenv("WALLET_SYNC_QUEUE", "0") == "1"
    strict_withdrawal_transitions: bool = os.getenv("STRICT_WITHDRAWAL_TRANSITIONS", "0") == "1"
    delete_collection_procedure: str = os.getenv("DELETE_COLLECTION_PROCEDURE", "admin_delete_collection")

settings = Settings()
