from __future__ import annotations
import uuid
from decimal import Decimal

import httpx
import jwt
import pytest
from httpx import AsyncClient

from app.config import settings
from app.deps import get_store
from app.main import app
from app.store.base import ErrorKind
from app.store.memory import InMemoryLedgerStore

pytestmark = pytest.mark.asyncio


def _token(sub: str | None = None, role: str | None = "admin") -> str:
    claims = {"sub": sub or str(uuid.uuid4())}
    if role:
        claims["app_metadata"] = {"role": role}
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def store(monkeypatch):
    monkeypatch.setattr(settings, "wallet_sync_queue_enabled", False)
    monkeypatch.setattr(settings, "strict_withdrawal_transitions", False)
    s = InMemoryLedgerStore()
    app.dependency_overrides[get_store] = lambda: s
    yield s
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    return AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


# ---------- delete-collection ----------

async def test_delete_collection_requires_token(client, store):
    r = await client.post("/admin/delete-collection", json={"collectionId": str(uuid.uuid4())})
    assert r.status_code == 401


async def test_delete_collection_rejects_garbage_token(client, store):
    r = await client.post(
        "/admin/delete-collection",
        json={"collectionId": str(uuid.uuid4())},
        headers=_auth("not-a-jwt"),
    )
    assert r.status_code == 401


async def test_delete_collection_requires_admin_role(client, store):
    r = await client.post(
        "/admin/delete-collection",
        json={"collectionId": str(uuid.uuid4())},
        headers=_auth(_token(role="collector")),
    )
    assert r.status_code == 403


async def test_staff_role_counts_as_admin(client, store):
    r = await client.post(
        "/admin/delete-collection",
        json={"collectionId": str(uuid.uuid4())},
        headers=_auth(_token(role="staff")),
    )
    assert r.status_code == 200


@pytest.mark.parametrize("body", [{}, {"collectionId": ""}, {"collectionId": 7}, {"collectionId": "abc"}])
async def test_delete_collection_bad_id(client, store, body):
    r = await client.post("/admin/delete-collection", json=body, headers=_auth(_token()))
    assert r.status_code == 400
    assert "collectionId" in r.json()["error"]


async def test_delete_collection_non_json_body(client, store):
    r = await client.post(
        "/admin/delete-collection",
        content=b"not json",
        headers={**_auth(_token()), "Content-Type": "application/json"},
    )
    assert r.status_code == 400


async def test_delete_collection_ok(client, store):
    cid = str(uuid.uuid4())
    store.seed("unified_collections", {"id": cid})
    store.seed("collection_photos", {"collection_id": cid, "photo_url": "x"})

    r = await client.post("/admin/delete-collection", json={"collectionId": cid}, headers=_auth(_token()))

    assert r.status_code == 200
    assert r.json() == {"ok": True, "via": "fallback"}
    assert store.rows("unified_collections") == []
    assert store.rows("collection_photos") == []


async def test_delete_collection_partial_failure(client, store):
    cid = str(uuid.uuid4())
    store.seed("unified_collections", {"id": cid})
    store.fail("delete", "unified_collections", ErrorKind.PERMISSION_DENIED, "permission denied")

    r = await client.post("/admin/delete-collection", json={"collectionId": cid}, headers=_auth(_token()))

    assert r.status_code == 409
    body = r.json()
    assert body["ok"] is False
    assert body["reason"] == "not_deleted"
    assert "permission denied" in body["details"]


async def test_store_not_configured(client, monkeypatch):
    monkeypatch.setattr(settings, "database_url", "")
    app.dependency_overrides.clear()

    r = await client.post(
        "/admin/delete-collection", json={"collectionId": str(uuid.uuid4())}, headers=_auth(_token()),
    )

    assert r.status_code == 500
    assert r.json() == {"error": "Store not configured"}


async def test_bad_input_wins_over_missing_store(client, monkeypatch):
    monkeypatch.setattr(settings, "database_url", "")
    app.dependency_overrides.clear()

    r = await client.post("/admin/delete-collection", json={}, headers=_auth(_token()))

    assert r.status_code == 400


# ---------- withdrawals ----------

def _seed_withdrawal(store, balance="50.00", amount="20.00", status="pending"):
    user_id = str(uuid.uuid4())
    wid = str(uuid.uuid4())
    store.seed("wallets", {"user_id": user_id, "balance": Decimal(balance)})
    store.seed("withdrawal_requests", {"id": wid, "user_id": user_id, "amount": Decimal(amount), "status": status})
    return user_id, wid


async def test_patch_withdrawal_requires_status(client, store):
    _, wid = _seed_withdrawal(store)
    r = await client.patch(f"/admin/withdrawals/{wid}", json={"adminNotes": "x"}, headers=_auth(_token()))
    assert r.status_code == 400
    assert r.json() == {"error": "Status is required"}


async def test_patch_withdrawal_unknown_status(client, store):
    _, wid = _seed_withdrawal(store)
    r = await client.patch(f"/admin/withdrawals/{wid}", json={"status": "paid"}, headers=_auth(_token()))
    assert r.status_code == 400


async def test_patch_withdrawal_approve(client, store):
    user_id, wid = _seed_withdrawal(store, balance="50.00", amount="20.00")

    r = await client.patch(
        f"/admin/withdrawals/{wid}",
        json={"status": "approved", "adminNotes": "looks fine", "payoutMethod": "bank_transfer"},
        headers=_auth(_token()),
    )

    assert r.status_code == 200
    body = r.json()
    assert body["message"] == "Withdrawal status updated successfully"
    assert "warning" not in body
    assert body["withdrawal"]["status"] == "approved"
    assert body["withdrawal"]["notes"] == "looks fine"
    assert store.rows("wallets")[0]["balance"] == Decimal("30.00")


async def test_patch_withdrawal_warns_when_wallet_fails(client, store):
    _, wid = _seed_withdrawal(store)
    store.fail("get", "wallets")

    r = await client.patch(f"/admin/withdrawals/{wid}", json={"status": "approved"}, headers=_auth(_token()))

    assert r.status_code == 200
    body = r.json()
    assert body["warning"] == "Withdrawal approved but wallet balance not updated"
    assert body["withdrawal"]["status"] == "approved"


async def test_patch_unknown_withdrawal(client, store):
    r = await client.patch(
        f"/admin/withdrawals/{uuid.uuid4()}", json={"status": "rejected"}, headers=_auth(_token()),
    )
    assert r.status_code == 500
    assert "error" in r.json()


async def test_patch_strict_transition_conflict(client, store, monkeypatch):
    monkeypatch.setattr(settings, "strict_withdrawal_transitions", True)
    _, wid = _seed_withdrawal(store, status="rejected")

    r = await client.patch(f"/admin/withdrawals/{wid}", json={"status": "approved"}, headers=_auth(_token()))

    assert r.status_code == 409
    assert store.rows("wallets")[0]["balance"] == Decimal("50.00")


async def test_list_withdrawals(client, store):
    _seed_withdrawal(store, status="pending")
    _seed_withdrawal(store, status="rejected")

    r = await client.get("/admin/withdrawals", params={"status": "pending"}, headers=_auth(_token()))

    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 1
    assert body["withdrawals"][0]["status"] == "pending"


# ---------- wallet ----------

async def test_owner_reads_wallet(client, store):
    user_id, wid = _seed_withdrawal(store, balance="50.00", amount="20.00")
    await client.patch(f"/admin/withdrawals/{wid}", json={"status": "approved"}, headers=_auth(_token()))

    r = await client.get(f"/wallet/{user_id}", headers=_auth(_token(sub=user_id, role=None)))

    assert r.status_code == 200
    body = r.json()
    assert Decimal(body["wallet"]["balance"]) == Decimal("30.00")
    assert len(body["transactions"]) == 1


async def test_other_user_cannot_read_wallet(client, store):
    user_id, _ = _seed_withdrawal(store)
    r = await client.get(f"/wallet/{user_id}", headers=_auth(_token(role=None)))
    assert r.status_code == 403


async def test_missing_wallet_is_404(client, store):
    r = await client.get(f"/wallet/{uuid.uuid4()}", headers=_auth(_token()))
    assert r.status_code == 404
    assert r.json() == {"error": "Wallet not found"}


async def test_reconciliation_reports_drift(client, store):
    user_id, wid = _seed_withdrawal(store, balance="50.00", amount="20.00")
    await client.patch(f"/admin/withdrawals/{wid}", json={"status": "approved"}, headers=_auth(_token()))

    r = await client.get(f"/admin/wallets/{user_id}/reconciliation", headers=_auth(_token()))

    assert r.status_code == 200
    body = r.json()
    # opening balance of 50 never went through the ledger
    assert body["consistent"] is False
    assert Decimal(body["ledger_sum"]) == Decimal("-20.00")
    assert Decimal(body["drift"]) == Decimal("50.00")
    assert body["transactions"] == 1
