from fastapi.testclient import TestClient
from app.main import app

client = TestClient(app)

def test_health_ok():
    r = client.get("/health", headers={"x-request-id": "req-123"})
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "ok"
    assert data["request_id"] == "req-123"
    assert "store_configured" in data
    assert r.headers["X-Request-ID"] == "req-123"

def test_health_generates_request_id():
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["request_id"] == r.headers["X-Request-ID"]

def test_version_ok():
    r = client.get("/version")
    assert r.status_code == 200
    data = r.json()
    assert "version" in data and "git_sha" in data
    assert data["name"]

def test_unhandled_error_keeps_request_id():
    import jwt
    from app.config import settings
    from app.deps import get_store

    def broken_store():
        raise RuntimeError("pool exhausted")

    token = jwt.encode({"sub": "admin-1", "app_metadata": {"role": "admin"}}, settings.jwt_secret,
                       algorithm=settings.jwt_algorithm)
    app.dependency_overrides[get_store] = broken_store
    try:
        c = TestClient(app, raise_server_exceptions=False)
        r = c.get("/admin/withdrawals", headers={"Authorization": f"Bearer {token}", "x-request-id": "req-500"})
    finally:
        app.dependency_overrides.clear()
    assert r.status_code == 500
    assert r.json() == {"error": "Internal server error"}
    assert r.headers["X-Request-ID"] == "req-500"
