from fastapi.testclient import TestClient

from applyr.main import app


def test_healthz() -> None:
    client = TestClient(app)
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "database": {"backend": "memory", "is_connected": True, "state": "connected"},
    }


def test_readyz_with_memory_backend() -> None:
    client = TestClient(app)
    response = client.get("/readyz")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_request_id_is_echoed() -> None:
    client = TestClient(app)
    response = client.get("/healthz", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"

    generated = client.get("/healthz")
    assert generated.headers["X-Request-ID"]
