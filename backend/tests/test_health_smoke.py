from _helpers import unwrap


def test_health_ok(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    body = r.json()
    assert body["ok"] is True
    assert unwrap(body) == {"status": "ok"}
    assert body["meta"]["version"]


def test_health_is_public(db):
    from fastapi.testclient import TestClient

    from salesrecon.main import app

    with TestClient(app) as c:
        assert c.get("/api/health").status_code == 200
