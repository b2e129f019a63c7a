from fastapi.testclient import TestClient
from backend.main import app

client = TestClient(app)

def test_health():
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["database"] == "connected"

def test_metrics_exposed():
    r = client.get("/metrics")
    assert r.status_code == 200
    assert "activity_entries_total" in r.text

def test_unknown_route_envelope():
    r = client.get("/api/nowhere")
    assert r.status_code == 404
    assert r.json() == {"success": False, "message": "Route GET /api/nowhere not found"}

def test_public_gallery_open():
    r = client.get("/api/public/projects")
    assert r.status_code == 200
    assert r.json()["data"]["pagination"] == {"current": 1, "pages": 0, "total": 0}
