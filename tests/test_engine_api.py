import pytest
from fastapi.testclient import TestClient

from stale.main import create_app
from stale.services.engine import Engine


@pytest.fixture
def client(settings, session_factory, clock):
    app = create_app(settings, engine=Engine(settings, session_factory, clock=clock))
    with TestClient(app) as c:
        yield c


def test_root_lists_routes(client):
    r = client.get("/")
    assert r.status_code == 200
    data = r.json()
    assert data["service"] == "Stale Engine"
    assert "/engine/request" in data["routers"]


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True, "db": True}


def test_engine_health(client):
    r = client.get("/engine/health")
    assert r.status_code == 200
    data = r.json()
    assert data["ok"] is True
    assert data["inFlight"] == 0
    assert data["cacheEntries"] == 0
    for name in ("meta", "json-ld", "time-element", "heuristic", "url-path", "http-header"):
        assert name in data["extractors"]


def test_request_round_trip(client):
    r = client.post("/engine/request", json={"type": "INCREMENT_QUOTA"})
    assert r.status_code == 200
    assert r.json() == {"used": 1}

    r = client.post("/engine/request", json={"type": "CHECK_QUOTA"})
    assert r.json()["remaining"] == 9


def test_errors_still_answer_200(client):
    r = client.post("/engine/request", json={"type": "NOPE"})
    assert r.status_code == 200
    assert r.json() == {"error": "Unknown message type", "type": "invalid_request"}


def test_analyze_snippet_over_http(client):
    r = client.post(
        "/engine/request",
        json={"type": "ANALYZE_SNIPPET", "text": "No dates here", "url": "https://example.com/x"},
    )
    data = r.json()
    assert data["needsDeepFetch"] is True
    assert data["freshness"]["tier"] == "unknown"
