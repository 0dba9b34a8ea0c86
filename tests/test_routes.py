import pytest
from fastapi.testclient import TestClient

import api.routes as routes
from api.main import app
from confusense.document import StudyDocument
from confusense.pipeline import ConfusionPipeline
from conftest import make_face


@pytest.fixture
def client(monkeypatch, settings, fake_timer):
    doc = StudyDocument("Recursion calls itself.")
    p = ConfusionPipeline(settings, document=doc, timer_factory=fake_timer)
    monkeypatch.setattr(routes, "settings", settings)
    monkeypatch.setattr(routes, "document", doc)
    monkeypatch.setattr(routes, "pipeline", p)
    monkeypatch.setitem(routes.live_session, "capture", None)
    return TestClient(app)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_session_lifecycle(client):
    assert client.post("/session/start").json()["status"] == "started"
    assert client.post("/session/start").json()["status"] == "already_running"
    body = client.get("/session/status").json()
    assert body["running"] is True and body["capturing"] is False
    assert body["label"] == "Clear" and body["calibration"]["phase"] == "idle"
    assert client.post("/session/stop").json()["status"] == "stopped"
    assert client.post("/session/stop").json()["status"] == "not_running"


def test_frames_need_session(client):
    r = client.post("/frames", json={"landmarks": make_face()})
    assert r.status_code == 409


def test_frames_scored(client):
    client.post("/session/start")
    r = client.post("/frames", json={"landmarks": make_face(), "timestamp": 1.0})
    assert r.status_code == 200
    body = r.json()
    assert body["face_detected"] is True and body["samples"] == 1
    assert body["level"] == pytest.approx(0.4)

    r = client.post("/frames", json={"landmarks": None, "timestamp": 1.2})
    assert r.json()["face_detected"] is False


def test_frames_with_earlier_timestamp_stay_finite(client):
    client.post("/session/start")
    for i in range(3):
        client.post("/frames", json={"landmarks": make_face(), "timestamp": 1.7e9 + i * 0.2})
    body = client.post("/frames", json={"landmarks": make_face(), "timestamp": 5.0}).json()
    assert body["samples"] == 1
    assert body["level"] == pytest.approx(0.4)


def test_calibration_endpoints(client):
    assert client.post("/calibration/start").status_code == 409
    client.post("/session/start")
    assert client.post("/calibration/start").json()["phase"] == "collecting_neutral"

    r = client.post("/calibration/step").json()
    assert r["advanced"] is False and r["calibration"]["step"] == 1

    for i in range(12):
        client.post("/frames", json={"landmarks": make_face(), "timestamp": i * 0.2})
    r = client.post("/calibration/step").json()
    assert r["advanced"] is True and r["calibration"]["phase"] == "collecting_confused"

    assert client.get("/calibration").json()["samples"] == 0
    assert client.post("/calibration/reset").json()["phase"] == "idle"


def test_rephrase_without_keys(client):
    r = client.post("/rephrase", json={"event_type": "facial-confusion", "content": "X", "confusion_level": 0.7})
    assert r.status_code == 200
    assert r.json() == {"text": "No API key provided.", "ok": False, "provider": None}


def test_document_endpoints(client):
    assert client.get("/document").json()["content"] == "Recursion calls itself."
    r = client.put("/document", json={"content": "Loops repeat."}).json()
    assert r["content"] == "Loops repeat." and r["rendered"] == "Loops repeat."
    routes.document.add_suggestion("Like a playlist on repeat.")
    assert len(client.get("/document").json()["suggestions"]) == 1
    assert client.delete("/document/suggestions").json()["suggestions"] == []
