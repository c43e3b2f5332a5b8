import pytest
from fastapi.testclient import TestClient

from conftest import FakeClassifierClient, classifier_reply

from childwatch.main import app
from childwatch.services import moderation_engine, monitoring
from childwatch.services.document_store import DocumentStore
from childwatch.services.moderation_engine import ModerationEngine


@pytest.fixture
def api(tmp_path, config, monkeypatch):
    engine = ModerationEngine(
        config,
        client=FakeClassifierClient(classifier_reply(violenceScore=0.82, detectedCategories=["Violence"])),
    )
    service = monitoring.MonitoringService(DocumentStore(tmp_path), engine)
    pushed = []

    async def fake_enqueue_push(notification_id, tokens, title, body, data=None, on_delivered=None):
        pushed.append(notification_id)
        if on_delivered is not None:
            on_delivered(len(tokens))
        return f"push-{notification_id}"

    monkeypatch.setattr(monitoring, "get_monitoring_service", lambda: service)
    monkeypatch.setattr(monitoring, "enqueue_push", fake_enqueue_push)
    monkeypatch.setattr(moderation_engine, "get_moderation_engine", lambda: engine)
    return TestClient(app), service, pushed


def _activity(parent_id, **overrides):
    body = {
        "parent_id": parent_id,
        "child_name": "Sam",
        "activity_kind": "video",
        "content_title": "Street Brawl Highlights",
        "content_url": "https://video.test/watch?v=1",
        "screenshot": "AAAA",
    }
    body.update(overrides)
    return body


def test_submit_and_list_activity(api):
    client, service, pushed = api
    parent = client.post("/parents", json={"name": "Alex", "device_tokens": ["tok"]}).json()["parent"]

    r = client.post("/monitoring/activity", json=_activity(parent["id"]))
    assert r.status_code == 201
    activity = r.json()["activity"]
    assert activity["flagged"] is True
    assert activity["notification_sent"] is True
    assert activity["decision"]["violations"] == ["violence"]
    assert activity["decision"]["severity"] == "high"
    assert len(pushed) == 1

    listed = client.get("/monitoring/activities", params={"parent_id": parent["id"], "flagged": True}).json()
    assert listed["count"] == 1
    assert listed["activities"][0]["screenshot"] == "[screenshot captured]"


def test_submit_for_unknown_parent_is_404(api):
    client, _, _ = api
    r = client.post("/monitoring/activity", json=_activity("ghost"))
    assert r.status_code == 404


def test_submit_rejects_unknown_activity_kind(api):
    client, _, _ = api
    r = client.post("/monitoring/activity", json=_activity("p1", activity_kind="television"))
    assert r.status_code == 422


def test_submit_rejects_negative_duration(api):
    client, _, _ = api
    r = client.post("/monitoring/activity", json=_activity("p1", duration=-3))
    assert r.status_code == 422


def test_duration_update(api):
    client, _, _ = api
    parent = client.post("/parents", json={"name": "Alex"}).json()["parent"]
    activity = client.post("/monitoring/activity", json=_activity(parent["id"])).json()["activity"]

    r = client.put(f"/monitoring/activity/{activity['id']}/duration", json={"duration": 42})
    assert r.status_code == 200
    assert r.json()["activity"]["duration"] == 42
    assert client.put("/monitoring/activity/missing/duration", json={"duration": 1}).status_code == 404


def test_notifications_listing_and_read(api):
    client, _, _ = api
    parent = client.post("/parents", json={"name": "Alex"}).json()["parent"]
    client.post("/monitoring/activity", json=_activity(parent["id"]))

    body = client.get("/notifications", params={"parent_id": parent["id"], "unread_only": True}).json()
    assert body["count"] == 1
    notification = body["notifications"][0]
    assert notification["title"] == "⚠️ Alert: Sam's video activity"

    r = client.put(f"/notifications/{notification['id']}/read", params={"parent_id": parent["id"]})
    assert r.status_code == 200
    assert r.json()["notification"]["read"] is True
    assert client.put(f"/notifications/{notification['id']}/read", params={"parent_id": "x"}).status_code == 404


def test_settings_roundtrip(api):
    client, _, _ = api
    parent = client.post("/parents", json={"name": "Alex"}).json()["parent"]

    settings = client.get(f"/parents/{parent['id']}/settings").json()["settings"]
    assert settings == {
        "violence_threshold": 0.6,
        "inappropriate_threshold": 0.7,
        "adult_content_threshold": 0.8,
        "notifications_enabled": True,
    }

    r = client.put(f"/parents/{parent['id']}/settings", json={"violence_threshold": 0.9})
    assert r.status_code == 200
    assert r.json()["settings"]["violence_threshold"] == 0.9

    # 0.82 violence is now under the parent's threshold
    activity = client.post("/monitoring/activity", json=_activity(parent["id"])).json()["activity"]
    assert activity["flagged"] is True
    assert activity["notification_sent"] is False

    assert client.put(f"/parents/{parent['id']}/settings", json={"violence_threshold": 1.5}).status_code == 422
    assert client.get("/parents/ghost/settings").status_code == 404


def test_moderate_preview(api):
    client, _, _ = api
    r = client.post(
        "/monitoring/moderate",
        json={
            "observation": {"child_name": "Sam", "activity_kind": "game", "content_title": "Arena"},
            "policy": {"violence_threshold": 0.8},
        },
    )
    assert r.status_code == 200
    body = r.json()
    assert body["outcome"]["decision"]["should_notify"] is True
    assert body["outcome"]["scores"]["violence_score"] == 0.82
    assert body["notification"]["severity"] == "high"


def test_health(api):
    client, _, _ = api
    assert client.get("/health/live").json() == {"status": "alive"}
    assert client.get("/health/ready").json()["status"] == "ready"


def test_out_of_range_stored_policy_is_422(api):
    client, service, _ = api
    parent = client.post("/parents", json={"name": "Alex"}).json()["parent"]
    settings = dict(service.store.get(monitoring.USERS, parent["id"])["settings"], violence_threshold=1.7)
    service.store.update(monitoring.USERS, parent["id"], {"settings": settings})

    assert client.post("/monitoring/activity", json=_activity(parent["id"])).status_code == 422
    assert client.get(f"/parents/{parent['id']}/settings").status_code == 422


def test_activity_history_date_range_and_skip(api):
    client, _, _ = api
    parent = client.post("/parents", json={"name": "Alex", "device_tokens": ["tok"]}).json()["parent"]
    for day in (1, 2, 3):
        client.post(
            "/monitoring/activity",
            json=_activity(parent["id"], content_title=f"Day {day}", observed_at=f"2026-05-0{day}T08:00:00Z"),
        )

    params = {"parent_id": parent["id"], "start_date": "2026-05-02T00:00:00Z"}
    listed = client.get("/monitoring/activities", params=params).json()
    assert sorted(a["content_title"] for a in listed["activities"]) == ["Day 2", "Day 3"]

    paged = client.get("/monitoring/activities", params={"parent_id": parent["id"], "skip": 2}).json()
    assert paged["count"] == 1
    assert client.get("/monitoring/activities", params={"parent_id": parent["id"], "skip": -1}).status_code == 422

    notifications = client.get("/notifications", params={"parent_id": parent["id"]}).json()["notifications"]
    assert all(n["sent"] is True for n in notifications)
    assert all(n["severity"] == "high" for n in notifications)
