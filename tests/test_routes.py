"""HTTP surface: auth, error envelopes and the main flows."""

import pytest

SERVICE = ["service"]


@pytest.fixture
async def registered(client, auth):
    response = await client.put(
        "/api/v1/targets",
        json={"target_key": "review:r1", "owner_id": "u3", "title": "Severance"},
        headers=auth("reviews-svc", SERVICE),
    )
    assert response.status_code == 200
    return response.json()


async def test_health_check(client):
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "episodic-api"


async def test_readiness_checks_database(client):
    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 200
    assert response.json()["checks"] == {"database": "ok", "redis": "disabled"}


async def test_trace_id_is_echoed(client):
    response = await client.get("/api/v1/health/live", headers={"X-Trace-Id": "trc_custom"})
    assert response.headers["X-Trace-Id"] == "trc_custom"


async def test_toggle_requires_authentication(client, registered):
    response = await client.post("/api/v1/reactions/toggle", json={"target_key": "review:r1"})
    assert response.status_code == 401
    error = response.json()["error"]
    assert error["code"] == "UNAUTHORIZED"
    assert error["trace_id"] == response.headers["X-Trace-Id"]


async def test_invalid_token_rejected(client, registered):
    response = await client.post(
        "/api/v1/reactions/toggle",
        json={"target_key": "review:r1"},
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert response.status_code == 401


async def test_toggle_and_summary(client, auth, registered):
    response = await client.post(
        "/api/v1/reactions/toggle", json={"target_key": "review:r1"}, headers=auth("u1")
    )
    assert response.status_code == 200
    assert response.json() == {"active": True, "count": 1}

    response = await client.get("/api/v1/reactions/review:r1", headers=auth("u1"))
    assert response.json() == {"target_key": "review:r1", "count": 1, "reacted": True}

    response = await client.get("/api/v1/reactions/review:r1", headers=auth("u2"))
    assert response.json()["reacted"] is False


async def test_toggle_error_codes(client, auth, registered):
    response = await client.post(
        "/api/v1/reactions/toggle", json={"target_key": "movie:m1"}, headers=auth("u1")
    )
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "INVALID_TARGET"

    response = await client.post(
        "/api/v1/reactions/toggle", json={"target_key": "review:nope"}, headers=auth("u1")
    )
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"

    response = await client.post(
        "/api/v1/reactions/toggle", json={"target": "review:r1"}, headers=auth("u1")
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_service_routes_require_role(client, auth):
    response = await client.put(
        "/api/v1/targets",
        json={"target_key": "review:r2", "owner_id": "u3"},
        headers=auth("u1"),
    )
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "PERMISSION_DENIED"


async def test_reaction_reaches_owner_feed(client, auth, app, registered):
    await client.post(
        "/api/v1/reactions/toggle", json={"target_key": "review:r1"}, headers=auth("u1")
    )
    await app.state.engine.outbox.drain()

    response = await client.get("/api/v1/notifications", headers=auth("u3"))
    assert response.status_code == 200
    feed = response.json()
    assert feed["unread_count"] == 1
    [item] = feed["items"]
    assert item["event_type"] == "NEW_REACTION"
    assert item["message"] == "Ana liked your review of Severance."

    response = await client.post(
        f"/api/v1/notifications/{item['notification_id']}/read", headers=auth("u3")
    )
    assert response.status_code == 204
    feed = (await client.get("/api/v1/notifications", headers=auth("u3"))).json()
    assert feed["unread_count"] == 0


async def test_events_hook_and_feed_operations(client, auth, app):
    for sender in ("u1", "u2"):
        response = await client.post(
            "/api/v1/events",
            json={"recipient_id": "u3", "event_type": "NEW_FOLLOWER", "sender_id": sender},
            headers=auth("follows-svc", SERVICE),
        )
        assert response.status_code == 202
        assert response.json()["intent_id"].startswith("intent_")
    await app.state.engine.outbox.drain()

    raw = (await client.get("/api/v1/notifications/raw", headers=auth("u3"))).json()
    assert len(raw) == 2

    response = await client.post("/api/v1/notifications/read-all", headers=auth("u3"))
    assert response.json() == {"count": 2}

    response = await client.delete(
        "/api/v1/notifications",
        params={"type": "NEW_FOLLOWER", "sender_id": "u1"},
        headers=auth("u3"),
    )
    assert response.json() == {"count": 1}

    remaining = (await client.get("/api/v1/notifications/raw", headers=auth("u3"))).json()
    response = await client.delete(
        f"/api/v1/notifications/{remaining[0]['notification_id']}", headers=auth("u4")
    )
    assert response.status_code == 403

    response = await client.post("/api/v1/notifications/cleanup", headers=auth("u3"))
    assert response.json() == {"count": 0}


async def test_preferences_roundtrip(client, auth):
    response = await client.put(
        "/api/v1/notifications/preferences",
        json={"event_type": "LIST_REACTION", "enabled": False},
        headers=auth("u2"),
    )
    assert response.status_code == 200
    assert response.json()["LIST_REACTION"] is False

    prefs = (await client.get("/api/v1/notifications/preferences", headers=auth("u2"))).json()
    assert prefs["LIST_REACTION"] is False
    assert prefs["NEW_FOLLOWER"] is True


async def test_target_deletion_cascade(client, auth, app, registered):
    await client.post(
        "/api/v1/reactions/toggle", json={"target_key": "review:r1"}, headers=auth("u1")
    )
    await app.state.engine.outbox.drain()

    response = await client.delete("/api/v1/targets/review:r1", headers=auth("reviews-svc", SERVICE))
    assert response.status_code == 200
    assert response.json()["removed"] == {"targets": 1, "notifications": 1}

    feed = (await client.get("/api/v1/notifications", headers=auth("u3"))).json()
    assert feed == {"items": [], "unread_count": 0}


async def test_events_reject_empty_keys(client, auth):
    for field in ("sender_id", "related_entity_key"):
        response = await client.post(
            "/api/v1/events",
            json={"recipient_id": "u3", "event_type": "NEW_COMMENT", field: ""},
            headers=auth("comments-svc", SERVICE),
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_user_purge_hook(client, auth, app):
    await client.post(
        "/api/v1/events",
        json={"recipient_id": "u3", "event_type": "NEW_FOLLOWER", "sender_id": "u1"},
        headers=auth("follows-svc", SERVICE),
    )
    await app.state.engine.outbox.drain()

    response = await client.delete("/api/v1/users/u3/notifications", headers=auth("u3"))
    assert response.status_code == 403

    response = await client.delete(
        "/api/v1/users/u3/notifications", headers=auth("accounts-svc", SERVICE)
    )
    assert response.status_code == 200
    assert response.json() == {"count": 1}
    feed = (await client.get("/api/v1/notifications", headers=auth("u3"))).json()
    assert feed == {"items": [], "unread_count": 0}
