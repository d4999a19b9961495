"""
Integration tests for API endpoints using the SQLite test database.
"""
import asyncio
from datetime import timedelta

import pytest
from starlette.websockets import WebSocketDisconnect

from sileme.main import app
from sileme.routers import ws as ws_router


class TestHealth:
    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        body = r.json()
        assert body["status"] == "ok"
        assert body["scheduler"] is False


class TestUsers:
    def test_create_and_me(self, client):
        r = client.post("/users", json={"username": "carol_9", "email": "carol@example.com"})
        assert r.status_code == 201
        user_id = r.json()["id"]
        me = client.get("/users/me", headers={"X-User-Id": str(user_id)}).json()
        assert me["username"] == "carol_9"
        assert me["stats"] == {"total": 0, "current": 0, "longest": 0, "last": None}

    def test_settings(self, client, auth):
        r = client.patch("/users/me/settings", json={"reminder_time": "07:45"}, headers=auth)
        assert r.status_code == 200
        assert r.json()["settings"]["reminder_time"] == "07:45"

    def test_contacts(self, client, auth):
        r = client.post(
            "/users/me/contacts",
            json={"name": "Mom", "phone": "555", "relationship": "family"},
            headers=auth,
        )
        assert r.status_code == 201
        contact_id = r.json()["id"]
        assert r.json()["relationship"] == "family"

        r = client.patch(f"/users/me/contacts/{contact_id}", json={"phone": "556"}, headers=auth)
        assert r.json()["phone"] == "556"
        assert len(client.get("/users/me/contacts", headers=auth).json()) == 1
        assert client.delete(f"/users/me/contacts/{contact_id}", headers=auth).status_code == 204

    def test_clear_data(self, client, auth):
        client.post("/checkins", json={}, headers=auth)
        r = client.delete("/users/me/data", headers=auth)
        assert r.json()["checkins"] == 1
        assert client.get("/stats", headers=auth).json()["total"] == 0


class TestCheckins:
    def test_full_flow(self, client, auth, clock, realtime_sink):
        r = client.post(
            "/checkins",
            json={
                "mood": "happy",
                "note": "first",
                "location": {"longitude": 121.47, "latitude": 31.23, "address": "Shanghai"},
                "weather": {"temperature": 12.5, "condition": "cloudy"},
                "tags": ["run"],
            },
            headers=auth,
        )
        assert r.status_code == 201
        body = r.json()
        assert body["stats"] == {"total": 1, "current": 1, "longest": 1, "last": "2026-03-10"}
        assert body["checkin"]["location"]["address"] == "Shanghai"
        assert body["checkin"]["weather"]["condition"] == "cloudy"
        assert len(realtime_sink.events("checkin_success")) == 1

        today = client.get("/checkins/today", headers=auth).json()
        assert today["checked_in"] is True

        checkin_id = body["checkin"]["id"]
        r = client.patch(f"/checkins/{checkin_id}", json={"mood": "very_good", "note": None}, headers=auth)
        assert r.status_code == 200
        assert r.json()["mood"] == "very_good"
        assert r.json()["note"] is None
        assert r.json()["tags"] == ["run"]

        clock.advance(days=1)
        assert client.get("/checkins/today", headers=auth).json()["checked_in"] is False
        r = client.post("/checkins", json={"mood": "neutral"}, headers=auth)
        assert r.json()["stats"]["current"] == 2

        listing = client.get("/checkins?order=asc", headers=auth).json()
        assert listing["total"] == 2
        assert [c["day"] for c in listing["items"]] == ["2026-03-10", "2026-03-11"]

        r = client.delete(f"/checkins/{checkin_id}", headers=auth)
        assert r.status_code == 200
        assert r.json()["total"] == 1

    def test_invalid_mood(self, client, auth):
        r = client.post("/checkins", json={"mood": "ecstatic"}, headers=auth)
        assert r.status_code == 422

    def test_other_users_checkin_hidden(self, client, make_user):
        owner, other = make_user(), make_user()
        checkin_id = client.post(
            "/checkins", json={}, headers={"X-User-Id": str(owner.id)}
        ).json()["checkin"]["id"]
        r = client.get(f"/checkins/{checkin_id}", headers={"X-User-Id": str(other.id)})
        assert r.status_code == 404


class TestNotifications:
    def test_instant_notification(self, client, auth, push_sink):
        r = client.post("/notifications", json={"title": "Hi", "message": "there"}, headers=auth)
        assert r.status_code == 201
        body = r.json()
        assert body["is_sent"] is True
        assert body["channels"] == ["push"]
        assert len(push_sink.events("new_notification")) == 1

    def test_scheduled_notification(self, client, auth, clock, push_sink):
        when = (clock.now() + timedelta(hours=1)).isoformat()
        r = client.post(
            "/notifications",
            json={"title": "Later", "message": "soon", "scheduled_for": when, "data": {"k": 1}},
            headers=auth,
        )
        body = r.json()
        assert body["is_scheduled"] is True
        assert body["is_sent"] is False
        assert body["data"] == {"k": 1}
        assert push_sink.messages == []

    def test_read_and_counts(self, client, auth):
        ids = [
            client.post("/notifications", json={"title": f"n{i}", "message": "m"}, headers=auth).json()["id"]
            for i in range(3)
        ]
        assert client.get("/notifications/unread-count", headers=auth).json() == {"unread": 3}

        first = client.post(f"/notifications/{ids[0]}/read", headers=auth).json()
        again = client.post(f"/notifications/{ids[0]}/read", headers=auth).json()
        assert first["read_at"] == again["read_at"]

        listing = client.get("/notifications?is_read=false", headers=auth).json()
        assert listing["total"] == 2
        assert listing["unread"] == 2

        assert client.post("/notifications/read-all", headers=auth).json() == {"count": 2}
        r = client.post("/notifications/bulk-delete", json={"is_read": True}, headers=auth)
        assert r.json() == {"count": 3}

    def test_reminder_endpoint(self, client, auth, clock):
        r = client.post(
            "/notifications/reminders",
            json={"scheduled_for": (clock.now() - timedelta(hours=1)).isoformat()},
            headers=auth,
        )
        assert r.status_code == 422

        r = client.post(
            "/notifications/reminders",
            json={"scheduled_for": (clock.now() + timedelta(hours=1)).isoformat()},
            headers=auth,
        )
        assert r.status_code == 201
        assert r.json()["category"] == "reminder"

    def test_stats_and_delete(self, client, auth):
        n = client.post("/notifications", json={"title": "a", "message": "b", "type": "warning"}, headers=auth).json()
        stats = client.get("/notifications/stats", headers=auth).json()
        assert stats["by_type"] == [{"type": "warning", "count": 1}]
        assert client.delete(f"/notifications/{n['id']}", headers=auth).status_code == 204
        assert client.get(f"/notifications/{n['id']}", headers=auth).status_code == 404


class TestStats:
    def test_stats_endpoints(self, client, auth):
        client.post("/checkins", json={"tags": ["run"]}, headers=auth)

        assert client.get("/stats", headers=auth).json()["current"] == 1

        ach = client.get("/stats/achievements", headers=auth).json()
        assert ach["summary"]["unlocked"] == 1
        assert ach["items"][0]["id"] == "first_checkin"

        overview = client.get("/stats/overview", headers=auth).json()
        assert overview["this_month"] == 1

        monthly = client.get("/stats/monthly?year=2026&month=3", headers=auth).json()
        assert monthly["checkin_days"] == 1

        assert client.get("/stats/monthly?year=2026&month=13", headers=auth).status_code == 422
        assert client.get("/stats/yearly", headers=auth).json()["year"] == 2026
        assert len(client.get("/stats/trends?days=14", headers=auth).json()["daily"]) == 14

        cal = client.get("/stats/calendar", headers=auth).json()
        assert cal["days"]["10"]["tags"] == ["run"]


class TestRealtime:
    def test_ping_and_receive_events(self, client, user):
        with client.websocket_connect(f"/ws?user_id={user.id}") as ws:
            ws.send_text("ping")
            assert ws.receive_text() == "pong"
            app.state.connections.publish(f"user_{user.id}", "hello", {"n": 1})
            assert ws.receive_json() == {"event": "hello", "data": {"n": 1}}

    def test_unknown_user_rejected(self, client):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/ws?user_id=999999") as ws:
                ws.receive_text()

    def test_user_lookup_runs_off_the_event_loop(self, client, user, monkeypatch):
        lookup = ws_router._is_active_user
        seen = []

        def recording_lookup(user_id):
            try:
                asyncio.get_running_loop()
                seen.append("loop")
            except RuntimeError:
                seen.append("worker")
            return lookup(user_id)

        monkeypatch.setattr(ws_router, "_is_active_user", recording_lookup)
        with client.websocket_connect(f"/ws?user_id={user.id}") as ws:
            ws.send_text("ping")
            assert ws.receive_text() == "pong"
        assert seen == ["worker"]
