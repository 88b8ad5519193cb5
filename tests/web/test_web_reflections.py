"""Tests for reflection, insights and validation endpoints."""

from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from reflect.db.activity_repository import record_activity
from reflect.web.api import create_app

HEADERS = {"X-User-Id": "user-1"}


@pytest.fixture
def client():
    return TestClient(create_app())


class TestReflections:
    """Tests for /api/reflections."""

    def test_create_and_list(self, client):
        response = client.post(
            "/api/reflections",
            json={"entry_kind": "post-assignment", "data": {"went_well": " steady pace "}},
            headers=HEADERS,
        )
        assert response.status_code == 201
        assert response.json()["data"] == {"went_well": "steady pace"}

        data = client.get("/api/reflections", params={"period": "week"}, headers=HEADERS).json()
        assert data["count"] == 1

    def test_empty_answers_is_400(self, client):
        response = client.post(
            "/api/reflections", json={"entry_kind": "daily", "data": {}}, headers=HEADERS
        )
        assert response.status_code == 400

    def test_script_is_400(self, client):
        response = client.post(
            "/api/reflections",
            json={"entry_kind": "daily", "data": {"note": "<script>x</script>"}},
            headers=HEADERS,
        )
        assert response.status_code == 400

    def test_nested_script_is_400(self, client):
        response = client.post(
            "/api/reflections",
            json={"entry_kind": "journal", "data": {"notes": ["<script>x</script>"]}},
            headers=HEADERS,
        )
        assert response.status_code == 400
        assert client.get("/api/reflections", headers=HEADERS).json()["count"] == 0

    def test_bad_period_is_400(self, client):
        response = client.get("/api/reflections", params={"period": "year"}, headers=HEADERS)
        assert response.status_code == 400

    def test_stats(self, client):
        for kind in ("daily", "daily", "reset"):
            client.post(
                "/api/reflections", json={"entry_kind": kind, "data": {"note": "ok"}}, headers=HEADERS
            )
        stats = client.get("/api/reflections/stats", headers=HEADERS).json()
        assert stats["total"] == 3
        assert stats["weekly"] == 3
        assert stats["streak_days"] == 1
        assert stats["top_kinds"][0] == {"kind": "daily", "count": 2}


class TestInsights:
    """Tests for /api/insights."""

    def test_log_emotion_and_assignment(self, client):
        response = client.post(
            "/api/insights/emotions", json={"emotion": "stressed", "intensity": 4}, headers=HEADERS
        )
        assert response.status_code == 201

        response = client.post(
            "/api/insights/assignments",
            json={"assignment_type": "medical", "duration_minutes": 60, "difficulty": "challenging"},
            headers=HEADERS,
        )
        assert response.status_code == 201

        summary = client.get("/api/insights/summary", headers=HEADERS).json()
        assert summary["emotions"]["counts"] == {"stressed": 1}
        assert summary["assignments"]["total_minutes"] == 60
        assert summary["resets"]["completed"] == 0
        assert summary["reflections"]["total"] == 0

    def test_bad_intensity_is_400(self, client):
        response = client.post(
            "/api/insights/emotions", json={"emotion": "calm", "intensity": 9}, headers=HEADERS
        )
        assert response.status_code == 400

    def test_bad_difficulty_is_400(self, client):
        response = client.post(
            "/api/insights/assignments",
            json={"assignment_type": "legal", "duration_minutes": 30, "difficulty": "brutal"},
            headers=HEADERS,
        )
        assert response.status_code == 400

    def test_activity_streak(self, client):
        client.post("/api/reflections", json={"entry_kind": "daily", "data": {"n": "ok"}}, headers=HEADERS)
        summary = client.get("/api/insights/summary", headers=HEADERS).json()
        assert summary["activity_streak_days"] == 1

    def test_nudges_empty_and_dismiss_unknown(self, client):
        data = client.get("/api/insights/nudges", headers=HEADERS).json()
        assert data == {"nudges": [], "new": 0, "recommendations": []}
        assert client.delete("/api/insights/nudges/nope", headers=HEADERS).status_code == 404

    def test_streak_nudge_and_dismiss(self, client):
        today = date.today()
        for offset in range(7):
            record_activity("user-1", today - timedelta(days=offset), "reflection")

        data = client.get("/api/insights/nudges", headers=HEADERS).json()
        assert data["new"] == 1
        nudge = data["nudges"][0]
        assert nudge["rule_id"] == "wellness-streak"
        assert nudge["title"] == "7 Day Streak!"

        # Already-active nudges are not emitted again
        assert client.get("/api/insights/nudges", headers=HEADERS).json()["new"] == 0

        assert client.delete(f"/api/insights/nudges/{nudge['id']}", headers=HEADERS).status_code == 204
        assert client.delete(f"/api/insights/nudges/{nudge['id']}", headers=HEADERS).status_code == 404

        data = client.get("/api/insights/nudges", headers=HEADERS).json()
        assert data["nudges"] == []
        assert data["new"] == 0


class TestValidate:
    """Tests for /api/validate/{field}."""

    def test_valid_email(self, client):
        data = client.post("/api/validate/email", json={"value": " a@b.co "}).json()
        assert data == {"field": "email", "valid": True, "error": None, "value": "a@b.co", "strength": None}

    def test_password_value_not_echoed(self, client):
        data = client.post("/api/validate/password", json={"value": "Str0ng!Horse#9"}).json()
        assert data["valid"] is True
        assert data["strength"] == "strong"
        assert data["value"] is None

    def test_invalid_reflection(self, client):
        data = client.post("/api/validate/reflection", json={"value": "   "}).json()
        assert data["valid"] is False
        assert data["error"] == "Reflection cannot be empty"

    def test_unknown_field(self, client):
        assert client.post("/api/validate/zipcode", json={"value": "x"}).status_code == 404
