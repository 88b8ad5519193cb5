"""Tests for certification and CEU endpoints."""

from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from reflect.web.api import create_app

HEADERS = {"X-User-Id": "user-1"}


@pytest.fixture
def client():
    return TestClient(create_app())


class TestCertifications:
    """Tests for /api/certifications."""

    def test_create_with_status(self, client):
        expires = (date.today() + timedelta(days=30)).isoformat()
        response = client.post(
            "/api/certifications",
            json={"cert_type": "NIC", "expiration_date": expires},
            headers=HEADERS,
        )
        assert response.status_code == 201
        data = response.json()
        assert data["days_until_expiration"] == 30
        assert data["status"] == {"level": "urgent", "label": "30 days remaining"}
        assert data["ceu_hours_required"] == 8.0

    def test_invalid_date_is_422(self, client):
        response = client.post(
            "/api/certifications",
            json={"cert_type": "NIC", "expiration_date": "someday"},
            headers=HEADERS,
        )
        assert response.status_code == 422

    def test_list_and_delete(self, client):
        cert_id = client.post(
            "/api/certifications", json={"cert_type": "NIC"}, headers=HEADERS
        ).json()["id"]
        data = client.get("/api/certifications", headers=HEADERS).json()
        assert data["count"] == 1
        assert data["certifications"][0]["status"]["level"] == "none"

        assert client.delete(f"/api/certifications/{cert_id}", headers=HEADERS).status_code == 204
        assert client.delete(f"/api/certifications/{cert_id}", headers=HEADERS).status_code == 404


class TestCompletions:
    """Tests for /api/certifications/completions and /summary."""

    def test_completion_credits_certification(self, client):
        cert_id = client.post(
            "/api/certifications", json={"cert_type": "NIC"}, headers=HEADERS
        ).json()["id"]

        response = client.post(
            "/api/certifications/completions",
            json={"program_title": "Vicarious Trauma", "ceu_awarded": 2.0, "certification_id": cert_id},
            headers=HEADERS,
        )
        assert response.status_code == 201
        assert response.json()["certificate_number"].startswith("IR-")

        cert = client.get("/api/certifications", headers=HEADERS).json()["certifications"][0]
        assert cert["ceu_hours_completed"] == 2.0
        assert cert["ceu_progress"] == 25.0

        summary = client.get("/api/certifications/summary", headers=HEADERS).json()
        assert summary["total_ceus"] == 2.0
        assert summary["completions"] == 1
        assert summary["active_certifications"] == 1

        listed = client.get("/api/certifications/completions", headers=HEADERS).json()
        assert listed["count"] == 1

    def test_unknown_certification_is_404(self, client):
        response = client.post(
            "/api/certifications/completions",
            json={"program_title": "Ethics", "ceu_awarded": 1.0, "certification_id": "missing"},
            headers=HEADERS,
        )
        assert response.status_code == 404

    def test_negative_ceus_is_422(self, client):
        response = client.post(
            "/api/certifications/completions",
            json={"program_title": "Ethics", "ceu_awarded": -1},
            headers=HEADERS,
        )
        assert response.status_code == 422
