"""Tests for CEU tracking."""

from datetime import date

import pytest

from reflect.core.ceu_tracker import (
    ceu_progress,
    ceu_summary,
    certification_view,
    days_until_expiration,
    expiration_status,
    is_active,
)
from reflect.db.certifications_repository import CEUCompletion, Certification

TODAY = date(2024, 3, 10)


def cert(expiration_date=None, required=8.0, completed=0.0) -> Certification:
    return Certification(
        id="c1",
        user_id="u",
        cert_type="NIC",
        created_at="2024-01-01T00:00:00+00:00",
        expiration_date=expiration_date,
        ceu_hours_required=required,
        ceu_hours_completed=completed,
    )


def completion(ceus: float) -> CEUCompletion:
    return CEUCompletion(
        id="x",
        user_id="u",
        program_title="Ethics",
        ceu_awarded=ceus,
        category="PS",
        completed_at="2024-02-01T00:00:00+00:00",
        certificate_number="IR-X",
    )


class TestExpiration:
    """Tests for expiration bucketing."""

    def test_days_until_expiration(self):
        assert days_until_expiration("2024-03-20", TODAY) == 10
        assert days_until_expiration("2024-03-01T00:00:00+00:00", TODAY) == -9
        assert days_until_expiration(None, TODAY) is None

    @pytest.mark.parametrize(
        "days,level",
        [(None, "none"), (-1, "expired"), (0, "urgent"), (89, "urgent"), (90, "warning"), (179, "warning"), (180, "ok")],
    )
    def test_status_levels(self, days, level):
        assert expiration_status(days).level == level

    def test_status_label(self):
        assert expiration_status(45).label == "45 days remaining"
        assert expiration_status(-3).label == "Expired"

    def test_is_active(self):
        assert is_active(cert("2024-03-10"), TODAY) is True
        assert is_active(cert("2024-03-09"), TODAY) is False
        assert is_active(cert(None), TODAY) is True


class TestProgress:
    """Tests for CEU progress and summary."""

    def test_progress_capped(self):
        assert ceu_progress(cert(completed=4.0)) == 50.0
        assert ceu_progress(cert(completed=12.0)) == 100.0
        assert ceu_progress(cert(required=0.0, completed=3.0)) == 0.0

    def test_summary(self):
        certs = [cert("2025-01-01"), cert("2023-01-01")]
        summary = ceu_summary(certs, [completion(1.5), completion(2.5)], TODAY, required_per_cycle=8.0)
        assert summary.to_dict() == {
            "total_ceus": 4.0,
            "completions": 2,
            "active_certifications": 1,
            "required_per_cycle": 8.0,
        }

    def test_summary_uses_config_default(self):
        assert ceu_summary([], [], TODAY).required_per_cycle == 8.0

    def test_certification_view(self):
        view = certification_view(cert("2024-05-01", completed=2.0), TODAY)
        assert view["days_until_expiration"] == 52
        assert view["status"] == {"level": "urgent", "label": "52 days remaining"}
        assert view["ceu_progress"] == 25.0
        assert view["cert_type"] == "NIC"
