"""Certification expiration and CEU progress calculations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from reflect.config.app_config import load_app_config
from reflect.db.certifications_repository import CEUCompletion, Certification

URGENT_DAYS = 90
WARNING_DAYS = 180


@dataclass
class ExpirationStatus:
    level: str  # none | expired | urgent | warning | ok
    label: str

    def to_dict(self) -> dict[str, str]:
        return {"level": self.level, "label": self.label}


@dataclass
class CEUSummary:
    total_ceus: float
    completions: int
    active_certifications: int
    required_per_cycle: float

    def to_dict(self) -> dict:
        return {
            "total_ceus": self.total_ceus,
            "completions": self.completions,
            "active_certifications": self.active_certifications,
            "required_per_cycle": self.required_per_cycle,
        }


def days_until_expiration(expiration_date: str | None, today: date) -> int | None:
    """Whole days until the expiration date (negative once past)."""
    if not expiration_date:
        return None
    expires = date.fromisoformat(expiration_date[:10])
    return (expires - today).days


def expiration_status(days: int | None) -> ExpirationStatus:
    if days is None:
        return ExpirationStatus("none", "No expiration set")
    if days < 0:
        return ExpirationStatus("expired", "Expired")
    label = f"{days} days remaining"
    if days < URGENT_DAYS:
        return ExpirationStatus("urgent", label)
    if days < WARNING_DAYS:
        return ExpirationStatus("warning", label)
    return ExpirationStatus("ok", label)


def ceu_progress(cert: Certification) -> float:
    """Percent of required CEUs completed, capped at 100."""
    if cert.ceu_hours_required <= 0:
        return 0.0
    return min(100.0, cert.ceu_hours_completed / cert.ceu_hours_required * 100)


def is_active(cert: Certification, today: date) -> bool:
    days = days_until_expiration(cert.expiration_date, today)
    return days is None or days >= 0


def ceu_summary(
    certs: list[Certification],
    completions: list[CEUCompletion],
    today: date,
    required_per_cycle: float | None = None,
) -> CEUSummary:
    if required_per_cycle is None:
        required_per_cycle = load_app_config().ceu_required_per_cycle
    return CEUSummary(
        total_ceus=round(sum(c.ceu_awarded for c in completions), 1),
        completions=len(completions),
        active_certifications=sum(1 for c in certs if is_active(c, today)),
        required_per_cycle=required_per_cycle,
    )


def certification_view(cert: Certification, today: date) -> dict:
    """Certification dict with computed expiration/progress fields."""
    days = days_until_expiration(cert.expiration_date, today)
    data = cert.to_dict()
    data["days_until_expiration"] = days
    data["status"] = expiration_status(days).to_dict()
    data["ceu_progress"] = round(ceu_progress(cert), 1)
    return data
