"""Application configuration loader.

Loads centralized configuration from data/config/app_config_v1.yaml,
falling back to built-in defaults when the file is missing.

Environment overrides:
- REFLECT_DB_PATH: SQLite database file
- REFLECT_DATA_DIR: base directory for state files and audit reports

Usage:
    from reflect.config.app_config import load_app_config

    config = load_app_config()
    db_path = config.storage.db_path
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
CONFIG_FILE = Path("data/config/app_config_v1.yaml")


@dataclass
class StorageConfig:
    """Where persistent data lives."""

    db_path: Path = Path("db/reflect.db")
    data_dir: Path = Path("data")

    @property
    def state_dir(self) -> Path:
        """Directory for JSON state files (preferences, history)."""
        return self.data_dir / "state"


@dataclass
class ReviewConfig:
    """Glossary spaced-repetition settings."""

    min_proficiency: float = 1.0
    max_proficiency: float = 5.0
    proficiency_step: float = 0.5
    mastered_threshold: float = 4.0
    initial_confidence: float = 0.5


@dataclass
class TimerConfig:
    """Reset session timer settings."""

    tick_interval_seconds: float = 1.0
    history_limit: int = 20


@dataclass
class AuditConfig:
    """Developer audit tool settings."""

    default_url: str = "http://localhost:5173/"
    retries: int = 3
    retry_delay_seconds: float = 1.0
    timeout_seconds: float = 10.0
    reports_dir: Path = Path("audit-results")


@dataclass
class AppConfig:
    """Application-wide configuration."""

    storage: StorageConfig = field(default_factory=StorageConfig)
    review: ReviewConfig = field(default_factory=ReviewConfig)
    timer: TimerConfig = field(default_factory=TimerConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)
    ceu_required_per_cycle: float = 8.0


# Module-level cache
_cached_config: AppConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "storage": {
            "db_path": "db/reflect.db",
            "data_dir": "data",
        },
        "review": {
            "min_proficiency": 1.0,
            "max_proficiency": 5.0,
            "proficiency_step": 0.5,
            "mastered_threshold": 4.0,
            "initial_confidence": 0.5,
        },
        "timer": {
            "tick_interval_seconds": 1.0,
            "history_limit": 20,
        },
        "audit": {
            "default_url": "http://localhost:5173/",
            "retries": 3,
            "retry_delay_seconds": 1.0,
            "timeout_seconds": 10.0,
            "reports_dir": "audit-results",
        },
        "ceu": {
            "required_per_cycle": 8.0,
        },
    }


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse configuration dictionary into AppConfig object."""
    storage_data = data.get("storage", {})
    storage = StorageConfig(
        db_path=Path(storage_data.get("db_path", "db/reflect.db")),
        data_dir=Path(storage_data.get("data_dir", "data")),
    )

    review_data = data.get("review", {})
    review = ReviewConfig(
        min_proficiency=float(review_data.get("min_proficiency", 1.0)),
        max_proficiency=float(review_data.get("max_proficiency", 5.0)),
        proficiency_step=float(review_data.get("proficiency_step", 0.5)),
        mastered_threshold=float(review_data.get("mastered_threshold", 4.0)),
        initial_confidence=float(review_data.get("initial_confidence", 0.5)),
    )

    timer_data = data.get("timer", {})
    timer = TimerConfig(
        tick_interval_seconds=float(timer_data.get("tick_interval_seconds", 1.0)),
        history_limit=int(timer_data.get("history_limit", 20)),
    )

    audit_data = data.get("audit", {})
    audit = AuditConfig(
        default_url=audit_data.get("default_url", "http://localhost:5173/"),
        retries=int(audit_data.get("retries", 3)),
        retry_delay_seconds=float(audit_data.get("retry_delay_seconds", 1.0)),
        timeout_seconds=float(audit_data.get("timeout_seconds", 10.0)),
        reports_dir=Path(audit_data.get("reports_dir", "audit-results")),
    )

    ceu_data = data.get("ceu", {})

    return AppConfig(
        storage=storage,
        review=review,
        timer=timer,
        audit=audit,
        ceu_required_per_cycle=float(ceu_data.get("required_per_cycle", 8.0)),
    )


def _apply_env_overrides(config: AppConfig) -> AppConfig:
    """Apply REFLECT_* environment variables on top of file config."""
    db_path = os.environ.get("REFLECT_DB_PATH")
    if db_path:
        config.storage.db_path = Path(db_path)

    data_dir = os.environ.get("REFLECT_DATA_DIR")
    if data_dir:
        config.storage.data_dir = Path(data_dir)

    return config


def load_app_config(force_reload: bool = False) -> AppConfig:
    """Load application config.

    Args:
        force_reload: If True, ignore cached config and reload from file.

    Returns:
        AppConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    data: dict[str, Any]

    if CONFIG_FILE.exists():
        logger.debug("loading_app_config", source=str(CONFIG_FILE))
        try:
            data = yaml.safe_load(CONFIG_FILE.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            logger.error("invalid_app_config", source=str(CONFIG_FILE), error=str(e))
            data = _get_defaults()
    else:
        logger.info("using_default_config")
        data = _get_defaults()

    _cached_config = _apply_env_overrides(_parse_config(data))
    return _cached_config


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None
