"""SQLite database connection and schema management.

Provides connection management and schema initialization for the reflect
service. Table and column names mirror the hosted tables the web client reads.
"""

from __future__ import annotations

import sqlite3
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import structlog

from reflect.config.app_config import load_app_config

logger = structlog.get_logger(__name__)

# Current database location (module-level for simplicity in CLI context)
_db_path: Path | None = None


def _resolve_db_path() -> Path:
    if _db_path is not None:
        return _db_path
    return load_app_config().storage.db_path


def init_db(db_path: Path | None = None) -> None:
    """Initialize database with schema.

    Creates the database file and all required tables if they don't exist.

    Args:
        db_path: Path to database file. Defaults to the configured path.
    """
    global _db_path
    _db_path = db_path or load_app_config().storage.db_path

    _db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db() as conn:
        _create_schema(conn)

    logger.info("database.initialized", path=str(_db_path))


def reset_db_path() -> None:
    """Forget the initialized path so the configured one is used again."""
    global _db_path
    _db_path = None


@contextmanager
def get_db() -> Generator[sqlite3.Connection, None, None]:
    """Get database connection as context manager.

    Yields:
        SQLite connection with row factory set to sqlite3.Row

    Example:
        with get_db() as conn:
            rows = conn.execute("SELECT * FROM glossary_terms").fetchall()
    """
    db_path = _resolve_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")

    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def new_id() -> str:
    """Generate a short random row identifier."""
    return uuid.uuid4().hex[:12]


def _create_schema(conn: sqlite3.Connection) -> None:
    """Create database schema.

    Uses IF NOT EXISTS for idempotency.
    """
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS glossary_terms (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            term TEXT NOT NULL,
            definition TEXT NOT NULL,
            context TEXT,
            domain TEXT,
            category TEXT,
            source TEXT,
            proficiency_level REAL NOT NULL DEFAULT 1
                CHECK(proficiency_level BETWEEN 1 AND 5),
            confidence_score REAL NOT NULL DEFAULT 0.5,
            last_reviewed TEXT,
            next_review_date TEXT,
            review_count INTEGER NOT NULL DEFAULT 0,
            correct_count INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS certifications (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            cert_type TEXT NOT NULL,
            cert_number TEXT,
            credential_level TEXT,
            issue_date TEXT,
            expiration_date TEXT,
            ceu_hours_required REAL NOT NULL DEFAULT 0,
            ceu_hours_completed REAL NOT NULL DEFAULT 0,
            notes TEXT,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS ceu_completions (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            certification_id TEXT REFERENCES certifications(id) ON DELETE SET NULL,
            program_title TEXT NOT NULL,
            program_code TEXT,
            ceu_awarded REAL NOT NULL CHECK(ceu_awarded >= 0),
            category TEXT NOT NULL DEFAULT 'general',
            ps_subcategory TEXT,
            completed_at TEXT NOT NULL,
            certificate_number TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS reflection_entries (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            entry_kind TEXT NOT NULL,
            data TEXT NOT NULL DEFAULT '{}',
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS stress_reset_logs (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            tool_type TEXT NOT NULL,
            category TEXT NOT NULL DEFAULT 'mindfulness',
            duration_seconds INTEGER NOT NULL DEFAULT 0,
            stress_level_before INTEGER,
            stress_level_after INTEGER,
            effectiveness INTEGER CHECK(effectiveness IS NULL OR effectiveness BETWEEN 1 AND 5),
            skipped INTEGER NOT NULL DEFAULT 0,
            reason TEXT,
            notes TEXT,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS assignments (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            assignment_type TEXT NOT NULL,
            duration_minutes INTEGER NOT NULL DEFAULT 0,
            difficulty TEXT NOT NULL DEFAULT 'moderate'
                CHECK(difficulty IN ('easy', 'moderate', 'challenging', 'overwhelming')),
            emotion_after TEXT,
            completed INTEGER NOT NULL DEFAULT 1,
            occurred_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS emotion_logs (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            emotion TEXT NOT NULL,
            intensity INTEGER NOT NULL CHECK(intensity BETWEEN 1 AND 5),
            context TEXT NOT NULL DEFAULT '{}',
            logged_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS daily_activity (
            user_id TEXT NOT NULL,
            activity_date TEXT NOT NULL,
            activities TEXT NOT NULL DEFAULT '[]',
            updated_at TEXT NOT NULL,
            PRIMARY KEY (user_id, activity_date)
        );

        CREATE INDEX IF NOT EXISTS idx_glossary_user ON glossary_terms(user_id);
        CREATE INDEX IF NOT EXISTS idx_glossary_review ON glossary_terms(user_id, next_review_date);
        CREATE INDEX IF NOT EXISTS idx_certifications_user ON certifications(user_id);
        CREATE INDEX IF NOT EXISTS idx_ceu_completions_user ON ceu_completions(user_id);
        CREATE INDEX IF NOT EXISTS idx_reflections_user ON reflection_entries(user_id, created_at);
        CREATE INDEX IF NOT EXISTS idx_reset_logs_user ON stress_reset_logs(user_id, created_at);
        CREATE INDEX IF NOT EXISTS idx_assignments_user ON assignments(user_id, occurred_at);
        CREATE INDEX IF NOT EXISTS idx_emotion_logs_user ON emotion_logs(user_id, logged_at);
        """
    )
