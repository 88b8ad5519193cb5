"""Repository functions for glossary_terms table.

Provides CRUD operations for the personal glossary. Every query is scoped
by user_id as well as by term id.
"""

from __future__ import annotations

import sqlite3
from dataclasses import asdict, dataclass

import structlog

from reflect.db.database import get_db

logger = structlog.get_logger(__name__)


@dataclass
class GlossaryTerm:
    """Glossary term record from database."""

    id: str
    user_id: str
    term: str
    definition: str
    context: str | None = None
    domain: str | None = None
    category: str | None = None
    source: str | None = None
    proficiency_level: float = 1.0
    confidence_score: float = 0.5
    last_reviewed: str | None = None
    next_review_date: str | None = None
    review_count: int = 0
    correct_count: int = 0
    created_at: str = ""

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


_COLUMNS = (
    "id",
    "user_id",
    "term",
    "definition",
    "context",
    "domain",
    "category",
    "source",
    "proficiency_level",
    "confidence_score",
    "last_reviewed",
    "next_review_date",
    "review_count",
    "correct_count",
    "created_at",
)


def insert_term(term: GlossaryTerm) -> None:
    """Insert a new glossary term.

    Raises:
        sqlite3.IntegrityError: If the id already exists or a constraint fails
    """
    placeholders = ", ".join("?" for _ in _COLUMNS)
    with get_db() as conn:
        conn.execute(
            f"INSERT INTO glossary_terms ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
            tuple(getattr(term, col) for col in _COLUMNS),
        )

    logger.debug("glossary.inserted", term_id=term.id, user_id=term.user_id)


def get_term(user_id: str, term_id: str) -> GlossaryTerm | None:
    """Get a term by ID for a user.

    Returns:
        GlossaryTerm if found, None otherwise
    """
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM glossary_terms WHERE id = ? AND user_id = ?",
            (term_id, user_id),
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def list_terms(user_id: str) -> list[GlossaryTerm]:
    """Get all terms for a user, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM glossary_terms WHERE user_id = ? ORDER BY created_at DESC, rowid DESC",
            (user_id,),
        ).fetchall()

    return [_row_to_record(row) for row in rows]


def update_term(term: GlossaryTerm) -> None:
    """Persist review fields of a term."""
    with get_db() as conn:
        conn.execute(
            """
            UPDATE glossary_terms
            SET review_count = ?, correct_count = ?, proficiency_level = ?,
                confidence_score = ?, last_reviewed = ?, next_review_date = ?
            WHERE id = ? AND user_id = ?
            """,
            (
                term.review_count,
                term.correct_count,
                term.proficiency_level,
                term.confidence_score,
                term.last_reviewed,
                term.next_review_date,
                term.id,
                term.user_id,
            ),
        )

    logger.debug("glossary.updated", term_id=term.id)


def delete_term(user_id: str, term_id: str) -> bool:
    """Delete a term.

    Returns:
        True if a row was deleted, False if it did not exist
    """
    with get_db() as conn:
        cursor = conn.execute(
            "DELETE FROM glossary_terms WHERE id = ? AND user_id = ?",
            (term_id, user_id),
        )
        deleted = cursor.rowcount > 0

    logger.debug("glossary.deleted", term_id=term_id, deleted=deleted)
    return deleted


def _row_to_record(row: sqlite3.Row) -> GlossaryTerm:
    """Convert database row to GlossaryTerm."""
    return GlossaryTerm(**{col: row[col] for col in _COLUMNS})
