"""Repository functions for certifications and ceu_completions tables."""

from __future__ import annotations

import sqlite3
from dataclasses import asdict, dataclass
from datetime import datetime, timezone

import structlog

from reflect.db.database import get_db, new_id

logger = structlog.get_logger(__name__)


class CertificationNotFoundError(Exception):
    """Raised when a certification does not exist for the user."""

    def __init__(self, certification_id: str):
        self.certification_id = certification_id
        super().__init__(f"Certification '{certification_id}' not found")


@dataclass
class Certification:
    """Certification record from database."""

    id: str
    user_id: str
    cert_type: str
    created_at: str
    cert_number: str | None = None
    credential_level: str | None = None
    issue_date: str | None = None
    expiration_date: str | None = None
    ceu_hours_required: float = 0.0
    ceu_hours_completed: float = 0.0
    notes: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CEUCompletion:
    """CEU completion record from database."""

    id: str
    user_id: str
    program_title: str
    ceu_awarded: float
    completed_at: str
    certificate_number: str
    category: str = "general"
    program_code: str | None = None
    ps_subcategory: str | None = None
    certification_id: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


# =============================================================================
# CERTIFICATIONS
# =============================================================================


def add_certification(
    user_id: str,
    cert_type: str,
    cert_number: str | None = None,
    credential_level: str | None = None,
    issue_date: str | None = None,
    expiration_date: str | None = None,
    ceu_hours_required: float = 0.0,
    ceu_hours_completed: float = 0.0,
    notes: str | None = None,
) -> Certification:
    """Store a certification."""
    cert = Certification(
        id=new_id(),
        user_id=user_id,
        cert_type=cert_type.strip(),
        created_at=datetime.now(timezone.utc).isoformat(),
        cert_number=cert_number,
        credential_level=credential_level,
        issue_date=issue_date,
        expiration_date=expiration_date,
        ceu_hours_required=ceu_hours_required,
        ceu_hours_completed=ceu_hours_completed,
        notes=notes,
    )

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO certifications (
                id, user_id, cert_type, cert_number, credential_level,
                issue_date, expiration_date, ceu_hours_required,
                ceu_hours_completed, notes, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                cert.id,
                cert.user_id,
                cert.cert_type,
                cert.cert_number,
                cert.credential_level,
                cert.issue_date,
                cert.expiration_date,
                cert.ceu_hours_required,
                cert.ceu_hours_completed,
                cert.notes,
                cert.created_at,
            ),
        )

    logger.info("certifications.added", user_id=user_id, certification_id=cert.id)
    return cert


def get_certification(user_id: str, certification_id: str) -> Certification | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM certifications WHERE id = ? AND user_id = ?",
            (certification_id, user_id),
        ).fetchone()

    return _row_to_certification(row) if row else None


def list_certifications(user_id: str) -> list[Certification]:
    """Certifications for a user, soonest expiration first (undated last)."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT * FROM certifications
            WHERE user_id = ?
            ORDER BY expiration_date IS NULL, expiration_date ASC, created_at DESC
            """,
            (user_id,),
        ).fetchall()

    return [_row_to_certification(row) for row in rows]


def delete_certification(user_id: str, certification_id: str) -> bool:
    """Delete a certification. Returns False if nothing was deleted."""
    with get_db() as conn:
        cursor = conn.execute(
            "DELETE FROM certifications WHERE id = ? AND user_id = ?",
            (certification_id, user_id),
        )
        deleted = cursor.rowcount > 0

    if deleted:
        logger.info("certifications.deleted", user_id=user_id, certification_id=certification_id)
    return deleted


def _row_to_certification(row: sqlite3.Row) -> Certification:
    return Certification(
        id=row["id"],
        user_id=row["user_id"],
        cert_type=row["cert_type"],
        created_at=row["created_at"],
        cert_number=row["cert_number"],
        credential_level=row["credential_level"],
        issue_date=row["issue_date"],
        expiration_date=row["expiration_date"],
        ceu_hours_required=row["ceu_hours_required"],
        ceu_hours_completed=row["ceu_hours_completed"],
        notes=row["notes"],
    )


# =============================================================================
# CEU COMPLETIONS
# =============================================================================


def add_completion(
    user_id: str,
    program_title: str,
    ceu_awarded: float,
    category: str = "general",
    program_code: str | None = None,
    ps_subcategory: str | None = None,
    certification_id: str | None = None,
    completed_at: str | None = None,
) -> CEUCompletion:
    """Store a CEU completion.

    When certification_id is given, the awarded CEUs are added to that
    certification's ceu_hours_completed in the same transaction.

    Raises:
        CertificationNotFoundError: If certification_id does not belong to the user
    """
    completion_id = new_id()
    completion = CEUCompletion(
        id=completion_id,
        user_id=user_id,
        program_title=program_title.strip(),
        ceu_awarded=ceu_awarded,
        completed_at=completed_at or datetime.now(timezone.utc).isoformat(),
        certificate_number=f"IR-{completion_id.upper()}",
        category=category,
        program_code=program_code,
        ps_subcategory=ps_subcategory,
        certification_id=certification_id,
    )

    with get_db() as conn:
        if certification_id is not None:
            cursor = conn.execute(
                """
                UPDATE certifications
                SET ceu_hours_completed = ceu_hours_completed + ?
                WHERE id = ? AND user_id = ?
                """,
                (ceu_awarded, certification_id, user_id),
            )
            if cursor.rowcount == 0:
                raise CertificationNotFoundError(certification_id)

        conn.execute(
            """
            INSERT INTO ceu_completions (
                id, user_id, certification_id, program_title, program_code,
                ceu_awarded, category, ps_subcategory, completed_at,
                certificate_number
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                completion.id,
                completion.user_id,
                completion.certification_id,
                completion.program_title,
                completion.program_code,
                completion.ceu_awarded,
                completion.category,
                completion.ps_subcategory,
                completion.completed_at,
                completion.certificate_number,
            ),
        )

    logger.info(
        "ceu_completions.added",
        user_id=user_id,
        completion_id=completion.id,
        ceu_awarded=ceu_awarded,
    )
    return completion


def list_completions(user_id: str) -> list[CEUCompletion]:
    """CEU completions for a user, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM ceu_completions WHERE user_id = ? ORDER BY completed_at DESC",
            (user_id,),
        ).fetchall()

    return [
        CEUCompletion(
            id=row["id"],
            user_id=row["user_id"],
            program_title=row["program_title"],
            ceu_awarded=row["ceu_awarded"],
            completed_at=row["completed_at"],
            certificate_number=row["certificate_number"],
            category=row["category"],
            program_code=row["program_code"],
            ps_subcategory=row["ps_subcategory"],
            certification_id=row["certification_id"],
        )
        for row in rows
    ]
