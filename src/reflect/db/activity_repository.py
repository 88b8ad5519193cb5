"""Repository functions for activity logs.

Covers the tables that feed insights and pattern detection:
stress_reset_logs, assignments, emotion_logs and daily_activity.
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone

import structlog

from reflect.db.database import get_db, new_id
from reflect.utils.validators import ValidationError, require, validate_intensity

logger = structlog.get_logger(__name__)

DIFFICULTIES = ("easy", "moderate", "challenging", "overwhelming")


@dataclass
class ResetLog:
    """stress_reset_logs row."""

    id: str
    user_id: str
    tool_type: str
    category: str
    duration_seconds: int
    created_at: str
    stress_level_before: int | None = None
    stress_level_after: int | None = None
    effectiveness: int | None = None
    skipped: bool = False
    reason: str | None = None
    notes: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class AssignmentLog:
    """assignments row."""

    id: str
    user_id: str
    assignment_type: str
    duration_minutes: int
    difficulty: str
    occurred_at: str
    emotion_after: str | None = None
    completed: bool = True

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class EmotionLog:
    """emotion_logs row."""

    id: str
    user_id: str
    emotion: str
    intensity: int
    logged_at: str
    context: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# RESET LOGS
# =============================================================================


def save_reset_log(
    user_id: str,
    tool_type: str,
    category: str,
    duration_seconds: int,
    stress_level_before: int | None = None,
    stress_level_after: int | None = None,
    effectiveness: int | None = None,
    skipped: bool = False,
    reason: str | None = None,
    notes: str | None = None,
    created_at: str | None = None,
) -> ResetLog:
    """Store a reset (completed or skipped)."""
    log = ResetLog(
        id=new_id(),
        user_id=user_id,
        tool_type=tool_type,
        category=category,
        duration_seconds=duration_seconds,
        created_at=created_at or _now(),
        stress_level_before=stress_level_before,
        stress_level_after=stress_level_after,
        effectiveness=effectiveness,
        skipped=skipped,
        reason=reason,
        notes=notes,
    )
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO stress_reset_logs (
                id, user_id, tool_type, category, duration_seconds,
                stress_level_before, stress_level_after, effectiveness,
                skipped, reason, notes, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                log.id,
                log.user_id,
                log.tool_type,
                log.category,
                log.duration_seconds,
                log.stress_level_before,
                log.stress_level_after,
                log.effectiveness,
                1 if log.skipped else 0,
                log.reason,
                log.notes,
                log.created_at,
            ),
        )

    logger.debug("reset_logs.inserted", log_id=log.id, tool_type=tool_type, skipped=skipped)
    return log


def list_reset_logs(user_id: str, since: str | None = None) -> list[ResetLog]:
    """Reset logs for a user, newest first."""
    query = "SELECT * FROM stress_reset_logs WHERE user_id = ?"
    params: list = [user_id]
    if since:
        query += " AND created_at >= ?"
        params.append(since)
    query += " ORDER BY created_at DESC"

    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()

    return [_row_to_reset_log(row) for row in rows]


def _row_to_reset_log(row: sqlite3.Row) -> ResetLog:
    return ResetLog(
        id=row["id"],
        user_id=row["user_id"],
        tool_type=row["tool_type"],
        category=row["category"],
        duration_seconds=row["duration_seconds"],
        created_at=row["created_at"],
        stress_level_before=row["stress_level_before"],
        stress_level_after=row["stress_level_after"],
        effectiveness=row["effectiveness"],
        skipped=bool(row["skipped"]),
        reason=row["reason"],
        notes=row["notes"],
    )


# =============================================================================
# ASSIGNMENTS
# =============================================================================


def save_assignment(
    user_id: str,
    assignment_type: str,
    duration_minutes: int,
    difficulty: str = "moderate",
    emotion_after: str | None = None,
    completed: bool = True,
    occurred_at: str | None = None,
) -> AssignmentLog:
    """Store an interpreting assignment.

    Raises:
        ValidationError: If difficulty is not one of DIFFICULTIES
    """
    if difficulty not in DIFFICULTIES:
        raise ValidationError("difficulty", f"Unknown difficulty '{difficulty}'")

    log = AssignmentLog(
        id=new_id(),
        user_id=user_id,
        assignment_type=assignment_type.strip().lower(),
        duration_minutes=duration_minutes,
        difficulty=difficulty,
        occurred_at=occurred_at or _now(),
        emotion_after=emotion_after,
        completed=completed,
    )
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO assignments (
                id, user_id, assignment_type, duration_minutes, difficulty,
                emotion_after, completed, occurred_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                log.id,
                log.user_id,
                log.assignment_type,
                log.duration_minutes,
                log.difficulty,
                log.emotion_after,
                1 if log.completed else 0,
                log.occurred_at,
            ),
        )

    logger.debug("assignments.inserted", assignment_id=log.id)
    return log


def list_assignments(user_id: str) -> list[AssignmentLog]:
    """Assignments for a user, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM assignments WHERE user_id = ? ORDER BY occurred_at DESC",
            (user_id,),
        ).fetchall()

    return [
        AssignmentLog(
            id=row["id"],
            user_id=row["user_id"],
            assignment_type=row["assignment_type"],
            duration_minutes=row["duration_minutes"],
            difficulty=row["difficulty"],
            occurred_at=row["occurred_at"],
            emotion_after=row["emotion_after"],
            completed=bool(row["completed"]),
        )
        for row in rows
    ]


# =============================================================================
# EMOTION LOGS
# =============================================================================


def save_emotion_log(
    user_id: str,
    emotion: str,
    intensity: int,
    context: dict | None = None,
    logged_at: str | None = None,
) -> EmotionLog:
    """Store an emotion check-in.

    Raises:
        ValidationError: If emotion is blank or intensity is not a whole number 1-5
    """
    emotion = (emotion or "").strip().lower()
    if not emotion:
        raise ValidationError("emotion", "Emotion is required")

    log = EmotionLog(
        id=new_id(),
        user_id=user_id,
        emotion=emotion,
        intensity=require(validate_intensity(intensity), "intensity"),
        logged_at=logged_at or _now(),
        context=context or {},
    )
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO emotion_logs (id, user_id, emotion, intensity, context, logged_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                log.id,
                log.user_id,
                log.emotion,
                log.intensity,
                json.dumps(log.context),
                log.logged_at,
            ),
        )

    logger.debug("emotion_logs.inserted", log_id=log.id, emotion=log.emotion)
    return log


def list_emotion_logs(user_id: str) -> list[EmotionLog]:
    """Emotion check-ins for a user, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM emotion_logs WHERE user_id = ? ORDER BY logged_at DESC",
            (user_id,),
        ).fetchall()

    return [
        EmotionLog(
            id=row["id"],
            user_id=row["user_id"],
            emotion=row["emotion"],
            intensity=row["intensity"],
            logged_at=row["logged_at"],
            context=json.loads(row["context"] or "{}"),
        )
        for row in rows
    ]


# =============================================================================
# DAILY ACTIVITY
# =============================================================================


def record_activity(user_id: str, day: date, activity: str) -> list[str]:
    """Mark an activity as done on a day (idempotent).

    Returns:
        Activities recorded for that day
    """
    day_str = day.isoformat()
    with get_db() as conn:
        row = conn.execute(
            "SELECT activities FROM daily_activity WHERE user_id = ? AND activity_date = ?",
            (user_id, day_str),
        ).fetchone()

        activities: list[str] = json.loads(row["activities"]) if row else []
        if activity not in activities:
            activities.append(activity)

        conn.execute(
            """
            INSERT INTO daily_activity (user_id, activity_date, activities, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(user_id, activity_date)
            DO UPDATE SET activities = excluded.activities, updated_at = excluded.updated_at
            """,
            (user_id, day_str, json.dumps(activities), _now()),
        )

    return activities


def list_activity_dates(user_id: str) -> list[date]:
    """Days with any recorded activity, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT activity_date FROM daily_activity WHERE user_id = ? ORDER BY activity_date DESC",
            (user_id,),
        ).fetchall()

    return [date.fromisoformat(row["activity_date"]) for row in rows]
