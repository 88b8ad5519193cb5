"""Repository functions for reflection_entries table.

Reflection answers are stored as a JSON blob keyed by question. String
answers are validated and trimmed before they are written.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any

import structlog

from reflect.db.activity_repository import record_activity
from reflect.db.database import get_db, new_id
from reflect.utils.validators import ValidationError, require, validate_reflection

logger = structlog.get_logger(__name__)

PERIOD_DAYS = {
    "week": 7,
    "month": 30,
    "90days": 90,
}


@dataclass
class ReflectionEntry:
    """reflection_entries row."""

    id: str
    user_id: str
    entry_kind: str
    created_at: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "entry_kind": self.entry_kind,
            "created_at": self.created_at,
            "data": self.data,
        }


_BLANK = object()


def _clean_value(value: Any, field_name: str) -> Any:
    """Validate strings at any depth; blank strings come back as _BLANK."""
    if isinstance(value, str):
        if not value.strip():
            return _BLANK
        return require(validate_reflection(value), field_name)
    if isinstance(value, list):
        items = [_clean_value(item, field_name) for item in value]
        return [item for item in items if item is not _BLANK]
    if isinstance(value, dict):
        nested = {k: _clean_value(v, field_name) for k, v in value.items()}
        return {k: v for k, v in nested.items() if v is not _BLANK}
    return value


def _clean_answers(data: dict[str, Any]) -> dict[str, Any]:
    """Validate free-text answers, including text nested in lists and objects."""
    cleaned: dict[str, Any] = {}
    for key, value in data.items():
        value = _clean_value(value, key)
        if value is not _BLANK:
            cleaned[key] = value
    return cleaned


def save_reflection(
    user_id: str,
    entry_kind: str,
    data: dict[str, Any],
    created_at: datetime | None = None,
) -> ReflectionEntry:
    """Store a reflection and mark today's activity.

    Raises:
        ValidationError: If entry_kind is blank, there are no answers, or a
            text answer fails validation
    """
    kind = (entry_kind or "").strip()
    if not kind:
        raise ValidationError("entry_kind", "Reflection kind is required")

    cleaned = _clean_answers(data)
    if not cleaned:
        raise ValidationError("data", "Reflection has no answers")

    created = created_at or datetime.now(timezone.utc)
    entry = ReflectionEntry(
        id=new_id(),
        user_id=user_id,
        entry_kind=kind,
        created_at=created.isoformat(),
        data=cleaned,
    )

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO reflection_entries (id, user_id, entry_kind, data, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (entry.id, entry.user_id, entry.entry_kind, json.dumps(entry.data), entry.created_at),
        )

    record_activity(user_id, created.date(), "reflection")

    logger.info("reflections.saved", user_id=user_id, entry_id=entry.id, entry_kind=kind)
    return entry


def list_reflections(
    user_id: str,
    period: str | None = None,
    limit: int | None = None,
    now: datetime | None = None,
) -> list[ReflectionEntry]:
    """Reflections for a user, newest first.

    Args:
        period: "week", "month" or "90days" to restrict by age
        limit: Maximum number of entries
        now: Reference time for the period (defaults to current UTC time)

    Raises:
        ValueError: If period is not recognized
    """
    query = "SELECT * FROM reflection_entries WHERE user_id = ?"
    params: list[Any] = [user_id]

    if period is not None:
        if period not in PERIOD_DAYS:
            raise ValueError(f"Unknown period '{period}'")
        start = (now or datetime.now(timezone.utc)) - timedelta(days=PERIOD_DAYS[period])
        query += " AND created_at >= ?"
        params.append(start.isoformat())

    query += " ORDER BY created_at DESC"
    if limit is not None:
        query += " LIMIT ?"
        params.append(limit)

    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()

    return [
        ReflectionEntry(
            id=row["id"],
            user_id=row["user_id"],
            entry_kind=row["entry_kind"],
            created_at=row["created_at"],
            data=json.loads(row["data"] or "{}"),
        )
        for row in rows
    ]


def reflection_days(user_id: str) -> list[date]:
    """Distinct days with reflections, newest first."""
    entries = list_reflections(user_id)
    seen: list[date] = []
    for entry in entries:
        day = datetime.fromisoformat(entry.created_at).date()
        if day not in seen:
            seen.append(day)
    return seen
