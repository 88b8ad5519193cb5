"""Analytics aggregates for the growth-insights views.

All functions are pure: callers pass rows loaded from the repositories and
the reference time.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any

from reflect.db.activity_repository import DIFFICULTIES, AssignmentLog, EmotionLog, ResetLog
from reflect.db.reflections_repository import ReflectionEntry


@dataclass
class ReflectionStats:
    total: int
    weekly: int
    monthly: int
    streak_days: int
    last_reflection_at: str | None
    top_kinds: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "weekly": self.weekly,
            "monthly": self.monthly,
            "streak_days": self.streak_days,
            "last_reflection_at": self.last_reflection_at,
            "top_kinds": self.top_kinds,
        }


def _parse_ts(value: str) -> datetime:
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _average(values: list[float]) -> float | None:
    if not values:
        return None
    return round(sum(values) / len(values), 2)


def streak_days(dates: list[date], today: date) -> int:
    """Consecutive-day streak ending today (or yesterday).

    Unique days are walked newest first; each day within one day of the
    previous anchor extends the streak.
    """
    streak = 0
    anchor = today
    for day in sorted(set(dates), reverse=True):
        if abs((anchor - day).days) <= 1:
            streak += 1
            anchor = day
        else:
            break
    return streak


def reflection_stats(
    entries: list[ReflectionEntry],
    now: datetime | None = None,
) -> ReflectionStats:
    """Totals, recent counts, streak and most common kinds."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    week_ago = now - timedelta(days=7)
    month_ago = now - timedelta(days=30)

    stamps = [_parse_ts(e.created_at) for e in entries]
    kinds = Counter(e.entry_kind for e in entries)

    return ReflectionStats(
        total=len(entries),
        weekly=sum(1 for ts in stamps if ts >= week_ago),
        monthly=sum(1 for ts in stamps if ts >= month_ago),
        streak_days=streak_days([ts.date() for ts in stamps], now.date()),
        last_reflection_at=max(entries, key=lambda e: _parse_ts(e.created_at)).created_at
        if entries
        else None,
        top_kinds=[{"kind": kind, "count": count} for kind, count in kinds.most_common(5)],
    )


def reset_effectiveness(logs: list[ResetLog]) -> dict[str, Any]:
    """How resets are used and how much they help."""
    completed = [log for log in logs if not log.skipped]
    before = [log.stress_level_before for log in completed if log.stress_level_before is not None]
    after = [log.stress_level_after for log in completed if log.stress_level_after is not None]
    reductions = [
        log.stress_level_before - log.stress_level_after
        for log in completed
        if log.stress_level_before is not None and log.stress_level_after is not None
    ]
    ratings = [log.effectiveness for log in completed if log.effectiveness is not None]
    tools = Counter(log.tool_type for log in completed)

    return {
        "completed": len(completed),
        "skipped": len(logs) - len(completed),
        "average_stress_before": _average(before),
        "average_stress_after": _average(after),
        "average_reduction": _average(reductions),
        "average_effectiveness": _average(ratings),
        "most_used_tool": tools.most_common(1)[0][0] if tools else None,
    }


def emotion_summary(logs: list[EmotionLog]) -> dict[str, Any]:
    """Counts and average intensity per emotion."""
    by_emotion: dict[str, list[int]] = {}
    for log in logs:
        by_emotion.setdefault(log.emotion, []).append(log.intensity)

    return {
        "total": len(logs),
        "counts": {emotion: len(vals) for emotion, vals in by_emotion.items()},
        "average_intensity": {
            emotion: _average(vals) for emotion, vals in by_emotion.items()
        },
        "overall_average_intensity": _average([log.intensity for log in logs]),
    }


def assignment_load(assignments: list[AssignmentLog]) -> dict[str, Any]:
    """Workload totals for interpreting assignments."""
    by_difficulty = {d: 0 for d in DIFFICULTIES}
    for a in assignments:
        by_difficulty[a.difficulty] = by_difficulty.get(a.difficulty, 0) + 1

    completed = sum(1 for a in assignments if a.completed)
    return {
        "total": len(assignments),
        "total_minutes": sum(a.duration_minutes for a in assignments),
        "by_difficulty": by_difficulty,
        "completion_rate": round(completed / len(assignments), 2) if assignments else None,
    }
