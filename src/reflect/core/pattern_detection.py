"""Behaviour pattern detection and supportive nudges.

Each DetectionRule inspects a UserData snapshot. When a rule matches, the
engine bumps that rule's occurrence count; once the count reaches the rule's
threshold a Nudge is emitted, unless an identical nudge (same title and
message) is still active or was dismissed and has not yet expired.

CLI runs keep engine state in data/state/patterns_v1.json so occurrence
counts build up across runs.

Rules:
    medical-fatigue       drained after medical assignments        (3, high)
    monday-stress         anxious/stressed on Mondays              (3, medium)
    missed-reset-stress   stress spikes after skipped resets       (2, high)
    legal-anxiety         anxious the day before legal/court work  (2, medium)
    afternoon-exhaustion  exhausted between 2 and 4 PM             (5, low)
    wellness-streak       streak hits a multiple of seven days     (1, low)
    weekend-recovery      exhausted/overwhelmed on Fridays         (3, medium)
    effective-wellness    one wellness category keeps working      (1, low)
"""

from __future__ import annotations

import json
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable

import structlog

from reflect.config.app_config import load_app_config
from reflect.db.activity_repository import AssignmentLog, EmotionLog, ResetLog

logger = structlog.get_logger(__name__)

PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}

PATTERNS_SCHEMA = "patterns_v1"
PATTERNS_FILENAME = "patterns_v1.json"

# =============================================================================
# INPUT DATA
# =============================================================================


@dataclass
class EmotionEvent:
    emotion: str
    intensity: int
    timestamp: datetime


@dataclass
class AssignmentEvent:
    assignment_type: str
    duration_minutes: int
    difficulty: str
    timestamp: datetime
    completed: bool = True
    emotion_after: str | None = None


@dataclass
class ResetEvent:
    tool_type: str
    timestamp: datetime
    skipped: bool = False
    effectiveness: int | None = None


@dataclass
class WellnessAction:
    action: str
    category: str
    timestamp: datetime
    effectiveness: int | None = None


@dataclass
class UserData:
    """Snapshot of a user's recent activity."""

    emotions: list[EmotionEvent] = field(default_factory=list)
    assignments: list[AssignmentEvent] = field(default_factory=list)
    resets: list[ResetEvent] = field(default_factory=list)
    wellness_actions: list[WellnessAction] = field(default_factory=list)
    current_streak: int = 0


def _ts(value: str) -> datetime:
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def build_user_data(
    emotions: list[EmotionLog],
    assignments: list[AssignmentLog],
    resets: list[ResetLog],
    current_streak: int = 0,
) -> UserData:
    """Convert stored rows into a UserData snapshot.

    Completed (not skipped) resets double as wellness actions.
    """
    return UserData(
        emotions=[EmotionEvent(e.emotion, e.intensity, _ts(e.logged_at)) for e in emotions],
        assignments=[
            AssignmentEvent(
                assignment_type=a.assignment_type,
                duration_minutes=a.duration_minutes,
                difficulty=a.difficulty,
                timestamp=_ts(a.occurred_at),
                completed=a.completed,
                emotion_after=a.emotion_after,
            )
            for a in assignments
        ],
        resets=[
            ResetEvent(r.tool_type, _ts(r.created_at), r.skipped, r.effectiveness)
            for r in resets
        ],
        wellness_actions=[
            WellnessAction(
                action=r.tool_type,
                category=r.category,
                timestamp=_ts(r.created_at),
                effectiveness=r.effectiveness,
            )
            for r in resets
            if not r.skipped
        ],
        current_streak=current_streak,
    )


# =============================================================================
# RULE CONDITIONS
# =============================================================================
#
# A condition returns a metadata dict when the rule matches, None otherwise.

Condition = Callable[[UserData, datetime], "dict[str, Any] | None"]


def _ratio_matches(matches: int, total: int, threshold: float) -> bool:
    return matches / max(total, 1) > threshold


def _medical_fatigue(data: UserData, now: datetime) -> dict[str, Any] | None:
    medical = [
        a
        for a in data.assignments
        if a.assignment_type == "medical" and now - a.timestamp < timedelta(days=7)
    ]
    drained = [
        a
        for a in medical
        if any(
            a.timestamp < e.timestamp < a.timestamp + timedelta(hours=4)
            and e.emotion in ("exhausted", "stressed", "overwhelmed")
            for e in data.emotions
        )
    ]
    if _ratio_matches(len(drained), len(medical), 0.6):
        return {"medical_assignments": len(medical), "drained_after": len(drained)}
    return None


def _weekday_ratio(
    data: UserData,
    weekday: int,
    emotions: tuple[str, ...],
    min_intensity: int,
    threshold: float,
) -> dict[str, Any] | None:
    on_day = [e for e in data.emotions if e.timestamp.weekday() == weekday]
    hits = [e for e in on_day if e.emotion in emotions and e.intensity >= min_intensity]
    distinct_days = len({e.timestamp.date() for e in on_day})
    if _ratio_matches(len(hits), distinct_days, threshold):
        return {"matches": len(hits), "days": distinct_days}
    return None


def _monday_stress(data: UserData, now: datetime) -> dict[str, Any] | None:
    return _weekday_ratio(data, 0, ("anxious", "stressed"), 3, 0.5)


def _weekend_recovery(data: UserData, now: datetime) -> dict[str, Any] | None:
    return _weekday_ratio(data, 4, ("exhausted", "overwhelmed"), 4, 0.6)


def _missed_reset_stress(data: UserData, now: datetime) -> dict[str, Any] | None:
    recent_missed = [
        r for r in data.resets if r.skipped and now - r.timestamp < timedelta(days=3)
    ]
    if not recent_missed:
        return None

    stressed = [
        e
        for e in data.emotions
        if e.emotion == "stressed"
        and e.intensity >= 4
        and any(r.timestamp < e.timestamp < r.timestamp + timedelta(hours=24) for r in recent_missed)
    ]
    if len(stressed) > 2:
        return {"missed_resets": len(recent_missed), "stressed_after": len(stressed)}
    return None


def _legal_anxiety(data: UserData, now: datetime) -> dict[str, Any] | None:
    legal = [a for a in data.assignments if a.assignment_type in ("legal", "court")]
    anxious_before = [
        a
        for a in legal
        if any(
            a.timestamp - timedelta(hours=24) < e.timestamp < a.timestamp
            and e.emotion == "anxious"
            and e.intensity >= 3
            for e in data.emotions
        )
    ]
    if _ratio_matches(len(anxious_before), len(legal), 0.7):
        return {"legal_assignments": len(legal), "anxious_before": len(anxious_before)}
    return None


def _afternoon_exhaustion(data: UserData, now: datetime) -> dict[str, Any] | None:
    afternoon = [e for e in data.emotions if 14 <= e.timestamp.hour <= 16]
    exhausted = [e for e in afternoon if e.emotion == "exhausted" and e.intensity >= 3]
    distinct_days = len({e.timestamp.date() for e in afternoon})
    if _ratio_matches(len(exhausted), distinct_days, 0.4):
        return {"matches": len(exhausted), "days": distinct_days}
    return None


def _wellness_streak(data: UserData, now: datetime) -> dict[str, Any] | None:
    if data.current_streak >= 7 and data.current_streak % 7 == 0:
        return {"streak": data.current_streak}
    return None


def _effective_wellness(data: UserData, now: datetime) -> dict[str, Any] | None:
    effective = [w for w in data.wellness_actions if w.effectiveness and w.effectiveness >= 4]
    if len(effective) < 5:
        return None

    category, count = Counter(w.category for w in effective).most_common(1)[0]
    if count >= 3:
        return {"top_category": category.capitalize(), "count": count}
    return None


# =============================================================================
# RULES
# =============================================================================


@dataclass(frozen=True)
class DetectionRule:
    id: str
    name: str
    condition: Condition
    threshold: int
    priority: str
    nudge_type: str  # insight | suggestion | encouragement | warning
    title: str
    message: str
    expires_in_hours: int
    action_label: str | None = None
    action_target: str | None = None
    recommendation: str | None = None


DETECTION_RULES: list[DetectionRule] = [
    DetectionRule(
        id="medical-fatigue",
        name="Medical Assignment Fatigue",
        condition=_medical_fatigue,
        threshold=3,
        priority="high",
        nudge_type="insight",
        title="Pattern Noticed",
        message=(
            "You often feel drained after medical assignments. Try the "
            "Professional Boundaries Reset after your next one."
        ),
        action_label="Set Boundary Reminder",
        action_target="/resets/professional-boundaries",
        expires_in_hours=72,
        recommendation="Schedule boundary-setting time after medical assignments",
    ),
    DetectionRule(
        id="monday-stress",
        name="Monday Stress Pattern",
        condition=_monday_stress,
        threshold=3,
        priority="medium",
        nudge_type="suggestion",
        title="Monday Mindfulness",
        message=(
            "Mondays tend to be stressful for you. Start with 5 minutes of "
            "morning breathwork to set a calmer tone."
        ),
        action_label="Try Breathwork",
        action_target="/wellness/breathwork",
        expires_in_hours=168,
        recommendation="Start Mondays with mindfulness practice",
    ),
    DetectionRule(
        id="missed-reset-stress",
        name="Missed Reset Stress Buildup",
        condition=_missed_reset_stress,
        threshold=2,
        priority="high",
        nudge_type="insight",
        title="Reset Reminder",
        message=(
            "Skipping resets seems to increase your stress levels. Even a "
            "2-minute micro-reset can help maintain balance."
        ),
        action_label="Quick Reset Now",
        action_target="/resets/quick",
        expires_in_hours=48,
    ),
    DetectionRule(
        id="legal-anxiety",
        name="Legal Assignment Anxiety",
        condition=_legal_anxiety,
        threshold=2,
        priority="medium",
        nudge_type="suggestion",
        title="Pre-Court Preparation",
        message=(
            "Legal assignments tend to make you anxious. Try the Confidence "
            "Boost meditation 30 minutes before your next one."
        ),
        action_label="Bookmark Meditation",
        action_target="/wellness/confidence-boost",
        expires_in_hours=120,
        recommendation="Practice confidence exercises before court assignments",
    ),
    DetectionRule(
        id="afternoon-exhaustion",
        name="Afternoon Energy Dip",
        condition=_afternoon_exhaustion,
        threshold=5,
        priority="low",
        nudge_type="suggestion",
        title="Afternoon Energy Boost",
        message=(
            "Your energy often dips around 3 PM. A 5-minute walk or stretching "
            "session could help you power through."
        ),
        action_label="Set Daily Reminder",
        action_target="/settings/reminders",
        expires_in_hours=336,
        recommendation="Take energizing breaks between 2-4 PM",
    ),
    DetectionRule(
        id="wellness-streak",
        name="Wellness Streak Achievement",
        condition=_wellness_streak,
        threshold=1,
        priority="low",
        nudge_type="encouragement",
        title="{streak} Day Streak!",
        message=(
            "Your consistency is paying off. You're building sustainable "
            "wellness habits that will serve you well."
        ),
        expires_in_hours=24,
    ),
    DetectionRule(
        id="weekend-recovery",
        name="Weekend Recovery Needed",
        condition=_weekend_recovery,
        threshold=3,
        priority="medium",
        nudge_type="suggestion",
        title="Weekend Restoration",
        message=(
            "You often end the week exhausted. Schedule a longer reset session "
            "this weekend to fully recharge."
        ),
        action_label="Plan Weekend Reset",
        action_target="/resets/deep-restoration",
        expires_in_hours=72,
    ),
    DetectionRule(
        id="effective-wellness",
        name="Most Effective Wellness Action",
        condition=_effective_wellness,
        threshold=1,
        priority="low",
        nudge_type="insight",
        title="Your Wellness Sweet Spot",
        message=(
            "{top_category} consistently works best for you. Consider making it "
            "your go-to stress relief tool."
        ),
        action_label="View Your Stats",
        action_target="/insights/wellness-effectiveness",
        expires_in_hours=168,
    ),
]


# =============================================================================
# ENGINE
# =============================================================================


@dataclass
class DetectedPattern:
    rule_id: str
    name: str
    occurrences: int
    last_detected: datetime
    confidence: float = 0.7
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def weight(self) -> float:
        return self.confidence * self.occurrences


@dataclass
class Nudge:
    id: str
    rule_id: str
    priority: str
    nudge_type: str
    title: str
    message: str
    created_at: datetime
    expires_in_hours: int | None = None
    action_label: str | None = None
    action_target: str | None = None
    dismissible: bool = True

    @property
    def expires_at(self) -> datetime | None:
        if self.expires_in_hours is None:
            return None
        return self.created_at + timedelta(hours=self.expires_in_hours)

    def is_expired(self, now: datetime) -> bool:
        expires_at = self.expires_at
        return expires_at is not None and now >= expires_at

    def to_dict(self) -> dict[str, Any]:
        action = None
        if self.action_label:
            action = {"label": self.action_label, "target": self.action_target}
        return {
            "id": self.id,
            "rule_id": self.rule_id,
            "priority": self.priority,
            "type": self.nudge_type,
            "title": self.title,
            "message": self.message,
            "action": action,
            "dismissible": self.dismissible,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }


def _render(template: str, metadata: dict[str, Any]) -> str:
    try:
        return template.format(**metadata)
    except KeyError:
        return template


class PatternDetectionEngine:
    """Tracks pattern occurrences and active nudges for one user.

    Dismissed nudges are remembered by (rule_id, title, message) until the
    dismissed nudge would have expired, so re-analysis does not bring them back.
    """

    def __init__(self, rules: list[DetectionRule] | None = None):
        self.rules = rules if rules is not None else DETECTION_RULES
        self.patterns: dict[str, DetectedPattern] = {}
        self.nudges: list[Nudge] = []
        self.dismissed: dict[tuple[str, str, str], datetime | None] = {}

    def analyze(self, data: UserData, now: datetime | None = None) -> list[Nudge]:
        """Run every rule once and return newly emitted nudges."""
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        self._prune_dismissed(now)
        emitted: list[Nudge] = []

        for rule in self.rules:
            try:
                metadata = rule.condition(data, now)
            except Exception as e:
                logger.error("patterns.rule_failed", rule_id=rule.id, error=str(e))
                continue

            if metadata is None:
                continue

            pattern = self.patterns.get(rule.id)
            if pattern is None:
                pattern = DetectedPattern(
                    rule_id=rule.id, name=rule.name, occurrences=1, last_detected=now
                )
                self.patterns[rule.id] = pattern
            else:
                pattern.occurrences += 1
                pattern.last_detected = now
            pattern.metadata = metadata

            if pattern.occurrences < rule.threshold:
                continue

            nudge = self._make_nudge(rule, pattern, now)
            if self._is_active(nudge) or _nudge_key(nudge) in self.dismissed:
                continue
            self.nudges.append(nudge)
            emitted.append(nudge)
            logger.info("patterns.nudge_emitted", rule_id=rule.id, nudge_id=nudge.id)

        return emitted

    def _make_nudge(self, rule: DetectionRule, pattern: DetectedPattern, now: datetime) -> Nudge:
        return Nudge(
            id=f"nudge-{rule.id}-{int(now.timestamp() * 1000)}",
            rule_id=rule.id,
            priority=rule.priority,
            nudge_type=rule.nudge_type,
            title=_render(rule.title, pattern.metadata),
            message=_render(rule.message, pattern.metadata),
            created_at=now,
            expires_in_hours=rule.expires_in_hours,
            action_label=rule.action_label,
            action_target=rule.action_target,
        )

    def _is_active(self, nudge: Nudge) -> bool:
        return any(
            n.title == nudge.title and n.message == nudge.message for n in self.nudges
        )

    def _prune_dismissed(self, now: datetime) -> None:
        self.dismissed = {
            key: until
            for key, until in self.dismissed.items()
            if until is None or now < until
        }

    def active_nudges(self, now: datetime | None = None) -> list[Nudge]:
        """Drop expired nudges; return the rest, high priority first."""
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        self.nudges = [n for n in self.nudges if not n.is_expired(now)]
        return sorted(self.nudges, key=lambda n: PRIORITY_ORDER[n.priority])

    def dismiss(self, nudge_id: str) -> bool:
        """Remove a nudge and suppress it until it would have expired.

        Returns False if it was not active.
        """
        for nudge in self.nudges:
            if nudge.id == nudge_id:
                self.nudges.remove(nudge)
                self.dismissed[_nudge_key(nudge)] = nudge.expires_at
                logger.info("patterns.nudge_dismissed", rule_id=nudge.rule_id, nudge_id=nudge_id)
                return True
        return False

    def recommendations(self) -> list[str]:
        """Advice drawn from the three strongest patterns."""
        rules = {rule.id: rule for rule in self.rules}
        top = sorted(self.patterns.values(), key=lambda p: p.weight, reverse=True)[:3]
        result = []
        for pattern in top:
            rule = rules.get(pattern.rule_id)
            if rule and rule.recommendation:
                result.append(rule.recommendation)
        return result

    def to_dict(self) -> dict[str, Any]:
        return {
            "patterns": {
                rule_id: {
                    "name": p.name,
                    "occurrences": p.occurrences,
                    "last_detected": p.last_detected.isoformat(),
                    "confidence": p.confidence,
                    "metadata": p.metadata,
                }
                for rule_id, p in self.patterns.items()
            },
            "nudges": [
                {
                    "id": n.id,
                    "rule_id": n.rule_id,
                    "priority": n.priority,
                    "nudge_type": n.nudge_type,
                    "title": n.title,
                    "message": n.message,
                    "created_at": n.created_at.isoformat(),
                    "expires_in_hours": n.expires_in_hours,
                    "action_label": n.action_label,
                    "action_target": n.action_target,
                    "dismissible": n.dismissible,
                }
                for n in self.nudges
            ],
            "dismissed": [
                {
                    "rule_id": rule_id,
                    "title": title,
                    "message": message,
                    "until": until.isoformat() if until else None,
                }
                for (rule_id, title, message), until in self.dismissed.items()
            ],
        }

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], rules: list[DetectionRule] | None = None
    ) -> PatternDetectionEngine:
        """Rebuild an engine saved with to_dict.

        Raises:
            KeyError, TypeError, ValueError: If the data has the wrong shape
        """
        engine = cls(rules)
        for rule_id, p in data.get("patterns", {}).items():
            engine.patterns[rule_id] = DetectedPattern(
                rule_id=rule_id,
                name=p["name"],
                occurrences=int(p["occurrences"]),
                last_detected=_ts(p["last_detected"]),
                confidence=float(p.get("confidence", 0.7)),
                metadata=dict(p.get("metadata", {})),
            )
        for n in data.get("nudges", []):
            engine.nudges.append(
                Nudge(
                    id=n["id"],
                    rule_id=n["rule_id"],
                    priority=n["priority"],
                    nudge_type=n["nudge_type"],
                    title=n["title"],
                    message=n["message"],
                    created_at=_ts(n["created_at"]),
                    expires_in_hours=n.get("expires_in_hours"),
                    action_label=n.get("action_label"),
                    action_target=n.get("action_target"),
                    dismissible=n.get("dismissible", True),
                )
            )
        for d in data.get("dismissed", []):
            until = _ts(d["until"]) if d.get("until") else None
            engine.dismissed[(d["rule_id"], d["title"], d["message"])] = until
        return engine


def _nudge_key(nudge: Nudge) -> tuple[str, str, str]:
    return (nudge.rule_id, nudge.title, nudge.message)


# =============================================================================
# SAVED STATE
# =============================================================================


def _patterns_path(data_dir: Path | None) -> Path:
    if data_dir is None:
        data_dir = load_app_config().storage.data_dir
    return data_dir / "state" / PATTERNS_FILENAME


def load_engine(user_id: str, data_dir: Path | None = None) -> PatternDetectionEngine:
    """Load a user's saved engine; a missing or unusable file gives a fresh one."""
    path = _patterns_path(data_dir)
    if not path.exists():
        return PatternDetectionEngine()

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("patterns_state_unreadable", path=str(path), error=str(e))
        return PatternDetectionEngine()

    if not isinstance(data, dict) or data.get("$schema") != PATTERNS_SCHEMA:
        logger.warning("patterns_state_invalid_schema", path=str(path))
        return PatternDetectionEngine()

    users = data.get("users")
    user_state = users.get(user_id) if isinstance(users, dict) else None
    if user_state is None:
        return PatternDetectionEngine()

    try:
        return PatternDetectionEngine.from_dict(user_state)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        logger.warning("patterns_state_invalid_user", path=str(path), user_id=user_id, error=str(e))
        return PatternDetectionEngine()


def save_engine(
    user_id: str, engine: PatternDetectionEngine, data_dir: Path | None = None
) -> None:
    """Write a user's engine state, keeping other users' entries."""
    path = _patterns_path(data_dir)
    users: dict[str, Any] = {}
    if path.exists():
        try:
            with open(path, encoding="utf-8") as f:
                existing = json.load(f)
            if isinstance(existing, dict) and existing.get("$schema") == PATTERNS_SCHEMA:
                if isinstance(existing.get("users"), dict):
                    users = existing["users"]
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("patterns_state_unreadable", path=str(path), error=str(e))

    users[user_id] = engine.to_dict()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump({"$schema": PATTERNS_SCHEMA, "users": users}, f, indent=2, ensure_ascii=False)
