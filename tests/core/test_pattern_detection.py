"""Tests for pattern detection and nudges."""

import json
from datetime import datetime, timedelta, timezone

from reflect.core.pattern_detection import (
    AssignmentEvent,
    DetectionRule,
    EmotionEvent,
    PatternDetectionEngine,
    ResetEvent,
    UserData,
    WellnessAction,
    build_user_data,
    load_engine,
    save_engine,
)
from reflect.db.activity_repository import EmotionLog, ResetLog

# Sunday
NOW = datetime(2024, 3, 10, 18, 0, tzinfo=timezone.utc)


def medical_fatigue_data() -> UserData:
    start = NOW - timedelta(days=1)
    return UserData(
        assignments=[AssignmentEvent("medical", 60, "challenging", start)],
        emotions=[EmotionEvent("exhausted", 4, start + timedelta(hours=2))],
    )


class TestRules:
    """Tests for individual rule conditions."""

    def test_streak_multiple_of_seven(self):
        engine = PatternDetectionEngine()
        nudges = engine.analyze(UserData(current_streak=14), now=NOW)
        assert [n.title for n in nudges] == ["14 Day Streak!"]
        assert nudges[0].nudge_type == "encouragement"

    def test_streak_not_multiple(self):
        assert PatternDetectionEngine().analyze(UserData(current_streak=10), now=NOW) == []

    def test_medical_fatigue_needs_three_occurrences(self):
        engine = PatternDetectionEngine()
        data = medical_fatigue_data()

        assert engine.analyze(data, now=NOW) == []
        assert engine.analyze(data, now=NOW) == []
        nudges = engine.analyze(data, now=NOW)

        assert len(nudges) == 1
        assert nudges[0].rule_id == "medical-fatigue"
        assert nudges[0].priority == "high"
        assert engine.patterns["medical-fatigue"].occurrences == 3

    def test_old_medical_assignments_ignored(self):
        start = NOW - timedelta(days=8)
        data = UserData(
            assignments=[AssignmentEvent("medical", 60, "easy", start)],
            emotions=[EmotionEvent("exhausted", 4, start + timedelta(hours=1))],
        )
        engine = PatternDetectionEngine()
        engine.analyze(data, now=NOW)
        assert "medical-fatigue" not in engine.patterns

    def test_monday_stress(self):
        monday = datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)
        data = UserData(emotions=[EmotionEvent("anxious", 3, monday)])
        engine = PatternDetectionEngine()
        for _ in range(3):
            nudges = engine.analyze(data, now=NOW)
        assert [n.rule_id for n in nudges] == ["monday-stress"]

    def test_missed_resets_with_stress(self):
        skipped_at = NOW - timedelta(days=1)
        data = UserData(
            resets=[ResetEvent("breathing-practice", skipped_at, skipped=True)],
            emotions=[
                EmotionEvent("stressed", 4, skipped_at + timedelta(hours=h)) for h in (1, 2, 3)
            ],
        )
        engine = PatternDetectionEngine()
        engine.analyze(data, now=NOW)
        nudges = engine.analyze(data, now=NOW)
        assert [n.rule_id for n in nudges] == ["missed-reset-stress"]

    def test_legal_anxiety(self):
        court = NOW + timedelta(days=1)
        data = UserData(
            assignments=[AssignmentEvent("court", 120, "challenging", court)],
            emotions=[EmotionEvent("anxious", 4, court - timedelta(hours=3))],
        )
        engine = PatternDetectionEngine()
        engine.analyze(data, now=NOW)
        assert engine.analyze(data, now=NOW)[0].title == "Pre-Court Preparation"

    def test_effective_wellness_names_category(self):
        actions = [
            WellnessAction("breathing-practice", "breathwork", NOW, effectiveness=5)
            for _ in range(5)
        ]
        nudges = PatternDetectionEngine().analyze(UserData(wellness_actions=actions), now=NOW)
        assert nudges[0].message.startswith("Breathwork consistently works best for you.")

    def test_failing_rule_is_skipped(self):
        def broken(data, now):
            raise RuntimeError("boom")

        rule = DetectionRule(
            id="broken",
            name="Broken",
            condition=broken,
            threshold=1,
            priority="low",
            nudge_type="insight",
            title="t",
            message="m",
            expires_in_hours=1,
        )
        engine = PatternDetectionEngine(rules=[rule])
        assert engine.analyze(UserData(), now=NOW) == []


class TestEngine:
    """Tests for nudge lifecycle."""

    def _engine_with_medical_nudge(self) -> PatternDetectionEngine:
        engine = PatternDetectionEngine()
        for _ in range(3):
            engine.analyze(medical_fatigue_data(), now=NOW)
        return engine

    def test_duplicate_nudge_suppressed(self):
        engine = self._engine_with_medical_nudge()
        assert engine.analyze(medical_fatigue_data(), now=NOW) == []
        assert len(engine.active_nudges(NOW)) == 1

    def test_active_nudges_sorted_by_priority(self):
        engine = self._engine_with_medical_nudge()
        engine.analyze(UserData(current_streak=7), now=NOW)
        assert [n.priority for n in engine.active_nudges(NOW)] == ["high", "low"]

    def test_expired_nudges_dropped(self):
        engine = self._engine_with_medical_nudge()
        assert engine.active_nudges(NOW + timedelta(hours=71)) != []
        assert engine.active_nudges(NOW + timedelta(hours=72)) == []

    def test_dismiss(self):
        engine = self._engine_with_medical_nudge()
        nudge_id = engine.active_nudges(NOW)[0].id
        assert engine.dismiss(nudge_id) is True
        assert engine.dismiss(nudge_id) is False
        assert engine.active_nudges(NOW) == []

    def test_dismissed_nudge_stays_dismissed(self):
        engine = self._engine_with_medical_nudge()
        nudge_id = engine.active_nudges(NOW)[0].id
        engine.dismiss(nudge_id)

        assert engine.analyze(medical_fatigue_data(), now=NOW + timedelta(minutes=5)) == []
        assert engine.active_nudges(NOW) == []
        assert engine.patterns["medical-fatigue"].occurrences == 4

    def test_dismissal_lapses_when_nudge_would_expire(self):
        engine = PatternDetectionEngine()
        (nudge,) = engine.analyze(UserData(current_streak=7), now=NOW)
        engine.dismiss(nudge.id)

        assert engine.analyze(UserData(current_streak=7), now=NOW + timedelta(hours=23)) == []
        emitted = engine.analyze(UserData(current_streak=7), now=NOW + timedelta(hours=24))
        assert [n.title for n in emitted] == ["7 Day Streak!"]
        assert engine.dismissed == {}

    def test_new_streak_title_not_suppressed(self):
        engine = PatternDetectionEngine()
        (nudge,) = engine.analyze(UserData(current_streak=7), now=NOW)
        engine.dismiss(nudge.id)

        emitted = engine.analyze(UserData(current_streak=14), now=NOW)
        assert [n.title for n in emitted] == ["14 Day Streak!"]

    def test_recommendations_follow_patterns(self):
        engine = self._engine_with_medical_nudge()
        engine.analyze(UserData(current_streak=7), now=NOW)
        assert engine.recommendations() == [
            "Schedule boundary-setting time after medical assignments"
        ]

    def test_nudge_dict(self):
        engine = self._engine_with_medical_nudge()
        data = engine.active_nudges(NOW)[0].to_dict()
        assert data["id"] == f"nudge-medical-fatigue-{int(NOW.timestamp() * 1000)}"
        assert data["type"] == "insight"
        assert data["action"] == {
            "label": "Set Boundary Reminder",
            "target": "/resets/professional-boundaries",
        }
        assert data["expires_at"] == (NOW + timedelta(hours=72)).isoformat()


class TestBuildUserData:
    """Tests for converting stored rows."""

    def test_completed_resets_become_wellness_actions(self):
        resets = [
            ResetLog("1", "u", "breathing-practice", "breathwork", 60, "2024-03-10T10:00:00+00:00", effectiveness=5),
            ResetLog("2", "u", "breathing-practice", "breathwork", 0, "2024-03-10T11:00:00+00:00", skipped=True),
        ]
        emotions = [EmotionLog("e", "u", "calm", 2, "2024-03-10T12:00:00")]
        data = build_user_data(emotions, [], resets, current_streak=3)

        assert len(data.resets) == 2
        assert len(data.wellness_actions) == 1
        assert data.wellness_actions[0].category == "breathwork"
        assert data.emotions[0].timestamp.tzinfo is not None
        assert data.current_streak == 3


class TestSavedEngine:
    """Tests for keeping engine state between runs."""

    def test_counts_build_up_across_loads(self, tmp_path):
        for _ in range(3):
            engine = load_engine("u1", data_dir=tmp_path)
            emitted = engine.analyze(medical_fatigue_data(), now=NOW)
            save_engine("u1", engine, data_dir=tmp_path)

        assert [n.rule_id for n in emitted] == ["medical-fatigue"]
        reloaded = load_engine("u1", data_dir=tmp_path)
        assert reloaded.patterns["medical-fatigue"].occurrences == 3
        assert reloaded.active_nudges(NOW)[0].to_dict() == emitted[0].to_dict()

    def test_dismissal_is_saved(self, tmp_path):
        engine = PatternDetectionEngine()
        (nudge,) = engine.analyze(UserData(current_streak=7), now=NOW)
        engine.dismiss(nudge.id)
        save_engine("u1", engine, data_dir=tmp_path)

        reloaded = load_engine("u1", data_dir=tmp_path)
        assert reloaded.analyze(UserData(current_streak=7), now=NOW + timedelta(hours=1)) == []

    def test_users_kept_apart(self, tmp_path):
        engine = PatternDetectionEngine()
        engine.analyze(UserData(current_streak=7), now=NOW)
        save_engine("u1", engine, data_dir=tmp_path)
        save_engine("u2", PatternDetectionEngine(), data_dir=tmp_path)

        assert len(load_engine("u1", data_dir=tmp_path).nudges) == 1
        assert load_engine("u2", data_dir=tmp_path).nudges == []
        assert load_engine("u3", data_dir=tmp_path).patterns == {}

    def test_unusable_file_gives_fresh_engine(self, tmp_path):
        path = tmp_path / "state" / "patterns_v1.json"
        path.parent.mkdir(parents=True)

        path.write_text("[]", encoding="utf-8")
        assert load_engine("u1", data_dir=tmp_path).patterns == {}

        payload = {"$schema": "patterns_v1", "users": {"u1": {"patterns": {"x": {"name": "X"}}}}}
        path.write_text(json.dumps(payload), encoding="utf-8")
        assert load_engine("u1", data_dir=tmp_path).patterns == {}

        path.write_text("{broken", encoding="utf-8")
        assert load_engine("u1", data_dir=tmp_path).patterns == {}
