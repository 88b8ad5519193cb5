"""Tests for the timed reset flow."""

import json
from datetime import datetime, timezone

import pytest

from reflect.config.techniques import require_technique
from reflect.core.preferences import get_technique_preference, load_preferences
from reflect.core.technique_timer import (
    BreathPattern,
    BreathPhase,
    FlowPhase,
    TechniqueFlow,
    TechniqueStateError,
    format_time,
    save_completed_reset,
    validate_ratings,
)
from reflect.db.activity_repository import list_activity_dates, list_reset_logs
from reflect.db.database import get_db
from reflect.db.reflections_repository import list_reflections
from reflect.utils.validators import ValidationError

NOW = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def technique():
    return require_technique("breathing-practice")


@pytest.fixture
def flow(technique):
    return TechniqueFlow(technique, duration_key="30s", pace="4")


class TestBreathPattern:
    """Tests for pace timings."""

    def test_box_breathing_sequence(self):
        pattern = BreathPattern.for_pace("4")
        assert pattern.cycle_seconds == 16
        assert pattern.phase_at(0) is BreathPhase.INHALE
        assert pattern.phase_at(4) is BreathPhase.HOLD_IN
        assert pattern.phase_at(8) is BreathPhase.EXHALE
        assert pattern.phase_at(12) is BreathPhase.HOLD_OUT
        assert pattern.phase_at(16) is BreathPhase.INHALE

    def test_natural_pace_skips_holds(self):
        pattern = BreathPattern.for_pace("natural")
        phases = [phase for phase, _ in pattern.segments]
        assert phases == [BreathPhase.INHALE, BreathPhase.EXHALE]
        assert pattern.cycle_seconds == 10
        assert pattern.phase_at(5) is BreathPhase.EXHALE

    def test_cycles_completed(self):
        assert BreathPattern.for_pace("3").cycles_completed(25) == 2

    def test_unknown_pace(self):
        with pytest.raises(TechniqueStateError):
            BreathPattern.for_pace("7")


class TestFlowSetup:
    """Tests for setup phase."""

    def test_defaults_from_technique(self, technique):
        flow = TechniqueFlow(technique)
        assert flow.duration_key == "2m"
        assert flow.pace == "4"
        assert flow.phase is FlowPhase.SETUP

    def test_unknown_duration(self, technique):
        with pytest.raises(TechniqueStateError):
            TechniqueFlow(technique, duration_key="10m")

    def test_configure(self, flow):
        flow.configure(duration_key="1m", pace="natural")
        assert flow.duration_seconds == 60
        assert flow.pace == "natural"

    def test_configure_after_start_fails(self, flow):
        flow.start()
        with pytest.raises(TechniqueStateError):
            flow.configure(pace="3")

    def test_start_emits_events(self, flow):
        events = flow.start()
        assert events[0].event_type == "phase_changed"
        assert events[0].data["to"] == "practice"
        assert events[1].data == {"breath_phase": "inhale", "cycle": 0}
        assert flow.running is True


class TestFlowPractice:
    """Tests for the practice countdown."""

    def test_tick_counts_down(self, flow):
        flow.start()
        events = flow.tick(3)
        assert flow.elapsed == 3
        assert flow.remaining_seconds == 27
        assert [e.event_type for e in events] == ["tick", "tick", "tick"]

    def test_breath_phase_change_emitted(self, flow):
        flow.start()
        events = flow.tick(4)
        breath = [e for e in events if e.event_type == "breath_phase"]
        assert breath[-1].data["breath_phase"] == "hold-in"

    def test_reaching_zero_moves_to_reflection(self, flow):
        flow.start()
        events = flow.tick(45)
        assert flow.phase is FlowPhase.REFLECTION
        assert flow.elapsed == 30
        assert flow.remaining_seconds == 0
        assert flow.running is False
        assert events[-1].data == {"from": "practice", "to": "reflection", "elapsed": 30}

    def test_paused_flow_ignores_ticks(self, flow):
        flow.start()
        flow.pause()
        assert flow.tick(5) == []
        assert flow.elapsed == 0
        flow.resume()
        flow.tick()
        assert flow.elapsed == 1

    def test_change_pace_and_continue(self, flow):
        flow.start()
        flow.tick(2)
        flow.change_pace()
        assert flow.phase is FlowPhase.PACE_CHANGE
        assert flow.tick() == []

        flow.continue_practice("natural")
        assert flow.phase is FlowPhase.PRACTICE
        assert flow.pace == "natural"
        assert flow.elapsed == 2

    def test_finish_early(self, flow):
        flow.start()
        flow.tick(10)
        flow.finish_early()
        assert flow.phase is FlowPhase.REFLECTION
        assert flow.finished_early is True

    def test_pause_outside_practice(self, flow):
        with pytest.raises(TechniqueStateError):
            flow.pause()

    def test_progress_and_display(self, flow):
        flow.start()
        flow.tick(15)
        state = flow.to_dict()
        assert state["progress_percent"] == 50.0
        assert state["remaining_display"] == "0:15"

    def test_format_time(self):
        assert format_time(125) == "2:05"
        assert format_time(-3) == "0:00"


class TestFlowReflection:
    """Tests for reflection and restart."""

    def test_submit_reflection(self, flow):
        flow.start()
        flow.tick(30)
        record = flow.submit_reflection({"feeling_calmer": "Yes"}, now=NOW)

        assert flow.phase is FlowPhase.COMPLETED
        assert record.technique_id == "breathing-practice"
        assert record.category == "breathwork"
        assert record.elapsed_seconds == 30
        assert record.completed_at == NOW.isoformat()
        assert record.answers == {"feeling_calmer": "Yes"}

    def test_build_record_keeps_reflection_open(self, flow):
        flow.start()
        flow.tick(30)
        record = flow.build_record({"feeling_calmer": "Yes"}, now=NOW)
        assert flow.phase is FlowPhase.REFLECTION
        assert flow.record is None

        event = flow.complete(record)
        assert flow.phase is FlowPhase.COMPLETED
        assert flow.record is record
        assert event.data["to"] == "completed"

    def test_complete_twice(self, flow):
        flow.start()
        flow.finish_early()
        record = flow.build_record({}, now=NOW)
        flow.complete(record)
        with pytest.raises(TechniqueStateError):
            flow.complete(record)

    def test_unknown_question(self, flow):
        flow.start()
        flow.finish_early()
        with pytest.raises(TechniqueStateError):
            flow.submit_reflection({"mood": "Yes"})

    def test_answer_not_an_option(self, flow):
        flow.start()
        flow.finish_early()
        with pytest.raises(TechniqueStateError):
            flow.submit_reflection({"feeling_calmer": "Maybe"})

    def test_submit_before_practice_ends(self, flow):
        flow.start()
        with pytest.raises(TechniqueStateError):
            flow.submit_reflection({})

    def test_restart_clears_progress(self, flow):
        flow.start()
        flow.tick(30)
        flow.submit_reflection({}, now=NOW)
        flow.restart()
        assert flow.phase is FlowPhase.SETUP
        assert flow.elapsed == 0
        assert flow.record is None


class TestSaveCompletedReset:
    """Tests for persisting a completed reset."""

    def _record(self, flow, answers):
        flow.start()
        flow.tick(30)
        return flow.submit_reflection(answers, now=NOW)

    def test_saves_log_reflection_and_preferences(self, flow, user_id):
        record = self._record(flow, {"feeling_calmer": "Somewhat"})
        stored = save_completed_reset(user_id, record, effectiveness=4, stress_before=7, stress_after=3)

        logs = list_reset_logs(user_id)
        assert len(logs) == 1
        assert logs[0].id == stored["reset_log_id"]
        assert logs[0].tool_type == "breathing-practice"
        assert logs[0].duration_seconds == 30
        assert logs[0].effectiveness == 4

        entries = list_reflections(user_id)
        assert entries[0].id == stored["reflection_id"]
        assert entries[0].entry_kind == "reset"
        assert entries[0].data == {"technique_id": "breathing-practice", "feeling_calmer": "Somewhat"}

        preference = get_technique_preference(user_id, "breathing-practice")
        assert (preference.duration_key, preference.pace) == ("30s", "4")
        assert len(load_preferences().users[user_id].history) == 1

    def test_without_answers_marks_activity(self, flow, user_id):
        record = self._record(flow, {})
        stored = save_completed_reset(user_id, record)
        assert stored["reflection_id"] is None
        assert list_reflections(user_id) == []
        assert list_activity_dates(user_id) == [NOW.date()]

    def test_with_answers_marks_reset_activity(self, flow, user_id):
        record = self._record(flow, {"feeling_calmer": "Yes"})
        save_completed_reset(user_id, record)

        with get_db() as conn:
            row = conn.execute(
                "SELECT activities FROM daily_activity WHERE user_id = ? AND activity_date = ?",
                (user_id, NOW.date().isoformat()),
            ).fetchone()
        assert sorted(json.loads(row["activities"])) == ["reflection", "reset"]

    def test_invalid_rating(self, flow, user_id):
        record = self._record(flow, {})
        with pytest.raises(ValidationError):
            save_completed_reset(user_id, record, effectiveness=6)
        assert list_reset_logs(user_id) == []

    def test_validate_ratings(self):
        assert validate_ratings(5, 1, 10) == (5, 1, 10)
        assert validate_ratings() == (None, None, None)
        with pytest.raises(ValidationError):
            validate_ratings(stress_before=11)
