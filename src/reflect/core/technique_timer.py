"""Timed reset flow (setup -> practice -> reflection).

A TechniqueFlow is driven by one-second ticks. During practice it counts
elapsed seconds, cycles the breath pattern for the chosen pace, and moves to
reflection when the chosen duration is reached. Submitting the reflection
answers completes the flow and yields a ResetRecord for persistence.

Phase transitions:
    SETUP --start--> PRACTICE --tick(duration)/finish_early--> REFLECTION
    PRACTICE --change_pace--> PACE_CHANGE --continue_practice--> PRACTICE
    REFLECTION --submit_reflection (or build_record + complete)--> COMPLETED
    any --restart--> SETUP
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import structlog

from reflect.config.techniques import DURATION_SECONDS, PACE_TIMINGS, Technique
from reflect.core import preferences
from reflect.db import activity_repository, reflections_repository
from reflect.utils.validators import require, validate_intensity, validate_number

logger = structlog.get_logger(__name__)


class FlowPhase(str, Enum):
    SETUP = "setup"
    PRACTICE = "practice"
    PACE_CHANGE = "pace-change"
    REFLECTION = "reflection"
    COMPLETED = "completed"


class BreathPhase(str, Enum):
    INHALE = "inhale"
    HOLD_IN = "hold-in"
    EXHALE = "exhale"
    HOLD_OUT = "hold-out"


BREATH_MESSAGES = {
    BreathPhase.INHALE: "Breathe in...",
    BreathPhase.HOLD_IN: "Hold gently...",
    BreathPhase.EXHALE: "Breathe out slowly...",
    BreathPhase.HOLD_OUT: "Rest...",
}


class TechniqueStateError(Exception):
    """Raised on an illegal phase transition or invalid reflection answers."""

    pass


@dataclass(frozen=True)
class BreathPattern:
    """Seconds spent in each breath segment; zero-length segments are skipped."""

    inhale: int
    hold_in: int
    exhale: int
    hold_out: int

    @classmethod
    def for_pace(cls, pace: str) -> BreathPattern:
        if pace not in PACE_TIMINGS:
            raise TechniqueStateError(f"Unknown pace '{pace}'")
        return cls(*PACE_TIMINGS[pace])

    @property
    def segments(self) -> list[tuple[BreathPhase, int]]:
        raw = [
            (BreathPhase.INHALE, self.inhale),
            (BreathPhase.HOLD_IN, self.hold_in),
            (BreathPhase.EXHALE, self.exhale),
            (BreathPhase.HOLD_OUT, self.hold_out),
        ]
        return [(phase, secs) for phase, secs in raw if secs > 0]

    @property
    def cycle_seconds(self) -> int:
        return sum(secs for _, secs in self.segments)

    def phase_at(self, elapsed: int) -> BreathPhase:
        """Breath segment active `elapsed` seconds into practice."""
        position = elapsed % self.cycle_seconds
        for phase, secs in self.segments:
            if position < secs:
                return phase
            position -= secs
        return self.segments[-1][0]

    def cycles_completed(self, elapsed: int) -> int:
        return elapsed // self.cycle_seconds


@dataclass
class FlowEvent:
    """Something observable that happened during a tick or transition."""

    event_type: str  # tick | breath_phase | phase_changed
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"event_type": self.event_type, "data": self.data}


@dataclass
class ResetRecord:
    """Completed reset, ready to be stored."""

    technique_id: str
    category: str
    duration_key: str
    pace: str
    elapsed_seconds: int
    answers: dict[str, str]
    completed_at: str
    finished_early: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "technique_id": self.technique_id,
            "category": self.category,
            "duration_key": self.duration_key,
            "pace": self.pace,
            "elapsed_seconds": self.elapsed_seconds,
            "answers": self.answers,
            "completed_at": self.completed_at,
            "finished_early": self.finished_early,
        }


def format_time(seconds: int) -> str:
    """Format seconds as m:ss."""
    mins, secs = divmod(max(0, int(seconds)), 60)
    return f"{mins}:{secs:02d}"


class TechniqueFlow:
    """State machine for one guided reset."""

    def __init__(
        self,
        technique: Technique,
        duration_key: str | None = None,
        pace: str | None = None,
    ):
        self.technique = technique
        self.duration_key = duration_key or technique.default_duration
        self.pace = pace or technique.default_pace
        self._check_duration(self.duration_key)
        self._check_pace(self.pace)

        self.phase = FlowPhase.SETUP
        self.running = False
        self.elapsed = 0
        self.finished_early = False
        self.answers: dict[str, str] = {}
        self.record: ResetRecord | None = None

    # -------------------------------------------------------------------------
    # Validation helpers
    # -------------------------------------------------------------------------

    def _check_duration(self, duration_key: str) -> None:
        if duration_key not in DURATION_SECONDS:
            raise TechniqueStateError(f"Unknown duration '{duration_key}'")
        if self.technique.durations and duration_key not in self.technique.durations:
            raise TechniqueStateError(
                f"Duration '{duration_key}' not offered by '{self.technique.id}'"
            )

    def _check_pace(self, pace: str) -> None:
        if pace not in PACE_TIMINGS:
            raise TechniqueStateError(f"Unknown pace '{pace}'")
        if self.technique.paces and pace not in self.technique.paces:
            raise TechniqueStateError(f"Pace '{pace}' not offered by '{self.technique.id}'")

    def _require_phase(self, *phases: FlowPhase) -> None:
        if self.phase not in phases:
            allowed = ", ".join(p.value for p in phases)
            raise TechniqueStateError(
                f"Cannot do that during '{self.phase.value}' (expected: {allowed})"
            )

    def _transition(self, phase: FlowPhase) -> FlowEvent:
        previous = self.phase
        self.phase = phase
        return FlowEvent(
            "phase_changed",
            {"from": previous.value, "to": phase.value, "elapsed": self.elapsed},
        )

    # -------------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------------

    @property
    def duration_seconds(self) -> int:
        return DURATION_SECONDS[self.duration_key]

    @property
    def pattern(self) -> BreathPattern:
        return BreathPattern.for_pace(self.pace)

    @property
    def remaining_seconds(self) -> int:
        return max(0, self.duration_seconds - self.elapsed)

    @property
    def progress_percent(self) -> float:
        return round(min(100.0, self.elapsed / self.duration_seconds * 100), 1)

    @property
    def breath_phase(self) -> BreathPhase:
        return self.pattern.phase_at(self.elapsed)

    @property
    def breath_cycle(self) -> int:
        return self.pattern.cycles_completed(self.elapsed)

    @property
    def breath_message(self) -> str:
        return BREATH_MESSAGES[self.breath_phase]

    def to_dict(self) -> dict[str, Any]:
        return {
            "technique_id": self.technique.id,
            "phase": self.phase.value,
            "running": self.running,
            "duration_key": self.duration_key,
            "duration_seconds": self.duration_seconds,
            "pace": self.pace,
            "elapsed": self.elapsed,
            "remaining": self.remaining_seconds,
            "remaining_display": format_time(self.remaining_seconds),
            "progress_percent": self.progress_percent,
            "breath_phase": self.breath_phase.value,
            "breath_cycle": self.breath_cycle,
            "breath_message": self.breath_message,
        }

    # -------------------------------------------------------------------------
    # Setup phase
    # -------------------------------------------------------------------------

    def configure(self, duration_key: str | None = None, pace: str | None = None) -> None:
        """Change duration/pace before starting."""
        self._require_phase(FlowPhase.SETUP)
        if duration_key is not None:
            self._check_duration(duration_key)
            self.duration_key = duration_key
        if pace is not None:
            self._check_pace(pace)
            self.pace = pace

    def start(self) -> list[FlowEvent]:
        self._require_phase(FlowPhase.SETUP)
        self.elapsed = 0
        self.finished_early = False
        self.running = True
        return [
            self._transition(FlowPhase.PRACTICE),
            FlowEvent("breath_phase", {"breath_phase": self.breath_phase.value, "cycle": 0}),
        ]

    # -------------------------------------------------------------------------
    # Practice phase
    # -------------------------------------------------------------------------

    def pause(self) -> None:
        self._require_phase(FlowPhase.PRACTICE)
        self.running = False

    def resume(self) -> None:
        self._require_phase(FlowPhase.PRACTICE)
        self.running = True

    def change_pace(self) -> list[FlowEvent]:
        self._require_phase(FlowPhase.PRACTICE)
        self.running = False
        return [self._transition(FlowPhase.PACE_CHANGE)]

    def continue_practice(self, pace: str | None = None) -> list[FlowEvent]:
        self._require_phase(FlowPhase.PACE_CHANGE)
        if pace is not None:
            self._check_pace(pace)
            self.pace = pace
        self.running = True
        return [self._transition(FlowPhase.PRACTICE)]

    def tick(self, seconds: int = 1) -> list[FlowEvent]:
        """Advance the practice clock.

        Ticks outside a running practice are ignored (an empty list is
        returned), matching a timer that has been cleared.
        """
        events: list[FlowEvent] = []
        if self.phase is not FlowPhase.PRACTICE or not self.running:
            return events

        for _ in range(max(0, seconds)):
            previous_breath = self.breath_phase
            self.elapsed += 1

            if self.elapsed >= self.duration_seconds:
                self.elapsed = self.duration_seconds
                self.running = False
                events.append(FlowEvent("tick", {"elapsed": self.elapsed, "remaining": 0}))
                events.append(self._transition(FlowPhase.REFLECTION))
                break

            events.append(
                FlowEvent(
                    "tick",
                    {"elapsed": self.elapsed, "remaining": self.remaining_seconds},
                )
            )
            if self.breath_phase is not previous_breath:
                events.append(
                    FlowEvent(
                        "breath_phase",
                        {"breath_phase": self.breath_phase.value, "cycle": self.breath_cycle},
                    )
                )

        return events

    def finish_early(self) -> list[FlowEvent]:
        self._require_phase(FlowPhase.PRACTICE, FlowPhase.PACE_CHANGE)
        self.running = False
        self.finished_early = True
        return [self._transition(FlowPhase.REFLECTION)]

    # -------------------------------------------------------------------------
    # Reflection phase
    # -------------------------------------------------------------------------

    def build_record(
        self,
        answers: dict[str, str],
        now: datetime | None = None,
    ) -> ResetRecord:
        """Validate answers against the technique's questions; the phase is unchanged."""
        self._require_phase(FlowPhase.REFLECTION)

        for question_id, answer in answers.items():
            question = self.technique.get_question(question_id)
            if question is None:
                raise TechniqueStateError(f"Unknown reflection question '{question_id}'")
            if question.options and answer not in question.options:
                raise TechniqueStateError(
                    f"'{answer}' is not an option for '{question_id}'"
                )

        return ResetRecord(
            technique_id=self.technique.id,
            category=self.technique.category,
            duration_key=self.duration_key,
            pace=self.pace,
            elapsed_seconds=self.elapsed,
            answers=dict(answers),
            completed_at=(now or datetime.now(timezone.utc)).isoformat(),
            finished_early=self.finished_early,
        )

    def complete(self, record: ResetRecord) -> FlowEvent:
        """Enter COMPLETED with a record from build_record."""
        self._require_phase(FlowPhase.REFLECTION)
        self.answers = dict(record.answers)
        self.record = record
        return self._transition(FlowPhase.COMPLETED)

    def submit_reflection(
        self,
        answers: dict[str, str],
        now: datetime | None = None,
    ) -> ResetRecord:
        """Validate answers and complete."""
        record = self.build_record(answers, now=now)
        self.complete(record)
        return record

    def restart(self) -> list[FlowEvent]:
        """Go back to setup ("breathe again"), clearing progress and answers."""
        self.running = False
        self.elapsed = 0
        self.finished_early = False
        self.answers = {}
        self.record = None
        return [self._transition(FlowPhase.SETUP)]


# =============================================================================
# SERVICE FUNCTIONS
# =============================================================================


def validate_ratings(
    effectiveness: int | None = None,
    stress_before: int | None = None,
    stress_after: int | None = None,
) -> tuple[int | None, int | None, int | None]:
    """Check the optional post-reset ratings (effectiveness 1-5, stress 1-10)."""
    if effectiveness is not None:
        effectiveness = require(validate_intensity(effectiveness), "effectiveness")
    if stress_before is not None:
        stress_before = require(validate_number(stress_before, 1, 10, integer=True), "stress_before")
    if stress_after is not None:
        stress_after = require(validate_number(stress_after, 1, 10, integer=True), "stress_after")
    return effectiveness, stress_before, stress_after


def save_completed_reset(
    user_id: str,
    record: ResetRecord,
    effectiveness: int | None = None,
    stress_before: int | None = None,
    stress_after: int | None = None,
) -> dict[str, Any]:
    """Persist a completed reset.

    Writes the stress_reset_logs row, a "reset" reflection entry with the
    answers, today's activity marker and the user's preferences/history.

    Raises:
        ValidationError: If effectiveness is outside 1-5 or a stress level
            is outside 1-10
    """
    effectiveness, stress_before, stress_after = validate_ratings(
        effectiveness, stress_before, stress_after
    )

    log = activity_repository.save_reset_log(
        user_id=user_id,
        tool_type=record.technique_id,
        category=record.category,
        duration_seconds=record.elapsed_seconds,
        stress_level_before=stress_before,
        stress_level_after=stress_after,
        effectiveness=effectiveness,
        created_at=record.completed_at,
    )

    completed_at = datetime.fromisoformat(record.completed_at)
    entry_id = None
    if record.answers:
        entry = reflections_repository.save_reflection(
            user_id,
            "reset",
            {"technique_id": record.technique_id, **record.answers},
            created_at=completed_at,
        )
        entry_id = entry.id
    activity_repository.record_activity(user_id, completed_at.date(), "reset")

    preferences.record_session(user_id, record)

    logger.info(
        "resets.completed",
        user_id=user_id,
        technique_id=record.technique_id,
        elapsed=record.elapsed_seconds,
        log_id=log.id,
    )
    return {"reset_log_id": log.id, "reflection_id": entry_id}
