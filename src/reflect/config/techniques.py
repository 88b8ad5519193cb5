"""Reset technique catalog loader.

Loads guided reset techniques from data/config/techniques_v1.yaml.

Usage:
    from reflect.config.techniques import get_technique, list_techniques

    technique = get_technique("breathing-practice")
    all_techniques = list_techniques()
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
TECHNIQUES_FILE = Path("data/config/techniques_v1.yaml")

# Pace key -> (inhale, hold-in, exhale, hold-out) seconds
PACE_TIMINGS: dict[str, tuple[int, int, int, int]] = {
    "3": (3, 3, 3, 3),
    "4": (4, 4, 4, 4),
    "natural": (4, 0, 6, 0),
    "no-count": (3, 0, 3, 0),
}

# Duration key -> seconds
DURATION_SECONDS: dict[str, int] = {
    "30s": 30,
    "1m": 60,
    "2m": 120,
    "4m": 240,
}

CATEGORIES = ("breathwork", "movement", "mindfulness", "boundaries", "nutrition", "sleep")


@dataclass
class Question:
    """A multiple-choice reflection question asked after practice."""

    id: str
    prompt: str
    options: list[str] = field(default_factory=list)


@dataclass
class Technique:
    """A guided reset technique (setup -> practice -> reflection)."""

    id: str
    name: str
    category: str
    description: str = ""
    paces: list[str] = field(default_factory=lambda: list(PACE_TIMINGS))
    default_pace: str = "4"
    durations: list[str] = field(default_factory=lambda: list(DURATION_SECONDS))
    default_duration: str = "2m"
    questions: list[Question] = field(default_factory=list)

    def get_question(self, question_id: str) -> Question | None:
        """Get a reflection question by ID."""
        for question in self.questions:
            if question.id == question_id:
                return question
        return None


class UnknownTechniqueError(Exception):
    """Raised when a technique ID is not in the catalog."""

    def __init__(self, technique_id: str):
        self.technique_id = technique_id
        super().__init__(f"Technique '{technique_id}' not found")


# Module-level cache
_cached_techniques: dict[str, Technique] | None = None


def _get_default_techniques() -> dict[str, Technique]:
    """Get default techniques when config file is missing."""
    return {
        "breathing-practice": Technique(
            id="breathing-practice",
            name="Breathing Practice",
            category="breathwork",
            description="Paced breathing to settle the nervous system between assignments.",
            questions=[
                Question(
                    id="feeling_calmer",
                    prompt="Do you feel calmer?",
                    options=["Yes", "Somewhat", "About the same"],
                ),
                Question(
                    id="pace_feeling",
                    prompt="How did the pace feel?",
                    options=["Just right", "Too slow", "Too fast", "Prefer no counting"],
                ),
                Question(
                    id="next_time",
                    prompt="Next time?",
                    options=["Same is perfect", "Try shorter", "Try longer"],
                ),
            ],
        ),
    }


def _parse_question(qid: str, data: dict) -> Question:
    return Question(
        id=data.get("id", qid),
        prompt=data.get("prompt", ""),
        options=list(data.get("options", [])),
    )


def _parse_technique(tid: str, data: dict) -> Technique:
    """Parse a single technique entry from YAML data."""
    category = data.get("category", "mindfulness")
    if category not in CATEGORIES:
        logger.warning("technique_unknown_category", technique_id=tid, category=category)

    questions_data = data.get("questions", {}) or {}
    questions = [_parse_question(qid, q) for qid, q in questions_data.items()]

    paces = [str(p) for p in data.get("paces", list(PACE_TIMINGS))]
    durations = [str(d) for d in data.get("durations", list(DURATION_SECONDS))]

    return Technique(
        id=data.get("id", tid),
        name=data.get("name", tid),
        category=category,
        description=data.get("description", ""),
        paces=[p for p in paces if p in PACE_TIMINGS],
        default_pace=str(data.get("default_pace", "4")),
        durations=[d for d in durations if d in DURATION_SECONDS],
        default_duration=str(data.get("default_duration", "2m")),
        questions=questions,
    )


def load_techniques(force_reload: bool = False) -> dict[str, Technique]:
    """Load all techniques from config file.

    Args:
        force_reload: If True, ignore cache and reload from file.

    Returns:
        Dictionary mapping technique ID to Technique object.
    """
    global _cached_techniques

    if _cached_techniques is not None and not force_reload:
        return _cached_techniques

    if not TECHNIQUES_FILE.exists():
        logger.warning("techniques_file_not_found", path=str(TECHNIQUES_FILE))
        _cached_techniques = _get_default_techniques()
        return _cached_techniques

    try:
        data = yaml.safe_load(TECHNIQUES_FILE.read_text(encoding="utf-8")) or {}
        techniques_data = data.get("techniques", {})

        _cached_techniques = {
            tid: _parse_technique(tid, tdata) for tid, tdata in techniques_data.items()
        }

        logger.debug("loaded_techniques", count=len(_cached_techniques))
        return _cached_techniques

    except (yaml.YAMLError, AttributeError, TypeError) as e:
        logger.error("failed_to_load_techniques", error=str(e))
        _cached_techniques = _get_default_techniques()
        return _cached_techniques


def get_technique(technique_id: str) -> Technique | None:
    """Get a specific technique by ID.

    Returns:
        Technique object or None if not found.
    """
    return load_techniques().get(technique_id)


def require_technique(technique_id: str) -> Technique:
    """Get a technique by ID or raise UnknownTechniqueError."""
    technique = get_technique(technique_id)
    if technique is None:
        raise UnknownTechniqueError(technique_id)
    return technique


def list_techniques() -> list[Technique]:
    """List all available techniques."""
    return list(load_techniques().values())


def clear_techniques_cache() -> None:
    """Clear the techniques cache.

    Useful for testing or when the catalog is modified at runtime.
    """
    global _cached_techniques
    _cached_techniques = None
