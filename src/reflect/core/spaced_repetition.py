"""Glossary spaced-repetition scheduler.

Responsibilities:
- Initial schedule for new terms (first review tomorrow)
- Proficiency update after each review, clamped to [1, 5]
- Next review date: 2 ** proficiency whole days after a correct answer,
  1 day after a miss
- Due-term selection, statistics, search and domain filtering

The pure functions take `today`/`now` explicitly; the service functions
(`add_term`, `review_term`) wire them to the glossary repository.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta, timezone

import structlog

from reflect.config.app_config import ReviewConfig, load_app_config
from reflect.db import glossary_repository
from reflect.db.database import new_id
from reflect.db.glossary_repository import GlossaryTerm
from reflect.utils.validators import ValidationError

logger = structlog.get_logger(__name__)

# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class ReviewOutcome:
    """Result of recording one review."""

    term: GlossaryTerm
    correct: bool
    days_until_next: int


@dataclass
class GlossaryStats:
    """Summary counts for a user's glossary."""

    total: int
    due_for_review: int
    mastered: int

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "due_for_review": self.due_for_review,
            "mastered": self.mastered,
        }


class TermNotFoundError(Exception):
    """Raised when a glossary term does not exist for the user."""

    def __init__(self, term_id: str):
        self.term_id = term_id
        super().__init__(f"Glossary term '{term_id}' not found")


# =============================================================================
# SCHEDULING
# =============================================================================


def _review_config(config: ReviewConfig | None) -> ReviewConfig:
    return config if config is not None else load_app_config().review


def new_term_schedule(today: date, config: ReviewConfig | None = None) -> dict:
    """Initial review fields for a freshly added term."""
    cfg = _review_config(config)
    return {
        "proficiency_level": cfg.min_proficiency,
        "confidence_score": cfg.initial_confidence,
        "next_review_date": (today + timedelta(days=1)).isoformat(),
        "review_count": 0,
        "correct_count": 0,
        "last_reviewed": None,
    }


def next_interval_days(proficiency: float, correct: bool) -> int:
    """Days until the next review.

    Correct answers wait 2 ** proficiency days, truncated to whole days
    (2 ** 2.5 -> 5). Misses come back the next day.
    """
    if not correct:
        return 1
    return int(math.floor(2 ** proficiency))


def apply_review(
    term: GlossaryTerm,
    correct: bool,
    today: date,
    now: datetime | None = None,
    config: ReviewConfig | None = None,
) -> ReviewOutcome:
    """Apply one review result to a term.

    Args:
        term: Term being reviewed (not mutated)
        correct: Whether the user recalled the term
        today: Calendar day the review happens on
        now: Review timestamp (defaults to current UTC time)
        config: Review settings (defaults to app config)

    Returns:
        ReviewOutcome with the updated term
    """
    cfg = _review_config(config)
    now = now or datetime.now(timezone.utc)

    review_count = term.review_count + 1
    correct_count = term.correct_count + (1 if correct else 0)

    if correct:
        proficiency = min(cfg.max_proficiency, term.proficiency_level + cfg.proficiency_step)
    else:
        proficiency = max(cfg.min_proficiency, term.proficiency_level - cfg.proficiency_step)

    days = next_interval_days(proficiency, correct)

    updated = replace(
        term,
        review_count=review_count,
        correct_count=correct_count,
        proficiency_level=proficiency,
        confidence_score=correct_count / review_count,
        last_reviewed=now.isoformat(),
        next_review_date=(today + timedelta(days=days)).isoformat(),
    )

    return ReviewOutcome(term=updated, correct=correct, days_until_next=days)


def is_due(term: GlossaryTerm, today: date) -> bool:
    """Whether a term should be reviewed today. Unscheduled terms are due."""
    if not term.next_review_date:
        return True
    return term.next_review_date <= today.isoformat()


def due_terms(terms: list[GlossaryTerm], today: date) -> list[GlossaryTerm]:
    """Terms due for review, in input order."""
    return [t for t in terms if is_due(t, today)]


def compute_stats(
    terms: list[GlossaryTerm],
    today: date,
    config: ReviewConfig | None = None,
) -> GlossaryStats:
    """Total, due and mastered counts."""
    cfg = _review_config(config)
    return GlossaryStats(
        total=len(terms),
        due_for_review=len(due_terms(terms, today)),
        mastered=sum(1 for t in terms if t.proficiency_level >= cfg.mastered_threshold),
    )


def filter_terms(
    terms: list[GlossaryTerm],
    query: str | None = None,
    domain: str | None = None,
) -> list[GlossaryTerm]:
    """Search term/definition/context and filter by domain ("all" matches any)."""
    needle = (query or "").strip().lower()

    def matches(term: GlossaryTerm) -> bool:
        if needle:
            haystacks = (term.term, term.definition, term.context or "")
            if not any(needle in h.lower() for h in haystacks):
                return False
        if domain and domain != "all" and term.domain != domain:
            return False
        return True

    return [t for t in terms if matches(t)]


def list_domains(terms: list[GlossaryTerm]) -> list[str]:
    """Distinct non-empty domains, sorted."""
    return sorted({t.domain for t in terms if t.domain})


def proficiency_label(level: float) -> str:
    if level >= 4:
        return "Mastered"
    if level >= 3:
        return "Proficient"
    if level >= 2:
        return "Learning"
    return "New"


def accuracy_percent(term: GlossaryTerm) -> int | None:
    """Rounded percentage of correct reviews, None before the first review."""
    if term.review_count <= 0:
        return None
    return round(term.correct_count / term.review_count * 100)


# =============================================================================
# SERVICE FUNCTIONS
# =============================================================================


def _optional(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def add_term(
    user_id: str,
    term: str,
    definition: str,
    context: str | None = None,
    domain: str | None = None,
    category: str | None = None,
    source: str | None = None,
    today: date | None = None,
) -> GlossaryTerm:
    """Create and store a new glossary term.

    Raises:
        ValidationError: If term or definition is blank
    """
    term_text = (term or "").strip()
    definition_text = (definition or "").strip()
    if not term_text:
        raise ValidationError("term", "Term is required")
    if not definition_text:
        raise ValidationError("definition", "Definition is required")

    today = today or date.today()
    record = GlossaryTerm(
        id=new_id(),
        user_id=user_id,
        term=term_text,
        definition=definition_text,
        context=_optional(context),
        domain=_optional(domain),
        category=_optional(category),
        source=_optional(source),
        created_at=datetime.now(timezone.utc).isoformat(),
        **new_term_schedule(today),
    )
    glossary_repository.insert_term(record)

    logger.info("glossary.term_added", user_id=user_id, term_id=record.id)
    return record


def review_term(
    user_id: str,
    term_id: str,
    correct: bool,
    today: date | None = None,
) -> ReviewOutcome:
    """Record a review for a stored term.

    Raises:
        TermNotFoundError: If the term does not exist for this user
    """
    term = glossary_repository.get_term(user_id, term_id)
    if term is None:
        raise TermNotFoundError(term_id)

    outcome = apply_review(term, correct, today or date.today())
    glossary_repository.update_term(outcome.term)

    logger.info(
        "glossary.term_reviewed",
        user_id=user_id,
        term_id=term_id,
        correct=correct,
        proficiency=outcome.term.proficiency_level,
        next_review_date=outcome.term.next_review_date,
    )
    return outcome
