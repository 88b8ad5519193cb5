"""Glossary endpoints (terms, spaced-repetition review, stats)."""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status

from reflect.core.spaced_repetition import (
    TermNotFoundError,
    accuracy_percent,
    add_term,
    compute_stats,
    due_terms,
    filter_terms,
    list_domains,
    proficiency_label,
    review_term,
)
from reflect.db import glossary_repository
from reflect.db.glossary_repository import GlossaryTerm
from reflect.utils.validators import ValidationError
from reflect.web.dependencies import get_user_id
from reflect.web.schemas import (
    GlossaryListResponse,
    GlossaryStatsResponse,
    GlossaryTermCreate,
    GlossaryTermResponse,
    ReviewRequest,
    ReviewResponse,
)

router = APIRouter(prefix="/api/glossary", tags=["glossary"])


def _to_response(term: GlossaryTerm) -> GlossaryTermResponse:
    return GlossaryTermResponse(
        id=term.id,
        term=term.term,
        definition=term.definition,
        context=term.context,
        domain=term.domain,
        category=term.category,
        source=term.source,
        proficiency_level=term.proficiency_level,
        proficiency_label=proficiency_label(term.proficiency_level),
        confidence_score=term.confidence_score,
        accuracy_percent=accuracy_percent(term),
        last_reviewed=term.last_reviewed,
        next_review_date=term.next_review_date,
        review_count=term.review_count,
        correct_count=term.correct_count,
        created_at=term.created_at,
    )


@router.get("", response_model=GlossaryListResponse)
async def list_terms(
    q: str | None = Query(default=None, description="Search term, definition and context"),
    domain: str | None = Query(default=None, description="Domain filter ('all' for any)"),
    user_id: str = Depends(get_user_id),
) -> GlossaryListResponse:
    """List the user's glossary, newest first."""
    terms = glossary_repository.list_terms(user_id)
    matched = filter_terms(terms, query=q, domain=domain)
    return GlossaryListResponse(
        terms=[_to_response(t) for t in matched],
        count=len(matched),
        domains=list_domains(terms),
    )


@router.post("", response_model=GlossaryTermResponse, status_code=status.HTTP_201_CREATED)
async def create_term(
    request: GlossaryTermCreate,
    user_id: str = Depends(get_user_id),
) -> GlossaryTermResponse:
    """Add a term; its first review is scheduled for tomorrow."""
    try:
        term = add_term(
            user_id,
            term=request.term,
            definition=request.definition,
            context=request.context,
            domain=request.domain,
            category=request.category,
            source=request.source,
        )
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return _to_response(term)


@router.get("/due", response_model=GlossaryListResponse)
async def list_due(user_id: str = Depends(get_user_id)) -> GlossaryListResponse:
    """Terms due for review today."""
    terms = glossary_repository.list_terms(user_id)
    due = due_terms(terms, date.today())
    return GlossaryListResponse(
        terms=[_to_response(t) for t in due],
        count=len(due),
        domains=list_domains(terms),
    )


@router.get("/stats", response_model=GlossaryStatsResponse)
async def glossary_stats(user_id: str = Depends(get_user_id)) -> GlossaryStatsResponse:
    stats = compute_stats(glossary_repository.list_terms(user_id), date.today())
    return GlossaryStatsResponse(**stats.to_dict())


@router.get("/{term_id}", response_model=GlossaryTermResponse)
async def get_term(term_id: str, user_id: str = Depends(get_user_id)) -> GlossaryTermResponse:
    term = glossary_repository.get_term(user_id, term_id)
    if term is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Glossary term '{term_id}' not found",
        )
    return _to_response(term)


@router.delete("/{term_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_term(term_id: str, user_id: str = Depends(get_user_id)) -> None:
    if not glossary_repository.delete_term(user_id, term_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Glossary term '{term_id}' not found",
        )


@router.post("/{term_id}/review", response_model=ReviewResponse)
async def review(
    term_id: str,
    request: ReviewRequest,
    user_id: str = Depends(get_user_id),
) -> ReviewResponse:
    """Record whether the user recalled the term and reschedule it."""
    try:
        outcome = review_term(user_id, term_id, request.correct)
    except TermNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return ReviewResponse(
        term=_to_response(outcome.term),
        correct=outcome.correct,
        days_until_next=outcome.days_until_next,
    )
