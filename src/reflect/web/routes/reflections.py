"""Reflection journal endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from reflect.core.insights import reflection_stats
from reflect.db.reflections_repository import (
    PERIOD_DAYS,
    ReflectionEntry,
    list_reflections,
    save_reflection,
)
from reflect.utils.validators import ValidationError
from reflect.web.dependencies import get_user_id
from reflect.web.schemas import (
    ReflectionCreate,
    ReflectionListResponse,
    ReflectionResponse,
    ReflectionStatsResponse,
)

router = APIRouter(prefix="/api/reflections", tags=["reflections"])


def _to_response(entry: ReflectionEntry) -> ReflectionResponse:
    return ReflectionResponse(
        id=entry.id,
        entry_kind=entry.entry_kind,
        data=entry.data,
        created_at=entry.created_at,
    )


@router.get("", response_model=ReflectionListResponse)
async def get_reflections(
    period: str | None = Query(default=None, description="week | month | 90days"),
    limit: int | None = Query(default=None, ge=1, le=500),
    user_id: str = Depends(get_user_id),
) -> ReflectionListResponse:
    """List reflections, newest first."""
    if period is not None and period not in PERIOD_DAYS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown period '{period}' (expected: {', '.join(PERIOD_DAYS)})",
        )

    entries = list_reflections(user_id, period=period, limit=limit)
    return ReflectionListResponse(
        reflections=[_to_response(e) for e in entries],
        count=len(entries),
    )


@router.post("", response_model=ReflectionResponse, status_code=status.HTTP_201_CREATED)
async def create_reflection(
    request: ReflectionCreate,
    user_id: str = Depends(get_user_id),
) -> ReflectionResponse:
    try:
        entry = save_reflection(user_id, request.entry_kind, request.data)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return _to_response(entry)


@router.get("/stats", response_model=ReflectionStatsResponse)
async def get_stats(user_id: str = Depends(get_user_id)) -> ReflectionStatsResponse:
    """Totals, streak and most frequent reflection kinds."""
    stats = reflection_stats(list_reflections(user_id))
    return ReflectionStatsResponse(**stats.to_dict())
