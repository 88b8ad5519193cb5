"""Growth insight endpoints (aggregates, activity logs and nudges)."""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, status

from reflect.core.insights import (
    assignment_load,
    emotion_summary,
    reflection_stats,
    reset_effectiveness,
    streak_days,
)
from reflect.core.pattern_detection import Nudge, PatternDetectionEngine, build_user_data
from reflect.db import activity_repository
from reflect.db.reflections_repository import list_reflections
from reflect.utils.validators import ValidationError
from reflect.web.dependencies import get_user_id
from reflect.web.schemas import (
    AssignmentCreate,
    EmotionLogCreate,
    InsightsSummaryResponse,
    LogCreatedResponse,
    NudgeListResponse,
    NudgeResponse,
    ReflectionStatsResponse,
)

router = APIRouter(prefix="/api/insights", tags=["insights"])

# Pattern engines keep occurrence counts between analyses, one per user
_engines: dict[str, PatternDetectionEngine] = {}


def get_pattern_engine(user_id: str) -> PatternDetectionEngine:
    if user_id not in _engines:
        _engines[user_id] = PatternDetectionEngine()
    return _engines[user_id]


def reset_pattern_engines() -> None:
    """Forget all engines (for testing)."""
    _engines.clear()


def _nudge_response(nudge: Nudge) -> NudgeResponse:
    return NudgeResponse(**nudge.to_dict())


@router.get("/summary", response_model=InsightsSummaryResponse)
async def get_summary(user_id: str = Depends(get_user_id)) -> InsightsSummaryResponse:
    """Reflection, reset, emotion and workload aggregates."""
    stats = reflection_stats(list_reflections(user_id))
    return InsightsSummaryResponse(
        reflections=ReflectionStatsResponse(**stats.to_dict()),
        activity_streak_days=streak_days(
            activity_repository.list_activity_dates(user_id), date.today()
        ),
        resets=reset_effectiveness(activity_repository.list_reset_logs(user_id)),
        emotions=emotion_summary(activity_repository.list_emotion_logs(user_id)),
        assignments=assignment_load(activity_repository.list_assignments(user_id)),
    )


@router.post("/emotions", response_model=LogCreatedResponse, status_code=status.HTTP_201_CREATED)
async def log_emotion(
    request: EmotionLogCreate,
    user_id: str = Depends(get_user_id),
) -> LogCreatedResponse:
    try:
        log = activity_repository.save_emotion_log(
            user_id, request.emotion, request.intensity, context=request.context
        )
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return LogCreatedResponse(id=log.id)


@router.post(
    "/assignments",
    response_model=LogCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def log_assignment(
    request: AssignmentCreate,
    user_id: str = Depends(get_user_id),
) -> LogCreatedResponse:
    try:
        log = activity_repository.save_assignment(
            user_id,
            request.assignment_type,
            request.duration_minutes,
            difficulty=request.difficulty,
            emotion_after=request.emotion_after,
            completed=request.completed,
        )
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return LogCreatedResponse(id=log.id)


@router.get("/nudges", response_model=NudgeListResponse)
async def get_nudges(user_id: str = Depends(get_user_id)) -> NudgeListResponse:
    """Analyze recent activity and return active nudges, high priority first."""
    data = build_user_data(
        activity_repository.list_emotion_logs(user_id),
        activity_repository.list_assignments(user_id),
        activity_repository.list_reset_logs(user_id),
        current_streak=streak_days(activity_repository.list_activity_dates(user_id), date.today()),
    )
    engine = get_pattern_engine(user_id)
    new = engine.analyze(data)

    return NudgeListResponse(
        nudges=[_nudge_response(n) for n in engine.active_nudges()],
        new=len(new),
        recommendations=engine.recommendations(),
    )


@router.delete("/nudges/{nudge_id}", status_code=status.HTTP_204_NO_CONTENT)
async def dismiss_nudge(nudge_id: str, user_id: str = Depends(get_user_id)) -> None:
    if not get_pattern_engine(user_id).dismiss(nudge_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Nudge '{nudge_id}' not found",
        )
