"""Reset technique catalog endpoints."""

from fastapi import APIRouter, HTTPException, status

from reflect.config.techniques import Technique, get_technique, list_techniques
from reflect.web.schemas import QuestionResponse, TechniqueListResponse, TechniqueResponse

router = APIRouter(prefix="/api/techniques", tags=["techniques"])


def technique_to_response(t: Technique) -> TechniqueResponse:
    return TechniqueResponse(
        id=t.id,
        name=t.name,
        category=t.category,
        description=t.description,
        paces=t.paces,
        default_pace=t.default_pace,
        durations=t.durations,
        default_duration=t.default_duration,
        questions=[
            QuestionResponse(id=q.id, prompt=q.prompt, options=q.options) for q in t.questions
        ],
    )


@router.get("", response_model=TechniqueListResponse)
async def get_techniques() -> TechniqueListResponse:
    """List available reset techniques."""
    techniques = [technique_to_response(t) for t in list_techniques()]
    return TechniqueListResponse(techniques=techniques, count=len(techniques))


@router.get("/{technique_id}", response_model=TechniqueResponse)
async def get_technique_by_id(technique_id: str) -> TechniqueResponse:
    technique = get_technique(technique_id)

    if technique is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Technique '{technique_id}' not found",
        )

    return technique_to_response(technique)
