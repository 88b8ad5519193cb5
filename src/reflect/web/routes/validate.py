"""Form validation endpoint.

Lets clients run the same field checks the service applies on write.
"""

from fastapi import APIRouter, HTTPException, status

from reflect.utils.validators import VALIDATORS
from reflect.web.schemas import ValidateRequest, ValidateResponse

router = APIRouter(prefix="/api/validate", tags=["validate"])


@router.post("/{field}", response_model=ValidateResponse)
async def validate_field(field: str, request: ValidateRequest) -> ValidateResponse:
    validator = VALIDATORS.get(field)
    if validator is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No validator for '{field}' (available: {', '.join(sorted(VALIDATORS))})",
        )

    result = validator(request.value)
    return ValidateResponse(
        field=field,
        valid=result.valid,
        error=result.error,
        value=result.value if result.valid and field != "password" else None,
        strength=result.strength,
    )
