"""Certification and CEU endpoints."""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, status

from reflect.core.ceu_tracker import ceu_summary, certification_view
from reflect.db import certifications_repository
from reflect.db.certifications_repository import CEUCompletion, CertificationNotFoundError
from reflect.web.dependencies import get_user_id
from reflect.web.schemas import (
    CEUSummaryResponse,
    CertificationCreate,
    CertificationListResponse,
    CertificationResponse,
    CompletionCreate,
    CompletionListResponse,
    CompletionResponse,
)

router = APIRouter(prefix="/api/certifications", tags=["certifications"])


def _completion_response(c: CEUCompletion) -> CompletionResponse:
    return CompletionResponse(
        id=c.id,
        program_title=c.program_title,
        ceu_awarded=c.ceu_awarded,
        category=c.category,
        program_code=c.program_code,
        ps_subcategory=c.ps_subcategory,
        certification_id=c.certification_id,
        completed_at=c.completed_at,
        certificate_number=c.certificate_number,
    )


@router.get("", response_model=CertificationListResponse)
async def list_certifications(user_id: str = Depends(get_user_id)) -> CertificationListResponse:
    """List certifications, soonest expiration first."""
    today = date.today()
    certs = [
        CertificationResponse(**certification_view(c, today))
        for c in certifications_repository.list_certifications(user_id)
    ]
    return CertificationListResponse(certifications=certs, count=len(certs))


@router.post("", response_model=CertificationResponse, status_code=status.HTTP_201_CREATED)
async def create_certification(
    request: CertificationCreate,
    user_id: str = Depends(get_user_id),
) -> CertificationResponse:
    cert = certifications_repository.add_certification(
        user_id,
        cert_type=request.cert_type,
        cert_number=request.cert_number,
        credential_level=request.credential_level,
        issue_date=request.issue_date.isoformat() if request.issue_date else None,
        expiration_date=request.expiration_date.isoformat() if request.expiration_date else None,
        ceu_hours_required=request.ceu_hours_required,
        ceu_hours_completed=request.ceu_hours_completed,
        notes=request.notes,
    )
    return CertificationResponse(**certification_view(cert, date.today()))


@router.get("/summary", response_model=CEUSummaryResponse)
async def get_summary(user_id: str = Depends(get_user_id)) -> CEUSummaryResponse:
    """Total CEUs earned and active certifications."""
    summary = ceu_summary(
        certifications_repository.list_certifications(user_id),
        certifications_repository.list_completions(user_id),
        date.today(),
    )
    return CEUSummaryResponse(**summary.to_dict())


@router.get("/completions", response_model=CompletionListResponse)
async def list_completions(user_id: str = Depends(get_user_id)) -> CompletionListResponse:
    completions = [
        _completion_response(c) for c in certifications_repository.list_completions(user_id)
    ]
    return CompletionListResponse(completions=completions, count=len(completions))


@router.post(
    "/completions",
    response_model=CompletionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_completion(
    request: CompletionCreate,
    user_id: str = Depends(get_user_id),
) -> CompletionResponse:
    """Record a CEU completion, crediting the linked certification if any."""
    try:
        completion = certifications_repository.add_completion(
            user_id,
            program_title=request.program_title,
            ceu_awarded=request.ceu_awarded,
            category=request.category,
            program_code=request.program_code,
            ps_subcategory=request.ps_subcategory,
            certification_id=request.certification_id,
        )
    except CertificationNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return _completion_response(completion)


@router.delete("/{certification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_certification(
    certification_id: str,
    user_id: str = Depends(get_user_id),
) -> None:
    if not certifications_repository.delete_certification(user_id, certification_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Certification '{certification_id}' not found",
        )
