# Interpretations Feature - Router

from typing import Literal, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Query, Request, Response, UploadFile, status

from lab_interpreter.features.interpretations.dependencies import get_interpretation_service
from lab_interpreter.features.interpretations.service import InterpretationService
from lab_interpreter.models.interpretation import InterpretationStatus, RiskLevel
from lab_interpreter.schemas.interpretation import (
    InterpretationDetail,
    InterpretationListResponse,
    MessageResponse,
    RetryResponse,
    StatisticsResponse,
    SubmitResponse,
)


router = APIRouter(prefix="/interpretations", tags=["Interpretations"])


@router.post("", response_model=SubmitResponse, status_code=status.HTTP_202_ACCEPTED)
async def upload_analysis(
    request: Request,
    file: Optional[UploadFile] = File(None),
    patient_id: Optional[str] = Form(None),
    analysis_id: Optional[str] = Form(None),
    notes: Optional[str] = Form(None),
    service: InterpretationService = Depends(get_interpretation_service),
):
    """
    Upload a lab result PDF for interpretation.

    - **file**: PDF document
    - **patient_id**: Patient ID
    - **analysis_id**: Analysis ID
    - **notes**: Optional notes

    Returns immediately; poll GET /interpretations/{id} for the result.
    """
    return await service.submit(
        file=file,
        patient_id=patient_id,
        analysis_id=analysis_id,
        notes=notes,
        ip_address=request.client.host if request.client else None,
    )


@router.get("", response_model=InterpretationListResponse)
async def list_interpretations(
    patient_id: Optional[str] = None,
    analysis_id: Optional[str] = None,
    status: Optional[InterpretationStatus] = None,
    risk_level: Optional[RiskLevel] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: str = Query("created_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    service: InterpretationService = Depends(get_interpretation_service),
):
    """List interpretations with filtering and pagination."""
    return await service.list(
        filters={
            "patient_id": patient_id,
            "analysis_id": analysis_id,
            "status": status,
            "risk_level": risk_level,
        },
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )


# Static route, must stay before /{interpretation_id}
@router.get("/statistics", response_model=StatisticsResponse)
async def get_statistics(service: InterpretationService = Depends(get_interpretation_service)):
    """Counts by status and by risk level, and mean processing time."""
    return await service.statistics()


@router.get("/{interpretation_id}", response_model=InterpretationDetail)
async def get_interpretation(
    interpretation_id: str,
    service: InterpretationService = Depends(get_interpretation_service),
):
    return await service.get(interpretation_id)


@router.post("/{interpretation_id}/retry", response_model=RetryResponse)
async def retry_interpretation(
    interpretation_id: str,
    service: InterpretationService = Depends(get_interpretation_service),
):
    """Re-run the pipeline for a failed interpretation."""
    return await service.retry(interpretation_id)


@router.delete("/{interpretation_id}", response_model=MessageResponse)
async def delete_interpretation(
    interpretation_id: str,
    service: InterpretationService = Depends(get_interpretation_service),
):
    """Delete an interpretation and its PDF."""
    await service.delete(interpretation_id)
    return MessageResponse(message="Interpretation deleted successfully")


@router.get("/{interpretation_id}/download")
async def download_pdf(
    interpretation_id: str,
    service: InterpretationService = Depends(get_interpretation_service),
):
    """Download the original PDF."""
    original_file, content = await service.get_file(interpretation_id)
    filename = quote(original_file.original_name or original_file.filename)
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename*=utf-8''{filename}"},
    )
