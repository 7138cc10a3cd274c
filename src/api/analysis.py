"""Drink analysis API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from src.api.dependencies import get_current_user, get_job_store, get_submission_client
from src.models.user import User
from src.schemas.analysis import AnalysisJobCreateResponse, AnalysisJobResponse
from src.services.analysis_job_store import AnalysisJobStore
from src.services.errors import SubmissionError, ValidationError
from src.services.job_submission import JobSubmissionClient

router = APIRouter(prefix="/api/v1/analysis", tags=["analysis"])


@router.post(
    "/jobs",
    response_model=AnalysisJobCreateResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def create_analysis_job(
    file: Annotated[UploadFile, File(description="Drink photo (JPEG, PNG, GIF, or WebP)")],
    current_user: Annotated[User, Depends(get_current_user)],
    submission_client: Annotated[JobSubmissionClient, Depends(get_submission_client)],
):
    """Upload a drink photo for recognition.

    The photo is analyzed in the background. Poll the job endpoint, or connect
    to the job WebSocket, to learn when the result is ready.
    """
    image_data = await file.read()

    try:
        job_id = submission_client.submit(image_data, file.content_type, current_user.id)
    except ValidationError as e:
        code = (
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
            if len(image_data) > submission_client.max_image_bytes
            else status.HTTP_400_BAD_REQUEST
        )
        raise HTTPException(status_code=code, detail=e.message) from e
    except SubmissionError as e:
        detail = {"message": e.message, "job_id": e.job_id}
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail) from e

    return AnalysisJobCreateResponse(
        id=job_id,
        message="Image uploaded successfully. Processing in background.",
    )


@router.get("/jobs/{job_id}", response_model=AnalysisJobResponse)
def get_analysis_job(
    job_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    job_store: Annotated[AnalysisJobStore, Depends(get_job_store)],
):
    """Get the status and result of an analysis job."""
    job = job_store.get_for_user(job_id, current_user.id)
    if not job:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Analysis job not found",
        )
    return job


@router.get("/jobs", response_model=list[AnalysisJobResponse])
def list_analysis_jobs(
    current_user: Annotated[User, Depends(get_current_user)],
    job_store: Annotated[AnalysisJobStore, Depends(get_job_store)],
    limit: int = 10,
):
    """List recent analysis jobs for the user."""
    return job_store.list_for_user(current_user.id, limit=min(max(limit, 1), 100))
