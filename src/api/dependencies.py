"""FastAPI dependencies for authentication, database and services."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from src.config import Settings, get_settings
from src.database import get_db
from src.models.user import User
from src.services.analysis_job_store import AnalysisJobStore
from src.services.auth import get_user_from_token
from src.services.blob_store import TempBlobStore
from src.services.intake_service import IntakeService
from src.services.job_submission import JobSubmissionClient, celery_trigger

security = HTTPBearer()


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> User:
    """Get the current authenticated user from JWT token."""
    user = get_user_from_token(db, credentials.credentials)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_blob_store(request: Request) -> TempBlobStore | None:
    """Temp blob store created at startup, or None when disabled."""
    return getattr(request.app.state, "blob_store", None)


def get_intake_service(
    db: Annotated[Session, Depends(get_db)],
) -> IntakeService:
    """Get intake service with dependencies."""
    return IntakeService(db)


def get_job_store(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> AnalysisJobStore:
    """Get the analysis job store."""
    return AnalysisJobStore(db, error_message_max_length=settings.error_message_max_length)


def get_submission_client(
    job_store: Annotated[AnalysisJobStore, Depends(get_job_store)],
    blob_store: Annotated[TempBlobStore | None, Depends(get_blob_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> JobSubmissionClient:
    """Get a submission client wired to Celery and the optional blob store."""
    return JobSubmissionClient(
        job_store,
        trigger=celery_trigger,
        blob_store=blob_store,
        max_image_bytes=settings.max_image_bytes,
    )
