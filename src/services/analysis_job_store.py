"""Persistence for analysis jobs.

The submitting side may only create pending rows and read them back. Status,
result and error fields are written through the ``mark_*`` methods, which
only the worker task calls.
"""

import logging
from typing import Any

from sqlalchemy.orm import Session

from src.models.analysis_job import AnalysisJob
from src.models.enums import AnalysisJobStatus
from src.schemas.analysis import AnalysisJobSnapshot
from src.services.errors import InvalidTransitionError, truncate_message

logger = logging.getLogger(__name__)


class AnalysisJobStore:
    """Database-backed job store keyed by job id."""

    def __init__(self, db: Session, error_message_max_length: int = 500) -> None:
        self.db = db
        self.error_message_max_length = error_message_max_length

    def create_pending(self, job_id: str, user_id: int) -> AnalysisJob:
        """Insert the initial pending row and commit it."""
        job = AnalysisJob(id=job_id, user_id=user_id, status=AnalysisJobStatus.PENDING.value)
        self.db.add(job)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(job)
        logger.info(f"[Job: {job_id}] Created pending analysis job for user {user_id}")
        return job

    def get(self, job_id: str) -> AnalysisJob | None:
        return self.db.query(AnalysisJob).filter(AnalysisJob.id == job_id).first()

    def get_for_user(self, job_id: str, user_id: int) -> AnalysisJob | None:
        """Get a job only if it belongs to ``user_id``."""
        return (
            self.db.query(AnalysisJob)
            .filter(AnalysisJob.id == job_id, AnalysisJob.user_id == user_id)
            .first()
        )

    def list_for_user(self, user_id: int, limit: int = 10) -> list[AnalysisJob]:
        return (
            self.db.query(AnalysisJob)
            .filter(AnalysisJob.user_id == user_id)
            .order_by(AnalysisJob.created_at.desc())
            .limit(limit)
            .all()
        )

    def read_snapshot(self, job_id: str, user_id: int) -> AnalysisJobSnapshot | None:
        """Fresh read of the polled fields, bypassing the session identity map."""
        self.db.expire_all()
        job = self.get_for_user(job_id, user_id)
        if job is None:
            return None
        return AnalysisJobSnapshot.model_validate(job)

    def mark_processing(self, job_id: str) -> AnalysisJob:
        return self._transition(job_id, AnalysisJobStatus.PROCESSING)

    def mark_completed(self, job_id: str, result: dict[str, Any]) -> AnalysisJob:
        return self._transition(job_id, AnalysisJobStatus.COMPLETED, result=result)

    def mark_failed(self, job_id: str, error_message: str) -> AnalysisJob:
        message = truncate_message(error_message, self.error_message_max_length)
        return self._transition(job_id, AnalysisJobStatus.FAILED, error_message=message)

    def _transition(
        self,
        job_id: str,
        target: AnalysisJobStatus,
        *,
        result: dict[str, Any] | None = None,
        error_message: str | None = None,
    ) -> AnalysisJob:
        job = self.get(job_id)
        if job is None:
            raise LookupError(f"Analysis job {job_id} not found")

        current = job.status_enum
        if not current.can_transition_to(target):
            raise InvalidTransitionError(
                f"Job {job_id} cannot move from {current.value} to {target.value}"
            )

        job.status = target.value
        if result is not None:
            job.result = result
        if error_message is not None:
            job.error_message = error_message
        self.db.commit()
        self.db.refresh(job)
        logger.info(f"[Job: {job_id}] {current.value} -> {target.value}")
        return job
