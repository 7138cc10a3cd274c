"""Submission of drink photos for asynchronous analysis."""

import base64
import json
import logging
import uuid
from typing import Protocol

from src.services.blob_store import TempBlobStore
from src.services.errors import SubmissionError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}

DEFAULT_MAX_IMAGE_BYTES = 5 * 1024 * 1024


class PendingJobStore(Protocol):
    def create_pending(self, job_id: str, user_id: int) -> object: ...


class AnalysisTrigger(Protocol):
    """Hands a job to the worker; returns an acknowledgment id.

    The acknowledgment only means the work was accepted, not that it finished.
    """

    def __call__(
        self,
        job_id: str,
        *,
        image_base64: str | None = None,
        mime_type: str | None = None,
        blob_key: str | None = None,
    ) -> str: ...


def celery_trigger(
    job_id: str,
    *,
    image_base64: str | None = None,
    mime_type: str | None = None,
    blob_key: str | None = None,
) -> str:
    """Queue the analysis task on Celery."""
    from src.tasks.drink_analysis import analyze_drink_image

    async_result = analyze_drink_image.delay(
        job_id, image_base64=image_base64, mime_type=mime_type, blob_key=blob_key
    )
    return str(async_result.id)


class JobSubmissionClient:
    """Creates the pending job record, then triggers the worker.

    The record is committed before the trigger so a poller can always find the
    job, even when the trigger itself fails afterwards.
    """

    def __init__(
        self,
        job_store: PendingJobStore,
        trigger: AnalysisTrigger = celery_trigger,
        blob_store: TempBlobStore | None = None,
        max_image_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
    ) -> None:
        self.job_store = job_store
        self.trigger = trigger
        self.blob_store = blob_store
        self.max_image_bytes = max_image_bytes

    def validate(self, image_bytes: bytes, mime_type: str | None) -> None:
        """Reject images that must never reach the store or the network.

        Raises:
            ValidationError: On an empty image, an unsupported type or an
                image over the size ceiling.
        """
        if not image_bytes:
            raise ValidationError("No image data provided")
        if mime_type not in ALLOWED_IMAGE_TYPES:
            allowed = ", ".join(sorted(ALLOWED_IMAGE_TYPES))
            raise ValidationError(f"Invalid file type. Allowed types: {allowed}")
        if len(image_bytes) > self.max_image_bytes:
            max_mb = self.max_image_bytes / (1024 * 1024)
            raise ValidationError(f"Image is too large (max {max_mb:g}MB)")

    def submit(self, image_bytes: bytes, mime_type: str | None, user_id: int) -> str:
        """Start an analysis and return its job id without waiting for it.

        Raises:
            ValidationError: If the image is rejected (nothing is created).
            SubmissionError: If the record could not be created (``job_id`` is
                None) or the worker could not be triggered (``job_id`` is set
                and the pending record remains).
        """
        self.validate(image_bytes, mime_type)

        job_id = str(uuid.uuid4())
        try:
            self.job_store.create_pending(job_id, user_id)
        except Exception as e:
            logger.error(f"[Job: {job_id}] Failed to create job record: {e}")
            raise SubmissionError("Failed to initialize analysis task") from e

        image_base64 = base64.b64encode(image_bytes).decode("utf-8")
        blob_key: str | None = None
        try:
            if self.blob_store is not None:
                payload = json.dumps(
                    {"jobId": job_id, "imageBase64": image_base64, "mimeType": mime_type}
                )
                blob_key = self.blob_store.put(payload)
                ack = self.trigger(job_id, blob_key=blob_key)
            else:
                ack = self.trigger(job_id, image_base64=image_base64, mime_type=mime_type)
        except Exception as e:
            logger.error(f"[Job: {job_id}] Failed to trigger analysis worker: {e}")
            if blob_key is not None:
                self._discard_blob(blob_key)
            raise SubmissionError("Failed to start analysis", job_id=job_id) from e

        logger.info(f"[Job: {job_id}] Analysis accepted by worker (ack={ack})")
        return job_id

    def _discard_blob(self, blob_key: str) -> None:
        try:
            self.blob_store.delete(blob_key)
        except Exception as e:
            logger.warning(f"Failed to discard temp blob {blob_key}: {e}")
