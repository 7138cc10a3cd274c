"""Celery task that analyzes a drink photo and writes the outcome to its job."""

import asyncio
import json
import logging

from src.celery_app import app as celery_app
from src.config import get_settings
from src.database import SessionLocal
from src.services.analysis_job_store import AnalysisJobStore
from src.services.analysis_parser import AnalysisResponseParser
from src.services.blob_store import TempBlobStore
from src.services.errors import InvalidTransitionError, WorkerError, truncate_message
from src.services.vision_service import VisionService

logger = logging.getLogger(__name__)


def run_analysis(
    store: AnalysisJobStore,
    job_id: str,
    image_base64: str | None,
    mime_type: str | None,
    vision: VisionService,
    parser: AnalysisResponseParser,
) -> dict:
    """Drive one job from pending to a terminal state.

    Every failure after the job is marked processing ends in ``failed`` with
    a bounded error message, so the job never stays non-terminal because of
    an error raised here.
    """
    try:
        store.mark_processing(job_id)
    except LookupError:
        logger.error(f"[Job: {job_id}] Analysis job not found")
        return {"error": "Job not found"}
    except InvalidTransitionError as e:
        # Duplicate delivery of a job another worker already picked up
        logger.warning(f"[Job: {job_id}] Skipping: {e}")
        return {"error": str(e)}

    logger.info(f"[Job: {job_id}] Starting background analysis...")
    try:
        if not image_base64:
            raise WorkerError("Missing image data")
        content = asyncio.run(vision.analyze_image(image_base64, mime_type))
        result = parser.parse_result(content)
    except Exception as e:
        message = truncate_message(str(e) or e.__class__.__name__, store.error_message_max_length)
        logger.error(f"[Job: {job_id}] Analysis failed: {message}")
        try:
            store.mark_failed(job_id, message)
        except Exception as db_error:
            logger.error(f"[Job: {job_id}] Failed to report error status: {db_error}")
        return {"status": "failed", "error": message}

    payload = result.model_dump(mode="json")
    store.mark_completed(job_id, payload)
    logger.info(f"[Job: {job_id}] Successfully completed.")
    return {"status": "completed", "result": payload}


@celery_app.task(name="tasks.analyze_drink_image")
def analyze_drink_image(
    job_id: str,
    image_base64: str | None = None,
    mime_type: str | None = None,
    blob_key: str | None = None,
) -> dict:
    """Analyze a drink photo with the configured vision provider.

    Args:
        job_id: ID of the AnalysisJob record
        image_base64: Base64-encoded image, when passed inline
        mime_type: MIME type of the image
        blob_key: Temp blob holding ``{jobId, imageBase64, mimeType}`` instead
            of inline data; deleted after it is read

    Returns:
        Dict with the terminal status and result or error
    """
    settings = get_settings()
    db = SessionLocal()
    store = AnalysisJobStore(db, error_message_max_length=settings.error_message_max_length)
    vision = VisionService(settings)
    parser = AnalysisResponseParser(settings.analysis_wrapper_tokens)
    try:
        if blob_key is None:
            return run_analysis(store, job_id, image_base64, mime_type, vision, parser)

        blob_store = TempBlobStore.from_url(settings.redis_url, settings.temp_blob_ttl_seconds)
        try:
            with blob_store.consume(blob_key) as raw:
                payload = json.loads(raw) if raw else {}
            return run_analysis(
                store,
                job_id,
                payload.get("imageBase64"),
                payload.get("mimeType") or mime_type,
                vision,
                parser,
            )
        finally:
            blob_store.close()
    except Exception:
        logger.exception(f"Error processing analysis job {job_id}")
        try:
            db.rollback()
            store.mark_failed(job_id, "Internal error while processing analysis")
        except Exception as db_error:
            logger.error(f"[Job: {job_id}] Failed to update job status: {db_error}")
        raise
    finally:
        db.close()
