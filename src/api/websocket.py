"""WebSocket endpoint streaming analysis job progress."""

import asyncio
import contextlib
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from src.config import get_settings
from src.database import SessionLocal
from src.schemas.analysis import AnalysisJobSnapshot
from src.services.analysis_job_store import AnalysisJobStore
from src.services.auth import get_user_from_token
from src.services.errors import DataIntegrityError, PollTimeoutError, WorkerError
from src.services.job_poller import JobPoller, PollOutcome

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/ws", tags=["websocket"])


@router.websocket("/analysis/{job_id}")
async def websocket_analysis_progress(
    websocket: WebSocket,
    job_id: str,
    token: str = Query(...),
) -> None:
    """Stream progress of one analysis job until it reaches a terminal state.

    Authentication via token query parameter (WebSocket doesn't support headers).
    Closing the socket stops only the local polling loop; the worker keeps going.
    """
    settings = get_settings()
    db = SessionLocal()
    store = AnalysisJobStore(db, error_message_max_length=settings.error_message_max_length)
    poller = JobPoller(
        job_id,
        interval_seconds=settings.analysis_poll_interval_seconds,
        max_attempts=settings.analysis_poll_max_attempts,
    )

    try:
        user = get_user_from_token(db, token)
        if user is None:
            await websocket.close(code=4001, reason="Invalid token")
            return
        if store.get_for_user(job_id, user.id) is None:
            await websocket.close(code=4004, reason="Analysis job not found")
            return

        await websocket.accept()
        logger.info(f"WebSocket connected: user={user.id}, job={job_id}")

        async def fetch(polled_job_id: str) -> AnalysisJobSnapshot | None:
            return store.read_snapshot(polled_job_id, user.id)

        async def send_progress(outcome: PollOutcome) -> None:
            if not outcome.done:
                await websocket.send_json(
                    {"type": "progress", "status": outcome.state, "label": outcome.label}
                )

        async def wait_for_disconnect() -> None:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    return

        poll_task = asyncio.create_task(poller.run(fetch, on_progress=send_progress))
        disconnect_task = asyncio.create_task(wait_for_disconnect())
        done, _ = await asyncio.wait(
            {poll_task, disconnect_task}, return_when=asyncio.FIRST_COMPLETED
        )

        if poll_task not in done:
            poll_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await poll_task
            logger.info(f"WebSocket disconnected before job {job_id} finished")
            return

        disconnect_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await disconnect_task

        try:
            result = poll_task.result()
        except PollTimeoutError as e:
            await websocket.send_json({"type": "timeout", "message": e.message})
        except (WorkerError, DataIntegrityError) as e:
            await websocket.send_json({"type": "failed", "message": e.message})
        else:
            await websocket.send_json(
                {"type": "completed", "result": result.model_dump(mode="json") if result else None}
            )
        await websocket.close()

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected: job={job_id}")
    except Exception as e:
        logger.error(f"WebSocket error: {e}", exc_info=True)
    finally:
        poller.stop()
        db.close()
