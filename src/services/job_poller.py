"""Observation of analysis jobs until they reach a terminal state.

The poller never drives job transitions; it only reads them. ``start``,
``tick`` and ``stop`` form a synchronous state machine that can be tested
without any event loop, and ``run`` wraps it in an asyncio polling loop.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum

from pydantic import ValidationError as PydanticValidationError

from src.models.enums import AnalysisJobStatus
from src.schemas.analysis import AnalysisJobSnapshot, AnalysisResult
from src.services.errors import (
    AnalysisError,
    DataIntegrityError,
    PollTimeoutError,
    WorkerError,
)

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 2.0
DEFAULT_MAX_ATTEMPTS = 60


class PollState(StrEnum):
    """States of the local observation loop."""

    IDLE = "idle"
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (
            PollState.COMPLETED,
            PollState.FAILED,
            PollState.TIMED_OUT,
            PollState.CANCELLED,
        )


PROGRESS_LABELS = {
    PollState.IDLE: "",
    PollState.PENDING: "Waiting for queue...",
    PollState.PROCESSING: "AI is analyzing image...",
    PollState.COMPLETED: "Analysis complete",
    PollState.FAILED: "Analysis failed",
    PollState.TIMED_OUT: "Analysis timed out",
    PollState.CANCELLED: "Analysis cancelled",
}

_STATE_RANK = {
    PollState.IDLE: -1,
    PollState.PENDING: 0,
    PollState.PROCESSING: 1,
}


@dataclass
class PollOutcome:
    """What a single tick observed."""

    state: PollState
    label: str
    result: AnalysisResult | None = None
    error: AnalysisError | None = None

    @property
    def done(self) -> bool:
        return self.state.is_terminal


SnapshotFetcher = Callable[[str], Awaitable[AnalysisJobSnapshot | None]]
ProgressCallback = Callable[[PollOutcome], Awaitable[None]]


class JobPoller:
    """State machine observing one analysis job."""

    def __init__(
        self,
        job_id: str,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.job_id = job_id
        self.interval_seconds = interval_seconds
        self.max_attempts = max_attempts
        self.attempts = 0
        self.state = PollState.IDLE
        self.progress_label = ""
        self.outcome: PollOutcome | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        """Whether the poller still holds its timer."""
        return self._running

    def start(self) -> PollOutcome:
        if self.state != PollState.IDLE:
            raise RuntimeError(f"Poller for job {self.job_id} already started")
        self.state = PollState.PENDING
        self.progress_label = "Initializing analysis..."
        self._running = True
        return PollOutcome(self.state, self.progress_label)

    def tick(
        self,
        snapshot: AnalysisJobSnapshot | None = None,
        error: Exception | None = None,
    ) -> PollOutcome:
        """Process the result of one poll.

        A read error and a missing row both count as an attempt, exactly like
        a still-pending status.
        """
        if self.state == PollState.IDLE:
            raise RuntimeError("Poller must be started before ticking")
        if self.outcome is not None:
            return self.outcome

        self.attempts += 1

        if error is not None:
            logger.warning(f"[Job: {self.job_id}] Polling error (attempt {self.attempts}): {error}")
        elif snapshot is None:
            logger.warning(f"[Job: {self.job_id}] Job not visible yet (attempt {self.attempts})")
        else:
            outcome = self._observe(snapshot)
            if outcome is not None:
                return self._finish(outcome)

        if self.attempts >= self.max_attempts:
            return self._finish(
                PollOutcome(
                    PollState.TIMED_OUT,
                    PROGRESS_LABELS[PollState.TIMED_OUT],
                    error=PollTimeoutError("Analysis timed out. Please try again."),
                )
            )
        return PollOutcome(self.state, self.progress_label)

    def stop(self) -> PollOutcome:
        """Abandon observation and release the timer. Idempotent."""
        if self.outcome is None:
            self.outcome = PollOutcome(PollState.CANCELLED, PROGRESS_LABELS[PollState.CANCELLED])
            self.state = PollState.CANCELLED
            self.progress_label = self.outcome.label
            logger.info(f"[Job: {self.job_id}] Polling cancelled after {self.attempts} attempts")
        self._running = False
        return self.outcome

    async def run(
        self,
        fetch: SnapshotFetcher,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_progress: ProgressCallback | None = None,
    ) -> AnalysisResult | None:
        """Poll ``fetch`` every interval until a terminal outcome.

        Returns the result on success, or None when stopped from outside.

        Raises:
            WorkerError: The job failed.
            DataIntegrityError: The job completed without a result.
            PollTimeoutError: The attempt cap was reached.
        """
        if self.state == PollState.IDLE:
            outcome = self.start()
            if on_progress is not None:
                await on_progress(outcome)
        try:
            while self._running:
                await sleep(self.interval_seconds)
                if not self._running:
                    break
                try:
                    snapshot = await fetch(self.job_id)
                except Exception as e:
                    outcome = self.tick(error=e)
                else:
                    outcome = self.tick(snapshot)
                if on_progress is not None:
                    await on_progress(outcome)
                if outcome.done:
                    break
        finally:
            self.stop()

        outcome = self.outcome
        if outcome.error is not None:
            raise outcome.error
        return outcome.result

    def _observe(self, snapshot: AnalysisJobSnapshot) -> PollOutcome | None:
        status = snapshot.status
        if status == AnalysisJobStatus.COMPLETED:
            if not snapshot.result:
                return PollOutcome(
                    PollState.FAILED,
                    PROGRESS_LABELS[PollState.FAILED],
                    error=DataIntegrityError("Analysis completed but returned no data."),
                )
            try:
                result = AnalysisResult.model_validate(snapshot.result)
            except PydanticValidationError as e:
                logger.error(f"[Job: {self.job_id}] Malformed result payload: {e}")
                return PollOutcome(
                    PollState.FAILED,
                    PROGRESS_LABELS[PollState.FAILED],
                    error=DataIntegrityError("Analysis completed with malformed data."),
                )
            return PollOutcome(PollState.COMPLETED, PROGRESS_LABELS[PollState.COMPLETED], result=result)

        if status == AnalysisJobStatus.FAILED:
            return PollOutcome(
                PollState.FAILED,
                PROGRESS_LABELS[PollState.FAILED],
                error=WorkerError(snapshot.error_message or "Analysis failed."),
            )

        observed = PollState(status.value)
        if _STATE_RANK[observed] < _STATE_RANK[self.state]:
            logger.warning(
                f"[Job: {self.job_id}] Ignoring status regression {self.state} -> {observed}"
            )
            return None
        self.state = observed
        self.progress_label = PROGRESS_LABELS[observed]
        return None

    def _finish(self, outcome: PollOutcome) -> PollOutcome:
        self.state = outcome.state
        self.progress_label = outcome.label
        self.outcome = outcome
        self._running = False
        if outcome.error is not None:
            logger.info(f"[Job: {self.job_id}] Polling ended: {outcome.state} ({outcome.error})")
        else:
            logger.info(f"[Job: {self.job_id}] Polling ended: {outcome.state}")
        return outcome
