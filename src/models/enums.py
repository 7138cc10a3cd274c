"""Enums for model fields."""

from enum import StrEnum


class AnalysisJobStatus(StrEnum):
    """Lifecycle of a drink analysis job.

    Transitions only move forward: pending -> processing -> completed | failed.
    The worker may also fail (or finish) straight from pending.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Completed and failed jobs never change again."""
        return self in (AnalysisJobStatus.COMPLETED, AnalysisJobStatus.FAILED)

    @property
    def rank(self) -> int:
        """Position in the lifecycle; both terminal states share the last rank."""
        if self.is_terminal:
            return 2
        return 0 if self == AnalysisJobStatus.PENDING else 1

    def can_transition_to(self, target: "AnalysisJobStatus") -> bool:
        """Check whether moving to ``target`` is a forward transition."""
        if self.is_terminal:
            return False
        return target.rank > self.rank


class DataSource(StrEnum):
    """Where the nutrition numbers of an analysis came from."""

    IMAGE = "image"
    SEARCH = "search"
    ESTIMATION = "estimation"


class IntakeLevel(StrEnum):
    """Traffic-light level of a daily total against its limits."""

    OK = "ok"
    WARNING = "warning"
    DANGER = "danger"
