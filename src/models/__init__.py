"""SQLAlchemy models."""

from src.models.analysis_job import AnalysisJob
from src.models.intake_event import IntakeEvent
from src.models.user import User

__all__ = [
    "User",
    "IntakeEvent",
    "AnalysisJob",
]
