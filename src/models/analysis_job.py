"""AnalysisJob model for tracking drink photo recognition."""

from sqlalchemy import JSON, Column, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from src.database import Base
from src.models.enums import AnalysisJobStatus
from src.models.mixins import TimestampMixin


class AnalysisJob(Base, TimestampMixin):
    """Durable record of one asynchronous analysis request and its outcome."""

    __tablename__ = "analysis_jobs"

    # uuid4 string generated by the submitter, not by the database
    id = Column(String(36), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(
        String(20), nullable=False, default=AnalysisJobStatus.PENDING.value, index=True
    )  # pending, processing, completed, failed
    error_message = Column(Text, nullable=True)

    # AnalysisResult payload, written only by the worker
    result = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)

    user = relationship("User", back_populates="analysis_jobs")

    @property
    def status_enum(self) -> AnalysisJobStatus:
        return AnalysisJobStatus(self.status)
