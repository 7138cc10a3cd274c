"""IntakeEvent model: one logged drink."""

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship

from src.database import Base
from src.models.mixins import TimestampMixin


class IntakeEvent(Base, TimestampMixin):
    """A drink the user logged. Rows are only ever created or deleted."""

    __tablename__ = "intake_events"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    occurred_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
    caffeine_mg = Column(Float, nullable=False, default=0)
    sugar_g = Column(Float, nullable=False, default=0)
    label = Column(String(255), nullable=False)

    # Where the numbers came from: "preset", "manual" or "scan"
    source = Column(String(20), nullable=False, default="manual")
    analysis_job_id = Column(
        String(36), ForeignKey("analysis_jobs.id", ondelete="SET NULL"), nullable=True
    )

    user = relationship("User", back_populates="intake_events")
