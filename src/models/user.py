"""User model."""

from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship

from src.database import Base
from src.models.mixins import TimestampMixin


class User(Base, TimestampMixin):
    """User account that owns intake events and analysis jobs."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255), nullable=True)

    intake_events = relationship(
        "IntakeEvent", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    analysis_jobs = relationship(
        "AnalysisJob", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
