"""Drink analysis schemas."""

import re
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.models.enums import AnalysisJobStatus, DataSource

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")


class AnalysisResult(BaseModel):
    """Structured payload of a completed analysis job.

    Every key is always serialized; unknown numbers are ``None``, never omitted.
    """

    brand: str | None = None
    product_name: str | None = None
    specs_text: str | None = None
    caffeine_mg: float | None = None
    sugar_g: float | None = None
    volume_ml: float | None = None
    data_source: DataSource = DataSource.ESTIMATION
    note: str | None = None

    @field_validator("caffeine_mg", "sugar_g", "volume_ml", mode="before")
    @classmethod
    def coerce_number(cls, value: Any) -> float | None:
        """Accept numbers, numeric strings and strings like ``"120mg"``."""
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, int | float):
            return float(value) if value >= 0 else None
        if isinstance(value, str):
            match = _NUMBER_RE.search(value.replace(",", ""))
            if not match:
                return None
            number = float(match.group())
            return number if number >= 0 else None
        return None

    @field_validator("data_source", mode="before")
    @classmethod
    def coerce_data_source(cls, value: Any) -> DataSource:
        """Unknown or missing sources count as estimates."""
        if isinstance(value, str):
            try:
                return DataSource(value.strip().lower())
            except ValueError:
                pass
        return DataSource.ESTIMATION

    @field_validator("brand", "product_name", "specs_text", "note", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None


class AnalysisJobResponse(BaseModel):
    """Status and result of an analysis job."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    status: AnalysisJobStatus
    result: AnalysisResult | None = None
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime


class AnalysisJobCreateResponse(BaseModel):
    """Response when an analysis job has been accepted."""

    id: str
    status: AnalysisJobStatus = AnalysisJobStatus.PENDING
    message: str


class AnalysisJobSnapshot(BaseModel):
    """The subset of a job the poller reads on each tick."""

    model_config = ConfigDict(from_attributes=True)

    status: AnalysisJobStatus
    result: dict[str, Any] | None = Field(default=None)
    error_message: str | None = None
