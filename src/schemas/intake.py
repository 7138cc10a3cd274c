"""Intake event, summary and forecast schemas."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from src.models.enums import IntakeLevel


class IntakeEventCreate(BaseModel):
    """Log a drink with explicit amounts."""

    label: str = Field(..., min_length=1, max_length=255)
    caffeine_mg: float = Field(0, ge=0, le=2000)
    sugar_g: float = Field(0, ge=0, le=500)
    occurred_at: datetime | None = None


class IntakePresetLog(BaseModel):
    """Log one of the built-in drink presets."""

    preset_id: str
    occurred_at: datetime | None = None


class IntakeScanLog(BaseModel):
    """Log the result of a completed analysis job."""

    job_id: str
    label: str | None = Field(None, max_length=255)
    occurred_at: datetime | None = None


class IntakeEventResponse(BaseModel):
    """Intake event response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    label: str
    caffeine_mg: float
    sugar_g: float
    occurred_at: datetime
    source: str
    analysis_job_id: str | None = None
    created_at: datetime


class DrinkPreset(BaseModel):
    """A quick-add drink."""

    id: str
    label: str
    caffeine_mg: float
    sugar_g: float
    emoji: str


class DailySummary(BaseModel):
    """Totals for one local day."""

    day: date
    total_caffeine_mg: float
    total_sugar_g: float
    caffeine_level: IntakeLevel
    sugar_level: IntakeLevel
    caffeine_limit_mg: float
    sugar_limit_g: float
    residual_caffeine_mg: float
    event_count: int


class ForecastPoint(BaseModel):
    """Residual caffeine at one instant."""

    timestamp: datetime
    residual_mg: float


class ForecastResponse(BaseModel):
    """Metabolism curve over a window."""

    window_start: datetime
    window_end: datetime
    step_minutes: int
    half_life_hours: float
    sleep_threshold_mg: float
    sleep_ok_at: datetime | None = None
    points: list[ForecastPoint]
