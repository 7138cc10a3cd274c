"""Service for logging drinks and summarizing daily intake."""

import logging
from datetime import UTC, date, datetime, timedelta, tzinfo

from sqlalchemy.orm import Session

from src.models.analysis_job import AnalysisJob
from src.models.enums import AnalysisJobStatus, IntakeLevel
from src.models.intake_event import IntakeEvent
from src.schemas.analysis import AnalysisResult
from src.schemas.intake import (
    DailySummary,
    DrinkPreset,
    ForecastPoint,
    ForecastResponse,
    IntakeEventCreate,
)
from src.services.decay import (
    DEFAULT_STEP_MINUTES,
    HALF_LIFE_HOURS,
    SLEEP_THRESHOLD_MG,
    day_window,
    forecast_series,
    residual_at,
)

logger = logging.getLogger(__name__)

DRINK_PRESETS: list[DrinkPreset] = [
    DrinkPreset(id="espresso", label="Espresso", caffeine_mg=80, sugar_g=0, emoji="☕"),
    DrinkPreset(id="americano", label="Americano", caffeine_mg=150, sugar_g=0, emoji="☕"),
    DrinkPreset(id="latte", label="Latte", caffeine_mg=120, sugar_g=10, emoji="🥛"),
    DrinkPreset(id="lemon_tea", label="Lemon Tea", caffeine_mg=15, sugar_g=20, emoji="🍋"),
    DrinkPreset(id="coke_zero", label="Coke Zero", caffeine_mg=35, sugar_g=0, emoji="🥤"),
]

CAFFEINE_WARNING_MG = 200
CAFFEINE_LIMIT_MG = 400

# WHO: under 25g is ideal, 50g is the limit
SUGAR_WARNING_G = 25
SUGAR_LIMIT_G = 50


class IntakeNotFoundError(Exception):
    """Raised when an intake event or analysis job does not exist for the user."""


class ScanNotReadyError(Exception):
    """Raised when logging a scan whose job has not completed with a result."""


def _to_utc(value: datetime) -> datetime:
    # Timestamps are stored in UTC so range filters also work on SQLite
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def get_preset(preset_id: str) -> DrinkPreset | None:
    """Look up a built-in preset by id."""
    return next((p for p in DRINK_PRESETS if p.id == preset_id), None)


def intake_level(total: float, warning: float, limit: float) -> IntakeLevel:
    """Classify a daily total against its warning threshold and limit."""
    if total > limit:
        return IntakeLevel.DANGER
    if total > warning:
        return IntakeLevel.WARNING
    return IntakeLevel.OK


class IntakeService:
    """Create, list and delete intake events and compute daily views."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def log_event(
        self, user_id: int, data: IntakeEventCreate, source: str = "manual"
    ) -> IntakeEvent:
        """Log a drink with explicit amounts."""
        event = IntakeEvent(
            user_id=user_id,
            label=data.label,
            caffeine_mg=data.caffeine_mg,
            sugar_g=data.sugar_g,
            occurred_at=_to_utc(data.occurred_at or datetime.now(UTC)),
            source=source,
        )
        self.db.add(event)
        self.db.commit()
        self.db.refresh(event)
        logger.info(f"User {user_id} logged {event.label} ({event.caffeine_mg}mg caffeine)")
        return event

    def log_preset(
        self, user_id: int, preset_id: str, occurred_at: datetime | None = None
    ) -> IntakeEvent:
        """Log one of the built-in presets."""
        preset = get_preset(preset_id)
        if preset is None:
            raise IntakeNotFoundError(f"Unknown preset: {preset_id}")
        data = IntakeEventCreate(
            label=preset.label,
            caffeine_mg=preset.caffeine_mg,
            sugar_g=preset.sugar_g,
            occurred_at=occurred_at,
        )
        return self.log_event(user_id, data, source="preset")

    def log_scan_result(
        self,
        user_id: int,
        job_id: str,
        label: str | None = None,
        occurred_at: datetime | None = None,
    ) -> IntakeEvent:
        """Log the drink recognized by a completed analysis job.

        Unknown caffeine or sugar values are logged as 0.
        """
        job = (
            self.db.query(AnalysisJob)
            .filter(AnalysisJob.id == job_id, AnalysisJob.user_id == user_id)
            .first()
        )
        if job is None:
            raise IntakeNotFoundError("Analysis job not found")
        if job.status_enum != AnalysisJobStatus.COMPLETED or not job.result:
            raise ScanNotReadyError("Analysis has not completed with a result")

        result = AnalysisResult.model_validate(job.result)
        event = IntakeEvent(
            user_id=user_id,
            label=(label or result.product_name or "Scanned drink")[:255],
            caffeine_mg=result.caffeine_mg or 0,
            sugar_g=result.sugar_g or 0,
            occurred_at=_to_utc(occurred_at or datetime.now(UTC)),
            source="scan",
            analysis_job_id=job.id,
        )
        self.db.add(event)
        self.db.commit()
        self.db.refresh(event)
        return event

    def delete_event(self, user_id: int, event_id: int) -> None:
        event = (
            self.db.query(IntakeEvent)
            .filter(IntakeEvent.id == event_id, IntakeEvent.user_id == user_id)
            .first()
        )
        if event is None:
            raise IntakeNotFoundError("Intake event not found")
        self.db.delete(event)
        self.db.commit()

    def list_events(
        self, user_id: int, start: datetime | None = None, end: datetime | None = None
    ) -> list[IntakeEvent]:
        """List events in ``[start, end)``, newest first."""
        query = self.db.query(IntakeEvent).filter(IntakeEvent.user_id == user_id)
        if start is not None:
            query = query.filter(IntakeEvent.occurred_at >= _to_utc(start))
        if end is not None:
            query = query.filter(IntakeEvent.occurred_at < _to_utc(end))
        return query.order_by(IntakeEvent.occurred_at.desc()).all()

    def daily_summary(
        self, user_id: int, day: date, tz: tzinfo = UTC, now: datetime | None = None
    ) -> DailySummary:
        """Totals for a local day plus the residual caffeine right now."""
        day_start, _ = day_window(day, tz)
        events = self.list_events(user_id, day_start, day_start + timedelta(days=1))

        total_caffeine = sum(e.caffeine_mg or 0 for e in events)
        total_sugar = sum(e.sugar_g or 0 for e in events)

        # Residual also counts what is left over from the previous day
        recent = self.list_events(user_id, day_start - timedelta(days=1), None)
        residual = residual_at(recent, now or datetime.now(UTC))

        return DailySummary(
            day=day,
            total_caffeine_mg=total_caffeine,
            total_sugar_g=total_sugar,
            caffeine_level=intake_level(total_caffeine, CAFFEINE_WARNING_MG, CAFFEINE_LIMIT_MG),
            sugar_level=intake_level(total_sugar, SUGAR_WARNING_G, SUGAR_LIMIT_G),
            caffeine_limit_mg=CAFFEINE_LIMIT_MG,
            sugar_limit_g=SUGAR_LIMIT_G,
            residual_caffeine_mg=round(residual, 1),
            event_count=len(events),
        )

    def forecast(
        self,
        user_id: int,
        day: date,
        tz: tzinfo = UTC,
        step_minutes: int = DEFAULT_STEP_MINUTES,
        now: datetime | None = None,
    ) -> ForecastResponse:
        """Metabolism curve from local midnight until 06:00 the next day."""
        window_start, window_end = day_window(day, tz)
        events = self.list_events(user_id, window_start - timedelta(days=1), window_end)
        series = forecast_series(events, window_start, window_end, step_minutes)

        return ForecastResponse(
            window_start=window_start,
            window_end=window_end,
            step_minutes=step_minutes,
            half_life_hours=HALF_LIFE_HOURS,
            sleep_threshold_mg=SLEEP_THRESHOLD_MG,
            sleep_ok_at=series.first_below(SLEEP_THRESHOLD_MG, after=now or datetime.now(UTC)),
            points=[
                ForecastPoint(timestamp=timestamp, residual_mg=round(residual, 1))
                for timestamp, residual in series
            ],
        )
