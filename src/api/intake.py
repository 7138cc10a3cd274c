"""Intake logging, daily summary and forecast endpoints."""

from datetime import UTC, date, datetime, timedelta
from typing import Annotated
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.api.dependencies import get_current_user, get_intake_service
from src.config import get_settings
from src.models.user import User
from src.schemas.intake import (
    DailySummary,
    DrinkPreset,
    ForecastResponse,
    IntakeEventCreate,
    IntakeEventResponse,
    IntakePresetLog,
    IntakeScanLog,
)
from src.services.intake_service import (
    DRINK_PRESETS,
    IntakeNotFoundError,
    IntakeService,
    ScanNotReadyError,
)

router = APIRouter(prefix="/api/v1/intake", tags=["intake"])


def resolve_timezone(tz: str | None) -> ZoneInfo:
    """Resolve a timezone name, falling back to the configured default."""
    try:
        return ZoneInfo(tz or get_settings().timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown timezone: {tz}",
        ) from e


def resolve_day(day: date | None, zone: ZoneInfo) -> date:
    return day or datetime.now(zone).date()


@router.get("/presets", response_model=list[DrinkPreset])
def list_presets():
    """List the quick-add drink presets."""
    return DRINK_PRESETS


@router.post("/events", response_model=IntakeEventResponse, status_code=status.HTTP_201_CREATED)
def log_intake_event(
    data: IntakeEventCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[IntakeService, Depends(get_intake_service)],
):
    """Log a drink with explicit amounts."""
    return service.log_event(current_user.id, data)


@router.post(
    "/events/preset", response_model=IntakeEventResponse, status_code=status.HTTP_201_CREATED
)
def log_preset_event(
    data: IntakePresetLog,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[IntakeService, Depends(get_intake_service)],
):
    """Log a quick-add preset."""
    try:
        return service.log_preset(current_user.id, data.preset_id, data.occurred_at)
    except IntakeNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.post(
    "/events/scan", response_model=IntakeEventResponse, status_code=status.HTTP_201_CREATED
)
def log_scan_event(
    data: IntakeScanLog,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[IntakeService, Depends(get_intake_service)],
):
    """Log the drink recognized by a completed analysis job."""
    try:
        return service.log_scan_result(current_user.id, data.job_id, data.label, data.occurred_at)
    except IntakeNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ScanNotReadyError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e


@router.get("/events", response_model=list[IntakeEventResponse])
def list_intake_events(
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[IntakeService, Depends(get_intake_service)],
    day: date | None = None,
    tz: str | None = None,
):
    """List the drinks logged on a local day (today by default)."""
    zone = resolve_timezone(tz)
    start = datetime.combine(resolve_day(day, zone), datetime.min.time(), tzinfo=zone)
    return service.list_events(
        current_user.id, start.astimezone(UTC), (start + timedelta(days=1)).astimezone(UTC)
    )


@router.delete("/events/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_intake_event(
    event_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[IntakeService, Depends(get_intake_service)],
):
    """Delete a logged drink."""
    try:
        service.delete_event(current_user.id, event_id)
    except IntakeNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.get("/summary", response_model=DailySummary)
def get_daily_summary(
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[IntakeService, Depends(get_intake_service)],
    day: date | None = None,
    tz: str | None = None,
):
    """Caffeine and sugar totals for a local day."""
    zone = resolve_timezone(tz)
    return service.daily_summary(current_user.id, resolve_day(day, zone), zone)


@router.get("/forecast", response_model=ForecastResponse)
def get_forecast(
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[IntakeService, Depends(get_intake_service)],
    day: date | None = None,
    tz: str | None = None,
    step_minutes: Annotated[int, Query(ge=5, le=240)] = 30,
):
    """Projected residual caffeine from midnight until 06:00 the next day."""
    zone = resolve_timezone(tz)
    return service.forecast(current_user.id, resolve_day(day, zone), zone, step_minutes)
