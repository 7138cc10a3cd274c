"""Pydantic schemas for API requests and responses."""

from src.schemas.analysis import (
    AnalysisJobCreateResponse,
    AnalysisJobResponse,
    AnalysisJobSnapshot,
    AnalysisResult,
)
from src.schemas.auth import Token, UserLogin, UserRegister, UserResponse
from src.schemas.intake import (
    DailySummary,
    DrinkPreset,
    ForecastPoint,
    ForecastResponse,
    IntakeEventCreate,
    IntakeEventResponse,
    IntakePresetLog,
    IntakeScanLog,
)

__all__ = [
    "UserRegister",
    "UserLogin",
    "Token",
    "UserResponse",
    "AnalysisResult",
    "AnalysisJobResponse",
    "AnalysisJobCreateResponse",
    "AnalysisJobSnapshot",
    "IntakeEventCreate",
    "IntakePresetLog",
    "IntakeScanLog",
    "IntakeEventResponse",
    "DrinkPreset",
    "DailySummary",
    "ForecastPoint",
    "ForecastResponse",
]
