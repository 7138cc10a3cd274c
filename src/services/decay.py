"""Caffeine decay model.

Residual caffeine follows first-order elimination: every intake event decays
independently with a fixed half-life and the body's load is the sum of all
events that have already happened.
"""

from collections.abc import Iterable, Iterator
from datetime import UTC, date, datetime, time, timedelta, tzinfo
from typing import Protocol

HALF_LIFE_HOURS = 5.0

# Below this residual the chart draws the "Sleep OK" line
SLEEP_THRESHOLD_MG = 50.0

DEFAULT_STEP_MINUTES = 30


class CaffeineEvent(Protocol):
    """Anything with a timestamp and a caffeine amount (ORM row or schema)."""

    occurred_at: datetime
    caffeine_mg: float


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are treated as UTC, which is how the database stores them
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def remaining_amount(amount: float, elapsed_hours: float) -> float:
    """Amount left after ``elapsed_hours``; nothing remains of a future intake."""
    if elapsed_hours < 0:
        return 0.0
    return amount * 0.5 ** (elapsed_hours / HALF_LIFE_HOURS)


def residual_at(events: Iterable[CaffeineEvent], query_time: datetime) -> float:
    """Total residual caffeine (mg) at ``query_time``.

    Events after ``query_time`` contribute nothing, so the result is 0 when no
    event has happened yet.
    """
    query_utc = _as_utc(query_time)
    total = 0.0
    for event in events:
        occurred = _as_utc(event.occurred_at)
        if occurred > query_utc:
            continue
        elapsed_hours = (query_utc - occurred).total_seconds() / 3600
        total += remaining_amount(float(event.caffeine_mg or 0), elapsed_hours)
    return max(total, 0.0)


class ForecastSeries:
    """Lazy sequence of ``(timestamp, residual)`` points over a window.

    Iterating twice yields the same points: each ``iter()`` starts a fresh
    walk from ``window_start`` and stops at the last step at or before
    ``window_end``.
    """

    def __init__(
        self,
        events: Iterable[CaffeineEvent],
        window_start: datetime,
        window_end: datetime,
        step_minutes: int = DEFAULT_STEP_MINUTES,
    ) -> None:
        if step_minutes <= 0:
            raise ValueError("step_minutes must be positive")
        # Snapshot so a one-shot iterator of events can be replayed
        self.events = tuple(events)
        self.window_start = window_start
        self.window_end = window_end
        self.step_minutes = step_minutes

    def __iter__(self) -> Iterator[tuple[datetime, float]]:
        # Step in UTC: aware local arithmetic is wall-clock and breaks across DST
        step = timedelta(minutes=self.step_minutes)
        end = _as_utc(self.window_end)
        current = _as_utc(self.window_start)
        while current <= end:
            yield self._localize(current), residual_at(self.events, current)
            current += step

    def _localize(self, value: datetime) -> datetime:
        tz = self.window_start.tzinfo
        if tz is None:
            return value.replace(tzinfo=None)
        return value.astimezone(tz)

    def __len__(self) -> int:
        span = _as_utc(self.window_end) - _as_utc(self.window_start)
        if span < timedelta(0):
            return 0
        return int(span // timedelta(minutes=self.step_minutes)) + 1

    def first_below(self, threshold: float, after: datetime | None = None) -> datetime | None:
        """First point (optionally at or after ``after``) whose residual is below ``threshold``."""
        after_utc = _as_utc(after) if after is not None else None
        for timestamp, residual in self:
            if after_utc is not None and _as_utc(timestamp) < after_utc:
                continue
            if residual < threshold:
                return timestamp
        return None


def forecast_series(
    events: Iterable[CaffeineEvent],
    window_start: datetime,
    window_end: datetime,
    step_minutes: int = DEFAULT_STEP_MINUTES,
) -> ForecastSeries:
    """Build the metabolism curve for a window."""
    return ForecastSeries(events, window_start, window_end, step_minutes)


def day_window(day: date, tz: tzinfo = UTC) -> tuple[datetime, datetime]:
    """Chart window for a local day: midnight until 06:00 the next morning."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time(6, 0), tzinfo=tz)
    return start, end
