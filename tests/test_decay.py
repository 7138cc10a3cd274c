"""Tests for the caffeine decay model."""

from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from src.services.decay import (
    HALF_LIFE_HOURS,
    day_window,
    forecast_series,
    remaining_amount,
    residual_at,
)

T0 = datetime(2026, 3, 2, 8, 0, tzinfo=UTC)


@dataclass
class Event:
    occurred_at: datetime
    caffeine_mg: float


class TestResidualAt:
    """Tests for residual_at."""

    def test_no_events_is_zero(self):
        assert residual_at([], T0) == 0

    def test_event_at_query_time_counts_fully(self):
        assert residual_at([Event(T0, 150)], T0) == 150

    def test_one_half_life(self):
        assert residual_at([Event(T0, 150)], T0 + timedelta(hours=5)) == pytest.approx(75)

    def test_two_half_lives(self):
        assert residual_at([Event(T0, 150)], T0 + timedelta(hours=10)) == pytest.approx(37.5)

    def test_matches_formula(self):
        for hours in (0.5, 1, 3.3, 7, 24):
            expected = 200 * 0.5 ** (hours / HALF_LIFE_HOURS)
            assert residual_at([Event(T0, 200)], T0 + timedelta(hours=hours)) == pytest.approx(
                expected
            )

    def test_future_events_contribute_nothing(self):
        events = [Event(T0 + timedelta(minutes=1), 100), Event(T0 + timedelta(hours=3), 80)]
        assert residual_at(events, T0) == 0

    def test_strictly_decreasing(self):
        events = [Event(T0, 120)]
        values = [residual_at(events, T0 + timedelta(hours=h)) for h in range(0, 48, 2)]
        assert all(a > b for a, b in zip(values, values[1:]))

    def test_far_past_approaches_but_stays_positive(self):
        value = residual_at([Event(T0, 100)], T0 + timedelta(hours=100))
        assert 0 < value < 0.01

    def test_additive(self):
        e1 = Event(T0, 150)
        e2 = Event(T0 + timedelta(hours=2), 80)
        query = T0 + timedelta(hours=6)
        combined = residual_at([e1, e2], query)
        assert combined == pytest.approx(residual_at([e1], query) + residual_at([e2], query))

    def test_naive_timestamps_treated_as_utc(self):
        naive = Event(T0.replace(tzinfo=None), 150)
        assert residual_at([naive], T0 + timedelta(hours=5)) == pytest.approx(75)

    def test_mixed_timezones(self):
        shanghai = ZoneInfo("Asia/Shanghai")
        event = Event(T0.astimezone(shanghai), 150)
        assert residual_at([event], T0 + timedelta(hours=5)) == pytest.approx(75)

    def test_remaining_amount_negative_elapsed(self):
        assert remaining_amount(100, -1) == 0


class TestForecastSeries:
    """Tests for forecast_series."""

    def test_length_when_step_divides_window(self):
        series = forecast_series([], T0, T0 + timedelta(hours=3), step_minutes=30)
        points = list(series)
        assert len(points) == 7  # ceil(180 / 30) + 1
        assert len(series) == 7

    def test_includes_last_point_before_end(self):
        end = T0 + timedelta(minutes=100)
        points = list(forecast_series([], T0, end, step_minutes=30))
        assert [p[0] for p in points][-1] == T0 + timedelta(minutes=90)
        assert len(points) == 4

    def test_first_point_is_window_start_and_increasing(self):
        points = list(forecast_series([Event(T0, 100)], T0, T0 + timedelta(hours=2)))
        assert points[0][0] == T0
        timestamps = [p[0] for p in points]
        assert all(a < b for a, b in zip(timestamps, timestamps[1:]))

    def test_empty_events_all_zero(self):
        points = list(forecast_series([], T0, T0 + timedelta(hours=4)))
        assert all(residual == 0 for _, residual in points)

    def test_restartable(self):
        events = iter([Event(T0, 150)])
        series = forecast_series(events, T0, T0 + timedelta(hours=10), step_minutes=60)
        assert list(series) == list(series)
        assert list(series)[5][1] == pytest.approx(75)

    def test_end_before_start_is_empty(self):
        series = forecast_series([], T0, T0 - timedelta(hours=1))
        assert list(series) == []
        assert len(series) == 0

    def test_step_must_be_positive(self):
        with pytest.raises(ValueError):
            forecast_series([], T0, T0 + timedelta(hours=1), step_minutes=0)

    def test_first_below_threshold(self):
        series = forecast_series([Event(T0, 100)], T0, T0 + timedelta(hours=10), step_minutes=60)
        # 100 -> 50 after one half-life; strictly below 50 from hour 6
        assert series.first_below(50) == T0 + timedelta(hours=6)
        assert series.first_below(50, after=T0 + timedelta(hours=8)) == T0 + timedelta(hours=8)

    def test_first_below_none_when_never_below(self):
        series = forecast_series([Event(T0, 1000)], T0, T0 + timedelta(hours=1))
        assert series.first_below(50) is None


def test_day_window_spans_to_six_next_morning():
    tz = ZoneInfo("Europe/Berlin")
    start, end = day_window(date(2026, 3, 2), tz)
    assert start == datetime(2026, 3, 2, 0, 0, tzinfo=tz)
    assert end == datetime(2026, 3, 3, 6, 0, tzinfo=tz)
    assert len(forecast_series([], start, end)) == 61


@pytest.mark.parametrize(
    ("day", "hours", "expected_points"),
    [
        (date(2025, 3, 9), 29, 59),  # spring forward: the local window loses an hour
        (date(2025, 11, 2), 31, 63),  # fall back: the local window gains an hour
    ],
)
def test_forecast_across_dst_change(day, hours, expected_points):
    tz = ZoneInfo("America/New_York")
    start, end = day_window(day, tz)
    event = Event(start.astimezone(UTC) + timedelta(hours=1), 150)
    series = forecast_series([event], start, end, step_minutes=30)
    points = list(series)

    assert end.astimezone(UTC) - start.astimezone(UTC) == timedelta(hours=hours)
    assert len(series) == len(points) == expected_points

    instants = [timestamp.astimezone(UTC) for timestamp, _ in points]
    assert instants[0] == start.astimezone(UTC)
    assert instants[-1] == end.astimezone(UTC)
    assert all(b - a == timedelta(minutes=30) for a, b in zip(instants, instants[1:]))
    assert all(timestamp.tzinfo is tz for timestamp, _ in points)

    # Residual depends on real elapsed time, not on the local wall clock
    after_five_hours = instants.index(event.occurred_at + timedelta(hours=5))
    assert points[after_five_hours][1] == pytest.approx(75)
