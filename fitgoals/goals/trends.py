"""Weekly-average trend engine — pure functions, no I/O.

Body measurements are noisy day to day, so numeric goals (body_fat, weight,
lean_mass_gain) are tracked on weekly averages. A week only counts once it
holds enough samples; progress interpolates between the first and the latest
qualifying week.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import date, timedelta
from typing import Any

from fitgoals.goals.models import (
    BodyFatParams,
    GoalProgress,
    GoalRecord,
    GoalType,
    LeanMassGainParams,
    Measurement,
    WeeklyAveragePoint,
    WeightParams,
)
from fitgoals.goals.streaks import round_half_up

MIN_TREND_WEEKS_FOR_ACHIEVEMENT = 2

# Preferred key first, then the legacy key older clients wrote.
VALUE_KEYS: dict[GoalType, tuple[str, ...]] = {
    GoalType.body_fat: ("bodyFatPct", "pct"),
    GoalType.weight: ("weightKg", "kg"),
    GoalType.lean_mass_gain: ("leanMassKg", "kg"),
}


def clamp01(x: float) -> float:
    return min(max(x, 0.0), 1.0)


def week_start(day: date, start_dow: int = 1) -> date:
    """First day of the week containing `day`. `start_dow` is an ISO weekday (1 = Monday)."""
    offset = (day.isoweekday() - start_dow) % 7
    return day - timedelta(days=offset)


def measurement_value(goal_type: GoalType, value: dict[str, Any]) -> float | None:
    """Pull the numeric reading for `goal_type` out of a measurement payload."""
    for key in VALUE_KEYS.get(goal_type, ()):
        raw = value.get(key)
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            continue
        if math.isfinite(raw):
            return float(raw)
    return None


def numeric_samples(
    goal: GoalRecord,
    goal_type: GoalType,
    measurements: Sequence[Measurement],
) -> list[tuple[date, float]]:
    """(date, value) pairs inside the goal's date range, in date order."""
    samples: list[tuple[date, float]] = []
    for m in measurements:
        if m.date < goal.start_date or m.date > goal.end_date:
            continue
        num = measurement_value(goal_type, m.value)
        if num is not None:
            samples.append((m.date, num))
    samples.sort(key=lambda s: s[0])
    return samples


def bucket_weekly_averages(
    samples: Sequence[tuple[date, float]],
    min_samples: int = 2,
    start_dow: int = 1,
) -> list[WeeklyAveragePoint]:
    """Mean per week, ascending. Weeks under `min_samples` are dropped, not zero-filled."""
    buckets: dict[date, list[float]] = {}
    for day, num in samples:
        buckets.setdefault(week_start(day, start_dow), []).append(num)

    points: list[WeeklyAveragePoint] = []
    for wk in sorted(buckets):
        vals = buckets[wk]
        if len(vals) < min_samples:
            continue
        points.append(
            WeeklyAveragePoint(week_start=wk, average=round(sum(vals) / len(vals), 3), sample_count=len(vals))
        )
    return points


# ---------------------------------------------------------------------------
# Percent computation
# ---------------------------------------------------------------------------

def meets_target(value: float, target: float, direction: str) -> bool:
    if direction == "up":
        return value >= target
    return value <= target


def directional_percent(trend: Sequence[WeeklyAveragePoint], target: float, direction: str) -> int:
    """Progress from the first toward the target, for a reduction ("down") or an increase ("up").

    A single point cannot be interpolated: it is all or nothing. The same holds
    when the first week already sits at or past the target.
    """
    if not trend:
        return 0
    current = trend[-1].average
    if len(trend) == 1:
        return 100 if meets_target(current, target, direction) else 0

    start = trend[0].average
    if direction == "up":
        moved, distance = current - start, target - start
    else:
        moved, distance = start - current, start - target
    if distance <= 0:
        return 100 if meets_target(current, target, direction) else 0
    return round_half_up(clamp01(moved / distance) * 100.0)


def lean_mass_gain_percent(trend: Sequence[WeeklyAveragePoint], target_kg: float) -> int:
    # Gain needs a baseline week and a later week.
    if len(trend) < 2:
        return 0
    gained = trend[-1].average - trend[0].average
    return round_half_up(clamp01(gained / target_kg) * 100.0)


def gained_kg(trend: Sequence[WeeklyAveragePoint]) -> float:
    if len(trend) < 2:
        return 0.0
    return max(0.0, trend[-1].average - trend[0].average)


def trend_percent_and_label(
    goal_type: GoalType,
    params: BodyFatParams | WeightParams | LeanMassGainParams,
    trend: Sequence[WeeklyAveragePoint],
) -> tuple[int, str]:
    if not trend:
        return 0, ""
    current = trend[-1].average

    if goal_type == GoalType.body_fat:
        pct = directional_percent(trend, params.target_pct, "down")
        return pct, f"{current:.1f}% → {params.target_pct:.1f}%"

    if goal_type == GoalType.weight:
        pct = directional_percent(trend, params.target_weight_kg, params.direction)
        arrow = "↓" if params.direction == "down" else "↑"
        return pct, f"{current:.1f}kg {arrow} {params.target_weight_kg:.1f}kg"

    pct = lean_mass_gain_percent(trend, params.target_kg)
    return pct, f"{gained_kg(trend):.1f}kg / {params.target_kg:.1f}kg"


def compute_trend_progress(
    goal: GoalRecord,
    goal_type: GoalType,
    params: BodyFatParams | WeightParams | LeanMassGainParams,
    measurements: Sequence[Measurement],
    *,
    min_samples: int = 2,
    start_dow: int = 1,
    min_weeks: int = MIN_TREND_WEEKS_FOR_ACHIEVEMENT,
) -> GoalProgress:
    samples = numeric_samples(goal, goal_type, measurements)
    trend = bucket_weekly_averages(samples, min_samples=min_samples, start_dow=start_dow)
    percent, label = trend_percent_and_label(goal_type, params, trend)

    # One qualifying week can show 100% but is not confirmed until a second one.
    achieved = percent >= 100 and len(trend) >= min_weeks

    return GoalProgress(
        goal_id=goal.id,
        type=goal.type,
        percent=percent,
        achieved=achieved,
        label=label,
        trend=trend,
    )
