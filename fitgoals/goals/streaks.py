"""Streak compliance engine — pure functions, no I/O.

A streak goal (calorie_streak, protein_streak) is tracked as one compliance
entry per day of the goal's range. Progress is the run of compliant days
ending on the most recent day.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from datetime import date, timedelta

from fitgoals.goals.models import (
    CalorieStreakParams,
    ComplianceHistoryEntry,
    DailyAggregate,
    GoalProgress,
    GoalRecord,
    ProteinStreakParams,
    StreakSnapshot,
)

# Returns None when nothing relevant was logged for the day.
ComplianceRule = Callable[[DailyAggregate], bool | None]


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def each_day(start: date, end: date) -> list[date]:
    """Every date from start to end inclusive. Empty when end < start."""
    if end < start:
        return []
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]


def streak_range(goal: GoalRecord, today: date) -> tuple[date, date]:
    """Evaluated range: the goal's start through its end date, never past today."""
    return goal.start_date, min(goal.end_date, today)


# ---------------------------------------------------------------------------
# Compliance rules
# ---------------------------------------------------------------------------

def recommended_calorie_window(
    tdee: float | None,
    tolerance_pct: float,
) -> tuple[int, int] | None:
    """Inclusive kcal band centred on TDEE. None when no TDEE is on file."""
    if tdee is None or tdee <= 0:
        return None
    return round_half_up(tdee * (1.0 - tolerance_pct)), round_half_up(tdee * (1.0 + tolerance_pct))


def protein_rule(grams_per_day: float) -> ComplianceRule:
    def rule(day: DailyAggregate) -> bool | None:
        if day.total_protein is None:
            return None
        return day.total_protein >= grams_per_day

    return rule


def calorie_rule(window: tuple[float, float] | None) -> ComplianceRule:
    """Calories inside `window` inclusive. With no window no day complies."""

    def rule(day: DailyAggregate) -> bool | None:
        if day.total_calories is None:
            return None
        if window is None:
            return False
        low, high = window
        return low <= day.total_calories <= high

    return rule


def compliance_rule_for(
    params: CalorieStreakParams | ProteinStreakParams,
    tdee: float | None,
    tolerance_pct: float,
) -> ComplianceRule:
    if isinstance(params, ProteinStreakParams):
        return protein_rule(params.grams_per_day)
    if params.basis == "custom":
        return calorie_rule((params.min_calories, params.max_calories))
    return calorie_rule(recommended_calorie_window(tdee, tolerance_pct))


# ---------------------------------------------------------------------------
# History & trailing scan
# ---------------------------------------------------------------------------

def build_compliance_history(
    days: Sequence[DailyAggregate],
    start: date,
    end: date,
    rule: ComplianceRule,
) -> list[ComplianceHistoryEntry]:
    """One entry per day in [start, end], oldest first.

    Days without an aggregate row, or whose relevant total is null, are
    recorded as logged=False and compliant=False.
    """
    by_date = {d.date: d for d in days}
    history: list[ComplianceHistoryEntry] = []
    for day in each_day(start, end):
        row = by_date.get(day)
        verdict = rule(row) if row is not None else None
        history.append(
            ComplianceHistoryEntry(date=day, compliant=bool(verdict), logged=verdict is not None)
        )
    return history


def trailing_streak(history: Sequence[ComplianceHistoryEntry], strict: bool = True) -> int:
    """Count consecutive compliant entries scanning back from the latest day.

    strict: an unlogged day breaks the streak.
    lenient: an unlogged day is skipped, neither counted nor breaking.
    """
    current = 0
    for entry in reversed(history):
        if not entry.logged and not strict:
            continue
        if not entry.compliant:
            break
        current += 1
    return current


def streak_percent(current: int, target_days: int) -> int:
    if target_days <= 0:
        return 0
    return round_half_up(min(current, target_days) / target_days * 100.0)


def weekly_grid(history: Sequence[ComplianceHistoryEntry]) -> list[list[bool | None]]:
    """Lay history out as Monday..Sunday rows for a heatmap.

    The first row is padded with leading None so every row has 7 cells
    except possibly the last.
    """
    if not history:
        return []
    pad = history[0].date.weekday()  # Mon=0..Sun=6
    cells: list[bool | None] = [None] * pad + [entry.compliant for entry in history]
    return [cells[i:i + 7] for i in range(0, len(cells), 7)]


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------

def compute_streak_progress(
    goal: GoalRecord,
    params: CalorieStreakParams | ProteinStreakParams,
    days: Sequence[DailyAggregate],
    *,
    today: date,
    tdee: float | None = None,
    strict: bool = True,
    tolerance_pct: float = 0.10,
) -> GoalProgress:
    start, end = streak_range(goal, today)
    rule = compliance_rule_for(params, tdee, tolerance_pct)
    history = build_compliance_history(days, start, end, rule)

    current = trailing_streak(history, strict=strict)
    target = params.target_days

    return GoalProgress(
        goal_id=goal.id,
        type=goal.type,
        percent=streak_percent(current, target),
        achieved=current >= target,
        label=f"{current}/{target} days",
        streak=StreakSnapshot(current=current, target=target, history=history, grid=weekly_grid(history)),
    )
