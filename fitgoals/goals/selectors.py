"""Dashboard selectors — pure list helpers over goal records."""

from __future__ import annotations

from collections.abc import Sequence

from fitgoals.config import settings
from fitgoals.goals.models import GoalRecord, GoalStatus


def is_current(goal: GoalRecord) -> bool:
    """Active flag set and still in the active status (not achieved, not deactivated)."""
    return goal.active and goal.status == GoalStatus.active


def partition_goals(goals: Sequence[GoalRecord]) -> tuple[list[GoalRecord], list[GoalRecord]]:
    """Split into (active, archived), preserving order."""
    active: list[GoalRecord] = []
    archived: list[GoalRecord] = []
    for g in goals:
        (active if is_current(g) else archived).append(g)
    return active, archived


def top_active(goals: Sequence[GoalRecord], n: int | None = None) -> list[GoalRecord]:
    n = settings.goals_top_n if n is None else n
    return [g for g in goals if is_current(g)][:max(n, 0)]
