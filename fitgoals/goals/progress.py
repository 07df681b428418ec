"""Progress orchestrator and auto-finalizer.

compute_goal_progress is the pure dispatch: streak goals go to the streak
engine, numeric goals to the weekly-average trend engine. get_goal_progress
wraps it with the store: it loads the inputs, computes, and the first time a
still-active goal is observed as achieved it flips the row to
status=achieved, active=false. Goals already achieved or deliberately
deactivated are never written to from a read.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date, datetime
from uuid import UUID
from zoneinfo import ZoneInfo

from fitgoals.config import settings
from fitgoals.goals.errors import GoalValidationError, NotFoundError, StoreError
from fitgoals.goals.models import (
    STREAK_TYPES,
    DailyAggregate,
    GoalProgress,
    GoalRecord,
    GoalStatus,
    GoalType,
    Measurement,
    known_goal_type,
)
from fitgoals.goals.store import GoalStore
from fitgoals.goals.streaks import compute_streak_progress, streak_range
from fitgoals.goals.trends import compute_trend_progress
from fitgoals.goals.validation import parse_stored_params

logger = logging.getLogger(__name__)


def local_today() -> date:
    return datetime.now(ZoneInfo(settings.default_tz)).date()


def _stored_params(goal: GoalRecord):
    """Typed params of `goal`, or None when the stored row cannot be used."""
    try:
        return parse_stored_params(goal)
    except GoalValidationError as exc:
        logger.warning("Goal %s has unusable stored params (%s), no progress", goal.id, exc)
        return None


def compute_goal_progress(
    goal: GoalRecord,
    *,
    days: Sequence[DailyAggregate] = (),
    measurements: Sequence[Measurement] = (),
    tdee: float | None = None,
    today: date | None = None,
) -> GoalProgress | None:
    """Progress for `goal` from already-loaded inputs. No I/O.

    Returns None for a goal type this engine does not know, or whose stored
    params are unusable.
    """
    goal_type = known_goal_type(goal.type)
    if goal_type is None:
        return None
    params = _stored_params(goal)
    if params is None:
        return None

    if goal_type in STREAK_TYPES:
        return compute_streak_progress(
            goal,
            params,
            days,
            today=today or local_today(),
            tdee=tdee,
            strict=settings.goals_streak_strict,
            tolerance_pct=settings.goals_calorie_tolerance_pct,
        )

    return compute_trend_progress(
        goal,
        goal_type,
        params,
        measurements,
        min_samples=settings.goals_min_weekly_measurements,
        start_dow=settings.goals_week_start_dow,
        min_weeks=settings.goals_min_trend_weeks_for_achievement,
    )


async def load_goal_progress(
    store: GoalStore,
    goal: GoalRecord,
    today: date | None = None,
) -> GoalProgress | None:
    """Fetch what the goal type needs from the store and compute progress."""
    goal_type = known_goal_type(goal.type)
    if goal_type is None:
        return None
    params = _stored_params(goal)
    if params is None:
        return None
    today = today or local_today()

    if goal_type not in STREAK_TYPES:
        measurements = await store.fetch_measurements(goal.id, goal.start_date, goal.end_date)
        return compute_goal_progress(goal, measurements=measurements, today=today)

    start, end = streak_range(goal, today)
    days = await store.fetch_days(goal.user_id, start, end) if end >= start else []
    tdee = None
    if goal_type == GoalType.calorie_streak and params.basis == "recommended":
        tdee = await store.fetch_profile_tdee(goal.user_id)
    return compute_goal_progress(goal, days=days, tdee=tdee, today=today)


# ---------------------------------------------------------------------------
# Auto-finalization
# ---------------------------------------------------------------------------

def should_finalize(goal: GoalRecord, progress: GoalProgress | None) -> bool:
    return (
        progress is not None
        and progress.achieved
        and goal.status != GoalStatus.achieved
        and goal.active
    )


async def finalize_goal_as_achieved(store: GoalStore, goal: GoalRecord) -> GoalRecord:
    try:
        updated = await store.update_goal(
            goal.user_id, goal.id, {"status": GoalStatus.achieved.value, "active": False}
        )
        if updated is None:
            raise NotFoundError(goal.id)
        await store.commit()
    except (StoreError, NotFoundError):
        await store.rollback()
        raise
    logger.info("Goal %s achieved, finalized", goal.id)
    return updated


async def _progress_and_finalize(
    store: GoalStore,
    goal: GoalRecord,
    today: date | None,
) -> GoalProgress | None:
    progress = await load_goal_progress(store, goal, today)
    if should_finalize(goal, progress):
        try:
            await finalize_goal_as_achieved(store, goal)
        except (StoreError, NotFoundError):
            # The computed progress is still returned to the caller.
            logger.exception("Auto-finalize failed for goal %s", goal.id)
    return progress


async def get_goal_progress(
    store: GoalStore,
    user_id: str,
    goal_id: UUID,
    today: date | None = None,
) -> GoalProgress | None:
    goal = await store.fetch_goal(user_id, goal_id)
    if goal is None:
        raise NotFoundError(goal_id)
    return await _progress_and_finalize(store, goal, today)


async def get_progress_for_goals(
    store: GoalStore,
    goals: Sequence[GoalRecord],
    today: date | None = None,
) -> dict[UUID, GoalProgress | None]:
    """Progress for several goals, one after another on the same session."""
    today = today or local_today()
    results: dict[UUID, GoalProgress | None] = {}
    for goal in goals:
        results[goal.id] = await _progress_and_finalize(store, goal, today)
    return results
