"""Goal lifecycle — create, list, deactivate, reactivate, delete.

Invariant: at most one goal per (user, type) has active=true. The conflict
guard below is a best-effort early check; two concurrent creates can both
pass it, so the store's partial unique index stays the source of truth and
its violation is reported as the same ActiveGoalConflictError.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any
from uuid import UUID

from fitgoals.goals.errors import (
    ActiveGoalConflictError,
    GoalValidationError,
    NotFoundError,
    StoreError,
    UniqueViolationError,
)
from fitgoals.goals.models import GoalRecord, GoalStatus, type_name
from fitgoals.goals.store import GoalStore
from fitgoals.goals.validation import dump_goal_params, validate_goal_params

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Conflict guard
# ---------------------------------------------------------------------------

async def has_active_goal_of_type(store: GoalStore, user_id: str, goal_type: str) -> bool:
    return await store.has_active_goal(user_id, type_name(goal_type))


async def ensure_no_active_goal_of_type(store: GoalStore, user_id: str, goal_type: str) -> None:
    goal_type = type_name(goal_type)
    if await has_active_goal_of_type(store, user_id, goal_type):
        logger.info("Active %s goal already exists for user %s", goal_type, user_id)
        raise ActiveGoalConflictError(goal_type)


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

async def _commit_or_rollback(store: GoalStore) -> None:
    try:
        await store.commit()
    except StoreError:
        await store.rollback()
        raise


async def create_goal(
    store: GoalStore,
    user_id: str,
    goal_type: str,
    raw_params: Any,
    start_date: date,
    end_date: date,
    active: bool = True,
) -> GoalRecord:
    """Validate and insert a new goal. Params and dates are fixed from here on."""
    goal_type = type_name(goal_type)
    params = validate_goal_params(goal_type, raw_params)
    if end_date < start_date:
        raise GoalValidationError("end_date", "must be on or after start_date")

    if active:
        await ensure_no_active_goal_of_type(store, user_id, goal_type)

    values = {
        "user_id": user_id,
        "type": goal_type,
        "params": dump_goal_params(params),
        "start_date": start_date,
        "end_date": end_date,
        "active": active,
        "status": GoalStatus.active.value,
    }
    try:
        goal = await store.insert_goal(values)
        await store.commit()
    except UniqueViolationError as exc:
        await store.rollback()
        logger.info("Store rejected second active %s goal for user %s", goal_type, user_id)
        raise ActiveGoalConflictError(goal_type) from exc
    except StoreError:
        await store.rollback()
        raise

    logger.info("Created %s goal %s for user %s", goal_type, goal.id, user_id)
    return goal


async def deactivate_goal(store: GoalStore, user_id: str, goal_id: UUID) -> GoalRecord:
    try:
        goal = await store.update_goal(
            user_id, goal_id, {"active": False, "status": GoalStatus.deactivated.value}
        )
    except StoreError:
        await store.rollback()
        raise
    if goal is None:
        await store.rollback()
        raise NotFoundError(goal_id)
    await _commit_or_rollback(store)
    logger.info("Deactivated goal %s", goal_id)
    return goal


async def set_active_goal(store: GoalStore, user_id: str, goal_id: UUID) -> GoalRecord:
    """Make `goal_id` the active goal of its type, deactivating its siblings.

    Both writes share one transaction. The activation write is idempotent, so
    repeating the call after a failure converges on the same state.
    """
    goal = await store.fetch_goal(user_id, goal_id)
    if goal is None:
        raise NotFoundError(goal_id)

    try:
        cleared = await store.deactivate_other_active(goal.user_id, goal.type, goal.id)
        updated = await store.update_goal(
            goal.user_id, goal.id, {"active": True, "status": GoalStatus.active.value}
        )
        if updated is None:
            raise NotFoundError(goal_id)
        await store.commit()
    except UniqueViolationError as exc:
        await store.rollback()
        raise ActiveGoalConflictError(goal.type) from exc
    except (StoreError, NotFoundError):
        await store.rollback()
        raise

    logger.info("Activated goal %s (deactivated %d sibling(s))", goal_id, cleared)
    return updated


async def delete_goal(store: GoalStore, user_id: str, goal_id: UUID) -> None:
    try:
        deleted = await store.delete_goal(user_id, goal_id)
    except StoreError:
        await store.rollback()
        raise
    if not deleted:
        await store.rollback()
        raise NotFoundError(goal_id)
    await _commit_or_rollback(store)
    logger.info("Deleted goal %s", goal_id)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_goal(store: GoalStore, user_id: str, goal_id: UUID) -> GoalRecord:
    goal = await store.fetch_goal(user_id, goal_id)
    if goal is None:
        raise NotFoundError(goal_id)
    return goal


async def list_goals(
    store: GoalStore,
    user_id: str,
    goal_type: str | None = None,
    active: bool | None = None,
) -> list[GoalRecord]:
    """Goals of the user, newest first, optionally filtered by type and active flag."""
    results = await store.fetch_goals(user_id)
    if goal_type:
        results = [g for g in results if g.type == goal_type]
    if active is not None:
        results = [g for g in results if g.active is active]
    return results
