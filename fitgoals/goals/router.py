"""Goals HTTP router — lifecycle and progress."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from fitgoals.auth import current_user_id, verify_api_key
from fitgoals.db import get_session
from fitgoals.goals import lifecycle, progress, selectors
from fitgoals.goals.errors import (
    ActiveGoalConflictError,
    GoalError,
    GoalValidationError,
    NotFoundError,
    StoreError,
)
from fitgoals.goals.models import GoalCreate, GoalOverview, GoalProgress, GoalRecord
from fitgoals.goals.store import GoalStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/goals", tags=["goals"], dependencies=[Depends(verify_api_key)])


async def get_store(session: AsyncSession = Depends(get_session)) -> GoalStore:
    return GoalStore(session)


def _http_error(exc: GoalError) -> HTTPException:
    if isinstance(exc, GoalValidationError):
        return HTTPException(status_code=422, detail={"field": exc.field, "message": exc.message})
    if isinstance(exc, ActiveGoalConflictError):
        return HTTPException(status_code=409, detail={"type": exc.goal_type, "message": str(exc)})
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    logger.error("Goal request failed: %s", exc)
    return HTTPException(status_code=503, detail="Goal storage is unavailable, try again later.")


# ---------------------------------------------------------------------------
# /goals
# ---------------------------------------------------------------------------


@router.get("", response_model=list[GoalRecord])
async def list_goals(
    store: GoalStore = Depends(get_store),
    user_id: str = Depends(current_user_id),
    goal_type: str | None = Query(default=None, alias="type", description="Filter by goal type"),
    active: bool | None = Query(default=None, description="Filter by active flag"),
) -> list[GoalRecord]:
    try:
        return await lifecycle.list_goals(store, user_id, goal_type=goal_type, active=active)
    except StoreError as exc:
        raise _http_error(exc)


@router.get("/overview", response_model=GoalOverview)
async def goals_overview(
    store: GoalStore = Depends(get_store),
    user_id: str = Depends(current_user_id),
) -> GoalOverview:
    """Active and archived goals plus progress for every active goal.

    Reading progress finalizes achieved goals, so those come back archived.
    """
    try:
        goals = await lifecycle.list_goals(store, user_id)
        active, _ = selectors.partition_goals(goals)
        results = await progress.get_progress_for_goals(store, active)
        if any(p is not None and p.achieved for p in results.values()):
            goals = await lifecycle.list_goals(store, user_id)
    except StoreError as exc:
        raise _http_error(exc)
    active, archived = selectors.partition_goals(goals)
    return GoalOverview(
        top_active=selectors.top_active(active),
        active=active,
        archived=archived,
        progress=results,
    )


@router.post("", response_model=GoalRecord, status_code=201)
async def create_goal(
    body: GoalCreate,
    store: GoalStore = Depends(get_store),
    user_id: str = Depends(current_user_id),
) -> GoalRecord:
    try:
        return await lifecycle.create_goal(
            store, user_id, body.type, body.params, body.start_date, body.end_date, active=body.active
        )
    except GoalError as exc:
        raise _http_error(exc)


# ---------------------------------------------------------------------------
# /goals/{goal_id}
# ---------------------------------------------------------------------------


@router.get("/{goal_id}", response_model=GoalRecord)
async def get_goal(
    goal_id: UUID,
    store: GoalStore = Depends(get_store),
    user_id: str = Depends(current_user_id),
) -> GoalRecord:
    try:
        return await lifecycle.get_goal(store, user_id, goal_id)
    except GoalError as exc:
        raise _http_error(exc)


@router.get("/{goal_id}/progress", response_model=GoalProgress | None)
async def get_goal_progress(
    goal_id: UUID,
    store: GoalStore = Depends(get_store),
    user_id: str = Depends(current_user_id),
) -> GoalProgress | None:
    try:
        return await progress.get_goal_progress(store, user_id, goal_id)
    except GoalError as exc:
        raise _http_error(exc)


@router.post("/{goal_id}/deactivate", response_model=GoalRecord)
async def deactivate_goal(
    goal_id: UUID,
    store: GoalStore = Depends(get_store),
    user_id: str = Depends(current_user_id),
) -> GoalRecord:
    try:
        return await lifecycle.deactivate_goal(store, user_id, goal_id)
    except GoalError as exc:
        raise _http_error(exc)


@router.post("/{goal_id}/activate", response_model=GoalRecord)
async def activate_goal(
    goal_id: UUID,
    store: GoalStore = Depends(get_store),
    user_id: str = Depends(current_user_id),
) -> GoalRecord:
    try:
        return await lifecycle.set_active_goal(store, user_id, goal_id)
    except GoalError as exc:
        raise _http_error(exc)


@router.delete("/{goal_id}", status_code=204)
async def delete_goal(
    goal_id: UUID,
    store: GoalStore = Depends(get_store),
    user_id: str = Depends(current_user_id),
) -> Response:
    try:
        await lifecycle.delete_goal(store, user_id, goal_id)
    except GoalError as exc:
        raise _http_error(exc)
    return Response(status_code=204)
