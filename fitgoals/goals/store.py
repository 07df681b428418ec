"""Goal store — async access to goals, goal_measurements, days and profiles.

Every call may fail on network or database errors. SQLAlchemy errors are
translated at this boundary: a uniqueness violation becomes
UniqueViolationError, anything else StoreError. Writes are not committed
here; the caller decides the transaction boundary with commit()/rollback().
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fitgoals.db import days, goal_measurements, goals, profiles
from fitgoals.goals.errors import StoreError, UniqueViolationError
from fitgoals.goals.models import DailyAggregate, GoalRecord, Measurement

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


def _is_unique_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code == UNIQUE_VIOLATION:
        return True
    # SQLite reports no SQLSTATE
    return "UNIQUE constraint failed" in str(orig)


def _constraint_name(orig) -> str | None:
    """Name of the violated constraint, when the driver reports it."""
    # asyncpg errors carry it directly or on the wrapped cause, psycopg on .diag
    for source in (orig, getattr(orig, "__cause__", None), getattr(orig, "diag", None)):
        name = getattr(source, "constraint_name", None)
        if name:
            return name
    return None


def _rows(result) -> list[dict[str, Any]]:
    columns = result.keys()
    return [dict(zip(columns, r)) for r in result.fetchall()]


class GoalStore:
    """Query layer over one AsyncSession. Scoped per request."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _execute(self, stmt):
        try:
            return await self.session.execute(stmt)
        except IntegrityError as exc:
            if _is_unique_violation(exc):
                raise UniqueViolationError(str(exc.orig), constraint=_constraint_name(exc.orig)) from exc
            logger.error("Integrity error from store: %s", exc.orig)
            raise StoreError("Store rejected the write") from exc
        except SQLAlchemyError as exc:
            logger.error("Store call failed: %s", exc)
            raise StoreError("Store unavailable") from exc

    async def commit(self) -> None:
        try:
            await self.session.commit()
        except IntegrityError as exc:
            if _is_unique_violation(exc):
                raise UniqueViolationError(str(exc.orig), constraint=_constraint_name(exc.orig)) from exc
            raise StoreError("Store rejected the commit") from exc
        except SQLAlchemyError as exc:
            logger.error("Commit failed: %s", exc)
            raise StoreError("Store unavailable") from exc

    async def rollback(self) -> None:
        try:
            await self.session.rollback()
        except SQLAlchemyError as exc:
            raise StoreError("Rollback failed") from exc

    # -- goals -------------------------------------------------------------

    async def fetch_goal(self, user_id: str, goal_id: UUID) -> GoalRecord | None:
        stmt = select(goals).where(goals.c.id == goal_id, goals.c.user_id == user_id)
        rows = _rows(await self._execute(stmt))
        return GoalRecord.model_validate(rows[0]) if rows else None

    async def fetch_goals(self, user_id: str) -> list[GoalRecord]:
        """All goals of the user, newest first."""
        stmt = select(goals).where(goals.c.user_id == user_id).order_by(goals.c.created_at.desc())
        return [GoalRecord.model_validate(r) for r in _rows(await self._execute(stmt))]

    async def has_active_goal(self, user_id: str, goal_type: str) -> bool:
        stmt = (
            select(goals.c.id)
            .where(goals.c.user_id == user_id, goals.c.type == goal_type, goals.c.active.is_(True))
            .limit(1)
        )
        return bool(_rows(await self._execute(stmt)))

    async def insert_goal(self, values: dict[str, Any]) -> GoalRecord:
        stmt = insert(goals).values(**values).returning(*goals.c)
        rows = _rows(await self._execute(stmt))
        if not rows:
            raise StoreError("Insert returned no row")
        return GoalRecord.model_validate(rows[0])

    async def update_goal(self, user_id: str, goal_id: UUID, values: dict[str, Any]) -> GoalRecord | None:
        stmt = (
            update(goals)
            .where(goals.c.id == goal_id, goals.c.user_id == user_id)
            .values(**values, updated_at=func.now())
            .returning(*goals.c)
        )
        rows = _rows(await self._execute(stmt))
        return GoalRecord.model_validate(rows[0]) if rows else None

    async def deactivate_other_active(self, user_id: str, goal_type: str, keep_id: UUID) -> int:
        """Deactivate every active goal of `goal_type` except `keep_id`. Returns the count."""
        stmt = (
            update(goals)
            .where(
                goals.c.user_id == user_id,
                goals.c.type == goal_type,
                goals.c.active.is_(True),
                goals.c.id != keep_id,
            )
            .values(active=False, status="deactivated", updated_at=func.now())
            .returning(goals.c.id)
        )
        return len(_rows(await self._execute(stmt)))

    async def delete_goal(self, user_id: str, goal_id: UUID) -> bool:
        stmt = (
            delete(goals)
            .where(goals.c.id == goal_id, goals.c.user_id == user_id)
            .returning(goals.c.id)
        )
        return bool(_rows(await self._execute(stmt)))

    # -- progress inputs ---------------------------------------------------

    async def fetch_measurements(self, goal_id: UUID, start: date, end: date) -> list[Measurement]:
        stmt = (
            select(goal_measurements.c.goal_id, goal_measurements.c.date,
                   goal_measurements.c.value, goal_measurements.c.source)
            .where(
                goal_measurements.c.goal_id == goal_id,
                goal_measurements.c.date >= start,
                goal_measurements.c.date <= end,
            )
            .order_by(goal_measurements.c.date)
        )
        return [Measurement.model_validate(r) for r in _rows(await self._execute(stmt))]

    async def fetch_days(self, user_id: str, start: date, end: date) -> list[DailyAggregate]:
        """Day aggregates in [start, end], ascending. Missing days are simply absent."""
        stmt = (
            select(days.c.date, days.c.total_calories, days.c.total_protein)
            .where(days.c.user_id == user_id, days.c.date >= start, days.c.date <= end)
            .order_by(days.c.date)
        )
        return [DailyAggregate.model_validate(r) for r in _rows(await self._execute(stmt))]

    async def fetch_profile_tdee(self, user_id: str) -> float | None:
        stmt = select(profiles.c.tdee).where(profiles.c.id == user_id).limit(1)
        result = await self._execute(stmt)
        row = result.fetchone()
        if row is None or row[0] is None:
            return None
        return float(row[0])
