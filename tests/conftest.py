"""Shared fixtures for the test suite."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any
from uuid import UUID, uuid4

import pytest
from httpx import ASGITransport, AsyncClient

from fitgoals.goals.errors import StoreError, UniqueViolationError
from fitgoals.goals.models import DailyAggregate, GoalRecord, GoalStatus, Measurement
from fitgoals.goals.router import get_store
from fitgoals.main import app

USER_ID = "user-123"
_EPOCH = datetime(2025, 8, 1, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Fake DB session (no real Postgres needed)
# ---------------------------------------------------------------------------

class FakeSession:
    """Minimal stand-in for AsyncSession used in store tests."""

    def __init__(self, rows: list[dict[str, Any]] | None = None, error: Exception | None = None):
        self._rows = rows or []
        self.error = error
        self.statements: list[Any] = []
        self.commits = 0
        self.rollbacks = 0

    async def execute(self, stmt, params=None):
        self.statements.append(stmt)
        if self.error is not None:
            raise self.error
        return FakeResult(self._rows)

    async def commit(self):
        self.commits += 1

    async def rollback(self):
        self.rollbacks += 1

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        pass


class FakeResult:
    def __init__(self, rows: list[dict[str, Any]]):
        self._rows = rows
        self._keys = list(rows[0].keys()) if rows else []

    def keys(self):
        return self._keys

    def fetchall(self):
        return [tuple(r[k] for k in self._keys) for r in self._rows]

    def fetchone(self):
        rows = self.fetchall()
        return rows[0] if rows else None


# ---------------------------------------------------------------------------
# In-memory goal store
# ---------------------------------------------------------------------------

class FakeGoalStore:
    """Same interface as GoalStore, backed by dicts.

    Enforces the one-active-goal-per-(user, type) index like the real table
    and records every write so tests can assert on them.
    """

    def __init__(self):
        self.goals: dict[UUID, GoalRecord] = {}
        self.days: dict[tuple[str, date], DailyAggregate] = {}
        self.measurements: list[Measurement] = []
        self.tdee: dict[str, float] = {}
        self.writes: list[tuple[str, Any]] = []
        self.commits = 0
        self.rollbacks = 0
        self.fail_updates = False

    def _now(self) -> datetime:
        return _EPOCH + timedelta(minutes=len(self.goals) + len(self.writes))

    def _check_unique(self, user_id: str, goal_type: str, exclude: UUID | None = None) -> None:
        for g in self.goals.values():
            if g.id != exclude and g.user_id == user_id and g.type == goal_type and g.active:
                raise UniqueViolationError(
                    "duplicate key value violates unique constraint",
                    constraint="uq_goals_one_active_per_type",
                )

    # -- seeding helpers (not recorded as writes) --------------------------

    def add_goal(self, **overrides: Any) -> GoalRecord:
        goal = make_goal(created_at=self._now(), **overrides)
        self.goals[goal.id] = goal
        return goal

    def add_days(self, user_id: str, rows: list[DailyAggregate]) -> None:
        for r in rows:
            self.days[(user_id, r.date)] = r

    def add_measurements(self, rows: list[Measurement]) -> None:
        self.measurements.extend(rows)

    # -- transaction -------------------------------------------------------

    async def commit(self) -> None:
        self.commits += 1

    async def rollback(self) -> None:
        self.rollbacks += 1

    # -- goals -------------------------------------------------------------

    async def fetch_goal(self, user_id: str, goal_id: UUID) -> GoalRecord | None:
        g = self.goals.get(goal_id)
        if g is None or g.user_id != user_id:
            return None
        return g.model_copy()

    async def fetch_goals(self, user_id: str) -> list[GoalRecord]:
        rows = [g.model_copy() for g in self.goals.values() if g.user_id == user_id]
        return sorted(rows, key=lambda g: g.created_at, reverse=True)

    async def has_active_goal(self, user_id: str, goal_type: str) -> bool:
        return any(
            g.user_id == user_id and g.type == goal_type and g.active for g in self.goals.values()
        )

    async def insert_goal(self, values: dict[str, Any]) -> GoalRecord:
        if values.get("active"):
            self._check_unique(values["user_id"], values["type"])
        now = self._now()
        goal = GoalRecord(id=uuid4(), created_at=now, updated_at=now, **values)
        self.goals[goal.id] = goal
        self.writes.append(("insert", values))
        return goal.model_copy()

    async def update_goal(self, user_id: str, goal_id: UUID, values: dict[str, Any]) -> GoalRecord | None:
        if self.fail_updates:
            raise StoreError("Store unavailable")
        g = self.goals.get(goal_id)
        if g is None or g.user_id != user_id:
            return None
        if values.get("active"):
            self._check_unique(g.user_id, g.type, exclude=g.id)
        updated = GoalRecord.model_validate({**g.model_dump(), **values, "updated_at": self._now()})
        self.goals[goal_id] = updated
        self.writes.append(("update", {"id": goal_id, **values}))
        return updated.model_copy()

    async def deactivate_other_active(self, user_id: str, goal_type: str, keep_id: UUID) -> int:
        cleared = 0
        for gid, g in list(self.goals.items()):
            if g.user_id == user_id and g.type == goal_type and g.active and gid != keep_id:
                self.goals[gid] = g.model_copy(update={"active": False, "status": GoalStatus.deactivated})
                cleared += 1
        self.writes.append(("deactivate_others", {"type": goal_type, "keep": keep_id}))
        return cleared

    async def delete_goal(self, user_id: str, goal_id: UUID) -> bool:
        g = self.goals.get(goal_id)
        if g is None or g.user_id != user_id:
            return False
        del self.goals[goal_id]
        self.writes.append(("delete", goal_id))
        return True

    # -- progress inputs ---------------------------------------------------

    async def fetch_measurements(self, goal_id: UUID, start: date, end: date) -> list[Measurement]:
        rows = [m for m in self.measurements if m.goal_id == goal_id and start <= m.date <= end]
        return sorted(rows, key=lambda m: m.date)

    async def fetch_days(self, user_id: str, start: date, end: date) -> list[DailyAggregate]:
        rows = [d for (uid, day), d in self.days.items() if uid == user_id and start <= day <= end]
        return sorted(rows, key=lambda d: d.date)

    async def fetch_profile_tdee(self, user_id: str) -> float | None:
        return self.tdee.get(user_id)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def make_goal(**overrides: Any) -> GoalRecord:
    defaults: dict[str, Any] = {
        "id": uuid4(),
        "user_id": USER_ID,
        "type": "protein_streak",
        "params": {"gramsPerDay": 150, "targetDays": 2},
        "start_date": date(2025, 8, 10),
        "end_date": date(2025, 8, 31),
        "active": True,
        "status": "active",
        "created_at": _EPOCH,
        "updated_at": _EPOCH,
    }
    defaults.update(overrides)
    return GoalRecord.model_validate(defaults)


def make_day(day: date, calories: float | None = None, protein: float | None = None) -> DailyAggregate:
    return DailyAggregate(date=day, total_calories=calories, total_protein=protein)


def make_measurement(goal_id: UUID, day: date, **value: Any) -> Measurement:
    return Measurement(goal_id=goal_id, date=day, value=value, source="manual")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def fake_store() -> FakeGoalStore:
    return FakeGoalStore()


@pytest.fixture()
def override_store(fake_store):
    """Override the FastAPI dependency so no real DB is needed."""
    async def _override():
        return fake_store

    app.dependency_overrides[get_store] = _override
    yield fake_store
    app.dependency_overrides.clear()


@pytest.fixture()
async def client(override_store):
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport, base_url="http://test", headers={"X-User-Id": USER_ID}
    ) as ac:
        yield ac
