"""Error kinds raised by the goal engine.

Validation and conflict errors are expected and user-facing. Store errors are
opaque persistence failures and pass through the engine unchanged.
"""

from __future__ import annotations


class GoalError(Exception):
    """Base class for every error raised by the goal engine."""


class GoalValidationError(GoalError):
    """Malformed or out-of-range goal input. Never reaches the store."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}" if field else message)


class ActiveGoalConflictError(GoalError):
    """The user already has an active goal of this type."""

    def __init__(self, goal_type: str):
        self.goal_type = getattr(goal_type, "value", goal_type)
        super().__init__(
            f"You already have an active {self.goal_type} goal. Deactivate it first."
        )


class NotFoundError(GoalError):
    def __init__(self, goal_id):
        self.goal_id = goal_id
        super().__init__(f"Goal not found: {goal_id}")


class StoreError(GoalError):
    """Network or persistence failure reported by the backing store."""


class UniqueViolationError(StoreError):
    """A write hit a uniqueness constraint (Postgres SQLSTATE 23505)."""

    def __init__(self, message: str, constraint: str | None = None):
        self.constraint = constraint
        super().__init__(message)
