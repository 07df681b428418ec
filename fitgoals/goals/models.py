"""Goal domain types — Pydantic v2 models."""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class GoalType(str, Enum):
    body_fat = "body_fat"
    weight = "weight"
    lean_mass_gain = "lean_mass_gain"
    calorie_streak = "calorie_streak"
    protein_streak = "protein_streak"


STREAK_TYPES = frozenset({GoalType.calorie_streak, GoalType.protein_streak})
TREND_TYPES = frozenset({GoalType.body_fat, GoalType.weight, GoalType.lean_mass_gain})


class GoalStatus(str, Enum):
    active = "active"
    achieved = "achieved"
    deactivated = "deactivated"


def type_name(value: GoalType | str) -> str:
    """Plain string form of a goal type tag."""
    return value.value if isinstance(value, GoalType) else str(value)


def known_goal_type(value: str) -> GoalType | None:
    """Return the GoalType for `value`, or None for a type this engine does not know."""
    try:
        return GoalType(value)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Params — one shape per goal type, camelCase on the wire and in storage
# ---------------------------------------------------------------------------


class _Params(BaseModel):
    model_config = ConfigDict(strict=True, extra="forbid", frozen=True)


class BodyFatParams(_Params):
    target_pct: float = Field(alias="targetPct", gt=0, le=100, allow_inf_nan=False)


class WeightParams(_Params):
    target_weight_kg: float = Field(alias="targetWeightKg", gt=0, allow_inf_nan=False)
    direction: Literal["down", "up"]


class LeanMassGainParams(_Params):
    target_kg: float = Field(alias="targetKg", gt=0, allow_inf_nan=False)


class CalorieStreakParams(_Params):
    target_days: int = Field(alias="targetDays", ge=1, le=365)
    basis: Literal["recommended", "custom"] = "recommended"
    min_calories: int | None = Field(default=None, alias="minCalories", gt=0)
    max_calories: int | None = Field(default=None, alias="maxCalories", gt=0)


class ProteinStreakParams(_Params):
    grams_per_day: int = Field(alias="gramsPerDay", ge=1, le=1000)
    target_days: int = Field(alias="targetDays", ge=1, le=365)


GoalParams = Union[
    BodyFatParams,
    WeightParams,
    LeanMassGainParams,
    CalorieStreakParams,
    ProteinStreakParams,
]


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


class GoalRecord(BaseModel):
    """One row of the goals table. `type` stays a plain string so rows of
    goal types added later still load."""

    id: UUID
    user_id: str
    type: str
    params: dict[str, Any] = Field(default_factory=dict)
    start_date: date
    end_date: date
    active: bool = True
    status: GoalStatus = GoalStatus.active
    created_at: datetime | None = None
    updated_at: datetime | None = None


class DailyAggregate(BaseModel):
    date: date
    total_calories: float | None = None
    total_protein: float | None = None


class Measurement(BaseModel):
    goal_id: UUID
    date: date
    value: dict[str, Any] = Field(default_factory=dict)
    source: Literal["manual", "log"] = "manual"


# ---------------------------------------------------------------------------
# Progress (computed, never persisted)
# ---------------------------------------------------------------------------


class ComplianceHistoryEntry(BaseModel):
    date: date
    compliant: bool
    logged: bool = True  # False when nothing was logged for the day


class WeeklyAveragePoint(BaseModel):
    week_start: date
    average: float
    sample_count: int


class StreakSnapshot(BaseModel):
    current: int
    target: int
    history: list[ComplianceHistoryEntry] = Field(default_factory=list)
    grid: list[list[bool | None]] = Field(default_factory=list)  # Mon..Sun rows


class GoalProgress(BaseModel):
    goal_id: UUID
    type: str
    percent: int = Field(ge=0, le=100)
    achieved: bool = False
    label: str = ""
    streak: StreakSnapshot | None = None
    trend: list[WeeklyAveragePoint] | None = None
    computed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# ---------------------------------------------------------------------------
# HTTP payloads
# ---------------------------------------------------------------------------


class GoalCreate(BaseModel):
    type: str = Field(min_length=1, max_length=32)  # goals.type is String(32)
    params: dict[str, Any]
    start_date: date
    end_date: date
    active: bool = True


class GoalOverview(BaseModel):
    top_active: list[GoalRecord] = Field(default_factory=list)
    active: list[GoalRecord] = Field(default_factory=list)
    archived: list[GoalRecord] = Field(default_factory=list)
    # Keyed by goal id, one entry per goal that was active when the overview was read
    progress: dict[UUID, GoalProgress | None] = Field(default_factory=dict)
