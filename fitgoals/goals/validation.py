"""Goal parameter validation.

Each goal type has one validator that turns untrusted input into its typed
params shape. `validate_goal_params` dispatches on the type tag. A type this
engine does not know falls back to an open record so that rows written by a
newer client still load.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from pydantic import BaseModel, ValidationError

from fitgoals.goals.errors import GoalValidationError
from fitgoals.goals.models import (
    BodyFatParams,
    CalorieStreakParams,
    GoalParams,
    GoalRecord,
    GoalType,
    LeanMassGainParams,
    ProteinStreakParams,
    WeightParams,
    known_goal_type,
)


def _as_mapping(raw: Any) -> dict[str, Any]:
    if not isinstance(raw, Mapping):
        raise GoalValidationError("params", "must be an object")
    return dict(raw)


def _field_keys(model: type[BaseModel]) -> set[str]:
    return {info.alias or name for name, info in model.model_fields.items()}


def _parse(model: type[BaseModel], raw: Any, stored: bool = False):
    """Validate `raw` into `model`.

    Input from a client is checked strictly and unknown keys are rejected.
    Params read back from storage are parsed leniently: keys this version
    does not know are dropped and numeric strings are coerced.
    """
    data = _as_mapping(raw)
    if stored:
        keys = _field_keys(model)
        data = {k: v for k, v in data.items() if k in keys}
    try:
        return model.model_validate(data, strict=False if stored else None)
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or "params"
        raise GoalValidationError(field, first.get("msg", "invalid value")) from exc


def validate_body_fat(raw: Any, stored: bool = False) -> BodyFatParams:
    return _parse(BodyFatParams, raw, stored)


def validate_weight(raw: Any, stored: bool = False) -> WeightParams:
    return _parse(WeightParams, raw, stored)


def validate_lean_mass_gain(raw: Any, stored: bool = False) -> LeanMassGainParams:
    return _parse(LeanMassGainParams, raw, stored)


def validate_calorie_streak(raw: Any, stored: bool = False) -> CalorieStreakParams:
    params = _parse(CalorieStreakParams, raw, stored)
    if params.basis == "custom":
        if params.min_calories is None:
            raise GoalValidationError("minCalories", "required when basis is 'custom'")
        if params.max_calories is None:
            raise GoalValidationError("maxCalories", "required when basis is 'custom'")
        if params.min_calories > params.max_calories:
            raise GoalValidationError("minCalories", "must be less than or equal to maxCalories")
    return params


def validate_protein_streak(raw: Any, stored: bool = False) -> ProteinStreakParams:
    return _parse(ProteinStreakParams, raw, stored)


VALIDATORS: dict[GoalType, Callable[..., GoalParams]] = {
    GoalType.body_fat: validate_body_fat,
    GoalType.weight: validate_weight,
    GoalType.lean_mass_gain: validate_lean_mass_gain,
    GoalType.calorie_streak: validate_calorie_streak,
    GoalType.protein_streak: validate_protein_streak,
}


def validate_goal_params(goal_type: str, raw: Any, stored: bool = False) -> GoalParams | dict[str, Any]:
    """Validate `raw` against the params shape of `goal_type`.

    Raises GoalValidationError naming the first failing field.
    """
    known = known_goal_type(goal_type)
    if known is None:
        return _as_mapping(raw)
    return VALIDATORS[known](raw, stored)


def dump_goal_params(params: GoalParams | Mapping[str, Any]) -> dict[str, Any]:
    """JSON-ready params in their stored (camelCase) form."""
    if isinstance(params, BaseModel):
        return params.model_dump(by_alias=True, exclude_none=True)
    return dict(params)


def parse_stored_params(goal: GoalRecord) -> GoalParams | dict[str, Any]:
    """Typed params of a stored goal. Extra keys in the row are ignored."""
    return validate_goal_params(goal.type, goal.params, stored=True)
