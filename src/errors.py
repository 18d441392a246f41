"""
Input loading results and exception classes.

Expected domain conditions are returned as typed results:
- MissingField: a required profile field was not supplied
- OutOfRange: a value is representable but outside plausible bounds

Structurally invalid input (negative or non-finite magnitudes, unknown enum
values, wrong types) is a programmer error and raises InvalidInputError.
"""

import math
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, Field, ValidationError

from src.schemas import Goal, UserBiometricProfile


class EngineError(Exception):
    """Base exception class for all engine exceptions.

    Attributes:
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional additional error details.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class InvalidInputError(EngineError):
    """Raised for structurally invalid input such as negative or non-finite magnitudes."""

    def __init__(self, field: str, value: Any, reason: str):
        message = f"Invalid value for '{field}': {value!r} ({reason})"
        super().__init__(
            message,
            status_code=400,
            details={"field": field, "value": repr(value), "reason": reason},
        )
        self.field = field


class MissingField(BaseModel):
    """A required field was not supplied."""

    kind: Literal["missing_field"] = "missing_field"
    field: str
    message: str


class OutOfRange(BaseModel):
    """A value lies outside its plausible bounds."""

    kind: Literal["out_of_range"] = "out_of_range"
    field: str
    value: float
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    message: str


InputIssue = Union[MissingField, OutOfRange]

_BOUND_ERRORS = {"greater_than_equal", "less_than_equal", "greater_than", "less_than"}

M = TypeVar("M", bound=BaseModel)


def ensure_finite_non_negative(field: str, value: Any) -> None:
    """
    Raise InvalidInputError if a numeric value is non-finite or negative.

    Non-numeric values are left to model validation.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return
    if not math.isfinite(value):
        raise InvalidInputError(field, value, "must be a finite number")
    if value < 0:
        raise InvalidInputError(field, value, "must not be negative")


def _field_bounds(model: Type[BaseModel], field: str) -> Tuple[Optional[float], Optional[float]]:
    """Read ge/le style bounds from a model field's metadata."""
    info = model.model_fields.get(field)
    minimum = maximum = None
    if info is None:
        return minimum, maximum
    for constraint in info.metadata:
        for attr in ("ge", "gt"):
            if getattr(constraint, attr, None) is not None:
                minimum = float(getattr(constraint, attr))
        for attr in ("le", "lt"):
            if getattr(constraint, attr, None) is not None:
                maximum = float(getattr(constraint, attr))
    return minimum, maximum


def _load(model: Type[M], data: Mapping[str, Any], required: List[str]) -> Union[M, InputIssue]:
    for field in required:
        if data.get(field) is None:
            return MissingField(field=field, message=f"'{field}' is required")

    for field, value in data.items():
        ensure_finite_non_negative(field, value)

    try:
        return model(**data)
    except ValidationError as e:
        errors = e.errors()

    for error in errors:
        if error["type"] == "missing":
            field = str(error["loc"][0])
            return MissingField(field=field, message=f"'{field}' is required")

    for error in errors:
        if error["type"] in _BOUND_ERRORS:
            field = ".".join(str(part) for part in error["loc"])
            minimum, maximum = (
                _field_bounds(model, field) if len(error["loc"]) == 1 else (None, None)
            )
            value = float(error["input"])
            return OutOfRange(
                field=field,
                value=value,
                minimum=minimum,
                maximum=maximum,
                message=f"'{field}' must be between {minimum:g} and {maximum:g}, got {value:g}"
                if minimum is not None and maximum is not None
                else f"'{field}' is out of range: {value:g}",
            )

    first = errors[0]
    location = ".".join(str(part) for part in first["loc"]) or model.__name__
    raise InvalidInputError(location, first.get("input"), first["msg"])


def load_profile(data: Mapping[str, Any]) -> Union[UserBiometricProfile, InputIssue]:
    """
    Build a profile from raw input, returning typed issues for expected problems.

    Args:
        data: Raw mapping, e.g. a parsed JSON body

    Returns:
        UserBiometricProfile, MissingField or OutOfRange

    Raises:
        InvalidInputError: For negative/non-finite magnitudes or malformed values
    """
    return _load(UserBiometricProfile, data, ["age", "gender", "weight_kg", "height_cm"])


def load_goal(data: Mapping[str, Any]) -> Union[Goal, InputIssue]:
    """
    Build a goal from raw input.

    Raises:
        InvalidInputError: For negative/non-finite magnitudes or malformed values
    """
    return _load(Goal, data, ["goal_types", "target_weight_kg", "timeline_weeks"])


class IssueResponse(BaseModel):
    """Serializable wrapper used by the HTTP and CLI surfaces."""

    issue: InputIssue = Field(..., discriminator="kind")
