"""
Tests for input loading.

Expected problems come back as MissingField/OutOfRange values; structurally
invalid input raises InvalidInputError.
"""

import pytest

from src.errors import (
    InvalidInputError,
    IssueResponse,
    MissingField,
    OutOfRange,
    load_goal,
    load_profile,
)
from src.schemas import Goal, UserBiometricProfile


def _profile_data(**overrides):
    data = {"age": 30, "gender": "male", "weight_kg": 80, "height_cm": 180}
    data.update(overrides)
    return data


def test_valid_profile_loads():
    assert isinstance(load_profile(_profile_data()), UserBiometricProfile)


def test_missing_age_from_fixture(fixture_data):
    issue = load_profile(fixture_data("profile_missing_age.json"))

    assert isinstance(issue, MissingField)
    assert issue.field == "age"


def test_null_required_field_is_missing():
    issue = load_profile(_profile_data(height_cm=None))

    assert isinstance(issue, MissingField)
    assert issue.field == "height_cm"


def test_weight_above_bound_is_out_of_range():
    issue = load_profile(_profile_data(weight_kg=500))

    assert isinstance(issue, OutOfRange)
    assert issue.field == "weight_kg"
    assert issue.value == 500
    assert issue.minimum == 30
    assert issue.maximum == 300
    assert "between 30 and 300" in issue.message


def test_age_below_bound_is_out_of_range():
    issue = load_profile(_profile_data(age=10))

    assert isinstance(issue, OutOfRange)
    assert issue.field == "age"
    assert issue.minimum == 13


def test_nested_bound_reports_dotted_field():
    issue = load_profile(_profile_data(fitness={"max_pushups": 1000}))

    assert isinstance(issue, OutOfRange)
    assert issue.field == "fitness.max_pushups"
    assert issue.minimum is None


def test_negative_weight_raises():
    with pytest.raises(InvalidInputError) as exc_info:
        load_profile(_profile_data(weight_kg=-80))

    assert exc_info.value.status_code == 400
    assert exc_info.value.field == "weight_kg"


def test_non_finite_value_raises():
    with pytest.raises(InvalidInputError, match="finite"):
        load_profile(_profile_data(height_cm=float("inf")))


def test_unknown_enum_value_raises():
    with pytest.raises(InvalidInputError) as exc_info:
        load_profile(_profile_data(gender="robot"))

    assert exc_info.value.field == "gender"


def test_goal_loading(fixture_data):
    goal = load_goal(fixture_data("goal_moderate_loss.json"))

    assert isinstance(goal, Goal)


def test_goal_missing_timeline():
    issue = load_goal({"goal_types": ["weight_loss"], "target_weight_kg": 70})

    assert isinstance(issue, MissingField)
    assert issue.field == "timeline_weeks"


def test_goal_zero_timeline_is_out_of_range():
    issue = load_goal({"goal_types": ["weight_loss"], "target_weight_kg": 70, "timeline_weeks": 0})

    assert isinstance(issue, OutOfRange)
    assert issue.minimum == 1


def test_issue_response_round_trips_kind():
    issue = load_profile(_profile_data(weight_kg=500))
    dumped = IssueResponse(issue=issue).model_dump(mode="json")

    assert dumped["issue"]["kind"] == "out_of_range"
    assert isinstance(IssueResponse(**dumped).issue, OutOfRange)
