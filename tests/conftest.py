"""Shared fixtures: JSON profiles and engine components."""

import json
from pathlib import Path

import pytest

from src.context import ContextDetector
from src.metrics import MetricsCalculator
from src.schemas import Goal, UserBiometricProfile
from src.validator import GoalValidator

FIXTURES = Path(__file__).parent / "fixtures"


def load_fixture(name: str) -> dict:
    with open(FIXTURES / name) as f:
        return json.load(f)


@pytest.fixture
def fixture_data():
    """Raw JSON fixture loader, for tests that exercise input loading."""
    return load_fixture


@pytest.fixture
def detector():
    return ContextDetector()


@pytest.fixture
def calculator():
    return MetricsCalculator()


@pytest.fixture
def validator():
    return GoalValidator()


@pytest.fixture
def reference_profile():
    """Male, 30, 80 kg, BMI 26.0, moderately active, Germany."""
    return UserBiometricProfile(**load_fixture("profile_reference.json"))


@pytest.fixture
def lifter_profile():
    """Experienced lean lifter with a caliper body fat measurement."""
    return UserBiometricProfile(**load_fixture("profile_lifter.json"))


@pytest.fixture
def pregnant_profile():
    return UserBiometricProfile(**load_fixture("profile_pregnant.json"))


@pytest.fixture
def moderate_loss_goal():
    return Goal(**load_fixture("goal_moderate_loss.json"))


@pytest.fixture
def run_engine(detector, calculator, validator):
    """Detect, calculate and validate in one call."""

    def _run(profile, goal):
        context = detector.detect(profile)
        metrics = calculator.calculate_all(profile, context, goal)
        return validator.validate(goal, metrics, profile)

    return _run
