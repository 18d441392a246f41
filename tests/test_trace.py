"""
Tests for reasoning trace generation and export.

Ensures that traces are properly built and can be exported to JSON and Markdown.
"""

import json

import pytest

from src.schemas import Goal, GoalType, ReasoningTrace, ValidationTier
from src.trace import (
    ReasoningTraceBuilder,
    load_trace_from_file,
    save_trace_from_result,
)


# Fixtures

@pytest.fixture
def trace_builder():
    """Create a basic trace builder."""
    return ReasoningTraceBuilder(goal_types=[GoalType.WEIGHT_LOSS])


@pytest.fixture
def populated_trace_builder():
    """Create a trace builder with some data."""
    builder = ReasoningTraceBuilder(goal_types=[GoalType.WEIGHT_LOSS])

    builder.add_check(
        rule="target_bmi",
        passed=True,
        reasoning="Target BMI 23.7 is above the 17.5 floor",
        value=23.7,
        threshold=17.5,
    )

    builder.add_check(
        rule="loss_rate",
        passed=False,
        reasoning="1.30 kg/week (1.63% of body weight) exceeds the sustainable 1.00%",
        value=1.63,
        threshold=1.0,
        tier=ValidationTier.CAUTION,
    )

    builder.set_result("warning", ValidationTier.CAUTION)

    return builder


@pytest.fixture
def refused_result(run_engine, reference_profile, fixture_data):
    """Loss and gain at once is always blocked."""
    return run_engine(reference_profile, Goal(**fixture_data("goal_conflicting.json")))


# Builder Tests

def test_trace_builder_initialization(trace_builder):
    """Test that a fresh builder starts approved with no checks."""
    trace = trace_builder.trace

    assert trace.goal_types == [GoalType.WEIGHT_LOSS]
    assert trace.checks == []
    assert trace.result == "approved"
    assert trace.final_tier == ValidationTier.NONE


def test_add_check(trace_builder):
    """Test adding a rule check."""
    trace_builder.add_check(
        rule="calorie_floor",
        passed=True,
        reasoning="Target stays above BMR",
        value=2160,
        threshold=1751,
    )

    assert len(trace_builder.trace.checks) == 1
    check = trace_builder.trace.checks[0]
    assert check.rule == "calorie_floor"
    assert check.passed is True
    assert check.value == 2160
    assert check.tier == ValidationTier.NONE


def test_set_result(trace_builder):
    trace_builder.set_result("refused", ValidationTier.BLOCKED)

    assert trace_builder.trace.result == "refused"
    assert trace_builder.trace.final_tier == ValidationTier.BLOCKED


def test_set_result_keeps_tier_when_omitted(trace_builder):
    trace_builder.set_result("approved")

    assert trace_builder.trace.final_tier == ValidationTier.NONE


# Export Tests

def test_export_to_json(populated_trace_builder):
    """Test JSON export."""
    data = populated_trace_builder.export_to_json()

    assert data["goal_types"] == ["weight_loss"]
    assert data["result"] == "warning"
    assert data["final_tier"] == "caution"
    assert len(data["checks"]) == 2
    json.dumps(data)


def test_export_to_markdown_warning(populated_trace_builder):
    """Test Markdown export for an allowed goal with warnings."""
    md = populated_trace_builder.export_to_markdown()

    assert "# Reasoning Trace" in md
    assert "**Goals:** `weight_loss`" in md
    assert "**Summary:** 1/2 rules passed" in md
    assert "### ❌ Failed Checks" in md
    assert "#### `loss_rate`" in md
    assert "- **Tier:** `caution`" in md
    assert "APPROVED WITH WARNINGS" in md


def test_export_to_markdown_empty(trace_builder):
    md = trace_builder.export_to_markdown()

    assert "*No rule checks performed*" in md
    assert "✅ **APPROVED**" in md


def test_export_to_markdown_refusal(refused_result):
    """Test Markdown export for a blocked goal."""
    md = ReasoningTraceBuilder.from_validation_result(refused_result).export_to_markdown()

    assert "**Result:** **REFUSED**" in md
    assert "#### `goal_conflict`" in md
    assert "⛔ **REFUSED**" in md
    assert "**Messages:**" in md


def test_markdown_lists_alternatives(run_engine, reference_profile):
    """A cautioned loss rate offers slower alternatives."""
    goal = Goal(goal_types=[GoalType.WEIGHT_LOSS], target_weight_kg=67, timeline_weeks=10)
    result = run_engine(reference_profile, goal)

    md = ReasoningTraceBuilder.from_validation_result(result).export_to_markdown()

    assert "## Alternatives" in md
    assert "| Option | kg/week | Weeks |" in md
    assert "conservative" in md
    assert "**Calculations Version:** `2.1.0`" in md


# File Tests

def test_save_to_file_json(populated_trace_builder, tmp_path):
    """Test saving trace to JSON file."""
    filepath = populated_trace_builder.save_to_file(tmp_path, format="json")

    assert filepath == tmp_path / "trace_weight_loss.json"
    with open(filepath) as f:
        data = json.load(f)
    assert data["result"] == "warning"


def test_save_to_file_markdown_with_stamp(populated_trace_builder, tmp_path):
    """A caller-supplied stamp becomes part of the file name."""
    filepath = populated_trace_builder.save_to_file(
        tmp_path / "nested", format="markdown", stamp="20240101"
    )

    assert filepath.name == "trace_weight_loss_20240101.md"
    assert filepath.read_text().startswith("# Reasoning Trace")


def test_save_to_file_invalid_format(populated_trace_builder, tmp_path):
    """Test that an invalid format raises an error."""
    with pytest.raises(ValueError, match="Unsupported format"):
        populated_trace_builder.save_to_file(tmp_path, format="xml")


def test_load_trace_from_file(populated_trace_builder, tmp_path):
    """Test loading trace from JSON file."""
    filepath = populated_trace_builder.save_to_file(tmp_path)

    loaded = load_trace_from_file(filepath)

    assert isinstance(loaded, ReasoningTrace)
    assert loaded == populated_trace_builder.trace


def test_load_trace_from_nonexistent_file(tmp_path):
    """Test loading from non-existent file raises error."""
    with pytest.raises(FileNotFoundError):
        load_trace_from_file(tmp_path / "missing.json")


def test_load_trace_rejects_invalid_content(tmp_path):
    filepath = tmp_path / "bad.json"
    filepath.write_text(json.dumps({"result": "maybe"}))

    with pytest.raises(ValueError, match="Invalid trace file"):
        load_trace_from_file(filepath)


def test_save_trace_from_validation_result(refused_result, tmp_path):
    """Test convenience function for saving from a ValidationResult."""
    filepath = save_trace_from_result(refused_result, tmp_path, format="json", stamp="run1")

    assert filepath.name == "trace_weight_loss_weight_gain_run1.json"
    loaded = load_trace_from_file(filepath)
    assert loaded.result == "refused"
    assert loaded.final_tier == ValidationTier.BLOCKED


def test_from_validation_result(run_engine, reference_profile, moderate_loss_goal):
    """Test creating a builder from a ValidationResult."""
    result = run_engine(reference_profile, moderate_loss_goal)

    builder = ReasoningTraceBuilder.from_validation_result(result)

    assert builder.trace == result.reasoning_trace
    assert builder.result is result
    assert builder.trace.result == "approved"
