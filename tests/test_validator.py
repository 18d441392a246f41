"""
Tests for the GoalValidator safety tiering.

Test scenarios:
1. Sustainable goals are allowed without caveats
2. Faster rates escalate through the tiers but stay allowed
3. Only the explicit block reasons produce a blocked outcome
4. Population overrides widen or narrow the rate tables
5. Recomposition and muscle gain ceilings
"""

import pytest

from src.schemas import (
    AllowedOutcome,
    BlockedOutcome,
    BlockReason,
    Gender,
    Goal,
    GoalType,
    MedicalCondition,
    UserBiometricProfile,
    ValidationTier,
)
from src.validator import GoalValidator, muscle_gain_ceiling


def _goal(types, target, weeks):
    return Goal(goal_types=types, target_weight_kg=target, timeline_weeks=weeks)


def _check(result, rule):
    return next(c for c in result.reasoning_trace.checks if c.rule == rule)


# Rate tiers

def test_sustainable_loss_is_allowed_without_caveats(run_engine, reference_profile, moderate_loss_goal):
    """0.7 kg/week at 80 kg is under 1% of body weight."""
    result = run_engine(reference_profile, moderate_loss_goal)

    assert result.tier == ValidationTier.NONE
    assert result.is_allowed is True
    assert result.requires_acknowledgment is False
    assert isinstance(result.outcome, AllowedOutcome)
    assert result.weekly_rate_kg == pytest.approx(0.7)
    assert result.weekly_rate_pct == pytest.approx(0.875)
    assert result.alternatives == []
    assert result.reasoning_trace.result == "approved"


def test_faster_loss_is_caution_with_risk_messages(run_engine, reference_profile):
    """1.3 kg/week is 1.625% of body weight."""
    result = run_engine(reference_profile, _goal([GoalType.WEIGHT_LOSS], 67, 10))

    assert result.tier == ValidationTier.CAUTION
    assert result.is_allowed is True
    assert any(m.startswith("Risk:") for m in result.messages)
    assert result.alternatives
    assert result.reasoning_trace.result == "warning"


def test_calorie_floor_breach_escalates_to_caution(run_engine, reference_profile):
    result = run_engine(reference_profile, _goal([GoalType.WEIGHT_LOSS], 67, 10))

    floor_check = _check(result, "calorie_floor")
    assert floor_check.passed is False
    assert floor_check.tier == ValidationTier.CAUTION
    assert result.recommended_calories >= 1751


def test_aggressive_loss_requires_acknowledgment(run_engine, reference_profile):
    """2 kg/week is 2.5% of body weight: severe, still allowed."""
    result = run_engine(reference_profile, _goal([GoalType.WEIGHT_LOSS], 70, 5))

    assert result.tier == ValidationTier.SEVERE
    assert result.is_allowed is True
    assert result.requires_acknowledgment is True


def test_rate_above_ceiling_is_blocked(run_engine, reference_profile):
    result = run_engine(reference_profile, _goal([GoalType.WEIGHT_LOSS], 68, 4))

    assert result.tier == ValidationTier.BLOCKED
    assert result.is_allowed is False
    assert isinstance(result.outcome, BlockedOutcome)
    assert result.outcome.reason == BlockReason.RATE_ABOVE_CEILING
    assert result.reasoning_trace.result == "refused"


def test_lean_gain_is_allowed(run_engine, reference_profile):
    result = run_engine(reference_profile, _goal([GoalType.WEIGHT_GAIN], 81.5, 10))

    assert result.tier == ValidationTier.NONE
    assert _check(result, "gain_rate").passed is True


def test_alternatives_have_sustainable_timelines(run_engine, reference_profile):
    result = run_engine(reference_profile, _goal([GoalType.WEIGHT_LOSS], 67, 10))

    for alt in result.alternatives:
        assert alt.tier == ValidationTier.NONE
        assert alt.timeline_weeks > 10
        assert alt.weekly_rate_kg <= 0.8


# Blocking conditions

def test_target_bmi_below_floor_is_blocked(run_engine, reference_profile):
    result = run_engine(reference_profile, _goal([GoalType.WEIGHT_LOSS], 50, 52))

    assert result.tier == ValidationTier.BLOCKED
    assert result.is_allowed is False
    assert result.outcome.reason == BlockReason.TARGET_BMI_BELOW_FLOOR


def test_conflicting_goals_are_blocked_regardless_of_rate(run_engine, reference_profile):
    result = run_engine(reference_profile, _goal([GoalType.WEIGHT_LOSS, GoalType.WEIGHT_GAIN], 79.5, 52))

    assert result.tier == ValidationTier.BLOCKED
    assert result.outcome.reason == BlockReason.CONFLICTING_GOALS


def test_maintenance_with_weight_loss_conflicts(run_engine, reference_profile):
    result = run_engine(reference_profile, _goal([GoalType.MAINTENANCE, GoalType.WEIGHT_LOSS], 79, 20))

    assert result.outcome.reason == BlockReason.CONFLICTING_GOALS


def test_loss_during_pregnancy_is_blocked(run_engine, pregnant_profile):
    result = run_engine(pregnant_profile, _goal([GoalType.WEIGHT_LOSS], 62, 12))

    assert result.is_allowed is False
    assert result.outcome.reason == BlockReason.LOSS_DURING_PREGNANCY


def test_target_below_essential_fat_is_blocked(run_engine):
    profile = UserBiometricProfile(
        age=30,
        gender=Gender.MALE,
        weight_kg=80,
        height_cm=175,
        body_fat_pct=10,
        body_fat_source="dexa",
    )
    # Lean mass is 72 kg; 74 kg leaves under 3% fat while BMI stays above 24.
    result = run_engine(profile, _goal([GoalType.WEIGHT_LOSS], 74, 12))

    assert result.outcome.reason == BlockReason.BELOW_ESSENTIAL_FAT


def test_muscle_gain_above_ceiling_is_blocked_with_alternatives(run_engine):
    profile = UserBiometricProfile(
        age=25,
        gender=Gender.FEMALE,
        weight_kg=60,
        height_cm=165,
        training_experience_years=4,
    )
    result = run_engine(profile, _goal([GoalType.MUSCLE_GAIN], 64, 8))

    assert result.outcome.reason == BlockReason.MUSCLE_GAIN_ABOVE_CEILING
    assert [a.label for a in result.alternatives] == ["minimum", "optimal", "maximum"]
    assert all(a.monthly_rate_kg is not None for a in result.alternatives)
    assert result.muscle_gain_ceiling is not None


def test_muscle_gain_with_weight_gain_is_held_to_muscle_ceiling(run_engine, lifter_profile):
    """Six years of training caps gain at 0.1 kg/month; +4 kg in 8 weeks is 2.17."""
    result = run_engine(lifter_profile, _goal([GoalType.MUSCLE_GAIN, GoalType.WEIGHT_GAIN], 89, 8))

    assert result.outcome.reason == BlockReason.MUSCLE_GAIN_ABOVE_CEILING
    assert result.muscle_gain_ceiling.maximum_kg_per_month == pytest.approx(0.1)
    assert _check(result, "gain_rate").tier == ValidationTier.WARNING
    assert [a.label for a in result.alternatives] == ["minimum", "optimal", "maximum"]


def test_muscle_gain_with_weight_gain_within_ceiling_runs_both_checks(run_engine, reference_profile):
    result = run_engine(
        reference_profile, _goal([GoalType.MUSCLE_GAIN, GoalType.WEIGHT_GAIN], 80.5, 8)
    )

    assert result.is_allowed is True
    assert _check(result, "muscle_gain_ceiling").passed is True
    assert _check(result, "gain_rate").passed is True


def test_muscle_only_goal_with_lower_target_uses_loss_table(run_engine, reference_profile):
    """8 kg in 2 weeks is 5% of body weight per week."""
    result = run_engine(reference_profile, _goal([GoalType.MUSCLE_GAIN], 72, 2))

    assert result.outcome.reason == BlockReason.RATE_ABOVE_CEILING
    assert _check(result, "loss_rate").tier == ValidationTier.BLOCKED


def test_muscle_only_goal_with_lower_target_is_tiered(run_engine, reference_profile):
    """1.6 kg/week is 2% of body weight."""
    result = run_engine(reference_profile, _goal([GoalType.MUSCLE_GAIN], 72, 5))

    assert result.tier == ValidationTier.WARNING
    assert _check(result, "loss_rate").tier == ValidationTier.WARNING
    assert result.recomposition is not None


# Recomposition

def test_muscle_gain_with_weight_loss_is_allowed_recomposition(run_engine, lifter_profile):
    result = run_engine(lifter_profile, _goal([GoalType.MUSCLE_GAIN, GoalType.WEIGHT_LOSS], 83, 8))

    assert result.is_allowed is True
    assert result.tier != ValidationTier.BLOCKED
    assert result.recomposition is not None
    assert result.recomposition.feasibility == "slow"
    assert result.recomposition.muscle_gain_kg_per_month > 0
    assert "per month" in result.recomposition.message
    assert result.tier == ValidationTier.CAUTION


def test_recomposition_is_good_for_novices(run_engine, reference_profile):
    result = run_engine(reference_profile, _goal([GoalType.RECOMPOSITION], 78, 12))

    assert result.recomposition.feasibility == "good"
    assert _check(result, "recomposition").tier == ValidationTier.NONE


# Muscle gain ceiling

def test_muscle_ceiling_decreases_with_experience(reference_profile):
    novice = reference_profile.model_copy(update={"training_experience_years": 0.5})
    veteran = reference_profile.model_copy(update={"training_experience_years": 5})

    assert (
        muscle_gain_ceiling(veteran).maximum_kg_per_month
        < muscle_gain_ceiling(novice).maximum_kg_per_month
    )


def test_muscle_ceiling_factors(reference_profile):
    base = reference_profile.model_copy(update={"training_experience_years": 0})
    female = base.model_copy(update={"gender": Gender.FEMALE})
    older = base.model_copy(update={"age": 55})

    assert muscle_gain_ceiling(base).maximum_kg_per_month == pytest.approx(1.0)
    assert muscle_gain_ceiling(female).maximum_kg_per_month == pytest.approx(0.5)
    assert muscle_gain_ceiling(older).maximum_kg_per_month == pytest.approx(0.8)
    assert muscle_gain_ceiling(base, body_fat_pct=30).factors["body_fat"] == pytest.approx(0.85)


def test_muscle_ceiling_bands_are_ordered(reference_profile):
    ceiling = muscle_gain_ceiling(reference_profile)

    assert ceiling.experience_band == "intermediate"
    assert ceiling.minimum_kg_per_month < ceiling.optimal_kg_per_month < ceiling.maximum_kg_per_month


# Population overrides

def test_high_bmi_widens_loss_table(validator, reference_profile):
    obese = reference_profile.model_copy(update={"weight_kg": 120})

    multiplier, reasons = validator.rate_multiplier(obese, is_loss=True)

    assert multiplier == pytest.approx(1.5)
    assert reasons


def test_bmi_widening_applies_only_to_loss(validator, reference_profile):
    obese = reference_profile.model_copy(update={"weight_kg": 120})

    multiplier, _ = validator.rate_multiplier(obese, is_loss=False)

    assert multiplier == pytest.approx(1.0)


def test_narrowing_factors_stack(validator, reference_profile):
    profile = reference_profile.model_copy(
        update={"age": 70, "medical_conditions": [MedicalCondition.HYPERTENSION]}
    )

    multiplier, _ = validator.rate_multiplier(profile, is_loss=False)

    assert multiplier == pytest.approx(0.8 * 0.8)


def test_obese_profile_classifies_faster_rate_as_sustainable(run_engine, reference_profile):
    obese = reference_profile.model_copy(update={"weight_kg": 120})
    result = run_engine(obese, _goal([GoalType.WEIGHT_LOSS], 105, 10))

    assert _check(result, "loss_rate").tier == ValidationTier.NONE


def test_teen_rate_is_narrowed(run_engine, reference_profile):
    teen = reference_profile.model_copy(update={"age": 16})
    result = run_engine(teen, _goal([GoalType.WEIGHT_LOSS], 72, 10))

    # 0.8 kg/week is 1% of body weight: none for adults, caution for teens.
    assert _check(result, "loss_rate").tier == ValidationTier.CAUTION


# Calorie and deficit checks

def test_medical_conditions_tighten_deficit_tier(run_engine):
    base = UserBiometricProfile(
        age=35,
        gender=Gender.FEMALE,
        weight_kg=70,
        height_cm=165,
    )
    medical = base.model_copy(update={"medical_conditions": [MedicalCondition.HYPOTHYROIDISM]})
    goal = _goal([GoalType.WEIGHT_LOSS], 65, 10)

    unrestricted = run_engine(base, goal)
    restricted = run_engine(medical, goal)

    assert unrestricted.tier == ValidationTier.CAUTION
    assert restricted.tier == ValidationTier.SEVERE
    assert _check(restricted, "deficit_cap").passed is False


# Additional checks

def test_underweight_target_warns_with_minimum_weight(run_engine):
    profile = UserBiometricProfile(age=30, gender=Gender.FEMALE, weight_kg=60, height_cm=165)
    result = run_engine(profile, _goal([GoalType.WEIGHT_LOSS], 50, 40))

    assert result.tier == ValidationTier.WARNING
    assert result.requires_acknowledgment is True
    assert any("50.4 kg" in m for m in result.messages)


def test_short_sleep_with_fast_loss_escalates_to_warning(run_engine, reference_profile):
    tired = UserBiometricProfile(
        **{**reference_profile.model_dump(), "sleep_time": "01:00", "wake_time": "05:00"}
    )
    result = run_engine(tired, _goal([GoalType.WEIGHT_LOSS], 67, 10))

    assert result.tier == ValidationTier.WARNING
    assert _check(result, "sleep").tier == ValidationTier.WARNING


def test_long_deficit_adds_refeed_and_diet_break_advice(run_engine, reference_profile):
    result = run_engine(reference_profile, _goal([GoalType.WEIGHT_LOSS], 70.4, 16))

    assert result.tier == ValidationTier.NONE
    assert any("refeed" in m for m in result.messages)
    assert any("diet break" in m for m in result.messages)


def test_elderly_profile_gets_caution(run_engine, reference_profile):
    elderly = reference_profile.model_copy(update={"age": 78})
    result = run_engine(elderly, _goal([GoalType.MAINTENANCE], 80, 12))

    assert result.tier == ValidationTier.CAUTION
    assert _check(result, "age").passed is False


def test_direction_mismatch_is_caution(run_engine, reference_profile):
    result = run_engine(reference_profile, _goal([GoalType.WEIGHT_LOSS], 82, 20))

    assert _check(result, "target_direction").tier == ValidationTier.CAUTION
    assert result.is_allowed is True


def test_maintenance_goal_is_clean(run_engine, reference_profile):
    result = run_engine(reference_profile, _goal([GoalType.MAINTENANCE], 80, 12))

    assert result.tier == ValidationTier.NONE
    assert result.weekly_rate_kg == 0


# Result invariants

@pytest.mark.parametrize(
    "types,target,weeks",
    [
        ([GoalType.WEIGHT_LOSS], 73, 10),
        ([GoalType.WEIGHT_LOSS], 67, 10),
        ([GoalType.WEIGHT_LOSS], 68, 4),
        ([GoalType.WEIGHT_GAIN], 90, 4),
        ([GoalType.MUSCLE_GAIN], 90, 4),
        ([GoalType.WEIGHT_LOSS, GoalType.WEIGHT_GAIN], 80, 10),
    ],
)
def test_only_blocked_tier_is_not_allowed(run_engine, reference_profile, types, target, weeks):
    result = run_engine(reference_profile, _goal(types, target, weeks))

    assert result.is_allowed == (result.tier != ValidationTier.BLOCKED)
    assert isinstance(result.outcome, BlockedOutcome) == (not result.is_allowed)
    assert result.reasoning_trace.final_tier == result.tier


def test_validation_is_idempotent(run_engine, reference_profile, moderate_loss_goal):
    assert run_engine(reference_profile, moderate_loss_goal) == run_engine(
        reference_profile, moderate_loss_goal
    )


def test_display_summary(run_engine, reference_profile):
    result = run_engine(reference_profile, _goal([GoalType.WEIGHT_LOSS], 67, 10))

    summary = GoalValidator().display_validation_summary(result)

    assert "GOAL VALIDATION" in summary
    assert "CAUTION" in summary
    assert "ALTERNATIVES" in summary
