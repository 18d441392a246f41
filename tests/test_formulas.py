"""
Tests for the scientific formula library.

Checks the published equations against hand-calculated values and that
every formula/table enumeration is covered by its lookup table.
"""

import pytest

from src.formulas import (
    BMI_TABLE_SOURCES,
    BMI_TABLES,
    BMR_FORMULAS,
    ESSENTIAL_BODY_FAT,
    HEART_RATE_FORMULAS,
    VO2MAX_ACTIVITY_INDEX,
    bmr_cunningham,
    bmr_harris_benedict,
    bmr_katch_mcardle,
    bmr_mifflin_st_jeor,
    calculate_bmi,
    calculate_bmr,
    calculate_heart_rate_zones,
    classify_bmi,
    classify_resting_heart_rate,
    classify_vo2max,
    estimate_body_fat_deurenberg,
    estimate_vo2max,
    healthy_body_fat_range,
    normal_bmi_range,
    waist_hip_risk,
)
from src.schemas import ActivityLevel, BMITable, BMRFormula, Gender, HealthRisk, HeartRateFormula


# BMR

def test_mifflin_st_jeor():
    assert bmr_mifflin_st_jeor(80, 175.4, 30, Gender.MALE) == pytest.approx(1751.25)
    assert bmr_mifflin_st_jeor(60, 165, 30, Gender.FEMALE) == pytest.approx(1320.25)


def test_other_gender_uses_midpoint_constant():
    male = bmr_mifflin_st_jeor(70, 170, 40, Gender.MALE)
    female = bmr_mifflin_st_jeor(70, 170, 40, Gender.FEMALE)
    other = bmr_mifflin_st_jeor(70, 170, 40, Gender.OTHER)

    assert other == pytest.approx((male + female) / 2)


def test_lean_mass_formulas():
    # 80 kg at 20% body fat = 64 kg lean mass
    assert bmr_katch_mcardle(80, 20) == pytest.approx(370 + 21.6 * 64)
    assert bmr_cunningham(80, 20) == pytest.approx(500 + 22 * 64)


def test_harris_benedict_is_available_for_audit():
    assert bmr_harris_benedict(80, 180, 30, Gender.MALE) == pytest.approx(1853.632, abs=0.01)
    assert calculate_bmr(BMRFormula.HARRIS_BENEDICT, 80, 180, 30, Gender.MALE) == pytest.approx(
        1853.632, abs=0.01
    )


def test_lean_mass_formula_falls_back_without_body_fat():
    assert calculate_bmr(BMRFormula.KATCH_MCARDLE, 80, 175.4, 30, Gender.MALE) == pytest.approx(1751.25)


# BMI

def test_bmi():
    assert calculate_bmi(80, 175.4) == pytest.approx(26.0, abs=0.01)


def test_same_bmi_differs_by_population_table():
    asian = classify_bmi(23.5, BMITable.ASIAN)
    general = classify_bmi(23.5, BMITable.GENERAL)

    assert asian.category == "Overweight"
    assert general.category == "Normal"
    assert asian.population_note is not None
    assert general.population_note is None


@pytest.mark.parametrize(
    "bmi,category,risk",
    [
        (17.0, "Underweight", HealthRisk.MODERATE),
        (22.0, "Normal", HealthRisk.LOW),
        (27.0, "Overweight", HealthRisk.MODERATE),
        (32.0, "Obese Class I", HealthRisk.HIGH),
        (37.0, "Obese Class II", HealthRisk.VERY_HIGH),
        (45.0, "Obese Class III", HealthRisk.VERY_HIGH),
    ],
)
def test_general_bmi_categories(bmi, category, risk):
    result = classify_bmi(bmi)

    assert result.category == category
    assert result.health_risk == risk


def test_athletic_table_is_lenient():
    result = classify_bmi(28.0, BMITable.ATHLETIC)

    assert result.category == "Overweight"
    assert result.health_risk == HealthRisk.LOW
    assert classify_bmi(26.0, BMITable.ATHLETIC).category == "Normal"


def test_normal_range():
    assert normal_bmi_range(BMITable.GENERAL) == (18.5, 25.0)
    assert normal_bmi_range(BMITable.ASIAN) == (18.5, 23.0)


# Heart rate

def test_tanaka_zones_without_resting_rate():
    profile = calculate_heart_rate_zones(30)

    assert profile.formula == HeartRateFormula.TANAKA
    assert profile.max_heart_rate == 187
    assert len(profile.zones) == 5
    assert profile.zones[0].min_bpm == round(187 * 0.5)
    assert profile.zones[-1].max_bpm == 187


def test_reserve_method_with_resting_rate():
    profile = calculate_heart_rate_zones(30, resting_heart_rate=60, gender=Gender.MALE)

    assert profile.formula == HeartRateFormula.KARVONEN
    # reserve = 187 - 60 = 127; zone 1 starts at 60 + 63.5
    assert profile.zones[0].min_bpm == round(60 + 127 * 0.5)
    assert profile.zones[-1].max_bpm == 187
    assert profile.resting_classification == "good"


def test_simple_formula_on_request():
    profile = calculate_heart_rate_zones(40, formula=HeartRateFormula.AGE_SIMPLE)

    assert profile.max_heart_rate == 180


def test_reserve_method_needs_resting_rate():
    assert calculate_heart_rate_zones(40, formula=HeartRateFormula.KARVONEN).formula == HeartRateFormula.TANAKA


def test_zones_are_contiguous():
    zones = calculate_heart_rate_zones(45, resting_heart_rate=55).zones

    for lower, upper in zip(zones, zones[1:]):
        assert lower.max_bpm == upper.min_bpm


@pytest.mark.parametrize(
    "rhr,gender,label",
    [
        (50, Gender.MALE, "athlete"),
        (58, Gender.MALE, "excellent"),
        (58, Gender.FEMALE, "athlete"),
        (85, Gender.FEMALE, "below_average"),
    ],
)
def test_resting_heart_rate_classification(rhr, gender, label):
    assert classify_resting_heart_rate(rhr, gender) == label


# VO2 max

def test_vo2max_male_estimate():
    # 56.363 + 1.921*6 - 0.381*30 - 0.754*5.2 + 10.987 = 63.53
    estimate = estimate_vo2max(30, Gender.MALE, 52, ActivityLevel.ACTIVE)

    assert estimate.vo2max == pytest.approx(63.5)
    assert estimate.activity_index == 6
    assert estimate.classification == "excellent"
    assert estimate.percentile == 95


def test_vo2max_female_estimate():
    # 50.513 + 1.589*4 - 0.289*35 - 0.552*7.0 = 42.89
    estimate = estimate_vo2max(35, Gender.FEMALE, 70, ActivityLevel.MODERATE)

    assert estimate.vo2max == pytest.approx(42.9)
    assert estimate.classification == "above_average"
    assert estimate.percentile == 50


def test_vo2max_other_gender_averages_both():
    male = estimate_vo2max(40, Gender.MALE, 65, ActivityLevel.LIGHT).vo2max
    female = estimate_vo2max(40, Gender.FEMALE, 65, ActivityLevel.LIGHT).vo2max

    other = estimate_vo2max(40, Gender.OTHER, 65, ActivityLevel.LIGHT).vo2max

    assert other == pytest.approx((male + female) / 2, abs=0.1)


def test_vo2max_rises_with_activity_and_falls_with_resting_rate():
    sedentary = estimate_vo2max(45, Gender.MALE, 60, ActivityLevel.SEDENTARY).vo2max
    active = estimate_vo2max(45, Gender.MALE, 60, ActivityLevel.VERY_ACTIVE).vo2max
    high_rhr = estimate_vo2max(45, Gender.MALE, 90, ActivityLevel.SEDENTARY).vo2max

    assert active > sedentary > high_rhr


@pytest.mark.parametrize(
    "vo2max,age,gender,label",
    [
        (61, 25, Gender.MALE, "excellent"),
        (50, 35, Gender.MALE, "good"),
        (30, 65, Gender.MALE, "average"),
        (20, 65, Gender.FEMALE, "below_average"),
        (45, 45, Gender.FEMALE, "good"),
        (45, 45, Gender.OTHER, "above_average"),
    ],
)
def test_vo2max_classification_bands(vo2max, age, gender, label):
    assert classify_vo2max(vo2max, age, gender)[0] == label


# Body composition

def test_deurenberg_estimate_is_clamped():
    assert estimate_body_fat_deurenberg(26.0, 30, Gender.MALE) == pytest.approx(21.9)
    assert estimate_body_fat_deurenberg(10.0, 13, Gender.MALE) == 3.0


def test_healthy_body_fat_range_by_age():
    assert healthy_body_fat_range(Gender.MALE, 30) == (8.0, 19.0)
    assert healthy_body_fat_range(Gender.FEMALE, 65) == (24.0, 35.0)


def test_waist_hip_risk():
    assert waist_hip_risk(0.80, Gender.MALE) == HealthRisk.LOW
    assert waist_hip_risk(0.88, Gender.FEMALE) == HealthRisk.HIGH


# Lookup tables cover every variant

def test_formula_tables_cover_every_variant():
    assert set(BMR_FORMULAS) == set(BMRFormula)
    assert set(BMI_TABLES) == set(BMITable)
    assert set(BMI_TABLE_SOURCES) == set(BMITable)
    assert set(HEART_RATE_FORMULAS) == set(HeartRateFormula)
    assert set(ESSENTIAL_BODY_FAT) == set(Gender)
    assert set(VO2MAX_ACTIVITY_INDEX) == set(ActivityLevel)
