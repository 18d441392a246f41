"""
Metrics calculation.

Orchestrates the formula library and a detection context into a complete
CalculatedMetrics bundle, evaluated in a fixed order:
1. BMR (formula chosen by the context)
2. TDEE (activity x climate x age, plus medical adjustments)
3. Special states (breastfeeding, pregnancy trimester)
4. Target calories and macros
5. Water
6. Body composition
7. Sleep
"""

import logging
import math
from typing import Dict, List, Optional, Tuple

from src.context import SEASON_WATER_ADJUSTMENT
from src.errors import ensure_finite_non_negative
from src.formulas import (
    BMI_TABLE_SOURCES,
    BMR_FORMULAS,
    HEART_RATE_FORMULAS,
    calculate_bmi,
    calculate_bmr,
    calculate_heart_rate_zones,
    classify_bmi,
    estimate_body_fat_deurenberg,
    estimate_vo2max,
    healthy_body_fat_range,
    waist_hip_ratio,
    waist_hip_risk,
)
from src.schemas import (
    ActivityLevel,
    BMITable,
    BodyComposition,
    CalculatedMetrics,
    DetectionContext,
    DietStyle,
    DietType,
    FormulaSelection,
    Gender,
    Goal,
    GoalType,
    LifestyleHabits,
    Macros,
    MedicalCondition,
    Occupation,
    PopulationGroup,
    SleepMetrics,
    StressLevel,
    TDEEAdjustment,
    UserBiometricProfile,
)
from src.scores import ScoreEngine

logger = logging.getLogger(__name__)

KCAL_PER_KG = 7700


# ============================================================================
# Energy Tables
# ============================================================================

ACTIVITY_MULTIPLIERS: Dict[ActivityLevel, float] = {
    ActivityLevel.SEDENTARY: 1.2,
    ActivityLevel.LIGHT: 1.375,
    ActivityLevel.MODERATE: 1.55,
    ActivityLevel.ACTIVE: 1.725,
    ActivityLevel.VERY_ACTIVE: 1.9,
}

_ACTIVITY_ORDER = list(ActivityLevel)

OCCUPATION_MIN_ACTIVITY: Dict[Occupation, ActivityLevel] = {
    Occupation.DESK_JOB: ActivityLevel.SEDENTARY,
    Occupation.LIGHT_ACTIVE: ActivityLevel.LIGHT,
    Occupation.MODERATE_ACTIVE: ActivityLevel.MODERATE,
    Occupation.HEAVY_LABOR: ActivityLevel.ACTIVE,
    Occupation.VERY_ACTIVE: ActivityLevel.VERY_ACTIVE,
}

# (age, multiplier) anchors; linear in between, flat outside.
AGE_MODIFIER_ANCHORS: List[Tuple[float, float]] = [
    (25, 1.00),
    (30, 0.98),
    (40, 0.95),
    (50, 0.90),
    (60, 0.85),
    (80, 0.80),
]

PREGNANCY_ADDITIONS: Dict[int, int] = {1: 0, 2: 340, 3: 450}
BREASTFEEDING_ADDITION = 500

MEDICAL_TDEE_ADJUSTMENTS: Dict[MedicalCondition, float] = {
    MedicalCondition.HYPOTHYROIDISM: -0.10,
    MedicalCondition.HYPERTHYROIDISM: 0.15,
}
MAX_MEDICAL_TDEE_REDUCTION = 0.15

MEDICAL_CARB_REDUCTIONS: Dict[MedicalCondition, float] = {
    MedicalCondition.PCOS: 0.25,
    MedicalCondition.DIABETES_TYPE1: 0.20,
    MedicalCondition.DIABETES_TYPE2: 0.25,
}
MAX_CARB_REDUCTION = 0.30

CALORIE_MINIMUMS: Dict[Gender, int] = {
    Gender.FEMALE: 1200,
    Gender.MALE: 1500,
    Gender.OTHER: 1350,
}

STANDARD_DEFICIT_CAP = 0.25
RESTRICTED_DEFICIT_CAP = 0.15
SURPLUS_CAP = 0.20


# ============================================================================
# Macro and Water Tables
# ============================================================================

PROTEIN_G_PER_KG: Dict[str, float] = {
    "loss": 2.2,
    "gain": 1.8,
    "recomposition": 2.4,
    "maintenance": 1.6,
}

# Strictly increasing as the animal-protein fraction drops.
DIET_PROTEIN_FACTORS: Dict[DietType, float] = {
    DietType.OMNIVORE: 1.00,
    DietType.PESCATARIAN: 1.05,
    DietType.VEGETARIAN: 1.15,
    DietType.VEGAN: 1.25,
}

# Share of non-protein calories that come from fat.
FAT_SHARE_BY_STYLE: Dict[DietStyle, float] = {
    DietStyle.BALANCED: 0.30,
    DietStyle.KETO: 0.70,
    DietStyle.LOW_CARB: 0.45,
    DietStyle.PALEO: 0.35,
    DietStyle.MEDITERRANEAN: 0.35,
}
FAT_FLOOR_G = 20

WATER_ML_PER_KG = 35
# (max workouts per week, multiplier)
WORKOUT_WATER_BONUS: List[Tuple[int, float]] = [
    (0, 1.0),
    (2, 1.1),
    (4, 1.2),
    (6, 1.3),
]
WORKOUT_WATER_BONUS_MAX = 1.4

# (max age exclusive, recommended hours)
SLEEP_RECOMMENDATIONS: List[Tuple[int, float]] = [
    (18, 8.5),
    (26, 8.0),
    (65, 7.5),
]
SLEEP_RECOMMENDATION_SENIOR = 7.0

POPULATION_BMI_TABLES: Dict[PopulationGroup, BMITable] = {
    PopulationGroup.ASIAN: BMITable.ASIAN,
    PopulationGroup.BLACK_AFRICAN: BMITable.AFRICAN,
    PopulationGroup.HISPANIC: BMITable.HISPANIC,
    PopulationGroup.MIDDLE_EASTERN: BMITable.MIDDLE_EASTERN,
    PopulationGroup.PACIFIC_ISLANDER: BMITable.PACIFIC_ISLANDER,
}


# ============================================================================
# Helpers shared with the goal validator
# ============================================================================

def effective_activity_level(profile: UserBiometricProfile) -> ActivityLevel:
    """The higher of the declared activity level and the occupation minimum."""
    minimum = OCCUPATION_MIN_ACTIVITY.get(profile.occupation, ActivityLevel.SEDENTARY)
    return max(profile.activity_level, minimum, key=_ACTIVITY_ORDER.index)


def age_modifier(age: float) -> float:
    """Continuous, non-increasing metabolic age multiplier."""
    first_age, first_value = AGE_MODIFIER_ANCHORS[0]
    if age <= first_age:
        return first_value
    for (a0, v0), (a1, v1) in zip(AGE_MODIFIER_ANCHORS, AGE_MODIFIER_ANCHORS[1:]):
        if age <= a1:
            return v0 + (v1 - v0) * (age - a0) / (a1 - a0)
    return AGE_MODIFIER_ANCHORS[-1][1]


def is_restricted_profile(profile: UserBiometricProfile) -> bool:
    """Medical or high-stress profiles get the tighter deficit cap."""
    return profile.has_medical_flags or profile.stress_level == StressLevel.HIGH


def deficit_cap(profile: UserBiometricProfile) -> float:
    return RESTRICTED_DEFICIT_CAP if is_restricted_profile(profile) else STANDARD_DEFICIT_CAP


def calorie_floor(profile: UserBiometricProfile, bmr: int) -> int:
    """Calories never go below max(BMR, gender minimum)."""
    return max(bmr, CALORIE_MINIMUMS[profile.gender])


def goal_direction(goal: Optional[Goal], current_weight_kg: float) -> str:
    """
    Collapse a goal set to an energy direction.

    Returns one of "loss", "gain", "recomposition" or "maintenance".
    Conflicting sets fall back to maintenance; validation reports them.
    """
    if goal is None:
        return "maintenance"
    types = set(goal.goal_types)
    if GoalType.WEIGHT_LOSS in types and GoalType.WEIGHT_GAIN in types:
        return "maintenance"
    if GoalType.RECOMPOSITION in types or {GoalType.MUSCLE_GAIN, GoalType.WEIGHT_LOSS} <= types:
        return "recomposition"
    if GoalType.WEIGHT_LOSS in types:
        return "loss"
    if GoalType.WEIGHT_GAIN in types:
        return "gain"
    if GoalType.MUSCLE_GAIN in types:
        return "gain" if goal.target_weight_kg > current_weight_kg else "recomposition"
    return "maintenance"


def weekly_rate_kg(goal: Goal, current_weight_kg: float) -> float:
    return abs(goal.target_weight_kg - current_weight_kg) / goal.timeline_weeks


def calculate_target_calories(
    profile: UserBiometricProfile,
    goal: Optional[Goal],
    bmr: int,
    tdee: int,
) -> int:
    """
    Daily calorie target for a goal.

    The deficit is capped at a share of TDEE (tighter for medical or
    high-stress profiles), the surplus likewise, and the result never falls
    below max(BMR, gender minimum).
    """
    target = float(tdee)
    if goal is not None and goal_direction(goal, profile.weight_kg) != "maintenance":
        daily_change = weekly_rate_kg(goal, profile.weight_kg) * KCAL_PER_KG / 7
        if goal.target_weight_kg < profile.weight_kg:
            target = tdee - min(daily_change, tdee * deficit_cap(profile))
        elif goal.target_weight_kg > profile.weight_kg:
            target = tdee + min(daily_change, tdee * SURPLUS_CAP)
    return max(calorie_floor(profile, bmr), round(target))


def calculate_macros(
    target_calories: int,
    weight_kg: float,
    direction: str,
    diet_type: DietType,
    diet_style: DietStyle,
    carb_reduction: float = 0.0,
) -> Macros:
    """
    Split target calories into protein, fat and carbs.

    Protein is set per kg and diet type, fat is a share of the remaining
    calories with a hormonal floor, carbs take what is left. Rounding keeps
    the macro calories within 2 kcal of the target.

    Args:
        target_calories: Daily calorie target
        weight_kg: Body weight
        direction: Goal direction key of PROTEIN_G_PER_KG
        diet_type: Protein source pattern
        diet_style: Fat/carb distribution style
        carb_reduction: Fraction of carb calories moved to fat (medical)

    Returns:
        Macros in whole grams
    """
    protein_target = weight_kg * PROTEIN_G_PER_KG[direction] * DIET_PROTEIN_FACTORS[diet_type]
    protein_ceiling = math.floor((target_calories - FAT_FLOOR_G * 9) / 4)
    protein_g = max(0, min(round(protein_target), protein_ceiling))

    non_protein = target_calories - protein_g * 4
    fat_kcal = max(non_protein * FAT_SHARE_BY_STYLE[diet_style], FAT_FLOOR_G * 9)
    if carb_reduction > 0:
        carb_kcal = non_protein - fat_kcal
        if carb_kcal > 0:
            fat_kcal += carb_kcal * carb_reduction

    fat_g = round(fat_kcal / 9)
    remaining = non_protein - fat_g * 9
    if remaining < 0:
        fat_g = math.floor(non_protein / 9)
        remaining = non_protein - fat_g * 9

    carb_g = round(remaining / 4)
    return Macros(protein_g=protein_g, carb_g=carb_g, fat_g=fat_g)


def water_workout_bonus(workouts_per_week: int) -> float:
    for max_workouts, multiplier in WORKOUT_WATER_BONUS:
        if workouts_per_week <= max_workouts:
            return multiplier
    return WORKOUT_WATER_BONUS_MAX


def recommended_sleep_hours(age: int) -> float:
    for max_age, hours in SLEEP_RECOMMENDATIONS:
        if age < max_age:
            return hours
    return SLEEP_RECOMMENDATION_SENIOR


def sleep_duration_hours(sleep_minutes: int, wake_minutes: int) -> float:
    """Hours between bedtime and wake time, wrapping past midnight. Equal times mean no sleep."""
    duration = wake_minutes - sleep_minutes
    if duration < 0:
        duration += 24 * 60
    return round(duration / 60, 1)


def sleep_efficiency(duration_hours: float, recommended_hours: float, habits: LifestyleHabits) -> int:
    """0-100 efficiency from deviation against the recommendation plus habits."""
    score = 50
    deviation = abs(duration_hours - recommended_hours)
    if deviation <= 0.5:
        score += 30
    elif deviation <= 1:
        score += 20
    elif deviation <= 2:
        score += 10
    else:
        score -= 10

    if habits.avoids_late_night_eating:
        score += 10
    if not habits.drinks_coffee:
        score += 5
    if not habits.drinks_alcohol:
        score += 10
    if habits.eats_regular_meals:
        score += 5

    return max(0, min(100, score))


# ============================================================================
# Calculator
# ============================================================================

class MetricsCalculator:
    """
    Builds a complete metrics bundle from a profile and its context.

    Pure: identical profile, context and goal always produce identical
    output. Configuration (regional water overrides, the score engine) is
    fixed at construction.
    """

    def __init__(
        self,
        water_overrides: Optional[Dict[str, float]] = None,
        score_engine: Optional[ScoreEngine] = None,
    ):
        """
        Initialize calculator.

        Args:
            water_overrides: Optional water multipliers keyed by country code
                or "COUNTRY-REGION"
            score_engine: Score engine for the informational scores
        """
        self.water_overrides = {k.upper(): v for k, v in (water_overrides or {}).items()}
        self.score_engine = score_engine or ScoreEngine()

    def calculate_all(
        self,
        profile: UserBiometricProfile,
        context: DetectionContext,
        goal: Optional[Goal] = None,
    ) -> CalculatedMetrics:
        """
        Calculate every metric for a profile.

        Args:
            profile: User profile
            context: Detection context for this profile
            goal: Optional goal; sets calorie direction and protein level

        Returns:
            CalculatedMetrics including scores

        Raises:
            InvalidInputError: If a magnitude is negative or non-finite
        """
        for field in ("age", "weight_kg", "height_cm"):
            ensure_finite_non_negative(field, getattr(profile, field))

        selections: List[FormulaSelection] = []
        adjustments: List[TDEEAdjustment] = []

        # Step 1: BMR
        accuracy = context.formula_accuracy
        bmr = round(
            calculate_bmr(
                accuracy.bmr_formula,
                profile.weight_kg,
                profile.height_cm,
                profile.age,
                profile.gender,
                profile.body_fat_pct,
            )
        )
        selections.append(
            FormulaSelection(
                metric="bmr",
                formula_id=accuracy.bmr_formula.value,
                accuracy=f"+/-{accuracy.accuracy_pct:g}%",
                rationale=f"{accuracy.rationale} ({BMR_FORMULAS[accuracy.bmr_formula].source})",
            )
        )

        # Step 2-3: TDEE and special states
        tdee = self._calculate_tdee(profile, context, bmr, adjustments)

        # Step 4: calories and macros
        direction = goal_direction(goal, profile.weight_kg)
        target_calories = calculate_target_calories(profile, goal, bmr, tdee)
        carb_reduction = min(
            MAX_CARB_REDUCTION,
            sum(MEDICAL_CARB_REDUCTIONS.get(c, 0.0) for c in set(profile.medical_conditions)),
        )
        macros = calculate_macros(
            target_calories,
            profile.weight_kg,
            direction,
            profile.diet_type,
            profile.diet_style,
            carb_reduction,
        )

        # BMI with the population (or athletic) table
        bmi = calculate_bmi(profile.weight_kg, profile.height_cm)
        table = self.select_bmi_table(context)
        bmi_classification = classify_bmi(bmi, table)
        selections.append(
            FormulaSelection(
                metric="bmi",
                formula_id=table.value,
                accuracy="population cutoffs",
                rationale=(
                    f"{table.value.replace('_', ' ').title()} cutoffs for "
                    f"{context.ethnicity.group.value} (confidence {context.ethnicity.confidence}); "
                    f"{BMI_TABLE_SOURCES[table]}"
                ),
            )
        )

        heart_rate = calculate_heart_rate_zones(
            profile.age, profile.resting_heart_rate, gender=profile.gender
        )
        hr_info = HEART_RATE_FORMULAS[heart_rate.formula]
        selections.append(
            FormulaSelection(
                metric="heart_rate",
                formula_id=heart_rate.formula.value,
                accuracy=hr_info.accuracy,
                rationale=(
                    "Resting heart rate available - heart rate reserve method"
                    if profile.resting_heart_rate
                    else "No resting heart rate - percentage of Tanaka max heart rate"
                ),
            )
        )

        vo2max = None
        if profile.resting_heart_rate:
            vo2max = estimate_vo2max(
                profile.age, profile.gender, profile.resting_heart_rate, profile.activity_level
            )
            selections.append(
                FormulaSelection(
                    metric="vo2max",
                    formula_id="jurca_non_exercise",
                    accuracy="+/-5-7 ml/kg/min",
                    rationale="Resting heart rate available - non-exercise estimate (Jurca et al. 2005)",
                )
            )

        # Step 5-7
        water_ml = self._calculate_water(profile, context)
        body_composition = self._body_composition(profile, bmi)
        sleep = self._sleep(profile)

        metrics = CalculatedMetrics(
            bmr=bmr,
            tdee=tdee,
            target_calories=target_calories,
            bmi=round(bmi, 1),
            bmi_classification=bmi_classification,
            macros=macros,
            water_ml=water_ml,
            heart_rate=heart_rate,
            vo2max=vo2max,
            body_composition=body_composition,
            sleep=sleep,
            formula_selections=selections,
            adjustments=adjustments,
        )

        scores = self.score_engine.score(profile, metrics, goal)
        logger.debug(
            "Calculated metrics: bmr=%d tdee=%d target=%d bmi=%.1f (%s)",
            bmr, tdee, target_calories, bmi, bmi_classification.category,
        )
        return metrics.model_copy(update={"scores": scores})

    @staticmethod
    def select_bmi_table(context: DetectionContext) -> BMITable:
        """Athletes use athletic cutoffs; otherwise the population table (general by default)."""
        if context.formula_accuracy.is_athlete:
            return BMITable.ATHLETIC
        return POPULATION_BMI_TABLES.get(context.ethnicity.group, BMITable.GENERAL)

    def _calculate_tdee(
        self,
        profile: UserBiometricProfile,
        context: DetectionContext,
        bmr: int,
        adjustments: List[TDEEAdjustment],
    ) -> int:
        activity = effective_activity_level(profile)
        activity_multiplier = ACTIVITY_MULTIPLIERS[activity]
        adjustments.append(
            TDEEAdjustment(
                name="activity",
                kind="multiplier",
                value=activity_multiplier,
                reason=(
                    f"{activity.value} activity"
                    + (" (raised by occupation)" if activity != profile.activity_level else "")
                ),
            )
        )

        climate_multiplier = context.climate.tdee_modifier
        if climate_multiplier != 1.0:
            adjustments.append(
                TDEEAdjustment(
                    name="climate",
                    kind="multiplier",
                    value=climate_multiplier,
                    reason=f"{context.climate.zone.value} climate",
                )
            )

        age_multiplier = round(age_modifier(profile.age), 4)
        if age_multiplier != 1.0:
            adjustments.append(
                TDEEAdjustment(
                    name="age",
                    kind="multiplier",
                    value=age_multiplier,
                    reason=f"age {profile.age}",
                )
            )

        medical_change = sum(
            MEDICAL_TDEE_ADJUSTMENTS.get(c, 0.0) for c in set(profile.medical_conditions)
        )
        medical_change = max(-MAX_MEDICAL_TDEE_REDUCTION, medical_change)
        medical_multiplier = 1.0 + medical_change
        if medical_change:
            adjustments.append(
                TDEEAdjustment(
                    name="medical",
                    kind="multiplier",
                    value=round(medical_multiplier, 4),
                    reason=", ".join(
                        c.value for c in profile.medical_conditions if c in MEDICAL_TDEE_ADJUSTMENTS
                    ),
                )
            )

        tdee = bmr * activity_multiplier * climate_multiplier * age_multiplier * medical_multiplier

        # Breastfeeding takes priority over pregnancy.
        if profile.is_breastfeeding:
            tdee += BREASTFEEDING_ADDITION
            adjustments.append(
                TDEEAdjustment(
                    name="breastfeeding",
                    kind="additive",
                    value=BREASTFEEDING_ADDITION,
                    reason="lactation energy cost",
                )
            )
        elif profile.is_pregnant and profile.pregnancy_trimester:
            addition = PREGNANCY_ADDITIONS[profile.pregnancy_trimester]
            tdee += addition
            adjustments.append(
                TDEEAdjustment(
                    name="pregnancy",
                    kind="additive",
                    value=addition,
                    reason=f"trimester {profile.pregnancy_trimester}",
                )
            )

        return max(bmr, round(tdee))

    def _calculate_water(self, profile: UserBiometricProfile, context: DetectionContext) -> int:
        water = profile.weight_kg * WATER_ML_PER_KG
        water *= context.climate.water_modifier
        water *= water_workout_bonus(profile.workouts_per_week)
        if context.season is not None:
            water *= SEASON_WATER_ADJUSTMENT[context.season]
        water *= self._regional_override(context)
        return int(round(water / 50) * 50)

    def _regional_override(self, context: DetectionContext) -> float:
        country = context.location.country
        region = context.location.region
        if country and region and f"{country}-{region}" in self.water_overrides:
            return self.water_overrides[f"{country}-{region}"]
        if country and country in self.water_overrides:
            return self.water_overrides[country]
        return 1.0

    def _body_composition(self, profile: UserBiometricProfile, bmi: float) -> BodyComposition:
        composition = {
            "healthy_body_fat_range": list(healthy_body_fat_range(profile.gender, profile.age)),
        }
        if profile.body_fat_pct is not None:
            fat_mass = round(profile.weight_kg * profile.body_fat_pct / 100, 2)
            composition["fat_mass_kg"] = fat_mass
            composition["lean_mass_kg"] = round(profile.weight_kg - fat_mass, 2)
        else:
            composition["estimated_body_fat_pct"] = estimate_body_fat_deurenberg(
                bmi, profile.age, profile.gender
            )

        if profile.waist_cm is not None and profile.hip_cm is not None:
            ratio = waist_hip_ratio(profile.waist_cm, profile.hip_cm)
            composition["waist_hip_ratio"] = ratio
            composition["waist_hip_risk"] = waist_hip_risk(ratio, profile.gender)

        return BodyComposition(**composition)

    def _sleep(self, profile: UserBiometricProfile) -> SleepMetrics:
        recommended = recommended_sleep_hours(profile.age)
        if profile.sleep_time is None or profile.wake_time is None:
            return SleepMetrics(recommended_hours=recommended)

        duration = sleep_duration_hours(
            profile.sleep_time.hour * 60 + profile.sleep_time.minute,
            profile.wake_time.hour * 60 + profile.wake_time.minute,
        )
        return SleepMetrics(
            recommended_hours=recommended,
            duration_hours=duration,
            efficiency_score=sleep_efficiency(duration, recommended, profile.habits),
        )
