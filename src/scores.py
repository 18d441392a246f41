"""
Health and readiness score calculation.

Computes five informational 0-100 scores from a profile and its metrics:

    score = base + sum(contribution_i), clamped to [0, 100]

Scores are strictly downstream of goal validation: nothing in this module
is read by the validator, so safety decisions stay independently auditable.
"""

from typing import Dict, List, Optional, Tuple

from src.formulas import normal_bmi_range
from src.schemas import (
    ActivityLevel,
    CalculatedMetrics,
    Goal,
    GoalType,
    HealthScores,
    UserBiometricProfile,
)


OVERALL_ACTIVITY_POINTS: Dict[ActivityLevel, float] = {
    ActivityLevel.SEDENTARY: -15,
    ActivityLevel.LIGHT: -5,
    ActivityLevel.MODERATE: 5,
    ActivityLevel.ACTIVE: 10,
    ActivityLevel.VERY_ACTIVE: 15,
}

FITNESS_ACTIVITY_POINTS: Dict[ActivityLevel, float] = {
    ActivityLevel.SEDENTARY: -10,
    ActivityLevel.LIGHT: 0,
    ActivityLevel.MODERATE: 10,
    ActivityLevel.ACTIVE: 15,
    ActivityLevel.VERY_ACTIVE: 20,
}

# Habit weights for diet readiness; negative weights are penalties.
DIET_HABIT_WEIGHTS: Dict[str, float] = {
    "drinks_enough_water": 10,
    "limits_sugary_drinks": 15,
    "eats_regular_meals": 25,
    "avoids_late_night_eating": 10,
    "controls_portion_sizes": 30,
    "reads_nutrition_labels": 20,
    "eats_fruits_vegetables": 20,
    "limits_refined_sugar": 15,
    "includes_healthy_fats": 10,
    "eats_processed_foods": -20,
    "drinks_alcohol": -10,
    "uses_tobacco": -15,
}

OVERALL_HABIT_POINTS: Dict[str, float] = {
    "drinks_enough_water": 5,
    "eats_fruits_vegetables": 10,
    "limits_refined_sugar": 5,
    "eats_processed_foods": -10,
    "uses_tobacco": -25,
    "drinks_alcohol": -5,
}

_DIET_MIN = sum(w for w in DIET_HABIT_WEIGHTS.values() if w < 0)
_DIET_MAX = sum(w for w in DIET_HABIT_WEIGHTS.values() if w > 0)

# BMI points: a bonus inside the Normal band, otherwise a penalty growing
# with each BMI point outside it.
BMI_IN_BAND_POINTS = 5
BMI_BASE_PENALTY = 5
BMI_PENALTY_PER_POINT = 3
BMI_MAX_PENALTY = 40

GOAL_REALISM_FLOOR = 20


def _clamp(value: float, low: float = 0, high: float = 100) -> int:
    return int(round(max(low, min(high, value))))


class ScoreEngine:
    """
    Derives informational health and readiness scores.

    Each score starts from a fixed base and adds weighted, direction-signed
    contributions. The per-factor contributions are kept in the breakdown so
    a score can be explained line by line.
    """

    def score(
        self,
        profile: UserBiometricProfile,
        metrics: CalculatedMetrics,
        goal: Optional[Goal] = None,
    ) -> HealthScores:
        """
        Calculate all scores.

        Args:
            profile: User profile
            metrics: Calculated metrics (scores field is ignored)
            goal: Optional goal for the goal realism score

        Returns:
            HealthScores with breakdown and recommendations
        """
        overall, overall_breakdown = self.overall_health(profile, metrics)
        diet, diet_breakdown = self.diet_readiness(profile)
        fitness, fitness_breakdown = self.fitness_readiness(profile)

        breakdown = {
            "overall_health": overall_breakdown,
            "diet_readiness": diet_breakdown,
            "fitness_readiness": fitness_breakdown,
        }

        realism = None
        if goal is not None:
            realism, realism_breakdown = self.goal_realism(profile, goal)
            breakdown["goal_realism"] = realism_breakdown

        return HealthScores(
            overall_health=overall,
            diet_readiness=diet,
            fitness_readiness=fitness,
            goal_realism=realism,
            sleep_efficiency=metrics.sleep.efficiency_score,
            breakdown=breakdown,
            recommendations=self._generate_recommendations(profile, metrics, breakdown),
        )

    def overall_health(
        self, profile: UserBiometricProfile, metrics: CalculatedMetrics
    ) -> Tuple[int, Dict[str, float]]:
        """
        Overall health: base 100.

        BMI deviation is measured against the Normal band of the population
        table the metrics were classified with.
        """
        breakdown: Dict[str, float] = {}
        table = metrics.bmi_classification.table
        low, high = normal_bmi_range(table)
        bmi = metrics.bmi

        if low <= bmi < high:
            breakdown["bmi"] = BMI_IN_BAND_POINTS
        else:
            distance = low - bmi if bmi < low else bmi - high
            breakdown["bmi"] = -round(
                min(BMI_MAX_PENALTY, BMI_BASE_PENALTY + BMI_PENALTY_PER_POINT * distance), 1
            )

        breakdown["activity"] = OVERALL_ACTIVITY_POINTS[profile.activity_level]

        for habit, points in OVERALL_HABIT_POINTS.items():
            if getattr(profile.habits, habit):
                breakdown[habit] = points

        duration = metrics.sleep.duration_hours
        if duration is not None:
            if 7 <= duration <= 9:
                breakdown["sleep"] = 10
            elif duration < 6:
                breakdown["sleep"] = -15

        if profile.training_experience_years > 0:
            breakdown["experience"] = 5
        if profile.workouts_per_week >= 3:
            breakdown["workout_frequency"] = 10

        return _clamp(100 + sum(breakdown.values())), breakdown

    def diet_readiness(self, profile: UserBiometricProfile) -> Tuple[int, Dict[str, float]]:
        """Weighted habits normalised from [min, max] onto 0-100."""
        breakdown = {
            habit: weight
            for habit, weight in DIET_HABIT_WEIGHTS.items()
            if getattr(profile.habits, habit)
        }
        raw = sum(breakdown.values())
        normalised = (raw - _DIET_MIN) / (_DIET_MAX - _DIET_MIN) * 100
        return _clamp(normalised), breakdown

    def fitness_readiness(self, profile: UserBiometricProfile) -> Tuple[int, Dict[str, float]]:
        """Base 50 plus capped experience and fitness test contributions."""
        fitness = profile.fitness
        breakdown: Dict[str, float] = {
            "experience": min(profile.training_experience_years * 3, 15),
            "activity": FITNESS_ACTIVITY_POINTS[profile.activity_level],
        }
        if fitness.max_pushups is not None:
            breakdown["pushups"] = min(fitness.max_pushups * 0.5, 15)
        if fitness.continuous_run_minutes is not None:
            breakdown["running"] = min(fitness.continuous_run_minutes * 0.3, 15)
        if profile.medical_conditions:
            breakdown["medical"] = -5 * len(profile.medical_conditions)
        if fitness.physical_limitations:
            breakdown["limitations"] = -3 * len(fitness.physical_limitations)

        return _clamp(50 + sum(breakdown.values())), breakdown

    def goal_realism(
        self, profile: UserBiometricProfile, goal: Goal
    ) -> Tuple[int, Dict[str, float]]:
        """
        How realistic the stated goal is: base 80, clamped to [20, 100].

        This is informational only; the goal validator decides safety.
        """
        breakdown: Dict[str, float] = {}
        rate = abs(goal.target_weight_kg - profile.weight_kg) / goal.timeline_weeks
        changes_weight = GoalType.MAINTENANCE not in goal.goal_types or len(goal.goal_types) > 1

        if changes_weight and rate > 0:
            if rate > 1.5:
                breakdown["rate"] = -30
            elif rate > 1.0:
                breakdown["rate"] = -15
            elif rate >= 0.5:
                breakdown["rate"] = 10
            elif rate < 0.25:
                breakdown["rate"] = -10

        ambitious = rate > 0.75
        if ambitious and profile.training_experience_years < 1:
            breakdown["ambition_vs_experience"] = -15
        elif not ambitious and profile.training_experience_years >= 2:
            breakdown["ambition_vs_experience"] = 5

        if len(profile.medical_conditions) > 2:
            breakdown["medical"] = -20

        return _clamp(80 + sum(breakdown.values()), low=GOAL_REALISM_FLOOR), breakdown

    def _generate_recommendations(
        self,
        profile: UserBiometricProfile,
        metrics: CalculatedMetrics,
        breakdown: Dict[str, Dict[str, float]],
    ) -> List[str]:
        recommendations = []
        habits = profile.habits

        if habits.uses_tobacco:
            recommendations.append("Quitting tobacco has the largest single effect on your health score")
        if profile.activity_level == ActivityLevel.SEDENTARY:
            recommendations.append("Add two or three short walks or workouts per week")
        if not habits.eats_fruits_vegetables:
            recommendations.append("Include fruit or vegetables in most meals")
        if not habits.drinks_enough_water:
            recommendations.append(f"Aim for about {metrics.water_ml / 1000:.1f} L of water per day")
        if breakdown["overall_health"].get("sleep", 0) < 0:
            recommendations.append(
                f"Work towards {metrics.sleep.recommended_hours:g} hours of sleep per night"
            )
        if not habits.controls_portion_sizes:
            recommendations.append("Practise portion control before cutting calories further")

        return recommendations
