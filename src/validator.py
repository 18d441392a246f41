"""
Goal validation and safety tiering.

This module implements the core safety mechanism of the engine. It
evaluates a user goal against the profile and its calculated metrics and
classifies it into an ordered severity tier instead of a binary
accept/reject. Only a small explicit set of physiologically unsafe
conditions (see BlockReason) produces a blocked outcome; everything else is
allowed with a tier, messages and safer alternative rates.
"""

import logging
import math
from typing import Dict, List, NamedTuple, Optional, Tuple

from src.errors import InvalidInputError, ensure_finite_non_negative
from src.formulas import ESSENTIAL_BODY_FAT
from src.metrics import (
    KCAL_PER_KG,
    RESTRICTED_DEFICIT_CAP,
    STANDARD_DEFICIT_CAP,
    calculate_target_calories,
    calorie_floor,
    goal_direction,
    is_restricted_profile,
)
from src.schemas import (
    AllowedOutcome,
    AlternativeRate,
    BlockedOutcome,
    BlockReason,
    CalculatedMetrics,
    Gender,
    Goal,
    GoalType,
    MuscleGainCeiling,
    ReasoningTrace,
    RecompositionOutlook,
    RuleCheck,
    UserBiometricProfile,
    ValidationResult,
    ValidationTier,
    most_severe,
)

logger = logging.getLogger(__name__)

WEEKS_PER_MONTH = 52 / 12


# ============================================================================
# Rate Tier Tables (percent of body weight per week)
# ============================================================================

class TierBand(NamedTuple):
    upper_pct: float  # inclusive upper bound before population scaling
    tier: ValidationTier
    message: str


LOSS_TIERS: List[TierBand] = [
    TierBand(
        1.0,
        ValidationTier.NONE,
        "Losing {rate_kg:.2f} kg per week ({rate_pct:.2f}% of body weight) is within the "
        "sustainable range.",
    ),
    TierBand(
        1.75,
        ValidationTier.CAUTION,
        "Losing {rate_kg:.2f} kg per week ({rate_pct:.2f}% of body weight) is faster than the "
        "sustainable {safe_pct:.2f}% per week.",
    ),
    TierBand(
        2.25,
        ValidationTier.WARNING,
        "Losing {rate_kg:.2f} kg per week ({rate_pct:.2f}% of body weight) is aggressive and "
        "hard to sustain without losing muscle.",
    ),
    TierBand(
        2.75,
        ValidationTier.SEVERE,
        "Losing {rate_kg:.2f} kg per week ({rate_pct:.2f}% of body weight) is extreme and "
        "should only be attempted under medical supervision.",
    ),
]
LOSS_ABSOLUTE_CEILING_PCT = 3.0

GAIN_TIERS: List[TierBand] = [
    TierBand(
        0.25,
        ValidationTier.NONE,
        "Gaining {rate_kg:.2f} kg per week ({rate_pct:.2f}% of body weight) is a lean, "
        "sustainable pace.",
    ),
    TierBand(
        0.5,
        ValidationTier.CAUTION,
        "Gaining {rate_kg:.2f} kg per week ({rate_pct:.2f}% of body weight) is above the "
        "lean-gain pace of {safe_pct:.2f}% per week; expect some fat gain.",
    ),
    TierBand(
        1.0,
        ValidationTier.WARNING,
        "Gaining {rate_kg:.2f} kg per week ({rate_pct:.2f}% of body weight) will be mostly fat.",
    ),
    TierBand(
        1.5,
        ValidationTier.SEVERE,
        "Gaining {rate_kg:.2f} kg per week ({rate_pct:.2f}% of body weight) is excessive and "
        "carries metabolic risk.",
    ),
]
GAIN_ABSOLUTE_CEILING_PCT = 2.0

RISK_MESSAGES: Dict[ValidationTier, List[str]] = {
    ValidationTier.NONE: [],
    ValidationTier.CAUTION: [
        "Risk: a larger share of the weight change comes from muscle rather than fat.",
        "Risk: hunger and fatigue make faster rates harder to sustain.",
    ],
    ValidationTier.WARNING: [
        "Risk: gallstones, nutrient deficiencies and hormonal disruption become more likely.",
    ],
    ValidationTier.SEVERE: [
        "Risk: this rate warrants supervision by a physician or registered dietitian.",
    ],
    ValidationTier.BLOCKED: [],
}

# Higher BMI classes store more energy and tolerate faster loss.
BMI_LOSS_WIDENING: List[Tuple[float, float]] = [
    (35.0, 1.5),
    (30.0, 1.25),
    (27.0, 1.1),
]

TEEN_AGE_RANGE = (13, 17)
TEEN_FACTOR = 0.75
ELDERLY_AGE = 65
ELDERLY_FACTOR = 0.8
ELDERLY_CAUTION_AGE = 75
PREGNANCY_FACTOR = 0.5
MEDICAL_FACTOR = 0.8

TARGET_BMI_FLOOR = 17.5
MIN_HEALTHY_BMI = 18.5
OBESE_TARGET_BMI = 30.0

SHORT_SLEEP_HOURS = 5.0
REFEED_MIN_WEEKS = 12
REFEED_MIN_DEFICIT = 0.20
DIET_BREAK_MIN_WEEKS = 16

# Weight axis direction per goal type; None means no fixed direction.
GOAL_AXIS: Dict[GoalType, Optional[int]] = {
    GoalType.WEIGHT_LOSS: -1,
    GoalType.WEIGHT_GAIN: 1,
    GoalType.MAINTENANCE: 0,
    GoalType.MUSCLE_GAIN: None,
    GoalType.RECOMPOSITION: None,
}


# ============================================================================
# Muscle Gain Ceilings (kg per month)
# ============================================================================

# (max experience years exclusive, band, base kg/month for a young male)
EXPERIENCE_BANDS: List[Tuple[float, str, float]] = [
    (1.0, "beginner", 1.0),
    (3.0, "intermediate", 0.5),
    (5.0, "advanced", 0.25),
]
ELITE_BAND = ("elite", 0.1)

GENDER_MUSCLE_FACTORS: Dict[Gender, float] = {
    Gender.MALE: 1.0,
    Gender.FEMALE: 0.5,
    Gender.OTHER: 0.75,
}

# (max age exclusive, factor)
AGE_MUSCLE_FACTORS: List[Tuple[int, float]] = [
    (20, 1.15),
    (40, 1.0),
    (50, 0.9),
    (60, 0.8),
]
SENIOR_MUSCLE_FACTOR = 0.7

HIGH_BODY_FAT_PCT: Dict[Gender, float] = {
    Gender.MALE: 25.0,
    Gender.FEMALE: 32.0,
    Gender.OTHER: 28.5,
}
HIGH_BODY_FAT_FACTOR = 0.85

RECOMP_NOVICE_YEARS = 2.0
RECOMP_HIGH_BODY_FAT = 20.0


def muscle_gain_ceiling(
    profile: UserBiometricProfile, body_fat_pct: Optional[float] = None
) -> MuscleGainCeiling:
    """
    Natural muscle gain limits for a profile.

    The experience band sets the base rate, then gender, age and current
    body fat factors scale it.

    Args:
        profile: User profile
        body_fat_pct: Body fat to use when the profile has no measurement

    Returns:
        MuscleGainCeiling with minimum/optimal/maximum kg per month
    """
    years = profile.training_experience_years
    band, base = ELITE_BAND
    for max_years, name, rate in EXPERIENCE_BANDS:
        if years < max_years:
            band, base = name, rate
            break

    age_factor = SENIOR_MUSCLE_FACTOR
    for max_age, factor in AGE_MUSCLE_FACTORS:
        if profile.age < max_age:
            age_factor = factor
            break

    bf = profile.body_fat_pct if profile.body_fat_pct is not None else body_fat_pct
    bf_factor = (
        HIGH_BODY_FAT_FACTOR
        if bf is not None and bf >= HIGH_BODY_FAT_PCT[profile.gender]
        else 1.0
    )

    factors = {
        "experience": base,
        "gender": GENDER_MUSCLE_FACTORS[profile.gender],
        "age": age_factor,
        "body_fat": bf_factor,
    }
    maximum = base * factors["gender"] * age_factor * bf_factor
    return MuscleGainCeiling(
        experience_band=band,
        minimum_kg_per_month=round(maximum * 0.5, 3),
        optimal_kg_per_month=round(maximum * 0.75, 3),
        maximum_kg_per_month=round(maximum, 3),
        factors=factors,
    )


class _Block(NamedTuple):
    reason: BlockReason
    detail: str


class GoalValidator:
    """
    Validates a goal against physiological safety thresholds.

    Evaluates EVERY rule even after one blocks, so the user sees the
    complete picture. The first block found (in evaluation order) becomes
    the outcome's reason; all messages are kept.
    """

    def validate(
        self,
        goal: Goal,
        metrics: CalculatedMetrics,
        profile: UserBiometricProfile,
    ) -> ValidationResult:
        """
        Validate a goal.

        This is the main entry point. It:
        1. Detects conflicting goal pairs
        2. Checks special states and target body mass floors
        3. Classifies the weekly rate against the loss or gain table
        4. Applies muscle-gain ceilings or the recomposition outlook
        5. Evaluates calorie floors and deficit caps
        6. Builds the tiered result and reasoning trace

        Args:
            goal: The user's goal
            metrics: Metrics calculated for the same profile
            profile: User profile

        Returns:
            ValidationResult; never raises for a representable goal

        Raises:
            InvalidInputError: For negative or non-finite magnitudes
        """
        ensure_finite_non_negative("target_weight_kg", goal.target_weight_kg)
        ensure_finite_non_negative("weight_kg", profile.weight_kg)
        if goal.timeline_weeks <= 0:
            raise InvalidInputError("timeline_weeks", goal.timeline_weeks, "must be positive")

        trace = ReasoningTrace(goal_types=list(goal.goal_types))
        tiers: List[ValidationTier] = []
        blocks: List[_Block] = []
        messages: List[str] = []

        change = goal.target_weight_kg - profile.weight_kg
        rate_kg = abs(change) / goal.timeline_weeks
        rate_pct = rate_kg / profile.weight_kg * 100
        direction = goal_direction(goal, profile.weight_kg)

        # Step 1: conflicts
        conflict = self._check_conflicts(goal, trace)
        if conflict:
            blocks.append(conflict)
            messages.append(conflict.detail)

        # Step 2: special states and floors
        for check in (self._check_pregnancy, self._check_target_bmi, self._check_essential_fat):
            block, tier, message = check(goal, metrics, profile, change, trace)
            if block:
                blocks.append(block)
            tiers.append(tier)
            if message:
                messages.append(message)

        tiers.append(self._check_direction(goal, profile, change, trace, messages))

        # Step 3: rate tables
        multiplier, reasons = self.rate_multiplier(profile, change < 0)
        rate_tier = ValidationTier.NONE
        bands: List[TierBand] = []
        if change < 0 or (change > 0 and not self._is_muscle_only(goal)):
            bands = LOSS_TIERS if change < 0 else GAIN_TIERS
            rate_tier, block, message = self._classify_rate(
                bands, change < 0, rate_kg, rate_pct, multiplier, reasons, trace
            )
            if block:
                blocks.append(block)
            messages.append(message)
            messages.extend(RISK_MESSAGES[rate_tier])
            tiers.append(rate_tier)

        # Step 4: muscle gain ceiling / recomposition
        ceiling = muscle_gain_ceiling(profile, metrics.body_composition.estimated_body_fat_pct)
        recomposition = None
        muscle_block = None
        if GoalType.MUSCLE_GAIN in goal.goal_types and change > 0:
            muscle_block, message = self._check_muscle_ceiling(ceiling, rate_kg, trace)
            if muscle_block:
                blocks.append(muscle_block)
            messages.append(message)
        if direction == "recomposition":
            recomposition, recomp_tier = self._recomposition_outlook(
                profile, metrics, ceiling, rate_kg, trace
            )
            tiers.append(recomp_tier)
            messages.append(recomposition.message)

        # Step 5: calories
        tiers.append(self._check_calories(goal, metrics, profile, change, rate_kg, trace, messages))

        # Extras
        tiers.append(self._check_age(profile, trace, messages))
        tiers.append(self._check_sleep(metrics, change, rate_tier, trace, messages))
        self._add_deficit_advice(goal, metrics, change, rate_kg, messages)

        # Step 6: result
        recommended_calories = calculate_target_calories(profile, goal, metrics.bmr, metrics.tdee)

        if blocks:
            block = blocks[0]
            outcome = BlockedOutcome(reason=block.reason, detail=block.detail)
            tier = ValidationTier.BLOCKED
            trace.result = "refused"
        else:
            tier = most_severe(*tiers)
            outcome = AllowedOutcome(tier=tier)
            trace.result = "approved" if tier == ValidationTier.NONE else "warning"
        trace.final_tier = tier

        alternatives: List[AlternativeRate] = []
        if muscle_block is not None:
            alternatives = self._muscle_alternatives(ceiling, change)
        elif tier != ValidationTier.NONE and bands and change != 0:
            alternatives = self._rate_alternatives(bands, change, profile.weight_kg, multiplier)

        logger.debug(
            "Validated goal %s: rate=%.2f kg/week (%.2f%%) tier=%s",
            [g.value for g in goal.goal_types], rate_kg, rate_pct, tier.value,
        )

        return ValidationResult(
            outcome=outcome,
            tier=tier,
            is_allowed=tier != ValidationTier.BLOCKED,
            requires_acknowledgment=tier in (ValidationTier.WARNING, ValidationTier.SEVERE),
            messages=_dedupe(messages),
            alternatives=alternatives,
            weekly_rate_kg=round(rate_kg, 3),
            weekly_rate_pct=round(rate_pct, 3),
            recommended_calories=recommended_calories,
            muscle_gain_ceiling=ceiling if GoalType.MUSCLE_GAIN in goal.goal_types or recomposition else None,
            recomposition=recomposition,
            reasoning_trace=trace,
        )

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def _check_conflicts(self, goal: Goal, trace: ReasoningTrace) -> Optional[_Block]:
        """Mutually exclusive pairs on the weight axis always block."""
        directions: Dict[int, GoalType] = {}
        for goal_type in goal.goal_types:
            axis = GOAL_AXIS[goal_type]
            if axis is not None:
                directions.setdefault(axis, goal_type)

        if len(directions) > 1:
            pair = sorted(g.value for g in directions.values())
            detail = (
                f"Goals {' and '.join(pair)} pull body weight in opposite directions and "
                "cannot be pursued at the same time. Choose one direction, or pick "
                "recomposition to lose fat while building muscle."
            )
            trace.checks.append(
                RuleCheck(
                    rule="goal_conflict",
                    passed=False,
                    value=pair,
                    tier=ValidationTier.BLOCKED,
                    reasoning=detail,
                )
            )
            return _Block(BlockReason.CONFLICTING_GOALS, detail)

        trace.checks.append(
            RuleCheck(rule="goal_conflict", passed=True, reasoning="No opposing goals on the weight axis")
        )
        return None

    def _check_pregnancy(self, goal, metrics, profile, change, trace):
        if profile.is_pregnant and change < 0:
            detail = (
                "Weight loss is not recommended during pregnancy. Focus on balanced "
                "nutrition and consult your healthcare provider."
            )
            trace.checks.append(
                RuleCheck(
                    rule="pregnancy",
                    passed=False,
                    value=True,
                    tier=ValidationTier.BLOCKED,
                    reasoning=detail,
                )
            )
            return _Block(BlockReason.LOSS_DURING_PREGNANCY, detail), ValidationTier.NONE, detail

        trace.checks.append(
            RuleCheck(
                rule="pregnancy",
                passed=True,
                value=profile.is_pregnant,
                reasoning="No weight loss during pregnancy",
            )
        )
        return None, ValidationTier.NONE, None

    def _check_target_bmi(self, goal, metrics, profile, change, trace):
        target_bmi = goal.target_weight_kg / (profile.height_m ** 2)
        min_safe_weight = MIN_HEALTHY_BMI * profile.height_m ** 2

        if target_bmi < TARGET_BMI_FLOOR:
            detail = (
                f"Target weight {goal.target_weight_kg:g} kg gives a BMI of {target_bmi:.1f}, "
                f"below the safe floor of {TARGET_BMI_FLOOR}. The minimum healthy weight for "
                f"your height is {min_safe_weight:.1f} kg."
            )
            trace.checks.append(
                RuleCheck(
                    rule="target_bmi",
                    passed=False,
                    value=round(target_bmi, 1),
                    threshold=TARGET_BMI_FLOOR,
                    tier=ValidationTier.BLOCKED,
                    reasoning=detail,
                )
            )
            return _Block(BlockReason.TARGET_BMI_BELOW_FLOOR, detail), ValidationTier.NONE, detail

        tier = ValidationTier.NONE
        message = None
        if target_bmi < MIN_HEALTHY_BMI:
            tier = ValidationTier.WARNING
            message = (
                f"Target BMI {target_bmi:.1f} is underweight. Consider {min_safe_weight:.1f} kg "
                "or above."
            )
        elif change > 0 and target_bmi >= OBESE_TARGET_BMI:
            tier = ValidationTier.WARNING
            message = f"Target BMI {target_bmi:.1f} is in the obese range."

        trace.checks.append(
            RuleCheck(
                rule="target_bmi",
                passed=tier == ValidationTier.NONE,
                value=round(target_bmi, 1),
                threshold=f"{MIN_HEALTHY_BMI}-{OBESE_TARGET_BMI}",
                tier=tier,
                reasoning=message or "Target BMI is within a healthy range",
            )
        )
        return None, tier, message

    def _check_essential_fat(self, goal, metrics, profile, change, trace):
        composition = metrics.body_composition
        lean_mass = composition.lean_mass_kg
        if lean_mass is None and composition.estimated_body_fat_pct is not None:
            lean_mass = profile.weight_kg * (1 - composition.estimated_body_fat_pct / 100)
        if lean_mass is None or change >= 0:
            return None, ValidationTier.NONE, None

        essential = ESSENTIAL_BODY_FAT[profile.gender]
        target_bf = (goal.target_weight_kg - lean_mass) / goal.target_weight_kg * 100
        if target_bf < essential:
            detail = (
                f"Reaching {goal.target_weight_kg:g} kg while keeping your lean mass would put "
                f"body fat at {max(target_bf, 0):.1f}%, below the essential fat level of "
                f"{essential:g}%."
            )
            trace.checks.append(
                RuleCheck(
                    rule="essential_fat",
                    passed=False,
                    value=round(target_bf, 1),
                    threshold=essential,
                    tier=ValidationTier.BLOCKED,
                    reasoning=detail,
                )
            )
            return _Block(BlockReason.BELOW_ESSENTIAL_FAT, detail), ValidationTier.NONE, detail

        trace.checks.append(
            RuleCheck(
                rule="essential_fat",
                passed=True,
                value=round(target_bf, 1),
                threshold=essential,
                reasoning="Projected body fat stays above essential fat",
            )
        )
        return None, ValidationTier.NONE, None

    def _check_direction(
        self,
        goal: Goal,
        profile: UserBiometricProfile,
        change: float,
        trace: ReasoningTrace,
        messages: List[str],
    ) -> ValidationTier:
        """The target weight should move the way the goal says."""
        types = goal.goal_types
        mismatch = None
        if GoalType.WEIGHT_LOSS in types and change > 0:
            mismatch = "Your goal is weight loss but the target is above your current weight."
        elif GoalType.WEIGHT_GAIN in types and change < 0:
            mismatch = "Your goal is weight gain but the target is below your current weight."
        elif types == [GoalType.MAINTENANCE] and abs(change) > profile.weight_kg * 0.02:
            mismatch = (
                f"Your goal is maintenance but the target differs from your current weight "
                f"by {abs(change):.1f} kg."
            )

        tier = ValidationTier.CAUTION if mismatch else ValidationTier.NONE
        trace.checks.append(
            RuleCheck(
                rule="target_direction",
                passed=mismatch is None,
                value=round(change, 2),
                tier=tier,
                reasoning=mismatch or "Target weight matches the goal direction",
            )
        )
        if mismatch:
            messages.append(mismatch)
        return tier

    def rate_multiplier(self, profile: UserBiometricProfile, is_loss: bool) -> Tuple[float, List[str]]:
        """
        Population scaling for the rate table.

        Higher BMI classes widen the loss table; teens, elderly, pregnant or
        breastfeeding and medically flagged profiles narrow both tables.

        Returns:
            Tuple of (multiplier, human-readable reasons)
        """
        multiplier = 1.0
        reasons = []

        if is_loss:
            bmi = profile.bmi
            for min_bmi, factor in BMI_LOSS_WIDENING:
                if bmi >= min_bmi:
                    multiplier *= factor
                    reasons.append(f"BMI {bmi:.1f} (x{factor})")
                    break

        if TEEN_AGE_RANGE[0] <= profile.age <= TEEN_AGE_RANGE[1]:
            multiplier *= TEEN_FACTOR
            reasons.append(f"teen (x{TEEN_FACTOR})")
        elif profile.age >= ELDERLY_AGE:
            multiplier *= ELDERLY_FACTOR
            reasons.append(f"age {profile.age} (x{ELDERLY_FACTOR})")

        if profile.is_pregnant or profile.is_breastfeeding:
            multiplier *= PREGNANCY_FACTOR
            reasons.append(f"pregnancy/breastfeeding (x{PREGNANCY_FACTOR})")

        if profile.has_medical_flags:
            multiplier *= MEDICAL_FACTOR
            reasons.append(f"medical conditions (x{MEDICAL_FACTOR})")

        return multiplier, reasons

    def _classify_rate(
        self,
        bands: List[TierBand],
        is_loss: bool,
        rate_kg: float,
        rate_pct: float,
        multiplier: float,
        reasons: List[str],
        trace: ReasoningTrace,
    ) -> Tuple[ValidationTier, Optional[_Block], str]:
        safe_pct = bands[0].upper_pct * multiplier
        absolute = LOSS_ABSOLUTE_CEILING_PCT if is_loss else GAIN_ABSOLUTE_CEILING_PCT
        ceiling = min(bands[-1].upper_pct * multiplier, absolute)
        fmt = {"rate_kg": rate_kg, "rate_pct": rate_pct, "safe_pct": safe_pct}
        rule = "loss_rate" if is_loss else "gain_rate"
        scaling = f" Limits scaled for {', '.join(reasons)}." if reasons else ""

        if rate_pct > ceiling:
            detail = (
                f"A weekly {'loss' if is_loss else 'gain'} of {rate_kg:.2f} kg "
                f"({rate_pct:.2f}% of body weight) exceeds the absolute ceiling of "
                f"{ceiling:.2f}% per week.{scaling}"
            )
            trace.checks.append(
                RuleCheck(
                    rule=rule,
                    passed=False,
                    value=round(rate_pct, 3),
                    threshold=round(ceiling, 3),
                    tier=ValidationTier.BLOCKED,
                    reasoning=detail,
                )
            )
            return ValidationTier.SEVERE, _Block(BlockReason.RATE_ABOVE_CEILING, detail), detail

        band = bands[-1]
        for candidate in bands:
            if rate_pct <= candidate.upper_pct * multiplier:
                band = candidate
                break

        message = band.message.format(**fmt) + scaling
        trace.checks.append(
            RuleCheck(
                rule=rule,
                passed=band.tier == ValidationTier.NONE,
                value=round(rate_pct, 3),
                threshold=round(band.upper_pct * multiplier, 3),
                tier=band.tier,
                reasoning=message,
            )
        )
        return band.tier, None, message

    @staticmethod
    def _is_muscle_only(goal: Goal) -> bool:
        """Muscle gain without an explicit weight goal gains at the muscle ceiling, not the gain table."""
        types = set(goal.goal_types)
        return GoalType.MUSCLE_GAIN in types and not types & {
            GoalType.WEIGHT_GAIN,
            GoalType.WEIGHT_LOSS,
        }

    def _check_muscle_ceiling(
        self, ceiling: MuscleGainCeiling, rate_kg: float, trace: ReasoningTrace
    ) -> Tuple[Optional[_Block], str]:
        monthly = rate_kg * WEEKS_PER_MONTH
        if monthly > ceiling.maximum_kg_per_month:
            detail = (
                f"Gaining {monthly:.2f} kg per month exceeds the natural muscle gain ceiling of "
                f"{ceiling.maximum_kg_per_month:.2f} kg per month for a {ceiling.experience_band} "
                "lifter; the excess would be mostly fat, not muscle."
            )
            trace.checks.append(
                RuleCheck(
                    rule="muscle_gain_ceiling",
                    passed=False,
                    value=round(monthly, 3),
                    threshold=ceiling.maximum_kg_per_month,
                    tier=ValidationTier.BLOCKED,
                    reasoning=detail,
                )
            )
            return _Block(BlockReason.MUSCLE_GAIN_ABOVE_CEILING, detail), detail

        message = (
            f"Gaining {monthly:.2f} kg per month is within the muscle gain ceiling of "
            f"{ceiling.maximum_kg_per_month:.2f} kg per month."
        )
        trace.checks.append(
            RuleCheck(
                rule="muscle_gain_ceiling",
                passed=True,
                value=round(monthly, 3),
                threshold=ceiling.maximum_kg_per_month,
                reasoning=message,
            )
        )
        return None, message

    def _recomposition_outlook(
        self,
        profile: UserBiometricProfile,
        metrics: CalculatedMetrics,
        ceiling: MuscleGainCeiling,
        rate_kg: float,
        trace: ReasoningTrace,
    ) -> Tuple[RecompositionOutlook, ValidationTier]:
        """Recomposition is allowed; experience and body fat set the realistic pace."""
        bf = profile.body_fat_pct
        if bf is None:
            bf = metrics.body_composition.estimated_body_fat_pct
        favourable = profile.training_experience_years < RECOMP_NOVICE_YEARS or (
            bf is not None and bf > RECOMP_HIGH_BODY_FAT
        )

        if favourable:
            muscle = round(ceiling.maximum_kg_per_month * 0.5, 2)
            message = (
                f"Recomposition is realistic for you: expect about {muscle:.2f} kg of muscle per "
                f"month while losing {rate_kg:.2f} kg per week."
            )
            outlook = RecompositionOutlook(
                feasibility="good",
                muscle_gain_kg_per_month=muscle,
                fat_loss_kg_per_week=round(rate_kg, 3),
                message=message,
            )
            tier = ValidationTier.NONE
        else:
            muscle = round(ceiling.maximum_kg_per_month * 0.25, 2)
            message = (
                f"Recomposition is slow at your training level: expect about {muscle:.2f} kg of "
                f"muscle per month while losing {rate_kg:.2f} kg per week. A dedicated fat-loss "
                "phase followed by a lean gain is usually faster."
            )
            outlook = RecompositionOutlook(
                feasibility="slow",
                muscle_gain_kg_per_month=muscle,
                fat_loss_kg_per_week=round(rate_kg, 3),
                message=message,
            )
            tier = ValidationTier.CAUTION

        trace.checks.append(
            RuleCheck(
                rule="recomposition",
                passed=True,
                value=profile.training_experience_years,
                threshold=RECOMP_NOVICE_YEARS,
                tier=tier,
                reasoning=message,
            )
        )
        return outlook, tier

    def _check_calories(
        self,
        goal: Goal,
        metrics: CalculatedMetrics,
        profile: UserBiometricProfile,
        change: float,
        rate_kg: float,
        trace: ReasoningTrace,
        messages: List[str],
    ) -> ValidationTier:
        """
        Rate-based calories against the floor, plus the deficit percentage cap.

        Both are evaluated; the more conservative tier wins.
        """
        if change >= 0:
            return ValidationTier.NONE

        floor = calorie_floor(profile, metrics.bmr)
        deficit = rate_kg * KCAL_PER_KG / 7
        required = metrics.tdee - deficit
        deficit_pct = deficit / metrics.tdee

        floor_tier = ValidationTier.NONE
        if required < floor:
            floor_tier = ValidationTier.CAUTION
            messages.append(
                f"This rate needs about {required:.0f} kcal per day, below your minimum of "
                f"{floor} kcal. Calories are held at {floor} kcal, so progress will be slower "
                "than planned."
            )
        trace.checks.append(
            RuleCheck(
                rule="calorie_floor",
                passed=floor_tier == ValidationTier.NONE,
                value=round(required),
                threshold=floor,
                tier=floor_tier,
                reasoning=f"Required intake {required:.0f} kcal vs floor {floor} kcal",
            )
        )

        deficit_tier = ValidationTier.NONE
        if is_restricted_profile(profile):
            if deficit_pct > STANDARD_DEFICIT_CAP + 0.10:
                deficit_tier = ValidationTier.SEVERE
            elif deficit_pct > STANDARD_DEFICIT_CAP:
                deficit_tier = ValidationTier.WARNING
            elif deficit_pct > RESTRICTED_DEFICIT_CAP:
                deficit_tier = ValidationTier.CAUTION
            if deficit_tier != ValidationTier.NONE:
                messages.append(
                    f"A {deficit_pct:.0%} daily deficit exceeds the {RESTRICTED_DEFICIT_CAP:.0%} "
                    "limit for profiles with medical conditions or high stress."
                )
            trace.checks.append(
                RuleCheck(
                    rule="deficit_cap",
                    passed=deficit_tier == ValidationTier.NONE,
                    value=round(deficit_pct, 3),
                    threshold=RESTRICTED_DEFICIT_CAP,
                    tier=deficit_tier,
                    reasoning=f"Deficit {deficit_pct:.0%} of TDEE against restricted cap",
                )
            )
        elif deficit_pct > STANDARD_DEFICIT_CAP:
            messages.append(
                f"The daily deficit is limited to {STANDARD_DEFICIT_CAP:.0%} of TDEE "
                f"({metrics.tdee * STANDARD_DEFICIT_CAP:.0f} kcal)."
            )

        return most_severe(floor_tier, deficit_tier)

    def _check_age(
        self, profile: UserBiometricProfile, trace: ReasoningTrace, messages: List[str]
    ) -> ValidationTier:
        if profile.age >= ELDERLY_CAUTION_AGE:
            message = "At 75 or older, check any weight change plan with your doctor."
            messages.append(message)
            trace.checks.append(
                RuleCheck(
                    rule="age",
                    passed=False,
                    value=profile.age,
                    threshold=ELDERLY_CAUTION_AGE,
                    tier=ValidationTier.CAUTION,
                    reasoning=message,
                )
            )
            return ValidationTier.CAUTION
        return ValidationTier.NONE

    def _check_sleep(
        self,
        metrics: CalculatedMetrics,
        change: float,
        rate_tier: ValidationTier,
        trace: ReasoningTrace,
        messages: List[str],
    ) -> ValidationTier:
        """Short sleep combined with a fast loss rate escalates to warning."""
        duration = metrics.sleep.duration_hours
        if duration is None or change >= 0 or rate_tier == ValidationTier.NONE:
            return ValidationTier.NONE
        if duration < SHORT_SLEEP_HOURS:
            message = (
                f"Sleeping {duration:g} hours with an aggressive deficit increases muscle loss "
                "and hunger. Improve sleep before pushing the rate."
            )
            messages.append(message)
            trace.checks.append(
                RuleCheck(
                    rule="sleep",
                    passed=False,
                    value=duration,
                    threshold=SHORT_SLEEP_HOURS,
                    tier=ValidationTier.WARNING,
                    reasoning=message,
                )
            )
            return ValidationTier.WARNING
        return ValidationTier.NONE

    def _add_deficit_advice(
        self,
        goal: Goal,
        metrics: CalculatedMetrics,
        change: float,
        rate_kg: float,
        messages: List[str],
    ) -> None:
        if change >= 0:
            return
        deficit_pct = rate_kg * KCAL_PER_KG / 7 / metrics.tdee
        if goal.timeline_weeks >= REFEED_MIN_WEEKS and deficit_pct >= REFEED_MIN_DEFICIT:
            messages.append(
                "Schedule a refeed day at maintenance calories every 7-14 days to support "
                "training and adherence."
            )
        if goal.timeline_weeks >= DIET_BREAK_MIN_WEEKS:
            messages.append(
                "Plan a 1-2 week diet break at maintenance every 8-12 weeks of dieting."
            )

    # ------------------------------------------------------------------
    # Alternatives
    # ------------------------------------------------------------------

    def _rate_alternatives(
        self,
        bands: List[TierBand],
        change: float,
        weight_kg: float,
        multiplier: float,
    ) -> List[AlternativeRate]:
        """Suggest the sustainable pace and a conservative pace below it."""
        safe_rate = bands[0].upper_pct * multiplier * weight_kg / 100
        options = [
            ("conservative", safe_rate * 0.5),
            ("recommended", safe_rate * 0.75),
            ("maximum sustainable", safe_rate),
        ]
        return [
            AlternativeRate(
                label=label,
                weekly_rate_kg=round(rate, 3),
                timeline_weeks=max(1, math.ceil(abs(change) / rate)),
                tier=ValidationTier.NONE,
            )
            for label, rate in options
            if rate > 0
        ]

    def _muscle_alternatives(self, ceiling: MuscleGainCeiling, change: float) -> List[AlternativeRate]:
        options = [
            ("minimum", ceiling.minimum_kg_per_month),
            ("optimal", ceiling.optimal_kg_per_month),
            ("maximum", ceiling.maximum_kg_per_month),
        ]
        alternatives = []
        for label, monthly in options:
            weekly = monthly / WEEKS_PER_MONTH
            alternatives.append(
                AlternativeRate(
                    label=label,
                    weekly_rate_kg=round(weekly, 3),
                    monthly_rate_kg=monthly,
                    timeline_weeks=max(1, math.ceil(abs(change) / weekly)),
                    tier=ValidationTier.NONE,
                )
            )
        return alternatives

    def display_validation_summary(self, result: ValidationResult) -> str:
        """
        Generate human-readable validation summary.

        Args:
            result: The validation result

        Returns:
            Formatted summary string
        """
        lines = []
        lines.append("=" * 70)
        lines.append(f"GOAL VALIDATION: {', '.join(g.value for g in result.reasoning_trace.goal_types)}")
        lines.append("=" * 70)
        lines.append("")
        lines.append(f"Tier: {result.tier.value.upper()}")
        lines.append(f"Allowed: {'yes' if result.is_allowed else 'no'}")
        if isinstance(result.outcome, BlockedOutcome):
            lines.append(f"Blocked: {result.outcome.reason.value}")
        if result.requires_acknowledgment:
            lines.append("Acknowledgment required before proceeding")
        lines.append(
            f"Rate: {result.weekly_rate_kg:.2f} kg/week ({result.weekly_rate_pct:.2f}% body weight)"
        )
        lines.append("")

        if result.messages:
            lines.append("MESSAGES:")
            for message in result.messages:
                lines.append(f"  - {message}")
            lines.append("")

        if result.alternatives:
            lines.append("ALTERNATIVES:")
            for alt in result.alternatives:
                lines.append(
                    f"  - {alt.label}: {alt.weekly_rate_kg:.2f} kg/week over {alt.timeline_weeks} weeks"
                )
            lines.append("")

        lines.append("=" * 70)
        return "\n".join(lines)


def _dedupe(messages: List[str]) -> List[str]:
    seen = []
    for message in messages:
        if message not in seen:
            seen.append(message)
    return seen
