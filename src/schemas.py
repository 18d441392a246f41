"""
Pydantic models for the health metrics engine.

This module defines the core data structures for:
- Biometric Profiles: the immutable user input (body, lifestyle, medical flags)
- Detection Context: population group, climate and formula-accuracy detection
- Calculated Metrics: BMR, TDEE, BMI, macros, water, heart-rate zones, sleep
- Goals and Validation Results: tiered goal safety outcomes with reasoning traces
- Health Scores: informational 0-100 readiness scores
"""

from datetime import time
from enum import Enum
from typing import Annotated, List, Optional, Dict, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


CALCULATIONS_VERSION = "2.1.0"


# ============================================================================
# Enumerations
# ============================================================================

class Gender(str, Enum):
    """Biological sex used by sex-specific formulas."""
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class ActivityLevel(str, Enum):
    """Self-reported exercise activity level."""
    SEDENTARY = "sedentary"
    LIGHT = "light"
    MODERATE = "moderate"
    ACTIVE = "active"
    VERY_ACTIVE = "very_active"


class Occupation(str, Enum):
    """Daily occupational movement."""
    DESK_JOB = "desk_job"
    LIGHT_ACTIVE = "light_active"
    MODERATE_ACTIVE = "moderate_active"
    HEAVY_LABOR = "heavy_labor"
    VERY_ACTIVE = "very_active"


class DietType(str, Enum):
    """Protein source pattern, ordered by decreasing animal-protein fraction."""
    OMNIVORE = "omnivore"
    PESCATARIAN = "pescatarian"
    VEGETARIAN = "vegetarian"
    VEGAN = "vegan"


class DietStyle(str, Enum):
    """Macro distribution style."""
    BALANCED = "balanced"
    KETO = "keto"
    LOW_CARB = "low_carb"
    PALEO = "paleo"
    MEDITERRANEAN = "mediterranean"


class BodyFatSource(str, Enum):
    """How the body fat percentage was measured."""
    DEXA = "dexa"
    BODPOD = "bodpod"
    CALIPER = "caliper"
    BIOIMPEDANCE = "bioimpedance"
    AI_PHOTO = "ai_photo"
    VISUAL_ESTIMATE = "visual_estimate"
    NONE = "none"


class PopulationGroup(str, Enum):
    """Population group used for BMI cutoff selection."""
    ASIAN = "asian"
    CAUCASIAN = "caucasian"
    BLACK_AFRICAN = "black_african"
    HISPANIC = "hispanic"
    MIDDLE_EASTERN = "middle_eastern"
    PACIFIC_ISLANDER = "pacific_islander"
    MIXED = "mixed"
    GENERAL = "general"


class ClimateZone(str, Enum):
    """Climate zone affecting energy and water needs."""
    TROPICAL = "tropical"
    TEMPERATE = "temperate"
    COLD = "cold"
    ARID = "arid"


class Season(str, Enum):
    """Season supplied explicitly by the caller."""
    SPRING = "spring"
    SUMMER = "summer"
    AUTUMN = "autumn"
    WINTER = "winter"


class StressLevel(str, Enum):
    """Self-reported non-training life stress."""
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


class MedicalCondition(str, Enum):
    """Medical conditions that change calculations or validation ceilings."""
    HYPOTHYROIDISM = "hypothyroidism"
    HYPERTHYROIDISM = "hyperthyroidism"
    PCOS = "pcos"
    DIABETES_TYPE1 = "diabetes_type1"
    DIABETES_TYPE2 = "diabetes_type2"
    HYPERTENSION = "hypertension"
    HEART_DISEASE = "heart_disease"
    KIDNEY_DISEASE = "kidney_disease"
    EATING_DISORDER_HISTORY = "eating_disorder_history"
    OTHER = "other"


class BMRFormula(str, Enum):
    """Basal metabolic rate equations."""
    MIFFLIN_ST_JEOR = "mifflin_st_jeor"
    KATCH_MCARDLE = "katch_mcardle"
    CUNNINGHAM = "cunningham"
    HARRIS_BENEDICT = "harris_benedict"


class BMITable(str, Enum):
    """Population-specific BMI cutoff tables."""
    GENERAL = "general"
    ASIAN = "asian"
    AFRICAN = "african"
    HISPANIC = "hispanic"
    MIDDLE_EASTERN = "middle_eastern"
    PACIFIC_ISLANDER = "pacific_islander"
    ATHLETIC = "athletic"


class HeartRateFormula(str, Enum):
    """Max heart rate and zone estimation methods."""
    AGE_SIMPLE = "age_simple"
    TANAKA = "tanaka"
    KARVONEN = "karvonen"


class HealthRisk(str, Enum):
    """Health risk tier attached to a BMI category."""
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    VERY_HIGH = "very_high"


class GoalType(str, Enum):
    """User goal directions."""
    WEIGHT_LOSS = "weight_loss"
    WEIGHT_GAIN = "weight_gain"
    MUSCLE_GAIN = "muscle_gain"
    RECOMPOSITION = "recomposition"
    MAINTENANCE = "maintenance"


class ValidationTier(str, Enum):
    """Ordered severity of a goal validation outcome."""
    NONE = "none"
    CAUTION = "caution"
    WARNING = "warning"
    SEVERE = "severe"
    BLOCKED = "blocked"

    @property
    def rank(self) -> int:
        return _TIER_ORDER.index(self)


_TIER_ORDER = [
    ValidationTier.NONE,
    ValidationTier.CAUTION,
    ValidationTier.WARNING,
    ValidationTier.SEVERE,
    ValidationTier.BLOCKED,
]


def most_severe(*tiers: ValidationTier) -> ValidationTier:
    """Return the most severe of the given tiers (NONE when empty)."""
    return max(tiers, key=lambda t: t.rank, default=ValidationTier.NONE)


class BlockReason(str, Enum):
    """The only conditions that make a goal not allowed."""
    CONFLICTING_GOALS = "conflicting_goals"
    RATE_ABOVE_CEILING = "rate_above_ceiling"
    TARGET_BMI_BELOW_FLOOR = "target_bmi_below_floor"
    BELOW_ESSENTIAL_FAT = "below_essential_fat"
    MUSCLE_GAIN_ABOVE_CEILING = "muscle_gain_above_ceiling"
    LOSS_DURING_PREGNANCY = "loss_during_pregnancy"


# ============================================================================
# User Profile
# ============================================================================

class LifestyleHabits(BaseModel):
    """Self-reported eating and lifestyle habits."""

    model_config = ConfigDict(frozen=True)

    drinks_enough_water: bool = False
    limits_sugary_drinks: bool = False
    eats_regular_meals: bool = False
    avoids_late_night_eating: bool = False
    controls_portion_sizes: bool = False
    reads_nutrition_labels: bool = False
    eats_fruits_vegetables: bool = False
    limits_refined_sugar: bool = False
    includes_healthy_fats: bool = False
    eats_processed_foods: bool = False
    drinks_alcohol: bool = False
    uses_tobacco: bool = False
    drinks_coffee: bool = False


class FitnessBaseline(BaseModel):
    """Simple fitness test results."""

    model_config = ConfigDict(frozen=True)

    max_pushups: Optional[int] = Field(
        default=None,
        ge=0,
        le=500,
        description="Maximum consecutive push-ups"
    )

    continuous_run_minutes: Optional[float] = Field(
        default=None,
        ge=0,
        le=600,
        description="Longest continuous run in minutes"
    )

    physical_limitations: List[str] = Field(
        default_factory=list,
        description="Injuries or limitations affecting training"
    )


class UserBiometricProfile(BaseModel):
    """
    Immutable biometric and lifestyle profile.

    Required fields are age, gender, weight and height; everything else is
    optional and only sharpens the calculations. Instances are owned by the
    calling layer and never mutated by the engine.
    """

    model_config = ConfigDict(frozen=True)

    age: int = Field(..., ge=13, le=120, description="Age in years")
    gender: Gender = Field(..., description="Biological sex for formula selection")
    weight_kg: float = Field(..., ge=30, le=300, description="Body weight in kilograms")
    height_cm: float = Field(..., ge=100, le=250, description="Height in centimetres")

    body_fat_pct: Optional[float] = Field(
        default=None,
        ge=5,
        le=60,
        description="Body fat percentage"
    )

    body_fat_source: BodyFatSource = Field(
        default=BodyFatSource.NONE,
        description="Measurement provenance for body_fat_pct"
    )

    body_fat_confidence: Optional[int] = Field(
        default=None,
        ge=0,
        le=100,
        description="Estimator confidence (0-100) for photo estimates"
    )

    ethnicity: Optional[PopulationGroup] = Field(
        default=None,
        description="User-declared population group; overrides detection"
    )

    country: Optional[str] = Field(
        default=None,
        description="ISO-3166 alpha-2 country code"
    )

    region: Optional[str] = Field(
        default=None,
        description="State or province code within the country"
    )

    climate_zone: Optional[ClimateZone] = Field(
        default=None,
        description="User-declared climate zone; overrides detection"
    )

    occupation: Optional[Occupation] = None
    activity_level: ActivityLevel = ActivityLevel.SEDENTARY
    diet_type: DietType = DietType.OMNIVORE
    diet_style: DietStyle = DietStyle.BALANCED

    training_experience_years: float = Field(
        default=0.0,
        ge=0,
        le=80,
        description="Years of consistent resistance training"
    )

    workouts_per_week: int = Field(default=0, ge=0, le=14)

    medical_conditions: List[MedicalCondition] = Field(default_factory=list)
    stress_level: StressLevel = StressLevel.MODERATE

    is_pregnant: bool = False
    pregnancy_trimester: Optional[Literal[1, 2, 3]] = None
    is_breastfeeding: bool = False

    resting_heart_rate: Optional[int] = Field(
        default=None,
        ge=30,
        le=120,
        description="Resting heart rate in bpm"
    )

    waist_cm: Optional[float] = Field(default=None, ge=40, le=250)
    hip_cm: Optional[float] = Field(default=None, ge=50, le=250)

    sleep_time: Optional[time] = Field(default=None, description="Usual bedtime")
    wake_time: Optional[time] = Field(default=None, description="Usual wake-up time")

    habits: LifestyleHabits = Field(default_factory=LifestyleHabits)
    fitness: FitnessBaseline = Field(default_factory=FitnessBaseline)

    @field_validator("country", "region")
    @classmethod
    def normalize_code(cls, v: Optional[str]) -> Optional[str]:
        """Country and region codes are matched upper-case."""
        if v is None:
            return None
        v = v.strip().upper()
        return v or None

    @model_validator(mode='after')
    def validate_special_states(self):
        """Pregnancy needs a trimester and is not modelled for males."""
        if self.is_pregnant and self.gender == Gender.MALE:
            raise ValueError("is_pregnant cannot be set for gender 'male'")
        if self.is_pregnant and self.pregnancy_trimester is None:
            raise ValueError("pregnancy_trimester is required when is_pregnant is true")
        return self

    @property
    def height_m(self) -> float:
        return self.height_cm / 100.0

    @property
    def bmi(self) -> float:
        return self.weight_kg / (self.height_m ** 2)

    @property
    def has_medical_flags(self) -> bool:
        return bool(self.medical_conditions)


# ============================================================================
# Detection Context
# ============================================================================

class Location(BaseModel):
    """Explicit location the context was detected for."""

    model_config = ConfigDict(frozen=True)

    country: Optional[str] = None
    region: Optional[str] = None


class EthnicityDetection(BaseModel):
    """Population group inferred from declaration or location."""

    group: PopulationGroup
    confidence: int = Field(..., ge=0, le=100)
    source: Literal["user", "country", "default"]
    should_ask_user: bool = False
    message: Optional[str] = None


class ClimateDetection(BaseModel):
    """Climate zone with its energy and water modifiers."""

    zone: ClimateZone
    confidence: int = Field(..., ge=0, le=100)
    source: Literal["user", "state", "country", "default"]
    tdee_modifier: float = Field(..., gt=0)
    water_modifier: float = Field(..., gt=0)
    should_ask_user: bool = False
    message: Optional[str] = None


class FormulaAccuracy(BaseModel):
    """Chosen BMR formula and the accuracy it can claim."""

    bmr_formula: BMRFormula
    accuracy_pct: float = Field(..., description="Expected error band, +/- percent")
    confidence: int = Field(..., ge=0, le=100)
    rationale: str
    is_athlete: bool = False


class DetectionContext(BaseModel):
    """
    Calculation context derived from a profile.

    Season and location are explicit inputs recorded alongside the
    detections; nothing here is read from the clock or the environment.
    """

    ethnicity: EthnicityDetection
    climate: ClimateDetection
    formula_accuracy: FormulaAccuracy
    location: Location = Field(default_factory=Location)
    season: Optional[Season] = None
    calculations_version: str = CALCULATIONS_VERSION

    @property
    def should_ask_user(self) -> bool:
        return self.ethnicity.should_ask_user or self.climate.should_ask_user


# ============================================================================
# Formula Outputs
# ============================================================================

class FormulaSelection(BaseModel):
    """Formula chosen for a metric family and why."""

    metric: Literal["bmr", "bmi", "heart_rate"]
    formula_id: str
    accuracy: str = Field(..., description="Documented accuracy band, e.g. '+/-10%'")
    rationale: str


class BMIClassification(BaseModel):
    """BMI category under a population-specific table."""

    bmi: float
    category: str
    health_risk: HealthRisk
    table: BMITable
    general_category: str
    population_note: Optional[str] = None


class HeartRateZone(BaseModel):
    """A single training zone in beats per minute."""

    zone: int = Field(..., ge=1, le=5)
    name: str
    min_bpm: int
    max_bpm: int
    intensity_range: str


class HeartRateProfile(BaseModel):
    """Max heart rate and the five training zones."""

    formula: HeartRateFormula
    max_heart_rate: int
    resting_heart_rate: Optional[int] = None
    resting_classification: Optional[str] = None
    zones: List[HeartRateZone]


class VO2MaxEstimate(BaseModel):
    """Non-exercise VO2 max estimate in ml/kg/min."""

    vo2max: float = Field(..., gt=0)
    classification: str
    percentile: int = Field(..., ge=0, le=100)
    activity_index: int = Field(..., ge=0, le=7)
    description: str


class Macros(BaseModel):
    """Daily macronutrient targets in grams."""

    protein_g: int = Field(..., ge=0)
    carb_g: int = Field(..., ge=0)
    fat_g: int = Field(..., ge=0)

    @property
    def calories(self) -> int:
        return self.protein_g * 4 + self.carb_g * 4 + self.fat_g * 9


class BodyComposition(BaseModel):
    """Lean/fat split and fat distribution."""

    lean_mass_kg: Optional[float] = None
    fat_mass_kg: Optional[float] = None
    estimated_body_fat_pct: Optional[float] = Field(
        default=None,
        description="BMI-based estimate, only when no measurement exists"
    )
    healthy_body_fat_range: Optional[List[float]] = None
    waist_hip_ratio: Optional[float] = None
    waist_hip_risk: Optional[HealthRisk] = None


class SleepMetrics(BaseModel):
    """Sleep targets and the current pattern."""

    recommended_hours: float
    duration_hours: Optional[float] = None
    efficiency_score: Optional[int] = Field(default=None, ge=0, le=100)


class TDEEAdjustment(BaseModel):
    """An additive or multiplicative energy adjustment that was applied."""

    name: str
    kind: Literal["multiplier", "additive"]
    value: float
    reason: str


class HealthScores(BaseModel):
    """Informational 0-100 scores. Never consulted by goal validation."""

    overall_health: int = Field(..., ge=0, le=100)
    diet_readiness: int = Field(..., ge=0, le=100)
    fitness_readiness: int = Field(..., ge=0, le=100)
    goal_realism: Optional[int] = Field(default=None, ge=0, le=100)
    sleep_efficiency: Optional[int] = Field(default=None, ge=0, le=100)
    breakdown: Dict[str, Dict[str, float]] = Field(default_factory=dict)
    recommendations: List[str] = Field(default_factory=list)
    calculations_version: str = CALCULATIONS_VERSION


class CalculatedMetrics(BaseModel):
    """
    Complete metrics bundle for a profile.

    Plain serializable data: consumers such as meal generation read
    target_calories and macros only.
    """

    bmr: int = Field(..., gt=0)
    tdee: int = Field(..., gt=0)
    target_calories: int = Field(..., gt=0)
    bmi: float
    bmi_classification: BMIClassification
    macros: Macros
    water_ml: int = Field(..., gt=0)
    heart_rate: HeartRateProfile
    vo2max: Optional[VO2MaxEstimate] = None
    body_composition: BodyComposition
    sleep: SleepMetrics
    scores: Optional[HealthScores] = None
    formula_selections: List[FormulaSelection] = Field(default_factory=list)
    adjustments: List[TDEEAdjustment] = Field(default_factory=list)
    calculations_version: str = CALCULATIONS_VERSION

    @model_validator(mode='after')
    def validate_energy_invariants(self):
        """TDEE never drops below BMR and macros rebuild the calorie target."""
        if self.tdee < self.bmr:
            raise ValueError(f"TDEE ({self.tdee}) must not be below BMR ({self.bmr})")
        if abs(self.macros.calories - self.target_calories) > 2:
            raise ValueError(
                f"Macro calories ({self.macros.calories}) differ from target "
                f"({self.target_calories}) by more than 2 kcal"
            )
        return self


# ============================================================================
# Goals and Validation
# ============================================================================

class Goal(BaseModel):
    """User-stated goal: one or more goal types plus a target and timeline."""

    model_config = ConfigDict(frozen=True)

    goal_types: List[GoalType] = Field(..., min_length=1)
    target_weight_kg: float = Field(..., ge=25, le=300)
    timeline_weeks: int = Field(..., ge=1, le=260)

    @field_validator("goal_types")
    @classmethod
    def dedupe_goal_types(cls, v: List[GoalType]) -> List[GoalType]:
        """Keep first occurrence order, drop repeats."""
        seen: List[GoalType] = []
        for goal_type in v:
            if goal_type not in seen:
                seen.append(goal_type)
        return seen


class AlternativeRate(BaseModel):
    """A safer rate the user could pick instead."""

    label: str
    weekly_rate_kg: float
    monthly_rate_kg: Optional[float] = None
    timeline_weeks: int
    tier: ValidationTier


class MuscleGainCeiling(BaseModel):
    """Experience-tiered natural muscle gain limits, kg per month."""

    experience_band: Literal["beginner", "intermediate", "advanced", "elite"]
    minimum_kg_per_month: float
    optimal_kg_per_month: float
    maximum_kg_per_month: float
    factors: Dict[str, float]


class RecompositionOutlook(BaseModel):
    """Expected pace for simultaneous fat loss and muscle gain."""

    feasibility: Literal["good", "slow"]
    muscle_gain_kg_per_month: float
    fat_loss_kg_per_week: float
    message: str


class RuleCheck(BaseModel):
    """Record of a single validation rule evaluation."""

    rule: str = Field(..., description="Name of the rule evaluated")
    passed: bool
    value: Optional[Any] = None
    threshold: Optional[Any] = None
    tier: ValidationTier = ValidationTier.NONE
    reasoning: str


class ReasoningTrace(BaseModel):
    """
    Complete decision trace for a goal validation.

    Documents every rule check and the final tier so the outcome can be
    audited without re-running the engine.
    """

    goal_types: List[GoalType] = Field(default_factory=list)
    checks: List[RuleCheck] = Field(default_factory=list)
    result: Literal["approved", "refused", "warning"] = "approved"
    final_tier: ValidationTier = ValidationTier.NONE


class AllowedOutcome(BaseModel):
    """The goal may proceed at the given tier."""

    kind: Literal["allowed"] = "allowed"
    tier: ValidationTier

    @field_validator("tier")
    @classmethod
    def tier_not_blocked(cls, v: ValidationTier) -> ValidationTier:
        if v == ValidationTier.BLOCKED:
            raise ValueError("An allowed outcome cannot carry the blocked tier")
        return v


class BlockedOutcome(BaseModel):
    """The goal is refused for one of the explicit block reasons."""

    kind: Literal["blocked"] = "blocked"
    reason: BlockReason
    detail: str


GoalOutcome = Annotated[Union[AllowedOutcome, BlockedOutcome], Field(discriminator="kind")]


class ValidationResult(BaseModel):
    """Result of validating a goal against a profile and its metrics."""

    outcome: GoalOutcome
    tier: ValidationTier
    is_allowed: bool
    requires_acknowledgment: bool
    messages: List[str] = Field(default_factory=list)
    alternatives: List[AlternativeRate] = Field(default_factory=list)
    weekly_rate_kg: float = Field(..., ge=0)
    weekly_rate_pct: float = Field(..., ge=0)
    recommended_calories: Optional[int] = None
    muscle_gain_ceiling: Optional[MuscleGainCeiling] = None
    recomposition: Optional[RecompositionOutlook] = None
    reasoning_trace: ReasoningTrace
    calculations_version: str = CALCULATIONS_VERSION

    @model_validator(mode='after')
    def validate_outcome_consistency(self):
        """Tier, is_allowed and outcome branch must agree."""
        blocked = isinstance(self.outcome, BlockedOutcome)
        if blocked != (self.tier == ValidationTier.BLOCKED):
            raise ValueError("Blocked tier must match a blocked outcome")
        if self.is_allowed == blocked:
            raise ValueError("is_allowed must be false exactly when blocked")
        return self
