"""
Scientific formula library.

Pure functions only, no shared state. Each formula family is keyed by its
tagged variant so that every lookup table must cover every case:
- BMR: Mifflin-St Jeor, Katch-McArdle, Cunningham, Harris-Benedict (legacy)
- BMI: seven population-specific cutoff tables
- Heart rate: simple age-based, Tanaka, and heart-rate reserve (Karvonen)
- VO2 max: non-exercise estimate from resting heart rate and activity
- Body composition helpers: Deurenberg body fat estimate, healthy ranges
"""

from typing import Dict, List, NamedTuple, Optional, Tuple

from src.schemas import (
    ActivityLevel,
    BMIClassification,
    BMITable,
    BMRFormula,
    Gender,
    HealthRisk,
    HeartRateFormula,
    HeartRateProfile,
    HeartRateZone,
    VO2MaxEstimate,
)


class FormulaInfo(NamedTuple):
    """Documentation attached to a formula."""
    name: str
    accuracy: str
    source: str


# ============================================================================
# BMR
# ============================================================================

BMR_FORMULAS: Dict[BMRFormula, FormulaInfo] = {
    BMRFormula.MIFFLIN_ST_JEOR: FormulaInfo(
        "Mifflin-St Jeor", "+/-10%", "Mifflin et al. (1990), Am J Clin Nutr 51:241-247"
    ),
    BMRFormula.KATCH_MCARDLE: FormulaInfo(
        "Katch-McArdle", "+/-5%", "McArdle, Katch & Katch, Exercise Physiology (1996)"
    ),
    BMRFormula.CUNNINGHAM: FormulaInfo(
        "Cunningham", "+/-5%", "Cunningham (1980), Am J Clin Nutr 33:2372-2374"
    ),
    BMRFormula.HARRIS_BENEDICT: FormulaInfo(
        "Harris-Benedict (revised)", "+/-12-15%", "Roza & Shizgal (1984), Am J Clin Nutr 40:168-182"
    ),
}

# Mifflin-St Jeor sex constant; 'other' uses the midpoint.
_MIFFLIN_SEX_CONSTANT = {
    Gender.MALE: 5.0,
    Gender.FEMALE: -161.0,
    Gender.OTHER: -78.0,
}


def lean_body_mass(weight_kg: float, body_fat_pct: float) -> float:
    """Lean body mass in kg."""
    return weight_kg * (1 - body_fat_pct / 100.0)


def bmr_mifflin_st_jeor(weight_kg: float, height_cm: float, age: int, gender: Gender) -> float:
    """General-population BMR (kcal/day)."""
    base = 10 * weight_kg + 6.25 * height_cm - 5 * age
    return base + _MIFFLIN_SEX_CONSTANT[gender]


def bmr_katch_mcardle(weight_kg: float, body_fat_pct: float) -> float:
    """Lean-mass based BMR; requires a body fat measurement."""
    return 370 + 21.6 * lean_body_mass(weight_kg, body_fat_pct)


def bmr_cunningham(weight_kg: float, body_fat_pct: float) -> float:
    """Athlete lean-mass BMR with a higher per-kg coefficient."""
    return 500 + 22 * lean_body_mass(weight_kg, body_fat_pct)


def bmr_harris_benedict(weight_kg: float, height_cm: float, age: int, gender: Gender) -> float:
    """Revised Harris-Benedict, retained for comparison and audit."""
    male = 88.362 + 13.397 * weight_kg + 4.799 * height_cm - 5.677 * age
    female = 447.593 + 9.247 * weight_kg + 3.098 * height_cm - 4.330 * age
    if gender == Gender.MALE:
        return male
    if gender == Gender.FEMALE:
        return female
    return (male + female) / 2


def calculate_bmr(
    formula: BMRFormula,
    weight_kg: float,
    height_cm: float,
    age: int,
    gender: Gender,
    body_fat_pct: Optional[float] = None,
) -> float:
    """
    Dispatch to a BMR formula.

    Lean-mass formulas fall back to Mifflin-St Jeor when body fat is unknown.

    Args:
        formula: Which equation to use
        weight_kg: Body weight
        height_cm: Height
        age: Age in years
        gender: Sex for sex-specific equations
        body_fat_pct: Body fat percentage, needed by lean-mass formulas

    Returns:
        BMR in kcal/day
    """
    if formula in (BMRFormula.KATCH_MCARDLE, BMRFormula.CUNNINGHAM) and body_fat_pct is None:
        formula = BMRFormula.MIFFLIN_ST_JEOR

    if formula == BMRFormula.KATCH_MCARDLE:
        return bmr_katch_mcardle(weight_kg, body_fat_pct)
    if formula == BMRFormula.CUNNINGHAM:
        return bmr_cunningham(weight_kg, body_fat_pct)
    if formula == BMRFormula.HARRIS_BENEDICT:
        return bmr_harris_benedict(weight_kg, height_cm, age, gender)
    return bmr_mifflin_st_jeor(weight_kg, height_cm, age, gender)


# ============================================================================
# BMI
# ============================================================================

class BMIBand(NamedTuple):
    upper: float  # exclusive upper bound
    category: str
    risk: HealthRisk


_OBESE_TAIL = (
    ("Obese Class I", HealthRisk.HIGH),
    ("Obese Class II", HealthRisk.VERY_HIGH),
    ("Obese Class III", HealthRisk.VERY_HIGH),
)


def _bands(normal_upper: float, overweight_upper: float, obese1: float, obese2: float,
           overweight_risk: HealthRisk = HealthRisk.MODERATE) -> List[BMIBand]:
    return [
        BMIBand(18.5, "Underweight", HealthRisk.MODERATE),
        BMIBand(normal_upper, "Normal", HealthRisk.LOW),
        BMIBand(overweight_upper, "Overweight", overweight_risk),
        BMIBand(obese1, _OBESE_TAIL[0][0], _OBESE_TAIL[0][1]),
        BMIBand(obese2, _OBESE_TAIL[1][0], _OBESE_TAIL[1][1]),
        BMIBand(float("inf"), _OBESE_TAIL[2][0], _OBESE_TAIL[2][1]),
    ]


BMI_TABLES: Dict[BMITable, List[BMIBand]] = {
    BMITable.GENERAL: _bands(25.0, 30.0, 35.0, 40.0),
    BMITable.ASIAN: _bands(23.0, 27.5, 32.5, 37.5),
    BMITable.AFRICAN: _bands(27.0, 32.0, 37.0, 40.0),
    BMITable.HISPANIC: _bands(25.0, 30.0, 35.0, 40.0),
    BMITable.MIDDLE_EASTERN: _bands(25.0, 30.0, 35.0, 40.0),
    BMITable.PACIFIC_ISLANDER: _bands(26.0, 32.0, 37.0, 42.0),
    BMITable.ATHLETIC: _bands(27.0, 32.0, 37.0, 42.0, overweight_risk=HealthRisk.LOW),
}

BMI_TABLE_SOURCES: Dict[BMITable, str] = {
    BMITable.GENERAL: "WHO (2000) Technical Report Series 894",
    BMITable.ASIAN: "WHO Expert Consultation (2004), Lancet 363:157-163",
    BMITable.AFRICAN: "Rush et al. (2009), Br J Nutr 102:632-641",
    BMITable.HISPANIC: "WHO (2000) Technical Report Series 894",
    BMITable.MIDDLE_EASTERN: "WHO (2000) Technical Report Series 894",
    BMITable.PACIFIC_ISLANDER: "Swinburn et al. (1999), Int J Obes 23:1178-1183",
    BMITable.ATHLETIC: "Ode et al. (2007), Med Sci Sports Exerc 39:403-409",
}


def calculate_bmi(weight_kg: float, height_cm: float) -> float:
    """Body mass index (kg/m^2)."""
    height_m = height_cm / 100.0
    return weight_kg / (height_m * height_m)


def normal_bmi_range(table: BMITable) -> Tuple[float, float]:
    """Lower and upper bound of the Normal band for a table."""
    bands = BMI_TABLES[table]
    return bands[0].upper, bands[1].upper


def _lookup_band(table: BMITable, bmi: float) -> BMIBand:
    for band in BMI_TABLES[table]:
        if bmi < band.upper:
            return band
    return BMI_TABLES[table][-1]


def classify_bmi(bmi: float, table: BMITable = BMITable.GENERAL) -> BMIClassification:
    """
    Classify a BMI under a population table.

    When the population category differs from the general table a note is
    attached citing both categories.

    Args:
        bmi: Body mass index
        table: Cutoff table to apply (general by default)

    Returns:
        BMIClassification with category, health risk and optional note
    """
    rounded = round(bmi, 1)
    band = _lookup_band(table, rounded)
    general = _lookup_band(BMITable.GENERAL, rounded)

    note = None
    if band.category != general.category:
        note = (
            f"Classified as {band.category} using {table.value.replace('_', ' ')} cutoffs "
            f"({BMI_TABLE_SOURCES[table]}); the general WHO table would classify "
            f"BMI {rounded} as {general.category}."
        )

    return BMIClassification(
        bmi=rounded,
        category=band.category,
        health_risk=band.risk,
        table=table,
        general_category=general.category,
        population_note=note,
    )


# ============================================================================
# Heart Rate
# ============================================================================

HEART_RATE_FORMULAS: Dict[HeartRateFormula, FormulaInfo] = {
    HeartRateFormula.AGE_SIMPLE: FormulaInfo("220 - age", "+/-10-12 bpm", "Fox et al. (1971)"),
    HeartRateFormula.TANAKA: FormulaInfo(
        "Tanaka", "+/-7-10 bpm", "Tanaka, Monahan & Seals (2001), J Am Coll Cardiol 37:153-156"
    ),
    HeartRateFormula.KARVONEN: FormulaInfo(
        "Karvonen (heart rate reserve)", "+/-5 bpm", "Karvonen et al. (1957), Ann Med Exp Biol Fenn 35:307-315"
    ),
}

ZONE_BANDS: List[Tuple[int, str, float, float]] = [
    (1, "Recovery", 0.50, 0.60),
    (2, "Aerobic", 0.60, 0.70),
    (3, "Tempo", 0.70, 0.80),
    (4, "Threshold", 0.80, 0.90),
    (5, "VO2 Max", 0.90, 1.00),
]


def max_heart_rate_simple(age: int) -> int:
    return round(220 - age)


def max_heart_rate_tanaka(age: int) -> int:
    return round(208 - 0.7 * age)


def calculate_heart_rate_zones(
    age: int,
    resting_heart_rate: Optional[int] = None,
    formula: Optional[HeartRateFormula] = None,
    gender: Optional[Gender] = None,
) -> HeartRateProfile:
    """
    Calculate the five training zones.

    The reserve method is chosen automatically whenever resting heart rate
    is available; otherwise Tanaka is used. Passing formula forces a method
    (Karvonen still needs a resting heart rate).

    Args:
        age: Age in years
        resting_heart_rate: Resting heart rate in bpm, if measured
        formula: Optional explicit method
        gender: Sex used to classify resting heart rate

    Returns:
        HeartRateProfile with max heart rate and zones
    """
    if formula is None:
        formula = HeartRateFormula.KARVONEN if resting_heart_rate else HeartRateFormula.TANAKA
    if formula == HeartRateFormula.KARVONEN and not resting_heart_rate:
        formula = HeartRateFormula.TANAKA

    if formula == HeartRateFormula.AGE_SIMPLE:
        max_hr = max_heart_rate_simple(age)
    else:
        max_hr = max_heart_rate_tanaka(age)

    zones = []
    for number, name, low, high in ZONE_BANDS:
        if formula == HeartRateFormula.KARVONEN:
            reserve = max_hr - resting_heart_rate
            min_bpm = round(resting_heart_rate + reserve * low)
            max_bpm = round(resting_heart_rate + reserve * high)
        else:
            min_bpm = round(max_hr * low)
            max_bpm = round(max_hr * high)
        zones.append(
            HeartRateZone(
                zone=number,
                name=name,
                min_bpm=min_bpm,
                max_bpm=max_hr if number == 5 else max_bpm,
                intensity_range=f"{int(low * 100)}-{int(high * 100)}%",
            )
        )

    return HeartRateProfile(
        formula=formula,
        max_heart_rate=max_hr,
        resting_heart_rate=resting_heart_rate,
        resting_classification=(
            classify_resting_heart_rate(resting_heart_rate, gender) if resting_heart_rate else None
        ),
        zones=zones,
    )


# Upper bounds for athlete, excellent, good, average; above is below average.
_RESTING_HR_THRESHOLDS = {
    Gender.MALE: (55, 60, 70, 78),
    Gender.FEMALE: (60, 65, 75, 82),
    Gender.OTHER: (58, 63, 73, 80),
}


def classify_resting_heart_rate(resting_heart_rate: int, gender: Optional[Gender]) -> str:
    """Classify resting heart rate into fitness bands."""
    thresholds = _RESTING_HR_THRESHOLDS[gender or Gender.OTHER]
    labels = ("athlete", "excellent", "good", "average")
    for label, upper in zip(labels, thresholds):
        if resting_heart_rate < upper:
            return label
    return "below_average"


# ============================================================================
# VO2 Max
# ============================================================================

# Self-reported activity on the 0-7 scale of the non-exercise models.
VO2MAX_ACTIVITY_INDEX: Dict[ActivityLevel, int] = {
    ActivityLevel.SEDENTARY: 0,
    ActivityLevel.LIGHT: 2,
    ActivityLevel.MODERATE: 4,
    ActivityLevel.ACTIVE: 6,
    ActivityLevel.VERY_ACTIVE: 7,
}

# (max age exclusive, lower bounds for excellent, good, above average, average)
_VO2MAX_THRESHOLDS: Dict[Gender, List[Tuple[int, Tuple[float, float, float, float]]]] = {
    Gender.MALE: [
        (30, (60, 52, 45, 38)),
        (40, (56, 49, 43, 36)),
        (50, (52, 46, 40, 34)),
        (60, (48, 43, 37, 31)),
        (200, (44, 39, 34, 28)),
    ],
    Gender.FEMALE: [
        (30, (56, 47, 40, 33)),
        (40, (52, 45, 38, 31)),
        (50, (48, 42, 36, 29)),
        (60, (44, 38, 33, 27)),
        (200, (40, 35, 30, 25)),
    ],
}
_VO2MAX_CLASSES = (("excellent", 95), ("good", 75), ("above_average", 50), ("average", 30))


def _vo2max_male(age: int, resting_heart_rate: int, activity_index: int) -> float:
    return 56.363 + 1.921 * activity_index - 0.381 * age - 0.754 * (resting_heart_rate / 10) + 10.987


def _vo2max_female(age: int, resting_heart_rate: int, activity_index: int) -> float:
    return 50.513 + 1.589 * activity_index - 0.289 * age - 0.552 * (resting_heart_rate / 10)


def classify_vo2max(vo2max: float, age: int, gender: Gender) -> Tuple[str, int]:
    """ACSM-style age and sex bands. Returns (classification, percentile)."""
    table = _VO2MAX_THRESHOLDS[Gender.FEMALE if gender == Gender.FEMALE else Gender.MALE]
    for max_age, bounds in table:
        if age < max_age:
            break
    for (label, percentile), lower in zip(_VO2MAX_CLASSES, bounds):
        if vo2max >= lower:
            return label, percentile
    return "below_average", 15


def estimate_vo2max(
    age: int,
    gender: Gender,
    resting_heart_rate: int,
    activity_level: ActivityLevel,
) -> VO2MaxEstimate:
    """
    Non-exercise VO2 max estimate (Jurca et al. 2005 style).

    Sex-specific regressions on age, resting heart rate and an activity
    index; "other" averages the two. Accuracy is roughly +/-5-7 ml/kg/min.
    """
    index = VO2MAX_ACTIVITY_INDEX[activity_level]
    male = _vo2max_male(age, resting_heart_rate, index)
    female = _vo2max_female(age, resting_heart_rate, index)
    if gender == Gender.MALE:
        value = male
    elif gender == Gender.FEMALE:
        value = female
    else:
        value = (male + female) / 2
    value = round(value, 1)

    classification, percentile = classify_vo2max(value, age, gender)
    return VO2MaxEstimate(
        vo2max=value,
        classification=classification,
        percentile=percentile,
        activity_index=index,
        description=(
            f"VO2 max estimated at {value:g} ml/kg/min from resting heart rate and activity "
            "(+/-5-7 ml/kg/min)"
        ),
    )


# ============================================================================
# Body Composition
# ============================================================================

_DEURENBERG_SEX_TERM = {
    Gender.MALE: 16.2,
    Gender.FEMALE: 5.4,
    Gender.OTHER: 10.8,
}

ESSENTIAL_BODY_FAT = {
    Gender.MALE: 5.0,
    Gender.FEMALE: 12.0,
    Gender.OTHER: 8.5,
}


def estimate_body_fat_deurenberg(bmi: float, age: int, gender: Gender) -> float:
    """Deurenberg (1991) body fat estimate from BMI, clamped to 3-60%."""
    estimate = 1.2 * bmi + 0.23 * age - _DEURENBERG_SEX_TERM[gender]
    return round(min(60.0, max(3.0, estimate)), 1)


def healthy_body_fat_range(gender: Gender, age: int) -> Tuple[float, float]:
    """Healthy body fat range (Gallagher et al. 2000) by sex and age band."""
    if gender == Gender.FEMALE:
        ranges = ((39, (21.0, 32.0)), (59, (23.0, 33.0)), (200, (24.0, 35.0)))
    elif gender == Gender.MALE:
        ranges = ((39, (8.0, 19.0)), (59, (11.0, 21.0)), (200, (13.0, 24.0)))
    else:
        ranges = ((39, (14.5, 25.5)), (59, (17.0, 27.0)), (200, (18.5, 29.5)))
    for upper_age, bounds in ranges:
        if age <= upper_age:
            return bounds
    return ranges[-1][1]


def waist_hip_ratio(waist_cm: float, hip_cm: float) -> float:
    return round(waist_cm / hip_cm, 2)


def waist_hip_risk(ratio: float, gender: Gender) -> HealthRisk:
    """WHO (2008) waist-hip ratio risk cutoffs."""
    threshold = {Gender.MALE: 0.90, Gender.FEMALE: 0.85, Gender.OTHER: 0.875}[gender]
    if ratio < threshold - 0.05:
        return HealthRisk.LOW
    if ratio < threshold:
        return HealthRisk.MODERATE
    if ratio < threshold + 0.10:
        return HealthRisk.HIGH
    return HealthRisk.VERY_HIGH
