"""
Calculation context detection.

Infers, from a profile and an explicit location/season:
- Population group (for BMI cutoff selection), with confidence
- Climate zone with its TDEE and water modifiers, state overriding country
- Formula accuracy tier from body fat measurement provenance

Low confidence is returned as data (confidence + should_ask_user), never
raised. Any future live lookup (e.g. a climate service) belongs behind this
module's boundary, not inside the calculators.
"""

import logging
from typing import Dict, FrozenSet, List, NamedTuple, Optional, Tuple

from src.schemas import (
    BMRFormula,
    BodyFatSource,
    ClimateDetection,
    ClimateZone,
    DetectionContext,
    EthnicityDetection,
    FormulaAccuracy,
    Location,
    PopulationGroup,
    Season,
    UserBiometricProfile,
)

logger = logging.getLogger(__name__)

DEFAULT_ASK_THRESHOLD = 60

ATHLETE_MIN_EXPERIENCE_YEARS = 3.0
ATHLETE_MAX_BODY_FAT_PCT = 15.0
PHOTO_MIN_CONFIDENCE = 70


# ============================================================================
# Population Group Tables
# ============================================================================

class _GroupRule(NamedTuple):
    countries: FrozenSet[str]
    group: PopulationGroup
    confidence: int


# Order matters: high-diversity countries are checked first.
_HIGH_DIVERSITY = frozenset({"US", "CA", "BR", "ZA"})

_ETHNICITY_RULES: List[_GroupRule] = [
    _GroupRule(frozenset({"IN", "PK", "BD", "LK", "NP", "BT", "MV"}), PopulationGroup.ASIAN, 90),
    _GroupRule(frozenset({"CN", "JP", "KR", "TW", "MN", "HK"}), PopulationGroup.ASIAN, 90),
    _GroupRule(
        frozenset({"TH", "VN", "ID", "MY", "SG", "PH", "MM", "KH", "LA", "BN"}),
        PopulationGroup.ASIAN,
        85,
    ),
    _GroupRule(
        frozenset({
            "GB", "DE", "FR", "IT", "ES", "NL", "BE", "AT", "CH", "SE", "NO", "DK",
            "FI", "PL", "CZ", "SK", "HU", "RO", "BG", "HR", "SI", "RS", "RU", "UA",
            "BY", "GR", "PT", "IE", "AL", "MK", "BA", "ME", "AU", "NZ", "IS", "EE",
            "LV", "LT",
        }),
        PopulationGroup.CAUCASIAN,
        80,
    ),
    _GroupRule(
        frozenset({
            "NG", "KE", "TZ", "UG", "GH", "CI", "CM", "ZM", "ZW", "MW", "SN", "ML",
            "BF", "NE", "TD", "CF", "SD", "SS", "ER", "ET", "SO", "CD", "CG", "GA",
            "AO", "MZ", "BW", "NA", "LS", "SZ", "RW",
        }),
        PopulationGroup.BLACK_AFRICAN,
        75,
    ),
    _GroupRule(
        frozenset({
            "MX", "CO", "AR", "PE", "VE", "CL", "EC", "GT", "CU", "BO", "DO", "HN",
            "PY", "SV", "NI", "CR", "PA", "UY", "PR",
        }),
        PopulationGroup.HISPANIC,
        80,
    ),
    _GroupRule(
        frozenset({
            "SA", "AE", "QA", "KW", "OM", "BH", "YE", "IR", "IQ", "SY", "JO", "LB",
            "IL", "PS", "TR", "EG", "LY", "TN", "DZ", "MA",
        }),
        PopulationGroup.MIDDLE_EASTERN,
        75,
    ),
    _GroupRule(
        frozenset({"FJ", "TO", "WS", "PG", "SB", "VU", "NC", "PF"}),
        PopulationGroup.PACIFIC_ISLANDER,
        85,
    ),
]


# ============================================================================
# Climate Tables
# ============================================================================

class ClimateCharacteristics(NamedTuple):
    tdee_modifier: float
    water_modifier: float
    description: str


CLIMATE_CHARACTERISTICS: Dict[ClimateZone, ClimateCharacteristics] = {
    ClimateZone.TROPICAL: ClimateCharacteristics(1.05, 1.50, "hot and humid (~28C, ~75% humidity)"),
    ClimateZone.TEMPERATE: ClimateCharacteristics(1.00, 1.00, "moderate temperatures"),
    ClimateZone.COLD: ClimateCharacteristics(1.15, 0.90, "cold (thermogenesis raises energy needs)"),
    ClimateZone.ARID: ClimateCharacteristics(1.05, 1.70, "hot and dry (high sweat losses)"),
}

SEASON_WATER_ADJUSTMENT: Dict[Season, float] = {
    Season.SPRING: 1.0,
    Season.SUMMER: 1.10,
    Season.AUTUMN: 1.0,
    Season.WINTER: 0.95,
}

_COUNTRY_CLIMATE: Dict[ClimateZone, FrozenSet[str]] = {
    ClimateZone.TROPICAL: frozenset({
        "IN", "TH", "MY", "SG", "ID", "PH", "VN", "LK", "BD", "MM", "LA", "KH",
        "NG", "KE", "TZ", "UG", "GH", "CI", "CM", "BR", "CO", "VE", "EC", "PE",
    }),
    ClimateZone.COLD: frozenset({
        "NO", "SE", "FI", "IS", "GL", "CA", "RU", "BY", "UA", "KZ", "MN", "EE",
        "LV", "LT",
    }),
    ClimateZone.ARID: frozenset({
        "AE", "SA", "QA", "OM", "KW", "BH", "EG", "LY", "DZ", "MA", "TN", "JO",
        "SY", "IQ", "YE",
    }),
}

_STATE_CLIMATE: Dict[str, Dict[str, ClimateZone]] = {
    "IN": {
        **{s: ClimateZone.TROPICAL for s in (
            "KL", "TN", "AP", "TS", "GA", "KA", "MH", "OR", "WB", "JH", "BR", "AS")},
        **{s: ClimateZone.ARID for s in ("RJ", "GJ")},
        **{s: ClimateZone.TEMPERATE for s in ("UP", "MP", "HR", "PB", "DL")},
        **{s: ClimateZone.COLD for s in ("HP", "UK", "JK", "SK")},
    },
    "US": {
        **{s: ClimateZone.TROPICAL for s in ("FL", "HI")},
        **{s: ClimateZone.ARID for s in ("AZ", "NV", "NM", "UT")},
        **{s: ClimateZone.COLD for s in (
            "AK", "MN", "WI", "ND", "SD", "MT", "WY", "ME", "VT", "NH")},
    },
}

_STATE_CONFIDENCE = 90
_COUNTRY_CONFIDENCE = 85
_DEFAULT_CLIMATE_CONFIDENCE = 50
# US states missing from the table are temperate at state-level confidence.
_STATE_DEFAULTS = {"US": ClimateZone.TEMPERATE}


# ============================================================================
# Formula Accuracy
# ============================================================================

_SCAN_SOURCES = (BodyFatSource.DEXA, BodyFatSource.BODPOD)


class ContextDetector:
    """
    Detects calculation context for a profile.

    The detector holds only configuration; detect() is pure and must be
    called again whenever location, diet or measurement fields change.
    """

    def __init__(self, ask_threshold: int = DEFAULT_ASK_THRESHOLD):
        """
        Initialize detector.

        Args:
            ask_threshold: Confidence below which the user should be asked
        """
        self.ask_threshold = ask_threshold

    def detect(
        self,
        profile: UserBiometricProfile,
        season: Optional[Season] = None,
        location: Optional[Location] = None,
    ) -> DetectionContext:
        """
        Detect population group, climate and formula accuracy.

        Args:
            profile: User profile
            season: Current season, if the caller knows it
            location: Explicit location; defaults to the profile's country/region

        Returns:
            DetectionContext, always usable
        """
        if location is None:
            location = Location(country=profile.country, region=profile.region)

        context = DetectionContext(
            ethnicity=self.detect_ethnicity(profile, location),
            climate=self.detect_climate(profile, location),
            formula_accuracy=self.detect_formula_accuracy(profile),
            location=location,
            season=season,
        )
        logger.debug(
            "Detected context: group=%s (%d), climate=%s (%d), bmr=%s",
            context.ethnicity.group.value,
            context.ethnicity.confidence,
            context.climate.zone.value,
            context.climate.confidence,
            context.formula_accuracy.bmr_formula.value,
        )
        return context

    def detect_ethnicity(
        self, profile: UserBiometricProfile, location: Location
    ) -> EthnicityDetection:
        """Population group from declaration, then country."""
        if profile.ethnicity is not None:
            return EthnicityDetection(group=profile.ethnicity, confidence=100, source="user")

        country = location.country
        if country in _HIGH_DIVERSITY:
            return self._ethnicity_result(
                PopulationGroup.MIXED,
                50,
                "country",
                f"Your location ({country}) has diverse populations. Please select your "
                "ethnicity for more accurate BMI classification.",
            )

        for rule in _ETHNICITY_RULES:
            if country in rule.countries:
                return self._ethnicity_result(rule.group, rule.confidence, "country")

        return self._ethnicity_result(
            PopulationGroup.GENERAL,
            40,
            "default",
            "We could not infer a population group from your location. Selecting your "
            "ethnicity enables population-specific BMI cutoffs.",
        )

    def _ethnicity_result(
        self,
        group: PopulationGroup,
        confidence: int,
        source: str,
        message: Optional[str] = None,
    ) -> EthnicityDetection:
        should_ask = confidence < self.ask_threshold
        if should_ask and message is None:
            message = f"Detected {group.value.replace('_', ' ')} with low confidence; please confirm."
        return EthnicityDetection(
            group=group,
            confidence=confidence,
            source=source,
            should_ask_user=should_ask,
            message=message if should_ask else None,
        )

    def detect_climate(
        self, profile: UserBiometricProfile, location: Location
    ) -> ClimateDetection:
        """Climate zone; a state-level entry overrides the country entry."""
        if profile.climate_zone is not None:
            return self._climate_result(profile.climate_zone, 100, "user")

        zone, confidence, source = self._lookup_climate(location)
        return self._climate_result(zone, confidence, source)

    def _lookup_climate(self, location: Location) -> Tuple[ClimateZone, int, str]:
        country, region = location.country, location.region

        states = _STATE_CLIMATE.get(country or "")
        if states is not None and region:
            zone = states.get(region, _STATE_DEFAULTS.get(country))
            if zone is not None:
                return zone, _STATE_CONFIDENCE, "state"

        for zone, countries in _COUNTRY_CLIMATE.items():
            if country in countries:
                return zone, _COUNTRY_CONFIDENCE, "country"

        return ClimateZone.TEMPERATE, _DEFAULT_CLIMATE_CONFIDENCE, "default"

    def _climate_result(self, zone: ClimateZone, confidence: int, source: str) -> ClimateDetection:
        characteristics = CLIMATE_CHARACTERISTICS[zone]
        should_ask = confidence < self.ask_threshold
        return ClimateDetection(
            zone=zone,
            confidence=confidence,
            source=source,
            tdee_modifier=characteristics.tdee_modifier,
            water_modifier=characteristics.water_modifier,
            should_ask_user=should_ask,
            message=(
                "Climate could not be determined from your location; assuming temperate. "
                "Please confirm your climate for accurate water targets."
                if should_ask
                else None
            ),
        )

    def detect_formula_accuracy(self, profile: UserBiometricProfile) -> FormulaAccuracy:
        """
        Choose the BMR formula from measurement provenance.

        Priority: scan > athlete > caliper > high-confidence photo > none.
        """
        bf = profile.body_fat_pct
        source = profile.body_fat_source if bf is not None else BodyFatSource.NONE

        if source in _SCAN_SOURCES:
            return FormulaAccuracy(
                bmr_formula=BMRFormula.KATCH_MCARDLE,
                accuracy_pct=5,
                confidence=95,
                rationale=f"Gold-standard {source.value.upper()} body fat enables lean-mass BMR",
            )

        is_athlete = (
            bf is not None
            and profile.training_experience_years >= ATHLETE_MIN_EXPERIENCE_YEARS
            and bf < ATHLETE_MAX_BODY_FAT_PCT
        )
        if is_athlete:
            return FormulaAccuracy(
                bmr_formula=BMRFormula.CUNNINGHAM,
                accuracy_pct=5,
                confidence=90,
                rationale=(
                    f"Trained athlete ({profile.training_experience_years:g} years, "
                    f"{bf:g}% body fat) - Cunningham accounts for higher lean-mass turnover"
                ),
                is_athlete=True,
            )

        if source == BodyFatSource.CALIPER:
            return FormulaAccuracy(
                bmr_formula=BMRFormula.KATCH_MCARDLE,
                accuracy_pct=7,
                confidence=80,
                rationale="Caliper body fat measurement enables lean-mass BMR",
            )

        if self._photo_is_reliable(profile, source):
            return FormulaAccuracy(
                bmr_formula=BMRFormula.KATCH_MCARDLE,
                accuracy_pct=10,
                confidence=70,
                rationale="High-confidence photo body fat estimate enables lean-mass BMR",
            )

        return FormulaAccuracy(
            bmr_formula=BMRFormula.MIFFLIN_ST_JEOR,
            accuracy_pct=10,
            confidence=85,
            rationale="No reliable body fat measurement - general-population Mifflin-St Jeor",
        )

    @staticmethod
    def _photo_is_reliable(profile: UserBiometricProfile, source: BodyFatSource) -> bool:
        return (
            source == BodyFatSource.AI_PHOTO
            and profile.body_fat_confidence is not None
            and profile.body_fat_confidence >= PHOTO_MIN_CONFIDENCE
        )
