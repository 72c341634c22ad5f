"""
core/reference_tables.py
────────────────────────────────────────────────────────────────────────
Every constant the calculator reads, kept as read-only mappings so a table
revision is a diff to this file only.

  • activity   – PAL by work style, per-session exercise bonus
  • energy     – Mifflin–St Jeor sex constants, kcal per kg body mass
  • macros     – P/F/C ratios by goal, kcal per gram
  • DRI 2020   – 18 vitamins/minerals by age band × gender
                 (厚生労働省「日本人の食事摂取基準（2020年版）」)
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, NamedTuple

from core.models.profile import ExerciseIntensity, Gender, NutritionGoal, WorkStyle

TABLE_VERSION = "dri2020_v1"

# ───────────────────────────── activity ──────────────────────────────
WORK_STYLE_PAL: Mapping[WorkStyle, float] = MappingProxyType({
    WorkStyle.sedentary: 1.2,
    WorkStyle.light_active: 1.375,
    WorkStyle.moderately_active: 1.55,
    WorkStyle.very_active: 1.725,
    WorkStyle.student: 1.375,
    WorkStyle.homemaker: 1.375,
})

# PAL added by three 60-minute sessions per week
EXERCISE_BONUS: Mapping[ExerciseIntensity, float] = MappingProxyType({
    ExerciseIntensity.none: 0.0,
    ExerciseIntensity.light: 0.05,
    ExerciseIntensity.moderate: 0.10,
    ExerciseIntensity.intense: 0.15,
    ExerciseIntensity.athlete: 0.25,
})
REFERENCE_SESSIONS_PER_WEEK = 3
REFERENCE_SESSION_MINUTES = 60

PAL_MIN = 1.2
PAL_MAX = 2.4

# ───────────────────────────── energy ────────────────────────────────
BMR_SEX_CONSTANT: Mapping[Gender, float] = MappingProxyType({
    Gender.male: 5.0,
    Gender.female: -161.0,
    Gender.other: -78.0,  # unweighted mean of +5 and −161
})

KCAL_PER_KG_BODY_MASS = 7700.0

PREGNANCY_ENERGY_KCAL: Mapping[str, float] = MappingProxyType({
    "pregnant": 300.0,
    "lactating": 500.0,
})

# informational floor; below it a warning is attached, nothing is clamped
LOW_ENERGY_WARNING_KCAL: Mapping[Gender, float] = MappingProxyType({
    Gender.male: 1500.0,
    Gender.female: 1200.0,
    Gender.other: 1200.0,
})

# fixed surplus for the performance goal, independent of weight_change_rate
PERFORMANCE_SURPLUS_KCAL = 300.0

# under-18 profiles: warn below these intakes and when a loss goal is set
GROWTH_AGE_LIMIT = 18
GROWTH_MIN_KCAL: Mapping[Gender, float] = MappingProxyType({
    Gender.male: 2000.0,
    Gender.female: 1800.0,
    Gender.other: 1800.0,
})

# ───────────────────────────── macros ────────────────────────────────
class MacroRatio(NamedTuple):
    protein: float
    fat: float
    carbs: float


MACRO_RATIOS: Mapping[NutritionGoal, MacroRatio] = MappingProxyType({
    NutritionGoal.maintain: MacroRatio(0.20, 0.25, 0.55),
    NutritionGoal.lose: MacroRatio(0.30, 0.25, 0.45),
    NutritionGoal.gain: MacroRatio(0.30, 0.20, 0.50),
    NutritionGoal.performance: MacroRatio(0.25, 0.25, 0.50),
})

KCAL_PER_G_PROTEIN = 4.0
KCAL_PER_G_FAT = 9.0
KCAL_PER_G_CARBS = 4.0

PROTEIN_FLOOR_G_PER_KG = 1.2
FAT_FLOOR_SHARE = 0.15

SATURATED_FAT_SHARE = 0.07
MONOUNSATURATED_FAT_SHARE = 0.10
POLYUNSATURATED_FAT_SHARE = 0.08

# ───────────────────────────── DRI 2020 ──────────────────────────────
class Source(NamedTuple):
    url: str
    title: str


SOURCES: Mapping[str, Source] = MappingProxyType({
    "main": Source(
        "https://www.mhlw.go.jp/stf/newpage_08517.html",
        "Dietary Reference Intakes for Japanese (2020)",
    ),
    "energy_pfc": Source(
        "https://www.mhlw.go.jp/content/10904750/000586560.pdf",
        "DRI 2020 – energy-providing nutrient balance",
    ),
    "vitamin_fat_soluble": Source(
        "https://www.mhlw.go.jp/content/10904750/000586561.pdf",
        "DRI 2020 – fat-soluble vitamins",
    ),
    "vitamin_water_soluble": Source(
        "https://www.mhlw.go.jp/content/10904750/000586563.pdf",
        "DRI 2020 – water-soluble vitamins",
    ),
    "mineral_macro": Source(
        "https://www.mhlw.go.jp/content/10904750/000586565.pdf",
        "DRI 2020 – macro minerals",
    ),
    "mineral_trace": Source(
        "https://www.mhlw.go.jp/content/10904750/000586568.pdf",
        "DRI 2020 – trace minerals",
    ),
    "hypertension": Source(
        "https://www.mhlw.go.jp/content/10904750/000586583.pdf",
        "DRI 2020 – hypertension",
    ),
    "dyslipidemia": Source(
        "https://www.mhlw.go.jp/content/10904750/000586590.pdf",
        "DRI 2020 – dyslipidemia",
    ),
    "diabetes": Source(
        "https://www.mhlw.go.jp/content/10904750/000586592.pdf",
        "DRI 2020 – diabetes",
    ),
    "ckd": Source(
        "https://www.mhlw.go.jp/content/10904750/000586595.pdf",
        "DRI 2020 – chronic kidney disease",
    ),
    "who_sugars": Source(
        "https://www.who.int/nutrition/publications/guidelines/sugars_intake/en/",
        "WHO guideline: sugars intake (5 % of energy target)",
    ),
})

AGE_BANDS = (
    "6-11m", "1-2", "3-5", "6-7", "8-9", "10-11", "12-14", "15-17",
    "18-29", "30-49", "50-64", "65-74", "75+",
)
FALLBACK_AGE_BAND = "30-49"
ADULT_BANDS = ("18-29", "30-49", "50-64", "65-74", "75+")

# inclusive upper age of each band, in order
_BAND_LIMITS = (
    (0, "6-11m"), (2, "1-2"), (5, "3-5"), (7, "6-7"), (9, "8-9"),
    (11, "10-11"), (14, "12-14"), (17, "15-17"), (29, "18-29"),
    (49, "30-49"), (64, "50-64"), (74, "65-74"),
)


def age_band(age: int) -> str:
    """Map an age in whole years to its DRI band (under 1 → "6-11m")."""
    for upper, band in _BAND_LIMITS:
        if age <= upper:
            return band
    return "75+"


@dataclass(frozen=True)
class NutrientDRI:
    unit: str
    basis_type: str                       # RDA | AI | DG
    source: Source
    values: Mapping[str, tuple[float, float]]   # band → (male, female)
    pregnancy_addition: float = 0.0
    lactation_addition: float = 0.0
    upper_limit: Mapping[str, tuple[float, float]] = field(
        default_factory=lambda: MappingProxyType({})
    )


class DRIValue(NamedTuple):
    value: float
    band: str
    basis_type: str
    unit: str
    source: Source


def _by_band(*rows: tuple[float, float]) -> Mapping[str, tuple[float, float]]:
    """Rows for bands 1-2 … 75+ in order."""
    return MappingProxyType(dict(zip(AGE_BANDS[1:], rows)))


def _adult(*rows: tuple[float, float]) -> Mapping[str, tuple[float, float]]:
    """Rows for bands 18-29 … 75+ in order."""
    return MappingProxyType(dict(zip(ADULT_BANDS, rows)))


def _flat_adult(value: float) -> Mapping[str, tuple[float, float]]:
    return _adult(*[(value, value)] * len(ADULT_BANDS))


_S = SOURCES

DRI_TABLES: Mapping[str, NutrientDRI] = MappingProxyType({
    "vitamin_a_ug": NutrientDRI(
        "µgRAE", "RDA", _S["vitamin_fat_soluble"],
        _by_band((400, 350), (450, 450), (400, 400), (500, 500), (600, 600), (800, 700),
                 (900, 650), (850, 650), (900, 700), (900, 700), (850, 700), (800, 650)),
        pregnancy_addition=80, lactation_addition=450,
        upper_limit=_flat_adult(2700),
    ),
    "vitamin_d_ug": NutrientDRI(
        "µg", "AI", _S["vitamin_fat_soluble"],
        _by_band((3.0, 3.5), (3.5, 4.0), (4.5, 5.0), (5.0, 6.0), (6.5, 8.0), (8.0, 9.5),
                 (9.0, 8.5), (8.5, 8.5), (8.5, 8.5), (8.5, 8.5), (8.5, 8.5), (8.5, 8.5)),
        upper_limit=_flat_adult(100),
    ),
    "vitamin_e_mg": NutrientDRI(
        "mg", "AI", _S["vitamin_fat_soluble"],
        _by_band((3.0, 3.0), (4.0, 4.0), (5.0, 5.0), (5.0, 5.0), (5.5, 5.5), (7.0, 6.0),
                 (7.0, 5.5), (6.0, 5.0), (6.0, 5.5), (7.0, 6.0), (7.0, 6.5), (6.5, 6.5)),
        lactation_addition=3.0,
        upper_limit=_adult((850, 650), (900, 700), (850, 700), (850, 650), (750, 650)),
    ),
    "vitamin_k_ug": NutrientDRI(
        "µg", "AI", _S["vitamin_fat_soluble"],
        _by_band((50, 60), (60, 70), (80, 90), (90, 110), (110, 140), (140, 170),
                 (160, 150), (150, 150), (150, 150), (150, 150), (150, 150), (150, 150)),
    ),
    "vitamin_b1_mg": NutrientDRI(
        "mg", "RDA", _S["vitamin_water_soluble"],
        _by_band((0.5, 0.5), (0.7, 0.7), (0.8, 0.8), (1.0, 0.9), (1.2, 1.1), (1.4, 1.3),
                 (1.5, 1.2), (1.4, 1.1), (1.4, 1.1), (1.3, 1.1), (1.3, 1.1), (1.2, 0.9)),
        pregnancy_addition=0.2, lactation_addition=0.2,
    ),
    "vitamin_b2_mg": NutrientDRI(
        "mg", "RDA", _S["vitamin_water_soluble"],
        _by_band((0.6, 0.5), (0.8, 0.8), (0.9, 0.9), (1.1, 1.0), (1.4, 1.3), (1.6, 1.4),
                 (1.7, 1.4), (1.6, 1.2), (1.6, 1.2), (1.5, 1.2), (1.5, 1.2), (1.3, 1.0)),
        pregnancy_addition=0.3, lactation_addition=0.6,
    ),
    "vitamin_b6_mg": NutrientDRI(
        "mg", "RDA", _S["vitamin_water_soluble"],
        _by_band((0.5, 0.5), (0.6, 0.6), (0.8, 0.7), (0.9, 0.9), (1.1, 1.1), (1.4, 1.3),
                 (1.5, 1.3), (1.4, 1.1), (1.4, 1.1), (1.4, 1.1), (1.4, 1.1), (1.4, 1.1)),
        pregnancy_addition=0.2, lactation_addition=0.3,
        upper_limit=_adult((55, 45), (60, 45), (55, 45), (50, 40), (50, 40)),
    ),
    "vitamin_b12_ug": NutrientDRI(
        "µg", "RDA", _S["vitamin_water_soluble"],
        _by_band((0.9, 0.9), (1.0, 1.0), (1.3, 1.3), (1.5, 1.5), (1.9, 1.9), (2.4, 2.4),
                 (2.4, 2.4), (2.4, 2.4), (2.4, 2.4), (2.4, 2.4), (2.4, 2.4), (2.4, 2.4)),
        pregnancy_addition=0.4, lactation_addition=0.8,
    ),
    "vitamin_c_mg": NutrientDRI(
        "mg", "RDA", _S["vitamin_water_soluble"],
        _by_band((40, 40), (50, 50), (60, 60), (70, 70), (85, 85), (100, 100),
                 (100, 100), (100, 100), (100, 100), (100, 100), (100, 100), (100, 100)),
        pregnancy_addition=10, lactation_addition=45,
    ),
    "folic_acid_ug": NutrientDRI(
        "µg", "RDA", _S["vitamin_water_soluble"],
        _by_band((90, 90), (110, 110), (140, 140), (160, 160), (190, 190), (240, 240),
                 (240, 240), (240, 240), (240, 240), (240, 240), (240, 240), (240, 240)),
        pregnancy_addition=240, lactation_addition=100,
        upper_limit=_flat_adult(1000),
    ),
    "potassium_mg": NutrientDRI(
        "mg", "DG", _S["mineral_macro"],
        _by_band((900, 800), (1100, 1000), (1300, 1200), (1600, 1500), (1900, 1800),
                 (2400, 2200), (2800, 2100), (2500, 2000), (2500, 2000), (2500, 2000),
                 (2500, 2000), (2500, 2000)),
        lactation_addition=400,
    ),
    "calcium_mg": NutrientDRI(
        "mg", "RDA", _S["mineral_macro"],
        _by_band((450, 400), (600, 550), (600, 550), (650, 750), (700, 750), (1000, 800),
                 (800, 650), (800, 650), (750, 650), (750, 650), (750, 650), (700, 600)),
        upper_limit=_flat_adult(2500),
    ),
    "phosphorus_mg": NutrientDRI(
        "mg", "AI", _S["mineral_macro"],
        _by_band((500, 500), (700, 600), (800, 700), (1000, 900), (1100, 1000),
                 (1200, 1000), (1200, 900), (1000, 800), (1000, 800), (1000, 800),
                 (1000, 800), (1000, 800)),
        upper_limit=_flat_adult(3000),
    ),
    "iron_mg": NutrientDRI(
        "mg", "RDA", _S["mineral_trace"],
        # female values are the non-menstruating column
        _by_band((4.5, 4.5), (5.5, 5.0), (6.5, 6.5), (8.0, 8.5), (10.0, 10.0),
                 (11.5, 10.0), (9.5, 7.0), (7.5, 6.5), (7.5, 6.5), (7.5, 6.5),
                 (7.5, 6.0), (7.0, 6.0)),
        pregnancy_addition=15.0, lactation_addition=2.5,
        upper_limit=_adult((50, 40), (55, 40), (50, 40), (50, 40), (50, 40)),
    ),
    "zinc_mg": NutrientDRI(
        "mg", "RDA", _S["mineral_trace"],
        _by_band((3, 3), (4, 4), (5, 5), (6, 6), (7, 7), (10, 8),
                 (12, 8), (11, 8), (11, 8), (11, 8), (11, 8), (10, 8)),
        pregnancy_addition=2, lactation_addition=4,
        upper_limit=_adult((40, 35), (45, 35), (45, 35), (40, 35), (40, 30)),
    ),
    "iodine_ug": NutrientDRI(
        "µg", "RDA", _S["mineral_trace"],
        _by_band((50, 50), (60, 60), (75, 75), (90, 90), (110, 110), (130, 130),
                 (140, 140), (130, 130), (130, 130), (130, 130), (130, 130), (130, 130)),
        pregnancy_addition=110, lactation_addition=140,
        upper_limit=_flat_adult(3000),
    ),
    # tentative goal, read as a ceiling
    "salt_equivalent_g": NutrientDRI(
        "g", "DG", _S["mineral_macro"],
        _by_band((3.0, 3.5), (4.0, 4.5), (5.0, 5.5), (5.5, 6.0), (6.5, 7.0), (8.0, 7.0),
                 (7.5, 6.5), (7.5, 6.5), (7.5, 6.5), (7.5, 6.5), (7.5, 6.5), (7.5, 6.5)),
    ),
    "fiber_g": NutrientDRI(
        "g", "DG", _S["energy_pfc"],
        _by_band((8, 8), (10, 10), (11, 11), (13, 13), (16, 16), (19, 18),
                 (21, 18), (21, 18), (21, 18), (21, 18), (20, 17), (20, 17)),
    ),
})

# not covered by DRI 2020
CHOLESTEROL_DEFAULT_MG = 300.0
SUGAR_ENERGY_SHARE = 0.05

SODIUM_MG_PER_SALT_G = 1000 / 2.54


def salt_to_sodium_mg(salt_g: float) -> float:
    return salt_g * SODIUM_MG_PER_SALT_G


def dri_gender(gender: Gender) -> Gender:
    # DRI tables are binary; "other" reads the male column
    return Gender.female if gender is Gender.female else Gender.male


def dri_value(
    nutrient: str,
    band: str,
    gender: Gender,
    pregnancy_status: str = "none",
) -> DRIValue:
    """
    Baseline for ``nutrient`` plus any pregnancy / lactation addition.

    Bands with no row (infants) fall back to the 30-49 adult row.
    """
    entry = DRI_TABLES[nutrient]
    used_band = band if band in entry.values else FALLBACK_AGE_BAND
    male, female = entry.values[used_band]
    value = female if dri_gender(gender) is Gender.female else male

    if pregnancy_status == "pregnant":
        value += entry.pregnancy_addition
    elif pregnancy_status == "lactating":
        value += entry.lactation_addition

    return DRIValue(round(value, 2), used_band, entry.basis_type, entry.unit, entry.source)


def upper_limit(nutrient: str, band: str, gender: Gender) -> float | None:
    entry = DRI_TABLES[nutrient]
    row = entry.upper_limit.get(band)
    if row is None:
        return None
    male, female = row
    return female if dri_gender(gender) is Gender.female else male
