from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ───────────────────────── calculation basis ─────────────────────────
class Adjustment(_Frozen):
    nutrient: str
    original: float
    adjusted: float
    reason: str
    source_url: str | None = None


class HealthAdjustment(_Frozen):
    condition: str
    adjustments: list[Adjustment]


class BMRBasis(_Frozen):
    model: Literal["mifflin-st-jeor"] = "mifflin-st-jeor"
    formula: str
    substituted: str
    sex_constant: float
    result_kcal: float


class PALBasis(_Frozen):
    work_style: str
    base_from_work_style: float
    exercise_intensity: str
    exercise_bonus: float
    exercise_frequency: int
    exercise_duration_min: int
    exercise_addition: float
    raw: float
    capped: bool
    floored: bool
    result: float


class GoalAdjustment(_Frozen):
    goal: str
    weight_change_rate_kg_per_week: float
    delta_kcal: float
    reason: str


class EnergyBasis(_Frozen):
    bmr: BMRBasis
    pal: PALBasis
    tdee_kcal: float
    goal_adjustment: GoalAdjustment
    pregnancy_delta_kcal: float = 0.0
    energy_floor_applied: bool = False
    final_kcal: float


class MacroRatios(_Frozen):
    protein: float
    fat: float
    carbs: float


class MacroGrams(_Frozen):
    protein: float
    fat: float
    carbs: float


class MacrosBasis(_Frozen):
    method: Literal["ratio", "mixed"]
    ratios: MacroRatios
    grams: MacroGrams
    overrides: list[Adjustment] = Field(default_factory=list)


class NutrientReference(_Frozen):
    basis_type: str
    reference_value: float
    unit: str
    age_band: str
    gender: str
    pregnancy_or_lactation: str | None = None
    source_url: str
    source_title: str
    adjustments: list[Adjustment] = Field(default_factory=list)
    final_value: float


class UpperLimit(_Frozen):
    value: float
    unit: str


class Guardrail(_Frozen):
    """Safety check on the final numbers; advisory unless ``applied``."""

    type: Literal["calorie_minimum", "growth_protection", "fat_floor"]
    severity: Literal["info", "warning", "critical"]
    applied: bool = False
    original: float | None = None
    threshold: float | None = None
    reason: str


class CalculationBasis(_Frozen):
    version: str
    inputs: dict[str, Any]
    missing_fields: list[str]
    defaults_applied: dict[str, Any]
    energy: EnergyBasis
    macros: MacrosBasis
    references: dict[str, NutrientReference]
    upper_limits: dict[str, UpperLimit] = Field(default_factory=dict)
    health_adjustments: list[HealthAdjustment] = Field(default_factory=list)
    guardrails: list[Guardrail] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


# ───────────────────────── targets ──────────────────────────────────
class NutritionTarget(_Frozen):
    """One row of ``nutrition_targets`` (minus bookkeeping columns)."""

    user_id: int | None = None
    calories: float
    protein_g: float
    fat_g: float
    carbs_g: float
    fiber_g: float
    fiber_soluble_g: float
    fiber_insoluble_g: float
    sodium_mg: float
    salt_equivalent_g: float
    sugar_g: float
    cholesterol_mg: float
    saturated_fat_g: float
    monounsaturated_fat_g: float
    polyunsaturated_fat_g: float
    micronutrients: dict[str, float]

    @property
    def protein_kcal(self) -> float:
        return self.protein_g * 4

    @property
    def fat_kcal(self) -> float:
        return self.fat_g * 9

    @property
    def carbs_kcal(self) -> float:
        return self.carbs_g * 4

    @property
    def macro_kcal(self) -> float:
        return self.protein_kcal + self.fat_kcal + self.carbs_kcal


class NutritionTargetSummary(_Frozen):
    calories: float
    protein: float
    fat: float
    carbs: float
    fiber: float
    sodium: float
    bmr: float
    pal: float
    tdee: float
    goal: str


class NutritionCalculationResult(_Frozen):
    target_data: NutritionTarget
    summary: NutritionTargetSummary
    calculation_basis: CalculationBasis
