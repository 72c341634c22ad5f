from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List

from pydantic import Field

from core.models.profile import (
    ExerciseIntensity,
    Gender,
    NutritionGoal,
    PregnancyStatus,
    WorkStyle,
)
from .base import CamelModel


class ProfileIn(CamelModel):
    """Range-checked profile for the preview endpoint."""

    age: int = Field(..., ge=1, le=120)
    gender: Gender
    height: float = Field(..., gt=50, le=250, description="cm")
    weight: float = Field(..., gt=10, le=300, description="kg")
    work_style: WorkStyle | None = None
    exercise_intensity: ExerciseIntensity | None = None
    exercise_frequency: int | None = Field(None, ge=0, le=21)
    exercise_duration_per_session: int | None = Field(None, ge=0, le=300)
    nutrition_goal: NutritionGoal | None = None
    weight_change_rate: float | None = Field(None, ge=-2.0, le=2.0)
    health_conditions: List[str] | None = None
    medications: List[str] | None = None
    pregnancy_status: PregnancyStatus | None = None


class NutritionTargetOut(CamelModel):
    user_id: int
    version: int
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
    micronutrients: Dict[str, float]
    calculation_basis: Dict[str, Any]
    last_calculated_at: datetime


class SummaryOut(CamelModel):
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


class CalculationResponse(CamelModel):
    user_id: int | None = None
    version: int | None = None
    summary: SummaryOut
    target_data: Dict[str, Any]
    calculation_basis: Dict[str, Any]
