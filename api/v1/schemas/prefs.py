from __future__ import annotations
from typing import List

from pydantic import Field

from core.models.profile import NutritionGoal, PregnancyStatus
from .base import CamelModel


class UserPrefsIn(CamelModel):
    nutrition_goal: NutritionGoal = Field(NutritionGoal.maintain, examples=["lose", "gain", "maintain"])
    weight_change_rate: float = Field(0.0, ge=-2.0, le=2.0, description="kg / week")
    health_conditions: List[str] = []
    medications: List[str] = []
    pregnancy_status: PregnancyStatus = PregnancyStatus.none


class UserPrefsOut(UserPrefsIn):
    user_id: int
