from __future__ import annotations

from pydantic import Field

from core.models.profile import ExerciseIntensity, Gender, WorkStyle
from .base import CamelModel


class _Biometrics(CamelModel):
    name: str | None = None
    email: str | None = None
    age: int | None = Field(None, ge=1, le=120)
    gender: Gender | None = Field(None, description="male, female or other")
    height_cm: float | None = Field(None, gt=50, le=250)
    weight_kg: float | None = Field(None, gt=10, le=300)
    work_style: WorkStyle | None = None
    exercise_intensity: ExerciseIntensity | None = None
    exercise_frequency: int | None = Field(None, ge=0, le=21, description="sessions / week")
    exercise_duration_per_session: int | None = Field(None, ge=0, le=300, description="minutes")


class UserCreate(_Biometrics):
    id: int


class UserUpdate(_Biometrics):
    """Only the fields present in the body are written."""


class UserOut(UserCreate):
    pass
