from __future__ import annotations

from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from core.errors import ProfileValidationError


class Gender(str, Enum):
    male = "male"
    female = "female"
    other = "other"


class WorkStyle(str, Enum):
    sedentary = "sedentary"
    light_active = "light_active"
    moderately_active = "moderately_active"
    very_active = "very_active"
    student = "student"
    homemaker = "homemaker"


class ExerciseIntensity(str, Enum):
    none = "none"
    light = "light"
    moderate = "moderate"
    intense = "intense"
    athlete = "athlete"


class NutritionGoal(str, Enum):
    maintain = "maintain"
    lose = "lose"
    gain = "gain"
    performance = "performance"


class PregnancyStatus(str, Enum):
    none = "none"
    pregnant = "pregnant"
    lactating = "lactating"


# values found in older profile rows
_ENUM_ALIASES = {
    "unspecified": "other",
    "lose_weight": "lose",
    "gain_muscle": "gain",
    "athlete_performance": "performance",
    "nursing": "lactating",
}

# kg / week
WEIGHT_CHANGE_PRESETS = {
    "slow": 0.25,
    "moderate": 0.5,
    "aggressive": 0.75,
}

REQUIRED_FIELDS = ("age", "gender", "height", "weight")


class Profile(BaseModel):
    """
    Calculator input. Only the four biometric fields are required; every
    other field falls back to the default declared here and is reported in
    ``calculation_basis.missing_fields``.

    Numbers are type-checked but *not* range-checked: out-of-range values are
    carried through the formulas.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", use_enum_values=False)

    user_id: int | None = None

    age: int = Field(..., strict=True)
    gender: Gender
    height: float = Field(..., strict=True, allow_inf_nan=False, description="cm")
    weight: float = Field(..., strict=True, allow_inf_nan=False, description="kg")

    work_style: WorkStyle = WorkStyle.sedentary
    exercise_intensity: ExerciseIntensity = ExerciseIntensity.none
    exercise_frequency: int = Field(0, strict=True, description="sessions / week")
    exercise_duration_per_session: int = Field(60, strict=True, description="minutes")

    nutrition_goal: NutritionGoal = NutritionGoal.maintain
    weight_change_rate: float = Field(0.0, allow_inf_nan=False, description="kg / week")

    health_conditions: tuple[str, ...] = ()
    medications: tuple[str, ...] = ()
    pregnancy_status: PregnancyStatus = PregnancyStatus.none

    # ------------------------------------------------------------ parsing
    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # NULL columns count as "not provided"
        if isinstance(data, Mapping):
            return {k: v for k, v in data.items() if v is not None}
        return data

    @field_validator(
        "gender", "work_style", "exercise_intensity", "nutrition_goal", "pregnancy_status",
        mode="before",
    )
    @classmethod
    def _normalise_enum(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower()
            return _ENUM_ALIASES.get(v, v)
        return v

    @field_validator("weight_change_rate", mode="before")
    @classmethod
    def _rate_preset(cls, v: Any) -> Any:
        if isinstance(v, bool):
            raise ValueError("weight_change_rate must be a number or a preset name")
        if isinstance(v, str):
            key = v.strip().lower()
            if key not in WEIGHT_CHANGE_PRESETS:
                raise ValueError(
                    f"unknown weight_change_rate preset {v!r} "
                    f"(expected one of {sorted(WEIGHT_CHANGE_PRESETS)})"
                )
            return WEIGHT_CHANGE_PRESETS[key]
        return v

    @field_validator("health_conditions", "medications", mode="before")
    @classmethod
    def _normalise_tags(cls, v: Any) -> Any:
        if isinstance(v, str):
            raise ValueError("expected a list of tags, not a single string")
        if isinstance(v, (list, tuple, set, frozenset)):
            tags = set()
            for tag in v:
                if not isinstance(tag, str):
                    raise ValueError(f"tag {tag!r} is not a string")
                tag = tag.strip().lower()
                if tag:
                    tags.add(tag)
            return tuple(sorted(tags))
        return v

    # ------------------------------------------------------------ helpers
    @classmethod
    def parse(cls, data: "Profile | Mapping[str, Any]") -> "Profile":
        """Validate ``data`` into a Profile, raising ProfileValidationError."""
        if isinstance(data, cls):
            return data
        if not isinstance(data, Mapping):
            raise ProfileValidationError(
                f"profile must be a mapping, got {type(data).__name__}", ["profile"]
            )
        try:
            return cls.model_validate(dict(data))
        except ValidationError as exc:
            raise ProfileValidationError.from_pydantic(exc) from exc

    @property
    def defaulted_fields(self) -> list[str]:
        """Optional fields that were not supplied, in declaration order."""
        skip = {"user_id", *REQUIRED_FIELDS}
        return [
            name for name in type(self).model_fields
            if name not in skip and name not in self.model_fields_set
        ]
