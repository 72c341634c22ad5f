"""
core/errors.py
────────────────────────────────────────────────────────────────────────
Exceptions raised by the nutrition target calculator.

    NutritionError
      ├── ProfileValidationError   required field missing / wrong type
      └── ComputationError         an intermediate went NaN / ±inf
"""
from __future__ import annotations

from typing import Iterable

from pydantic import ValidationError


class NutritionError(Exception):
    """Base class for everything the calculator raises on purpose."""


class ProfileValidationError(NutritionError, ValueError):
    def __init__(self, message: str, fields: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.fields: list[str] = list(fields)

    @classmethod
    def from_pydantic(cls, exc: ValidationError) -> "ProfileValidationError":
        fields: list[str] = []
        parts: list[str] = []
        for err in exc.errors():
            loc = ".".join(str(p) for p in err.get("loc", ())) or "profile"
            if loc not in fields:
                fields.append(loc)
            parts.append(f"{loc}: {err.get('msg', 'invalid')}")
        return cls("invalid profile – " + "; ".join(parts), fields)

    def to_detail(self) -> dict[str, object]:
        return {"error": "invalid_profile", "message": str(self), "fields": self.fields}


class ComputationError(NutritionError, ArithmeticError):
    """A calculation step produced a non-finite number."""

    def __init__(self, step: str, value: float) -> None:
        super().__init__(f"non-finite value at step '{step}': {value!r}")
        self.step = step
        self.value = value
