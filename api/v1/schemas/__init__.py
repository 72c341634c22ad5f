"""Re-export individual schema modules for easy imports."""

from .base import CamelModel
from .user import UserCreate, UserOut, UserUpdate
from .prefs import UserPrefsIn, UserPrefsOut
from .target import (
    CalculationResponse,
    NutritionTargetOut,
    ProfileIn,
    SummaryOut,
)

__all__ = [
    "CamelModel",
    "UserCreate",
    "UserUpdate",
    "UserOut",
    "UserPrefsIn",
    "UserPrefsOut",
    "ProfileIn",
    "NutritionTargetOut",
    "SummaryOut",
    "CalculationResponse",
]
