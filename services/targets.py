"""
services/targets.py
────────────────────────────────────────────────────────────────────────
Glue between the stored profile and the pure calculator:

    load_profile()  users + user_preferences  → calculator mapping
    save_target()   calculation result        → nutrition_targets (1 row/user)
    recalculate()   load → calculate → save, nothing written on failure
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from core.errors import ProfileValidationError
from core.models.target import NutritionCalculationResult
from core.nutrition_calc import NutritionalCalculator
from services.db import NutritionTargetRow, User, UserPreferences

_LOG = logging.getLogger(__name__)

_calc = NutritionalCalculator()


class UserNotFoundError(LookupError):
    def __init__(self, user_id: int) -> None:
        super().__init__(f"user {user_id} not found")
        self.user_id = user_id


class StaleTargetError(RuntimeError):
    """Stored target changed underneath us (optimistic-lock conflict)."""

    def __init__(self, user_id: int, detail: str) -> None:
        super().__init__(f"nutrition target for user {user_id}: {detail}")
        self.user_id = user_id


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _tags(raw: str | None, field: str) -> list[str]:
    try:
        tags = json.loads(raw or "[]")
    except ValueError as exc:
        raise ProfileValidationError(f"{field}: stored value is not valid JSON", [field]) from exc
    if not isinstance(tags, list):
        raise ProfileValidationError(f"{field}: stored value is not a list", [field])
    return tags


# ───────────────────────── profile ─────────────────────────
async def load_prefs(db: AsyncSession, user_id: int) -> UserPreferences | None:
    return (
        await db.execute(select(UserPreferences).where(UserPreferences.user_id == user_id))
    ).scalar_one_or_none()


async def load_profile(db: AsyncSession, user_id: int) -> Dict[str, Any]:
    """
    Assemble the calculator input for ``user_id``. NULL columns stay ``None``
    so the calculator can report them as missing.
    """
    user: User | None = await db.get(User, user_id)
    if user is None:
        raise UserNotFoundError(user_id)
    prefs = await load_prefs(db, user_id)

    profile: Dict[str, Any] = {
        "user_id": user.id,
        "age": user.age,
        "gender": user.gender,
        "height": user.height_cm,
        "weight": user.weight_kg,
        "work_style": user.work_style,
        "exercise_intensity": user.exercise_intensity,
        "exercise_frequency": user.exercise_frequency,
        "exercise_duration_per_session": user.exercise_duration_per_session,
    }
    if prefs is not None:
        profile.update(
            nutrition_goal=prefs.nutrition_goal,
            weight_change_rate=prefs.weight_change_rate,
            health_conditions=_tags(prefs.health_conditions, "health_conditions"),
            medications=_tags(prefs.medications, "medications"),
            pregnancy_status=prefs.pregnancy_status,
        )
    return profile


# ───────────────────────── targets ─────────────────────────
async def get_target(db: AsyncSession, user_id: int) -> NutritionTargetRow | None:
    return await db.get(NutritionTargetRow, user_id)


async def save_target(
    db: AsyncSession,
    user_id: int,
    result: NutritionCalculationResult,
    expected_version: int | None = None,
) -> NutritionTargetRow:
    """
    Upsert the single target row for ``user_id``, replacing every column.

    ``expected_version`` (if given) must match the stored row; concurrent
    writers are caught by the mapper's version column either way.
    """
    row = await get_target(db, user_id)
    if expected_version is not None:
        current = row.version if row is not None else 0
        if current != expected_version:
            raise StaleTargetError(
                user_id, f"expected version {expected_version}, found {current}"
            )

    if row is None:
        row = NutritionTargetRow(user_id=user_id)
        db.add(row)

    for key, value in result.target_data.model_dump(exclude={"user_id"}).items():
        setattr(row, key, value)
    row.calculation_basis = result.calculation_basis.model_dump(mode="json")
    row.last_calculated_at = _utcnow()

    try:
        await db.commit()
    except (StaleDataError, IntegrityError) as exc:
        await db.rollback()
        raise StaleTargetError(user_id, "modified concurrently") from exc

    _LOG.info("nutrition target saved user=%s version=%s", user_id, row.version)
    return row


async def recalculate(
    db: AsyncSession,
    user_id: int,
    expected_version: int | None = None,
    calc: NutritionalCalculator | None = None,
) -> tuple[NutritionCalculationResult, NutritionTargetRow]:
    profile = await load_profile(db, user_id)
    # raises before anything is written
    result = (calc or _calc).calculate(profile)
    row = await save_target(db, user_id, result, expected_version)
    return result, row
