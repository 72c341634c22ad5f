from __future__ import annotations

import json
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from services.db import UserPreferences, get_session
from services.targets import load_prefs
from api.v1.schemas.prefs import UserPrefsIn, UserPrefsOut

router = APIRouter()


# ───────────────────────── helpers ──────────────────────────
def _serialize(row: UserPreferences) -> UserPrefsOut:
    """Convert SQLAlchemy row ➜ Pydantic schema with proper JSON decoding."""
    return UserPrefsOut(
        user_id=row.user_id,
        nutrition_goal=row.nutrition_goal or "maintain",
        weight_change_rate=row.weight_change_rate or 0.0,
        health_conditions=json.loads(row.health_conditions or "[]"),
        medications=json.loads(row.medications or "[]"),
        pregnancy_status=row.pregnancy_status or "none",
    )


# ───────────────────────── read ─────────────────────────────
@router.get(
    "/{user_id}/preferences",
    response_model=UserPrefsOut,
    status_code=status.HTTP_200_OK,
)
async def get_preferences(
    user_id: int,
    db: AsyncSession = Depends(get_session),
) -> UserPrefsOut:
    prefs = await load_prefs(db, user_id)
    if prefs is None:
        raise HTTPException(404, "preferences not set")

    return _serialize(prefs)


# ───────────────────────── upsert ───────────────────────────
@router.put(
    "/{user_id}/preferences",
    response_model=UserPrefsOut,
    status_code=status.HTTP_200_OK,
)
async def upsert_preferences(
    user_id: int,
    body: UserPrefsIn,
    db: AsyncSession = Depends(get_session),
) -> UserPrefsOut:
    payload = {
        "nutrition_goal": body.nutrition_goal.value,
        "weight_change_rate": body.weight_change_rate,
        "health_conditions": json.dumps(body.health_conditions, ensure_ascii=False),
        "medications": json.dumps(body.medications, ensure_ascii=False),
        "pregnancy_status": body.pregnancy_status.value,
    }

    # Try update → if row doesn’t exist we’ll insert.
    res = await db.execute(
        update(UserPreferences)
        .where(UserPreferences.user_id == user_id)
        .values(**payload)
        .returning(UserPreferences)
    )
    prefs = res.scalar_one_or_none()

    if prefs is None:                          # Insert
        prefs = UserPreferences(user_id=user_id, **payload)  # type: ignore[arg-type]
        db.add(prefs)

    await db.commit()
    await db.refresh(prefs)
    return _serialize(prefs)
