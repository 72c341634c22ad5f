"""
/nutrition-targets
────────────────────────────────────────────────────────────────────────
preview    – calculate from the request body, nothing stored
calculate  – stored profile → calculator → upsert (one row per user)
fetch      – last stored target
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ComputationError, ProfileValidationError
from core.models.target import NutritionCalculationResult
from core.nutrition_calc import calculate_nutrition_targets
from services.db import get_session
from services.targets import (
    StaleTargetError,
    UserNotFoundError,
    get_target,
    recalculate,
)
from api.v1.schemas import (
    CalculationResponse,
    NutritionTargetOut,
    ProfileIn,
    SummaryOut,
)

_LOG = logging.getLogger(__name__)

router = APIRouter()


def _response(
    result: NutritionCalculationResult, version: int | None = None
) -> CalculationResponse:
    return CalculationResponse(
        user_id=result.target_data.user_id,
        version=version,
        summary=SummaryOut.model_validate(result.summary.model_dump()),
        target_data=result.target_data.model_dump(mode="json"),
        calculation_basis=result.calculation_basis.model_dump(mode="json"),
    )


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, ProfileValidationError):
        return HTTPException(422, exc.to_detail())
    if isinstance(exc, UserNotFoundError):
        return HTTPException(404, "User not found")
    if isinstance(exc, StaleTargetError):
        return HTTPException(409, str(exc))
    _LOG.error("nutrition calculation failed: %s", exc)
    return HTTPException(500, str(exc))


# ───────────────────────── preview ──────────────────────────
@router.post("/preview", response_model=CalculationResponse)
async def preview_targets(body: ProfileIn) -> CalculationResponse:
    try:
        result = calculate_nutrition_targets(body.model_dump(exclude_none=True))
    except (ProfileValidationError, ComputationError) as exc:
        raise _http_error(exc) from exc
    return _response(result)


# ───────────────────────── recalculate + store ───────────────
@router.post("/{user_id}/calculate", response_model=CalculationResponse)
async def calculate_targets(
    user_id: int,
    expected_version: int | None = Query(None, alias="expectedVersion"),
    db: AsyncSession = Depends(get_session),
) -> CalculationResponse:
    try:
        result, row = await recalculate(db, user_id, expected_version)
    except (
        ProfileValidationError,
        ComputationError,
        UserNotFoundError,
        StaleTargetError,
    ) as exc:
        raise _http_error(exc) from exc
    return _response(result, row.version)


# ───────────────────────── fetch ─────────────────────────────
@router.get("/{user_id}", response_model=NutritionTargetOut)
async def fetch_targets(
    user_id: int,
    db: AsyncSession = Depends(get_session),
) -> NutritionTargetOut:
    row = await get_target(db, user_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Nutrition target not calculated")
    return NutritionTargetOut.model_validate(row)
