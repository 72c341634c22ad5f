"""
services/db.py
────────────────────────────────────────────────────────────────────────
* Async SQLAlchemy v2 setup
* Models for the three tables the nutrition service touches
* Session dependency used by routers / scripts
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, AsyncGenerator

from sqlalchemy import JSON, DateTime, Float, Integer, String, Text, func
from sqlalchemy.ext.asyncio import (
    AsyncAttrs,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

from config import settings

# ───────── connection helper ────────────────────────────────────────
_ENGINE: AsyncEngine | None = None


def _create_engine() -> AsyncEngine:
    return create_async_engine(
        settings.database_url, echo=settings.sql_echo, pool_pre_ping=True
    )


def engine() -> AsyncEngine:
    global _ENGINE
    if _ENGINE is None:
        _ENGINE = _create_engine()
    return _ENGINE


# ───────── declarative base ──────────────────────────────────────────
Base = declarative_base(cls=AsyncAttrs)


class User(Base):
    """Biometrics + activity; one row per app user."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str | None] = mapped_column(String)
    email: Mapped[str | None] = mapped_column(String)
    age: Mapped[int | None] = mapped_column(Integer)
    gender: Mapped[str | None] = mapped_column(String)
    height_cm: Mapped[float | None] = mapped_column(Float)
    weight_kg: Mapped[float | None] = mapped_column(Float)
    work_style: Mapped[str | None] = mapped_column(String)
    exercise_intensity: Mapped[str | None] = mapped_column(String)
    exercise_frequency: Mapped[int | None] = mapped_column(Integer)
    exercise_duration_per_session: Mapped[int | None] = mapped_column(Integer)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )


class UserPreferences(Base):
    __tablename__ = "user_preferences"

    user_id: Mapped[int] = mapped_column(primary_key=True)
    nutrition_goal: Mapped[str | None] = mapped_column(String)
    weight_change_rate: Mapped[float | None] = mapped_column(Float)
    health_conditions: Mapped[str | None] = mapped_column(Text)  # serialized list
    medications: Mapped[str | None] = mapped_column(Text)        # serialized list
    pregnancy_status: Mapped[str | None] = mapped_column(String)


class NutritionTargetRow(Base):
    """Exactly one row per user; replaced wholesale on recalculation."""

    __tablename__ = "nutrition_targets"

    user_id: Mapped[int] = mapped_column(primary_key=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    calories: Mapped[float] = mapped_column(Float)
    protein_g: Mapped[float] = mapped_column(Float)
    fat_g: Mapped[float] = mapped_column(Float)
    carbs_g: Mapped[float] = mapped_column(Float)
    fiber_g: Mapped[float] = mapped_column(Float)
    fiber_soluble_g: Mapped[float] = mapped_column(Float)
    fiber_insoluble_g: Mapped[float] = mapped_column(Float)
    sodium_mg: Mapped[float] = mapped_column(Float)
    salt_equivalent_g: Mapped[float] = mapped_column(Float)
    sugar_g: Mapped[float] = mapped_column(Float)
    cholesterol_mg: Mapped[float] = mapped_column(Float)
    saturated_fat_g: Mapped[float] = mapped_column(Float)
    monounsaturated_fat_g: Mapped[float] = mapped_column(Float)
    polyunsaturated_fat_g: Mapped[float] = mapped_column(Float)
    micronutrients: Mapped[dict[str, Any]] = mapped_column(JSON)

    calculation_basis: Mapped[dict[str, Any]] = mapped_column(JSON)
    last_calculated_at: Mapped[datetime] = mapped_column(DateTime)

    # UPDATE … WHERE version = :old; a concurrent writer raises StaleDataError
    __mapper_args__ = {"version_id_col": version}


# ───────── schema / session helpers ──────────────────────────────────
async def create_all(eng: AsyncEngine | None = None) -> None:
    async with (eng or engine()).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def session_factory(eng: AsyncEngine | None = None) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(eng or engine(), expire_on_commit=False)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with session_factory()() as session:
        yield session
