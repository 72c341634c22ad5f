"""
Centralised settings loader (pydantic-settings).

Every field maps to the upper-cased env-var of the same name
(``DATABASE_URL``, ``LOG_LEVEL`` …) or to a line in ``.env``.
"""

from __future__ import annotations
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# ------------------------------------------------------------------ #
#  Master settings model
# ------------------------------------------------------------------ #
class _Settings(BaseSettings):
    # ─── runtime ─────────────────────────────────────────────────────
    env_name: str = Field("local")
    log_level: str = Field("INFO")

    # ─── database ────────────────────────────────────────────────────
    # postgresql+asyncpg://… in deployment
    database_url: str = Field("sqlite+aiosqlite:///./homegohan.db")
    sql_echo: bool = Field(False)
    auto_create_tables: bool = Field(False)

    # allow other teammates’ env-vars without crashing
    model_config = SettingsConfigDict(
        extra="ignore", env_file=".env", env_file_encoding="utf-8"
    )


# ------------------------------------------------------------------ #
#  Cached singleton accessor
# ------------------------------------------------------------------ #
@lru_cache
def _cached() -> _Settings:  # pragma: no cover
    return _Settings()  # type: ignore[call-arg]


settings: _Settings = _cached()
