"""
scripts/init_targets.py
────────────────────────────────────────────────────────────────────────
Populate – or refresh – `nutrition_targets`:

Bootstrap every user once:

    python -m scripts.init_targets           # all users

Re-run for one user after a profile change (cron / Cloud Scheduler):

    python -m scripts.init_targets --user 123
"""
from __future__ import annotations

import asyncio
import logging
from argparse import ArgumentParser
from typing import Dict, Sequence
from dotenv import load_dotenv
load_dotenv()

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config import settings
from core.errors import ComputationError, ProfileValidationError
from services.db import User, session_factory
from services.targets import StaleTargetError, UserNotFoundError, recalculate

_LOG = logging.getLogger("scripts.init_targets")


# ───────────────────────────────
# Target updater per–user
# ───────────────────────────────
async def _refresh_user(db: AsyncSession, user_id: int) -> str:
    try:
        result, row = await recalculate(db, user_id)
    except UserNotFoundError:
        _LOG.warning("· skip %s – user not found", user_id)
        return "missing"
    except ProfileValidationError as exc:
        _LOG.warning("· skip %s – incomplete profile (%s)", user_id, ", ".join(exc.fields))
        return "invalid"
    except (ComputationError, StaleTargetError) as exc:
        _LOG.error("! user %s – %s", user_id, exc)
        return "failed"

    _LOG.info(
        "✓ targets updated for user %s: %.0f kcal (version %s)",
        user_id, result.summary.calories, row.version,
    )
    return "updated"


async def refresh(
    user_id: int | None = None,
    factory: async_sessionmaker[AsyncSession] | None = None,
) -> Dict[int, str]:
    """Recalculate one user (or every user); returns user-id → outcome."""
    factory = factory or session_factory()
    async with factory() as db:
        if user_id is not None:
            ids: Sequence[int] = [user_id]
        else:
            ids = (await db.execute(select(User.id).order_by(User.id))).scalars().all()

    outcomes: Dict[int, str] = {}
    for uid in ids:
        # fresh session per user so one failure never leaks into the next
        async with factory() as db:
            outcomes[uid] = await _refresh_user(db, uid)
    return outcomes


# ───────────────────────────────
# CLI entrypoint
# ───────────────────────────────
async def _async_main(argv: Sequence[str] | None = None) -> Dict[int, str]:
    ap = ArgumentParser(description="Recalculate stored nutrition targets.")
    ap.add_argument("--user", type=int, help="update only this user-id")
    args = ap.parse_args(argv)

    outcomes = await refresh(args.user)
    done = sum(1 for v in outcomes.values() if v == "updated")
    _LOG.info("%d of %d user(s) updated", done, len(outcomes))
    return outcomes


if __name__ == "__main__":  # pragma: no cover
    logging.basicConfig(level=settings.log_level.upper())
    asyncio.run(_async_main())
