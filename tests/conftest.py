from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from main import app
from services.db import create_all, get_session, session_factory


@pytest.fixture
def client():
    """TestClient bound to a private in-memory SQLite database."""
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    factory = session_factory(eng)
    ready = False

    async def _session():
        nonlocal ready
        if not ready:
            await create_all(eng)
            ready = True
        async with factory() as session:
            yield session

    app.dependency_overrides[get_session] = _session
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'targets.db'}"
