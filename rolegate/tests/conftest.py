from __future__ import annotations

import os
import tempfile

# Point the engine at a throwaway SQLite file before any rolegate module reads settings.
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{os.path.join(tempfile.gettempdir(), f'rolegate-test-{os.getpid()}.db')}",
)

import pytest

from rolegate.domain.models import Base
from rolegate.persistence.db import engine
from rolegate.tests.utils import models as _test_models  # noqa: F401  registers the issues table


@pytest.fixture(autouse=True)
async def fresh_schema() -> None:
    # Every test starts from an empty schema so grants and audit rows never leak.
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    # Dispose the async engine to prevent cross-loop connection reuse between tests.
    await engine.dispose()
