"""Pytest conftest: test settings, a fresh SQLite database per test and an API client."""
import os
import sys
from pathlib import Path
from typing import Any, AsyncGenerator, Dict

# Settings are read once at import, so these must be set before gatepass loads
os.environ["TESTING"] = "true"
os.environ["ENVIRONMENT"] = "test"
os.environ["CACHE_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["LOG_FORMAT"] = "console"
os.environ["SECRET_KEY"] = "test-access-secret"
os.environ["PASS_SECRET_KEY"] = "test-pass-secret"

REPO_ROOT = Path(__file__).resolve().parents[1]
TESTS_DIR = Path(__file__).resolve().parent
for path in (TESTS_DIR, REPO_ROOT):
    if str(path) not in sys.path:
        # Insert at front so local package imports resolve
        sys.path.insert(0, str(path))

import pytest_asyncio  # noqa: E402
from helpers import register  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

import gatepass.models  # noqa: E402, F401
from gatepass.core.database_manager import DatabaseManager, db_manager  # noqa: E402
from gatepass.database import Base  # noqa: E402
from gatepass.main import app  # noqa: E402


@pytest_asyncio.fixture(scope="function")
async def database(tmp_path: Path) -> AsyncGenerator[DatabaseManager, None]:
    """File-backed database, so concurrent sessions use separate connections."""
    db_manager.init(f"sqlite+aiosqlite:///{tmp_path / 'gatepass.db'}")
    assert db_manager.engine is not None
    async with db_manager.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield db_manager

    await db_manager.close()


@pytest_asyncio.fixture(scope="function")
async def client(database: DatabaseManager) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture(scope="function")
async def organizer(client: AsyncClient) -> Dict[str, Any]:
    return await register(client, "Olivia Organizer", "olivia@example.com", role="organizer")


@pytest_asyncio.fixture(scope="function")
async def holder(client: AsyncClient) -> Dict[str, Any]:
    return await register(client, "Hari Holder", "hari@example.com")


@pytest_asyncio.fixture(scope="function")
async def other_holder(client: AsyncClient) -> Dict[str, Any]:
    return await register(client, "Asha Attendee", "asha@example.com")
