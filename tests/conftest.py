import sys
import os

# Ensure src directory is in Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from pingwatch.database import Base
from pingwatch.dependencies import get_integration_store, get_repository
from pingwatch.main import app
from pingwatch.repository import CheckRepository, IntegrationStore


# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False)
test_session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


app.state._testing = True
app.dependency_overrides[get_repository] = lambda: CheckRepository(test_session_factory)
app.dependency_overrides[get_integration_store] = lambda: IntegrationStore(test_session_factory)


class RecordingDispatcher:
    """Stands in for NotificationDispatcher and remembers every notify call."""

    def __init__(self):
        self.calls: list[tuple[str, str]] = []

    async def notify(self, check_id: str, status: str) -> None:
        self.calls.append((check_id, status))


@pytest.fixture
def repository() -> CheckRepository:
    return CheckRepository(test_session_factory)


@pytest.fixture
def integration_store() -> IntegrationStore:
    return IntegrationStore(test_session_factory)


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest_asyncio.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
