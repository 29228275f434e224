import sys
import os

# Ensure src directory is in Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["SMTP_USERNAME"] = ""
os.environ["SMTP_PASSWORD"] = ""
os.environ["PROBE_PROXY_URL"] = ""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from isitdown import database, gateway
from isitdown.database import Base, dispose_engine, get_session_factory, init_engine
from isitdown.main import app


@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    engine = init_engine(TEST_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    gateway.clear_subscriptions()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await dispose_engine()


@pytest.fixture
def session_factory():
    return get_session_factory()


@pytest.fixture
def no_database():
    """Run the test in fallback mode, as if no database were configured."""
    saved = (database._engine, database._session_factory)
    init_engine("")
    yield
    database._engine, database._session_factory = saved


@pytest_asyncio.fixture
async def client():
    app.state.outage_board.invalidate()
    app.state.outage_board.attach()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest_asyncio.fixture
async def authenticated_client(client: AsyncClient):
    """Create a user and return an authenticated client."""
    signup_data = {
        "username": "tester",
        "email": "test@example.com",
        "password": "testpassword123",
    }
    response = await client.post("/auth/signup", json=signup_data)
    assert response.status_code == 201

    client.cookies.update(response.cookies)
    return client


def mock_http_client(response=None, side_effect=None):
    """An httpx.AsyncClient stand-in whose get() returns ``response``."""
    instance = AsyncMock()
    instance.get = AsyncMock(return_value=response, side_effect=side_effect)
    instance.__aenter__ = AsyncMock(return_value=instance)
    instance.__aexit__ = AsyncMock(return_value=False)
    return instance


def http_response(status_code=200, text="", content_type="text/html"):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.headers = {"content-type": content_type}
    return response


def utcnow():
    return datetime.now(timezone.utc)
