"""
Messagely Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy (all function-scoped):
    ├── mock_db_session:  AsyncMock session for service unit tests
    ├── token_service:    TokenService with the test secret
    ├── db_engine:        async SQLite engine on a per-test file, tables created
    ├── db_session:       real AsyncSession on db_engine
    ├── app_factory:      create_app(settings) with sessions bound to db_engine
    ├── app:              app_factory() with the environment settings
    ├── client:           HTTPX AsyncClient talking to `app` in-process
    └── register_user:    async helper registering a user via the API
"""

import os
import tempfile

# Override settings BEFORE any messagely import; Settings() is built at import.
_TEST_DIR = tempfile.mkdtemp(prefix="messagely_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/messagely.db"
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production-use-0123456789"
os.environ["BCRYPT_WORK_FACTOR"] = "4"  # bcrypt minimum; keeps hashing fast
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["AUTH_RATE_LIMIT_REQUESTS"] = "1000"

from typing import AsyncGenerator  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from messagely.config import Settings, settings  # noqa: E402
from messagely.database import create_tables, get_db_session  # noqa: E402
from messagely.services.token_service import TokenConfig, TokenService  # noqa: E402


@pytest.fixture
def mock_db_session():
    """
    A MagicMock that simulates AsyncSession behavior.

    Usage:
        async def test_get(mock_db_session):
            mock_result = MagicMock()
            mock_result.scalar_one_or_none.return_value = user
            mock_db_session.execute.return_value = mock_result
            result = await user_service.get(mock_db_session, "alice")
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def token_service() -> TokenService:
    return TokenService(TokenConfig(secret_key=settings.secret_key))


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Fresh SQLite database per test, schema created from the ORM models."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture
def app_factory(db_engine):
    """
    Build applications whose get_db_session is bound to the test database.

    Usage:
        def test_strict_limits(app_factory):
            application = app_factory(Settings(auth_rate_limit_requests=1))
    """
    from messagely.main import create_app

    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    def _build(app_settings: Settings = settings):
        application = create_app(app_settings)
        application.dependency_overrides[get_db_session] = override_get_db_session
        return application

    return _build


@pytest.fixture
def app(app_factory):
    """A new application with the default (environment) settings."""
    return app_factory()


@pytest_asyncio.fixture
async def client(app):
    """
    HTTPX AsyncClient configured to talk to the FastAPI app.

    Usage:
        async def test_health(client):
            response = await client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client


@pytest.fixture
def register_user(client: AsyncClient):
    """
    Register users through the API.

    Usage:
        async def test_login(client, register_user):
            token = await register_user("alice", "pw1")
    """

    async def _register(username: str, password: str = "pw1") -> str:
        response = await client.post(
            "/auth/register",
            json={
                "username": username,
                "password": password,
                "first_name": username.capitalize(),
                "last_name": "Tester",
                "phone": "555-555-5555",
            },
        )
        assert response.status_code == 200, response.text
        return response.json()["token"]

    return _register
