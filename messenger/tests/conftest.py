# messenger/tests/conftest.py

import random
import string

import pytest
from fakeredis import aioredis
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from messenger.api import dependencies
from messenger.config import AppConfig
from messenger.gateways.chat_gateway import ChatGateway
from messenger.gateways.user_gateway import UserGateway
from messenger.infrastructure import schemas
from messenger.infrastructure.database import Base, create_database
from messenger.infrastructure.security import SecurityService
from messenger.infrastructure.uow import UnitOfWork
from messenger.main import Application

TEST_PASSWORD = "testpassword"


def random_suffix(k: int = 10) -> str:
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=k))


@pytest.fixture(scope="function")
def app_config():
    """
    Provide a test configuration with an in-memory SQLite database.
    """
    return AppConfig(
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        REDIS_HOST="localhost",
        REDIS_PORT=6379,
        SECRET_KEY="test_secret_key",
        REFRESH_SECRET_KEY="test_refresh_secret_key",
        PROJECT_NAME="Test Messenger API",
        PROJECT_VERSION="1.0.0",
        PROJECT_DESCRIPTION="Test Messenger API",
        API_V1_STR="/api/v1",
        ALGORITHM="HS256",
        ACCESS_TOKEN_EXPIRE_MINUTES=5,
        REFRESH_TOKEN_EXPIRE_DAYS=7,
        DUPLICATE_WINDOW_SECONDS=5.0,
        CHAT_REQUIRES_CONTACT=False,
    )


@pytest.fixture(scope="function")
async def mock_redis():
    """Provide a fake Redis client for testing."""
    redis = aioredis.FakeRedis(decode_responses=True)
    yield redis
    await redis.flushall()
    await redis.aclose()


@pytest.fixture(scope="function")
async def engine(app_config):
    """Create a SQLAlchemy engine sharing one in-memory SQLite connection."""
    engine = create_async_engine(
        app_config.DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    async with engine.begin() as conn:
        from messenger.infrastructure import models  # noqa: F401

        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(engine):
    """Provide a SQLAlchemy session for testing."""
    async_session_factory = async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False
    )
    session = async_session_factory()
    yield session
    await session.close()


@pytest.fixture(scope="function")
def uow(db_session):
    """Provide a UnitOfWork bound to the test session."""
    return UnitOfWork(db_session)


@pytest.fixture(scope="function")
def security_service(app_config):
    return SecurityService(app_config)


@pytest.fixture(scope="function")
def override_get_db(db_session):
    """Override the get_session dependency to use the test session."""

    async def _override_get_db():
        yield db_session

    return _override_get_db


@pytest.fixture(scope="function")
def application(app_config, mock_redis, engine):
    application = Application(config=app_config)
    application.database = create_database(engine)
    application.redis_client.client = mock_redis
    return application


@pytest.fixture(scope="function")
async def app(application):
    """Create the FastAPI app with the test database."""
    return application.create_app()


@pytest.fixture(scope="function")
async def app_with_db(app, override_get_db):
    """Override dependencies to use the test database session."""
    app.dependency_overrides[dependencies.get_session] = override_get_db
    yield app
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def client(app_with_db):
    """Provide an HTTP client with the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app_with_db), base_url="http://test"
    ) as ac:
        yield ac


async def create_test_user(db_session, security_service, prefix: str = "testuser"):
    suffix = random_suffix()
    user_create = schemas.UserCreate(
        username=f"{prefix}_{suffix}",
        email=f"{prefix}_{suffix}@example.com",
        password=TEST_PASSWORD,
    )
    uow = UnitOfWork(db_session)
    user_gateway = UserGateway(db_session, uow)
    user = await user_gateway.create_user(
        user_create, security_service.get_password_hash(TEST_PASSWORD)
    )
    await uow.commit()
    return user


@pytest.fixture(scope="function")
async def test_user(db_session, security_service):
    """Create a test user in the database."""
    return await create_test_user(db_session, security_service)


@pytest.fixture(scope="function")
async def test_user2(db_session, security_service):
    """Create a second test user in the database."""
    return await create_test_user(db_session, security_service, prefix="testuser2")


@pytest.fixture(scope="function")
async def test_user3(db_session, security_service):
    return await create_test_user(db_session, security_service, prefix="testuser3")


@pytest.fixture(scope="function")
async def test_chat(db_session, test_user, test_user2):
    """Create the chat between the first two test users."""
    uow = UnitOfWork(db_session)
    chat_gateway = ChatGateway(db_session, uow)
    chat = await chat_gateway.create_chat(test_user.id, test_user2.id)
    await uow.commit()
    return chat


async def login(client: AsyncClient, username: str) -> dict[str, str]:
    response = await client.post(
        "/api/v1/auth/login",
        data={"username": username, "password": TEST_PASSWORD},
    )
    assert response.status_code == 200, f"Login failed: {response.json()}"
    access_token = response.json().get("access_token")
    assert access_token is not None, "Access token was not returned in the response"
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture(scope="function")
async def auth_header(client, test_user):
    """Provide an authorization header for the first test user."""
    return await login(client, test_user.username)


@pytest.fixture(scope="function")
async def auth_header2(client, test_user2):
    """Provide an authorization header for the second test user."""
    return await login(client, test_user2.username)


@pytest.fixture(scope="function")
def login_as(client):
    """Log in any user created with the shared test password."""

    async def _login_as(username: str) -> dict[str, str]:
        return await login(client, username)

    return _login_as


@pytest.fixture(scope="function")
def make_user(db_session, security_service):
    """Create extra users on demand."""

    async def _make_user(prefix: str = "user"):
        return await create_test_user(db_session, security_service, prefix=prefix)

    return _make_user
