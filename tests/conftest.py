"""
Test configuration and fixtures for pytest.

Every test gets a fresh in-memory SQLite database. The app's database,
identity provider and chat model dependencies are overridden so no test
talks to Postgres, Supabase or OpenAI.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401
from app.api.deps import get_async_db, get_chat_model, get_identity_provider, get_session_factory
from app.db.base_class import Base
from app.main import app
from tests.async_test_utils import FakeChatModel, FakeIdentityProvider, bearer


@pytest_asyncio.fixture
async def async_engine():
    """Create an async SQLAlchemy engine with all tables."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker:
    return async_sessionmaker(bind=async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def async_db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create an async SQLAlchemy session for service-level tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def chat_model() -> FakeChatModel:
    return FakeChatModel()


@pytest_asyncio.fixture
async def async_client(session_factory, identity_provider, chat_model):
    """Create an HTTP client bound to the app with external services overridden."""

    async def override_get_async_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_db] = override_get_async_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_identity_provider] = lambda: identity_provider
    app.dependency_overrides[get_chat_model] = lambda: chat_model

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    # Clear dependency overrides
    app.dependency_overrides = {}


@pytest.fixture
def alice_headers():
    return bearer("alice-token")


@pytest.fixture
def bob_headers():
    return bearer("bob-token")
