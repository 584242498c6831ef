"""Shared pytest fixtures for the SkillSwap API.

Provides:
- an in-memory SQLite database built from the ORM metadata, per test
- a ``make_user`` factory
- an httpx client over the ASGI app with ``get_db`` and Redis swapped out
"""

import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-pytest-only")

from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from skillswap.auth import create_access_token, hash_password
from skillswap.database import get_db
from skillswap.models import Base, CollaborationRequest, RequestStatus, User, UserRole, pair_key

TEST_PASSWORD = "secret123"
# bcrypt is slow on purpose; hash once per session
_PASSWORD_HASH = hash_password(TEST_PASSWORD)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ===========================================
# DATABASE
# ===========================================


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ===========================================
# FACTORIES
# ===========================================


@pytest.fixture
def make_user(db_session):
    """Factory: ``await make_user(name="Ada", skills=[...])`` returns a persisted User."""
    counter = {"n": 0}

    async def _make(**overrides: Any) -> User:
        counter["n"] += 1
        n = counter["n"]
        fields: dict[str, Any] = {
            "name": f"User {n}",
            "email": f"user{n}@example.com",
            "phone": f"+1555000{n:04d}",
            "password_hash": _PASSWORD_HASH,
            "skills": [],
        }
        fields.update(overrides)
        user = User(**fields)
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def make_admin(make_user):
    async def _make(**overrides: Any) -> User:
        overrides.setdefault("name", "Admin")
        overrides.setdefault("email", "admin@example.com")
        return await make_user(role=UserRole.admin.value, **overrides)

    return _make


@pytest.fixture
def make_request(db_session):
    """Factory for a collaboration request inserted directly, bypassing the service."""

    async def _make(
        sender: User,
        recipient: User,
        status: str = RequestStatus.pending.value,
        message: str = "",
    ) -> CollaborationRequest:
        req = CollaborationRequest(
            from_user_id=sender.id,
            to_user_id=recipient.id,
            pair_key=pair_key(sender.id, recipient.id),
            status=status,
            message=message,
        )
        db_session.add(req)
        await db_session.commit()
        await db_session.refresh(req)
        return req

    return _make


# ===========================================
# HTTP CLIENT
# ===========================================


@pytest.fixture
def auth_headers():
    """``auth_headers(user)`` builds a Bearer header with a fresh access token."""

    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}

    return _headers


@pytest.fixture
def fake_redis():
    """AsyncMock Redis whose get/set/delete share a dict."""
    store: dict[str, str] = {}
    redis = AsyncMock()
    redis.set.side_effect = lambda key, value, ex=None: store.__setitem__(key, value)
    redis.get.side_effect = lambda key: store.get(key)
    redis.delete.side_effect = lambda key: store.pop(key, None)
    redis.store = store
    return redis


@pytest_asyncio.fixture
async def client(session_factory, fake_redis) -> AsyncGenerator[AsyncClient, None]:
    from skillswap.main import app

    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    with patch("skillswap.routes.auth.get_redis", return_value=fake_redis):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    app.dependency_overrides.clear()
