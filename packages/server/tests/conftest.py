"""
Shared fixtures.

Each test gets its own file-backed SQLite database (separate connections per
session, so concurrent-transaction tests see real isolation) and an in-memory
stand-in for Redis.
"""

from __future__ import annotations

import os
import tempfile

# Settings are read once at import time, so the environment must be ready first.
_TMP_DIR = tempfile.mkdtemp(prefix="taskflow-tests-")
os.environ.setdefault("TF_DATABASE_URL", f"sqlite+aiosqlite:///{_TMP_DIR}/app.db")
os.environ.setdefault("TF_SECRET_KEY", "test-secret-key-with-enough-bytes-for-hs256")
os.environ.setdefault("TF_RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("TF_LOG_FORMAT", "console")
os.environ.setdefault("TF_LOG_LEVEL", "warning")

import time  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

import taskflow.models  # noqa: E402,F401
from taskflow.core.database import get_session  # noqa: E402
from taskflow.main import app  # noqa: E402
from taskflow.services import users  # noqa: E402


class FakeRedis:
    """The handful of redis.asyncio commands the server uses, kept in a dict."""

    def __init__(self):
        self.values: dict[str, str] = {}
        self.expiry: dict[str, float] = {}

    def _purge(self, key: str) -> None:
        deadline = self.expiry.get(key)
        if deadline is not None and deadline <= time.monotonic():
            self.values.pop(key, None)
            self.expiry.pop(key, None)

    async def incr(self, key: str) -> int:
        self._purge(key)
        value = int(self.values.get(key, 0)) + 1
        self.values[key] = str(value)
        return value

    async def expire(self, key: str, seconds: int) -> bool:
        self._purge(key)
        if key not in self.values:
            return False
        self.expiry[key] = time.monotonic() + seconds
        return True

    async def ttl(self, key: str) -> int:
        self._purge(key)
        if key not in self.values:
            return -2
        if key not in self.expiry:
            return -1
        return max(0, int(self.expiry[key] - time.monotonic()))

    async def setex(self, key: str, seconds: int, value: str) -> bool:
        self.values[key] = value
        self.expiry[key] = time.monotonic() + seconds
        return True

    async def exists(self, *keys: str) -> int:
        for key in keys:
            self._purge(key)
        return sum(1 for key in keys if key in self.values)

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        return None


@pytest.fixture
def fake_redis(monkeypatch):
    redis = FakeRedis()

    async def _get_redis():
        return redis

    for target in (
        "taskflow.core.auth.get_redis",
        "taskflow.core.rate_limit.get_redis",
        "taskflow.core.redis.get_redis",
    ):
        monkeypatch.setattr(target, _get_redis)
    return redis


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'taskflow.db'}", poolclass=NullPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(session):
    """Factory for users created straight through the service layer."""

    async def _make(
        email: str,
        first_name: str = "Test",
        last_name: str = "User",
        password: str = "correct-horse-battery",
    ):
        return await users.create_user(email, password, first_name, last_name, session)

    return _make


@pytest.fixture
async def client(engine, session_factory, fake_redis, monkeypatch):
    monkeypatch.setattr("taskflow.core.database.engine", engine)

    async def _get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = _get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
