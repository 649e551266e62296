"""
Pytest fixtures for the FORGE MES test suite.

Provides:
- an in-memory SQLite database per test, created from the ORM metadata
- a session bound to it for service-level tests
- fakeredis in place of the dashboard cache
- an httpx AsyncClient over the ASGI app, authenticated as an admin
"""
import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["REDIS_ENABLED"] = "true"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["MAIL_ENABLED"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["RUN_MIGRATIONS_ON_STARTUP"] = "false"

import fakeredis
import pytest
from httpx import ASGITransport, AsyncClient

from mes.core.logging import reset_logging
from mes.core.security import create_access_token
from mes.db.session import Database
from mes.services.user_service import UserService

TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture(autouse=True, scope="session")
def _test_logging():
    """Leave `mes` loggers propagating so caplog sees them."""
    reset_logging()
    yield
    reset_logging()


@pytest.fixture
async def database():
    db = Database(TEST_DATABASE_URL)
    await db.open()
    await db.create_all()
    yield db
    await db.close()


@pytest.fixture
async def session(database):
    async with database.session() as s:
        yield s


@pytest.fixture
def fake_redis(monkeypatch):
    r = fakeredis.FakeAsyncRedis(decode_responses=True)
    monkeypatch.setattr("mes.core.redis._redis", r)
    return r


@pytest.fixture
async def admin_user(database):
    async with database.session() as s:
        user = await UserService.create_user(s, "Test Admin", "admin@test.local", "ADMIN")
        await s.commit()
    return user


@pytest.fixture
def app(database, fake_redis):
    from mes.main import create_app

    return create_app(database)


def auth_headers(user, role: str | None = None) -> dict:
    token = create_access_token(user.id, role=role or user.role, email=user.email)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def client(app, admin_user):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", headers=auth_headers(admin_user)) as c:
        yield c


@pytest.fixture
async def anon_client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
