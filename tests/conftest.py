"""Shared fixtures.

Every test gets a fresh in-memory SQLite database: the schema is created at
the start of the test and the engine is disposed at the end, which drops the
single StaticPool connection and with it the whole database.

Environment variables are set before any application module is imported,
because ``core.config.settings`` is built at import time.
"""

import base64
import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["MASTER_ENCRYPTION_KEY"] = base64.b64encode(b"k" * 32).decode("ascii")
# Keep PBKDF2 cheap in tests
os.environ["PASSWORD_HASH_ROUNDS"] = "1000"
os.environ["BACKUP_CODE_HASH_ROUNDS"] = "1000"

import fakeredis  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fakeredis.aioredis import FakeRedis  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from core.rate_limit import rate_limiter  # noqa: E402
from core.security import hash_password  # noqa: E402
from database import Base, SessionLocal, engine  # noqa: E402
from main import app  # noqa: E402
from models.user import User  # noqa: E402
from system_settings.store import SettingStore  # noqa: E402

# Satisfies the default password rules and contains no test username/email
PASSWORD = "Dram-Tasting-42"


@pytest_asyncio.fixture
async def db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with SessionLocal() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def store(db):
    return SettingStore(db)


@pytest.fixture(autouse=True)
def redis(monkeypatch):
    """A private in-memory Redis behind the app's rate limiter."""
    client = FakeRedis(server=fakeredis.FakeServer())
    monkeypatch.setattr(rate_limiter, "redis", client)
    return client


@pytest_asyncio.fixture
async def client(db):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_user(db):
    """Factory: ``await make_user(email=..., role="admin", two_factor_enabled=True, ...)``."""

    async def _make(
        email: str = "member@example.com",
        username: str = "member",
        password: str = PASSWORD,
        role: str = "member",
        **fields,
    ) -> User:
        user = User(
            email=email,
            username=username,
            password_hash=hash_password(password),
            role=role,
            is_active=fields.pop("is_active", True),
            approval_status=fields.pop("approval_status", "approved"),
            email_verified=fields.pop("email_verified", True),
            **fields,
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user

    return _make


@pytest.fixture
def login_as(client):
    """Log in over HTTP and return the Authorization header."""

    async def _login(email: str, password: str = PASSWORD) -> dict:
        response = await client.post("/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return _login
