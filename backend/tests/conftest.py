"""
CodeSync Backend — Test Configuration (conftest.py)
====================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Endpoint tests run the real application against a throwaway SQLite
       database, so visibility rules, cascades and the unique constraints
       behind the like/follow toggles are exercised for real.
How:   Environment variables are set BEFORE any codesync import (settings,
       engine and retry policies are built at import time).

Fixture Hierarchy:
    Function-scoped:
    ├── database:  drops and recreates every table
    ├── db_session: AsyncSession for service-level tests
    ├── client:    HTTPX AsyncClient bound to the app via ASGITransport
    └── alice / bob: registered users with ready-made auth headers
"""

import os
import tempfile

# Override settings for testing BEFORE any app imports
_db_dir = tempfile.mkdtemp(prefix="codesync_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_db_dir}/test.db"
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RETRY_MAX_ATTEMPTS"] = "2"
os.environ["RETRY_MIN_WAIT"] = "0"
os.environ["RETRY_MAX_WAIT"] = "0"
os.environ["RATE_LIMIT_REQUESTS"] = "100000"
os.environ["LOG_LEVEL"] = "WARNING"
for _name in (
    "GITHUB_CLIENT_ID", "GITHUB_CLIENT_SECRET", "GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET",
    "CLOUDINARY_CLOUD_NAME", "CLOUDINARY_API_KEY", "CLOUDINARY_API_SECRET",
):
    os.environ.pop(_name, None)

from dataclasses import dataclass
from typing import Dict

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from codesync.database import Base, async_session_factory, engine
import codesync.models  # noqa: F401

DEFAULT_PASSWORD = "Passw0rd"


@dataclass
class RegisteredUser:
    id: str
    username: str
    email: str
    token: str

    @property
    def headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


async def register(
    client: AsyncClient,
    username: str,
    email: str = None,
    password: str = DEFAULT_PASSWORD,
    name: str = None,
) -> RegisteredUser:
    """
    Register through the API and return the credentials.

    The client's cookie jar is cleared afterwards so that later requests are
    anonymous unless they pass `headers=user.headers`.
    """
    email = email or f"{username}@example.com"
    response = await client.post(
        "/api/auth/register",
        json={
            "name": name or username.capitalize(),
            "email": email,
            "username": username,
            "password": password,
        },
    )
    assert response.status_code == 201, response.text
    client.cookies.clear()
    body = response.json()
    return RegisteredUser(
        id=body["user"]["id"],
        username=username,
        email=email,
        token=body["token"],
    )


async def create_snippet(client: AsyncClient, user: RegisteredUser, **fields) -> dict:
    payload = {
        "title": "Binary search",
        "content": "def bsearch(xs, x): ...",
        "language": "python",
    }
    payload.update(fields)
    response = await client.post("/api/snippets", json=payload, headers=user.headers)
    assert response.status_code == 201, response.text
    return response.json()


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def database():
    """Fresh schema for every test."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(database):
    async with async_session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(database):
    """
    HTTPX AsyncClient configured to talk to the FastAPI app.

    Usage:
        async def test_health(client):
            response = await client.get("/health")
    """
    from codesync.main import app
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest_asyncio.fixture
async def alice(client) -> RegisteredUser:
    return await register(client, "alice")


@pytest_asyncio.fixture
async def bob(client) -> RegisteredUser:
    return await register(client, "bob")
