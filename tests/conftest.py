"""Shared test fixtures.

Tests run against an in-memory SQLite database (aiosqlite) built from the
ORM metadata, with no Redis: rate limiting and notifications are skipped
when Redis is not initialized.
"""

from __future__ import annotations

import os
import tempfile
from collections.abc import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

os.environ["CQ_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CQ_LOG_FORMAT"] = "console"

from classquest.auth.jwt import create_access_token, reset_keys  # noqa: E402
from classquest.config import get_settings  # noqa: E402
from classquest.database import close_db, get_engine, get_session, init_db  # noqa: E402
from classquest.db.base import Base  # noqa: E402


def _ensure_test_keys() -> None:
    """Generate an RSA key pair for signing test tokens."""
    if os.environ.get("CQ_JWT_PRIVATE_KEY_PATH"):
        return

    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    tmpdir = tempfile.mkdtemp(prefix="classquest_test_keys_")
    private_path = os.path.join(tmpdir, "jwt_private.pem")
    public_path = os.path.join(tmpdir, "jwt_public.pem")
    with open(private_path, "wb") as f:
        f.write(
            key.private_bytes(
                serialization.Encoding.PEM,
                serialization.PrivateFormat.PKCS8,
                serialization.NoEncryption(),
            )
        )
    with open(public_path, "wb") as f:
        f.write(
            key.public_key().public_bytes(
                serialization.Encoding.PEM,
                serialization.PublicFormat.SubjectPublicKeyInfo,
            )
        )

    os.environ["CQ_JWT_PRIVATE_KEY_PATH"] = private_path
    os.environ["CQ_JWT_PUBLIC_KEY_PATH"] = public_path
    get_settings.cache_clear()
    reset_keys()


_ensure_test_keys()


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[None, None]:
    """Fresh in-memory database with every table created."""
    await init_db(get_settings().database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await close_db()


@pytest_asyncio.fixture
async def db_session(db_engine: None) -> AsyncGenerator[AsyncSession, None]:
    """A direct database session for service-level tests."""
    async for session in get_session():
        yield session
        break


@pytest_asyncio.fixture
async def client(db_engine: None) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to a fresh app (no lifespan, no Redis)."""
    from classquest.main import create_app

    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def auth_headers(subject: str, email: str | None = None, name: str | None = None) -> dict[str, str]:
    """Bearer header for an identity; the user row is created on first request."""
    token = create_access_token(subject, email=email or f"{subject}@example.com", name=name or subject.title())
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for() -> Callable[..., dict[str, str]]:
    return auth_headers


@pytest_asyncio.fixture
async def player(client: AsyncClient) -> dict[str, str]:
    """An authenticated user with an initialized character (1000 credits)."""
    headers = auth_headers("alice")
    response = await client.post("/api/v1/characters", json={"character_name": "Alice"}, headers=headers)
    assert response.status_code == 201
    return headers


@pytest_asyncio.fixture
async def admin(client: AsyncClient) -> dict[str, str]:
    """An authenticated admin with an initialized character."""
    headers = auth_headers("teacher")
    response = await client.post("/api/v1/characters", json={"character_name": "Teacher"}, headers=headers)
    assert response.status_code == 201
    response = await client.post("/api/v1/admin/admins", json={"email": "teacher@example.com"}, headers=headers)
    assert response.status_code == 200
    return headers
