"""
Shared fixtures: a file-backed SQLite database per test, model factories and
an API client wired to that database.

Each test gets its own database file so parallel sessions (concurrency and
API tests) see each other's committed writes. Fixtures that hold a write
transaction (``session``) must not be combined with ``client`` in one test.
"""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from app.core.auth import create_jwt
from app.core.context import TenantContext, reset_context
from app.core.database import build_engine, build_session_factory, get_session, init_db
from app.main import app
from app.models.user import User
from app.services import accounts as account_service
from app.services import onboarding as onboarding_service

from mangroves_shared.schemas.accounts import AccountCreateRequest, OnboardingRequest


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'mangroves.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture(autouse=True)
def clean_context():
    """No test starts or ends with a tenant installed."""
    reset_context()
    yield
    reset_context()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

async def build_user(session, email: str | None = None, **fields) -> User:
    user = User(
        email=email or f"user-{uuid.uuid4().hex[:8]}@example.com",
        first_name=fields.pop("first_name", "Test"),
        last_name=fields.pop("last_name", "User"),
        **fields,
    )
    session.add(user)
    await session.flush()
    return user


async def build_account(session, owner: User, name: str = "Acme Corp", **fields):
    req = AccountCreateRequest(name=name, **fields)
    return await account_service.create_account(req, owner, session, TenantContext(user=owner))


async def build_tenant(session, owner: User, name: str = "Acme Corp") -> TenantContext:
    """Onboard ``owner`` and return the resulting (user, account, workspace) context."""
    result = await onboarding_service.onboard(
        OnboardingRequest(name=name), owner, session, TenantContext(user=owner)
    )
    return TenantContext(user=owner, account=result.account, workspace=result.workspace)


@pytest.fixture
def make_user(session):
    async def _make(email: str | None = None, **fields) -> User:
        return await build_user(session, email, **fields)
    return _make


@pytest.fixture
def make_account(session):
    async def _make(owner: User, name: str = "Acme Corp", **fields):
        return await build_account(session, owner, name, **fields)
    return _make


@pytest.fixture
def make_tenant(session):
    async def _make(owner: User, name: str = "Acme Corp") -> TenantContext:
        return await build_tenant(session, owner, name)
    return _make


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------

@pytest.fixture
def auth_headers():
    """Bearer headers for a user, as issued by /auth/login."""

    def _headers(user: User) -> dict[str, str]:
        token, _jti = create_jwt(user.id)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def committed(session_factory):
    """Run ``body(session)`` in its own transaction and commit it.

    API tests set up data this way so the write lock is released before the
    client's request sessions need it.
    """

    async def _run(body):
        async with session_factory() as s:
            result = await body(s)
            await s.commit()
            return result

    return _run


@pytest.fixture
def api_user(committed):
    async def _make(email: str | None = None, **fields) -> User:
        return await committed(lambda s: build_user(s, email, **fields))
    return _make


@pytest.fixture
def api_tenant(committed):
    async def _make(owner: User, name: str = "Acme Corp") -> TenantContext:
        return await committed(lambda s: build_tenant(s, owner, name))
    return _make


@pytest.fixture
async def client(session_factory):
    """ASGI client against the test database; Redis calls are stubbed out."""

    async def _get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = _get_session
    with patch("app.core.auth.is_jwt_revoked", AsyncMock(return_value=False)), \
            patch("app.api.v1.auth.revoke_jwt", AsyncMock()):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac
    app.dependency_overrides.clear()
