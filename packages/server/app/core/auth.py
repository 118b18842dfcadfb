"""
Authentication for the HTTP boundary.

- Email/password login with bcrypt hashes
- Bearer JWT sessions with a Redis revocation list
- FastAPI dependencies that install the tenant context for a request
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
import structlog
from fastapi import Depends, HTTPException, Request
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.context import TenantContext, current_context, set_account, set_user, set_workspace
from app.core.database import get_session
from app.core.errors import NotFoundError
from app.core.redis import get_redis, revoked_jwt_key
from app.models.account import Account
from app.models.user import User

from mangroves_shared.schemas.common import UserStatus

log = structlog.get_logger()
settings = get_settings()

api_key_header = APIKeyHeader(name="Authorization", auto_error=False)

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def hash_password(password: str) -> str:
    """Hash a password using bcrypt with cost factor 12."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=12)).decode()


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash."""
    return bcrypt.checkpw(password.encode(), hashed.encode())


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_jwt(
    user_id: uuid.UUID,
    *,
    expires_delta: timedelta | None = None,
) -> tuple[str, str]:
    """Create a signed JWT. Returns (token, jti).

    The token carries identity only; tenant and roles are read fresh from the
    database on every request.
    """
    jti = str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": exp,
        "jti": jti,
    }
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token, jti


def decode_jwt(token: str) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


# ---------------------------------------------------------------------------
# JWT Revocation (Redis)
# ---------------------------------------------------------------------------

async def revoke_jwt(jti: str, ttl_seconds: int = 3600) -> None:
    """Add a JWT ID to the revocation list in Redis."""
    redis = await get_redis()
    await redis.setex(revoked_jwt_key(jti), ttl_seconds, "1")


async def is_jwt_revoked(jti: str) -> bool:
    """Check if a JWT ID has been revoked."""
    redis = await get_redis()
    return await redis.exists(revoked_jwt_key(jti)) > 0


# ---------------------------------------------------------------------------
# Authentication dependencies
# ---------------------------------------------------------------------------

def _bearer_token(authorization: Optional[str]) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Authentication required")
    return authorization[7:].strip()


async def get_token_payload(authorization: Optional[str] = Depends(api_key_header)) -> dict:
    token = _bearer_token(authorization)
    try:
        payload = decode_jwt(token)
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    jti = payload.get("jti")
    if jti and await is_jwt_revoked(jti):
        raise HTTPException(status_code=401, detail="Session has been revoked")
    return payload


async def get_current_user(
    payload: dict = Depends(get_token_payload),
    session: AsyncSession = Depends(get_session),
) -> User:
    try:
        user_id = uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    user = await session.get(User, user_id)
    if user is None or user.status != UserStatus.ACTIVE.value:
        raise HTTPException(status_code=401, detail="User not found")
    return user


async def get_tenant_context(
    request: Request,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> TenantContext:
    """Authenticated request: install the user and the tenant derived from it."""
    tenant = await set_user(session, user)
    structlog.contextvars.bind_contextvars(
        user_id=str(user.id),
        account_id=str(tenant.account_id) if tenant.account_id else None,
    )
    request.state.tenant = tenant
    return tenant


async def get_account_tenant(
    account_slug: str,
    request: Request,
    tenant: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
) -> TenantContext:
    """Tenant for ``/accounts/{account_slug}/...`` routes.

    The account named in the path overrides the derived one. A derived
    workspace from another account is dropped.
    """
    result = await session.execute(select(Account).where(Account.slug == account_slug))
    account = result.scalars().first()
    if account is None:
        raise NotFoundError("Account")

    set_account(account)
    if tenant.workspace is not None and tenant.workspace.account_id != account.id:
        set_workspace(None)
    tenant = current_context()
    structlog.contextvars.bind_contextvars(account_id=str(account.id))
    request.state.tenant = tenant
    return tenant
