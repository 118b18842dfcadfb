"""
Authentication endpoints.

- Email/Password registration & login
- Bearer JWT sessions (logout revokes the token id in Redis)
"""

from __future__ import annotations

from dataclasses import replace

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import (
    create_jwt,
    get_tenant_context,
    get_token_payload,
    revoke_jwt,
)
from app.core.config import get_settings
from app.core.context import TenantContext, current_context, derive_tenant
from app.core.database import get_session
from app.services import audit
from app.services import users as user_service

from mangroves_shared.schemas.common import AuditAction
from mangroves_shared.schemas.users import LoginRequest, RegisterRequest, TokenResponse, UserResponse

log = structlog.get_logger()
settings = get_settings()
router = APIRouter()


def _client_meta(request: Request) -> dict:
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }


@router.post("/register", response_model=UserResponse, status_code=201)
async def register(
    body: RegisterRequest,
    session: AsyncSession = Depends(get_session),
):
    """Register a new user with email/password. Accounts are created via onboarding."""
    user = await user_service.register_user(body, session)
    return UserResponse.model_validate(user)


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    request: Request,
    session: AsyncSession = Depends(get_session),
):
    """Authenticate with email/password and receive a bearer token."""
    user = await user_service.authenticate(body.email, body.password, session)
    if user is None:
        log.warning("auth.login_failure", email=body.email)
        raise HTTPException(status_code=401, detail="Invalid email or password")

    account, workspace = await derive_tenant(session, user)
    tenant = replace(current_context(), user=user, account=account, workspace=workspace)
    await audit.record(session, AuditAction.USER_LOGIN, user, tenant=tenant, **_client_meta(request))

    token, _jti = create_jwt(user.id)
    log.info("auth.login_success", user_id=str(user.id))
    return TokenResponse(access_token=token)


@router.post("/logout")
async def logout(
    request: Request,
    payload: dict = Depends(get_token_payload),
    tenant: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    """Invalidate the current session."""
    jti = payload.get("jti")
    if jti:
        await revoke_jwt(jti, ttl_seconds=settings.jwt_expire_minutes * 60)
    await audit.record(session, AuditAction.USER_LOGOUT, tenant.user, tenant=tenant, **_client_meta(request))
    log.info("auth.logout", user_id=str(tenant.user_id))
    return {"message": "Logged out"}


@router.get("/me", response_model=UserResponse)
async def me(tenant: TenantContext = Depends(get_tenant_context)):
    return UserResponse.model_validate(tenant.user)
