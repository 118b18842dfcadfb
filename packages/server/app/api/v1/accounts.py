"""
Account API endpoints.

GET    /api/v1/accounts                                 - Accounts the user is an active member of
POST   /api/v1/accounts                                 - Create an account (creator becomes owner)
GET    /api/v1/accounts/{account_slug}                  - Account details
PATCH  /api/v1/accounts/{account_slug}                  - Update (admin+)
DELETE /api/v1/accounts/{account_slug}                  - Destroy with cascade (owner)
POST   /api/v1/accounts/{account_slug}/switch           - Switch the current workspace into this account
GET    /api/v1/accounts/{account_slug}/audit            - Audit trail (admin+)
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_account_tenant, get_tenant_context
from app.core.context import TenantContext
from app.core.database import get_session
from app.models.account import Account
from app.policies.registry import authorize
from app.services import accounts as account_service
from app.services import audit as audit_service

from mangroves_shared.schemas.accounts import (
    AccountCreateRequest,
    AccountListResponse,
    AccountResponse,
    AccountUpdateRequest,
)
from mangroves_shared.schemas.audit import AuditEventListResponse, AuditEventResponse
from mangroves_shared.schemas.common import Action
from mangroves_shared.schemas.workspaces import WorkspaceResponse

log = structlog.get_logger()

router_global = APIRouter()
router_scoped = APIRouter()


@router_global.get("/accounts", response_model=AccountListResponse, tags=["Accounts"])
async def list_accounts(
    tenant: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    await authorize(session, tenant.user, Action.LIST, Account, tenant)
    items = await account_service.list_user_accounts(tenant.user, session)
    return AccountListResponse(data=items)


@router_global.post("/accounts", response_model=AccountResponse, status_code=201, tags=["Accounts"])
async def create_account(
    body: AccountCreateRequest,
    tenant: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    account = await account_service.create_account(body, tenant.user, session, tenant)
    return AccountResponse.model_validate(account)


@router_scoped.get("", response_model=AccountResponse, tags=["Accounts"])
async def get_account(
    tenant: TenantContext = Depends(get_account_tenant),
    session: AsyncSession = Depends(get_session),
):
    await authorize(session, tenant.user, Action.VIEW, tenant.account, tenant)
    return AccountResponse.model_validate(tenant.account)


@router_scoped.patch("", response_model=AccountResponse, tags=["Accounts"])
async def update_account(
    body: AccountUpdateRequest,
    tenant: TenantContext = Depends(get_account_tenant),
    session: AsyncSession = Depends(get_session),
):
    account = await account_service.update_account(tenant.account, body, tenant.user, session, tenant)
    return AccountResponse.model_validate(account)


@router_scoped.delete("", status_code=204, tags=["Accounts"])
async def destroy_account(
    tenant: TenantContext = Depends(get_account_tenant),
    session: AsyncSession = Depends(get_session),
):
    await account_service.destroy_account(tenant.account, tenant.user, session, tenant)


@router_scoped.post("/switch", response_model=WorkspaceResponse, tags=["Accounts"])
async def switch_account(
    tenant: TenantContext = Depends(get_account_tenant),
    session: AsyncSession = Depends(get_session),
):
    """Move the user's current workspace into this account. Returns the workspace chosen."""
    workspace = await account_service.switch_account(tenant.account, tenant.user, session, tenant)
    return WorkspaceResponse.model_validate(workspace)


@router_scoped.get("/audit", response_model=AuditEventListResponse, tags=["Audit"])
async def list_audit_events(
    limit: int = Query(100, ge=1, le=500),
    tenant: TenantContext = Depends(get_account_tenant),
    session: AsyncSession = Depends(get_session),
):
    """Audit trail of the account, most recent first (admin+)."""
    await authorize(session, tenant.user, Action.UPDATE, tenant.account, tenant)
    events = await audit_service.for_account(session, tenant.account_id, limit=limit)
    return AuditEventListResponse(
        data=[
            AuditEventResponse(
                id=e.id,
                action=e.action,
                subject_kind=e.subject_kind,
                subject_id=e.subject_id,
                user_id=e.user_id,
                account_id=e.account_id,
                workspace_id=e.workspace_id,
                metadata=e.meta,
                created_at=e.created_at,
            )
            for e in events
        ]
    )
