"""
Workspace API endpoints (account-scoped).

GET    /api/v1/accounts/{account_slug}/workspaces                        - List visible workspaces
POST   /api/v1/accounts/{account_slug}/workspaces                        - Create (account member+)
GET    /api/v1/accounts/{account_slug}/workspaces/{workspace_id}         - Details
PATCH  /api/v1/accounts/{account_slug}/workspaces/{workspace_id}         - Update (workspace admin+)
DELETE /api/v1/accounts/{account_slug}/workspaces/{workspace_id}         - Destroy (workspace owner)
POST   /api/v1/accounts/{account_slug}/workspaces/{workspace_id}/switch  - Make it the current workspace
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_account_tenant
from app.core.context import TenantContext
from app.core.database import get_session
from app.services import workspaces as workspace_service

from mangroves_shared.schemas.workspaces import (
    WorkspaceCreateRequest,
    WorkspaceListResponse,
    WorkspaceResponse,
    WorkspaceUpdateRequest,
)

router = APIRouter()


@router.get("", response_model=WorkspaceListResponse)
async def list_workspaces(
    tenant: TenantContext = Depends(get_account_tenant),
    session: AsyncSession = Depends(get_session),
):
    items = await workspace_service.list_workspaces(tenant.user, session, tenant)
    return WorkspaceListResponse(data=[WorkspaceResponse.model_validate(w) for w in items])


@router.post("", response_model=WorkspaceResponse, status_code=201)
async def create_workspace(
    body: WorkspaceCreateRequest,
    tenant: TenantContext = Depends(get_account_tenant),
    session: AsyncSession = Depends(get_session),
):
    workspace = await workspace_service.create_workspace(body, tenant.user, session, tenant)
    return WorkspaceResponse.model_validate(workspace)


@router.get("/{workspace_id}", response_model=WorkspaceResponse)
async def get_workspace(
    workspace_id: uuid.UUID,
    tenant: TenantContext = Depends(get_account_tenant),
    session: AsyncSession = Depends(get_session),
):
    workspace = await workspace_service.get_workspace(workspace_id, tenant.user, session, tenant)
    return WorkspaceResponse.model_validate(workspace)


@router.patch("/{workspace_id}", response_model=WorkspaceResponse)
async def update_workspace(
    workspace_id: uuid.UUID,
    body: WorkspaceUpdateRequest,
    tenant: TenantContext = Depends(get_account_tenant),
    session: AsyncSession = Depends(get_session),
):
    workspace = await workspace_service.update_workspace(workspace_id, body, tenant.user, session, tenant)
    return WorkspaceResponse.model_validate(workspace)


@router.delete("/{workspace_id}", status_code=204)
async def destroy_workspace(
    workspace_id: uuid.UUID,
    tenant: TenantContext = Depends(get_account_tenant),
    session: AsyncSession = Depends(get_session),
):
    await workspace_service.destroy_workspace(workspace_id, tenant.user, session, tenant)


@router.post("/{workspace_id}/switch", response_model=WorkspaceResponse)
async def switch_workspace(
    workspace_id: uuid.UUID,
    tenant: TenantContext = Depends(get_account_tenant),
    session: AsyncSession = Depends(get_session),
):
    workspace = await workspace_service.switch_workspace(workspace_id, tenant.user, session, tenant)
    return WorkspaceResponse.model_validate(workspace)
