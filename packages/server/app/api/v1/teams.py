"""
Team API endpoints (account-scoped).

GET    /api/v1/accounts/{account_slug}/workspaces/{workspace_id}/teams  - List visible teams
POST   /api/v1/accounts/{account_slug}/workspaces/{workspace_id}/teams  - Create (workspace member+)
GET    /api/v1/accounts/{account_slug}/teams/{team_id}                  - Details
PATCH  /api/v1/accounts/{account_slug}/teams/{team_id}                  - Update (lead)
DELETE /api/v1/accounts/{account_slug}/teams/{team_id}                  - Destroy (lead)
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_account_tenant
from app.core.context import TenantContext
from app.core.database import get_session
from app.services import teams as team_service

from mangroves_shared.schemas.teams import (
    TeamCreateRequest,
    TeamListResponse,
    TeamResponse,
    TeamUpdateRequest,
)

router = APIRouter()


@router.get("/workspaces/{workspace_id}/teams", response_model=TeamListResponse)
async def list_teams(
    workspace_id: uuid.UUID,
    tenant: TenantContext = Depends(get_account_tenant),
    session: AsyncSession = Depends(get_session),
):
    items = await team_service.list_teams(workspace_id, tenant.user, session, tenant)
    return TeamListResponse(data=[TeamResponse.model_validate(t) for t in items])


@router.post("/workspaces/{workspace_id}/teams", response_model=TeamResponse, status_code=201)
async def create_team(
    workspace_id: uuid.UUID,
    body: TeamCreateRequest,
    tenant: TenantContext = Depends(get_account_tenant),
    session: AsyncSession = Depends(get_session),
):
    team = await team_service.create_team(workspace_id, body, tenant.user, session, tenant)
    return TeamResponse.model_validate(team)


@router.get("/teams/{team_id}", response_model=TeamResponse)
async def get_team(
    team_id: uuid.UUID,
    tenant: TenantContext = Depends(get_account_tenant),
    session: AsyncSession = Depends(get_session),
):
    team = await team_service.get_team(team_id, tenant.user, session, tenant)
    return TeamResponse.model_validate(team)


@router.patch("/teams/{team_id}", response_model=TeamResponse)
async def update_team(
    team_id: uuid.UUID,
    body: TeamUpdateRequest,
    tenant: TenantContext = Depends(get_account_tenant),
    session: AsyncSession = Depends(get_session),
):
    team = await team_service.update_team(team_id, body, tenant.user, session, tenant)
    return TeamResponse.model_validate(team)


@router.delete("/teams/{team_id}", status_code=204)
async def destroy_team(
    team_id: uuid.UUID,
    tenant: TenantContext = Depends(get_account_tenant),
    session: AsyncSession = Depends(get_session),
):
    await team_service.destroy_team(team_id, tenant.user, session, tenant)
