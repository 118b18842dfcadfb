"""
Membership API endpoints, one set per level.

    /api/v1/accounts/{account_slug}/members
    /api/v1/accounts/{account_slug}/workspaces/{workspace_id}/members
    /api/v1/accounts/{account_slug}/teams/{team_id}/members

GET    .../members                              - List (viewers of the parent)
POST   .../members                              - Invite an existing user (admins/leads)
PATCH  .../members/{membership_id}/role         - Change role (compare-and-swap on lock_version)
POST   .../members/{membership_id}/accept       - Invitee accepts
POST   .../members/{membership_id}/decline      - Invitee declines
POST   .../members/{membership_id}/suspend      - Admin suspends
POST   .../members/{membership_id}/reinstate    - Admin reinstates
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_account_tenant
from app.core.context import TenantContext
from app.core.database import get_session
from app.core.errors import AuthorizationDeniedError, NotFoundError
from app.core.tenancy import TeamRepository, WorkspaceRepository
from app.policies.registry import authorize
from app.services import memberships as membership_service
from app.services import users as user_service

from mangroves_shared.schemas.common import Action
from mangroves_shared.schemas.memberships import (
    MembershipInviteRequest,
    MembershipResponse,
    MembershipRoleUpdate,
    TeamMembershipInviteRequest,
)

log = structlog.get_logger()
router = APIRouter()


async def _parent(level: str, parent_id, tenant: TenantContext, session: AsyncSession):
    if level == "account":
        return tenant.account
    if level == "workspace":
        return await WorkspaceRepository(session, tenant).find(parent_id)
    return await TeamRepository(session, tenant).find(parent_id)


async def _list(level, parent_id, tenant, session):
    parent = await _parent(level, parent_id, tenant, session)
    await authorize(session, tenant.user, Action.VIEW, parent, tenant)
    members = await membership_service.list_memberships(session, parent)
    return [MembershipResponse.model_validate(m) for m in members]


async def _invite(level, parent_id, body, tenant, session):
    parent = await _parent(level, parent_id, tenant, session)
    await authorize(session, tenant.user, Action.UPDATE, parent, tenant)
    invitee = await user_service.get_user_by_email(body.email, session)
    if invitee is None:
        raise NotFoundError("User")
    membership = await membership_service.invite_member(
        session, tenant, parent, invitee, body.role, invited_by=tenant.user
    )
    return MembershipResponse.model_validate(membership)


async def _change_role(level, parent_id, membership_id, body, tenant, session):
    parent = await _parent(level, parent_id, tenant, session)
    await authorize(session, tenant.user, Action.UPDATE, parent, tenant)
    membership = await membership_service.get_membership(session, parent, membership_id)
    membership = await membership_service.change_role(
        session, tenant, membership, body.role, lock_version=body.lock_version
    )
    return MembershipResponse.model_validate(membership)


async def _transition(level, parent_id, membership_id, transition, tenant, session):
    parent = await _parent(level, parent_id, tenant, session)
    membership = await membership_service.get_membership(session, parent, membership_id)
    if transition in ("accept", "decline"):
        if membership.user_id != tenant.user_id:
            raise AuthorizationDeniedError()
    else:
        await authorize(session, tenant.user, Action.UPDATE, parent, tenant)
    handler = getattr(membership_service, transition)
    membership = await handler(session, tenant, membership)
    return MembershipResponse.model_validate(membership)


# ---------------------------------------------------------------------------
# Account members
# ---------------------------------------------------------------------------

@router.get("/members", response_model=list[MembershipResponse], tags=["Memberships"])
async def list_account_members(
    tenant: TenantContext = Depends(get_account_tenant),
    session: AsyncSession = Depends(get_session),
):
    return await _list("account", None, tenant, session)


@router.post("/members", response_model=MembershipResponse, status_code=201, tags=["Memberships"])
async def invite_account_member(
    body: MembershipInviteRequest,
    tenant: TenantContext = Depends(get_account_tenant),
    session: AsyncSession = Depends(get_session),
):
    return await _invite("account", None, body, tenant, session)


@router.patch("/members/{membership_id}/role", response_model=MembershipResponse, tags=["Memberships"])
async def change_account_member_role(
    membership_id: uuid.UUID,
    body: MembershipRoleUpdate,
    tenant: TenantContext = Depends(get_account_tenant),
    session: AsyncSession = Depends(get_session),
):
    return await _change_role("account", None, membership_id, body, tenant, session)


@router.post(
    "/members/{membership_id}/{transition}",
    response_model=MembershipResponse,
    tags=["Memberships"],
)
async def transition_account_member(
    membership_id: uuid.UUID,
    transition: membership_service.Transition,
    tenant: TenantContext = Depends(get_account_tenant),
    session: AsyncSession = Depends(get_session),
):
    return await _transition("account", None, membership_id, transition.value, tenant, session)


# ---------------------------------------------------------------------------
# Workspace members
# ---------------------------------------------------------------------------

@router.get("/workspaces/{workspace_id}/members", response_model=list[MembershipResponse], tags=["Memberships"])
async def list_workspace_members(
    workspace_id: uuid.UUID,
    tenant: TenantContext = Depends(get_account_tenant),
    session: AsyncSession = Depends(get_session),
):
    return await _list("workspace", workspace_id, tenant, session)


@router.post(
    "/workspaces/{workspace_id}/members",
    response_model=MembershipResponse,
    status_code=201,
    tags=["Memberships"],
)
async def invite_workspace_member(
    workspace_id: uuid.UUID,
    body: MembershipInviteRequest,
    tenant: TenantContext = Depends(get_account_tenant),
    session: AsyncSession = Depends(get_session),
):
    return await _invite("workspace", workspace_id, body, tenant, session)


@router.patch(
    "/workspaces/{workspace_id}/members/{membership_id}/role",
    response_model=MembershipResponse,
    tags=["Memberships"],
)
async def change_workspace_member_role(
    workspace_id: uuid.UUID,
    membership_id: uuid.UUID,
    body: MembershipRoleUpdate,
    tenant: TenantContext = Depends(get_account_tenant),
    session: AsyncSession = Depends(get_session),
):
    return await _change_role("workspace", workspace_id, membership_id, body, tenant, session)


@router.post(
    "/workspaces/{workspace_id}/members/{membership_id}/{transition}",
    response_model=MembershipResponse,
    tags=["Memberships"],
)
async def transition_workspace_member(
    workspace_id: uuid.UUID,
    membership_id: uuid.UUID,
    transition: membership_service.Transition,
    tenant: TenantContext = Depends(get_account_tenant),
    session: AsyncSession = Depends(get_session),
):
    return await _transition("workspace", workspace_id, membership_id, transition.value, tenant, session)


# ---------------------------------------------------------------------------
# Team members
# ---------------------------------------------------------------------------

@router.get("/teams/{team_id}/members", response_model=list[MembershipResponse], tags=["Memberships"])
async def list_team_members(
    team_id: uuid.UUID,
    tenant: TenantContext = Depends(get_account_tenant),
    session: AsyncSession = Depends(get_session),
):
    return await _list("team", team_id, tenant, session)


@router.post("/teams/{team_id}/members", response_model=MembershipResponse, status_code=201, tags=["Memberships"])
async def invite_team_member(
    team_id: uuid.UUID,
    body: TeamMembershipInviteRequest,
    tenant: TenantContext = Depends(get_account_tenant),
    session: AsyncSession = Depends(get_session),
):
    return await _invite("team", team_id, body, tenant, session)


@router.patch(
    "/teams/{team_id}/members/{membership_id}/role",
    response_model=MembershipResponse,
    tags=["Memberships"],
)
async def change_team_member_role(
    team_id: uuid.UUID,
    membership_id: uuid.UUID,
    body: MembershipRoleUpdate,
    tenant: TenantContext = Depends(get_account_tenant),
    session: AsyncSession = Depends(get_session),
):
    return await _change_role("team", team_id, membership_id, body, tenant, session)


@router.post(
    "/teams/{team_id}/members/{membership_id}/{transition}",
    response_model=MembershipResponse,
    tags=["Memberships"],
)
async def transition_team_member(
    team_id: uuid.UUID,
    membership_id: uuid.UUID,
    transition: membership_service.Transition,
    tenant: TenantContext = Depends(get_account_tenant),
    session: AsyncSession = Depends(get_session),
):
    return await _transition("team", team_id, membership_id, transition.value, tenant, session)
