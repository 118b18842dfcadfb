"""
Team service: CRUD for teams inside a workspace of the active account.
"""

from __future__ import annotations

import uuid
from dataclasses import replace

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.context import TenantContext
from app.core.tenancy import TeamRepository, WorkspaceRepository
from app.models.team import Team
from app.models.user import User
from app.policies.registry import authorize, can_perform
from app.services import audit, memberships

from mangroves_shared.schemas.common import Action, AuditAction, TeamRole, TeamStatus
from mangroves_shared.schemas.teams import TeamCreateRequest, TeamUpdateRequest

log = structlog.get_logger()


async def list_teams(
    workspace_id: uuid.UUID, user: User, session: AsyncSession, tenant: TenantContext
) -> list[Team]:
    workspace = await WorkspaceRepository(session, tenant).find(workspace_id)
    scoped = replace(tenant, workspace=workspace)
    await authorize(session, user, Action.LIST, Team, scoped)
    teams = await TeamRepository(session, scoped).all(Team.workspace_id == workspace.id, order_by=Team.name)
    return [team for team in teams if await can_perform(session, user, Action.VIEW, team, scoped)]


async def get_team(team_id: uuid.UUID, user: User, session: AsyncSession, tenant: TenantContext) -> Team:
    team = await TeamRepository(session, tenant).find(team_id)
    await authorize(session, user, Action.VIEW, team, tenant)
    return team


async def create_team(
    workspace_id: uuid.UUID,
    req: TeamCreateRequest,
    creator: User,
    session: AsyncSession,
    tenant: TenantContext,
) -> Team:
    """Create a team in a workspace of the tenant's account; the creator becomes its lead."""
    workspace = await WorkspaceRepository(session, tenant).find(workspace_id)
    scoped = replace(tenant, workspace=workspace)
    await authorize(session, creator, Action.CREATE, Team, scoped)

    team = await TeamRepository(session, scoped).create(
        workspace_id=workspace.id,
        name=req.name,
        slug=req.slug or "",
        description=req.description,
        status=TeamStatus.ACTIVE.value,
    )
    await memberships.add_member(session, scoped, team, creator, TeamRole.LEAD)
    await audit.record(
        session,
        AuditAction.TEAM_CREATE,
        team,
        {"name": team.name, "slug": team.slug, "workspace_id": workspace.id},
        tenant=scoped,
    )
    log.info("team.created", team_id=str(team.id), workspace_id=str(workspace.id), slug=team.slug)
    return team


async def update_team(
    team_id: uuid.UUID,
    req: TeamUpdateRequest,
    user: User,
    session: AsyncSession,
    tenant: TenantContext,
) -> Team:
    repo = TeamRepository(session, tenant)
    team = await repo.find(team_id)
    await authorize(session, user, Action.UPDATE, team, tenant)

    changes = {
        field: (value.value if hasattr(value, "value") else value)
        for field, value in req.model_dump(exclude_unset=True).items()
    }
    before = {field: getattr(team, field) for field in changes}
    team = await repo.update(team, **changes)

    await audit.record(
        session,
        AuditAction.TEAM_UPDATE,
        team,
        {"changes": {f: {"from": before[f], "to": v} for f, v in changes.items() if before[f] != v}},
        tenant=tenant,
    )
    log.info("team.updated", team_id=str(team.id), fields=sorted(changes))
    return team


async def destroy_team(team_id: uuid.UUID, user: User, session: AsyncSession, tenant: TenantContext) -> None:
    repo = TeamRepository(session, tenant)
    team = await repo.find(team_id)
    await authorize(session, user, Action.DELETE, team, tenant)

    await audit.record(
        session,
        AuditAction.TEAM_DELETE,
        team,
        {"team_id": team.id, "slug": team.slug, "workspace_id": team.workspace_id},
        tenant=tenant,
    )
    await repo.delete(team)
    log.info("team.destroyed", team_id=str(team_id))
