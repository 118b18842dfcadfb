"""
Workspace service: CRUD within the active account plus workspace switching.
"""

from __future__ import annotations

import uuid
from dataclasses import replace

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.context import TenantContext
from app.core.errors import MissingTenantError
from app.core.tenancy import WorkspaceRepository
from app.models.user import User
from app.models.workspace import Workspace
from app.policies.registry import authorize, can_perform
from app.services import audit, memberships

from mangroves_shared.schemas.common import Action, AuditAction, MembershipRole, WorkspaceStatus
from mangroves_shared.schemas.workspaces import WorkspaceCreateRequest, WorkspaceUpdateRequest

log = structlog.get_logger()


async def list_workspaces(user: User, session: AsyncSession, tenant: TenantContext) -> list[Workspace]:
    """Active workspaces of the tenant's account that the user can view."""
    await authorize(session, user, Action.LIST, Workspace, tenant)
    repo = WorkspaceRepository(session, tenant)
    workspaces = await repo.all(Workspace.status == WorkspaceStatus.ACTIVE.value, order_by=Workspace.name)
    return [ws for ws in workspaces if await can_perform(session, user, Action.VIEW, ws, tenant)]


async def get_workspace(workspace_id: uuid.UUID, user: User, session: AsyncSession, tenant: TenantContext) -> Workspace:
    workspace = await WorkspaceRepository(session, tenant).find(workspace_id)
    await authorize(session, user, Action.VIEW, workspace, tenant)
    return workspace


async def create_workspace(
    req: WorkspaceCreateRequest,
    creator: User,
    session: AsyncSession,
    tenant: TenantContext,
) -> Workspace:
    """Create a workspace in the tenant's account; the creator becomes its owner."""
    if tenant.account_id is None:
        raise MissingTenantError("Workspace")
    await authorize(session, creator, Action.CREATE, Workspace, tenant)

    workspace = await WorkspaceRepository(session, tenant).create(
        name=req.name,
        slug=req.slug or "",
        description=req.description,
        status=WorkspaceStatus.ACTIVE.value,
    )
    scoped = replace(tenant, workspace=workspace)
    await memberships.add_member(session, scoped, workspace, creator, MembershipRole.OWNER)
    await audit.record(
        session,
        AuditAction.WORKSPACE_CREATE,
        workspace,
        {"name": workspace.name, "slug": workspace.slug},
        tenant=scoped,
    )
    log.info(
        "workspace.created",
        workspace_id=str(workspace.id),
        account_id=str(workspace.account_id),
        slug=workspace.slug,
    )
    return workspace


async def update_workspace(
    workspace_id: uuid.UUID,
    req: WorkspaceUpdateRequest,
    user: User,
    session: AsyncSession,
    tenant: TenantContext,
) -> Workspace:
    repo = WorkspaceRepository(session, tenant)
    workspace = await repo.find(workspace_id)
    await authorize(session, user, Action.UPDATE, workspace, tenant)

    changes = {
        field: (value.value if hasattr(value, "value") else value)
        for field, value in req.model_dump(exclude_unset=True).items()
    }
    before = {field: getattr(workspace, field) for field in changes}
    workspace = await repo.update(workspace, **changes)

    await audit.record(
        session,
        AuditAction.WORKSPACE_UPDATE,
        workspace,
        {"changes": {f: {"from": before[f], "to": v} for f, v in changes.items() if before[f] != v}},
        tenant=tenant,
    )
    log.info("workspace.updated", workspace_id=str(workspace.id), fields=sorted(changes))
    return workspace


async def destroy_workspace(
    workspace_id: uuid.UUID,
    user: User,
    session: AsyncSession,
    tenant: TenantContext,
) -> None:
    """Delete a workspace. The database cascades to its teams and memberships."""
    repo = WorkspaceRepository(session, tenant)
    workspace = await repo.find(workspace_id)
    await authorize(session, user, Action.DELETE, workspace, tenant)

    await audit.record(
        session,
        AuditAction.WORKSPACE_DELETE,
        workspace,
        {"workspace_id": workspace.id, "slug": workspace.slug, "name": workspace.name},
        tenant=tenant,
    )
    await repo.delete(workspace)
    log.info("workspace.destroyed", workspace_id=str(workspace_id), account_id=str(tenant.account_id))


async def switch_workspace(
    workspace_id: uuid.UUID,
    user: User,
    session: AsyncSession,
    tenant: TenantContext,
) -> Workspace:
    """Point the user's current workspace at ``workspace_id`` (last write wins)."""
    workspace = await WorkspaceRepository(session, tenant).find(workspace_id)
    await authorize(session, user, Action.VIEW, workspace, tenant)

    previous_workspace_id = user.current_workspace_id
    user.current_workspace_id = workspace.id
    session.add(user)
    await session.flush()

    await audit.record(
        session,
        AuditAction.WORKSPACE_SWITCH,
        workspace,
        {"previous_workspace_id": previous_workspace_id, "new_workspace_id": workspace.id},
        tenant=tenant,
    )
    log.info("workspace.switched", user_id=str(user.id), workspace_id=str(workspace.id))
    return workspace
