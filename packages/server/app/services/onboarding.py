"""
Onboarding: first account for a freshly signed-up user.

One transaction creates the account (owned by the user), a "Default"
workspace with slug ``default``, active owner memberships on both, and points
the user's current workspace at it.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.context import TenantContext
from app.core.tenancy import WorkspaceRepository
from app.models.account import Account
from app.models.user import User
from app.models.workspace import Workspace
from app.services import accounts, audit, memberships

from mangroves_shared.schemas.accounts import AccountCreateRequest, OnboardingRequest
from mangroves_shared.schemas.common import AuditAction, MembershipRole, WorkspaceStatus

log = structlog.get_logger()

DEFAULT_WORKSPACE_NAME = "Default"
DEFAULT_WORKSPACE_SLUG = "default"


@dataclass
class OnboardingResult:
    account: Account
    workspace: Workspace


async def onboard(
    req: OnboardingRequest,
    user: User,
    session: AsyncSession,
    tenant: TenantContext,
) -> OnboardingResult:
    async with session.begin_nested():
        account = await accounts.create_account(
            AccountCreateRequest(name=req.name), user, session, tenant
        )
        scoped = replace(tenant, user=user, account=account)

        workspace = await WorkspaceRepository(session, scoped).create(
            name=DEFAULT_WORKSPACE_NAME,
            slug=DEFAULT_WORKSPACE_SLUG,
            status=WorkspaceStatus.ACTIVE.value,
        )
        scoped = replace(scoped, workspace=workspace)
        await memberships.add_member(session, scoped, workspace, user, MembershipRole.OWNER)
        await audit.record(
            session,
            AuditAction.WORKSPACE_CREATE,
            workspace,
            {"name": workspace.name, "slug": workspace.slug, "onboarding": True},
            tenant=scoped,
        )

        user.current_workspace_id = workspace.id
        session.add(user)
        await session.flush()

    log.info(
        "onboarding.completed",
        user_id=str(user.id),
        account_id=str(account.id),
        workspace_id=str(workspace.id),
    )
    return OnboardingResult(account=account, workspace=workspace)
