"""
Account service: business logic for account CRUD and tenant switching.
"""

from __future__ import annotations

import uuid
from dataclasses import replace
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.context import TenantContext
from app.core.errors import NotFoundError
from app.core.slugs import SlugScope, allocate_slug, ensure_slug_available, persist_with_slug
from app.models.account import Account
from app.models.memberships import AccountMembership, WorkspaceMembership
from app.models.user import User
from app.models.workspace import Workspace
from app.policies.registry import authorize
from app.services import audit, memberships

from mangroves_shared.schemas.accounts import AccountCreateRequest, AccountUpdateRequest
from mangroves_shared.schemas.common import (
    Action,
    AccountStatus,
    AuditAction,
    MembershipRole,
    MembershipStatus,
    WorkspaceStatus,
)

log = structlog.get_logger()


async def get_account_by_slug(slug: str, session: AsyncSession) -> Account:
    result = await session.execute(select(Account).where(Account.slug == slug))
    account = result.scalars().first()
    if account is None:
        raise NotFoundError("Account")
    return account


async def list_user_accounts(user: User, session: AsyncSession) -> list[dict]:
    """Accounts the user is an active member of, with their role."""
    result = await session.execute(
        select(Account, AccountMembership.role)
        .join(AccountMembership, AccountMembership.account_id == Account.id)
        .where(
            AccountMembership.user_id == user.id,
            AccountMembership.status == MembershipStatus.ACTIVE.value,
        )
        .order_by(Account.name)
    )
    return [
        {
            "id": account.id,
            "name": account.name,
            "slug": account.slug,
            "status": account.status,
            "role": role,
        }
        for account, role in result.all()
    ]


async def create_account(
    req: AccountCreateRequest,
    creator: User,
    session: AsyncSession,
    tenant: TenantContext,
    *,
    owner_membership: bool = True,
) -> Account:
    """Create an account; the creator becomes its owner and an active owner member."""
    await authorize(session, creator, Action.CREATE, Account, tenant)

    account = Account(
        name=req.name,
        slug=req.slug or "",
        billing_email=req.billing_email,
        plan=req.plan.value,
        status=AccountStatus.ACTIVE.value,
        owner_id=creator.id,
    )
    await persist_with_slug(session, account, SlugScope.ACCOUNT, explicit=bool(req.slug))

    # The new account is the tenant for everything that follows.
    scoped = replace(tenant, user=creator, account=account, workspace=None)
    if owner_membership:
        await memberships.add_member(session, scoped, account, creator, MembershipRole.OWNER)

    await audit.record(
        session,
        AuditAction.ACCOUNT_CREATE,
        account,
        {"name": account.name, "slug": account.slug},
        tenant=scoped,
    )
    log.info("account.created", account_id=str(account.id), slug=account.slug, creator=str(creator.id))
    return account


async def update_account(
    account: Account,
    req: AccountUpdateRequest,
    user: User,
    session: AsyncSession,
    tenant: TenantContext,
) -> Account:
    await authorize(session, user, Action.UPDATE, account, tenant)

    changes = {}
    for field, value in req.model_dump(exclude_unset=True).items():
        if hasattr(value, "value"):
            value = value.value
        if getattr(account, field) != value:
            changes[field] = {"from": getattr(account, field), "to": value}
            setattr(account, field, value)

    session.add(account)
    await session.flush()

    await audit.record(session, AuditAction.ACCOUNT_UPDATE, account, {"changes": changes}, tenant=tenant)
    log.info("account.updated", account_id=str(account.id), fields=sorted(changes))
    return account


async def regenerate_slug(
    account: Account,
    user: User,
    session: AsyncSession,
    tenant: TenantContext,
    *,
    slug: Optional[str] = None,
) -> Account:
    """Replace an account's slug; the only way a slug changes after creation."""
    await authorize(session, user, Action.UPDATE, account, tenant)
    old_slug = account.slug
    if slug is not None:
        await ensure_slug_available(session, slug, SlugScope.ACCOUNT, exclude_id=account.id)
        account.slug = slug
    else:
        account.slug = await allocate_slug(session, account.name, SlugScope.ACCOUNT)
    session.add(account)
    await session.flush()
    await audit.record(
        session,
        AuditAction.ACCOUNT_UPDATE,
        account,
        {"changes": {"slug": {"from": old_slug, "to": account.slug}}},
        tenant=tenant,
    )
    return account


async def destroy_account(
    account: Account,
    user: User,
    session: AsyncSession,
    tenant: TenantContext,
) -> None:
    """Delete an account. The database cascades to workspaces, teams and all memberships."""
    await authorize(session, user, Action.DELETE, account, tenant)

    await audit.record(
        session,
        AuditAction.ACCOUNT_DELETE,
        account,
        {"account_id": account.id, "slug": account.slug, "name": account.name},
        tenant=tenant,
    )
    account_id = account.id
    await session.delete(account)
    await session.flush()
    log.info("account.destroyed", account_id=str(account_id))


async def first_accessible_workspace(
    session: AsyncSession, user: User, account_id: uuid.UUID
) -> Optional[Workspace]:
    """First active workspace in the account on which the user is an active member."""
    result = await session.execute(
        select(Workspace)
        .join(WorkspaceMembership, WorkspaceMembership.workspace_id == Workspace.id)
        .where(
            Workspace.account_id == account_id,
            Workspace.status == WorkspaceStatus.ACTIVE.value,
            WorkspaceMembership.user_id == user.id,
            WorkspaceMembership.status == MembershipStatus.ACTIVE.value,
        )
        .order_by(Workspace.created_at, Workspace.name)
        .limit(1)
    )
    return result.scalars().first()


async def switch_account(
    account: Account,
    user: User,
    session: AsyncSession,
    tenant: TenantContext,
) -> Workspace:
    """Point the user's current workspace into ``account``.

    Requires view permission on the account and an active membership on one
    of its active workspaces. Concurrent switches are last-write-wins. The
    caller's context is not touched; the next unit of work derives from the
    new pointer.
    """
    await authorize(session, user, Action.VIEW, account, tenant)

    workspace = await first_accessible_workspace(session, user, account.id)
    if workspace is None:
        raise NotFoundError("Workspace")

    previous_account_id = tenant.account_id
    user.current_workspace_id = workspace.id
    session.add(user)
    await session.flush()

    await audit.record(
        session,
        AuditAction.ACCOUNT_SWITCH,
        account,
        {
            "previous_account_id": previous_account_id,
            "new_account_id": account.id,
            "workspace_id": workspace.id,
        },
        tenant=tenant,
    )
    log.info(
        "account.switched",
        user_id=str(user.id),
        account_id=str(account.id),
        workspace_id=str(workspace.id),
    )
    return workspace
