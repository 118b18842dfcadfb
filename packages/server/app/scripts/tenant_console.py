"""
Console helpers for tenant context management.

For use from an interactive session (``python -m asyncio``) or scripts:

    from app.scripts.tenant_console import *
    async with get_session_context() as session:
        await list_tenants(session)
        async with with_tenant(session, "acme-corp"):
            ...
        await switch_tenant(session, "acme-corp")
        show_tenant()
        clear_tenant()

Or from the shell:

    python -m app.scripts.tenant_console list
    python -m app.scripts.tenant_console show acme-corp
"""

import argparse
import asyncio
from contextlib import asynccontextmanager
from typing import Optional, Union

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.context import (
    TenantContext,
    current_context,
    isolated_context,
    reset_context,
    scoped_context,
    set_account,
    set_workspace,
)
from app.core.database import get_session_context
from app.core.errors import NotFoundError
from app.models.account import Account
from app.models.memberships import AccountMembership
from app.models.team import Team
from app.models.workspace import Workspace

from mangroves_shared.schemas.common import WorkspaceStatus


async def _resolve_account(session: AsyncSession, account: Union[Account, str]) -> Account:
    if isinstance(account, Account):
        return account
    if not isinstance(account, str):
        raise TypeError("Expected an Account or a slug string")
    result = await session.execute(select(Account).where(Account.slug == account))
    found = result.scalars().first()
    if found is None:
        raise NotFoundError("Account")
    return found


async def _first_active_workspace(session: AsyncSession, account: Account) -> Optional[Workspace]:
    result = await session.execute(
        select(Workspace)
        .where(Workspace.account_id == account.id, Workspace.status == WorkspaceStatus.ACTIVE.value)
        .order_by(Workspace.created_at)
        .limit(1)
    )
    return result.scalars().first()


async def _count(session: AsyncSession, model, *criteria) -> int:
    result = await session.execute(sa.select(sa.func.count()).select_from(model).where(*criteria))
    return result.scalar_one()


@asynccontextmanager
async def with_tenant(session: AsyncSession, account: Union[Account, str]):
    """Run the block inside ``account`` (and its first active workspace)."""
    account = await _resolve_account(session, account)
    workspace = await _first_active_workspace(session, account)
    async with scoped_context(account=account, workspace=workspace) as tenant:
        print(f"Switched to: {account.name} ({account.slug})")
        yield tenant
    print("Restored previous tenant")


@asynccontextmanager
async def without_tenant():
    """Run the block with an empty context; the previous one comes back afterwards."""
    async with isolated_context() as tenant:
        print("Cleared tenant context")
        yield tenant
    print("Restored tenant context")


async def switch_tenant(session: AsyncSession, account: Union[Account, str]) -> Account:
    """Switch for the rest of the console session."""
    account = await _resolve_account(session, account)
    workspace = await _first_active_workspace(session, account)
    set_account(account)
    set_workspace(workspace)

    users = await _count(session, AccountMembership, AccountMembership.account_id == account.id)
    workspaces = await _count(session, Workspace, Workspace.account_id == account.id)
    print(f"Switched to: {account.name} ({account.slug})")
    print(f"  Workspace: {workspace.name if workspace else '(none)'}")
    print(f"  Users: {users}")
    print(f"  Workspaces: {workspaces}")
    return account


def show_tenant() -> TenantContext:
    tenant = current_context()
    if tenant.account is None:
        print("\nNo tenant context set")
        print("   Use: await switch_tenant(session, 'account-slug')")
        print("   Or:  async with with_tenant(session, 'account-slug'): ...")
        return tenant

    print("\nCurrent Tenant Context")
    print("-" * 60)
    print(f"Account:    {tenant.account.name} ({tenant.account.slug})")
    print(f"Status:     {tenant.account.status}")
    print(f"Plan:       {tenant.account.plan}")
    if tenant.workspace is not None:
        print(f"\nWorkspace:  {tenant.workspace.name} ({tenant.workspace.slug})")
    else:
        print("\nWorkspace:  (none)")
    if tenant.user is not None:
        print(f"\nUser:       {tenant.user.email}")
        print(f"Name:       {tenant.user.full_name}")
    else:
        print("\nUser:       (none)")
    print("-" * 60)
    return tenant


async def list_tenants(session: AsyncSession) -> list[Account]:
    """Every account, explicitly unscoped."""
    result = await session.execute(select(Account).order_by(Account.created_at))
    accounts = list(result.scalars().all())
    active_id = current_context().account_id

    print(f"\nAvailable Accounts ({len(accounts)})")
    print("-" * 80)
    print(f"  {'SLUG':<29} {'NAME':<30} {'STATUS':<12} {'USERS':<6}")
    print("-" * 80)
    for account in accounts:
        users = await _count(session, AccountMembership, AccountMembership.account_id == account.id)
        marker = ">" if account.id == active_id else " "
        print(f"{marker} {account.slug[:28]:<29} {account.name[:29]:<30} {account.status:<12} {users:<6}")
    print("-" * 80)
    return accounts


def clear_tenant() -> None:
    reset_context()
    print("Tenant context cleared")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

async def _show(slug: str) -> None:
    async with get_session_context() as session:
        async with with_tenant(session, slug):
            show_tenant()
            tenant = current_context()
            if tenant.workspace is not None:
                teams = await _count(session, Team, Team.workspace_id == tenant.workspace_id)
                print(f"Teams:      {teams}")


async def _list() -> None:
    async with get_session_context() as session:
        await list_tenants(session)


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Inspect tenants.")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("list", help="List all accounts")
    show = sub.add_parser("show", help="Show an account's context")
    show.add_argument("slug", help="Account slug")

    args = parser.parse_args(argv)
    if args.command == "list":
        asyncio.run(_list())
    else:
        asyncio.run(_show(args.slug))


if __name__ == "__main__":
    main()
