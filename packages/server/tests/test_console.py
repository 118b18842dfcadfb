"""
Tests for the tenant console helpers.
"""

from __future__ import annotations

import pytest

from app.core.context import current_context, scoped_context
from app.core.errors import NotFoundError
from app.scripts import tenant_console as console


class TestWithTenant:
    @pytest.mark.asyncio
    async def test_by_slug(self, session, make_user, make_tenant, capsys):
        acme = await make_tenant(await make_user(), "Acme")

        async with console.with_tenant(session, "acme") as tenant:
            assert tenant.account_id == acme.account_id
            assert tenant.workspace_id == acme.workspace_id
            assert current_context().account_id == acme.account_id

        assert current_context().account is None
        out = capsys.readouterr().out
        assert "Switched to: Acme (acme)" in out
        assert "Restored previous tenant" in out

    @pytest.mark.asyncio
    async def test_restores_outer_tenant(self, session, make_user, make_tenant):
        owner = await make_user()
        acme = await make_tenant(owner, "Acme")
        globex = await make_tenant(owner, "Globex")

        async with scoped_context(account=acme.account):
            async with console.with_tenant(session, globex.account):
                assert current_context().account_id == globex.account_id
            assert current_context().account_id == acme.account_id

    @pytest.mark.asyncio
    async def test_unknown_slug(self, session):
        with pytest.raises(NotFoundError):
            async with console.with_tenant(session, "missing"):
                pass

    @pytest.mark.asyncio
    async def test_rejects_other_types(self, session):
        with pytest.raises(TypeError):
            async with console.with_tenant(session, 42):
                pass


class TestWithoutTenant:
    @pytest.mark.asyncio
    async def test_clears_and_restores(self, session, make_user, make_tenant, capsys):
        acme = await make_tenant(await make_user(), "Acme")
        async with scoped_context(account=acme.account):
            async with console.without_tenant() as tenant:
                assert tenant.account is None
                assert current_context().account is None
            assert current_context().account_id == acme.account_id

        out = capsys.readouterr().out
        assert "Cleared tenant context" in out
        assert "Restored tenant context" in out


class TestSwitchAndShow:
    @pytest.mark.asyncio
    async def test_switch_persists(self, session, make_user, make_tenant, capsys):
        acme = await make_tenant(await make_user(), "Acme")

        account = await console.switch_tenant(session, "acme")
        assert account.id == acme.account_id
        assert current_context().workspace_id == acme.workspace_id

        out = capsys.readouterr().out
        assert "Workspace: Default" in out
        assert "Users: 1" in out
        assert "Workspaces: 1" in out

        tenant = console.show_tenant()
        assert tenant.account_id == acme.account_id
        assert "Account:    Acme (acme)" in capsys.readouterr().out

        console.clear_tenant()
        assert current_context().account is None
        assert "Tenant context cleared" in capsys.readouterr().out

    def test_show_without_tenant(self, capsys):
        tenant = console.show_tenant()
        assert tenant.account is None
        assert "No tenant context set" in capsys.readouterr().out


class TestListTenants:
    @pytest.mark.asyncio
    async def test_lists_every_account_and_marks_the_active_one(self, session, make_user, make_tenant, capsys):
        acme = await make_tenant(await make_user(), "Acme")
        await make_tenant(await make_user(), "Globex")

        async with scoped_context(account=acme.account):
            accounts = await console.list_tenants(session)

        assert {a.slug for a in accounts} == {"acme", "globex"}
        lines = capsys.readouterr().out.splitlines()
        assert "Available Accounts (2)" in lines[1]
        assert any(line.startswith("> acme ") for line in lines)
        assert any(line.startswith("  globex ") for line in lines)
