"""
Tests for authorization policies.

Covers:
- The role decision table for accounts, workspaces and teams
- Non-active memberships conferring nothing
- Revocation taking effect on the next check
- visible_set agreeing with can_view
"""

from __future__ import annotations

from dataclasses import replace

import pytest

from app.core.context import TenantContext
from app.core.errors import AuthorizationDeniedError
from app.core.tenancy import TeamRepository, WorkspaceRepository
from app.models.account import Account
from app.models.team import Team
from app.models.workspace import Workspace
from app.policies.base import ApplicationPolicy, has_role
from app.policies.registry import authorize, can_perform, policy_for, visible_set
from app.services import memberships

from mangroves_shared.schemas.common import (
    Action,
    MembershipRole,
    TeamRole,
    role_at_least,
)


@pytest.fixture
async def acme(make_user, make_tenant):
    owner = await make_user("owner@example.com")
    return await make_tenant(owner, "Acme")


async def _member_with_role(session, acme, make_user, role):
    user = await make_user()
    await memberships.add_member(session, acme, acme.account, user, role)
    await memberships.add_member(session, acme, acme.workspace, user, role)
    return user


class TestRoleOrder:
    def test_membership_roles(self):
        assert role_at_least(MembershipRole.OWNER, MembershipRole.ADMIN)
        assert role_at_least(MembershipRole.ADMIN, MembershipRole.ADMIN)
        assert not role_at_least(MembershipRole.MEMBER, MembershipRole.ADMIN)
        assert not role_at_least(MembershipRole.VIEWER, MembershipRole.MEMBER)

    def test_team_roles(self):
        assert role_at_least(TeamRole.LEAD, TeamRole.MEMBER)
        assert not role_at_least(TeamRole.MEMBER, TeamRole.LEAD)

    def test_cross_vocabulary_comparison_is_an_error(self):
        with pytest.raises(ValueError):
            role_at_least(TeamRole.LEAD, MembershipRole.ADMIN)

    def test_has_role_without_membership(self):
        assert not has_role(None, MembershipRole.VIEWER)


class TestAccountPolicy:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "role,view,update,delete",
        [
            (MembershipRole.VIEWER, True, False, False),
            (MembershipRole.MEMBER, True, False, False),
            (MembershipRole.ADMIN, True, True, False),
            (MembershipRole.OWNER, True, True, True),
        ],
    )
    async def test_decision_table(self, session, acme, make_user, role, view, update, delete):
        user = await make_user()
        await memberships.add_member(session, acme, acme.account, user, role)
        account = acme.account
        assert await can_perform(session, user, Action.VIEW, account) is view
        assert await can_perform(session, user, Action.UPDATE, account) is update
        assert await can_perform(session, user, Action.DELETE, account) is delete

    @pytest.mark.asyncio
    async def test_outsider_is_denied(self, session, acme, make_user):
        outsider = await make_user()
        assert not await can_perform(session, outsider, Action.VIEW, acme.account)
        with pytest.raises(AuthorizationDeniedError):
            await authorize(session, outsider, Action.VIEW, acme.account)

    @pytest.mark.asyncio
    async def test_any_user_can_create_and_list(self, session, make_user):
        user = await make_user()
        assert await can_perform(session, user, Action.CREATE, Account)
        assert await can_perform(session, user, Action.LIST, Account)
        assert not await can_perform(session, None, Action.CREATE, Account)

    @pytest.mark.asyncio
    async def test_pending_membership_confers_nothing(self, session, acme, make_user):
        invitee = await make_user()
        await memberships.invite_member(session, acme, acme.account, invitee, MembershipRole.ADMIN, acme.user)
        assert not await can_perform(session, invitee, Action.VIEW, acme.account)

    @pytest.mark.asyncio
    async def test_suspension_takes_effect_immediately(self, session, acme, make_user):
        user = await make_user()
        membership = await memberships.add_member(session, acme, acme.account, user, MembershipRole.ADMIN)
        assert await can_perform(session, user, Action.UPDATE, acme.account)
        await memberships.suspend(session, acme, membership)
        assert not await can_perform(session, user, Action.UPDATE, acme.account)
        assert not await can_perform(session, user, Action.VIEW, acme.account)

    @pytest.mark.asyncio
    async def test_demotion_takes_effect_immediately(self, session, acme, make_user):
        user = await make_user()
        membership = await memberships.add_member(session, acme, acme.account, user, MembershipRole.OWNER)
        assert await can_perform(session, user, Action.DELETE, acme.account)
        await memberships.change_role(session, acme, membership, MembershipRole.MEMBER)
        assert not await can_perform(session, user, Action.DELETE, acme.account)


class TestWorkspacePolicy:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "role,view,update,delete",
        [
            (MembershipRole.VIEWER, True, False, False),
            (MembershipRole.MEMBER, True, False, False),
            (MembershipRole.ADMIN, True, True, False),
            (MembershipRole.OWNER, True, True, True),
        ],
    )
    async def test_decision_table(self, session, acme, make_user, role, view, update, delete):
        user = await _member_with_role(session, acme, make_user, role)
        workspace = acme.workspace
        assert await can_perform(session, user, Action.VIEW, workspace, acme) is view
        assert await can_perform(session, user, Action.UPDATE, workspace, acme) is update
        assert await can_perform(session, user, Action.DELETE, workspace, acme) is delete

    @pytest.mark.asyncio
    async def test_create_needs_account_member(self, session, acme, make_user):
        viewer = await make_user()
        member = await make_user()
        await memberships.add_member(session, acme, acme.account, viewer, MembershipRole.VIEWER)
        await memberships.add_member(session, acme, acme.account, member, MembershipRole.MEMBER)
        assert not await can_perform(session, viewer, Action.CREATE, Workspace, acme)
        assert await can_perform(session, member, Action.CREATE, Workspace, acme)
        assert await can_perform(session, member, Action.LIST, Workspace, acme)

    @pytest.mark.asyncio
    async def test_class_check_without_account_denies(self, session, acme):
        no_account = replace(acme, account=None)
        assert not await can_perform(session, acme.user, Action.CREATE, Workspace, no_account)

    @pytest.mark.asyncio
    async def test_account_member_cannot_view_workspace_without_membership(self, session, acme, make_user):
        user = await make_user()
        await memberships.add_member(session, acme, acme.account, user, MembershipRole.ADMIN)
        assert not await can_perform(session, user, Action.VIEW, acme.workspace, acme)


class TestTeamPolicy:
    @pytest.fixture
    async def team(self, session, acme):
        return await TeamRepository(session, acme).create(workspace_id=acme.workspace_id, name="Platform")

    @pytest.mark.asyncio
    async def test_lead_can_update_and_delete(self, session, acme, team, make_user):
        lead = await _member_with_role(session, acme, make_user, MembershipRole.MEMBER)
        await memberships.add_member(session, acme, team, lead, TeamRole.LEAD)
        assert await can_perform(session, lead, Action.VIEW, team, acme)
        assert await can_perform(session, lead, Action.UPDATE, team, acme)
        assert await can_perform(session, lead, Action.DELETE, team, acme)

    @pytest.mark.asyncio
    async def test_member_can_only_view(self, session, acme, team, make_user):
        member = await _member_with_role(session, acme, make_user, MembershipRole.MEMBER)
        await memberships.add_member(session, acme, team, member, TeamRole.MEMBER)
        assert await can_perform(session, member, Action.VIEW, team, acme)
        assert not await can_perform(session, member, Action.UPDATE, team, acme)
        assert not await can_perform(session, member, Action.DELETE, team, acme)

    @pytest.mark.asyncio
    async def test_workspace_admin_without_team_membership_cannot_view(self, session, acme, team, make_user):
        admin = await _member_with_role(session, acme, make_user, MembershipRole.ADMIN)
        assert not await can_perform(session, admin, Action.VIEW, team, acme)

    @pytest.mark.asyncio
    async def test_create_needs_workspace_member(self, session, acme, make_user):
        viewer = await _member_with_role(session, acme, make_user, MembershipRole.VIEWER)
        member = await _member_with_role(session, acme, make_user, MembershipRole.MEMBER)
        assert not await can_perform(session, viewer, Action.CREATE, Team, acme)
        assert await can_perform(session, member, Action.CREATE, Team, acme)


class TestVisibleSet:
    @pytest.mark.asyncio
    async def test_matches_can_view(self, session, make_user, make_tenant):
        alice = await make_user()
        bob = await make_user()
        acme = await make_tenant(alice, "Acme")
        globex = await make_tenant(bob, "Globex")
        initech = await make_tenant(bob, "Initech")

        await memberships.add_member(session, globex, globex.account, alice, MembershipRole.VIEWER)
        await memberships.invite_member(session, initech, initech.account, alice, MembershipRole.ADMIN, bob)

        visible = await visible_set(session, alice, Account)
        assert {a.slug for a in visible} == {"acme", "globex"}

        for tenant in (acme, globex, initech):
            allowed = await can_perform(session, alice, Action.VIEW, tenant.account)
            assert allowed is (tenant.account in visible)

    @pytest.mark.asyncio
    async def test_workspaces_and_teams(self, session, make_user, make_tenant):
        owner = await make_user()
        acme = await make_tenant(owner, "Acme")
        hidden = await WorkspaceRepository(session, acme).create(name="Hidden")
        team = await TeamRepository(session, acme).create(workspace_id=acme.workspace_id, name="Core")

        assert [w.id for w in await visible_set(session, owner, Workspace)] == [acme.workspace_id]
        assert await visible_set(session, owner, Team) == []
        assert not await can_perform(session, owner, Action.VIEW, hidden, acme)
        assert not await can_perform(session, owner, Action.VIEW, team, acme)

    @pytest.mark.asyncio
    async def test_anonymous_sees_nothing(self, session):
        assert await visible_set(session, None, Account) == []


class TestRegistry:
    @pytest.mark.asyncio
    async def test_unknown_resource(self, session):
        with pytest.raises(LookupError):
            policy_for(session, None, TenantContext)

    @pytest.mark.asyncio
    async def test_base_policy_denies_everything(self, session):
        policy = ApplicationPolicy(session, None, object())
        for check in (policy.can_list, policy.can_view, policy.can_create, policy.can_update, policy.can_delete):
            assert await check() is False
