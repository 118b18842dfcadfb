"""
Tests for teams: creation inside a workspace, lead-only changes and
account confinement over HTTP.
"""

from __future__ import annotations

import pytest

from app.core.errors import AuthorizationDeniedError, NotFoundError
from app.services import memberships
from app.services import teams as team_service

from mangroves_shared.schemas.common import MembershipRole, TeamRole, TeamStatus
from mangroves_shared.schemas.teams import TeamCreateRequest, TeamUpdateRequest


class TestTeamService:
    @pytest.mark.asyncio
    async def test_creator_becomes_lead(self, session, make_user, make_tenant):
        owner = await make_user()
        acme = await make_tenant(owner, "Acme")

        team = await team_service.create_team(
            acme.workspace_id, TeamCreateRequest(name="Platform Team"), owner, session, acme
        )
        assert team.slug == "platform-team"
        assert team.account_id == acme.account_id
        assert team.workspace_id == acme.workspace_id

        lead = await memberships.find_membership(session, team, owner.id)
        assert lead.role == TeamRole.LEAD.value

    @pytest.mark.asyncio
    async def test_slugs_are_unique_per_workspace(self, session, make_user, make_tenant):
        owner = await make_user()
        acme = await make_tenant(owner, "Acme")
        first = await team_service.create_team(acme.workspace_id, TeamCreateRequest(name="Ops"), owner, session, acme)
        second = await team_service.create_team(acme.workspace_id, TeamCreateRequest(name="Ops"), owner, session, acme)
        assert (first.slug, second.slug) == ("ops", "ops-1")

    @pytest.mark.asyncio
    async def test_only_leads_update(self, session, make_user, make_tenant):
        owner = await make_user()
        member = await make_user()
        acme = await make_tenant(owner, "Acme")
        await memberships.add_member(session, acme, acme.account, member, MembershipRole.MEMBER)
        await memberships.add_member(session, acme, acme.workspace, member, MembershipRole.MEMBER)

        team = await team_service.create_team(acme.workspace_id, TeamCreateRequest(name="Ops"), owner, session, acme)
        await memberships.add_member(session, acme, team, member, TeamRole.MEMBER)

        with pytest.raises(AuthorizationDeniedError):
            await team_service.update_team(team.id, TeamUpdateRequest(name="X"), member, session, acme)

        updated = await team_service.update_team(
            team.id, TeamUpdateRequest(status=TeamStatus.ARCHIVED), owner, session, acme
        )
        assert updated.status == TeamStatus.ARCHIVED.value

    @pytest.mark.asyncio
    async def test_list_shows_teams_the_user_belongs_to(self, session, make_user, make_tenant):
        owner = await make_user()
        member = await make_user()
        acme = await make_tenant(owner, "Acme")
        await memberships.add_member(session, acme, acme.account, member, MembershipRole.MEMBER)
        await memberships.add_member(session, acme, acme.workspace, member, MembershipRole.MEMBER)

        await team_service.create_team(acme.workspace_id, TeamCreateRequest(name="Ops"), owner, session, acme)
        own = await team_service.create_team(acme.workspace_id, TeamCreateRequest(name="Docs"), member, session, acme)

        listed = await team_service.list_teams(acme.workspace_id, member, session, acme)
        assert [t.id for t in listed] == [own.id]
        assert len(await team_service.list_teams(acme.workspace_id, owner, session, acme)) == 1

    @pytest.mark.asyncio
    async def test_destroy(self, session, make_user, make_tenant):
        owner = await make_user()
        acme = await make_tenant(owner, "Acme")
        team = await team_service.create_team(acme.workspace_id, TeamCreateRequest(name="Ops"), owner, session, acme)

        await team_service.destroy_team(team.id, owner, session, acme)
        with pytest.raises(NotFoundError):
            await team_service.get_team(team.id, owner, session, acme)


class TestTeamApi:
    @pytest.mark.asyncio
    async def test_create_and_fetch(self, client, api_user, api_tenant, auth_headers):
        acme = await api_tenant(await api_user(), "Acme")
        headers = auth_headers(acme.user)

        resp = await client.post(
            f"/api/v1/accounts/acme/workspaces/{acme.workspace_id}/teams",
            json={"name": "Platform"},
            headers=headers,
        )
        assert resp.status_code == 201
        team = resp.json()
        assert team["account_id"] == str(acme.account_id)

        resp = await client.get(f"/api/v1/accounts/acme/teams/{team['id']}", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["slug"] == "platform"

    @pytest.mark.asyncio
    async def test_team_is_invisible_through_another_account(self, client, api_user, api_tenant, auth_headers):
        owner = await api_user()
        acme = await api_tenant(owner, "Acme")
        await api_tenant(owner, "Globex")
        headers = auth_headers(owner)

        resp = await client.post(
            f"/api/v1/accounts/acme/workspaces/{acme.workspace_id}/teams",
            json={"name": "Platform"},
            headers=headers,
        )
        team_id = resp.json()["id"]

        resp = await client.get(f"/api/v1/accounts/globex/teams/{team_id}", headers=headers)
        assert resp.status_code == 404
