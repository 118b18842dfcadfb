"""
Tests for tenant context in background jobs.

Covers:
- Jobs start from a fresh context, not the enqueuer's
- account_id installs the account for the body
- A missing account fails the job
- Context restored after success and failure
- Invitation delivery job end to end
"""

from __future__ import annotations

import uuid

import pytest

from app.core.context import current_context, scoped_context
from app.core.errors import NotFoundError
from app.core.tenancy import WorkspaceRepository
from app.models.account import Account
from app.services import memberships
from app.tasks.base import tenant_job
from app.tasks.invitations import WorkerSettings, deliver_membership_invitation

from mangroves_shared.schemas.common import MembershipRole


@tenant_job
async def snapshot_job(ctx, session, tenant):
    ambient = current_context()
    workspaces = await WorkspaceRepository(session, tenant).all()
    return {
        "tenant_account_id": tenant.account_id,
        "ambient_account_id": ambient.account_id,
        "request_id": ambient.request_id,
        "workspace_count": len(workspaces),
    }


@tenant_job
async def failing_job(ctx, session, tenant):
    raise RuntimeError("job exploded")


@pytest.fixture
async def acme(api_user, api_tenant):
    owner = await api_user("owner@example.com")
    return await api_tenant(owner, "Acme")


class TestTenantJob:
    @pytest.mark.asyncio
    async def test_account_is_installed(self, session_factory, acme):
        ctx = {"session_factory": session_factory, "job_id": "job-1"}
        result = await snapshot_job(ctx, account_id=str(acme.account_id))
        assert result["tenant_account_id"] == acme.account_id
        assert result["ambient_account_id"] == acme.account_id
        assert result["request_id"] == "job-1"
        assert result["workspace_count"] == 1

    @pytest.mark.asyncio
    async def test_enqueuer_context_is_not_inherited(self, session_factory, acme):
        ctx = {"session_factory": session_factory}
        async with scoped_context(account=acme.account, workspace=acme.workspace):
            result = await snapshot_job(ctx)
            assert current_context().account_id == acme.account_id
        assert result["tenant_account_id"] is None
        assert result["ambient_account_id"] is None
        assert result["workspace_count"] == 0

    @pytest.mark.asyncio
    async def test_missing_account_fails(self, session_factory, acme):
        ctx = {"session_factory": session_factory}
        with pytest.raises(NotFoundError):
            await snapshot_job(ctx, account_id=uuid.uuid4())

    @pytest.mark.asyncio
    async def test_malformed_account_id_is_not_found(self, session_factory, acme):
        ctx = {"session_factory": session_factory}
        with pytest.raises(NotFoundError):
            await snapshot_job(ctx, account_id="not-a-uuid")

    @pytest.mark.asyncio
    async def test_context_restored_after_failure(self, session_factory, acme):
        outer = Account(id=uuid.uuid4(), name="Outer", slug="outer")
        ctx = {"session_factory": session_factory}
        async with scoped_context(account=outer):
            with pytest.raises(RuntimeError):
                await failing_job(ctx, account_id=acme.account_id)
            assert current_context().account is outer


class TestInvitationDelivery:
    @pytest.mark.asyncio
    async def test_delivers_invitation_in_account_context(self, session_factory, committed, api_user, acme):
        invitee = await api_user("invitee@example.com")

        async def invite(s):
            return await memberships.invite_member(
                s, acme, acme.account, invitee, MembershipRole.ADMIN, acme.user
            )

        membership = await committed(invite)
        sent = []

        async def deliver(message):
            sent.append(message)

        ctx = {"session_factory": session_factory, "deliver": deliver, "job_id": "job-42"}
        message = await deliver_membership_invitation(ctx, membership.id, account_id=acme.account_id)

        assert sent == [message]
        assert message.to == "invitee@example.com"
        assert "Acme" in message.subject
        assert "account_id=acme" in message.body
        assert message.headers["X-Request-ID"] == "job-42"

    @pytest.mark.asyncio
    async def test_membership_of_other_account_is_not_found(self, session_factory, api_user, api_tenant, committed, acme):
        other = await api_tenant(await api_user(), "Globex")
        invitee = await api_user()

        async def invite(s):
            return await memberships.invite_member(
                s, acme, acme.account, invitee, MembershipRole.MEMBER, acme.user
            )

        membership = await committed(invite)
        ctx = {"session_factory": session_factory}
        with pytest.raises(NotFoundError):
            await deliver_membership_invitation(ctx, membership.id, account_id=other.account_id)

    def test_worker_settings_register_the_job(self):
        assert deliver_membership_invitation in WorkerSettings.functions
