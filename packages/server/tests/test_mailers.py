"""
Tests for tenant-aware mail composition.
"""

from __future__ import annotations

import uuid

import pytest
from structlog.testing import capture_logs

from app.core.context import TenantContext, scoped_context
from app.mailers.base import TenantMailer
from app.mailers.invitations import InvitationMailer
from app.models.account import Account
from app.models.user import User


def _account(**fields) -> Account:
    return Account(id=uuid.uuid4(), name="Acme", slug="acme", **fields)


class TestFromAddress:
    def test_billing_email(self):
        mailer = TenantMailer(TenantContext(account=_account(billing_email="billing@acme.com")))
        assert mailer.from_address() == "billing@acme.com"

    def test_blank_billing_email_falls_back(self):
        mailer = TenantMailer(TenantContext(account=_account(billing_email="   ")))
        assert mailer.from_address() == "noreply@example.com"

    def test_no_account_falls_back(self):
        assert TenantMailer(TenantContext()).from_address() == "noreply@example.com"


class TestLinks:
    def test_account_slug_is_added(self):
        mailer = TenantMailer(TenantContext(account=_account()))
        assert mailer.url_for("/dashboard") == "http://localhost:8000/dashboard?account_id=acme"

    def test_explicit_params_are_kept(self):
        mailer = TenantMailer(TenantContext(account=_account()))
        url = mailer.url_for("invitations", page=2)
        assert url == "http://localhost:8000/invitations?page=2&account_id=acme"

    def test_no_account_no_param(self):
        assert TenantMailer(TenantContext()).url_for("/x") == "http://localhost:8000/x"


class TestAmbientContext:
    @pytest.mark.asyncio
    async def test_reads_context_at_composition_time(self):
        mailer = TenantMailer()
        acme = _account(billing_email="billing@acme.com")
        async with scoped_context(account=acme, request_id="req-9"):
            message = mailer.compose("to@example.com", "Hello", "Body")
        assert message.from_address == "billing@acme.com"
        assert message.headers == {"X-Request-ID": "req-9"}

        assert mailer.compose("to@example.com", "Hello", "Body").from_address == "noreply@example.com"

    def test_compose_is_logged(self):
        with capture_logs() as logs:
            TenantMailer(TenantContext(account=_account())).compose("to@example.com", "Hi", "Body")
        assert any(entry["event"] == "mail.composed" for entry in logs)


class TestInvitationMailer:
    def test_invitation(self):
        account = _account()
        invitee = User(id=uuid.uuid4(), email="new@example.com", first_name="New", last_name="Person")
        inviter = User(id=uuid.uuid4(), email="boss@example.com", first_name="Big", last_name="Boss")
        membership_id = uuid.uuid4()

        message = InvitationMailer(TenantContext(account=account)).invitation(
            membership_id, invitee, account.name, "admin", inviter=inviter
        )

        assert message.to == "new@example.com"
        assert message.subject == "You're invited to join Acme"
        assert "Big Boss invited you to join Acme as admin" in message.body
        assert f"/invitations/{membership_id}/accept?account_id=acme" in message.body
