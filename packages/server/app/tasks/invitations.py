"""
ARQ background task: deliver a membership invitation email.

Enqueued with ``account_id`` so the mail is composed inside the inviting
account (from address, tenant-parameterized links).
"""

from __future__ import annotations

import uuid
from typing import Union

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.context import TenantContext
from app.core.errors import NotFoundError
from app.core.tenancy import AccountMembershipRepository
from app.mailers.base import MailMessage
from app.mailers.invitations import InvitationMailer
from app.models.user import User
from app.tasks.base import tenant_job

log = structlog.get_logger()


@tenant_job
async def deliver_membership_invitation(
    ctx: dict,
    session: AsyncSession,
    tenant: TenantContext,
    membership_id: Union[uuid.UUID, str],
) -> MailMessage:
    """Compose the invitation for a pending account membership and hand it to
    ``ctx["deliver"]`` when the worker provides a transport."""
    membership = await AccountMembershipRepository(session, tenant).find(uuid.UUID(str(membership_id)))

    invitee = await session.get(User, membership.user_id)
    if invitee is None:
        raise NotFoundError("User")
    inviter = await session.get(User, membership.invited_by_id) if membership.invited_by_id else None

    message = InvitationMailer().invitation(
        membership.id,
        invitee,
        tenant.account.name,
        membership.role,
        inviter=inviter,
    )

    deliver = ctx.get("deliver")
    if deliver is not None:
        await deliver(message)
    log.info("invitation.delivered", membership_id=str(membership.id), to=message.to)
    return message


# ARQ worker settings
class WorkerSettings:
    """ARQ worker configuration."""

    functions = [deliver_membership_invitation]
