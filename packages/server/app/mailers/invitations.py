"""Membership invitation mail."""

from __future__ import annotations

from typing import Optional

from app.mailers.base import MailMessage, TenantMailer
from app.models.user import User


class InvitationMailer(TenantMailer):
    def invitation(
        self,
        membership_id,
        invitee: User,
        target_name: str,
        role: str,
        inviter: Optional[User] = None,
    ) -> MailMessage:
        accept_url = self.url_for(f"/invitations/{membership_id}/accept")
        inviter_name = inviter.display_name if inviter is not None else "Someone"
        body = (
            f"Hi {invitee.display_name},\n\n"
            f"{inviter_name} invited you to join {target_name} as {role}.\n\n"
            f"Accept the invitation: {accept_url}\n"
        )
        return self.compose(
            to=invitee.email,
            subject=f"You're invited to join {target_name}",
            body=body,
        )
