"""
Outbound mail composition bound to the tenant context.

Mail is composed in whatever unit of work sends it (request or job), so the
mailer reads the ambient tenant context at composition time. Template
rendering and transport live elsewhere; this module builds the envelope.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.parse import urlencode

import structlog

from app.core.config import get_settings
from app.core.context import TenantContext, current_context

log = structlog.get_logger()


@dataclass
class MailMessage:
    to: str
    from_address: str
    subject: str
    body: str
    headers: dict[str, str] = field(default_factory=dict)


class TenantMailer:
    def __init__(self, tenant: Optional[TenantContext] = None):
        self._tenant = tenant

    @property
    def tenant(self) -> TenantContext:
        return self._tenant if self._tenant is not None else current_context()

    def from_address(self) -> str:
        """The account's billing email, or the system default when unset or blank."""
        account = self.tenant.account
        billing_email = (account.billing_email or "").strip() if account is not None else ""
        return billing_email or get_settings().default_from_address

    def url_for(self, path: str, **params: Any) -> str:
        """Absolute link; carries ``account_id=<slug>`` when an account is active."""
        account = self.tenant.account
        if account is not None:
            params.setdefault("account_id", account.slug)
        url = get_settings().app_base_url.rstrip("/") + "/" + path.lstrip("/")
        if params:
            url = f"{url}?{urlencode(params)}"
        return url

    def compose(self, to: str, subject: str, body: str) -> MailMessage:
        tenant = self.tenant
        headers = {}
        if tenant.request_id:
            headers["X-Request-ID"] = tenant.request_id
        message = MailMessage(
            to=to,
            from_address=self.from_address(),
            subject=subject,
            body=body,
            headers=headers,
        )
        log.info(
            "mail.composed",
            mailer=type(self).__name__,
            subject=subject,
            account_id=str(tenant.account_id) if tenant.account_id else None,
        )
        return message
