"""
Audit trail service.

``record`` captures actor, account and workspace from the tenant context at
call time, so later context changes never alter an entry already recorded.
Each write runs in its own SAVEPOINT; a failed write is logged with the full
entry and then either raised (``audit_failure_policy = "raise"``) or reported
and skipped (``"log"``). Entries are never dropped without a trace.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Optional, Union

import structlog
from pydantic_core import to_jsonable_python
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.context import TenantContext, current_context
from app.core.errors import AuditWriteError
from app.models.account import Account
from app.models.audit_event import AuditEvent
from app.models.memberships import AccountMembership, TeamMembership, WorkspaceMembership
from app.models.team import Team
from app.models.user import User
from app.models.workspace import Workspace

from mangroves_shared.schemas.common import AuditAction, AuditSubjectKind

log = structlog.get_logger()

_SUBJECT_KINDS: dict[type, AuditSubjectKind] = {
    Account: AuditSubjectKind.ACCOUNT,
    Workspace: AuditSubjectKind.WORKSPACE,
    Team: AuditSubjectKind.TEAM,
    AccountMembership: AuditSubjectKind.ACCOUNT_MEMBERSHIP,
    WorkspaceMembership: AuditSubjectKind.WORKSPACE_MEMBERSHIP,
    TeamMembership: AuditSubjectKind.TEAM_MEMBERSHIP,
    User: AuditSubjectKind.USER,
}


@dataclass(frozen=True)
class AuditSubject:
    """The entity an audit event is about: a closed (kind, id) pair."""

    kind: AuditSubjectKind
    id: uuid.UUID

    @classmethod
    def of(cls, record: Any) -> "AuditSubject":
        try:
            kind = _SUBJECT_KINDS[type(record)]
        except KeyError:
            raise TypeError(f"{type(record).__name__} is not an auditable entity") from None
        return cls(kind=kind, id=record.id)


def _entry(
    action: str,
    subject: Optional[AuditSubject],
    metadata: dict[str, Any],
    tenant: TenantContext,
    ip_address: Optional[str],
    user_agent: Optional[str],
) -> dict[str, Any]:
    return {
        "action": action,
        "subject_kind": subject.kind.value if subject else None,
        "subject_id": subject.id if subject else None,
        "user_id": tenant.user_id,
        "account_id": tenant.account_id,
        "workspace_id": tenant.workspace_id,
        "metadata": metadata,
        "ip_address": ip_address,
        "user_agent": user_agent,
    }


async def record(
    session: AsyncSession,
    action: Union[AuditAction, str],
    subject: Union[AuditSubject, Any, None] = None,
    metadata: Optional[dict[str, Any]] = None,
    *,
    tenant: Optional[TenantContext] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Optional[AuditEvent]:
    """Append an audit event attributed to ``tenant`` (default: the ambient context)."""
    tenant = tenant if tenant is not None else current_context()
    if subject is not None and not isinstance(subject, AuditSubject):
        subject = AuditSubject.of(subject)
    action = action.value if isinstance(action, AuditAction) else action

    entry = _entry(action, subject, to_jsonable_python(metadata or {}), tenant, ip_address, user_agent)
    event = AuditEvent(
        action=entry["action"],
        subject_kind=entry["subject_kind"],
        subject_id=entry["subject_id"],
        user_id=entry["user_id"],
        account_id=entry["account_id"],
        workspace_id=entry["workspace_id"],
        meta=entry["metadata"],
        ip_address=ip_address,
        user_agent=user_agent,
    )

    try:
        async with session.begin_nested():
            session.add(event)
            await session.flush()
    except SQLAlchemyError as exc:
        log.error("audit.write_failed", entry=to_jsonable_python(entry), error=str(exc))
        if get_settings().audit_failure_policy == "raise":
            raise AuditWriteError(entry, exc) from exc
        return None

    log.info(
        "audit.recorded",
        action=action,
        audit_event_id=str(event.id),
        account_id=str(event.account_id) if event.account_id else None,
    )
    return event


# ---------------------------------------------------------------------------
# Read helpers (explicitly unscoped, most recent first)
# ---------------------------------------------------------------------------

async def for_account(session: AsyncSession, account_id: uuid.UUID, *, limit: int = 100) -> list[AuditEvent]:
    result = await session.execute(
        select(AuditEvent)
        .where(AuditEvent.account_id == account_id)
        .order_by(AuditEvent.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def for_user(session: AsyncSession, user_id: uuid.UUID, *, limit: int = 100) -> list[AuditEvent]:
    result = await session.execute(
        select(AuditEvent)
        .where(AuditEvent.user_id == user_id)
        .order_by(AuditEvent.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def by_action(
    session: AsyncSession, action: Union[AuditAction, str], *, limit: int = 100
) -> list[AuditEvent]:
    action = action.value if isinstance(action, AuditAction) else action
    result = await session.execute(
        select(AuditEvent)
        .where(AuditEvent.action == action)
        .order_by(AuditEvent.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
