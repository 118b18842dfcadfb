"""AuditEvent model (append-only; exempt from tenant scoping).

An audit event may exist without an account (system actions, pre-login
events), so it carries nullable tenant columns instead of the tenant-scoped
``account_id`` contract. Destroying an account or workspace nulls the
reference and keeps the trail. The ORM refuses to update or delete a
persisted row.
"""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlalchemy import event
from sqlmodel import Field, SQLModel

from .base import UUIDMixin, _utcnow, metadata_column


class AuditEvent(UUIDMixin, SQLModel, table=True):
    __tablename__ = "audit_events"
    __table_args__ = (
        sa.Index("ix_audit_events_subject", "subject_kind", "subject_id"),
    )

    action: str = Field(nullable=False, index=True)
    subject_kind: Optional[str] = None  # AuditSubjectKind
    subject_id: Optional[uuid.UUID] = None
    user_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id", ondelete="SET NULL", index=True)
    account_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="accounts.id", ondelete="SET NULL", index=True
    )
    workspace_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="workspaces.id", ondelete="SET NULL", index=True
    )
    meta: dict = Field(default_factory=dict, sa_column=metadata_column())
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime = Field(
        default_factory=_utcnow,
        nullable=False,
        index=True,
        sa_column_kwargs={"server_default": sa.func.now()},
        sa_type=sa.DateTime(timezone=True),
    )


class ImmutableAuditEventError(RuntimeError):
    pass


@event.listens_for(AuditEvent, "before_update")
def _refuse_update(mapper, connection, target):
    raise ImmutableAuditEventError("Audit events cannot be modified")


@event.listens_for(AuditEvent, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise ImmutableAuditEventError("Audit events cannot be deleted")
