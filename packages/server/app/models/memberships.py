"""Membership join tables for the three tiers: account, workspace, team.

Each level has its own role vocabulary (see ``mangroves_shared.schemas.common``)
and the same pending/active/suspended/declined lifecycle. ``lock_version`` is
the mapper's version counter: every ORM flush checks and bumps it, and the
compare-and-swap updates in ``app.services.memberships`` do the same by hand.
"""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlalchemy.orm import declared_attr
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin, metadata_column


class MembershipFields(SQLModel):
    user_id: uuid.UUID = Field(foreign_key="users.id", ondelete="CASCADE", nullable=False, index=True)
    status: str = Field(default="pending", nullable=False, index=True)  # MembershipStatus
    invited_by_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id", ondelete="SET NULL")
    invited_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    accepted_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    lock_version: int = Field(default=1, nullable=False)

    @declared_attr
    def __mapper_args__(cls):
        return {"version_id_col": cls.__table__.c.lock_version}


class AccountMembership(UUIDMixin, TimestampMixin, MembershipFields, table=True):
    __tablename__ = "account_memberships"
    __table_args__ = (
        sa.UniqueConstraint("account_id", "user_id", name="uq_account_memberships_account_id_user_id"),
    )

    account_id: uuid.UUID = Field(foreign_key="accounts.id", ondelete="CASCADE", nullable=False, index=True)
    role: str = Field(default="member", nullable=False)  # MembershipRole
    meta: dict = Field(default_factory=dict, sa_column=metadata_column())


class WorkspaceMembership(UUIDMixin, TimestampMixin, MembershipFields, table=True):
    __tablename__ = "workspace_memberships"
    __table_args__ = (
        sa.UniqueConstraint("workspace_id", "user_id", name="uq_workspace_memberships_workspace_id_user_id"),
    )

    workspace_id: uuid.UUID = Field(foreign_key="workspaces.id", ondelete="CASCADE", nullable=False, index=True)
    role: str = Field(default="member", nullable=False)  # MembershipRole
    meta: dict = Field(default_factory=dict, sa_column=metadata_column())


class TeamMembership(UUIDMixin, TimestampMixin, MembershipFields, table=True):
    __tablename__ = "team_memberships"
    __table_args__ = (
        sa.UniqueConstraint("team_id", "user_id", name="uq_team_memberships_team_id_user_id"),
    )

    team_id: uuid.UUID = Field(foreign_key="teams.id", ondelete="CASCADE", nullable=False, index=True)
    role: str = Field(default="member", nullable=False)  # TeamRole
    meta: dict = Field(default_factory=dict, sa_column=metadata_column())
