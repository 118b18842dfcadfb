"""Team model (tenant-scoped; account denormalised from its workspace)."""

from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import JSONType, TimestampMixin, UUIDMixin, metadata_column


class Team(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "teams"
    __table_args__ = (
        sa.UniqueConstraint("workspace_id", "slug", name="uq_teams_workspace_id_slug"),
    )

    account_id: uuid.UUID = Field(foreign_key="accounts.id", ondelete="CASCADE", nullable=False, index=True)
    workspace_id: uuid.UUID = Field(foreign_key="workspaces.id", ondelete="CASCADE", nullable=False, index=True)
    name: str = Field(nullable=False)
    slug: str = Field(nullable=False)
    description: Optional[str] = Field(default=None, sa_type=sa.Text)
    status: str = Field(default="active", nullable=False, index=True)  # TeamStatus
    settings: dict = Field(default_factory=dict, sa_type=JSONType, nullable=False)
    meta: dict = Field(default_factory=dict, sa_column=metadata_column())
