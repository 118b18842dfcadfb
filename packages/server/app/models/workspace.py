"""Workspace model (tenant-scoped; slug unique per account)."""

from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import JSONType, TimestampMixin, UUIDMixin, metadata_column


class Workspace(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "workspaces"
    __table_args__ = (
        sa.UniqueConstraint("account_id", "slug", name="uq_workspaces_account_id_slug"),
    )

    account_id: uuid.UUID = Field(foreign_key="accounts.id", ondelete="CASCADE", nullable=False, index=True)
    name: str = Field(nullable=False)
    slug: str = Field(nullable=False)
    description: Optional[str] = Field(default=None, sa_type=sa.Text)
    status: str = Field(default="active", nullable=False, index=True)  # WorkspaceStatus
    settings: dict = Field(default_factory=dict, sa_type=JSONType, nullable=False)
    meta: dict = Field(default_factory=dict, sa_column=metadata_column())
