"""Account model (tenant root, not tenant-scoped itself)."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import JSONType, TimestampMixin, UUIDMixin, metadata_column


class Account(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "accounts"

    name: str = Field(nullable=False)
    slug: str = Field(unique=True, nullable=False, index=True)
    status: str = Field(default="active", nullable=False, index=True)  # AccountStatus
    plan: str = Field(default="free", nullable=False)  # AccountPlan
    billing_email: Optional[str] = None
    owner_id: Optional[uuid.UUID] = Field(
        default=None,
        index=True,
        sa_column_args=[
            sa.ForeignKey("users.id", use_alter=True, name="fk_accounts_owner_id", ondelete="SET NULL")
        ],
    )
    settings: dict = Field(default_factory=dict, sa_type=JSONType, nullable=False)
    meta: dict = Field(default_factory=dict, sa_column=metadata_column())
    trial_ends_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    subscription_ends_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
