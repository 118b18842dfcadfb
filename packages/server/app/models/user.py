"""User model."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import JSONType, TimestampMixin, UUIDMixin, metadata_column


class User(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "users"

    email: str = Field(unique=True, index=True, nullable=False)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    password_hash: Optional[str] = Field(default=None)  # bcrypt hash
    role: str = Field(default="member", nullable=False)  # UserRole (platform level)
    status: str = Field(default="active", nullable=False, index=True)  # UserStatus
    # Session-sticky pointer; never a source of authorization truth
    current_workspace_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="workspaces.id", ondelete="SET NULL", index=True
    )
    settings: dict = Field(default_factory=dict, sa_type=JSONType, nullable=False)
    meta: dict = Field(default_factory=dict, sa_column=metadata_column())

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def display_name(self) -> str:
        return self.full_name or self.email
