"""Membership schemas for all three levels (account, workspace, team)."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, EmailStr, Field

from .common import MembershipRole, MembershipStatus, TeamRole


class MembershipInviteRequest(BaseModel):
    """Invite an existing user by email. Role vocabulary depends on the level."""
    email: EmailStr
    role: MembershipRole = MembershipRole.MEMBER


class TeamMembershipInviteRequest(BaseModel):
    email: EmailStr
    role: TeamRole = TeamRole.MEMBER


class MembershipRoleUpdate(BaseModel):
    role: Union[MembershipRole, TeamRole]
    lock_version: int = Field(..., ge=1, description="Version the client last read")


class MembershipResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    role: str
    status: MembershipStatus
    invited_by_id: Optional[uuid.UUID] = None
    invited_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    lock_version: int

    model_config = {"from_attributes": True}
