"""
Team request/response schemas.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .accounts import SLUG_PATTERN
from .common import TeamStatus


class TeamCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    slug: Optional[str] = Field(None, max_length=50, pattern=SLUG_PATTERN)
    description: Optional[str] = Field(None, max_length=2000)


class TeamUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)
    status: Optional[TeamStatus] = None


class TeamResponse(BaseModel):
    id: uuid.UUID
    account_id: uuid.UUID
    workspace_id: uuid.UUID
    name: str
    slug: str
    description: Optional[str] = None
    status: TeamStatus
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TeamListResponse(BaseModel):
    data: list[TeamResponse]
