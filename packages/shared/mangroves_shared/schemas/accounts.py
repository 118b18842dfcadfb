"""
Account (tenant root) request/response schemas.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from .common import AccountPlan, AccountStatus, MembershipRole

SLUG_PATTERN = r"^[a-z0-9](?:[a-z0-9-]*[a-z0-9])?$"


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class AccountCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Account display name")
    slug: Optional[str] = Field(
        None,
        max_length=50,
        pattern=SLUG_PATTERN,
        description="URL-safe identifier; generated from the name when omitted",
    )
    billing_email: Optional[EmailStr] = None
    plan: AccountPlan = AccountPlan.FREE


class AccountUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    billing_email: Optional[EmailStr] = None
    plan: Optional[AccountPlan] = None
    settings: Optional[dict] = None


class OnboardingRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class AccountResponse(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    status: AccountStatus
    plan: AccountPlan
    billing_email: Optional[str] = None
    owner_id: Optional[uuid.UUID] = None
    settings: dict = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AccountListItem(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    status: AccountStatus
    role: MembershipRole  # the requesting user's role in this account

    model_config = {"from_attributes": True}


class AccountListResponse(BaseModel):
    data: list[AccountListItem]
