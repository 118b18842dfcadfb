"""Audit event read schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .common import AuditSubjectKind


class AuditEventResponse(BaseModel):
    id: uuid.UUID
    action: str
    subject_kind: Optional[AuditSubjectKind] = None
    subject_id: Optional[uuid.UUID] = None
    user_id: Optional[uuid.UUID] = None
    account_id: Optional[uuid.UUID] = None
    workspace_id: Optional[uuid.UUID] = None
    metadata: dict = Field(default_factory=dict)
    created_at: datetime


class AuditEventListResponse(BaseModel):
    data: list[AuditEventResponse]
