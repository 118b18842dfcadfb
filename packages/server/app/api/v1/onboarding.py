"""
Onboarding endpoint.

POST /api/v1/onboarding - First account + "Default" workspace for the caller
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_tenant_context
from app.core.context import TenantContext
from app.core.database import get_session
from app.services import onboarding as onboarding_service

from mangroves_shared.schemas.accounts import AccountResponse, OnboardingRequest
from mangroves_shared.schemas.workspaces import WorkspaceResponse

router = APIRouter()


class OnboardingResponse(BaseModel):
    account: AccountResponse
    workspace: WorkspaceResponse


@router.post("/onboarding", response_model=OnboardingResponse, status_code=201, tags=["Onboarding"])
async def onboard(
    body: OnboardingRequest,
    tenant: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    result = await onboarding_service.onboard(body, tenant.user, session, tenant)
    return OnboardingResponse(
        account=AccountResponse.model_validate(result.account),
        workspace=WorkspaceResponse.model_validate(result.workspace),
    )
