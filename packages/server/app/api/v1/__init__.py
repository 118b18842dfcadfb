"""
API v1 Router

Tenant-scoped endpoints are prefixed with /accounts/{account_slug}.
"""

from fastapi import APIRouter
from . import memberships, onboarding, teams, workspaces
from .accounts import router_global as accounts_global_router
from .accounts import router_scoped as accounts_scoped_router

router = APIRouter()

# Account routes (not account-scoped: list, create) and onboarding
router.include_router(accounts_global_router)
router.include_router(onboarding.router)

# Account-scoped routes
router.include_router(accounts_scoped_router, prefix="/accounts/{account_slug}", tags=["Accounts"])
router.include_router(workspaces.router, prefix="/accounts/{account_slug}/workspaces", tags=["Workspaces"])
router.include_router(teams.router, prefix="/accounts/{account_slug}", tags=["Teams"])
router.include_router(memberships.router, prefix="/accounts/{account_slug}", tags=["Memberships"])


@router.get("/", tags=["API"])
async def api_root():
    """API root - returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/accounts",
            "/onboarding",
            "/accounts/{account_slug}/workspaces",
            "/accounts/{account_slug}/workspaces/{workspace_id}/teams",
            "/accounts/{account_slug}/members",
            "/accounts/{account_slug}/audit",
        ],
    }
