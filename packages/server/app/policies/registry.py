"""
Policy dispatch: ``can_perform``, ``authorize`` and ``visible_set``.
"""

from __future__ import annotations

from typing import Any, Optional, Union

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.context import TenantContext
from app.core.errors import AuthorizationDeniedError
from app.models.account import Account
from app.models.memberships import AccountMembership, TeamMembership, WorkspaceMembership
from app.models.team import Team
from app.models.user import User
from app.models.workspace import Workspace
from app.policies.account import AccountPolicy
from app.policies.base import ApplicationPolicy
from app.policies.team import TeamPolicy
from app.policies.workspace import WorkspacePolicy

from mangroves_shared.schemas.common import Action, MembershipStatus

log = structlog.get_logger()

POLICIES: dict[type, type[ApplicationPolicy]] = {
    Account: AccountPolicy,
    Workspace: WorkspacePolicy,
    Team: TeamPolicy,
}

# resource type -> (membership model, membership column pointing at the resource)
_VISIBILITY = {
    Account: (AccountMembership, AccountMembership.account_id),
    Workspace: (WorkspaceMembership, WorkspaceMembership.workspace_id),
    Team: (TeamMembership, TeamMembership.team_id),
}

_ACTION_METHODS = {
    Action.LIST: "can_list",
    Action.VIEW: "can_view",
    Action.CREATE: "can_create",
    Action.UPDATE: "can_update",
    Action.DELETE: "can_delete",
}


def policy_for(
    session: AsyncSession,
    user: Optional[User],
    record_or_class: Any,
    tenant: Optional[TenantContext] = None,
) -> ApplicationPolicy:
    resource_type = record_or_class if isinstance(record_or_class, type) else type(record_or_class)
    policy_cls = POLICIES.get(resource_type)
    if policy_cls is None:
        raise LookupError(f"No policy registered for {resource_type.__name__}")
    return policy_cls(session, user, record_or_class, tenant)


async def can_perform(
    session: AsyncSession,
    user: Optional[User],
    action: Union[Action, str],
    record_or_class: Any,
    tenant: Optional[TenantContext] = None,
) -> bool:
    policy = policy_for(session, user, record_or_class, tenant)
    method = getattr(policy, _ACTION_METHODS[Action(action)])
    return await method()


async def authorize(
    session: AsyncSession,
    user: Optional[User],
    action: Union[Action, str],
    record_or_class: Any,
    tenant: Optional[TenantContext] = None,
) -> None:
    """Raise ``AuthorizationDeniedError`` unless the policy allows ``action``."""
    if await can_perform(session, user, action, record_or_class, tenant):
        return
    resource = record_or_class if isinstance(record_or_class, type) else type(record_or_class)
    log.info(
        "authorization.denied",
        action=Action(action).value,
        resource=resource.__name__,
        user_id=str(user.id) if user else None,
    )
    raise AuthorizationDeniedError()


async def visible_set(
    session: AsyncSession,
    user: Optional[User],
    resource_type: type,
) -> list[Any]:
    """Records of ``resource_type`` on which the user holds an active membership.

    Matches ``can_view`` record for record. Unscoped by account: this drives
    cross-tenant lists such as the account switcher.
    """
    if user is None:
        return []
    membership_model, parent_column = _VISIBILITY[resource_type]
    result = await session.execute(
        select(resource_type)
        .join(membership_model, parent_column == resource_type.id)
        .where(
            membership_model.user_id == user.id,
            membership_model.status == MembershipStatus.ACTIVE.value,
        )
        .order_by(resource_type.name)
    )
    return list(result.scalars().unique().all())
