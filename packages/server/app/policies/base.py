"""
Authorization policy base.

A policy is built from (session, acting user, record or record class, tenant)
and answers ``can_list/can_view/can_create/can_update/can_delete`` with a
bool. Denials are never raised here; ``app.policies.registry.authorize`` is
the raising wrapper used by services.

Membership rows are read on every call. Nothing is cached between checks, so
a revoked or suspended membership takes effect immediately.
"""

from __future__ import annotations

import uuid
from typing import Any, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.context import EMPTY_CONTEXT, TenantContext
from app.models.memberships import AccountMembership, TeamMembership, WorkspaceMembership
from app.models.user import User

from mangroves_shared.schemas.common import (
    MembershipRole,
    MembershipStatus,
    TeamRole,
    role_at_least,
)

MembershipModel = Union[AccountMembership, WorkspaceMembership, TeamMembership]


async def active_membership(
    session: AsyncSession,
    model: type[MembershipModel],
    parent_id: Optional[uuid.UUID],
    user: Optional[User],
) -> Optional[MembershipModel]:
    """The user's *active* membership on a parent, or None.

    Pending, suspended and declined memberships confer nothing.
    """
    if user is None or parent_id is None:
        return None
    parent_column = {
        AccountMembership: AccountMembership.account_id,
        WorkspaceMembership: WorkspaceMembership.workspace_id,
        TeamMembership: TeamMembership.team_id,
    }[model]
    result = await session.execute(
        select(model).where(
            parent_column == parent_id,
            model.user_id == user.id,
            model.status == MembershipStatus.ACTIVE.value,
        )
    )
    return result.scalars().first()


def has_role(membership: Optional[MembershipModel], minimum: Union[MembershipRole, TeamRole]) -> bool:
    if membership is None:
        return False
    role = type(minimum)(membership.role)
    return role_at_least(role, minimum)


class ApplicationPolicy:
    """Deny everything; subclasses open up what they need."""

    def __init__(
        self,
        session: AsyncSession,
        user: Optional[User],
        record: Any,
        tenant: Optional[TenantContext] = None,
    ):
        self.session = session
        self.user = user
        self.record = record
        self.tenant = tenant or EMPTY_CONTEXT

    @property
    def is_class_check(self) -> bool:
        """True when authorizing against the record type, not an instance."""
        return isinstance(self.record, type)

    async def can_list(self) -> bool:
        return False

    async def can_view(self) -> bool:
        return False

    async def can_create(self) -> bool:
        return False

    async def can_update(self) -> bool:
        return False

    async def can_delete(self) -> bool:
        return False
