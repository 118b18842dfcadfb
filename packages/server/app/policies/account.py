"""Account authorization rules."""

from __future__ import annotations

from app.models.memberships import AccountMembership
from app.policies.base import ApplicationPolicy, active_membership, has_role

from mangroves_shared.schemas.common import MembershipRole


class AccountPolicy(ApplicationPolicy):
    async def _membership(self):
        if self.is_class_check:
            return None
        return await active_membership(self.session, AccountMembership, self.record.id, self.user)

    async def can_list(self) -> bool:
        return self.user is not None

    async def can_view(self) -> bool:
        return await self._membership() is not None

    async def can_create(self) -> bool:
        return self.user is not None

    async def can_update(self) -> bool:
        return has_role(await self._membership(), MembershipRole.ADMIN)

    async def can_delete(self) -> bool:
        membership = await self._membership()
        return membership is not None and membership.role == MembershipRole.OWNER.value
