"""Workspace authorization rules.

Listing and creating depend on the user's account membership: for a class-level
check the account is the tenant's active account, otherwise the record's.
Viewing, updating and deleting depend on the workspace membership.
"""

from __future__ import annotations

from app.models.memberships import AccountMembership, WorkspaceMembership
from app.policies.base import ApplicationPolicy, active_membership, has_role

from mangroves_shared.schemas.common import MembershipRole


class WorkspacePolicy(ApplicationPolicy):
    def _account_id(self):
        if self.is_class_check:
            return self.tenant.account_id
        return self.record.account_id

    async def _account_membership(self):
        return await active_membership(self.session, AccountMembership, self._account_id(), self.user)

    async def _workspace_membership(self):
        if self.is_class_check:
            return None
        return await active_membership(self.session, WorkspaceMembership, self.record.id, self.user)

    async def can_list(self) -> bool:
        return has_role(await self._account_membership(), MembershipRole.MEMBER)

    async def can_view(self) -> bool:
        return await self._workspace_membership() is not None

    async def can_create(self) -> bool:
        return has_role(await self._account_membership(), MembershipRole.MEMBER)

    async def can_update(self) -> bool:
        return has_role(await self._workspace_membership(), MembershipRole.ADMIN)

    async def can_delete(self) -> bool:
        membership = await self._workspace_membership()
        return membership is not None and membership.role == MembershipRole.OWNER.value
