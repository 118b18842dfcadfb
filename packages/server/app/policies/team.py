"""Team authorization rules.

Team memberships only know ``member`` and ``lead``; ``lead`` is what
updating and deleting require.
"""

from __future__ import annotations

from app.models.memberships import TeamMembership, WorkspaceMembership
from app.policies.base import ApplicationPolicy, active_membership, has_role

from mangroves_shared.schemas.common import MembershipRole, TeamRole


class TeamPolicy(ApplicationPolicy):
    def _workspace_id(self):
        if self.is_class_check:
            return self.tenant.workspace_id
        return self.record.workspace_id

    async def _workspace_membership(self):
        return await active_membership(self.session, WorkspaceMembership, self._workspace_id(), self.user)

    async def _team_membership(self):
        if self.is_class_check:
            return None
        return await active_membership(self.session, TeamMembership, self.record.id, self.user)

    async def _is_lead(self) -> bool:
        membership = await self._team_membership()
        return membership is not None and membership.role == TeamRole.LEAD.value

    async def can_list(self) -> bool:
        return has_role(await self._workspace_membership(), MembershipRole.MEMBER)

    async def can_view(self) -> bool:
        return await self._team_membership() is not None

    async def can_create(self) -> bool:
        return has_role(await self._workspace_membership(), MembershipRole.MEMBER)

    async def can_update(self) -> bool:
        return await self._is_lead()

    async def can_delete(self) -> bool:
        return await self._is_lead()
