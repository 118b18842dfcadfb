"""
Tests for optimistic concurrency on memberships.

Two sessions read the same membership; the second writer must get
StaleRecordError instead of silently overwriting the first.
"""

from __future__ import annotations

import pytest

from app.core.errors import StaleRecordError
from app.core.tenancy import AccountMembershipRepository
from app.models.memberships import AccountMembership
from app.services import memberships

from mangroves_shared.schemas.common import MembershipRole, MembershipStatus


@pytest.fixture
async def acme_member(api_user, api_tenant, committed):
    owner = await api_user("owner@example.com")
    member = await api_user("member@example.com")
    acme = await api_tenant(owner, "Acme")

    async def add(s):
        return await memberships.add_member(s, acme, acme.account, member, MembershipRole.MEMBER)

    membership = await committed(add)
    return acme, membership.id


async def _load(session_factory, membership_id):
    async with session_factory() as s:
        membership = await s.get(AccountMembership, membership_id)
        await s.commit()
        return membership


class TestStaleWrites:
    @pytest.mark.asyncio
    async def test_second_role_change_is_rejected(self, session_factory, acme_member):
        acme, membership_id = acme_member
        first_copy = await _load(session_factory, membership_id)
        second_copy = await _load(session_factory, membership_id)

        async with session_factory() as s:
            await memberships.change_role(s, acme, first_copy, MembershipRole.ADMIN)
            await s.commit()

        async with session_factory() as s:
            with pytest.raises(StaleRecordError):
                await memberships.change_role(s, acme, second_copy, MembershipRole.VIEWER)
            await s.rollback()

        final = await _load(session_factory, membership_id)
        assert final.role == MembershipRole.ADMIN.value
        assert final.lock_version == 2

    @pytest.mark.asyncio
    async def test_transition_against_stale_copy_is_rejected(self, session_factory, acme_member):
        acme, membership_id = acme_member
        first_copy = await _load(session_factory, membership_id)
        second_copy = await _load(session_factory, membership_id)

        async with session_factory() as s:
            await memberships.suspend(s, acme, first_copy)
            await s.commit()

        async with session_factory() as s:
            with pytest.raises(StaleRecordError):
                await memberships.change_role(s, acme, second_copy, MembershipRole.OWNER)
            await s.rollback()

        final = await _load(session_factory, membership_id)
        assert final.status == MembershipStatus.SUSPENDED.value
        assert final.role == MembershipRole.MEMBER.value

    @pytest.mark.asyncio
    async def test_explicit_expected_version(self, session_factory, acme_member):
        acme, membership_id = acme_member
        membership = await _load(session_factory, membership_id)

        async with session_factory() as s:
            with pytest.raises(StaleRecordError):
                await memberships.change_role(s, acme, membership, MembershipRole.ADMIN, lock_version=7)
            await s.rollback()

        async with session_factory() as s:
            await memberships.change_role(s, acme, membership, MembershipRole.ADMIN, lock_version=1)
            await s.commit()
        assert membership.lock_version == 2

    @pytest.mark.asyncio
    async def test_stale_error_is_a_conflict(self):
        error = StaleRecordError("AccountMembership")
        assert error.status_code == 409
        assert error.to_dict()["code"] == "STALE_RECORD"


class TestVersionedRepositoryWrites:
    @pytest.mark.asyncio
    async def test_repository_update_with_stale_copy_is_rejected(self, session_factory, acme_member):
        acme, membership_id = acme_member
        async with session_factory() as stale_session:
            stale = await stale_session.get(AccountMembership, membership_id)
            await stale_session.commit()

            async with session_factory() as s:
                await AccountMembershipRepository(s, acme).update(membership_id, role=MembershipRole.ADMIN.value)
                await s.commit()

            # The reload keeps the identity-map copy, still at version 1.
            assert stale.lock_version == 1
            with pytest.raises(StaleRecordError):
                await AccountMembershipRepository(stale_session, acme).update(
                    membership_id, role=MembershipRole.VIEWER.value
                )
            await stale_session.rollback()

        final = await _load(session_factory, membership_id)
        assert final.role == MembershipRole.ADMIN.value
        assert final.lock_version == 2

    @pytest.mark.asyncio
    async def test_bulk_update_bumps_version(self, session_factory, acme_member):
        acme, membership_id = acme_member
        stale = await _load(session_factory, membership_id)

        async with session_factory() as s:
            touched = await AccountMembershipRepository(s, acme).update_all(
                {"role": MembershipRole.VIEWER.value},
                AccountMembership.id == membership_id,
            )
            await s.commit()
        assert touched == 1

        async with session_factory() as s:
            with pytest.raises(StaleRecordError):
                await memberships.change_role(s, acme, stale, MembershipRole.ADMIN)
            await s.rollback()

        final = await _load(session_factory, membership_id)
        assert final.role == MembershipRole.VIEWER.value
        assert final.lock_version == 2
