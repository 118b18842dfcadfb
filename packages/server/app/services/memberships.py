"""
Membership service: invitations, lifecycle transitions and role changes at the
account, workspace and team level.

Cross-entity rules enforced on create:
- a workspace membership needs an account membership on the workspace's account
- a team membership needs a workspace membership on the team's workspace

By default the parent membership may have any status; with
``require_active_parent_membership`` it must be active.

Role changes and transitions are compare-and-swap on ``lock_version``; losing
the race raises ``StaleRecordError`` instead of overwriting.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

import sqlalchemy as sa
import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value
from sqlmodel import select

from app.core.config import get_settings
from app.core.context import TenantContext
from app.core.errors import InvalidTransitionError, NotFoundError, RecordInvalid, StaleRecordError
from app.core.tenancy import AccountMembershipRepository
from app.models.account import Account
from app.models.memberships import AccountMembership, TeamMembership, WorkspaceMembership
from app.models.team import Team
from app.models.user import User
from app.models.workspace import Workspace
from app.services import audit

from mangroves_shared.schemas.common import (
    AuditAction,
    MembershipRole,
    MembershipStatus,
    TeamRole,
    validate_transition,
)

log = structlog.get_logger()

Membership = Union[AccountMembership, WorkspaceMembership, TeamMembership]
Parent = Union[Account, Workspace, Team]

# parent type -> (membership model, parent id attribute, role vocabulary)
_LEVELS: dict[type, tuple[type, str, type]] = {
    Account: (AccountMembership, "account_id", MembershipRole),
    Workspace: (WorkspaceMembership, "workspace_id", MembershipRole),
    Team: (TeamMembership, "team_id", TeamRole),
}

_MEMBERSHIP_LEVELS = {model: (attr, roles) for model, attr, roles in _LEVELS.values()}


class Transition(str, Enum):
    """Named lifecycle moves; each maps to a function below."""

    ACCEPT = "accept"
    DECLINE = "decline"
    SUSPEND = "suspend"
    REINSTATE = "reinstate"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _coerce_role(roles: type, role: Union[str, MembershipRole, TeamRole]) -> str:
    try:
        return roles(role).value
    except ValueError:
        raise RecordInvalid("role", f"must be one of: {', '.join(r.value for r in roles)}") from None


async def find_membership(
    session: AsyncSession,
    parent: Parent,
    user_id: uuid.UUID,
) -> Optional[Membership]:
    """Any-status membership of ``user_id`` on ``parent``."""
    model, parent_attr, _ = _LEVELS[type(parent)]
    result = await session.execute(
        select(model).where(getattr(model, parent_attr) == parent.id, model.user_id == user_id)
    )
    return result.scalars().first()


async def list_memberships(session: AsyncSession, parent: Parent) -> list[Membership]:
    model, parent_attr, _ = _LEVELS[type(parent)]
    result = await session.execute(
        select(model).where(getattr(model, parent_attr) == parent.id).order_by(model.created_at)
    )
    return list(result.scalars().all())


async def get_membership(session: AsyncSession, parent: Parent, membership_id: uuid.UUID) -> Membership:
    model, parent_attr, _ = _LEVELS[type(parent)]
    result = await session.execute(
        select(model).where(model.id == membership_id, getattr(model, parent_attr) == parent.id)
    )
    membership = result.scalars().first()
    if membership is None:
        raise NotFoundError(model.__name__)
    return membership


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

async def _parent_membership_ok(
    session: AsyncSession,
    model: type,
    parent_attr: str,
    parent_id: uuid.UUID,
    user_id: uuid.UUID,
) -> bool:
    stmt = select(model).where(getattr(model, parent_attr) == parent_id, model.user_id == user_id)
    if get_settings().require_active_parent_membership:
        stmt = stmt.where(model.status == MembershipStatus.ACTIVE.value)
    result = await session.execute(stmt)
    return result.scalars().first() is not None


async def validate_membership(session: AsyncSession, membership: Membership) -> None:
    """Cross-entity checks for a membership about to be written."""
    duplicate_model = type(membership)
    parent_attr, _ = _MEMBERSHIP_LEVELS[duplicate_model]
    result = await session.execute(
        select(duplicate_model).where(
            getattr(duplicate_model, parent_attr) == getattr(membership, parent_attr),
            duplicate_model.user_id == membership.user_id,
            duplicate_model.id != membership.id,
        )
    )
    if result.scalars().first() is not None:
        raise RecordInvalid("user_id", "already has a membership here")

    if isinstance(membership, WorkspaceMembership):
        workspace = await session.get(Workspace, membership.workspace_id)
        if workspace is None:
            raise RecordInvalid("workspace", "must exist")
        if not await _parent_membership_ok(
            session, AccountMembership, "account_id", workspace.account_id, membership.user_id
        ):
            raise RecordInvalid("user", "must be a member of the workspace's account")

    elif isinstance(membership, TeamMembership):
        team = await session.get(Team, membership.team_id)
        if team is None:
            raise RecordInvalid("team", "must exist")
        if not await _parent_membership_ok(
            session, WorkspaceMembership, "workspace_id", team.workspace_id, membership.user_id
        ):
            raise RecordInvalid("user", "must be a member of the team's workspace")


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------

async def _create(
    session: AsyncSession,
    tenant: TenantContext,
    parent: Parent,
    user: User,
    role: Union[str, MembershipRole, TeamRole],
    status: MembershipStatus,
    invited_by: Optional[User],
) -> Membership:
    model, parent_attr, roles = _LEVELS[type(parent)]
    values: dict[str, Any] = {
        parent_attr: parent.id,
        "user_id": user.id,
        "role": _coerce_role(roles, role),
        "status": status.value,
    }
    if invited_by is not None:
        values.update(invited_by_id=invited_by.id, invited_at=_now())
    if status == MembershipStatus.ACTIVE:
        values["accepted_at"] = _now()

    membership = model(**values)
    await validate_membership(session, membership)

    if isinstance(membership, AccountMembership):
        await AccountMembershipRepository(session, tenant).create(membership)
    else:
        session.add(membership)
        await session.flush()

    await audit.record(
        session,
        AuditAction.MEMBERSHIP_CREATE,
        membership,
        {"user_id": user.id, "role": membership.role, "status": membership.status},
        tenant=tenant,
    )
    log.info(
        "membership.created",
        level=type(parent).__name__.lower(),
        parent_id=str(parent.id),
        user_id=str(user.id),
        role=membership.role,
        status=membership.status,
    )
    return membership


async def add_member(
    session: AsyncSession,
    tenant: TenantContext,
    parent: Parent,
    user: User,
    role: Union[str, MembershipRole, TeamRole],
) -> Membership:
    """Create an active membership (creator or self-join)."""
    return await _create(session, tenant, parent, user, role, MembershipStatus.ACTIVE, None)


async def invite_member(
    session: AsyncSession,
    tenant: TenantContext,
    parent: Parent,
    user: User,
    role: Union[str, MembershipRole, TeamRole],
    invited_by: User,
) -> Membership:
    """Create a pending membership stamped with the inviter."""
    return await _create(session, tenant, parent, user, role, MembershipStatus.PENDING, invited_by)


# ---------------------------------------------------------------------------
# Compare-and-swap writes
# ---------------------------------------------------------------------------

async def _compare_and_swap(
    session: AsyncSession,
    membership: Membership,
    expected_version: int,
    **values: Any,
) -> Membership:
    model = type(membership)
    values["lock_version"] = expected_version + 1
    values["updated_at"] = _now()
    result = await session.execute(
        sa.update(model)
        .where(model.id == membership.id, model.lock_version == expected_version)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        log.info(
            "membership.stale",
            membership_id=str(membership.id),
            expected_version=expected_version,
        )
        raise StaleRecordError(model.__name__)
    for key, value in values.items():
        set_committed_value(membership, key, value)
    return membership


async def change_role(
    session: AsyncSession,
    tenant: TenantContext,
    membership: Membership,
    role: Union[str, MembershipRole, TeamRole],
    lock_version: Optional[int] = None,
) -> Membership:
    """Change a membership's role if nobody else changed it since ``lock_version``."""
    _, roles = _MEMBERSHIP_LEVELS[type(membership)]
    new_role = _coerce_role(roles, role)
    old_role = membership.role
    expected = membership.lock_version if lock_version is None else lock_version

    await _compare_and_swap(session, membership, expected, role=new_role)
    await audit.record(
        session,
        AuditAction.PERMISSION_CHANGE,
        membership,
        {"user_id": membership.user_id, "from": old_role, "to": new_role},
        tenant=tenant,
    )
    log.info("membership.role_changed", membership_id=str(membership.id), role=new_role)
    return membership


async def transition(
    session: AsyncSession,
    tenant: TenantContext,
    membership: Membership,
    target: MembershipStatus,
) -> Membership:
    current = MembershipStatus(membership.status)
    is_valid, error = validate_transition(current, target)
    if not is_valid:
        raise InvalidTransitionError(error)

    values: dict[str, Any] = {"status": target.value}
    if current == MembershipStatus.PENDING and target == MembershipStatus.ACTIVE:
        values["accepted_at"] = _now()

    await _compare_and_swap(session, membership, membership.lock_version, **values)
    await audit.record(
        session,
        AuditAction.MEMBERSHIP_UPDATE,
        membership,
        {"user_id": membership.user_id, "from": current.value, "to": target.value},
        tenant=tenant,
    )
    log.info(
        "membership.transitioned",
        membership_id=str(membership.id),
        from_status=current.value,
        to_status=target.value,
    )
    return membership


async def accept(session: AsyncSession, tenant: TenantContext, membership: Membership) -> Membership:
    if membership.status != MembershipStatus.PENDING.value:
        raise InvalidTransitionError("Only pending invitations can be accepted")
    return await transition(session, tenant, membership, MembershipStatus.ACTIVE)


async def decline(session: AsyncSession, tenant: TenantContext, membership: Membership) -> Membership:
    return await transition(session, tenant, membership, MembershipStatus.DECLINED)


async def suspend(session: AsyncSession, tenant: TenantContext, membership: Membership) -> Membership:
    return await transition(session, tenant, membership, MembershipStatus.SUSPENDED)


async def reinstate(session: AsyncSession, tenant: TenantContext, membership: Membership) -> Membership:
    if membership.status != MembershipStatus.SUSPENDED.value:
        raise InvalidTransitionError("Only suspended memberships can be reinstated")
    return await transition(session, tenant, membership, MembershipStatus.ACTIVE)
