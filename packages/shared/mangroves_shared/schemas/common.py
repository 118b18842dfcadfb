"""
Enums and ordering tables shared between the server and its clients.

Covers: entity statuses, the two role vocabularies and their total orders,
the membership state machine, policy actions and audit action tokens.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel


# ---------------------------------------------------------------------------
# Entity statuses
# ---------------------------------------------------------------------------

class AccountStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"
    ARCHIVED = "archived"


class AccountPlan(str, Enum):
    FREE = "free"
    STARTER = "starter"
    PROFESSIONAL = "professional"
    ENTERPRISE = "enterprise"


class WorkspaceStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"
    SUSPENDED = "suspended"


class TeamStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


class UserRole(str, Enum):
    """Platform-level role, orthogonal to tenant roles."""
    MEMBER = "member"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


# ---------------------------------------------------------------------------
# Membership roles
# ---------------------------------------------------------------------------

class MembershipRole(str, Enum):
    """Account and workspace membership role."""
    VIEWER = "viewer"
    MEMBER = "member"
    ADMIN = "admin"
    OWNER = "owner"


class TeamRole(str, Enum):
    MEMBER = "member"
    LEAD = "lead"


# Ordered lists, lowest first
MEMBERSHIP_ROLE_ORDER: list[MembershipRole] = [
    MembershipRole.VIEWER,
    MembershipRole.MEMBER,
    MembershipRole.ADMIN,
    MembershipRole.OWNER,
]

TEAM_ROLE_ORDER: list[TeamRole] = [TeamRole.MEMBER, TeamRole.LEAD]

AnyRole = Union[MembershipRole, TeamRole]


def _role_order(role: AnyRole) -> list:
    if isinstance(role, MembershipRole):
        return MEMBERSHIP_ROLE_ORDER
    if isinstance(role, TeamRole):
        return TEAM_ROLE_ORDER
    raise TypeError(f"Not a membership role: {role!r}")


def role_at_least(role: AnyRole, minimum: AnyRole) -> bool:
    """True if ``role`` ranks at or above ``minimum`` in the same vocabulary.

    Comparing across vocabularies (e.g. a team role against an account role)
    is a programming error and raises ``ValueError``.
    """
    order = _role_order(role)
    if type(role) is not type(minimum):
        raise ValueError(
            f"Cannot compare {type(role).__name__} with {type(minimum).__name__}"
        )
    return order.index(role) >= order.index(minimum)


# ---------------------------------------------------------------------------
# Membership lifecycle
# ---------------------------------------------------------------------------

class MembershipStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    DECLINED = "declined"


# Valid state transitions for every membership level
MEMBERSHIP_TRANSITIONS: dict[MembershipStatus, list[MembershipStatus]] = {
    MembershipStatus.PENDING: [MembershipStatus.ACTIVE, MembershipStatus.DECLINED],
    MembershipStatus.ACTIVE: [MembershipStatus.SUSPENDED],
    MembershipStatus.SUSPENDED: [MembershipStatus.ACTIVE],
    MembershipStatus.DECLINED: [],
}


def validate_transition(
    current: MembershipStatus, target: MembershipStatus
) -> tuple[bool, str]:
    """Validate a membership status change. Returns (is_valid, error_message)."""
    if current == target:
        return False, f"Membership is already {current.value}"
    if target not in MEMBERSHIP_TRANSITIONS[current]:
        return False, f"Cannot move membership from {current.value} to {target.value}"
    return True, ""


# ---------------------------------------------------------------------------
# Policy actions
# ---------------------------------------------------------------------------

class Action(str, Enum):
    LIST = "list"
    VIEW = "view"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------

class AuditAction(str, Enum):
    ACCOUNT_SWITCH = "account.switch"
    WORKSPACE_SWITCH = "workspace.switch"
    USER_LOGIN = "user.login"
    USER_LOGOUT = "user.logout"
    PERMISSION_CHANGE = "permission.change"
    ACCOUNT_CREATE = "account.create"
    ACCOUNT_UPDATE = "account.update"
    ACCOUNT_DELETE = "account.delete"
    WORKSPACE_CREATE = "workspace.create"
    WORKSPACE_UPDATE = "workspace.update"
    WORKSPACE_DELETE = "workspace.delete"
    TEAM_CREATE = "team.create"
    TEAM_UPDATE = "team.update"
    TEAM_DELETE = "team.delete"
    MEMBERSHIP_CREATE = "membership.create"
    MEMBERSHIP_UPDATE = "membership.update"
    MEMBERSHIP_DELETE = "membership.delete"


class AuditSubjectKind(str, Enum):
    ACCOUNT = "account"
    WORKSPACE = "workspace"
    TEAM = "team"
    ACCOUNT_MEMBERSHIP = "account_membership"
    WORKSPACE_MEMBERSHIP = "workspace_membership"
    TEAM_MEMBERSHIP = "team_membership"
    USER = "user"


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------

class ErrorBody(BaseModel):
    code: str
    message: str
    status: int
    field: Optional[str] = None


class ErrorResponse(BaseModel):
    error: ErrorBody
