# SQLModel definitions - imported here to ensure metadata is populated for Alembic.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .account import Account  # noqa: F401
from .user import User  # noqa: F401
from .workspace import Workspace  # noqa: F401
from .team import Team  # noqa: F401
from .memberships import AccountMembership, WorkspaceMembership, TeamMembership  # noqa: F401
from .audit_event import AuditEvent  # noqa: F401
