"""
Tenant context carrier.

Holds the active user, account, workspace and request correlation id for one
unit of work (HTTP request, job, console session, test). The value lives in a
``ContextVar``: every thread and every asyncio task observes its own copy, and
a child task starts from a snapshot of its parent that it cannot leak back.

Services receive a ``TenantContext`` explicitly; the ambient value below is
only read at the boundaries (middleware, dependencies, jobs, mailers, console).
"""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Optional, TypeVar

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.account import Account
from app.models.user import User
from app.models.workspace import Workspace

log = structlog.get_logger()

T = TypeVar("T")


@dataclass(frozen=True)
class TenantContext:
    """Immutable snapshot of who is acting, and in which tenant."""

    user: Optional[User] = None
    account: Optional[Account] = None
    workspace: Optional[Workspace] = None
    request_id: Optional[str] = None

    @property
    def user_id(self) -> Optional[uuid.UUID]:
        return self.user.id if self.user is not None else None

    @property
    def account_id(self) -> Optional[uuid.UUID]:
        return self.account.id if self.account is not None else None

    @property
    def workspace_id(self) -> Optional[uuid.UUID]:
        return self.workspace.id if self.workspace is not None else None

    @property
    def is_empty(self) -> bool:
        return self == EMPTY_CONTEXT

    def describe(self) -> dict[str, Any]:
        """Log-friendly view (ids only)."""
        return {
            "user_id": str(self.user_id) if self.user_id else None,
            "account_id": str(self.account_id) if self.account_id else None,
            "workspace_id": str(self.workspace_id) if self.workspace_id else None,
            "request_id": self.request_id,
        }


EMPTY_CONTEXT = TenantContext()

_current: ContextVar[TenantContext] = ContextVar("mangroves_tenant_context", default=EMPTY_CONTEXT)

# Marks "leave this field as it is" in scoped overrides, since None means "clear it".
_UNSET: Any = object()


# ---------------------------------------------------------------------------
# Accessors
# ---------------------------------------------------------------------------

def current_context() -> TenantContext:
    return _current.get()


def current_user() -> Optional[User]:
    return _current.get().user


def current_account() -> Optional[Account]:
    return _current.get().account


def current_workspace() -> Optional[Workspace]:
    return _current.get().workspace


def set_context(context: TenantContext) -> TenantContext:
    _current.set(context)
    return context


def set_account(account: Optional[Account]) -> TenantContext:
    return set_context(replace(_current.get(), account=account))


def set_workspace(workspace: Optional[Workspace]) -> TenantContext:
    return set_context(replace(_current.get(), workspace=workspace))


def set_request_id(request_id: Optional[str]) -> TenantContext:
    return set_context(replace(_current.get(), request_id=request_id))


async def derive_tenant(session: AsyncSession, user: Optional[User]) -> tuple[Optional[Account], Optional[Workspace]]:
    """Resolve (account, workspace) from the user's current-workspace pointer."""
    if user is None or user.current_workspace_id is None:
        return None, None
    workspace = await session.get(Workspace, user.current_workspace_id)
    if workspace is None:
        return None, None
    account = await session.get(Account, workspace.account_id)
    return account, workspace


async def set_user(session: AsyncSession, user: Optional[User]) -> TenantContext:
    """Assign the acting user and derive account/workspace from it.

    The derivation happens here, once. Later changes to
    ``user.current_workspace_id`` do not move the context.
    """
    account, workspace = await derive_tenant(session, user)
    return set_context(replace(_current.get(), user=user, account=account, workspace=workspace))


def reset_context() -> TenantContext:
    """Clear every field. Calling it twice is the same as calling it once."""
    return set_context(EMPTY_CONTEXT)


# ---------------------------------------------------------------------------
# Scoped execution
# ---------------------------------------------------------------------------

def _apply(base: TenantContext, user: Any, account: Any, workspace: Any, request_id: Any) -> TenantContext:
    changes = {}
    if user is not _UNSET:
        changes["user"] = user
    if account is not _UNSET:
        changes["account"] = account
    if workspace is not _UNSET:
        changes["workspace"] = workspace
    if request_id is not _UNSET:
        changes["request_id"] = request_id
    return replace(base, **changes)


@asynccontextmanager
async def scoped_context(
    *,
    user: Any = _UNSET,
    account: Any = _UNSET,
    workspace: Any = _UNSET,
    request_id: Any = _UNSET,
):
    """Temporarily override fields; the prior context is restored on every exit
    path, including exceptions and task cancellation."""
    token = _current.set(_apply(_current.get(), user, account, workspace, request_id))
    try:
        yield _current.get()
    finally:
        _current.reset(token)


@asynccontextmanager
async def isolated_context(
    *,
    user: Optional[User] = None,
    account: Optional[Account] = None,
    workspace: Optional[Workspace] = None,
    request_id: Optional[str] = None,
):
    """Like ``scoped_context`` but starting from the empty context.

    Boundaries use this so that nothing from the caller's context survives
    into the unit of work.
    """
    fresh = TenantContext(user=user, account=account, workspace=workspace, request_id=request_id)
    token = _current.set(fresh)
    try:
        yield fresh
    finally:
        _current.reset(token)


async def with_context(
    body: Callable[[], Awaitable[T]],
    *,
    user: Any = _UNSET,
    account: Any = _UNSET,
    workspace: Any = _UNSET,
    request_id: Any = _UNSET,
) -> T:
    """Run ``body()`` inside ``scoped_context`` and return its result."""
    async with scoped_context(user=user, account=account, workspace=workspace, request_id=request_id):
        return await body()
