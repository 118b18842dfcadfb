"""
Slug allocation.

Slugs are unique per scope: globally for accounts, per account for
workspaces, per workspace for teams. ``allocate_slug`` picks the first free
candidate (``base``, ``base-1``, ``base-2``, ...) but that is a check-then-act
read; the unique constraints are the source of truth, and
``persist_with_slug`` retries the insert under a SAVEPOINT when a concurrent
writer wins the race.
"""

from __future__ import annotations

import re
import unicodedata
import uuid
from enum import Enum
from typing import Optional, Union

import sqlalchemy as sa
import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.errors import RecordInvalid, SlugExhaustedError
from app.models.account import Account
from app.models.team import Team
from app.models.workspace import Workspace

from mangroves_shared.schemas.accounts import SLUG_PATTERN

log = structlog.get_logger()

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_SLUG_RE = re.compile(SLUG_PATTERN)

SlugModel = Union[Account, Workspace, Team]


class SlugScope(str, Enum):
    ACCOUNT = "account"
    WORKSPACE = "workspace"
    TEAM = "team"


# scope -> (model, column holding the scope id; None means global)
_SCOPE_TARGETS = {
    SlugScope.ACCOUNT: (Account, None),
    SlugScope.WORKSPACE: (Workspace, "account_id"),
    SlugScope.TEAM: (Team, "workspace_id"),
}


def slugify(value: str, fallback: str = "item") -> str:
    """
    Normalize text into a URL-safe slug.

    Example: "Café Déjà Vu!" -> "cafe-deja-vu"
    """
    value = unicodedata.normalize("NFKD", value or "")
    value = value.encode("ascii", "ignore").decode("ascii").lower()
    value = _NON_ALNUM.sub("-", value).strip("-")
    return value or fallback


def is_valid_slug(slug: str) -> bool:
    return bool(slug) and bool(_SLUG_RE.match(slug))


def _scope_filter(scope: SlugScope, scope_id: Optional[uuid.UUID]):
    model, column = _SCOPE_TARGETS[scope]
    if column is None:
        return model, sa.true()
    if scope_id is None:
        raise ValueError(f"{scope.value} slugs need a scope id")
    return model, getattr(model, column) == scope_id


async def slug_taken(
    session: AsyncSession,
    slug: str,
    scope: SlugScope,
    scope_id: Optional[uuid.UUID] = None,
    *,
    exclude_id: Optional[uuid.UUID] = None,
) -> bool:
    model, in_scope = _scope_filter(scope, scope_id)
    stmt = sa.select(model.id).where(in_scope, model.slug == slug)
    if exclude_id is not None:
        stmt = stmt.where(model.id != exclude_id)
    result = await session.execute(stmt.limit(1))
    return result.first() is not None


async def allocate_slug(
    session: AsyncSession,
    name: str,
    scope: SlugScope,
    scope_id: Optional[uuid.UUID] = None,
) -> str:
    """Return the first free slug for ``name`` within the scope."""
    settings = get_settings()
    base = slugify(name, fallback=scope.value)
    model, in_scope = _scope_filter(scope, scope_id)

    result = await session.execute(
        sa.select(model.slug).where(
            in_scope, sa.or_(model.slug == base, model.slug.like(f"{base}-%"))
        )
    )
    taken = set(result.scalars().all())

    if base not in taken:
        return base
    for n in range(1, settings.slug_max_candidates + 1):
        candidate = f"{base}-{n}"
        if candidate not in taken:
            return candidate
    raise SlugExhaustedError(base, settings.slug_max_candidates)


async def ensure_slug_available(
    session: AsyncSession,
    slug: str,
    scope: SlugScope,
    scope_id: Optional[uuid.UUID] = None,
    *,
    exclude_id: Optional[uuid.UUID] = None,
) -> None:
    """Validate a caller-chosen slug. Raises ``RecordInvalid``; never retries."""
    if not is_valid_slug(slug):
        raise RecordInvalid("slug", "must be lowercase letters, digits and hyphens")
    if await slug_taken(session, slug, scope, scope_id, exclude_id=exclude_id):
        raise RecordInvalid("slug", "has already been taken")


async def persist_with_slug(
    session: AsyncSession,
    entity: SlugModel,
    scope: SlugScope,
    scope_id: Optional[uuid.UUID] = None,
    *,
    explicit: bool = False,
) -> SlugModel:
    """Insert ``entity``, allocating (and if needed re-allocating) its slug.

    Each attempt runs in its own SAVEPOINT so a unique violation only rolls
    back that insert. An explicit slug is validated up front and a collision
    on it is a ``RecordInvalid``.
    """
    settings = get_settings()

    if explicit:
        await ensure_slug_available(session, entity.slug, scope, scope_id)
        try:
            async with session.begin_nested():
                session.add(entity)
                await session.flush()
        except IntegrityError:
            if await slug_taken(session, entity.slug, scope, scope_id):
                raise RecordInvalid("slug", "has already been taken")
            raise
        return entity

    if not entity.slug:
        entity.slug = await allocate_slug(session, entity.name, scope, scope_id)

    base = entity.slug
    for attempt in range(1, settings.slug_max_attempts + 1):
        try:
            async with session.begin_nested():
                session.add(entity)
                await session.flush()
            return entity
        except IntegrityError:
            # Only a lost slug race is retried; other constraint failures propagate.
            if not await slug_taken(session, entity.slug, scope, scope_id):
                raise
            log.info(
                "slug.collision",
                scope=scope.value,
                slug=entity.slug,
                attempt=attempt,
            )
            entity.slug = await allocate_slug(session, entity.name, scope, scope_id)

    log.error("slug.exhausted", scope=scope.value, base=base, attempts=settings.slug_max_attempts)
    raise SlugExhaustedError(base, settings.slug_max_attempts)
