"""
Tenant-scoped data access.

Every read through a ``TenantScopedRepository`` is filtered to the tenant's
active account, and matches nothing when no account is active. Creates are
stamped with the active account; a create with neither an explicit nor an
active account fails with ``MissingTenantError``. A record that belongs to a
different account is reported exactly like a missing one.

``unscoped()`` drops the filter. It is never the default and callers use it
deliberately (system tooling, audit queries, console).
"""

from __future__ import annotations

import uuid
from contextlib import contextmanager
from typing import Any, ClassVar, Generic, Optional, TypeVar, Union

import sqlalchemy as sa
import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError
from sqlmodel import SQLModel, select

from app.core.context import TenantContext
from app.core.errors import MissingTenantError, NotFoundError, RecordInvalid, StaleRecordError
from app.core.slugs import SlugScope, ensure_slug_available, persist_with_slug
from app.models.memberships import AccountMembership
from app.models.team import Team
from app.models.workspace import Workspace

log = structlog.get_logger()

ModelT = TypeVar("ModelT", bound=SQLModel)

# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

# Tables carrying a non-null account_id that must only be reached through a
# repository below.
TENANT_SCOPED_MODELS: dict[str, type[SQLModel]] = {}

# Tables that carry account_id but are deliberately not tenant-scoped.
TENANT_SCOPE_EXEMPT_TABLES: set[str] = {
    "accounts",  # the tenant root itself
    "audit_events",  # may exist without a tenant; read via explicit helpers
}


def tenant_scoped(model: type[ModelT]) -> type[ModelT]:
    TENANT_SCOPED_MODELS[model.__tablename__] = model
    return model


tenant_scoped(Workspace)
tenant_scoped(Team)
tenant_scoped(AccountMembership)


# ---------------------------------------------------------------------------
# Base repository
# ---------------------------------------------------------------------------

class TenantScopedRepository(Generic[ModelT]):
    """CRUD over one tenant-scoped model, parameterized by a ``TenantContext``."""

    model: ClassVar[type[SQLModel]]
    # Columns a bulk update may not touch; changing them needs per-record validation.
    bulk_immutable: ClassVar[frozenset[str]] = frozenset({"account_id"})

    def __init__(self, session: AsyncSession, tenant: TenantContext, *, scoped: bool = True):
        self.session = session
        self.tenant = tenant
        self.scoped = scoped

    @property
    def model_name(self) -> str:
        return self.model.__name__

    def unscoped(self) -> "TenantScopedRepository[ModelT]":
        return type(self)(self.session, self.tenant, scoped=False)

    def tenant_criterion(self):
        if not self.scoped:
            return sa.true()
        if self.tenant.account_id is None:
            # Fail closed.
            return sa.false()
        return self.model.account_id == self.tenant.account_id

    # -- reads --------------------------------------------------------------

    def select(self, *criteria):
        return select(self.model).where(self.tenant_criterion(), *criteria)

    async def all(self, *criteria, order_by=None) -> list[ModelT]:
        stmt = self.select(*criteria)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def first(self, *criteria, order_by=None) -> Optional[ModelT]:
        stmt = self.select(*criteria)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        result = await self.session.execute(stmt.limit(1))
        return result.scalars().first()

    async def count(self, *criteria) -> int:
        stmt = (
            sa.select(sa.func.count())
            .select_from(self.model)
            .where(self.tenant_criterion(), *criteria)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def exists(self, *criteria) -> bool:
        return await self.first(*criteria) is not None

    async def find(self, record_id: uuid.UUID) -> ModelT:
        """Fetch by id within the tenant. Cross-tenant ids are 'not found'."""
        record = await self.first(self.model.id == record_id)
        if record is None:
            raise NotFoundError(self.model_name)
        return record

    async def find_by(self, **filters: Any) -> Optional[ModelT]:
        criteria = [getattr(self.model, key) == value for key, value in filters.items()]
        return await self.first(*criteria)

    async def get_by(self, **filters: Any) -> ModelT:
        record = await self.find_by(**filters)
        if record is None:
            raise NotFoundError(self.model_name)
        return record

    # -- writes -------------------------------------------------------------

    def _stamp(self, record: ModelT) -> None:
        if record.account_id is None:
            if self.tenant.account_id is None:
                raise MissingTenantError(self.model_name)
            record.account_id = self.tenant.account_id

    async def validate(self, record: ModelT) -> None:
        """Per-type cross-entity checks; runs before every insert and update."""

    async def _insert(self, record: ModelT) -> ModelT:
        self.session.add(record)
        await self.session.flush()
        return record

    async def create(self, record: Optional[ModelT] = None, **values: Any) -> ModelT:
        if record is None:
            record = self.model(**values)
        self._stamp(record)
        await self.validate(record)
        record = await self._insert(record)
        log.debug(
            "tenancy.created",
            model=self.model_name,
            id=str(record.id),
            account_id=str(record.account_id),
        )
        return record

    async def _resolve(self, record_or_id: Union[ModelT, uuid.UUID]) -> ModelT:
        record_id = record_or_id if isinstance(record_or_id, uuid.UUID) else record_or_id.id
        return await self.find(record_id)

    async def before_update(self, record: ModelT, changes: dict[str, Any]) -> None:
        """Checks that need the record before ``changes`` are applied."""

    @contextmanager
    def _versioned(self, record: ModelT):
        # Autoflush can surface the version conflict from any query in the block.
        try:
            yield
        except StaleDataError:
            log.info("tenancy.stale", model=self.model_name, id=str(record.id))
            raise StaleRecordError(self.model_name) from None

    async def update(self, record_or_id: Union[ModelT, uuid.UUID], **changes: Any) -> ModelT:
        record = await self._resolve(record_or_id)
        if "account_id" in changes and changes["account_id"] != record.account_id:
            raise RecordInvalid("account_id", "cannot be changed")
        await self.before_update(record, changes)
        for key, value in changes.items():
            setattr(record, key, value)
        with self._versioned(record):
            await self.validate(record)
            self.session.add(record)
            await self.session.flush()
        return record

    async def delete(self, record_or_id: Union[ModelT, uuid.UUID]) -> ModelT:
        record = await self._resolve(record_or_id)
        with self._versioned(record):
            await self.session.delete(record)
            await self.session.flush()
        return record

    async def _matching_ids(self, *criteria) -> list[uuid.UUID]:
        result = await self.session.execute(
            sa.select(self.model.id).where(self.tenant_criterion(), *criteria)
        )
        return list(result.scalars().all())

    async def update_all(self, values: dict[str, Any], *criteria) -> int:
        """Bulk update within the tenant. Returns the number of rows touched."""
        frozen = sorted(self.bulk_immutable.intersection(values))
        if frozen:
            raise RecordInvalid(frozen[0], "cannot be changed in a bulk update")
        ids = await self._matching_ids(*criteria)
        if not ids:
            return 0
        mapper = self.model.__mapper__
        if mapper.version_id_col is not None:
            key = mapper.get_property_by_column(mapper.version_id_col).key
            values = {**values, key: getattr(self.model, key) + 1}
        await self.session.execute(
            sa.update(self.model)
            .where(self.model.id.in_(ids))
            .values(**values)
            .execution_options(synchronize_session="evaluate")
        )
        return len(ids)

    async def delete_all(self, *criteria) -> int:
        ids = await self._matching_ids(*criteria)
        if not ids:
            return 0
        await self.session.execute(
            sa.delete(self.model)
            .where(self.model.id.in_(ids))
            .execution_options(synchronize_session="evaluate")
        )
        return len(ids)


# ---------------------------------------------------------------------------
# Concrete repositories
# ---------------------------------------------------------------------------

class SluggedRepository(TenantScopedRepository[ModelT]):
    """Allocates a scoped slug on create and validates slug changes."""

    slug_scope: ClassVar[SlugScope]
    slug_scope_attr: ClassVar[str]

    async def _insert(self, record: ModelT) -> ModelT:
        explicit = bool(record.slug)
        return await persist_with_slug(
            self.session,
            record,
            self.slug_scope,
            getattr(record, self.slug_scope_attr),
            explicit=explicit,
        )

    async def before_update(self, record: ModelT, changes: dict[str, Any]) -> None:
        # The slug must be free in the scope the record ends up in, which moves
        # when the scope column changes even if the slug itself does not.
        slug = changes.get("slug") or record.slug
        scope_id = changes.get(self.slug_scope_attr, getattr(record, self.slug_scope_attr))
        if slug != record.slug or scope_id != getattr(record, self.slug_scope_attr):
            await ensure_slug_available(
                self.session, slug, self.slug_scope, scope_id, exclude_id=record.id
            )


class WorkspaceRepository(SluggedRepository[Workspace]):
    model = Workspace
    slug_scope = SlugScope.WORKSPACE
    slug_scope_attr = "account_id"
    bulk_immutable = frozenset({"account_id", "slug"})


class TeamRepository(SluggedRepository[Team]):
    model = Team
    slug_scope = SlugScope.TEAM
    slug_scope_attr = "workspace_id"
    bulk_immutable = frozenset({"account_id", "slug", "workspace_id"})

    async def _check_workspace(self, workspace_id: uuid.UUID, account_id: uuid.UUID) -> None:
        # Checked against the row, not the tenant: a team always follows its workspace.
        workspace = await self.session.get(Workspace, workspace_id)
        if workspace is None:
            raise RecordInvalid("workspace", "must exist")
        if workspace.account_id != account_id:
            raise RecordInvalid("account_id", "must match the workspace's account")

    async def before_update(self, record: Team, changes: dict[str, Any]) -> None:
        if "workspace_id" in changes:
            await self._check_workspace(changes["workspace_id"], record.account_id)
        await super().before_update(record, changes)

    async def validate(self, record: Team) -> None:
        await self._check_workspace(record.workspace_id, record.account_id)


class AccountMembershipRepository(TenantScopedRepository[AccountMembership]):
    model = AccountMembership

    async def validate(self, record: AccountMembership) -> None:
        duplicate = await self.unscoped().first(
            AccountMembership.account_id == record.account_id,
            AccountMembership.user_id == record.user_id,
            AccountMembership.id != record.id,
        )
        if duplicate is not None:
            raise RecordInvalid("user_id", "is already a member of this account")


def repository_for(model: type[ModelT], session: AsyncSession, tenant: TenantContext) -> TenantScopedRepository[ModelT]:
    """Look up the repository class registered for a tenant-scoped model."""
    for repo_cls in (WorkspaceRepository, TeamRepository, AccountMembershipRepository):
        if repo_cls.model is model:
            return repo_cls(session, tenant)
    raise LookupError(f"{model.__name__} is not tenant-scoped")
