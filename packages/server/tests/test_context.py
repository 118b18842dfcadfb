"""
Tests for the tenant context carrier.

Covers:
- Accessors and setters
- Derivation from the user's current workspace
- Scoped overrides restored on success, failure and cancellation
- Isolation between concurrent tasks
"""

from __future__ import annotations

import asyncio
import uuid

import pytest

from app.core.context import (
    EMPTY_CONTEXT,
    TenantContext,
    current_account,
    current_context,
    current_user,
    current_workspace,
    derive_tenant,
    isolated_context,
    reset_context,
    scoped_context,
    set_account,
    set_request_id,
    set_user,
    set_workspace,
    with_context,
)
from app.models.account import Account
from app.models.user import User
from app.models.workspace import Workspace


def _account(name: str = "Acme") -> Account:
    return Account(id=uuid.uuid4(), name=name, slug=name.lower())


def _workspace(account: Account, name: str = "Default") -> Workspace:
    return Workspace(id=uuid.uuid4(), account_id=account.id, name=name, slug=name.lower())


class TestAccessors:
    def test_starts_empty(self):
        assert current_context() == EMPTY_CONTEXT
        assert current_context().is_empty
        assert current_user() is None
        assert current_account() is None
        assert current_workspace() is None

    def test_set_account_and_workspace(self):
        account = _account()
        workspace = _workspace(account)
        set_account(account)
        set_workspace(workspace)
        assert current_account() is account
        assert current_workspace() is workspace
        assert current_context().account_id == account.id
        assert current_context().workspace_id == workspace.id

    def test_reset_is_idempotent(self):
        set_account(_account())
        set_request_id("abc")
        reset_context()
        assert current_context().is_empty
        reset_context()
        assert current_context().is_empty

    def test_describe_contains_ids_only(self):
        account = _account()
        ctx = TenantContext(account=account, request_id="r-1")
        assert ctx.describe() == {
            "user_id": None,
            "account_id": str(account.id),
            "workspace_id": None,
            "request_id": "r-1",
        }


class TestDerivation:
    @pytest.mark.asyncio
    async def test_set_user_derives_account_and_workspace(self, session, make_user, make_tenant):
        owner = await make_user()
        tenant = await make_tenant(owner)

        ctx = await set_user(session, owner)
        assert ctx.user is owner
        assert ctx.account_id == tenant.account_id
        assert ctx.workspace_id == tenant.workspace_id

    @pytest.mark.asyncio
    async def test_user_without_workspace_derives_nothing(self, session, make_user):
        user = await make_user()
        ctx = await set_user(session, user)
        assert ctx.user is user
        assert ctx.account is None
        assert ctx.workspace is None

    @pytest.mark.asyncio
    async def test_dangling_pointer_derives_nothing(self, session, make_user):
        user = await make_user()
        user.current_workspace_id = uuid.uuid4()
        assert await derive_tenant(session, user) == (None, None)

    @pytest.mark.asyncio
    async def test_later_pointer_change_does_not_move_context(self, session, make_user, make_tenant):
        owner = await make_user()
        first = await make_tenant(owner, "First")
        await set_user(session, owner)

        second = await make_tenant(owner, "Second")
        assert owner.current_workspace_id == second.workspace_id
        assert current_context().account_id == first.account_id

    @pytest.mark.asyncio
    async def test_set_user_none_clears_tenant(self, session):
        set_account(_account())
        ctx = await set_user(session, None)
        assert ctx.user is None
        assert ctx.account is None


class TestScopedContext:
    @pytest.mark.asyncio
    async def test_restores_after_block(self):
        outer = _account("Outer")
        inner = _account("Inner")
        set_account(outer)
        async with scoped_context(account=inner) as ctx:
            assert ctx.account is inner
            assert current_account() is inner
        assert current_account() is outer

    @pytest.mark.asyncio
    async def test_restores_after_exception(self):
        outer = _account("Outer")
        set_account(outer)
        with pytest.raises(RuntimeError):
            async with scoped_context(account=_account("Inner")):
                raise RuntimeError("boom")
        assert current_account() is outer

    @pytest.mark.asyncio
    async def test_unspecified_fields_are_kept(self):
        account = _account()
        user = User(id=uuid.uuid4(), email="a@example.com")
        set_account(account)
        async with scoped_context(user=user) as ctx:
            assert ctx.account is account
            assert ctx.user is user

    @pytest.mark.asyncio
    async def test_none_clears_a_field(self):
        set_account(_account())
        async with scoped_context(account=None) as ctx:
            assert ctx.account is None

    @pytest.mark.asyncio
    async def test_isolated_context_starts_empty(self):
        set_account(_account())
        set_request_id("outer")
        async with isolated_context(request_id="inner") as ctx:
            assert ctx.account is None
            assert ctx.request_id == "inner"
        assert current_context().request_id == "outer"

    @pytest.mark.asyncio
    async def test_with_context_returns_body_result(self):
        account = _account()

        async def body():
            return current_account()

        assert await with_context(body, account=account) is account
        assert current_account() is None

    @pytest.mark.asyncio
    async def test_restores_after_cancellation(self):
        outer = _account("Outer")
        set_account(outer)
        entered = asyncio.Event()

        async def worker():
            async with scoped_context(account=_account("Inner")):
                entered.set()
                await asyncio.sleep(10)

        task = asyncio.create_task(worker())
        await entered.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert current_account() is outer


class TestConcurrentIsolation:
    @pytest.mark.asyncio
    async def test_tasks_never_see_each_other(self):
        accounts = [_account(f"Tenant{i}") for i in range(10)]
        seen = {}

        async def unit(account):
            set_account(account)
            # Yield a few times so every task has set its account before any reads.
            for _ in range(3):
                await asyncio.sleep(0)
            seen[account.id] = current_account().id

        await asyncio.gather(*(unit(a) for a in accounts))
        assert all(seen[a.id] == a.id for a in accounts)
        assert current_account() is None

    @pytest.mark.asyncio
    async def test_child_changes_do_not_leak_to_parent(self):
        parent_account = _account("Parent")
        set_account(parent_account)

        async def child():
            assert current_account() is parent_account
            set_account(_account("Child"))
            reset_context()

        await asyncio.create_task(child())
        assert current_account() is parent_account
