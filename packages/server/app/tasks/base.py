"""
Tenant context for background jobs.

Jobs do not inherit the enqueuing request's context. ``tenant_job`` wraps an
ARQ-style coroutine ``(ctx, *args, account_id=None, **kwargs)``: with an
``account_id`` the account is resolved and installed in a fresh context for
the job body; without one the body runs with an empty context, so
tenant-scoped reads inside it match nothing. The previous context is
restored afterwards, on success or failure.

The wrapped body is called as ``body(ctx, session, tenant, *args, **kwargs)``.
``ctx["session_factory"]`` overrides the default session factory.
"""

from __future__ import annotations

import functools
import uuid
from typing import Any, Awaitable, Callable, Optional, Union

import structlog

from app.core.context import TenantContext, isolated_context
from app.core.database import get_session_context
from app.core.errors import NotFoundError
from app.models.account import Account

log = structlog.get_logger()

JobBody = Callable[..., Awaitable[Any]]


def tenant_job(func: JobBody) -> Callable[..., Awaitable[Any]]:
    @functools.wraps(func)
    async def wrapper(
        ctx: dict,
        *args: Any,
        account_id: Optional[Union[uuid.UUID, str]] = None,
        **kwargs: Any,
    ) -> Any:
        job_name = func.__name__
        job_id = str(ctx.get("job_id") or uuid.uuid4())

        async with get_session_context(ctx.get("session_factory")) as session:
            account = None
            if account_id is not None:
                try:
                    account_key = uuid.UUID(str(account_id))
                except ValueError:
                    pass
                else:
                    account = await session.get(Account, account_key)
                if account is None:
                    log.warning("job.account_missing", job=job_name, account_id=str(account_id))
                    raise NotFoundError("Account")

            async with isolated_context(account=account, request_id=job_id) as tenant:
                with structlog.contextvars.bound_contextvars(
                    job=job_name,
                    job_id=job_id,
                    account_id=str(account.id) if account else None,
                ):
                    log.info("job.started")
                    try:
                        result = await func(ctx, session, tenant, *args, **kwargs)
                    except Exception:
                        log.exception("job.failed")
                        raise
                    log.info("job.finished")
                    return result

    return wrapper
