"""
User service: registration and credential checks.
"""

from __future__ import annotations

from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import hash_password, verify_password
from app.core.errors import RecordInvalid
from app.models.user import User

from mangroves_shared.schemas.common import UserStatus
from mangroves_shared.schemas.users import RegisterRequest

log = structlog.get_logger()


async def get_user_by_email(email: str, session: AsyncSession) -> Optional[User]:
    result = await session.execute(select(User).where(User.email == email.lower()))
    return result.scalars().first()


async def register_user(req: RegisterRequest, session: AsyncSession) -> User:
    if await get_user_by_email(req.email, session) is not None:
        raise RecordInvalid("email", "has already been taken")

    user = User(
        email=req.email.lower(),
        first_name=req.first_name,
        last_name=req.last_name,
        password_hash=hash_password(req.password),
        status=UserStatus.ACTIVE.value,
    )
    session.add(user)
    await session.flush()
    log.info("user.registered", user_id=str(user.id))
    return user


async def authenticate(email: str, password: str, session: AsyncSession) -> Optional[User]:
    """The user for these credentials, or None. Inactive users never authenticate."""
    user = await get_user_by_email(email, session)
    if user is None or not user.password_hash:
        return None
    if not verify_password(password, user.password_hash):
        return None
    if user.status != UserStatus.ACTIVE.value:
        log.info("user.login_refused", user_id=str(user.id), status=user.status)
        return None
    return user
