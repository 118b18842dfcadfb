#!/usr/bin/env python3
"""Seed a development database with two tenants, their users and a team.

Usage:
    uv run python scripts/seed_dev_data.py

Requires MANGROVES_DATABASE_URL (or defaults to the settings default).
Everything goes through the service layer, so slugs, memberships and the
audit trail look exactly like they would after real sign-ups.
"""

import asyncio
from dataclasses import replace

from sqlmodel import select

from app.core.context import EMPTY_CONTEXT
from app.core.database import get_session_context, init_db
from app.models.account import Account
from app.services import memberships, onboarding, teams, users

from mangroves_shared.schemas.accounts import OnboardingRequest
from mangroves_shared.schemas.common import MembershipRole
from mangroves_shared.schemas.teams import TeamCreateRequest
from mangroves_shared.schemas.users import RegisterRequest

PASSWORD = "password123"

TENANTS = [
    ("alice@acme.dev", "Alice", "Anders", "Acme Robotics"),
    ("bob@globex.dev", "Bob", "Baker", "Globex"),
]


async def _user(session, email, first_name, last_name):
    user = await users.get_user_by_email(email, session)
    if user is None:
        user = await users.register_user(
            RegisterRequest(email=email, password=PASSWORD, first_name=first_name, last_name=last_name),
            session,
        )
    return user


async def seed():
    await init_db()

    async with get_session_context() as session:
        existing = await session.execute(select(Account).where(Account.slug == "acme-robotics"))
        if existing.scalars().first() is not None:
            print("Dev data already present, nothing to do.")
            return

        created = []
        for email, first_name, last_name, account_name in TENANTS:
            user = await _user(session, email, first_name, last_name)
            tenant = replace(EMPTY_CONTEXT, user=user)
            result = await onboarding.onboard(OnboardingRequest(name=account_name), user, session, tenant)
            created.append((user, result))

        (alice, acme), (bob, _) = created
        tenant = replace(EMPTY_CONTEXT, user=alice, account=acme.account, workspace=acme.workspace)

        await teams.create_team(
            acme.workspace.id, TeamCreateRequest(name="Platform"), alice, session, tenant
        )
        # Bob gets a pending invitation into Acme
        await memberships.invite_member(session, tenant, acme.account, bob, MembershipRole.MEMBER, alice)

    for user, result in created:
        print(f"Seeded account '{result.account.slug}' owned by {user.email} (password: {PASSWORD})")
    print("Bob has a pending invitation to acme-robotics.")


if __name__ == "__main__":
    asyncio.run(seed())
