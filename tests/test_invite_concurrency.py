"""Concurrent invite redemption against a real PostgreSQL database.

SQLite has no row locks, so these only run when ADORABLE_TEST_POSTGRES_URL
points at a scratch database (its tables are dropped and recreated).
"""

import asyncio
import os
import uuid

import pytest
from sqlalchemy.exc import IntegrityError

from adorable.core.security import hash_password
from adorable.models.database import Base, close_db, get_engine, get_session_factory, init_db
from adorable.models.team import MemberRole, TeamInvite, TeamMember
from adorable.models.user import User
from adorable.services.team_service import InviteUsedError, TeamService

POSTGRES_URL = os.environ.get("ADORABLE_TEST_POSTGRES_URL")

pytestmark = pytest.mark.skipif(not POSTGRES_URL, reason="ADORABLE_TEST_POSTGRES_URL not set")

CONTENDERS = 8


@pytest.fixture
async def pg_database():
    init_db(POSTGRES_URL, pool_size=CONTENDERS + 2)
    # Import models so they are registered on Base.metadata
    from adorable.models import kit, project, team, user  # noqa: F401

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await close_db()


async def _users(session, count: int) -> list[User]:
    users = [
        User(
            id=str(uuid.uuid4()),
            email=f"user{i}-{uuid.uuid4().hex[:6]}@example.com",
            password_hash=hash_password("password123"),
        )
        for i in range(count)
    ]
    session.add_all(users)
    await session.commit()
    return users


async def test_code_redeemed_exactly_once(pg_database) -> None:
    factory = get_session_factory()
    async with factory() as session:
        owner, *contenders = await _users(session, CONTENDERS + 1)
        service = TeamService(session)
        team = await service.create_team("Race Co", owner.id)
        invite = await service.create_invite(team.id, created_by=owner.id)

    async def attempt(user: User):
        async with factory() as session:
            try:
                _, member = await TeamService(session).redeem_invite(invite.code, user)
            except InviteUsedError:
                return None
            return member.user_id

    results = await asyncio.gather(*(attempt(u) for u in contenders))
    winners = [r for r in results if r is not None]
    assert len(winners) == 1

    async with factory() as session:
        stored = await session.get(TeamInvite, invite.id)
        assert stored.used_by == winners[0]
        members = await TeamService(session).list_members(team.id)
        roles = sorted(member.role.value for member, _ in members)
        assert roles == [MemberRole.MEMBER.value, MemberRole.OWNER.value]


async def test_single_owner_index(pg_database) -> None:
    """The database itself refuses a second owner row."""
    factory = get_session_factory()
    async with factory() as session:
        owner, other = await _users(session, 2)
        team = await TeamService(session).create_team("Solo Co", owner.id)
        session.add(TeamMember(id=str(uuid.uuid4()), team_id=team.id, user_id=other.id, role=MemberRole.OWNER))
        with pytest.raises(IntegrityError):
            await session.commit()
