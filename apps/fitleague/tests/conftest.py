"""
Shared pytest configuration for fitleague tests.

Tests run against an in-memory SQLite database (aiosqlite) created fresh for
every test, so no external database is needed.
"""

import os

os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REST_DAY_BACKFILL_ENABLED", "false")

from datetime import date

import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from fitleague.database.db import Base
from fitleague.database.models import (
    ChallengeSubmission,
    EffortEntry,
    League,
    LeagueChallenge,
    LeagueMember,
    RoleAssignment,
    SubTeam,
    SubTeamMember,
    Team,
    User,
)

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a fresh in-memory database with all tables."""
    # StaticPool keeps the single in-memory connection alive for the whole test
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        from fitleague.database import models  # noqa: F401

        await conn.run_sync(Base.metadata.create_all)

    # Code that opens its own sessions (the backfill worker) must hit the test DB
    from fitleague.database import db

    original_async_session_local = db.AsyncSessionLocal
    db.AsyncSessionLocal = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    yield engine

    db.AsyncSessionLocal = original_async_session_local
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine):
    """Database session bound to the per-test engine."""
    async_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with async_session_maker() as session:
        yield session


class Seeder:
    """
    Builds league fixtures. Every helper commits and detaches the row, so a
    service rolling back on a constraint violation neither loses seeded data
    nor expires the objects tests hold on to.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _save(self, obj):
        self.session.add(obj)
        await self.session.commit()
        self.session.expunge(obj)
        return obj

    async def user(self, username: str = "user") -> User:
        return await self._save(User(username=username))

    async def league(
        self,
        start_date: date = date(2025, 1, 1),
        end_date: date = date(2025, 1, 28),
        status: str = "active",
        rest_days: int = 1,
        auto_rest_day_enabled: bool = True,
        normalize_points_by_team_size: bool = False,
        timezone: str = None,
        is_active: bool = True,
        name: str = "Test League",
    ) -> League:
        return await self._save(
            League(
                name=name,
                start_date=start_date,
                end_date=end_date,
                status=status,
                is_active=is_active,
                rest_days=rest_days,
                auto_rest_day_enabled=auto_rest_day_enabled,
                normalize_points_by_team_size=normalize_points_by_team_size,
                timezone=timezone,
            )
        )

    async def team(self, league: League, team_name: str = "Team") -> Team:
        return await self._save(Team(league_id=league.id, team_name=team_name))

    async def member(
        self,
        league: League,
        team: Team = None,
        username: str = "member",
        roles=(),
        is_active: bool = True,
    ) -> LeagueMember:
        """Create a user, their membership and any role rows."""
        user = await self.user(username)
        member = await self._save(
            LeagueMember(
                league_id=league.id,
                user_id=user.id,
                team_id=team.id if team else None,
                is_active=is_active,
            )
        )
        for role in roles:
            await self.role(league, user.id, role)
        return member

    async def role(self, league: League, user_id: int, role: str) -> RoleAssignment:
        return await self._save(RoleAssignment(league_id=league.id, user_id=user_id, role=role))

    async def entry(
        self,
        member: LeagueMember,
        entry_date: date,
        status: str = "approved",
        type: str = "workout",
        rr_value: float = 1.0,
        proof_url: str = "https://proof.example/img.jpg",
        modified_by: int = None,
    ) -> EffortEntry:
        return await self._save(
            EffortEntry(
                league_member_id=member.id,
                date=entry_date,
                type=type,
                workout_type="gym" if type == "workout" else None,
                status=status,
                rr_value=rr_value,
                proof_url=proof_url if type == "workout" else None,
                created_by=member.user_id,
                modified_by=modified_by,
            )
        )

    async def challenge(
        self,
        league: League,
        challenge_type: str = "individual",
        total_points: float = 10,
        start_date: date = None,
        end_date: date = None,
        status: str = "active",
        name: str = "Challenge",
    ) -> LeagueChallenge:
        return await self._save(
            LeagueChallenge(
                league_id=league.id,
                name=name,
                challenge_type=challenge_type,
                total_points=total_points,
                start_date=start_date,
                end_date=end_date,
                status=status,
            )
        )

    async def sub_team(self, challenge: LeagueChallenge, team: Team, name: str, members=()) -> SubTeam:
        sub_team = await self._save(
            SubTeam(league_challenge_id=challenge.id, team_id=team.id, name=name)
        )
        for member in members:
            await self._save(SubTeamMember(sub_team_id=sub_team.id, league_member_id=member.id))
        return sub_team

    async def challenge_submission(
        self,
        challenge: LeagueChallenge,
        member: LeagueMember,
        status: str = "approved",
        awarded_points: float = None,
        team_id: int = None,
        sub_team_id: int = None,
    ) -> ChallengeSubmission:
        return await self._save(
            ChallengeSubmission(
                league_challenge_id=challenge.id,
                league_member_id=member.id,
                team_id=team_id,
                sub_team_id=sub_team_id,
                proof_url="https://proof.example/challenge.jpg",
                status=status,
                awarded_points=awarded_points,
            )
        )


@pytest_asyncio.fixture
async def seed(db_session):
    """Seeder bound to the test session."""
    return Seeder(db_session)
