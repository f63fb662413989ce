"""Shared fixtures: a throwaway SQLite database and fake collaborators."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Dict, List, Optional

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from leetstreak.bot.services.models import ProblemInfo
from leetstreak.bot.services.models import Submission
from leetstreak.bot.services.streak_service import StreakService
from leetstreak.bot.services.submission_recorder import SubmissionRecorder
from leetstreak.shared.database import Base
from leetstreak.shared.date_provider import FixedDateProvider
from leetstreak.web import models  # noqa: F401
from leetstreak.web.crud import CompletionRecordOperations

GUILD_ID = "111"
TODAY = date(2024, 3, 15)
DAILY = ProblemInfo(slug="two-sum", title="Two Sum", difficulty="Easy", topics=["Array"])


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'leetstreak.db'}",
        connect_args={"timeout": 30},
    )

    # Take the write lock at BEGIN so concurrent sessions queue up
    @event.listens_for(engine.sync_engine, "connect")
    def _manual_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def date_provider():
    return FixedDateProvider(datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def streak_service(session_factory, date_provider):
    return StreakService(session_factory, date_provider)


@pytest.fixture
def recorder(session_factory, streak_service, date_provider):
    return SubmissionRecorder(session_factory, streak_service, date_provider)


@pytest.fixture
def add_record(session_factory):
    """Insert a completion record directly."""

    async def _add(member_id: str, day: date, streak: int, guild_id: str = GUILD_ID,
                   slug: Optional[str] = None) -> None:
        async with session_factory() as session:
            await CompletionRecordOperations(session).create_record(
                guild_id=guild_id,
                member_id=member_id,
                leetcode_username=member_id,
                day=day,
                challenge_title="Some Problem",
                challenge_slug=slug or f"problem-{day.isoformat()}",
                difficulty="Medium",
                submission_instant=datetime.combine(day, datetime.min.time(), tzinfo=timezone.utc),
                streak_count=streak,
            )

    return _add


class FakeSource:
    """In-memory stand-in for LeetCodeClient."""

    def __init__(self, problem: ProblemInfo = DAILY):
        self.problem = problem
        self.submissions: Dict[str, List[Submission]] = {}
        self.failing: Dict[str, Exception] = {}
        self.source_error: Optional[Exception] = None
        self.fetched: List[str] = []

    def solved(self, username: str, slug: Optional[str] = None, timestamp: str = "1710500000") -> None:
        self.submissions.setdefault(username, []).append(
            Submission(challenge_slug=slug or self.problem.slug, status="Accepted", timestamp=timestamp)
        )

    async def get_daily_slug(self) -> str:
        if self.source_error is not None:
            raise self.source_error
        return self.problem.slug

    async def get_problem(self, slug: str) -> ProblemInfo:
        return self.problem

    async def get_recent_submissions(self, username: str) -> List[Submission]:
        self.fetched.append(username)
        if username in self.failing:
            raise self.failing[username]
        return list(self.submissions.get(username, []))


@pytest.fixture
def source():
    return FakeSource()

