from datetime import date, datetime, timedelta, timezone

import pytest

from conftest import GUILD_ID, TODAY
from leetstreak.bot.services.exceptions import ValidationError
from leetstreak.bot.services.models import CompletionPeriod
from leetstreak.bot.services.stats_service import LEADERBOARD_SIZE, StatsService, window_start
from leetstreak.shared.date_provider import FixedDateProvider


@pytest.fixture
def stats(session_factory, date_provider):
    return StatsService(session_factory, date_provider)


async def test_weekly_rate_counts_last_seven_days(stats, add_record):
    await add_record("alice", TODAY, streak=3)
    await add_record("alice", TODAY - timedelta(days=6), streak=2)
    await add_record("alice", TODAY - timedelta(days=7), streak=1)
    await add_record("bob", TODAY, streak=1)

    rate = await stats.completion_rate("alice", GUILD_ID, "weekly")

    assert rate.total == 2
    assert rate.period is CompletionPeriod.WEEKLY


async def test_monthly_rate_excludes_same_day_last_month(stats, add_record):
    await add_record("alice", date(2024, 2, 16), streak=1)
    await add_record("alice", date(2024, 2, 15), streak=1)
    await add_record("alice", date(2024, 3, 1), streak=1)

    rate = await stats.completion_rate("alice", GUILD_ID, CompletionPeriod.MONTHLY)

    assert rate.total == 2


async def test_monthly_rate_at_month_end(session_factory, add_record):
    stats = StatsService(session_factory, FixedDateProvider(datetime(2024, 3, 31, 12, 0, tzinfo=timezone.utc)))
    await add_record("alice", date(2024, 2, 29), streak=1)
    await add_record("alice", date(2024, 3, 1), streak=1)

    rate = await stats.completion_rate("alice", GUILD_ID, "monthly")

    assert rate.total == 1


async def test_rate_for_member_without_records_is_zero(stats):
    assert (await stats.completion_rate("nobody", GUILD_ID, "monthly")).total == 0


async def test_unknown_period_is_rejected(stats):
    with pytest.raises(ValidationError):
        await stats.completion_rate("alice", GUILD_ID, "yearly")


async def test_leaderboard_orders_by_streak(stats, add_record):
    await add_record("alice", TODAY, streak=2)
    await add_record("bob", TODAY, streak=5)
    await add_record("carol", TODAY - timedelta(days=1), streak=3)

    entries = await stats.leaderboard(GUILD_ID)

    assert [(entry.rank, entry.member_id, entry.streak) for entry in entries] == [
        (1, "bob", 5),
        (2, "carol", 3),
        (3, "alice", 2),
    ]


async def test_leaderboard_skips_records_before_yesterday(stats, add_record):
    await add_record("alice", TODAY - timedelta(days=2), streak=30)
    await add_record("bob", TODAY, streak=1)

    entries = await stats.leaderboard(GUILD_ID)

    assert [entry.member_id for entry in entries] == ["bob"]


async def test_leaderboard_ranks_every_qualifying_record(stats, add_record):
    await add_record("alice", TODAY - timedelta(days=1), streak=4)
    await add_record("alice", TODAY, streak=5)
    await add_record("bob", TODAY, streak=1)

    entries = await stats.leaderboard(GUILD_ID)

    assert [(entry.rank, entry.member_id, entry.streak) for entry in entries] == [
        (1, "alice", 5),
        (2, "alice", 4),
        (3, "bob", 1),
    ]


async def test_leaderboard_is_capped(stats, add_record):
    for index in range(LEADERBOARD_SIZE + 3):
        await add_record(f"member-{index:02d}", TODAY, streak=index + 1)

    entries = await stats.leaderboard(GUILD_ID)

    assert len(entries) == LEADERBOARD_SIZE
    assert entries[0].streak == LEADERBOARD_SIZE + 3
    assert [entry.rank for entry in entries] == list(range(1, LEADERBOARD_SIZE + 1))


async def test_leaderboard_is_per_guild(stats, add_record):
    await add_record("alice", TODAY, streak=9, guild_id="999")

    assert await stats.leaderboard(GUILD_ID) == []


@pytest.mark.parametrize("today, period, expected", [
    (date(2024, 3, 15), CompletionPeriod.WEEKLY, date(2024, 3, 9)),
    (date(2024, 3, 15), CompletionPeriod.MONTHLY, date(2024, 2, 16)),
    (date(2024, 3, 31), CompletionPeriod.MONTHLY, date(2024, 3, 1)),
    (date(2023, 3, 31), CompletionPeriod.MONTHLY, date(2023, 3, 1)),
    (date(2024, 1, 10), CompletionPeriod.MONTHLY, date(2023, 12, 11)),
])
def test_window_start(today, period, expected):
    assert window_start(today, period) == expected
