import asyncio
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select

from conftest import DAILY, GUILD_ID, TODAY
from leetstreak.web.crud import CompletionRecordOperations
from leetstreak.web.models import CompletionRecord


async def count_records(session_factory) -> int:
    async with session_factory() as session:
        result = await session.execute(select(func.count()).select_from(CompletionRecord))
        return int(result.scalar_one())


async def record(recorder, member_id="alice", raw_timestamp="1710500000"):
    return await recorder.record_if_absent(
        guild_id=GUILD_ID,
        member_id=member_id,
        username=member_id,
        slug=DAILY.slug,
        day=TODAY,
        problem=DAILY,
        raw_timestamp=raw_timestamp,
    )


async def test_first_call_writes_record(recorder, session_factory):
    created = await record(recorder)

    assert created is not None
    assert created.streak_count == 1
    assert created.challenge_title == "Two Sum"
    assert created.difficulty == "Easy"
    assert created.day == TODAY
    assert await count_records(session_factory) == 1


async def test_second_call_is_a_no_op(recorder, session_factory):
    await record(recorder)
    again = await record(recorder)

    assert again is None
    assert await count_records(session_factory) == 1


async def test_lost_race_is_reported_as_already_recorded(recorder, session_factory, monkeypatch):
    await record(recorder)

    # Both callers passed the lookup; the unique constraint decides
    async def missed(*args, **kwargs):
        return None

    monkeypatch.setattr(CompletionRecordOperations, "find_in_window", missed)

    assert await record(recorder) is None
    assert await count_records(session_factory) == 1


async def test_concurrent_calls_write_one_record(recorder, session_factory):
    results = await asyncio.gather(record(recorder), record(recorder))

    assert sum(result is not None for result in results) == 1
    assert results.count(None) == 1
    assert await count_records(session_factory) == 1


async def test_recorded_per_member(recorder, session_factory):
    results = [await record(recorder, "alice"), await record(recorder, "bob")]

    assert all(result is not None for result in results)
    assert await count_records(session_factory) == 2


async def test_streak_snapshot_builds_on_yesterday(recorder, add_record):
    await add_record("alice", TODAY - timedelta(days=1), streak=3)

    created = await record(recorder)

    assert created.streak_count == 4


async def test_unparseable_timestamp_uses_current_instant(recorder, date_provider):
    created = await record(recorder, raw_timestamp="garbage")

    assert created.submission_instant == date_provider.utcnow()


async def test_millisecond_timestamp_is_normalized(recorder):
    created = await record(recorder, raw_timestamp="1710500000000")

    assert created.submission_instant == datetime.fromtimestamp(1710500000, tz=timezone.utc)
