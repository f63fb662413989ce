"""Idempotent write path for completion records."""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leetstreak.bot.services.models import ProblemInfo
from leetstreak.bot.services.streak_service import StreakService
from leetstreak.bot.services.timestamps import resolve_timestamp
from leetstreak.shared.date_provider import DateProvider, get_date_provider
from leetstreak.web.crud import CompletionRecordOperations, ConflictError
from leetstreak.web.models import CompletionRecord

logger = logging.getLogger(__name__)


class SubmissionRecorder:
    """Writes at most one completion record per (guild, member, slug, day).

    The lookup before the insert avoids needless writes on repeated checks.
    Two concurrent calls can both miss it; the store's unique constraint then
    rejects the second insert, which is reported as "already recorded".
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        streak_service: StreakService,
        date_provider: Optional[DateProvider] = None
    ):
        self._session_factory = session_factory
        self._streak_service = streak_service
        self._date_provider = date_provider or get_date_provider()

    async def record_if_absent(
        self,
        guild_id: str,
        member_id: str,
        username: str,
        slug: str,
        day: date,
        problem: ProblemInfo,
        raw_timestamp: Union[str, int, None]
    ) -> Optional[CompletionRecord]:
        """Record a completion unless one already exists for the day.

        Args:
            guild_id: Discord guild snowflake ID
            member_id: Discord user ID, or the username when unlinked
            username: LeetCode username
            slug: Daily challenge slug
            day: Day bucket
            problem: Problem metadata (title, difficulty)
            raw_timestamp: Submission timestamp as received from LeetCode

        Returns:
            The new record, or None if it was already recorded
        """
        start, end = self._date_provider.day_window(day)

        async with self._session_factory() as session:
            records = CompletionRecordOperations(session)

            existing = await records.find_in_window(guild_id, member_id, slug, start, end)
            if existing is not None:
                logger.debug(f"Completion for {username} on {day} already recorded in guild {guild_id}")
                return None

            submission_instant = resolve_timestamp(raw_timestamp, now=self._date_provider.utcnow())
            streak = await self._streak_service.compute_on_write(
                member_id, guild_id, day, session=session
            )

            try:
                record = await records.create_record(
                    guild_id=guild_id,
                    member_id=member_id,
                    leetcode_username=username,
                    day=day,
                    challenge_title=problem.title,
                    challenge_slug=slug,
                    difficulty=problem.difficulty,
                    submission_instant=submission_instant,
                    streak_count=streak
                )
            except ConflictError:
                logger.info(
                    f"Completion for {username} on {day} was recorded concurrently in guild {guild_id}"
                )
                return None

        logger.info(
            f"Recorded completion for {username} ({member_id}) in guild {guild_id} "
            f"on {day}, streak {streak}"
        )
        return record
