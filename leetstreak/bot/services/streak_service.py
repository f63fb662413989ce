"""Streak calculation over completion records.

Streaks are computed once, when a record is written, and stored on the
record. Reading the current streak never mutates anything: a record older
than yesterday simply reads as a streak of zero.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leetstreak.shared.date_provider import DateProvider, get_date_provider
from leetstreak.web.crud import CompletionRecordOperations

logger = logging.getLogger(__name__)


class StreakService:
    """Computes write-time streak snapshots and read-time current streaks."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        date_provider: Optional[DateProvider] = None
    ):
        """Initialize the streak service.

        Args:
            session_factory: Factory for database sessions
            date_provider: Date provider for "today", defaults to the configured one
        """
        self._session_factory = session_factory
        self._date_provider = date_provider or get_date_provider()

    async def compute_on_write(
        self,
        member_id: str,
        guild_id: str,
        day: date,
        session: Optional[AsyncSession] = None
    ) -> int:
        """Streak value for a record about to be written for ``day``.

        One more than the streak stored on the member's record for the
        previous day, or 1 when there is none.

        Args:
            member_id: Member identifier records are stored under
            guild_id: Discord guild snowflake ID
            day: Day bucket of the new record
            session: Session to read with, a new one is opened if omitted
        """
        previous_day = day - timedelta(days=1)

        if session is None:
            async with self._session_factory() as own_session:
                previous = await CompletionRecordOperations(own_session).find_on_day(
                    guild_id, member_id, previous_day
                )
        else:
            previous = await CompletionRecordOperations(session).find_on_day(
                guild_id, member_id, previous_day
            )

        return previous.streak_count + 1 if previous else 1

    async def current_streak(
        self,
        member_id: str,
        guild_id: str,
        today: Optional[date] = None
    ) -> int:
        """Streak as shown to the member right now.

        The stored streak of the latest record counts only if that record is
        from today or yesterday; otherwise the streak is broken and reads 0.
        """
        if today is None:
            today = self._date_provider.today()

        async with self._session_factory() as session:
            latest = await CompletionRecordOperations(session).get_latest(guild_id, member_id)

        if latest is None:
            return 0

        if latest.day in (today, today - timedelta(days=1)):
            return latest.streak_count

        logger.debug(
            f"Streak for {member_id} in guild {guild_id} broken: last completion on {latest.day}"
        )
        return 0
