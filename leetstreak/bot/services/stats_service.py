"""Read-only statistics over completion records."""

from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional, Union

from dateutil.relativedelta import relativedelta
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leetstreak.bot.services.exceptions import ValidationError
from leetstreak.bot.services.models import CompletionPeriod
from leetstreak.bot.services.models import CompletionRate
from leetstreak.bot.services.models import LeaderboardEntry
from leetstreak.shared.date_provider import DateProvider, get_date_provider
from leetstreak.web.crud import CompletionRecordOperations

logger = logging.getLogger(__name__)

LEADERBOARD_SIZE = 10

PERIOD_LENGTHS = {
    CompletionPeriod.WEEKLY: relativedelta(weeks=1),
    CompletionPeriod.MONTHLY: relativedelta(months=1),
}


class StatsService:
    """Completion-rate windows and the guild streak leaderboard."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        date_provider: Optional[DateProvider] = None
    ):
        self._session_factory = session_factory
        self._date_provider = date_provider or get_date_provider()

    async def completion_rate(
        self,
        member_id: str,
        guild_id: str,
        period: Union[CompletionPeriod, str]
    ) -> CompletionRate:
        """Count a member's completions over the last week or month.

        Raises:
            ValidationError: If the period is not weekly or monthly
        """
        try:
            period = CompletionPeriod(period)
        except ValueError as e:
            raise ValidationError("period", "must be 'weekly' or 'monthly'") from e

        since = window_start(self._date_provider.today(), period)

        async with self._session_factory() as session:
            total = await CompletionRecordOperations(session).count_since(guild_id, member_id, since)

        return CompletionRate(total=total, period=period)

    async def leaderboard(self, guild_id: str) -> List[LeaderboardEntry]:
        """Top streaks among records from yesterday onwards.

        Ordered by streak descending, more recent submissions first on ties.
        Every qualifying record is ranked, so a member who completed both
        yesterday and today can hold two rows.
        """
        since = self._date_provider.yesterday()

        async with self._session_factory() as session:
            records = await CompletionRecordOperations(session).get_streak_records_since(
                guild_id, since, limit=LEADERBOARD_SIZE
            )

        return [
            LeaderboardEntry(rank=rank, member_id=record.member_id, streak=record.streak_count)
            for rank, record in enumerate(records, start=1)
        ]


def window_start(today: date, period: CompletionPeriod) -> date:
    """First day bucket inside the period ending today.

    The bucket exactly one period back is excluded, so a weekly window
    holds seven buckets. Month lengths are clamped by relativedelta.
    """
    return today - PERIOD_LENGTHS[period] + relativedelta(days=1)
