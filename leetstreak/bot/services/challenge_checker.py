"""Check a guild's tracked members against today's daily challenge.

One check resolves the guild configuration, fetches the daily challenge
once, then fetches every member's recent submissions concurrently (bounded
by a semaphore). A member whose fetch fails is counted as incomplete and
the rest of the run carries on. Completions are recorded through the
SubmissionRecorder.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leetstreak.bot.services.exceptions import ConfigMissingError
from leetstreak.bot.services.exceptions import MemberFetchError
from leetstreak.bot.services.exceptions import SourceUnavailableError
from leetstreak.bot.services.leetcode_client import LeetCodeClient
from leetstreak.bot.services.models import CheckOutcome
from leetstreak.bot.services.models import CheckReport
from leetstreak.bot.services.models import MemberStatus
from leetstreak.bot.services.models import ProblemInfo
from leetstreak.bot.services.models import TrackedMember
from leetstreak.bot.services.submission_recorder import SubmissionRecorder
from leetstreak.shared.date_provider import DateProvider, get_date_provider
from leetstreak.web.crud import DatabaseOperationError
from leetstreak.web.crud import GuildConfigOperations
from leetstreak.web.crud import NotFoundError

logger = logging.getLogger(__name__)


class ChallengeChecker:
    """Runs daily challenge checks for one guild at a time."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        source: LeetCodeClient,
        recorder: SubmissionRecorder,
        max_concurrency: int = 5,
        date_provider: Optional[DateProvider] = None
    ):
        """Initialize the checker.

        Args:
            session_factory: Factory for database sessions
            source: Submission source client
            recorder: Write path for completions
            max_concurrency: Upper bound on in-flight member fetches per run
            date_provider: Source of "today", defaults to the configured one
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")

        self._session_factory = session_factory
        self._source = source
        self._recorder = recorder
        self._max_concurrency = max_concurrency
        self._date_provider = date_provider or get_date_provider()

    async def run(self, guild_id: str) -> Optional[CheckOutcome]:
        """Scheduled check.

        Returns None without doing anything when the guild has no channel or
        no tracked users, and None after logging when the configuration or
        the daily challenge cannot be resolved. Otherwise returns the
        outcome, including the incomplete members to notify.
        """
        try:
            channel_id, members = await self._load_guild(guild_id)
        except ConfigMissingError as e:
            logger.error(f"Check aborted at stage=config for guild {guild_id}: {e}")
            return None

        if not channel_id:
            logger.debug(f"Guild {guild_id} has no announcement channel, skipping check")
            return None
        if not members:
            logger.debug(f"Guild {guild_id} has no tracked users, skipping check")
            return None

        try:
            problem = await self._fetch_problem()
        except SourceUnavailableError as e:
            logger.error(f"Check failed at stage=challenge for guild {guild_id}: {e}")
            return None

        outcome = CheckOutcome(
            guild_id=guild_id,
            channel_id=channel_id,
            problem=problem,
            day=self._date_provider.today(),
        )
        await self._evaluate(outcome, members)
        return outcome

    async def check_now(self, guild_id: str) -> CheckReport:
        """On-demand check returning every member's status.

        Does not require an announcement channel.

        Raises:
            ConfigMissingError: If the guild is not configured
            SourceUnavailableError: If the daily challenge cannot be fetched
        """
        channel_id, members = await self._load_guild(guild_id)
        problem = await self._fetch_problem()

        report = CheckReport(
            guild_id=guild_id,
            channel_id=channel_id,
            problem=problem,
            day=self._date_provider.today(),
        )
        if members:
            report.recorded = await self._evaluate(report, members)
        return report

    async def _load_guild(self, guild_id: str) -> Tuple[Optional[str], List[TrackedMember]]:
        try:
            async with self._session_factory() as session:
                config = await GuildConfigOperations(session).get_config(guild_id)
                members = [
                    TrackedMember(username=user.leetcode_username, member_id=user.member_id)
                    for user in config.tracked_users
                ]
                return config.channel_id, members
        except NotFoundError as e:
            raise ConfigMissingError(guild_id) from e
        except DatabaseOperationError as e:
            raise ConfigMissingError(guild_id, str(e)) from e

    async def _fetch_problem(self) -> ProblemInfo:
        slug = await self._source.get_daily_slug()
        return await self._source.get_problem(slug)

    async def _evaluate(self, outcome: CheckOutcome, members: List[TrackedMember]) -> int:
        """Classify members into ``outcome`` and record completions.

        Returns the number of new records written.
        """
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def check_member(member: TrackedMember) -> MemberStatus:
            async with semaphore:
                return await self._check_member(member, outcome.problem.slug)

        statuses = await asyncio.gather(*(check_member(member) for member in members))

        for status in statuses:
            if status.completed:
                outcome.completed.append(status)
            else:
                outcome.incomplete.append(status)

        recorded = 0
        for status in outcome.completed:
            member = status.member
            try:
                record = await self._recorder.record_if_absent(
                    guild_id=outcome.guild_id,
                    member_id=member.record_id,
                    username=member.username,
                    slug=outcome.problem.slug,
                    day=outcome.day,
                    problem=outcome.problem,
                    raw_timestamp=status.submission_timestamp,
                )
            except DatabaseOperationError as e:
                logger.error(
                    f"Failed to record completion for {member.username} in guild {outcome.guild_id}: {e}"
                )
                continue
            if record is not None:
                recorded += 1

        logger.info(
            f"Checked {len(members)} members in guild {outcome.guild_id} for {outcome.problem.slug}: "
            f"{len(outcome.completed)} completed, {len(outcome.incomplete)} incomplete, {recorded} recorded"
        )
        return recorded

    async def _check_member(self, member: TrackedMember, slug: str) -> MemberStatus:
        try:
            submissions = await self._source.get_recent_submissions(member.username)
        except MemberFetchError as e:
            logger.error(f"Error fetching submissions for {member.username}: {e}")
            return MemberStatus(member=member, completed=False, fetch_failed=True)
        except Exception as e:
            logger.exception(f"Unexpected error checking {member.username}: {e}")
            return MemberStatus(member=member, completed=False, fetch_failed=True)

        match = next(
            (sub for sub in submissions if sub.challenge_slug == slug and sub.is_accepted),
            None,
        )
        if match is None:
            return MemberStatus(member=member, completed=False)

        return MemberStatus(member=member, completed=True, submission_timestamp=match.timestamp)

