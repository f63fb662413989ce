"""Registry of live scheduled jobs per guild.

The persisted CheckSchedule rows are the source of truth. The registry keeps
one APScheduler job per (guild, kind, schedule) as a cache of them and
reconciles that cache whenever a guild's schedules change, and once for
every guild at startup.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Set, Tuple

from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leetstreak.bot.services.challenge_checker import ChallengeChecker
from leetstreak.bot.services.exceptions import DuplicateResourceError
from leetstreak.bot.services.exceptions import ResourceNotFoundError
from leetstreak.bot.services.exceptions import ValidationError
from leetstreak.bot.services.models import Schedule
from leetstreak.bot.services.notification_service import NotificationDispatcher
from leetstreak.web.crud import ConflictError
from leetstreak.web.crud import GuildConfigOperations
from leetstreak.web.crud import NotFoundError
from leetstreak.web.models import JobKind

logger = logging.getLogger(__name__)

LiveKey = Tuple[JobKind, Schedule]


@dataclass
class LiveJob:
    """An armed trigger. Replaced, never mutated, when schedules change."""

    guild_id: str
    kind: JobKind
    schedule: Schedule
    job: Job

    def stop(self) -> None:
        self.job.remove()


class CronRegistry:
    """Owns every live job and keeps it in line with persisted schedules.

    All mutations for a guild run under that guild's lock, so a command
    and a reconcile for the same guild cannot interleave. A fire only
    spawns a detached task; removing a schedule stops future fires but does
    not cancel a run already in flight.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        checker: ChallengeChecker,
        dispatcher: NotificationDispatcher,
        timezone: str = "UTC",
        scheduler: Optional[AsyncIOScheduler] = None,
        misfire_grace_time: int = 300
    ):
        """Initialize the registry.

        Args:
            session_factory: Factory for database sessions
            checker: Runs the daily check when a job fires
            dispatcher: Sends reminders after a check
            timezone: Timezone the (hour, minute) pairs are expressed in
            scheduler: Scheduler to arm jobs on, a new one is created if omitted
            misfire_grace_time: Seconds a late fire is still allowed to run
        """
        self._session_factory = session_factory
        self._checker = checker
        self._dispatcher = dispatcher
        self._timezone = timezone
        self._scheduler = scheduler or AsyncIOScheduler(timezone=timezone)
        self._misfire_grace_time = misfire_grace_time

        self._live: Dict[str, Dict[LiveKey, LiveJob]] = defaultdict(dict)
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._tasks: Set[asyncio.Task] = set()
        self._handlers: Dict[JobKind, Callable[[str, Schedule], Awaitable[None]]] = {
            JobKind.DAILY_CHECK: self._run_daily_check,
        }

    @property
    def scheduler(self) -> AsyncIOScheduler:
        return self._scheduler

    async def start(self) -> None:
        """Start the scheduler and rebuild every guild's jobs from storage."""
        if not self._scheduler.running:
            self._scheduler.start()
        await self.reconcile_all()
        logger.info("Cron registry started")

    async def shutdown(self) -> None:
        """Stop firing. Runs already in flight are left to finish."""
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._live.clear()
        logger.info("Cron registry stopped")

    async def reconcile_all(self) -> None:
        """Rebuild live jobs for every guild from persisted schedules."""
        async with self._session_factory() as session:
            rows = await GuildConfigOperations(session).get_all_schedules()

        desired: Dict[str, Dict[JobKind, List[Schedule]]] = defaultdict(lambda: defaultdict(list))
        for row in rows:
            desired[row.guild_id][row.kind].append(Schedule(row.hour, row.minute))

        for guild_id in set(desired) | set(self._live):
            async with self._locks[guild_id]:
                for kind in JobKind:
                    self._reconcile_locked(guild_id, desired[guild_id][kind], kind)

        total = sum(len(jobs) for jobs in self._live.values())
        logger.info(f"Reconciled scheduled jobs: {total} live across {len(self._live)} guilds")

    async def reconcile(
        self,
        guild_id: str,
        schedules: Iterable[Schedule],
        kind: JobKind = JobKind.DAILY_CHECK
    ) -> None:
        """Make the guild's live jobs of ``kind`` match ``schedules`` exactly."""
        async with self._locks[guild_id]:
            self._reconcile_locked(guild_id, schedules, kind)

    async def add_schedule(
        self,
        guild_id: str,
        hour: int,
        minute: int,
        kind: JobKind = JobKind.DAILY_CHECK
    ) -> List[Schedule]:
        """Persist a new schedule and arm it.

        Returns:
            The guild's schedules after the change

        Raises:
            ValidationError: If hour or minute is out of range
            DuplicateResourceError: If the schedule already exists
        """
        schedule = validate_schedule(hour, minute)

        async with self._locks[guild_id]:
            async with self._session_factory() as session:
                operations = GuildConfigOperations(session)
                try:
                    await operations.add_schedule(guild_id, schedule.hour, schedule.minute, kind)
                except ConflictError as e:
                    raise DuplicateResourceError("Schedule", schedule.label) from e
                schedules = await self._persisted(operations, guild_id, kind)

            self._reconcile_locked(guild_id, schedules, kind)

        logger.info(f"Added {kind.value} schedule {schedule.label} for guild {guild_id}")
        return schedules

    async def remove_schedule(
        self,
        guild_id: str,
        hour: int,
        minute: int,
        kind: JobKind = JobKind.DAILY_CHECK
    ) -> List[Schedule]:
        """Delete a schedule and disarm it.

        Returns:
            The guild's schedules after the change

        Raises:
            ValidationError: If hour or minute is out of range
            ResourceNotFoundError: If the schedule does not exist
        """
        schedule = validate_schedule(hour, minute)

        async with self._locks[guild_id]:
            async with self._session_factory() as session:
                operations = GuildConfigOperations(session)
                try:
                    await operations.remove_schedule(guild_id, schedule.hour, schedule.minute, kind)
                except NotFoundError as e:
                    raise ResourceNotFoundError("Schedule", schedule.label) from e
                schedules = await self._persisted(operations, guild_id, kind)

            self._reconcile_locked(guild_id, schedules, kind)

        logger.info(f"Removed {kind.value} schedule {schedule.label} for guild {guild_id}")
        return schedules

    async def list_schedules(
        self,
        guild_id: str,
        kind: JobKind = JobKind.DAILY_CHECK
    ) -> List[Schedule]:
        """Persisted schedules of a guild, ordered by time of day."""
        async with self._session_factory() as session:
            return await self._persisted(GuildConfigOperations(session), guild_id, kind)

    def live_schedules(self, guild_id: str, kind: JobKind = JobKind.DAILY_CHECK) -> List[Schedule]:
        """Schedules currently armed for a guild, ordered by time of day."""
        return sorted(
            live.schedule for live in self._live.get(guild_id, {}).values() if live.kind == kind
        )

    def fire(self, guild_id: str, schedule: Schedule, kind: JobKind = JobKind.DAILY_CHECK) -> asyncio.Task:
        """Spawn one detached run of a job, as a trigger fire does."""
        task = asyncio.create_task(
            self._handlers[kind](guild_id, schedule),
            name=job_id(guild_id, kind, schedule),
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @staticmethod
    async def _persisted(
        operations: GuildConfigOperations,
        guild_id: str,
        kind: JobKind
    ) -> List[Schedule]:
        rows = await operations.get_schedules(guild_id, kind)
        return [Schedule(row.hour, row.minute) for row in rows]

    def _reconcile_locked(self, guild_id: str, schedules: Iterable[Schedule], kind: JobKind) -> None:
        desired = {(kind, Schedule(*schedule)) for schedule in schedules}
        live = self._live[guild_id]

        for key in [key for key in live if key[0] == kind and key not in desired]:
            live.pop(key).stop()
            logger.debug(f"Stopped {kind.value} job {key[1].label} for guild {guild_id}")

        for key in desired - set(live):
            live[key] = self._arm(guild_id, kind, key[1])
            logger.debug(f"Started {kind.value} job {key[1].label} for guild {guild_id}")

        if not live:
            del self._live[guild_id]

    def _arm(self, guild_id: str, kind: JobKind, schedule: Schedule) -> LiveJob:
        job = self._scheduler.add_job(
            self._on_trigger,
            CronTrigger(hour=schedule.hour, minute=schedule.minute, timezone=self._timezone),
            args=[guild_id, schedule.hour, schedule.minute, kind],
            id=job_id(guild_id, kind, schedule),
            replace_existing=True,
            coalesce=True,
            max_instances=1,
            misfire_grace_time=self._misfire_grace_time,
        )
        return LiveJob(guild_id=guild_id, kind=kind, schedule=schedule, job=job)

    async def _on_trigger(self, guild_id: str, hour: int, minute: int, kind: JobKind) -> None:
        self.fire(guild_id, Schedule(hour, minute), kind)

    async def _run_daily_check(self, guild_id: str, schedule: Schedule) -> None:
        logger.info(f"Running scheduled check for guild {guild_id} at {schedule.label}")

        try:
            outcome = await self._checker.run(guild_id)
        except Exception as e:
            logger.exception(
                f"Scheduled check failed at stage=check for guild {guild_id}, schedule {schedule.label}: {e}"
            )
            return

        if outcome is None or not outcome.incomplete:
            return

        try:
            await self._dispatcher.notify_incomplete(outcome)
        except Exception as e:
            logger.exception(
                f"Scheduled check failed at stage=notify for guild {guild_id}, schedule {schedule.label}: {e}"
            )


def job_id(guild_id: str, kind: JobKind, schedule: Schedule) -> str:
    return f"{guild_id}:{kind.value}:{schedule.label}"


def validate_schedule(hour: int, minute: int) -> Schedule:
    """Check an (hour, minute) pair.

    Raises:
        ValidationError: If either value is not an int in range
    """
    if not isinstance(hour, int) or isinstance(hour, bool) or not 0 <= hour <= 23:
        raise ValidationError("hour", "must be an integer between 0 and 23")
    if not isinstance(minute, int) or isinstance(minute, bool) or not 0 <= minute <= 59:
        raise ValidationError("minute", "must be an integer between 0 and 59")
    return Schedule(hour, minute)
