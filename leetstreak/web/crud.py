"""Database operations for the leetstreak bot.

This module provides the data access layer for guild configuration and
completion records. All operations are async and use SQLAlchemy 2.0 syntax.
Services above this layer never build queries themselves.
"""

from __future__ import annotations

import logging
from typing import Optional, List
from datetime import date, datetime

from sqlalchemy import select, delete, func, desc
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from leetstreak.web.models import (
    CheckSchedule,
    CompletionRecord,
    GuildConfig,
    JobKind,
    TrackedUser,
)

logger = logging.getLogger(__name__)


class DatabaseOperationError(Exception):
    """Base exception for database operations."""
    pass


class NotFoundError(DatabaseOperationError):
    """Raised when a requested resource is not found."""
    pass


class ConflictError(DatabaseOperationError):
    """Raised when a database constraint is violated."""
    pass


class GuildConfigOperations:
    """Database operations for per-guild configuration.

    Covers the guild row itself, its tracked users and its check schedules.
    Mutations commit immediately; each add or remove touches a single row so
    concurrent commands for different users or schedules cannot overwrite
    each other.
    """

    def __init__(self, session: AsyncSession):
        """Initialize with database session.

        Args:
            session: SQLAlchemy async session
        """
        self.session = session

    async def get_config(self, guild_id: str) -> GuildConfig:
        """Get guild configuration.

        Args:
            guild_id: Discord guild snowflake ID

        Returns:
            GuildConfig: Guild configuration with users and schedules loaded

        Raises:
            NotFoundError: If the guild has never been configured
            DatabaseOperationError: If query fails
        """
        try:
            stmt = select(GuildConfig).where(GuildConfig.guild_id == guild_id)
            result = await self.session.execute(stmt)
            config = result.scalar_one_or_none()

            if config is None:
                raise NotFoundError(f"Guild config not found: {guild_id}")

            return config

        except NotFoundError:
            raise
        except Exception as e:
            raise DatabaseOperationError(f"Failed to get guild config: {e}") from e

    async def get_or_create_config(self, guild_id: str) -> GuildConfig:
        """Get guild configuration, creating an empty one if missing.

        Raises:
            DatabaseOperationError: If the operation fails
        """
        try:
            return await self.get_config(guild_id)
        except NotFoundError:
            pass

        try:
            config = GuildConfig(guild_id=guild_id)
            self.session.add(config)
            await self.session.commit()
            logger.info(f"Created guild config for guild {guild_id}")
            return config

        except IntegrityError:
            # Created concurrently by another command
            await self.session.rollback()
            return await self.get_config(guild_id)
        except Exception as e:
            await self.session.rollback()
            raise DatabaseOperationError(f"Failed to create guild config: {e}") from e

    async def set_channel(self, guild_id: str, channel_id: str) -> GuildConfig:
        """Set the announcement channel, creating the config if needed."""
        config = await self.get_or_create_config(guild_id)
        try:
            config.channel_id = channel_id
            await self.session.commit()
            return config

        except Exception as e:
            await self.session.rollback()
            raise DatabaseOperationError(f"Failed to set channel: {e}") from e

    async def get_tracked_users(self, guild_id: str) -> List[TrackedUser]:
        """Get tracked users for a guild ordered by username."""
        try:
            stmt = (
                select(TrackedUser)
                .where(TrackedUser.guild_id == guild_id)
                .order_by(TrackedUser.leetcode_username)
            )
            result = await self.session.execute(stmt)
            return list(result.scalars().all())

        except Exception as e:
            raise DatabaseOperationError(f"Failed to get tracked users: {e}") from e

    async def add_tracked_user(
        self,
        guild_id: str,
        leetcode_username: str,
        member_id: Optional[str] = None
    ) -> TrackedUser:
        """Start tracking a LeetCode username in a guild.

        Raises:
            ConflictError: If the username is already tracked in the guild
            DatabaseOperationError: If the insert fails
        """
        await self.get_or_create_config(guild_id)

        try:
            stmt = select(TrackedUser).where(
                TrackedUser.guild_id == guild_id,
                TrackedUser.leetcode_username == leetcode_username
            )
            result = await self.session.execute(stmt)
            if result.scalar_one_or_none() is not None:
                raise ConflictError(f"User {leetcode_username} is already tracked in guild {guild_id}")

            tracked = TrackedUser(
                guild_id=guild_id,
                leetcode_username=leetcode_username,
                member_id=member_id
            )
            self.session.add(tracked)
            await self.session.commit()
            return tracked

        except ConflictError:
            raise
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError(f"User {leetcode_username} is already tracked in guild {guild_id}") from e
        except Exception as e:
            await self.session.rollback()
            raise DatabaseOperationError(f"Failed to add tracked user: {e}") from e

    async def remove_tracked_user(self, guild_id: str, leetcode_username: str) -> None:
        """Stop tracking a LeetCode username.

        Raises:
            NotFoundError: If the username is not tracked in the guild
            DatabaseOperationError: If the delete fails
        """
        try:
            stmt = delete(TrackedUser).where(
                TrackedUser.guild_id == guild_id,
                TrackedUser.leetcode_username == leetcode_username
            )
            result = await self.session.execute(stmt)

            if result.rowcount == 0:
                await self.session.rollback()
                raise NotFoundError(f"User {leetcode_username} is not tracked in guild {guild_id}")

            await self.session.commit()

        except NotFoundError:
            raise
        except Exception as e:
            await self.session.rollback()
            raise DatabaseOperationError(f"Failed to remove tracked user: {e}") from e

    async def get_schedules(
        self,
        guild_id: str,
        kind: Optional[JobKind] = None
    ) -> List[CheckSchedule]:
        """Get a guild's schedules ordered by time of day."""
        try:
            stmt = select(CheckSchedule).where(CheckSchedule.guild_id == guild_id)

            if kind is not None:
                stmt = stmt.where(CheckSchedule.kind == kind)

            stmt = stmt.order_by(CheckSchedule.hour, CheckSchedule.minute)
            result = await self.session.execute(stmt)
            return list(result.scalars().all())

        except Exception as e:
            raise DatabaseOperationError(f"Failed to get schedules: {e}") from e

    async def get_all_schedules(self) -> List[CheckSchedule]:
        """Get schedules of every guild, used to rebuild live jobs at startup."""
        try:
            stmt = select(CheckSchedule).order_by(
                CheckSchedule.guild_id, CheckSchedule.hour, CheckSchedule.minute
            )
            result = await self.session.execute(stmt)
            return list(result.scalars().all())

        except Exception as e:
            raise DatabaseOperationError(f"Failed to get all schedules: {e}") from e

    async def add_schedule(
        self,
        guild_id: str,
        hour: int,
        minute: int,
        kind: JobKind = JobKind.DAILY_CHECK
    ) -> CheckSchedule:
        """Persist a new schedule for a guild.

        Raises:
            ConflictError: If the same (kind, hour, minute) already exists
            DatabaseOperationError: If the insert fails
        """
        await self.get_or_create_config(guild_id)

        try:
            stmt = select(CheckSchedule).where(
                CheckSchedule.guild_id == guild_id,
                CheckSchedule.kind == kind,
                CheckSchedule.hour == hour,
                CheckSchedule.minute == minute
            )
            result = await self.session.execute(stmt)
            if result.scalar_one_or_none() is not None:
                raise ConflictError(f"Schedule {hour:02d}:{minute:02d} already exists for guild {guild_id}")

            schedule = CheckSchedule(guild_id=guild_id, kind=kind, hour=hour, minute=minute)
            self.session.add(schedule)
            await self.session.commit()
            return schedule

        except ConflictError:
            raise
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError(f"Schedule {hour:02d}:{minute:02d} already exists for guild {guild_id}") from e
        except Exception as e:
            await self.session.rollback()
            raise DatabaseOperationError(f"Failed to add schedule: {e}") from e

    async def remove_schedule(
        self,
        guild_id: str,
        hour: int,
        minute: int,
        kind: JobKind = JobKind.DAILY_CHECK
    ) -> None:
        """Delete a schedule.

        Raises:
            NotFoundError: If the schedule does not exist
            DatabaseOperationError: If the delete fails
        """
        try:
            stmt = delete(CheckSchedule).where(
                CheckSchedule.guild_id == guild_id,
                CheckSchedule.kind == kind,
                CheckSchedule.hour == hour,
                CheckSchedule.minute == minute
            )
            result = await self.session.execute(stmt)

            if result.rowcount == 0:
                await self.session.rollback()
                raise NotFoundError(f"Schedule {hour:02d}:{minute:02d} not found for guild {guild_id}")

            await self.session.commit()

        except NotFoundError:
            raise
        except Exception as e:
            await self.session.rollback()
            raise DatabaseOperationError(f"Failed to remove schedule: {e}") from e


class CompletionRecordOperations:
    """Database operations for completion records.

    Records are insert-only. The unique constraint on
    (guild_id, member_id, challenge_slug, day) is the authoritative guard
    against duplicates; ``create_record`` surfaces a violation as
    ConflictError.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_in_window(
        self,
        guild_id: str,
        member_id: str,
        challenge_slug: str,
        start: date,
        end: date
    ) -> Optional[CompletionRecord]:
        """Find a record for a challenge with ``start <= day < end``.

        Args:
            guild_id: Discord guild snowflake ID
            member_id: Member identifier the record is stored under
            challenge_slug: Daily challenge slug
            start: Inclusive lower bound of the day bucket
            end: Exclusive upper bound of the day bucket

        Returns:
            The matching record, or None
        """
        try:
            stmt = (
                select(CompletionRecord)
                .where(
                    CompletionRecord.guild_id == guild_id,
                    CompletionRecord.member_id == member_id,
                    CompletionRecord.challenge_slug == challenge_slug,
                    CompletionRecord.day >= start,
                    CompletionRecord.day < end
                )
                .limit(1)
            )
            result = await self.session.execute(stmt)
            return result.scalar_one_or_none()

        except Exception as e:
            raise DatabaseOperationError(f"Failed to find completion record: {e}") from e

    async def find_on_day(
        self,
        guild_id: str,
        member_id: str,
        day: date
    ) -> Optional[CompletionRecord]:
        """Find the most recent completed record for a member on a day."""
        try:
            stmt = (
                select(CompletionRecord)
                .where(
                    CompletionRecord.guild_id == guild_id,
                    CompletionRecord.member_id == member_id,
                    CompletionRecord.completed == True,
                    CompletionRecord.day == day
                )
                .order_by(desc(CompletionRecord.streak_count), desc(CompletionRecord.created_at))
                .limit(1)
            )
            result = await self.session.execute(stmt)
            return result.scalar_one_or_none()

        except Exception as e:
            raise DatabaseOperationError(f"Failed to find completion record for day: {e}") from e

    async def get_latest(self, guild_id: str, member_id: str) -> Optional[CompletionRecord]:
        """Get a member's most recent completed record by day."""
        try:
            stmt = (
                select(CompletionRecord)
                .where(
                    CompletionRecord.guild_id == guild_id,
                    CompletionRecord.member_id == member_id,
                    CompletionRecord.completed == True
                )
                .order_by(
                    desc(CompletionRecord.day),
                    desc(CompletionRecord.streak_count),
                    desc(CompletionRecord.created_at)
                )
                .limit(1)
            )
            result = await self.session.execute(stmt)
            return result.scalar_one_or_none()

        except Exception as e:
            raise DatabaseOperationError(f"Failed to get latest completion record: {e}") from e

    async def create_record(
        self,
        guild_id: str,
        member_id: str,
        leetcode_username: str,
        day: date,
        challenge_title: str,
        challenge_slug: str,
        difficulty: str,
        submission_instant: datetime,
        streak_count: int
    ) -> CompletionRecord:
        """Insert a completion record.

        Raises:
            ConflictError: If a record for (guild, member, slug, day) exists
            DatabaseOperationError: If the insert fails
        """
        try:
            record = CompletionRecord(
                guild_id=guild_id,
                member_id=member_id,
                leetcode_username=leetcode_username,
                day=day,
                challenge_title=challenge_title,
                challenge_slug=challenge_slug,
                difficulty=difficulty,
                submission_instant=submission_instant,
                completed=True,
                streak_count=streak_count
            )
            self.session.add(record)
            await self.session.commit()
            return record

        except IntegrityError as e:
            await self.session.rollback()
            if "uq_completion_records" in str(e) or "UNIQUE" in str(e).upper():
                raise ConflictError(
                    f"Completion already recorded for {member_id} in guild {guild_id} on {day}"
                ) from e
            raise DatabaseOperationError(f"Failed to create completion record: {e}") from e
        except Exception as e:
            await self.session.rollback()
            raise DatabaseOperationError(f"Failed to create completion record: {e}") from e

    async def count_since(self, guild_id: str, member_id: str, since: date) -> int:
        """Count a member's completed records with ``day >= since``."""
        try:
            stmt = select(func.count()).select_from(CompletionRecord).where(
                CompletionRecord.guild_id == guild_id,
                CompletionRecord.member_id == member_id,
                CompletionRecord.completed == True,
                CompletionRecord.day >= since
            )
            result = await self.session.execute(stmt)
            return int(result.scalar_one())

        except Exception as e:
            raise DatabaseOperationError(f"Failed to count completion records: {e}") from e

    async def get_streak_records_since(
        self,
        guild_id: str,
        since: date,
        limit: Optional[int] = None
    ) -> List[CompletionRecord]:
        """Get records with a positive streak and ``day >= since``.

        Ordered by streak descending, then submission time descending.
        """
        try:
            stmt = (
                select(CompletionRecord)
                .where(
                    CompletionRecord.guild_id == guild_id,
                    CompletionRecord.completed == True,
                    CompletionRecord.day >= since,
                    CompletionRecord.streak_count > 0
                )
                .order_by(
                    desc(CompletionRecord.streak_count),
                    desc(CompletionRecord.submission_instant)
                )
            )

            if limit is not None:
                stmt = stmt.limit(limit)

            result = await self.session.execute(stmt)
            return list(result.scalars().all())

        except Exception as e:
            raise DatabaseOperationError(f"Failed to get streak records: {e}") from e
