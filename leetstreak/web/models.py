"""Database models for the leetstreak bot."""

from __future__ import annotations

import enum
from datetime import datetime, timezone, date
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import Boolean
from sqlalchemy import CheckConstraint, Index, UniqueConstraint
from sqlalchemy import Date, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey
from sqlalchemy import Integer
from sqlalchemy import String
from sqlalchemy import Uuid
from sqlalchemy.orm import Mapped, relationship
from sqlalchemy.orm import mapped_column
from sqlalchemy.sql import func

from leetstreak.shared.database import Base


DIFFICULTIES = ("Easy", "Medium", "Hard")


class JobKind(str, enum.Enum):
    """Kinds of scheduled jobs a guild can own."""

    DAILY_CHECK = "daily_check"


class GuildConfig(Base):
    """Per-guild tracking configuration.

    Created on the first configuration command for a guild. Tracked users and
    check schedules hang off it as child rows so each add/remove is a single
    row insert or delete.
    """

    __tablename__ = "guild_configs"

    guild_id: Mapped[str] = mapped_column(
        String,
        primary_key=True,
        doc="Discord guild (server) snowflake ID"
    )
    channel_id: Mapped[Optional[str]] = mapped_column(
        String,
        nullable=True,
        doc="Announcement channel ID, unset until /setchannel is used"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        doc="When this config was created"
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
        doc="When this config was last updated"
    )

    tracked_users: Mapped[List["TrackedUser"]] = relationship(
        "TrackedUser",
        back_populates="guild",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    schedules: Mapped[List["CheckSchedule"]] = relationship(
        "CheckSchedule",
        back_populates="guild",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __init__(self, **kwargs):
        now = datetime.now(timezone.utc)
        kwargs.setdefault('created_at', now)
        kwargs.setdefault('updated_at', now)
        super().__init__(**kwargs)

    def __repr__(self) -> str:
        return f"<GuildConfig(guild_id='{self.guild_id}', channel_id='{self.channel_id}')>"


class TrackedUser(Base):
    """A LeetCode username tracked within a guild.

    ``member_id`` links the username to a Discord member when known; records
    for unmapped usernames are keyed by the username itself.
    """

    __tablename__ = "tracked_users"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
        doc="Unique tracked user identifier"
    )
    guild_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("guild_configs.guild_id", ondelete="CASCADE"),
        nullable=False,
        doc="Discord guild (server) snowflake ID"
    )
    leetcode_username: Mapped[str] = mapped_column(
        String,
        nullable=False,
        doc="Username on LeetCode"
    )
    member_id: Mapped[Optional[str]] = mapped_column(
        String,
        nullable=True,
        doc="Discord user snowflake ID, if linked"
    )

    guild: Mapped["GuildConfig"] = relationship("GuildConfig", back_populates="tracked_users")

    __table_args__ = (
        UniqueConstraint("guild_id", "leetcode_username", name="uq_tracked_users_guild_username"),
        Index("ix_tracked_users_guild_id", "guild_id"),
    )

    def __repr__(self) -> str:
        return f"<TrackedUser(guild_id='{self.guild_id}', username='{self.leetcode_username}')>"


class CheckSchedule(Base):
    """A recurring daily trigger (hour, minute) owned by a guild."""

    __tablename__ = "check_schedules"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
        doc="Unique schedule identifier"
    )
    guild_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("guild_configs.guild_id", ondelete="CASCADE"),
        nullable=False,
        doc="Discord guild (server) snowflake ID"
    )
    kind: Mapped[JobKind] = mapped_column(
        SAEnum(JobKind, native_enum=False, length=32),
        nullable=False,
        default=JobKind.DAILY_CHECK,
        doc="What the trigger runs"
    )
    hour: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        doc="Hour of day, 0-23"
    )
    minute: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        doc="Minute of hour, 0-59"
    )

    guild: Mapped["GuildConfig"] = relationship("GuildConfig", back_populates="schedules")

    __table_args__ = (
        UniqueConstraint("guild_id", "kind", "hour", "minute", name="uq_check_schedules_guild_kind_time"),
        CheckConstraint("hour >= 0 AND hour <= 23", name="ck_check_schedules_hour"),
        CheckConstraint("minute >= 0 AND minute <= 59", name="ck_check_schedules_minute"),
        Index("ix_check_schedules_guild_id", "guild_id"),
    )

    def __init__(self, **kwargs):
        kwargs.setdefault('kind', JobKind.DAILY_CHECK)
        super().__init__(**kwargs)

    def __repr__(self) -> str:
        return f"<CheckSchedule(guild_id='{self.guild_id}', {self.hour:02d}:{self.minute:02d})>"


class CompletionRecord(Base):
    """Immutable proof that a member solved a given day's challenge.

    One row per (guild, member, challenge, day). ``streak_count`` is a
    snapshot taken at creation and is never recomputed.
    """

    __tablename__ = "completion_records"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
        doc="Unique record identifier"
    )
    guild_id: Mapped[str] = mapped_column(
        String,
        nullable=False,
        doc="Discord guild (server) snowflake ID"
    )
    member_id: Mapped[str] = mapped_column(
        String,
        nullable=False,
        doc="Discord user ID, or the LeetCode username when unlinked"
    )
    leetcode_username: Mapped[str] = mapped_column(
        String,
        nullable=False,
        doc="LeetCode username at time of completion"
    )
    day: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        doc="Calendar day bucket of the challenge"
    )
    challenge_title: Mapped[str] = mapped_column(
        String,
        nullable=False,
        doc="Title of the daily challenge"
    )
    challenge_slug: Mapped[str] = mapped_column(
        String,
        nullable=False,
        doc="Title slug of the daily challenge"
    )
    difficulty: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        doc="Easy, Medium or Hard"
    )
    submission_instant: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        doc="When the accepted submission was made"
    )
    completed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        doc="Always true for records written by the checker"
    )
    streak_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        doc="Consecutive-day streak at creation time"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        doc="When the record was written"
    )

    __table_args__ = (
        UniqueConstraint(
            "guild_id", "member_id", "challenge_slug", "day",
            name="uq_completion_records_guild_member_slug_day",
        ),
        CheckConstraint("streak_count > 0", name="ck_completion_records_streak_positive"),
        CheckConstraint(
            "difficulty IN ('Easy', 'Medium', 'Hard')",
            name="ck_completion_records_difficulty",
        ),
        Index("ix_completion_records_guild_member_day", "guild_id", "member_id", "day"),
        Index("ix_completion_records_guild_day", "guild_id", "day"),
    )

    def __init__(self, **kwargs):
        kwargs.setdefault('completed', True)
        kwargs.setdefault('created_at', datetime.now(timezone.utc))
        super().__init__(**kwargs)

    def __repr__(self) -> str:
        return (
            f"<CompletionRecord(guild_id='{self.guild_id}', member_id='{self.member_id}', "
            f"day={self.day}, streak={self.streak_count})>"
        )
