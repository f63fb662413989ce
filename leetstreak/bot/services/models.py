"""Data structures passed between bot services.

These are plain value objects, independent of both Discord and the
database layer.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date
from typing import List, NamedTuple, Optional


class Schedule(NamedTuple):
    """Time of day at which a guild's daily check fires."""

    hour: int
    minute: int

    @property
    def label(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


class CompletionPeriod(str, enum.Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass(frozen=True)
class ProblemInfo:
    """Metadata of a LeetCode problem."""

    slug: str
    title: str
    difficulty: str
    topics: List[str] = field(default_factory=list)
    acceptance_rate: Optional[str] = None
    url: Optional[str] = None


@dataclass(frozen=True)
class Submission:
    """One entry of a user's recent submission list."""

    challenge_slug: str
    status: str
    timestamp: Optional[str] = None

    @property
    def is_accepted(self) -> bool:
        return self.status == "Accepted"


@dataclass(frozen=True)
class TrackedMember:
    """A tracked username and the member it is linked to, if any."""

    username: str
    member_id: Optional[str] = None

    @property
    def record_id(self) -> str:
        """Identifier completion records are stored under."""
        return self.member_id or self.username

    @property
    def mention(self) -> str:
        return f"<@{self.member_id}>" if self.member_id else self.username


@dataclass(frozen=True)
class MemberStatus:
    """Result of checking one member against the daily challenge."""

    member: TrackedMember
    completed: bool
    submission_timestamp: Optional[str] = None
    fetch_failed: bool = False


@dataclass
class CheckOutcome:
    """What a scheduled check hands to the notification step."""

    guild_id: str
    channel_id: Optional[str]
    problem: ProblemInfo
    day: date
    completed: List[MemberStatus] = field(default_factory=list)
    incomplete: List[MemberStatus] = field(default_factory=list)


@dataclass
class CheckReport(CheckOutcome):
    """Full status report for on-demand checks."""

    recorded: int = 0

    @property
    def statuses(self) -> List[MemberStatus]:
        return sorted(
            self.completed + self.incomplete,
            key=lambda status: status.member.username.lower(),
        )


@dataclass(frozen=True)
class CompletionRate:
    total: int
    period: CompletionPeriod


@dataclass(frozen=True)
class LeaderboardEntry:
    rank: int
    member_id: str
    streak: int
