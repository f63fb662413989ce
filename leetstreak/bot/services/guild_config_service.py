"""Guild tracking configuration: tracked users and announcement channel."""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leetstreak.bot.services.exceptions import DuplicateResourceError
from leetstreak.bot.services.exceptions import ResourceNotFoundError
from leetstreak.bot.services.exceptions import ValidationError
from leetstreak.bot.services.models import TrackedMember
from leetstreak.web.crud import ConflictError
from leetstreak.web.crud import GuildConfigOperations
from leetstreak.web.crud import NotFoundError

logger = logging.getLogger(__name__)


class GuildConfigService:
    """Commands that change which members a guild tracks and where it posts."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def add_user(
        self,
        guild_id: str,
        username: str,
        member_id: Optional[str] = None
    ) -> TrackedMember:
        """Track a LeetCode username, optionally linked to a Discord member.

        Raises:
            ValidationError: If the username is blank
            DuplicateResourceError: If the username is already tracked
        """
        username = (username or "").strip()
        if not username:
            raise ValidationError("username", "must not be empty")

        async with self._session_factory() as session:
            try:
                await GuildConfigOperations(session).add_tracked_user(guild_id, username, member_id)
            except ConflictError as e:
                raise DuplicateResourceError("Tracked user", username) from e

        logger.info(f"Tracking {username} (member {member_id}) in guild {guild_id}")
        return TrackedMember(username=username, member_id=member_id)

    async def remove_user(self, guild_id: str, username: str) -> None:
        """Stop tracking a LeetCode username.

        Raises:
            ResourceNotFoundError: If the username is not tracked
        """
        async with self._session_factory() as session:
            try:
                await GuildConfigOperations(session).remove_tracked_user(guild_id, username.strip())
            except NotFoundError as e:
                raise ResourceNotFoundError("Tracked user", username) from e

        logger.info(f"Stopped tracking {username} in guild {guild_id}")

    async def list_users(self, guild_id: str) -> List[TrackedMember]:
        async with self._session_factory() as session:
            users = await GuildConfigOperations(session).get_tracked_users(guild_id)
        return [TrackedMember(username=user.leetcode_username, member_id=user.member_id) for user in users]

    async def set_channel(self, guild_id: str, channel_id: str) -> None:
        """Set the channel scheduled reminders are posted to."""
        async with self._session_factory() as session:
            await GuildConfigOperations(session).set_channel(guild_id, channel_id)
        logger.info(f"Announcement channel for guild {guild_id} set to {channel_id}")
