"""Delivery of check results to Discord."""

from __future__ import annotations

import logging
from typing import Protocol

import hikari

from leetstreak.bot.services.exceptions import ConfigMissingError
from leetstreak.bot.services.exceptions import PermissionDeniedError
from leetstreak.bot.services.models import CheckOutcome

logger = logging.getLogger(__name__)

REMINDER_TEMPLATE = "⚠️ {mentions}\nDon't forget to complete today's LeetCode Daily Challenge!"

PERMISSION_HELP_TEMPLATE = (
    "I encountered a permission error when trying to send messages in <#{channel_id}>. "
    "Please check my permissions and make sure I can:\n"
    "- View the channel\n"
    "- Send messages\n"
    "- Mention users (if you want me to ping people)\n"
    "Or set a different channel using /setchannel."
)


class MessageTransport(Protocol):
    """Write-only, best-effort message delivery."""

    async def send_channel_message(self, channel_id: str, content: str) -> None:
        """Post to a guild channel.

        Raises:
            PermissionDeniedError: If the bot may not post there
            ConfigMissingError: If the channel no longer exists
        """
        ...

    async def send_owner_message(self, guild_id: str, content: str) -> None:
        """Privately message the guild owner."""
        ...


class HikariMessageTransport:
    """MessageTransport backed by the hikari REST client."""

    def __init__(self, bot: hikari.RESTAware):
        self._bot = bot

    async def send_channel_message(self, channel_id: str, content: str) -> None:
        try:
            await self._bot.rest.create_message(
                int(channel_id),
                content,
                user_mentions=True,
            )
        except hikari.ForbiddenError as e:
            raise PermissionDeniedError(channel_id, str(e)) from e
        except hikari.NotFoundError as e:
            raise ConfigMissingError(detail=f"announcement channel not found: {e}", channel_id=channel_id) from e

    async def send_owner_message(self, guild_id: str, content: str) -> None:
        guild = await self._bot.rest.fetch_guild(int(guild_id))
        dm_channel = await self._bot.rest.create_dm_channel(guild.owner_id)
        await self._bot.rest.create_message(dm_channel, content)


class NotificationDispatcher:
    """Turns a finished scheduled check into a reminder message.

    Delivery failures are logged and swallowed here; nothing propagates back
    to the scheduler.
    """

    def __init__(self, transport: MessageTransport):
        self._transport = transport

    async def notify_incomplete(self, outcome: CheckOutcome) -> bool:
        """Remind incomplete members in the guild's announcement channel.

        Returns:
            bool: True if a reminder was delivered
        """
        if not outcome.incomplete or not outcome.channel_id:
            return False

        mentions = ", ".join(status.member.mention for status in outcome.incomplete)
        content = REMINDER_TEMPLATE.format(mentions=mentions)

        try:
            await self._transport.send_channel_message(outcome.channel_id, content)
            return True

        except PermissionDeniedError as e:
            logger.error(
                f"Permission error sending reminder in guild {outcome.guild_id}, "
                f"channel {outcome.channel_id}: {e}"
            )
            await self._notify_owner(outcome.guild_id, outcome.channel_id)
        except ConfigMissingError as e:
            logger.error(
                f"Announcement channel {outcome.channel_id} for guild {outcome.guild_id} "
                f"is gone, a new one must be set with /setchannel: {e}"
            )
        except Exception as e:
            logger.error(
                f"Error sending reminder in guild {outcome.guild_id}, "
                f"channel {outcome.channel_id}: {e}"
            )
        return False

    async def _notify_owner(self, guild_id: str, channel_id: str) -> None:
        try:
            await self._transport.send_owner_message(
                guild_id, PERMISSION_HELP_TEMPLATE.format(channel_id=channel_id)
            )
            logger.info(f"Notified owner of guild {guild_id} about missing permissions")
        except Exception as e:
            logger.error(f"Failed to notify owner of guild {guild_id} about permissions: {e}")
