"""Discord bot client setup and configuration."""

from __future__ import annotations

import asyncio
import logging

import hikari
import lightbulb

from leetstreak.bot.services.challenge_checker import ChallengeChecker
from leetstreak.bot.services.cron_registry import CronRegistry
from leetstreak.bot.services.guild_config_service import GuildConfigService
from leetstreak.bot.services.leetcode_client import LeetCodeClient
from leetstreak.bot.services.notification_service import HikariMessageTransport
from leetstreak.bot.services.notification_service import NotificationDispatcher
from leetstreak.bot.services.stats_service import StatsService
from leetstreak.bot.services.streak_service import StreakService
from leetstreak.bot.services.submission_recorder import SubmissionRecorder
from leetstreak.shared.config import Settings
from leetstreak.shared.config import get_settings
from leetstreak.shared.database import close_database
from leetstreak.shared.database import create_tables
from leetstreak.shared.database import init_database
from leetstreak.shared.date_provider import DateProvider
from leetstreak.shared.date_provider import set_date_provider

logger = logging.getLogger(__name__)


def create_bot(settings: Settings | None = None) -> lightbulb.BotApp:
    """Create and configure the Discord bot with Lightbulb v2 syntax.

    Returns:
        BotApp instance
    """
    if settings is None:
        settings = get_settings()

    # Slash commands only need guild metadata
    intents = hikari.Intents.GUILDS

    bot = lightbulb.BotApp(
        token=settings.discord_bot_token,
        intents=intents,
        logs={
            "version": 1,
            "incremental": True,
            "loggers": {
                "hikari": {"level": "INFO"},
                "lightbulb": {"level": "INFO"},
                "apscheduler": {"level": "WARNING"},
                "leetstreak": {"level": settings.log_level.upper()},
            },
        },
        banner=None,
    )

    return bot


async def setup_bot_services(bot: lightbulb.BotApp, settings: Settings | None = None) -> None:
    """Set up bot services and dependencies.

    The cron registry is created here but only started once the bot is
    starting, see ``run_bot``.
    """
    logger.info("Setting up bot services...")

    if settings is None:
        settings = get_settings()

    date_provider = DateProvider(settings.timezone)
    set_date_provider(date_provider)

    session_factory = init_database(settings)
    await create_tables()
    logger.info("✓ Database ready")

    leetcode_client = LeetCodeClient(settings)
    streak_service = StreakService(session_factory, date_provider)
    recorder = SubmissionRecorder(session_factory, streak_service, date_provider)
    challenge_checker = ChallengeChecker(
        session_factory,
        leetcode_client,
        recorder,
        max_concurrency=settings.check_max_concurrency,
        date_provider=date_provider,
    )
    dispatcher = NotificationDispatcher(HikariMessageTransport(bot))
    cron_registry = CronRegistry(
        session_factory,
        challenge_checker,
        dispatcher,
        timezone=settings.timezone,
    )
    stats_service = StatsService(session_factory, date_provider)
    guild_config_service = GuildConfigService(session_factory)

    bot.d["leetcode_client"] = leetcode_client
    bot.d["cron_registry"] = cron_registry

    # Store services in d for plugin access
    bot.d["_services"] = {
        "challenge_checker": challenge_checker,
        "cron_registry": cron_registry,
        "streak_service": streak_service,
        "stats_service": stats_service,
        "guild_config_service": guild_config_service,
    }

    logger.info("✓ Bot services setup complete")
    logger.info(f"Plugin services: {list(bot.d['_services'].keys())}")


async def cleanup_bot_services(bot: lightbulb.BotApp) -> None:
    """Clean up bot services and connections."""
    logger.info("Cleaning up bot services...")

    try:
        if "cron_registry" in bot.d:
            await bot.d["cron_registry"].shutdown()

        if "leetcode_client" in bot.d:
            await bot.d["leetcode_client"].close()

        await close_database()
        logger.info("Bot services cleanup complete")

    except Exception as e:
        logger.error(f"Error cleaning up bot services: {e}")


def load_plugins(bot: lightbulb.BotApp) -> None:
    """Load bot plugins."""
    logger.info("Loading leetcode plugin...")
    bot.load_extensions("leetstreak.bot.plugins.leetcode")
    logger.info("✓ Loaded leetcode plugin")


async def run_bot() -> None:
    """Run the Discord bot."""
    settings = get_settings()

    if not settings.discord_bot_token:
        logger.error("Discord bot token not provided")
        return

    bot = create_bot(settings)

    @bot.listen()
    async def on_starting(event: hikari.StartingEvent) -> None:
        """Rebuild scheduled jobs before any command is handled."""
        logger.info("Bot is starting...")
        await bot.d["cron_registry"].start()

    @bot.listen()
    async def on_started(event: hikari.StartedEvent) -> None:
        bot_user = event.app.get_me()
        if bot_user:
            logger.info(f"Bot started as {bot_user.username}")
        else:
            logger.info("Bot started")

    @bot.listen()
    async def on_stopping(event: hikari.StoppingEvent) -> None:
        logger.info("Bot is stopping...")
        await cleanup_bot_services(bot)

    await setup_bot_services(bot, settings)
    load_plugins(bot)

    try:
        await bot.start()
        logger.info("Bot is now running. Press Ctrl+C to stop.")

        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            logger.info("Bot shutdown requested")

    except KeyboardInterrupt:
        logger.info("Bot shutdown requested via keyboard interrupt")
    except Exception as e:
        logger.error(f"Bot crashed: {e}")
        raise
    finally:
        logger.info("Shutting down bot...")
        await bot.close()
