"""Slash commands for LeetCode daily challenge tracking."""

from __future__ import annotations

import logging

import hikari
import lightbulb

from leetstreak.bot.services.exceptions import ConfigMissingError
from leetstreak.bot.services.exceptions import DuplicateResourceError
from leetstreak.bot.services.exceptions import ResourceNotFoundError
from leetstreak.bot.services.exceptions import ServiceError
from leetstreak.bot.services.exceptions import SourceUnavailableError
from leetstreak.bot.services.exceptions import ValidationError
from leetstreak.bot.services.models import CheckReport

plugin = lightbulb.Plugin("leetcode")
plugin.add_checks(lightbulb.guild_only)

logger = logging.getLogger(__name__)


def get_service(name: str):
    services = getattr(plugin.bot, "d", {}).get("_services", {})
    service = services.get(name)
    if service is None:
        raise ServiceError(f"Service {name} is not available")
    return service


async def defer(ctx: lightbulb.Context) -> None:
    await ctx.respond(hikari.ResponseType.DEFERRED_MESSAGE_CREATE)


def format_report(report: CheckReport) -> str:
    problem = report.problem
    lines = [f"**{problem.title}** ({problem.difficulty})"]
    if problem.topics:
        lines.append(f"Topics: {', '.join(problem.topics)}")
    if problem.acceptance_rate:
        lines.append(f"Acceptance Rate: {problem.acceptance_rate}")
    if problem.url:
        lines.append(problem.url)
    lines.append("")
    for status in report.statuses:
        if status.completed:
            mark = "✅ Completed"
        elif status.fetch_failed:
            mark = "⚠️ Could not fetch submissions"
        else:
            mark = "❌ Not completed"
        lines.append(f"{status.member.username}: {mark}")
    return "\n".join(lines)


@plugin.command
@lightbulb.command("check", "Run a manual check of today's LeetCode challenge status")
@lightbulb.implements(lightbulb.SlashCommand)
async def check_command(ctx: lightbulb.Context) -> None:
    await defer(ctx)
    try:
        report = await get_service("challenge_checker").check_now(str(ctx.guild_id))
    except ConfigMissingError:
        await ctx.edit_last_response("No users are being tracked in this server.")
        return
    except SourceUnavailableError as e:
        logger.error(f"Manual check failed for guild {ctx.guild_id}: {e}")
        await ctx.edit_last_response("Error checking challenge status. Please try again later.")
        return

    if not report.statuses:
        await ctx.edit_last_response("No users are being tracked in this server.")
        return
    await ctx.edit_last_response(format_report(report))


@plugin.command
@lightbulb.option("discord_user", "The Discord user to associate with this LeetCode account",
                  type=hikari.User, required=False, default=None)
@lightbulb.option("username", "The LeetCode username to add", type=str, required=True)
@lightbulb.command("adduser", "Add a LeetCode username to track")
@lightbulb.implements(lightbulb.SlashCommand)
async def adduser_command(ctx: lightbulb.Context) -> None:
    user = ctx.options.discord_user
    member_id = str(user.id) if user else None
    try:
        member = await get_service("guild_config_service").add_user(
            str(ctx.guild_id), ctx.options.username, member_id
        )
    except DuplicateResourceError:
        await ctx.respond(f"User {ctx.options.username} is already being tracked.")
        return
    except ValidationError as e:
        await ctx.respond(f"Invalid {e.field}: {e.message}")
        return
    await ctx.respond(f"Added {member.username} to the tracking list.")


@plugin.command
@lightbulb.option("username", "The LeetCode username to remove", type=str, required=True)
@lightbulb.command("removeuser", "Remove a LeetCode username from tracking")
@lightbulb.implements(lightbulb.SlashCommand)
async def removeuser_command(ctx: lightbulb.Context) -> None:
    try:
        await get_service("guild_config_service").remove_user(str(ctx.guild_id), ctx.options.username)
    except ResourceNotFoundError:
        await ctx.respond(f"User {ctx.options.username} is not being tracked.")
        return
    await ctx.respond(f"Removed {ctx.options.username} from the tracking list.")


@plugin.command
@lightbulb.command("listusers", "List all tracked LeetCode usernames")
@lightbulb.implements(lightbulb.SlashCommand)
async def listusers_command(ctx: lightbulb.Context) -> None:
    members = await get_service("guild_config_service").list_users(str(ctx.guild_id))
    if not members:
        await ctx.respond("No users are being tracked in this server.")
        return
    lines = [
        f"• {member.username} ({member.mention})" if member.member_id else f"• {member.username}"
        for member in members
    ]
    await ctx.respond("Currently tracking these users:\n" + "\n".join(lines), user_mentions=False)


@plugin.command
@lightbulb.option("channel", "The channel to send announcements to",
                  type=hikari.TextableGuildChannel, required=True)
@lightbulb.command("setchannel", "Set the announcement channel for this server")
@lightbulb.implements(lightbulb.SlashCommand)
async def setchannel_command(ctx: lightbulb.Context) -> None:
    channel = ctx.options.channel
    await get_service("guild_config_service").set_channel(str(ctx.guild_id), str(channel.id))
    await ctx.respond(f"Successfully set <#{channel.id}> as the announcement channel!")


@plugin.command
@lightbulb.command("managecron", "Manage scheduled LeetCode checks")
@lightbulb.implements(lightbulb.SlashCommandGroup)
async def managecron_group(ctx: lightbulb.Context) -> None:
    pass


@managecron_group.child
@lightbulb.option("minutes", "Minutes (0-59)", type=int, min_value=0, max_value=59, required=True)
@lightbulb.option("hours", "Hour in 24H format (0-23)", type=int, min_value=0, max_value=23, required=True)
@lightbulb.command("add", "Add a new check time")
@lightbulb.implements(lightbulb.SlashSubCommand)
async def managecron_add(ctx: lightbulb.Context) -> None:
    registry = get_service("cron_registry")
    try:
        schedules = await registry.add_schedule(str(ctx.guild_id), ctx.options.hours, ctx.options.minutes)
    except ValidationError as e:
        await ctx.respond(f"Invalid {e.field}: {e.message}")
        return
    except DuplicateResourceError as e:
        await ctx.respond(f"A check is already scheduled at {e.identifier}.")
        return
    await ctx.respond(
        f"Added check time {ctx.options.hours:02d}:{ctx.options.minutes:02d}. "
        f"Scheduled check times: {', '.join(schedule.label for schedule in schedules)}"
    )


@managecron_group.child
@lightbulb.option("minutes", "Minutes (0-59)", type=int, min_value=0, max_value=59, required=True)
@lightbulb.option("hours", "Hour in 24H format (0-23)", type=int, min_value=0, max_value=23, required=True)
@lightbulb.command("remove", "Remove an existing check time")
@lightbulb.implements(lightbulb.SlashSubCommand)
async def managecron_remove(ctx: lightbulb.Context) -> None:
    registry = get_service("cron_registry")
    try:
        await registry.remove_schedule(str(ctx.guild_id), ctx.options.hours, ctx.options.minutes)
    except ValidationError as e:
        await ctx.respond(f"Invalid {e.field}: {e.message}")
        return
    except ResourceNotFoundError as e:
        await ctx.respond(f"No check is scheduled at {e.identifier}.")
        return
    await ctx.respond(f"Removed check time {ctx.options.hours:02d}:{ctx.options.minutes:02d}.")


@managecron_group.child
@lightbulb.command("list", "List all scheduled check times")
@lightbulb.implements(lightbulb.SlashSubCommand)
async def managecron_list(ctx: lightbulb.Context) -> None:
    schedules = await get_service("cron_registry").list_schedules(str(ctx.guild_id))
    if not schedules:
        await ctx.respond("No scheduled check times configured.")
        return
    await ctx.respond("Scheduled check times:\n" + "\n".join(schedule.label for schedule in schedules))


@plugin.command
@lightbulb.command("streak", "Check your current daily challenge streak")
@lightbulb.implements(lightbulb.SlashCommand)
async def streak_command(ctx: lightbulb.Context) -> None:
    await defer(ctx)
    streak = await get_service("streak_service").current_streak(str(ctx.author.id), str(ctx.guild_id))
    await ctx.edit_last_response(f"Your current streak is **{streak}** days! Keep it up!")


@plugin.command
@lightbulb.command("leaderboard", "View the daily challenge streak leaderboard for this server")
@lightbulb.implements(lightbulb.SlashCommand)
async def leaderboard_command(ctx: lightbulb.Context) -> None:
    await defer(ctx)
    entries = await get_service("stats_service").leaderboard(str(ctx.guild_id))
    if not entries:
        await ctx.edit_last_response(
            "No leaderboard data available yet. Encourage your server members to participate!"
        )
        return
    lines = [
        f"**#{entry.rank}** {_mention(entry.member_id)} - **{entry.streak}** days"
        for entry in entries
    ]
    await ctx.edit_last_response("🏆 **Leaderboard** 🏆\n" + "\n".join(lines), user_mentions=False)


@plugin.command
@lightbulb.option("period", "Choose the period: weekly or monthly", type=str,
                  choices=["weekly", "monthly"], required=True)
@lightbulb.command("stats", "View your weekly or monthly completion stats")
@lightbulb.implements(lightbulb.SlashCommand)
async def stats_command(ctx: lightbulb.Context) -> None:
    await defer(ctx)
    rate = await get_service("stats_service").completion_rate(
        str(ctx.author.id), str(ctx.guild_id), ctx.options.period
    )
    label = "week" if rate.period.value == "weekly" else "month"
    await ctx.edit_last_response(f"You have completed **{rate.total}** challenges in the past {label}.")


@plugin.command
@lightbulb.command("botinfo", "Display information about the bot")
@lightbulb.implements(lightbulb.SlashCommand)
async def botinfo_command(ctx: lightbulb.Context) -> None:
    await ctx.respond(
        "I track LeetCode Daily Challenge completion for this server.\n"
        "`/setchannel` - Set announcement channel\n"
        "`/adduser` - Track a user\n"
        "`/check` - Manual progress check\n"
        "`/managecron` - Schedule checks\n"
        "`/streak`, `/stats`, `/leaderboard` - Progress"
    )


def _mention(member_id: str) -> str:
    return f"<@{member_id}>" if member_id.isdigit() else member_id


@plugin.set_error_handler
async def on_command_error(event: lightbulb.CommandErrorEvent) -> bool:
    logger.error(f"Error handling {event.context.command.name}: {event.exception}")
    try:
        await event.context.respond("An error occurred while processing your command.")
    except hikari.HTTPError as e:
        logger.error(f"Failed to report command error: {e}")
    return True


def load(bot: lightbulb.BotApp) -> None:
    """Load the leetcode plugin."""
    bot.add_plugin(plugin)


def unload(bot: lightbulb.BotApp) -> None:
    """Unload the leetcode plugin."""
    bot.remove_plugin(plugin)
