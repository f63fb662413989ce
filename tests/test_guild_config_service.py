import pytest

from conftest import GUILD_ID
from leetstreak.bot.services.exceptions import DuplicateResourceError
from leetstreak.bot.services.exceptions import ResourceNotFoundError
from leetstreak.bot.services.exceptions import ValidationError
from leetstreak.bot.services.guild_config_service import GuildConfigService
from leetstreak.bot.services.models import TrackedMember
from leetstreak.web.crud import GuildConfigOperations


@pytest.fixture
def guilds(session_factory):
    return GuildConfigService(session_factory)


async def test_add_and_list_users(guilds):
    await guilds.add_user(GUILD_ID, "  bob ")
    await guilds.add_user(GUILD_ID, "alice", member_id="42")

    assert await guilds.list_users(GUILD_ID) == [
        TrackedMember("alice", "42"),
        TrackedMember("bob"),
    ]


async def test_duplicate_user_is_rejected(guilds):
    await guilds.add_user(GUILD_ID, "alice")

    with pytest.raises(DuplicateResourceError):
        await guilds.add_user(GUILD_ID, "alice")


async def test_same_user_in_two_guilds(guilds):
    await guilds.add_user(GUILD_ID, "alice")
    await guilds.add_user("999", "alice")

    assert [member.username for member in await guilds.list_users("999")] == ["alice"]


async def test_blank_username_is_rejected(guilds):
    with pytest.raises(ValidationError):
        await guilds.add_user(GUILD_ID, "   ")


async def test_remove_user(guilds):
    await guilds.add_user(GUILD_ID, "alice")
    await guilds.add_user(GUILD_ID, "bob")

    await guilds.remove_user(GUILD_ID, "alice")

    assert await guilds.list_users(GUILD_ID) == [TrackedMember("bob")]


async def test_removing_untracked_user_raises(guilds):
    with pytest.raises(ResourceNotFoundError):
        await guilds.remove_user(GUILD_ID, "ghost")


async def test_set_channel_creates_and_updates_config(guilds, session_factory):
    await guilds.set_channel(GUILD_ID, "222")
    await guilds.set_channel(GUILD_ID, "333")

    async with session_factory() as session:
        config = await GuildConfigOperations(session).get_config(GUILD_ID)

    assert config.channel_id == "333"
