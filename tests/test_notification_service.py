import logging

import hikari
import pytest

from conftest import DAILY, GUILD_ID, TODAY
from leetstreak.bot.services.exceptions import ConfigMissingError
from leetstreak.bot.services.exceptions import PermissionDeniedError
from leetstreak.bot.services.models import CheckOutcome, MemberStatus, TrackedMember
from leetstreak.bot.services.notification_service import HikariMessageTransport
from leetstreak.bot.services.notification_service import NotificationDispatcher


class FakeTransport:
    def __init__(self, channel_error=None, owner_error=None):
        self.channel_error = channel_error
        self.owner_error = owner_error
        self.channel_messages = []
        self.owner_messages = []

    async def send_channel_message(self, channel_id, content):
        if self.channel_error is not None:
            raise self.channel_error
        self.channel_messages.append((channel_id, content))

    async def send_owner_message(self, guild_id, content):
        if self.owner_error is not None:
            raise self.owner_error
        self.owner_messages.append((guild_id, content))


def outcome_with(*members, channel_id="222"):
    return CheckOutcome(
        guild_id=GUILD_ID,
        channel_id=channel_id,
        problem=DAILY,
        day=TODAY,
        incomplete=[MemberStatus(member=member, completed=False) for member in members],
    )


async def test_reminder_mentions_incomplete_members():
    transport = FakeTransport()
    dispatcher = NotificationDispatcher(transport)

    sent = await dispatcher.notify_incomplete(
        outcome_with(TrackedMember("alice", "42"), TrackedMember("bob"))
    )

    assert sent
    channel_id, content = transport.channel_messages[0]
    assert channel_id == "222"
    assert "<@42>" in content
    assert "bob" in content
    assert "Daily Challenge" in content


@pytest.mark.parametrize("outcome", [
    outcome_with(),
    outcome_with(TrackedMember("alice"), channel_id=None),
])
async def test_nothing_to_send(outcome):
    transport = FakeTransport()

    assert not await NotificationDispatcher(transport).notify_incomplete(outcome)
    assert transport.channel_messages == []


async def test_permission_error_messages_the_owner():
    transport = FakeTransport(channel_error=PermissionDeniedError("222"))

    sent = await NotificationDispatcher(transport).notify_incomplete(outcome_with(TrackedMember("alice")))

    assert not sent
    guild_id, content = transport.owner_messages[0]
    assert guild_id == GUILD_ID
    assert "<#222>" in content


async def test_owner_message_failure_is_not_raised():
    transport = FakeTransport(
        channel_error=PermissionDeniedError("222"),
        owner_error=RuntimeError("DMs closed"),
    )

    assert not await NotificationDispatcher(transport).notify_incomplete(outcome_with(TrackedMember("alice")))


async def test_other_delivery_errors_are_not_raised():
    transport = FakeTransport(channel_error=RuntimeError("gateway hiccup"))

    assert not await NotificationDispatcher(transport).notify_incomplete(outcome_with(TrackedMember("alice")))
    assert transport.owner_messages == []


async def test_missing_channel_is_logged_without_messaging_the_owner(caplog):
    transport = FakeTransport(channel_error=ConfigMissingError(channel_id="222"))

    with caplog.at_level(logging.ERROR, logger="leetstreak.bot.services.notification_service"):
        sent = await NotificationDispatcher(transport).notify_incomplete(outcome_with(TrackedMember("alice")))

    assert not sent
    assert transport.owner_messages == []
    assert "/setchannel" in caplog.text


class FakeRest:
    def __init__(self, error):
        self.error = error

    async def create_message(self, channel, content, **kwargs):
        raise self.error


class FakeBot:
    def __init__(self, error):
        self.rest = FakeRest(error)


@pytest.mark.parametrize("error, expected", [
    (hikari.ForbiddenError(url="https://discord.test", headers={}, raw_body=b""), PermissionDeniedError),
    (hikari.NotFoundError(url="https://discord.test", headers={}, raw_body=b""), ConfigMissingError),
])
async def test_transport_classifies_rest_errors(error, expected):
    transport = HikariMessageTransport(FakeBot(error))

    with pytest.raises(expected) as exc_info:
        await transport.send_channel_message("222", "hello")

    assert exc_info.value.channel_id == "222"
