"""Tests for the py-cord adapter: notice rendering, inbound conversion and DM refusal."""

import datetime
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from relaycord.bot.cogs.message_listener import MessageListenerCog
from relaycord.bot.discord_platform import DiscordPlatformClient, render_notice, to_inbound_message
from relaycord.datatypes.discord_datatypes import ChannelID, GuildID, UserID
from relaycord.datatypes.moderation_datatypes import ModerationAction, ModerationLogEntry
from relaycord.datatypes.relay_datatypes import RelayOutcome, RelayStatus
from relaycord.relay.platform import DeliveryRefusedError, Notice


def http_response(status: int) -> MagicMock:
    response = MagicMock()
    response.status = status
    response.reason = "Error"
    return response


def make_message(bot_author=False, webhook_id=None, guild=True):
    message = MagicMock()
    message.id = 1
    message.content = "hello"
    message.webhook_id = webhook_id
    message.created_at = datetime.datetime(2026, 1, 1, tzinfo=datetime.timezone.utc)
    message.author.id = 2
    message.author.bot = bot_author
    message.author.name = "learner"
    message.author.display_name = "Learner"
    message.author.avatar.key = "avatarhash"
    message.author.display_avatar.url = "https://cdn.example/avatar.png"
    message.channel.id = 3
    message.channel.name = "english"
    if guild:
        message.guild.id = 4
        message.guild.name = "Immersion Club"
        message.guild.icon.url = "https://cdn.example/icon.png"
    else:
        message.guild = None
    return message


def test_to_inbound_message():
    inbound = to_inbound_message(make_message())

    assert inbound.guild_id == GuildID(4)
    assert inbound.channel_id == ChannelID(3)
    assert inbound.author_id == UserID(2)
    assert inbound.avatar == "avatarhash"
    assert inbound.channel_name == "english"
    assert inbound.guild_name == "Immersion Club"
    assert inbound.is_automated is False


def test_render_notice():
    notice = Notice("Title", "Body", color=0x123456, footer="foot").add_field("Reason", "spam", inline=True)

    embed = render_notice(notice)

    assert embed.title == "Title"
    assert embed.description == "Body"
    assert embed.color.value == 0x123456
    assert embed.fields[0].name == "Reason"
    assert embed.fields[0].inline is True
    assert embed.footer.text == "foot"


class TestSendDirect:

    async def test_forbidden_is_refusal(self):
        user = MagicMock()
        user.send = AsyncMock(side_effect=discord.Forbidden(http_response(403), "Missing Access"))
        bot = MagicMock()
        bot.get_user.return_value = user

        with pytest.raises(DeliveryRefusedError):
            await DiscordPlatformClient(bot).send_direct(UserID(2), Notice("t", "d"))

    async def test_cannot_message_user_code_is_refusal(self):
        error = discord.HTTPException(http_response(400), {"code": 50007, "message": "Cannot send messages to this user"})
        user = MagicMock()
        user.send = AsyncMock(side_effect=error)
        bot = MagicMock()
        bot.get_user.return_value = user

        with pytest.raises(DeliveryRefusedError):
            await DiscordPlatformClient(bot).send_direct(UserID(2), Notice("t", "d"))

    async def test_other_http_errors_propagate(self):
        error = discord.HTTPException(http_response(500), {"code": 0, "message": "Server error"})
        user = MagicMock()
        user.send = AsyncMock(side_effect=error)
        bot = MagicMock()
        bot.get_user.return_value = user

        with pytest.raises(discord.HTTPException):
            await DiscordPlatformClient(bot).send_direct(UserID(2), Notice("t", "d"))


async def test_moderation_log_is_posted_as_embed():
    channel = MagicMock()
    channel.send = AsyncMock()
    bot = MagicMock()
    bot.get_channel.return_value = channel
    entry = ModerationLogEntry(
        guild_id=GuildID(4),
        target_id=UserID(2),
        moderator_id=UserID(9),
        action=ModerationAction.TIMEOUT,
        reason="cool off",
        duration_seconds=3600,
    )

    await DiscordPlatformClient(bot).post_moderation_log(ChannelID(5), entry)

    embed = channel.send.await_args.kwargs["embed"]
    assert embed.title == "Member Timed Out from Immersion"
    assert [field.value for field in embed.fields] == ["<@2>", "<@9>", "1 hour", "cool off"]


class TestMessageListener:

    async def test_relays_member_messages(self):
        pipeline = MagicMock()
        pipeline.handle = AsyncMock(return_value=RelayOutcome(RelayStatus.RELAYED))
        cog = MessageListenerCog(MagicMock(), pipeline)

        await cog.on_message(make_message())

        pipeline.handle.assert_awaited_once()

    @pytest.mark.parametrize("message", [
        make_message(bot_author=True),
        make_message(webhook_id=123),
        make_message(guild=False),
    ])
    async def test_skips_bots_webhooks_and_dms(self, message):
        pipeline = MagicMock()
        pipeline.handle = AsyncMock()
        cog = MessageListenerCog(MagicMock(), pipeline)

        await cog.on_message(message)

        pipeline.handle.assert_not_awaited()

    async def test_pipeline_errors_are_contained(self):
        pipeline = MagicMock()
        pipeline.handle = AsyncMock(side_effect=RuntimeError("db locked"))
        cog = MessageListenerCog(MagicMock(), pipeline)

        await cog.on_message(make_message())
