"""
py-cord implementation of the relay ``PlatformClient``.

Renders ``Notice`` values as embeds, converts ``discord.Message`` objects
into ``InboundMessage`` values and maps Discord's refusal to deliver a DM
onto ``DeliveryRefusedError``.
"""

from __future__ import annotations

import discord

from relaycord.datatypes.discord_datatypes import ChannelID, GuildID, MessageID, UserID
from relaycord.datatypes.moderation_datatypes import ModerationLogEntry
from relaycord.datatypes.relay_datatypes import DeliveryCredential, InboundMessage
from relaycord.relay import notices
from relaycord.relay.platform import DeliveryRefusedError, Notice, PlatformClient
from relaycord.util.logger import get_logger

logger = get_logger("discord_platform")

WEBHOOK_NAME = "Language Immersion"
WEBHOOK_REASON = "Created for language immersion translations"

# "Cannot send messages to this user"
CANNOT_MESSAGE_USER = 50007


def to_inbound_message(message: discord.Message) -> InboundMessage:
    """Platform-neutral view of a gateway message."""
    author = message.author
    guild = message.guild
    avatar = getattr(author, "avatar", None)
    return InboundMessage(
        message_id=MessageID.from_message(message),
        guild_id=GuildID.from_guild(guild) if guild is not None else None,
        channel_id=ChannelID.from_channel(message.channel),
        author_id=UserID.from_user(author),
        content=message.content or "",
        username=author.name,
        display_name=author.display_name,
        avatar=avatar.key if avatar is not None else None,
        avatar_url=author.display_avatar.url,
        channel_name=getattr(message.channel, "name", "") or "",
        guild_name=guild.name if guild is not None else "",
        guild_icon_url=guild.icon.url if guild is not None and guild.icon is not None else None,
        created_at=message.created_at,
        is_automated=author.bot or message.webhook_id is not None,
        raw=message,
    )


def render_notice(notice: Notice) -> discord.Embed:
    embed = discord.Embed(
        title=notice.title,
        description=notice.description or None,
        color=notice.color,
        timestamp=discord.utils.utcnow() if notice.with_timestamp else None,
    )
    for field in notice.fields:
        embed.add_field(name=field.name, value=field.value, inline=field.inline)
    if notice.footer:
        embed.set_footer(text=notice.footer, icon_url=notice.footer_icon_url)
    if notice.thumbnail_url:
        embed.set_thumbnail(url=notice.thumbnail_url)
    return embed


class DiscordPlatformClient(PlatformClient):
    def __init__(self, bot: discord.Bot) -> None:
        self.bot = bot

    async def _resolve_channel(self, channel_id: ChannelID) -> discord.abc.Messageable:
        channel = self.bot.get_channel(int(channel_id))
        if channel is None:
            channel = await self.bot.fetch_channel(int(channel_id))
        return channel

    async def delete_message(self, message: InboundMessage) -> None:
        raw: discord.Message | None = message.raw
        if raw is None:
            channel = await self._resolve_channel(message.channel_id)
            raw = await channel.fetch_message(int(message.message_id))
        try:
            await raw.delete()
        except discord.NotFound:
            pass
        except discord.Forbidden:
            logger.warning("[DISCORD] No permission to delete message %s", message.message_id)

    async def send_direct(self, user_id: UserID, notice: Notice) -> None:
        user = self.bot.get_user(int(user_id))
        try:
            if user is None:
                user = await self.bot.fetch_user(int(user_id))
            await user.send(embed=render_notice(notice))
        except discord.Forbidden as exc:
            raise DeliveryRefusedError(f"User {user_id} does not accept direct messages") from exc
        except discord.HTTPException as exc:
            if exc.code == CANNOT_MESSAGE_USER:
                raise DeliveryRefusedError(f"User {user_id} does not accept direct messages") from exc
            raise

    async def send_ephemeral_notice(
        self, channel_id: ChannelID, user_id: UserID, notice: Notice, delete_after: float
    ) -> None:
        channel = await self._resolve_channel(channel_id)
        await channel.send(content=f"<@{user_id}>", embed=render_notice(notice), delete_after=delete_after)

    async def add_reaction(self, message: InboundMessage, emoji: str) -> None:
        raw: discord.Message | None = message.raw
        if raw is None:
            channel = await self._resolve_channel(message.channel_id)
            raw = await channel.fetch_message(int(message.message_id))
        await raw.add_reaction(emoji)

    async def send_to_channel(self, channel_id: ChannelID, notice: Notice) -> None:
        channel = await self._resolve_channel(channel_id)
        await channel.send(embed=render_notice(notice))

    async def create_delivery_credential(self, channel_id: ChannelID) -> DeliveryCredential:
        channel = await self._resolve_channel(channel_id)
        if not isinstance(channel, discord.TextChannel):
            raise ValueError(f"Channel {channel_id} is not a text channel")
        webhook = await channel.create_webhook(name=WEBHOOK_NAME, reason=WEBHOOK_REASON)
        logger.info("[DISCORD] Created webhook %s in #%s", webhook.id, channel.name)
        return DeliveryCredential(id=str(webhook.id), token=webhook.token)

    async def post_moderation_log(self, channel_id: ChannelID, entry: ModerationLogEntry) -> None:
        """Notifier for ``ModerationStore``: posts the audit embed to the mod-log channel."""
        await self.send_to_channel(channel_id, notices.moderation_log(entry))
