"""Message listener Cog for Relaycord.

Feeds every new guild message into the relay pipeline.
"""

import discord
from discord.ext import commands

from relaycord.bot.discord_platform import to_inbound_message
from relaycord.datatypes.relay_datatypes import RelayStatus
from relaycord.relay.relay_pipeline import RelayPipeline
from relaycord.util.logger import get_logger

logger = get_logger("message_listener_cog")


class MessageListenerCog(commands.Cog):
    """Cog responsible for relaying messages posted in language channels."""

    def __init__(self, discord_bot_instance, pipeline: RelayPipeline):
        self.bot = discord_bot_instance
        self.pipeline = pipeline
        logger.info("[MESSAGE LISTENER] Message listener cog loaded")

    @commands.Cog.listener(name='on_message')
    async def on_message(self, message: discord.Message):
        """Relay the message; one failing event never stops the listener."""
        if message.author.bot or message.webhook_id is not None or message.guild is None:
            return

        try:
            outcome = await self.pipeline.handle(to_inbound_message(message))
        except Exception:
            logger.exception("[MESSAGE LISTENER] Error handling message %s", message.id)
            return

        if outcome.status is RelayStatus.RELAYED:
            logger.debug(
                "[MESSAGE LISTENER] Relayed %s (%d chars): delivered=%s failed=%s revoked=%s skipped=%s",
                message.id,
                outcome.character_cost,
                outcome.delivered,
                outcome.failed,
                outcome.revoked,
                outcome.skipped,
            )


def setup(discord_bot_instance, pipeline: RelayPipeline):
    """Register the MessageListenerCog with the bot."""
    discord_bot_instance.add_cog(MessageListenerCog(discord_bot_instance, pipeline))
