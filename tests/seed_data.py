"""Helpers that insert guilds and members straight through the repositories."""

import datetime

from relaycord.database.db_connection import ConnectionManager
from relaycord.datatypes.discord_datatypes import ChannelID, GuildID, UserID
from relaycord.datatypes.relay_datatypes import TenantConfig, TenantLanguageChannel
from relaycord.repositories.guild_config_repo import GuildConfigRepository
from relaycord.repositories.verified_user_repo import VerifiedUserRepository
from relaycord.util.time_utils import month_start, utcnow


async def seed_tenant(
    manager: ConnectionManager,
    guild_id: int,
    channels: dict | None = None,
    tier: str = "free",
    monthly_usage: int = 0,
    reset_date: datetime.date | None = None,
    enabled_languages: list | None = None,
) -> None:
    """Insert a guild with ``{language_code: channel_id}`` channels, each with a webhook."""
    config = TenantConfig(
        guild_id=GuildID(guild_id),
        subscription_tier=tier,
        monthly_usage=monthly_usage,
        usage_reset_date=reset_date or month_start(utcnow()),
        enabled_languages=list(enabled_languages or []),
    )
    async with manager.transaction() as conn:
        await GuildConfigRepository.upsert(conn, config)
        for code, channel_id in (channels or {}).items():
            await GuildConfigRepository.upsert_language_channel(
                conn,
                config.guild_id,
                TenantLanguageChannel(
                    language_code=code,
                    channel_id=ChannelID(channel_id),
                    webhook_id=f"hook-{code}",
                    webhook_token=f"token-{code}",
                ),
            )


async def seed_member(
    manager: ConnectionManager,
    guild_id: int,
    user_id: int,
    reset_date: datetime.date | None = None,
    monthly_usage: int = 0,
) -> None:
    async with manager.transaction() as conn:
        await VerifiedUserRepository.create(
            conn, GuildID(guild_id), UserID(user_id), reset_date or month_start(utcnow())
        )
        if monthly_usage:
            await conn.execute(
                "UPDATE verified_users SET monthly_usage = ? WHERE guild_id = ? AND user_id = ?",
                (monthly_usage, guild_id, user_id),
            )
