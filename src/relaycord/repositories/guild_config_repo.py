"""
Repository for the ``guild_configs`` and ``guild_language_channels`` tables.

A guild's relay configuration is one core row plus one row per language
channel. ``get`` assembles both into a :class:`TenantConfig`.
"""

from __future__ import annotations

import datetime
import json
from typing import Dict, List

import aiosqlite

from relaycord.datatypes.discord_datatypes import ChannelID, GuildID
from relaycord.datatypes.relay_datatypes import TenantConfig, TenantLanguageChannel
from relaycord.util.logger import get_logger
from relaycord.util.time_utils import date_from_text, date_to_text, month_start, utcnow

logger = get_logger("guild_config_repo")


def _load_language_list(raw: str | None) -> List[str]:
    try:
        value = json.loads(raw or "[]")
    except (TypeError, ValueError):
        logger.warning("Ignoring malformed enabled_languages value %r", raw)
        return []
    return [str(code) for code in value] if isinstance(value, list) else []


class GuildConfigRepository:
    """CRUD for guild relay configuration."""

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    async def get(conn: aiosqlite.Connection, guild_id: GuildID) -> TenantConfig | None:
        """Fetch a guild's configuration with its language channel rows."""
        async with conn.execute(
            """
            SELECT guild_id, subscription_tier, monthly_usage, usage_reset_date,
                   enabled_languages, mod_log_channel_id
            FROM guild_configs
            WHERE guild_id = ?
            """,
            (int(guild_id),),
        ) as cursor:
            row = await cursor.fetchone()

        if row is None:
            return None

        channels = await GuildConfigRepository.get_language_channels(conn, guild_id)
        return TenantConfig(
            guild_id=GuildID(row[0]),
            subscription_tier=row[1] or "free",
            monthly_usage=int(row[2]),
            usage_reset_date=date_from_text(row[3]) or month_start(utcnow()),
            enabled_languages=_load_language_list(row[4]),
            mod_log_channel_id=ChannelID(row[5]) if row[5] is not None else None,
            channels=channels,
        )

    @staticmethod
    async def get_language_channels(
        conn: aiosqlite.Connection, guild_id: GuildID
    ) -> Dict[str, TenantLanguageChannel]:
        async with conn.execute(
            """
            SELECT language_code, channel_id, webhook_id, webhook_token
            FROM guild_language_channels
            WHERE guild_id = ?
            """,
            (int(guild_id),),
        ) as cursor:
            rows = await cursor.fetchall()

        return {
            row[0]: TenantLanguageChannel(
                language_code=row[0],
                channel_id=ChannelID(row[1]) if row[1] is not None else None,
                webhook_id=row[2],
                webhook_token=row[3],
            )
            for row in rows
        }

    @staticmethod
    async def get_mod_log_channel(conn: aiosqlite.Connection, guild_id: GuildID) -> ChannelID | None:
        async with conn.execute(
            "SELECT mod_log_channel_id FROM guild_configs WHERE guild_id = ?",
            (int(guild_id),),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None or row[0] is None:
            return None
        return ChannelID(row[0])

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    async def upsert(conn: aiosqlite.Connection, config: TenantConfig) -> None:
        """Insert or update the core row (usage counters included)."""
        await conn.execute(
            """
            INSERT INTO guild_configs (
                guild_id, subscription_tier, monthly_usage, usage_reset_date,
                enabled_languages, mod_log_channel_id
            ) VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(guild_id) DO UPDATE SET
                subscription_tier  = excluded.subscription_tier,
                monthly_usage      = excluded.monthly_usage,
                usage_reset_date   = excluded.usage_reset_date,
                enabled_languages  = excluded.enabled_languages,
                mod_log_channel_id = excluded.mod_log_channel_id
            """,
            (
                int(config.guild_id),
                config.subscription_tier,
                config.monthly_usage,
                date_to_text(config.usage_reset_date),
                json.dumps(list(config.enabled_languages)),
                int(config.mod_log_channel_id) if config.mod_log_channel_id is not None else None,
            ),
        )

    @staticmethod
    async def upsert_language_channel(
        conn: aiosqlite.Connection, guild_id: GuildID, channel: TenantLanguageChannel
    ) -> None:
        await conn.execute(
            """
            INSERT INTO guild_language_channels (guild_id, language_code, channel_id, webhook_id, webhook_token)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(guild_id, language_code) DO UPDATE SET
                channel_id    = excluded.channel_id,
                webhook_id    = excluded.webhook_id,
                webhook_token = excluded.webhook_token
            """,
            (
                int(guild_id),
                channel.language_code,
                int(channel.channel_id) if channel.channel_id is not None else None,
                channel.webhook_id,
                channel.webhook_token,
            ),
        )

    @staticmethod
    async def set_enabled_languages(conn: aiosqlite.Connection, guild_id: GuildID, languages: List[str]) -> None:
        await conn.execute(
            "UPDATE guild_configs SET enabled_languages = ? WHERE guild_id = ?",
            (json.dumps(list(languages)), int(guild_id)),
        )

    @staticmethod
    async def set_subscription_tier(conn: aiosqlite.Connection, guild_id: GuildID, tier: str) -> None:
        await conn.execute(
            "UPDATE guild_configs SET subscription_tier = ? WHERE guild_id = ?",
            (tier, int(guild_id)),
        )

    @staticmethod
    async def set_mod_log_channel(
        conn: aiosqlite.Connection, guild_id: GuildID, channel_id: ChannelID | None
    ) -> None:
        await conn.execute(
            "UPDATE guild_configs SET mod_log_channel_id = ? WHERE guild_id = ?",
            (int(channel_id) if channel_id is not None else None, int(guild_id)),
        )

    @staticmethod
    async def reset_usage(conn: aiosqlite.Connection, guild_id: GuildID, reset_date: datetime.date) -> bool:
        """
        Zero the monthly counter unless it was already reset for ``reset_date``.

        The date guard makes a rollover idempotent when two events race past
        the month boundary. Returns True when a row was reset.
        """
        cursor = await conn.execute(
            """
            UPDATE guild_configs
            SET monthly_usage = 0, usage_reset_date = ?
            WHERE guild_id = ? AND usage_reset_date < ?
            """,
            (date_to_text(reset_date), int(guild_id), date_to_text(reset_date)),
        )
        return cursor.rowcount > 0

    @staticmethod
    async def increment_usage(conn: aiosqlite.Connection, guild_id: GuildID, amount: int) -> None:
        await conn.execute(
            "UPDATE guild_configs SET monthly_usage = monthly_usage + ? WHERE guild_id = ?",
            (amount, int(guild_id)),
        )
