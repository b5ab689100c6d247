"""
TenantSettingsService: administrative changes to a guild's relay setup.

Responsibilities:
- Bind a language to a channel and provision its webhook
- Replace a webhook that Discord reports as deleted
- Enabled languages and subscription tiers
- Member verification and the immersion opt-out

Per-guild async locks serialize configuration changes of one guild while
different guilds proceed concurrently. All SQL lives in the repositories.
"""

from __future__ import annotations

import asyncio
from typing import Dict, List

from relaycord.configuration.languages import LANGUAGE_CODES, get_language
from relaycord.configuration.subscriptions import GUILD_TIERS, USER_TIERS
from relaycord.database.db_connection import ConnectionManager, db_connection
from relaycord.datatypes.discord_datatypes import ChannelID, GuildID, UserID
from relaycord.datatypes.relay_datatypes import TenantConfig, TenantLanguageChannel, UserTenantLink
from relaycord.delivery.delivery_cache import DeliveryCache
from relaycord.relay.platform import PlatformClient
from relaycord.repositories.global_user_repo import GlobalUserRepository
from relaycord.repositories.guild_config_repo import GuildConfigRepository
from relaycord.repositories.verified_user_repo import VerifiedUserRepository
from relaycord.util.logger import get_logger
from relaycord.util.time_utils import month_start, utcnow

logger = get_logger("tenant_settings_service")


class TenantSettingsService:
    def __init__(
        self,
        platform: PlatformClient,
        delivery_cache: DeliveryCache | None = None,
        connection_manager: ConnectionManager | None = None,
    ) -> None:
        self._platform = platform
        self._delivery_cache = delivery_cache
        self._db = connection_manager or db_connection
        self._per_guild_locks: Dict[int, asyncio.Lock] = {}

    def _lock_for(self, guild_id: GuildID) -> asyncio.Lock:
        gid = int(guild_id)
        if gid not in self._per_guild_locks:
            self._per_guild_locks[gid] = asyncio.Lock()
        return self._per_guild_locks[gid]

    async def _ensure_config(self, conn, guild_id: GuildID) -> TenantConfig:
        config = await GuildConfigRepository.get(conn, guild_id)
        if config is None:
            config = TenantConfig(guild_id=guild_id, usage_reset_date=month_start(utcnow()))
            await GuildConfigRepository.upsert(conn, config)
            logger.info("[TENANT SETTINGS] Created configuration for guild %s", guild_id)
        return config

    async def get_config(self, guild_id: GuildID) -> TenantConfig | None:
        async with self._db.read() as conn:
            return await GuildConfigRepository.get(conn, guild_id)

    # ------------------------------------------------------------------
    # Language channels
    # ------------------------------------------------------------------

    async def configure_language_channel(
        self, guild_id: GuildID, language_code: str, channel_id: ChannelID
    ) -> TenantLanguageChannel:
        """Bind ``language_code`` to ``channel_id`` with a freshly created webhook."""
        if get_language(language_code) is None:
            raise ValueError(f"Unknown language code: {language_code}")

        async with self._lock_for(guild_id):
            credential = await self._platform.create_delivery_credential(channel_id)
            channel = TenantLanguageChannel(
                language_code=language_code,
                channel_id=channel_id,
                webhook_id=credential.id,
                webhook_token=credential.token,
            )
            async with self._db.transaction() as conn:
                previous = (await self._ensure_config(conn, guild_id)).channels.get(language_code)
                await GuildConfigRepository.upsert_language_channel(conn, guild_id, channel)

        await self._evict_credential(previous)
        logger.info("[TENANT SETTINGS] %s channel of guild %s set to %s", language_code, guild_id, channel_id)
        return channel

    async def reprovision_credential(self, guild_id: GuildID, language_code: str) -> TenantLanguageChannel:
        """
        Create a new webhook for an already configured language channel.

        Raises:
            LookupError: The language has no channel in this guild.
        """
        async with self._lock_for(guild_id):
            async with self._db.read() as conn:
                config = await GuildConfigRepository.get(conn, guild_id)
            previous = config.channels.get(language_code) if config else None
            if previous is None or previous.channel_id is None:
                raise LookupError(f"No {language_code} channel configured for guild {guild_id}")

            credential = await self._platform.create_delivery_credential(previous.channel_id)
            channel = TenantLanguageChannel(
                language_code=language_code,
                channel_id=previous.channel_id,
                webhook_id=credential.id,
                webhook_token=credential.token,
            )
            async with self._db.transaction() as conn:
                await GuildConfigRepository.upsert_language_channel(conn, guild_id, channel)

        await self._evict_credential(previous)
        logger.info("[TENANT SETTINGS] Reprovisioned %s webhook for guild %s", language_code, guild_id)
        return channel

    async def _evict_credential(self, channel: TenantLanguageChannel | None) -> None:
        if self._delivery_cache is None or channel is None or channel.credential is None:
            return
        await self._delivery_cache.evict(channel.credential)

    # ------------------------------------------------------------------
    # Plan and languages
    # ------------------------------------------------------------------

    async def set_enabled_languages(self, guild_id: GuildID, languages: List[str]) -> List[str]:
        """Restrict relaying to ``languages``; an empty list enables every language."""
        unknown = [code for code in languages if get_language(code) is None]
        if unknown:
            raise ValueError(f"Unknown language code(s): {', '.join(unknown)}")
        ordered = [code for code in LANGUAGE_CODES if code in set(languages)]

        async with self._lock_for(guild_id):
            async with self._db.transaction() as conn:
                await self._ensure_config(conn, guild_id)
                await GuildConfigRepository.set_enabled_languages(conn, guild_id, ordered)
        return ordered

    async def set_subscription_tier(self, guild_id: GuildID, tier: str) -> None:
        if tier not in GUILD_TIERS:
            raise ValueError(f"Unknown guild tier: {tier}")
        async with self._lock_for(guild_id):
            async with self._db.transaction() as conn:
                await self._ensure_config(conn, guild_id)
                await GuildConfigRepository.set_subscription_tier(conn, guild_id, tier)
        logger.info("[TENANT SETTINGS] Guild %s moved to %s tier", guild_id, tier)

    async def set_user_subscription_tier(self, user_id: UserID, tier: str, username: str = "") -> None:
        if tier not in USER_TIERS:
            raise ValueError(f"Unknown user tier: {tier}")
        async with self._db.transaction() as conn:
            await GlobalUserRepository.create(conn, user_id, username, None)
            await GlobalUserRepository.set_subscription_tier(conn, user_id, tier)

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    async def verify_user(self, guild_id: GuildID, user_id: UserID) -> UserTenantLink:
        """Mark a member as verified. Verifying twice keeps the existing record."""
        async with self._db.transaction() as conn:
            await self._ensure_config(conn, guild_id)
            await VerifiedUserRepository.create(conn, guild_id, user_id, month_start(utcnow()))
            link = await VerifiedUserRepository.get(conn, guild_id, user_id)
        logger.debug("[TENANT SETTINGS] Verified user %s in guild %s", user_id, guild_id)
        return link

    async def set_immersion_enabled(self, guild_id: GuildID, user_id: UserID, enabled: bool) -> bool:
        """Returns False when the member is not verified in the guild."""
        async with self._db.transaction() as conn:
            return await VerifiedUserRepository.set_immersion_enabled(conn, guild_id, user_id, enabled)
