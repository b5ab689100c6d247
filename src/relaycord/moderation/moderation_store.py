"""
ModerationStore: immersion bans, timeouts and warnings for guild members.

Per (guild, member) the state machine is Unbanned -> Banned -> Unbanned, with
an independent count of active warnings.

Ban expiry is lazy: every read of a member's ban state first deactivates the
member's bans whose ``expires_at`` has passed, so a ban is never reported as
active past its expiry even though no timer ever fires.

Every state change writes a ``ModerationLogEntry`` in the same transaction and
is then announced to the guild's mod-log channel through an optional notifier.
Notifier failures are logged and never undo the state change.
"""

from __future__ import annotations

import datetime
import json
import math
import re
from typing import Awaitable, Callable, List, Optional

from relaycord.database.db_connection import ConnectionManager, db_connection
from relaycord.datatypes.discord_datatypes import ChannelID, GuildID, UserID
from relaycord.datatypes.moderation_datatypes import (
    BanResult,
    BanStatus,
    ClearWarningsResult,
    ModerationAction,
    ModerationBan,
    ModerationHistory,
    ModerationLogEntry,
    ModerationWarning,
    Page,
    RemoveWarningResult,
    UnbanResult,
    WarnResult,
)
from relaycord.datatypes.relay_datatypes import TenantConfig
from relaycord.repositories.guild_config_repo import GuildConfigRepository
from relaycord.repositories.immersion_ban_repo import ImmersionBanRepository
from relaycord.repositories.immersion_warning_repo import ImmersionWarningRepository
from relaycord.repositories.moderation_log_repo import ModerationLogRepository
from relaycord.util.logger import get_logger
from relaycord.util.time_utils import utcnow

logger = get_logger("moderation_store")

ModerationNotifier = Callable[[ChannelID, ModerationLogEntry], Awaitable[None]]

HISTORY_BAN_LIMIT = 20
HISTORY_WARNING_LIMIT = 20
HISTORY_LOG_LIMIT = 50

_DURATION_PATTERN = re.compile(r"^(\d+)\s*(s|m|h|d|w)$", re.IGNORECASE)
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400, "w": 604800}


def parse_duration(value: str) -> int | None:
    """Parse ``"45s"``, ``"30m"``, ``"12h"``, ``"1d"`` or ``"2w"`` into seconds; None if malformed."""
    match = _DURATION_PATTERN.match(value.strip())
    if not match:
        return None
    return int(match.group(1)) * _UNIT_SECONDS[match.group(2).lower()]


def format_duration(seconds: int) -> str:
    """Render a duration in its largest whole unit, e.g. ``"2 hours"``."""
    def plural(amount: int, unit: str) -> str:
        return f"{amount} {unit}{'' if amount == 1 else 's'}"

    if seconds < 60:
        return plural(seconds, "second")
    if seconds < 3600:
        return plural(seconds // 60, "minute")
    if seconds < 86400:
        return plural(seconds // 3600, "hour")
    return plural(seconds // 86400, "day")


class ModerationStore:
    """Ban and warning lifecycle backed by the ``immersion_*`` tables."""

    def __init__(
        self,
        connection_manager: ConnectionManager | None = None,
        notifier: Optional[ModerationNotifier] = None,
        clock: Callable[[], datetime.datetime] = utcnow,
    ) -> None:
        self._db = connection_manager or db_connection
        self._notifier = notifier
        self._clock = clock

    def set_notifier(self, notifier: Optional[ModerationNotifier]) -> None:
        self._notifier = notifier

    # ------------------------------------------------------------------
    # Ban queries
    # ------------------------------------------------------------------

    async def get_active_ban(self, guild_id: GuildID, user_id: UserID) -> ModerationBan | None:
        """Expire the member's outdated bans, then return the remaining active one."""
        async with self._db.transaction() as conn:
            expired = await ImmersionBanRepository.expire_outdated(conn, guild_id, self._clock(), user_id)
            ban = await ImmersionBanRepository.get_active(conn, guild_id, user_id)

        if expired:
            logger.debug("[MODERATION] Expired %d ban(s) for user %s in guild %s", expired, user_id, guild_id)
        return ban

    async def is_banned(self, guild_id: GuildID, user_id: UserID) -> bool:
        return await self.get_active_ban(guild_id, user_id) is not None

    async def get_ban_status(self, guild_id: GuildID, user_id: UserID) -> BanStatus:
        ban = await self.get_active_ban(guild_id, user_id)
        if ban is None:
            return BanStatus(is_banned=False)
        return BanStatus(
            is_banned=True,
            reason=ban.reason,
            banned_at=ban.banned_at,
            expires_at=ban.expires_at,
            banned_by=ban.banned_by,
        )

    # ------------------------------------------------------------------
    # Ban lifecycle
    # ------------------------------------------------------------------

    async def ban(
        self,
        guild_id: GuildID,
        user_id: UserID,
        moderator_id: UserID,
        reason: str | None = None,
        duration_seconds: int | None = None,
        action: ModerationAction = ModerationAction.BAN,
    ) -> BanResult:
        """
        Ban a member from immersion; ``duration_seconds=None`` is permanent.

        Fails when the member already has an active ban.
        """
        now = self._clock()
        expires_at = now + datetime.timedelta(seconds=duration_seconds) if duration_seconds else None

        try:
            async with self._db.transaction() as conn:
                await ImmersionBanRepository.expire_outdated(conn, guild_id, now, user_id)
                if await ImmersionBanRepository.get_active(conn, guild_id, user_id) is not None:
                    return BanResult(success=False, error="User is already banned from immersion")

                ban_id = await ImmersionBanRepository.create(
                    conn, guild_id, user_id, moderator_id, reason, now, expires_at
                )
                entry = ModerationLogEntry(
                    guild_id=guild_id,
                    target_id=user_id,
                    moderator_id=moderator_id,
                    action=action,
                    reason=reason,
                    duration_seconds=duration_seconds or None,
                    created_at=now,
                )
                entry.id = await ModerationLogRepository.insert(conn, entry)
                log_channel = await GuildConfigRepository.get_mod_log_channel(conn, guild_id)
        except Exception:
            logger.exception("[MODERATION] Failed to ban user %s in guild %s", user_id, guild_id)
            return BanResult(success=False, error="Failed to ban user")

        logger.info(
            "[MODERATION] %s user %s in guild %s (%s)",
            "Timed out" if action is ModerationAction.TIMEOUT else "Banned",
            user_id,
            guild_id,
            format_duration(duration_seconds) if duration_seconds else "permanent",
        )
        await self._notify(log_channel, entry)

        ban = ModerationBan(
            id=ban_id,
            guild_id=guild_id,
            user_id=user_id,
            reason=reason,
            banned_by=moderator_id,
            banned_at=now,
            expires_at=expires_at,
        )
        return BanResult(success=True, ban=ban)

    async def timeout(
        self,
        guild_id: GuildID,
        user_id: UserID,
        moderator_id: UserID,
        duration_seconds: int,
        reason: str | None = None,
    ) -> BanResult:
        """A ban that always expires."""
        if duration_seconds <= 0:
            return BanResult(success=False, error="Timeout duration must be positive")
        return await self.ban(
            guild_id, user_id, moderator_id, reason, duration_seconds, action=ModerationAction.TIMEOUT
        )

    async def unban(
        self,
        guild_id: GuildID,
        user_id: UserID,
        moderator_id: UserID,
        reason: str | None = None,
    ) -> UnbanResult:
        now = self._clock()
        try:
            async with self._db.transaction() as conn:
                await ImmersionBanRepository.expire_outdated(conn, guild_id, now, user_id)
                ban = await ImmersionBanRepository.get_active(conn, guild_id, user_id)
                if ban is None:
                    return UnbanResult(success=False, error="User is not banned from immersion")

                await ImmersionBanRepository.deactivate(conn, ban.id, moderator_id, now, reason)
                entry = ModerationLogEntry(
                    guild_id=guild_id,
                    target_id=user_id,
                    moderator_id=moderator_id,
                    action=ModerationAction.UNBAN,
                    reason=reason,
                    created_at=now,
                )
                entry.id = await ModerationLogRepository.insert(conn, entry)
                log_channel = await GuildConfigRepository.get_mod_log_channel(conn, guild_id)
        except Exception:
            logger.exception("[MODERATION] Failed to unban user %s in guild %s", user_id, guild_id)
            return UnbanResult(success=False, error="Failed to unban user")

        logger.info("[MODERATION] Unbanned user %s in guild %s", user_id, guild_id)
        await self._notify(log_channel, entry)
        return UnbanResult(success=True)

    # ------------------------------------------------------------------
    # Warnings
    # ------------------------------------------------------------------

    async def warn(
        self,
        guild_id: GuildID,
        user_id: UserID,
        moderator_id: UserID,
        reason: str,
    ) -> WarnResult:
        """Add a warning and return the member's new active warning count."""
        now = self._clock()
        try:
            async with self._db.transaction() as conn:
                await ImmersionWarningRepository.create(conn, guild_id, user_id, moderator_id, reason, now)
                entry = ModerationLogEntry(
                    guild_id=guild_id,
                    target_id=user_id,
                    moderator_id=moderator_id,
                    action=ModerationAction.WARN,
                    reason=reason,
                    created_at=now,
                )
                entry.id = await ModerationLogRepository.insert(conn, entry)
                count = await ImmersionWarningRepository.count_active(conn, guild_id, user_id)
                log_channel = await GuildConfigRepository.get_mod_log_channel(conn, guild_id)
        except Exception:
            logger.exception("[MODERATION] Failed to warn user %s in guild %s", user_id, guild_id)
            return WarnResult(success=False, error="Failed to warn user")

        logger.info("[MODERATION] Warned user %s in guild %s (%d active)", user_id, guild_id, count)
        await self._notify(log_channel, entry)
        return WarnResult(success=True, warning_count=count)

    async def get_warnings(self, guild_id: GuildID, user_id: UserID) -> List[ModerationWarning]:
        """Active warnings, newest first."""
        async with self._db.read() as conn:
            return await ImmersionWarningRepository.get_for_user(conn, guild_id, user_id, active_only=True)

    async def clear_warnings(
        self,
        guild_id: GuildID,
        user_id: UserID,
        moderator_id: UserID,
        reason: str | None = None,
    ) -> ClearWarningsResult:
        now = self._clock()
        try:
            async with self._db.transaction() as conn:
                cleared = await ImmersionWarningRepository.deactivate_all(conn, guild_id, user_id)
                entry = ModerationLogEntry(
                    guild_id=guild_id,
                    target_id=user_id,
                    moderator_id=moderator_id,
                    action=ModerationAction.CLEAR_WARNINGS,
                    reason=reason,
                    created_at=now,
                )
                entry.id = await ModerationLogRepository.insert(conn, entry)
                log_channel = await GuildConfigRepository.get_mod_log_channel(conn, guild_id)
        except Exception:
            logger.exception("[MODERATION] Failed to clear warnings for user %s in guild %s", user_id, guild_id)
            return ClearWarningsResult(success=False, cleared=0)

        logger.info("[MODERATION] Cleared %d warning(s) for user %s in guild %s", cleared, user_id, guild_id)
        await self._notify(log_channel, entry)
        return ClearWarningsResult(success=True, cleared=cleared)

    async def remove_warning(
        self,
        warning_id: int,
        moderator_id: UserID,
        reason: str | None = None,
    ) -> RemoveWarningResult:
        now = self._clock()
        try:
            async with self._db.transaction() as conn:
                warning = await ImmersionWarningRepository.get(conn, warning_id)
                if warning is None:
                    return RemoveWarningResult(success=False, error="Warning not found")

                await ImmersionWarningRepository.deactivate(conn, warning_id)
                entry = ModerationLogEntry(
                    guild_id=warning.guild_id,
                    target_id=warning.user_id,
                    moderator_id=moderator_id,
                    action=ModerationAction.REMOVE_WARNING,
                    reason=reason,
                    metadata=json.dumps({"warning_id": warning_id}),
                    created_at=now,
                )
                entry.id = await ModerationLogRepository.insert(conn, entry)
                log_channel = await GuildConfigRepository.get_mod_log_channel(conn, warning.guild_id)
        except Exception:
            logger.exception("[MODERATION] Failed to remove warning %s", warning_id)
            return RemoveWarningResult(success=False, error="Failed to remove warning")

        logger.info("[MODERATION] Removed warning %s from user %s", warning_id, warning.user_id)
        await self._notify(log_channel, entry)
        return RemoveWarningResult(success=True)

    # ------------------------------------------------------------------
    # History and listings
    # ------------------------------------------------------------------

    async def get_history(self, guild_id: GuildID, user_id: UserID) -> ModerationHistory:
        """Latest bans, warnings (active or not) and audit entries for one member."""
        async with self._db.read() as conn:
            bans = await ImmersionBanRepository.get_for_user(conn, guild_id, user_id, HISTORY_BAN_LIMIT)
            warnings = await ImmersionWarningRepository.get_for_user(
                conn, guild_id, user_id, active_only=False, limit=HISTORY_WARNING_LIMIT
            )
            logs = await ModerationLogRepository.get_for_target(conn, guild_id, user_id, HISTORY_LOG_LIMIT)
        return ModerationHistory(bans=bans, warnings=warnings, logs=logs)

    async def get_tenant_bans(self, guild_id: GuildID, page: int = 1, limit: int = 20) -> Page:
        """Active bans in a guild, newest first. Expired bans are swept before counting."""
        page = max(1, page)
        async with self._db.transaction() as conn:
            await ImmersionBanRepository.expire_outdated(conn, guild_id, self._clock())
            bans = await ImmersionBanRepository.get_active_for_guild(conn, guild_id, (page - 1) * limit, limit)
            total = await ImmersionBanRepository.count_active_for_guild(conn, guild_id)
        return Page(items=bans, total=total, page=page, total_pages=math.ceil(total / limit) if limit else 0)

    async def get_tenant_logs(self, guild_id: GuildID, page: int = 1, limit: int = 20) -> Page:
        page = max(1, page)
        async with self._db.read() as conn:
            logs = await ModerationLogRepository.get_for_guild(conn, guild_id, (page - 1) * limit, limit)
            total = await ModerationLogRepository.count_for_guild(conn, guild_id)
        return Page(items=logs, total=total, page=page, total_pages=math.ceil(total / limit) if limit else 0)

    # ------------------------------------------------------------------
    # Log channel
    # ------------------------------------------------------------------

    async def set_log_channel(self, guild_id: GuildID, channel_id: ChannelID | None) -> None:
        async with self._db.transaction() as conn:
            if await GuildConfigRepository.get(conn, guild_id) is None:
                await GuildConfigRepository.upsert(conn, TenantConfig(guild_id=guild_id, mod_log_channel_id=channel_id))
            else:
                await GuildConfigRepository.set_mod_log_channel(conn, guild_id, channel_id)
        logger.info("[MODERATION] Mod log channel for guild %s set to %s", guild_id, channel_id)

    async def get_log_channel(self, guild_id: GuildID) -> ChannelID | None:
        async with self._db.read() as conn:
            return await GuildConfigRepository.get_mod_log_channel(conn, guild_id)

    async def _notify(self, channel_id: ChannelID | None, entry: ModerationLogEntry) -> None:
        if channel_id is None or self._notifier is None:
            return
        try:
            await self._notifier(channel_id, entry)
        except Exception as exc:
            logger.warning("[MODERATION] Could not post %s to mod log channel %s: %s", entry.action, channel_id, exc)
