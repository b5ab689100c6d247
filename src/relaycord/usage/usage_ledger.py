"""
UsageLedger: monthly character budgets for guilds and their members.

Two counters are tracked independently, one per guild and one per verified
member. Both roll over lazily: the first event that arrives after a month
boundary resets the counter and stamps ``usage_reset_date`` with the first
day of the new month. The reset UPDATE is guarded on the stored date so two
events racing past the boundary reset the counter exactly once.

A relay is charged in a single transaction that covers both counters, the
member's streak, the usage log entry and the global lifetime counters.

The ledger does no SQL itself; it delegates to the repositories and owns the
transaction boundaries.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import List, Tuple

from relaycord.configuration.subscriptions import (
    get_effective_tier_source,
    get_effective_user_limit,
    get_tier_limits,
)
from relaycord.database.db_connection import ConnectionManager, db_connection
from relaycord.datatypes.discord_datatypes import GuildID, UserID
from relaycord.datatypes.relay_datatypes import (
    GlobalUser,
    StreakState,
    TenantConfig,
    UsageLogEntry,
    UserTenantLink,
)
from relaycord.repositories.global_user_repo import GlobalUserRepository
from relaycord.repositories.guild_config_repo import GuildConfigRepository
from relaycord.repositories.usage_log_repo import UsageLogRepository
from relaycord.repositories.verified_user_repo import VerifiedUserRepository
from relaycord.util.logger import get_logger
from relaycord.util.time_utils import month_start, utcnow

logger = get_logger("usage_ledger")

DEFAULT_WARNING_THRESHOLD = 0.8


def compute_streak(
    current_streak: int,
    longest_streak: int,
    last_active_date: datetime.date | None,
    today: datetime.date,
) -> StreakState:
    """
    Recompute a member's daily streak for activity on ``today``.

    - no previous activity: streak starts at 1
    - same day: unchanged
    - consecutive day: +1, longest raised if exceeded
    - any longer gap: back to 1
    """
    if last_active_date is None:
        return StreakState(current_streak=1, longest_streak=max(longest_streak, 1), last_active_date=today)

    gap_days = (today - last_active_date).days

    if gap_days <= 0:
        # Clock skew can make the stored date look like it is in the future.
        return StreakState(
            current_streak=current_streak,
            longest_streak=max(longest_streak, current_streak),
            last_active_date=last_active_date if gap_days < 0 else today,
        )

    if gap_days == 1:
        new_current = current_streak + 1
        return StreakState(
            current_streak=new_current,
            longest_streak=max(longest_streak, new_current),
            last_active_date=today,
        )

    return StreakState(current_streak=1, longest_streak=max(longest_streak, 1), last_active_date=today)


def needs_rollover(usage_reset_date: datetime.date | None, today: datetime.date) -> bool:
    """True when the stored reset date is before the first day of ``today``'s month."""
    if usage_reset_date is None:
        return True
    return usage_reset_date < month_start(today)


def is_approaching_limit(usage: int, limit: int, threshold: float = DEFAULT_WARNING_THRESHOLD) -> bool:
    """True when ``threshold <= usage / limit < 1``."""
    if limit <= 0:
        return False
    ratio = usage / limit
    return threshold <= ratio < 1.0


@dataclass(slots=True)
class LimitCheck:
    """Budget evaluation for one prospective relay."""

    character_cost: int
    user_usage: int
    user_limit: int
    guild_usage: int
    guild_limit: int
    limit_source: str

    @property
    def user_allowed(self) -> bool:
        return self.user_usage + self.character_cost <= self.user_limit

    @property
    def guild_allowed(self) -> bool:
        return self.guild_usage + self.character_cost <= self.guild_limit

    @property
    def user_remaining(self) -> int:
        return max(0, self.user_limit - self.user_usage)

    @property
    def guild_remaining(self) -> int:
        return max(0, self.guild_limit - self.guild_usage)


@dataclass(slots=True)
class RelayCharge:
    """Post-commit counters of a charged relay."""

    link: UserTenantLink
    guild_usage: int
    streak: StreakState


class UsageLedger:
    """Reads, rolls over and charges the guild and member usage counters."""

    def __init__(
        self,
        connection_manager: ConnectionManager | None = None,
        warning_threshold: float = DEFAULT_WARNING_THRESHOLD,
    ) -> None:
        self._db = connection_manager or db_connection
        self.warning_threshold = warning_threshold

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_tenant(self, guild_id: GuildID) -> TenantConfig | None:
        async with self._db.read() as conn:
            return await GuildConfigRepository.get(conn, guild_id)

    async def get_link(self, guild_id: GuildID, user_id: UserID) -> UserTenantLink | None:
        async with self._db.read() as conn:
            return await VerifiedUserRepository.get(conn, guild_id, user_id)

    async def get_recent_usage(self, guild_id: GuildID, limit: int = 50) -> List[UsageLogEntry]:
        async with self._db.read() as conn:
            return await UsageLogRepository.get_recent_for_guild(conn, guild_id, limit)

    # ------------------------------------------------------------------
    # Global user linking
    # ------------------------------------------------------------------

    async def sync_global_user(
        self,
        link: UserTenantLink,
        username: str,
        avatar: str | None,
    ) -> GlobalUser:
        """
        Fetch or create the member's global record, refresh its profile and
        link it to ``link`` when the link has none yet.
        """
        async with self._db.transaction() as conn:
            global_user = await GlobalUserRepository.get_by_user_id(conn, link.user_id)
            if global_user is None:
                await GlobalUserRepository.create(conn, link.user_id, username, avatar)
                global_user = await GlobalUserRepository.get_by_user_id(conn, link.user_id)
                logger.debug("[USAGE LEDGER] Created global user for %s", link.user_id)
            elif global_user.username != username or global_user.avatar != avatar:
                await GlobalUserRepository.update_profile(conn, global_user.id, username, avatar)
                global_user.username = username
                global_user.avatar = avatar

            if link.global_user_id is None:
                await VerifiedUserRepository.link_global_user(conn, link.id, global_user.id)
                link.global_user_id = global_user.id

        return global_user

    # ------------------------------------------------------------------
    # Rollover
    # ------------------------------------------------------------------

    async def roll_over(
        self,
        tenant: TenantConfig,
        link: UserTenantLink,
        today: datetime.date | None = None,
    ) -> Tuple[TenantConfig, UserTenantLink]:
        """
        Reset whichever counters belong to a previous month and return fresh
        copies of both records.

        Persisted before any limit is evaluated. Safe to call on every event.
        """
        today = today or utcnow().date()
        reset_date = month_start(today)

        tenant_due = needs_rollover(tenant.usage_reset_date, today)
        user_due = needs_rollover(link.usage_reset_date, today)
        if not tenant_due and not user_due:
            return tenant, link

        async with self._db.transaction() as conn:
            if tenant_due and await GuildConfigRepository.reset_usage(conn, tenant.guild_id, reset_date):
                logger.info("[USAGE LEDGER] Monthly usage reset for guild %s", tenant.guild_id)
            if user_due and await VerifiedUserRepository.reset_usage(conn, link.id, reset_date):
                logger.debug("[USAGE LEDGER] Monthly usage reset for user %s in guild %s", link.user_id, link.guild_id)

            fresh_tenant = await GuildConfigRepository.get(conn, tenant.guild_id)
            fresh_link = await VerifiedUserRepository.get(conn, link.guild_id, link.user_id)

        return fresh_tenant or tenant, fresh_link or link

    # ------------------------------------------------------------------
    # Limits
    # ------------------------------------------------------------------

    def check_limits(
        self,
        tenant: TenantConfig,
        link: UserTenantLink,
        character_cost: int,
        user_tier: str = "free",
    ) -> LimitCheck:
        """
        Evaluate both budgets for a relay costing ``character_cost``.

        The member gets the better of their personal plan and the guild's
        per-user allowance. The guild budget comes from the guild tier alone.
        """
        return LimitCheck(
            character_cost=character_cost,
            user_usage=link.monthly_usage,
            user_limit=get_effective_user_limit(user_tier, tenant.subscription_tier),
            guild_usage=tenant.monthly_usage,
            guild_limit=get_tier_limits(tenant.subscription_tier).per_guild,
            limit_source=get_effective_tier_source(user_tier, tenant.subscription_tier),
        )

    def should_warn(self, usage: int, limit: int) -> bool:
        return is_approaching_limit(usage, limit, self.warning_threshold)

    # ------------------------------------------------------------------
    # Charging
    # ------------------------------------------------------------------

    async def commit_relay(
        self,
        tenant: TenantConfig,
        link: UserTenantLink,
        source_language: str,
        target_languages: List[str],
        character_cost: int,
        now: datetime.datetime | None = None,
    ) -> RelayCharge:
        """
        Charge one delivered relay as a single transaction.

        Raises whatever the database raises; the transaction is rolled back
        and nothing is charged.
        """
        now = now or utcnow()
        streak = compute_streak(link.current_streak, link.longest_streak, link.last_active_date, now.date())

        async with self._db.transaction() as conn:
            await VerifiedUserRepository.apply_relay(conn, link.id, character_cost, streak)
            await GuildConfigRepository.increment_usage(conn, tenant.guild_id, character_cost)
            await UsageLogRepository.insert(
                conn,
                UsageLogEntry(
                    guild_id=tenant.guild_id,
                    user_id=link.user_id,
                    source_language=source_language,
                    target_languages=",".join(target_languages),
                    character_count=character_cost,
                    created_at=now,
                ),
            )
            if link.global_user_id is not None:
                await GlobalUserRepository.increment_lifetime(conn, link.global_user_id, character_cost)

            updated_link = await VerifiedUserRepository.get(conn, link.guild_id, link.user_id)
            updated_tenant = await GuildConfigRepository.get(conn, tenant.guild_id)

        logger.debug(
            "[USAGE LEDGER] Charged %d characters to user %s in guild %s",
            character_cost,
            link.user_id,
            tenant.guild_id,
        )
        return RelayCharge(
            link=updated_link or link,
            guild_usage=updated_tenant.monthly_usage if updated_tenant else tenant.monthly_usage + character_cost,
            streak=streak,
        )

    async def record_achievements(self, link: UserTenantLink, new_ids: List[str]) -> List[str]:
        """Append ``new_ids`` to the member's unlocked set and return the full set."""
        merged = list(link.achievements)
        merged.extend(aid for aid in new_ids if aid not in merged)
        async with self._db.transaction() as conn:
            await VerifiedUserRepository.set_achievements(conn, link.id, merged)
        link.achievements = merged
        return merged
