"""
RelayPipeline: relays one message from a language channel to every other
enabled language channel of the same guild.

Processing order for one inbound message:

1. ignore automated authors, DMs and blank messages
2. resolve the channel to a language through the guild's enabled channels
3. require a verified member (delete + verification notice)
4. require immersion to be enabled (delete + disabled notice)
5. require no active ban (delete + ban notice)
6. sync the global user record and roll over monthly counters
7. price the message: ``len(text) * target language count``
8. enforce the member and guild budgets (delete + limit notice)
9. translate into every target language, all or nothing
10. fan out one webhook send per language, failures isolated per language
11. charge the relay in one transaction
12. unlock achievements (DM, or a reaction when DMs are closed)
13. warn when the member's usage enters the warning band

Gate rejections end the event quietly with a notice. Upstream failures end it
without touching the ledger. Notification failures are swallowed.

Events from the same member of the same guild are serialized from step 3 to
step 11, so a member can never overspend their own budget. Events from
different members run concurrently and may briefly overshoot the guild budget.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Tuple

from relaycord.achievements.achievement_engine import AchievementStats, check_new_achievements
from relaycord.configuration.languages import count_target_languages, resolve_target_languages
from relaycord.datatypes.relay_datatypes import (
    InboundMessage,
    RelayOutcome,
    RelayStatus,
    TenantConfig,
    TranslatedDelivery,
    UserTenantLink,
)
from relaycord.delivery.delivery_cache import CredentialRevokedError, DeliveryCache
from relaycord.moderation.moderation_store import ModerationStore
from relaycord.relay import notices
from relaycord.relay.platform import DeliveryRefusedError, Notice, PlatformClient
from relaycord.translation.translation_gateway import TranslationGateway
from relaycord.translation.translation_provider import TranslationError
from relaycord.usage.usage_ledger import LimitCheck, UsageLedger
from relaycord.util.logger import get_logger
from relaycord.util.time_utils import utcnow

logger = get_logger("relay_pipeline")

DEFAULT_NOTICE_DELETE_AFTER = 15.0


class _MemberLocks:
    """Per (guild, user) locks, dropped once no event holds or awaits them."""

    def __init__(self) -> None:
        self._locks: Dict[Tuple[int, int], Tuple[asyncio.Lock, int]] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: Tuple[int, int]) -> AsyncIterator[None]:
        lock, users = self._locks.get(key, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._locks[key] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._locks[key]
            if users <= 1:
                del self._locks[key]
            else:
                self._locks[key] = (lock, users - 1)


class RelayPipeline:
    def __init__(
        self,
        platform: PlatformClient,
        ledger: UsageLedger,
        moderation: ModerationStore,
        gateway: TranslationGateway,
        delivery_cache: DeliveryCache,
        base_url: str = "",
        dashboard_url: str = "",
        notice_delete_after: float = DEFAULT_NOTICE_DELETE_AFTER,
    ) -> None:
        self._platform = platform
        self._ledger = ledger
        self._moderation = moderation
        self._gateway = gateway
        self._delivery_cache = delivery_cache
        self._base_url = base_url.rstrip("/")
        self._dashboard_url = dashboard_url.rstrip("/")
        self._notice_delete_after = notice_delete_after
        self._member_locks = _MemberLocks()

    async def handle(self, message: InboundMessage) -> RelayOutcome:
        if message.is_automated or message.guild_id is None or not message.content.strip():
            return RelayOutcome(RelayStatus.IGNORED)

        tenant = await self._ledger.get_tenant(message.guild_id)
        if tenant is None:
            return RelayOutcome(RelayStatus.NOT_MONITORED)
        source_language = tenant.language_for_channel(message.channel_id)
        if source_language is None:
            return RelayOutcome(RelayStatus.NOT_MONITORED)

        async with self._member_locks.hold((int(message.guild_id), int(message.author_id))):
            tenant = await self._ledger.get_tenant(message.guild_id) or tenant
            outcome = await self._relay(message, tenant, source_language)

        logger.debug(
            "[RELAY] Message %s from %s in guild %s: %s",
            message.message_id,
            message.author_id,
            message.guild_id,
            outcome.status,
        )
        return outcome

    # ------------------------------------------------------------------
    # Steps 3-13
    # ------------------------------------------------------------------

    async def _relay(self, message: InboundMessage, tenant: TenantConfig, source_language: str) -> RelayOutcome:
        link = await self._ledger.get_link(tenant.guild_id, message.author_id)
        if link is None:
            await self._delete(message)
            await self._notify_with_fallback(
                message, notices.verification_required(self._base_url, message.guild_name, message.guild_icon_url)
            )
            return RelayOutcome(RelayStatus.NOT_VERIFIED, source_language)

        if not link.immersion_enabled:
            await self._delete(message)
            await self._notify_direct(
                message, notices.immersion_disabled(self._dashboard_url, message.guild_name, message.guild_icon_url)
            )
            return RelayOutcome(RelayStatus.IMMERSION_DISABLED, source_language)

        ban = await self._moderation.get_ban_status(tenant.guild_id, message.author_id)
        if ban.is_banned:
            await self._delete(message)
            await self._notify_direct(message, notices.ban_status(message.guild_name, ban))
            return RelayOutcome(RelayStatus.BANNED, source_language)

        try:
            global_user = await self._ledger.sync_global_user(link, message.username, message.avatar)
            tenant, link = await self._ledger.roll_over(tenant, link)
        except Exception:
            logger.exception("[RELAY] Failed to prepare usage records for user %s", message.author_id)
            return RelayOutcome(RelayStatus.PERSISTENCE_FAILED, source_language)

        targets = resolve_target_languages(source_language, tenant.enabled_languages)
        if not targets:
            return RelayOutcome(RelayStatus.IGNORED, source_language)
        character_cost = len(message.content) * count_target_languages(source_language, tenant.enabled_languages)

        limits = self._ledger.check_limits(tenant, link, character_cost, global_user.subscription_tier)
        if not limits.user_allowed:
            await self._delete(message)
            await self._notify_with_fallback(message, notices.user_limit_reached(limits.user_limit, self._dashboard_url))
            return RelayOutcome(RelayStatus.USER_LIMIT_REACHED, source_language, character_cost)
        if not limits.guild_allowed:
            await self._delete(message)
            await self._notify_with_fallback(message, notices.guild_limit_reached(message.guild_name, self._dashboard_url))
            return RelayOutcome(RelayStatus.GUILD_LIMIT_REACHED, source_language, character_cost)

        try:
            translations = await self._gateway.translate_to_languages(message.content, source_language, targets)
        except TranslationError as exc:
            logger.warning("[RELAY] Translation failed for message %s: %s", message.message_id, exc)
            return RelayOutcome(RelayStatus.TRANSLATION_FAILED, source_language, character_cost)

        outcome = RelayOutcome(RelayStatus.RELAYED, source_language, character_cost)
        await self._fan_out(message, tenant, source_language, translations, outcome)

        try:
            charge = await self._ledger.commit_relay(tenant, link, source_language, list(translations), character_cost)
        except Exception:
            logger.exception(
                "[RELAY] Delivered message %s but failed to record %d characters for user %s in guild %s",
                message.message_id,
                character_cost,
                message.author_id,
                tenant.guild_id,
            )
            outcome.status = RelayStatus.PERSISTENCE_FAILED
            return outcome

        outcome.unlocked_achievements = await self._unlock_achievements(message, charge.link, charge.streak.current_streak)
        await self._warn_if_near_limit(message, charge.link.monthly_usage, limits)
        return outcome

    async def _fan_out(
        self,
        message: InboundMessage,
        tenant: TenantConfig,
        source_language: str,
        translations: Dict[str, str],
        outcome: RelayOutcome,
    ) -> None:
        sends = []
        for language, text in translations.items():
            credential = tenant.credential_for(language)
            if credential is None:
                outcome.skipped.append(language)
                continue
            delivery = TranslatedDelivery(
                content=text,
                username=message.display_name or message.username,
                avatar_url=message.avatar_url,
                original_content=message.content,
                source_language=source_language,
                target_language=language,
                source_channel_name=message.channel_name,
                guild_icon_url=message.guild_icon_url,
                timestamp=message.created_at or utcnow(),
            )
            sends.append((language, self._delivery_cache.send(credential, delivery)))

        results = await asyncio.gather(*(send for _, send in sends), return_exceptions=True)
        for (language, _), result in zip(sends, results):
            if isinstance(result, CredentialRevokedError):
                outcome.revoked.append(language)
                logger.warning(
                    "[RELAY] Webhook for %s in guild %s was deleted; it must be reprovisioned",
                    language,
                    tenant.guild_id,
                )
            elif isinstance(result, BaseException):
                outcome.failed.append(language)
                logger.error("[RELAY] Delivery to %s in guild %s failed: %s", language, tenant.guild_id, result)
            else:
                outcome.delivered.append(language)

    async def _unlock_achievements(self, message: InboundMessage, link: UserTenantLink, streak: int) -> List[str]:
        stats = AchievementStats(
            translations=link.total_translations,
            streak=streak,
            characters=link.monthly_usage,
        )
        earned = check_new_achievements(link.achievements, stats)
        if not earned:
            return []

        ids = [achievement.id for achievement in earned]
        try:
            await self._ledger.record_achievements(link, ids)
        except Exception:
            logger.exception("[RELAY] Failed to store achievements %s for user %s", ids, link.user_id)
            return []

        logger.info("[RELAY] User %s unlocked %s", link.user_id, ", ".join(ids))
        if not await self._notify_direct(message, notices.achievements_unlocked(earned)):
            try:
                await self._platform.add_reaction(message, notices.ACHIEVEMENT_REACTION)
            except Exception as exc:
                logger.debug("[RELAY] Could not react to message %s: %s", message.message_id, exc)
        return ids

    async def _warn_if_near_limit(self, message: InboundMessage, usage: int, limits: LimitCheck) -> None:
        if self._ledger.should_warn(usage, limits.user_limit):
            await self._notify_direct(message, notices.approaching_limit(usage, limits.user_limit))

    # ------------------------------------------------------------------
    # Best-effort platform calls
    # ------------------------------------------------------------------

    async def _delete(self, message: InboundMessage) -> None:
        try:
            await self._platform.delete_message(message)
        except Exception as exc:
            logger.debug("[RELAY] Could not delete message %s: %s", message.message_id, exc)

    async def _notify_direct(self, message: InboundMessage, notice: Notice) -> bool:
        """DM the author; returns False when the DM could not be delivered."""
        try:
            await self._platform.send_direct(message.author_id, notice)
            return True
        except DeliveryRefusedError:
            return False
        except Exception as exc:
            logger.debug("[RELAY] Could not DM user %s: %s", message.author_id, exc)
            return False

    async def _notify_with_fallback(self, message: InboundMessage, notice: Notice) -> None:
        """DM the author, or post a self-deleting notice in the channel if DMs are closed."""
        try:
            await self._platform.send_direct(message.author_id, notice)
            return
        except DeliveryRefusedError:
            pass
        except Exception as exc:
            logger.debug("[RELAY] Could not DM user %s: %s", message.author_id, exc)
            return

        try:
            await self._platform.send_ephemeral_notice(
                message.channel_id, message.author_id, notice, self._notice_delete_after
            )
        except Exception as exc:
            logger.debug("[RELAY] Could not post notice in channel %s: %s", message.channel_id, exc)
