"""
Data structures shared by the relay pipeline, the usage ledger and the
repositories.

The persisted records mirror the SQLite tables one-to-one; ``InboundMessage``
is the platform-neutral view of a gateway message the pipeline works on.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

from relaycord.datatypes.discord_datatypes import ChannelID, GuildID, MessageID, UserID
from relaycord.util.time_utils import month_start, utcnow


@dataclass(frozen=True, slots=True)
class DeliveryCredential:
    """Webhook id/token pair used to post into one language channel."""

    id: str
    token: str

    @property
    def key(self) -> str:
        return f"{self.id}:{self.token}"

    def __repr__(self) -> str:
        # Never print the token
        return f"DeliveryCredential(id={self.id!r})"


@dataclass(slots=True)
class TenantLanguageChannel:
    """One row of the per-guild language table."""

    language_code: str
    channel_id: ChannelID | None = None
    webhook_id: str | None = None
    webhook_token: str | None = None

    @property
    def credential(self) -> DeliveryCredential | None:
        if self.webhook_id and self.webhook_token:
            return DeliveryCredential(self.webhook_id, self.webhook_token)
        return None


@dataclass(slots=True)
class TenantConfig:
    """Relay configuration and monthly usage of one guild."""

    guild_id: GuildID
    subscription_tier: str = "free"
    monthly_usage: int = 0
    usage_reset_date: datetime.date = field(default_factory=lambda: month_start(utcnow()))
    enabled_languages: List[str] = field(default_factory=list)
    mod_log_channel_id: ChannelID | None = None
    channels: Dict[str, TenantLanguageChannel] = field(default_factory=dict)

    def channel_language_map(self) -> Dict[ChannelID, str]:
        """Map every monitored channel to its language, skipping disabled languages."""
        mapping: Dict[ChannelID, str] = {}
        for code, row in self.channels.items():
            if row.channel_id is None:
                continue
            if self.enabled_languages and code not in self.enabled_languages:
                continue
            mapping[row.channel_id] = code
        return mapping

    def language_for_channel(self, channel_id: ChannelID) -> str | None:
        return self.channel_language_map().get(channel_id)

    def credential_for(self, language_code: str) -> DeliveryCredential | None:
        row = self.channels.get(language_code)
        return row.credential if row else None


@dataclass(slots=True)
class UserTenantLink:
    """A verified member of one guild with their usage, streak and achievements."""

    id: int
    guild_id: GuildID
    user_id: UserID
    immersion_enabled: bool = True
    monthly_usage: int = 0
    usage_reset_date: datetime.date = field(default_factory=lambda: month_start(utcnow()))
    current_streak: int = 0
    longest_streak: int = 0
    last_active_date: datetime.date | None = None
    total_translations: int = 0
    achievements: List[str] = field(default_factory=list)
    global_user_id: int | None = None
    show_on_leaderboard: bool = True


@dataclass(slots=True)
class GlobalUser:
    """Cross-guild user record holding the personal plan and lifetime counters."""

    id: int
    user_id: UserID
    username: str = ""
    avatar: str | None = None
    subscription_tier: str = "free"
    total_translations_all_time: int = 0
    total_characters_all_time: int = 0


@dataclass(slots=True)
class UsageLogEntry:
    """Append-only record of one successful relay."""

    guild_id: GuildID
    user_id: UserID
    source_language: str
    target_languages: str
    character_count: int
    created_at: datetime.datetime | None = None


@dataclass(slots=True)
class StreakState:
    current_streak: int
    longest_streak: int
    last_active_date: datetime.date


@dataclass(slots=True)
class InboundMessage:
    """Platform-neutral view of a message posted in a guild channel.

    ``raw`` keeps the platform object (a ``discord.Message``) so the platform
    client can delete it or react to it.
    """

    message_id: MessageID
    guild_id: GuildID | None
    channel_id: ChannelID
    author_id: UserID
    content: str
    username: str = ""
    display_name: str = ""
    avatar: str | None = None
    avatar_url: str | None = None
    channel_name: str = ""
    guild_name: str = ""
    guild_icon_url: str | None = None
    created_at: datetime.datetime | None = None
    is_automated: bool = False
    raw: Any = None


@dataclass(slots=True)
class TranslatedDelivery:
    """One translated copy of a message, addressed to a language channel."""

    content: str
    username: str
    avatar_url: str | None
    original_content: str
    source_language: str
    target_language: str
    source_channel_name: str = ""
    guild_icon_url: str | None = None
    timestamp: datetime.datetime | None = None


class RelayStatus(Enum):
    """Terminal state of one relay event."""

    IGNORED = "ignored"
    NOT_MONITORED = "not_monitored"
    NOT_VERIFIED = "not_verified"
    IMMERSION_DISABLED = "immersion_disabled"
    BANNED = "banned"
    USER_LIMIT_REACHED = "user_limit_reached"
    GUILD_LIMIT_REACHED = "guild_limit_reached"
    TRANSLATION_FAILED = "translation_failed"
    PERSISTENCE_FAILED = "persistence_failed"
    RELAYED = "relayed"

    def __str__(self) -> str:
        return self.value


@dataclass(slots=True)
class RelayOutcome:
    status: RelayStatus
    source_language: str | None = None
    character_cost: int = 0
    delivered: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    revoked: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    unlocked_achievements: List[str] = field(default_factory=list)
