"""
Records and results of immersion moderation.

Bans and warnings are soft-expired (``active`` flipped off) and never deleted.
Every state change also produces a ``ModerationLogEntry`` audit record.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import List

from relaycord.datatypes.discord_datatypes import GuildID, UserID


class ModerationAction(Enum):
    """Audit-log action names."""

    BAN = "ban"
    UNBAN = "unban"
    TIMEOUT = "timeout"
    WARN = "warn"
    CLEAR_WARNINGS = "clear_warnings"
    REMOVE_WARNING = "remove_warning"

    def __str__(self) -> str:
        return self.value


@dataclass(slots=True)
class ModerationBan:
    id: int
    guild_id: GuildID
    user_id: UserID
    reason: str | None
    banned_by: UserID
    banned_at: datetime.datetime
    expires_at: datetime.datetime | None = None
    active: bool = True
    unbanned_by: UserID | None = None
    unbanned_at: datetime.datetime | None = None
    unban_reason: str | None = None

    @property
    def is_permanent(self) -> bool:
        return self.expires_at is None


@dataclass(slots=True)
class ModerationWarning:
    id: int
    guild_id: GuildID
    user_id: UserID
    reason: str
    warned_by: UserID
    created_at: datetime.datetime
    active: bool = True


@dataclass(slots=True)
class ModerationLogEntry:
    guild_id: GuildID
    target_id: UserID
    moderator_id: UserID
    action: ModerationAction
    reason: str | None = None
    duration_seconds: int | None = None
    metadata: str | None = None
    created_at: datetime.datetime | None = None
    id: int | None = None


@dataclass(slots=True)
class BanStatus:
    """Display view of a member's ban state."""

    is_banned: bool
    reason: str | None = None
    banned_at: datetime.datetime | None = None
    expires_at: datetime.datetime | None = None
    banned_by: UserID | None = None

    @property
    def is_permanent(self) -> bool:
        return self.is_banned and self.expires_at is None


@dataclass(slots=True)
class BanResult:
    success: bool
    error: str | None = None
    ban: ModerationBan | None = None


@dataclass(slots=True)
class UnbanResult:
    success: bool
    error: str | None = None


@dataclass(slots=True)
class WarnResult:
    success: bool
    error: str | None = None
    warning_count: int = 0


@dataclass(slots=True)
class ClearWarningsResult:
    success: bool
    cleared: int = 0


@dataclass(slots=True)
class ModerationHistory:
    bans: List[ModerationBan] = field(default_factory=list)
    warnings: List[ModerationWarning] = field(default_factory=list)
    logs: List[ModerationLogEntry] = field(default_factory=list)


@dataclass(slots=True)
class Page:
    """One page of a paginated listing."""

    items: list
    total: int
    page: int
    total_pages: int


@dataclass(slots=True)
class RemoveWarningResult:
    success: bool
    error: str | None = None
