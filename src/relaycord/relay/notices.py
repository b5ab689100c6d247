"""Builders for the notices the relay pipeline and moderation send to members."""

from __future__ import annotations

from typing import Sequence

from relaycord.achievements.achievement_engine import Achievement
from relaycord.datatypes.moderation_datatypes import BanStatus, ModerationAction, ModerationLogEntry
from relaycord.moderation.moderation_store import format_duration
from relaycord.relay.platform import Notice
from relaycord.util.time_utils import to_unix

COLOR_WARNING = 0xF59E0B
COLOR_DANGER = 0xEF4444
COLOR_MUTED = 0x6B7280
COLOR_SUCCESS = 0x22C55E
COLOR_GOLD = 0xFBBF24

ACHIEVEMENT_REACTION = "🏆"

_LOG_COLORS = {
    ModerationAction.BAN: COLOR_DANGER,
    ModerationAction.UNBAN: COLOR_SUCCESS,
    ModerationAction.TIMEOUT: COLOR_WARNING,
    ModerationAction.WARN: COLOR_GOLD,
    ModerationAction.CLEAR_WARNINGS: COLOR_MUTED,
    ModerationAction.REMOVE_WARNING: COLOR_MUTED,
}

_LOG_TITLES = {
    ModerationAction.BAN: "Member Banned from Immersion",
    ModerationAction.UNBAN: "Member Unbanned from Immersion",
    ModerationAction.TIMEOUT: "Member Timed Out from Immersion",
    ModerationAction.WARN: "Member Warned",
    ModerationAction.CLEAR_WARNINGS: "Warnings Cleared",
    ModerationAction.REMOVE_WARNING: "Warning Removed",
}


def verification_required(base_url: str, guild_name: str, guild_icon_url: str | None = None) -> Notice:
    return Notice(
        title="Verification Required",
        description=(
            "You need to verify your account before using the language immersion channels.\n\n"
            f"**[Click here to verify]({base_url}/auth/discord)**"
        ),
        color=COLOR_WARNING,
        footer=guild_name,
        footer_icon_url=guild_icon_url,
    )


def immersion_disabled(dashboard_url: str, guild_name: str, guild_icon_url: str | None = None) -> Notice:
    return Notice(
        title="Immersion Disabled",
        description=(
            f"You have disabled your language immersion access in **{guild_name}**.\n\n"
            f"To re-enable, visit the [dashboard]({dashboard_url}) and toggle your immersion settings."
        ),
        color=COLOR_MUTED,
        footer=guild_name,
        footer_icon_url=guild_icon_url,
    )


def ban_status(guild_name: str, status: BanStatus) -> Notice:
    notice = Notice(
        title="Immersion Access Restricted",
        description=f"You are currently banned from using language immersion in **{guild_name}**.",
        color=COLOR_DANGER,
        footer="Contact a moderator if you believe this is a mistake.",
    )
    if status.reason:
        notice.add_field("Reason", status.reason)
    if status.expires_at is not None:
        notice.add_field("Ban Expires", f"<t:{to_unix(status.expires_at)}:R>")
    else:
        notice.add_field("Duration", "Permanent")
    return notice


def user_limit_reached(limit: int, dashboard_url: str) -> Notice:
    return Notice(
        title="Translation Limit Reached",
        description=(
            f"You've reached your monthly limit of **{limit:,}** characters.\n\n"
            "Your limit resets at the start of next month.\n\n"
            f"[Upgrade for higher limits]({dashboard_url}/subscribe)"
        ),
        color=COLOR_DANGER,
    )


def guild_limit_reached(guild_name: str, dashboard_url: str) -> Notice:
    return Notice(
        title="Server Limit Reached",
        description=(
            f"**{guild_name}** has reached its monthly translation limit.\n\n"
            "Ask a server admin to upgrade the plan.\n\n"
            f"[View plans]({dashboard_url}/subscribe)"
        ),
        color=COLOR_DANGER,
    )


def achievements_unlocked(achievements: Sequence[Achievement]) -> Notice:
    return Notice(
        title="🎉 Achievement Unlocked!",
        description="\n\n".join(f"{a.emoji} **{a.name}**\n{a.description}" for a in achievements),
        color=COLOR_GOLD,
        footer="Keep the streak going to unlock more.",
    )


def approaching_limit(usage: int, limit: int) -> Notice:
    remaining = max(0, limit - usage)
    percent = round(usage / limit * 100) if limit else 100
    return Notice(
        title="Approaching Limit",
        description=f"You have **{remaining:,}** characters remaining this month.\n\nUsage: {percent}%",
        color=COLOR_WARNING,
    )


def moderation_log(entry: ModerationLogEntry) -> Notice:
    """Audit notice posted to a guild's mod-log channel."""
    notice = Notice(
        title=_LOG_TITLES.get(entry.action, f"Moderation: {entry.action}"),
        description="",
        color=_LOG_COLORS.get(entry.action, COLOR_MUTED),
        with_timestamp=True,
    )
    notice.add_field("User", f"<@{entry.target_id}>", inline=True)
    notice.add_field("Moderator", f"<@{entry.moderator_id}>", inline=True)
    if entry.duration_seconds:
        notice.add_field("Duration", format_duration(entry.duration_seconds), inline=True)
    if entry.reason:
        notice.add_field("Reason", entry.reason)
    return notice
