"""
Repository for the ``verified_users`` table (one row per member per guild).

A row only exists once the member has verified; its absence is what the
relay pipeline treats as "not verified".
"""

from __future__ import annotations

import datetime
import json
from typing import List

import aiosqlite

from relaycord.datatypes.discord_datatypes import GuildID, UserID
from relaycord.datatypes.relay_datatypes import StreakState, UserTenantLink
from relaycord.util.logger import get_logger
from relaycord.util.time_utils import date_from_text, date_to_text, month_start, utcnow

logger = get_logger("verified_user_repo")

_COLUMNS = """
    id, guild_id, user_id, immersion_enabled, monthly_usage, usage_reset_date,
    current_streak, longest_streak, last_active_date, total_translations,
    achievements, global_user_id, show_on_leaderboard
"""


def _row_to_link(row) -> UserTenantLink:
    try:
        achievements = json.loads(row[10] or "[]")
    except (TypeError, ValueError):
        achievements = []
    return UserTenantLink(
        id=row[0],
        guild_id=GuildID(row[1]),
        user_id=UserID(row[2]),
        immersion_enabled=bool(row[3]),
        monthly_usage=int(row[4]),
        usage_reset_date=date_from_text(row[5]) or month_start(utcnow()),
        current_streak=int(row[6]),
        longest_streak=int(row[7]),
        last_active_date=date_from_text(row[8]),
        total_translations=int(row[9]),
        achievements=[str(a) for a in achievements] if isinstance(achievements, list) else [],
        global_user_id=row[11],
        show_on_leaderboard=bool(row[12]),
    )


class VerifiedUserRepository:
    """CRUD for member/guild links."""

    @staticmethod
    async def get(conn: aiosqlite.Connection, guild_id: GuildID, user_id: UserID) -> UserTenantLink | None:
        async with conn.execute(
            f"SELECT {_COLUMNS} FROM verified_users WHERE guild_id = ? AND user_id = ?",
            (int(guild_id), int(user_id)),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_link(row) if row is not None else None

    @staticmethod
    async def create(
        conn: aiosqlite.Connection,
        guild_id: GuildID,
        user_id: UserID,
        reset_date: datetime.date,
    ) -> None:
        """Insert a verified link; verifying twice keeps the existing row."""
        await conn.execute(
            """
            INSERT INTO verified_users (guild_id, user_id, usage_reset_date)
            VALUES (?, ?, ?)
            ON CONFLICT(guild_id, user_id) DO NOTHING
            """,
            (int(guild_id), int(user_id), date_to_text(reset_date)),
        )

    @staticmethod
    async def set_immersion_enabled(
        conn: aiosqlite.Connection, guild_id: GuildID, user_id: UserID, enabled: bool
    ) -> bool:
        cursor = await conn.execute(
            "UPDATE verified_users SET immersion_enabled = ? WHERE guild_id = ? AND user_id = ?",
            (1 if enabled else 0, int(guild_id), int(user_id)),
        )
        return cursor.rowcount > 0

    @staticmethod
    async def link_global_user(conn: aiosqlite.Connection, link_id: int, global_user_id: int) -> None:
        await conn.execute(
            "UPDATE verified_users SET global_user_id = ? WHERE id = ? AND global_user_id IS NULL",
            (global_user_id, link_id),
        )

    @staticmethod
    async def reset_usage(conn: aiosqlite.Connection, link_id: int, reset_date: datetime.date) -> bool:
        """Zero the member's monthly counter once per ``reset_date``; see GuildConfigRepository.reset_usage."""
        cursor = await conn.execute(
            """
            UPDATE verified_users
            SET monthly_usage = 0, usage_reset_date = ?
            WHERE id = ? AND usage_reset_date < ?
            """,
            (date_to_text(reset_date), link_id, date_to_text(reset_date)),
        )
        return cursor.rowcount > 0

    @staticmethod
    async def apply_relay(
        conn: aiosqlite.Connection,
        link_id: int,
        character_cost: int,
        streak: StreakState,
    ) -> None:
        """Charge one relayed message and store the recomputed streak."""
        await conn.execute(
            """
            UPDATE verified_users
            SET monthly_usage      = monthly_usage + ?,
                total_translations = total_translations + 1,
                current_streak     = ?,
                longest_streak     = ?,
                last_active_date   = ?
            WHERE id = ?
            """,
            (
                character_cost,
                streak.current_streak,
                streak.longest_streak,
                date_to_text(streak.last_active_date),
                link_id,
            ),
        )

    @staticmethod
    async def set_achievements(conn: aiosqlite.Connection, link_id: int, achievements: List[str]) -> None:
        await conn.execute(
            "UPDATE verified_users SET achievements = ? WHERE id = ?",
            (json.dumps(list(achievements)), link_id),
        )
