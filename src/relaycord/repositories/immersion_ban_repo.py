"""
Persistent storage for immersion bans.

Timestamps are INTEGER unix seconds so expiry comparisons are plain integer
comparisons with no string parsing or timezone conversion.
"""

from __future__ import annotations

import datetime
from typing import List

import aiosqlite

from relaycord.datatypes.discord_datatypes import GuildID, UserID
from relaycord.datatypes.moderation_datatypes import ModerationBan
from relaycord.util.time_utils import from_unix, to_unix

_COLUMNS = """
    id, guild_id, user_id, reason, banned_by, banned_at, expires_at, active,
    unbanned_by, unbanned_at, unban_reason
"""


def _row_to_ban(row) -> ModerationBan:
    return ModerationBan(
        id=row[0],
        guild_id=GuildID(row[1]),
        user_id=UserID(row[2]),
        reason=row[3],
        banned_by=UserID(row[4]),
        banned_at=from_unix(row[5]),
        expires_at=from_unix(row[6]),
        active=bool(row[7]),
        unbanned_by=UserID(row[8]) if row[8] is not None else None,
        unbanned_at=from_unix(row[9]),
        unban_reason=row[10],
    )


class ImmersionBanRepository:
    """Low-level CRUD for the ``immersion_bans`` table."""

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    async def expire_outdated(
        conn: aiosqlite.Connection,
        guild_id: GuildID,
        now: datetime.datetime,
        user_id: UserID | None = None,
    ) -> int:
        """Deactivate active bans whose ``expires_at <= now``; scoped to one user when given."""
        query = "UPDATE immersion_bans SET active = 0 WHERE guild_id = ? AND active = 1 AND expires_at IS NOT NULL AND expires_at <= ?"
        params: list = [int(guild_id), to_unix(now)]
        if user_id is not None:
            query += " AND user_id = ?"
            params.append(int(user_id))
        cursor = await conn.execute(query, params)
        return cursor.rowcount

    @staticmethod
    async def create(
        conn: aiosqlite.Connection,
        guild_id: GuildID,
        user_id: UserID,
        banned_by: UserID,
        reason: str | None,
        banned_at: datetime.datetime,
        expires_at: datetime.datetime | None,
    ) -> int:
        cursor = await conn.execute(
            """
            INSERT INTO immersion_bans (guild_id, user_id, reason, banned_by, banned_at, expires_at, active)
            VALUES (?, ?, ?, ?, ?, ?, 1)
            """,
            (int(guild_id), int(user_id), reason, int(banned_by), to_unix(banned_at), to_unix(expires_at)),
        )
        return int(cursor.lastrowid)

    @staticmethod
    async def deactivate(
        conn: aiosqlite.Connection,
        ban_id: int,
        unbanned_by: UserID,
        unbanned_at: datetime.datetime,
        unban_reason: str | None,
    ) -> None:
        await conn.execute(
            """
            UPDATE immersion_bans
            SET active = 0, unbanned_by = ?, unbanned_at = ?, unban_reason = ?
            WHERE id = ?
            """,
            (int(unbanned_by), to_unix(unbanned_at), unban_reason, ban_id),
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    async def get_active(conn: aiosqlite.Connection, guild_id: GuildID, user_id: UserID) -> ModerationBan | None:
        async with conn.execute(
            f"""
            SELECT {_COLUMNS} FROM immersion_bans
            WHERE guild_id = ? AND user_id = ? AND active = 1
            ORDER BY banned_at DESC, id DESC
            LIMIT 1
            """,
            (int(guild_id), int(user_id)),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_ban(row) if row is not None else None

    @staticmethod
    async def get_for_user(
        conn: aiosqlite.Connection, guild_id: GuildID, user_id: UserID, limit: int = 20
    ) -> List[ModerationBan]:
        async with conn.execute(
            f"""
            SELECT {_COLUMNS} FROM immersion_bans
            WHERE guild_id = ? AND user_id = ?
            ORDER BY banned_at DESC, id DESC
            LIMIT ?
            """,
            (int(guild_id), int(user_id), limit),
        ) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_ban(row) for row in rows]

    @staticmethod
    async def get_active_for_guild(
        conn: aiosqlite.Connection, guild_id: GuildID, offset: int, limit: int
    ) -> List[ModerationBan]:
        async with conn.execute(
            f"""
            SELECT {_COLUMNS} FROM immersion_bans
            WHERE guild_id = ? AND active = 1
            ORDER BY banned_at DESC, id DESC
            LIMIT ? OFFSET ?
            """,
            (int(guild_id), limit, offset),
        ) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_ban(row) for row in rows]

    @staticmethod
    async def count_active_for_guild(conn: aiosqlite.Connection, guild_id: GuildID) -> int:
        async with conn.execute(
            "SELECT COUNT(*) FROM immersion_bans WHERE guild_id = ? AND active = 1",
            (int(guild_id),),
        ) as cursor:
            row = await cursor.fetchone()
        return int(row[0])
