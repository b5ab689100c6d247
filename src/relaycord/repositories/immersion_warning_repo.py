"""Persistent storage for immersion warnings."""

from __future__ import annotations

import datetime
from typing import List

import aiosqlite

from relaycord.datatypes.discord_datatypes import GuildID, UserID
from relaycord.datatypes.moderation_datatypes import ModerationWarning
from relaycord.util.time_utils import from_unix, to_unix


def _row_to_warning(row) -> ModerationWarning:
    return ModerationWarning(
        id=row[0],
        guild_id=GuildID(row[1]),
        user_id=UserID(row[2]),
        reason=row[3],
        warned_by=UserID(row[4]),
        created_at=from_unix(row[5]),
        active=bool(row[6]),
    )


class ImmersionWarningRepository:
    """Low-level CRUD for the ``immersion_warnings`` table."""

    @staticmethod
    async def create(
        conn: aiosqlite.Connection,
        guild_id: GuildID,
        user_id: UserID,
        warned_by: UserID,
        reason: str,
        created_at: datetime.datetime,
    ) -> int:
        cursor = await conn.execute(
            """
            INSERT INTO immersion_warnings (guild_id, user_id, reason, warned_by, created_at, active)
            VALUES (?, ?, ?, ?, ?, 1)
            """,
            (int(guild_id), int(user_id), reason, int(warned_by), to_unix(created_at)),
        )
        return int(cursor.lastrowid)

    @staticmethod
    async def get(conn: aiosqlite.Connection, warning_id: int) -> ModerationWarning | None:
        async with conn.execute(
            """
            SELECT id, guild_id, user_id, reason, warned_by, created_at, active
            FROM immersion_warnings WHERE id = ?
            """,
            (warning_id,),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_warning(row) if row is not None else None

    @staticmethod
    async def count_active(conn: aiosqlite.Connection, guild_id: GuildID, user_id: UserID) -> int:
        async with conn.execute(
            "SELECT COUNT(*) FROM immersion_warnings WHERE guild_id = ? AND user_id = ? AND active = 1",
            (int(guild_id), int(user_id)),
        ) as cursor:
            row = await cursor.fetchone()
        return int(row[0])

    @staticmethod
    async def get_for_user(
        conn: aiosqlite.Connection,
        guild_id: GuildID,
        user_id: UserID,
        active_only: bool = True,
        limit: int | None = None,
    ) -> List[ModerationWarning]:
        query = """
            SELECT id, guild_id, user_id, reason, warned_by, created_at, active
            FROM immersion_warnings
            WHERE guild_id = ? AND user_id = ?
        """
        params: list = [int(guild_id), int(user_id)]
        if active_only:
            query += " AND active = 1"
        query += " ORDER BY created_at DESC, id DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        async with conn.execute(query, params) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_warning(row) for row in rows]

    @staticmethod
    async def deactivate_all(conn: aiosqlite.Connection, guild_id: GuildID, user_id: UserID) -> int:
        cursor = await conn.execute(
            "UPDATE immersion_warnings SET active = 0 WHERE guild_id = ? AND user_id = ? AND active = 1",
            (int(guild_id), int(user_id)),
        )
        return cursor.rowcount

    @staticmethod
    async def deactivate(conn: aiosqlite.Connection, warning_id: int) -> None:
        await conn.execute("UPDATE immersion_warnings SET active = 0 WHERE id = ?", (warning_id,))
