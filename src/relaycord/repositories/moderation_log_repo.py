"""Audit trail of moderation actions (``moderation_logs`` table)."""

from __future__ import annotations

from typing import List

import aiosqlite

from relaycord.datatypes.discord_datatypes import GuildID, UserID
from relaycord.datatypes.moderation_datatypes import ModerationAction, ModerationLogEntry
from relaycord.util.time_utils import from_unix, to_unix, utcnow

_COLUMNS = "id, guild_id, target_id, moderator_id, action, reason, duration, metadata, created_at"


def _row_to_entry(row) -> ModerationLogEntry:
    return ModerationLogEntry(
        id=row[0],
        guild_id=GuildID(row[1]),
        target_id=UserID(row[2]),
        moderator_id=UserID(row[3]),
        action=ModerationAction(row[4]),
        reason=row[5],
        duration_seconds=row[6],
        metadata=row[7],
        created_at=from_unix(row[8]),
    )


class ModerationLogRepository:
    """Insert-and-read access to the moderation audit log."""

    @staticmethod
    async def insert(conn: aiosqlite.Connection, entry: ModerationLogEntry) -> int:
        cursor = await conn.execute(
            """
            INSERT INTO moderation_logs (guild_id, target_id, moderator_id, action, reason, duration, metadata, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                int(entry.guild_id),
                int(entry.target_id),
                int(entry.moderator_id),
                entry.action.value,
                entry.reason,
                entry.duration_seconds,
                entry.metadata,
                to_unix(entry.created_at or utcnow()),
            ),
        )
        return int(cursor.lastrowid)

    @staticmethod
    async def get_for_target(
        conn: aiosqlite.Connection, guild_id: GuildID, target_id: UserID, limit: int = 50
    ) -> List[ModerationLogEntry]:
        async with conn.execute(
            f"""
            SELECT {_COLUMNS} FROM moderation_logs
            WHERE guild_id = ? AND target_id = ?
            ORDER BY created_at DESC, id DESC
            LIMIT ?
            """,
            (int(guild_id), int(target_id), limit),
        ) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_entry(row) for row in rows]

    @staticmethod
    async def get_for_guild(
        conn: aiosqlite.Connection, guild_id: GuildID, offset: int, limit: int
    ) -> List[ModerationLogEntry]:
        async with conn.execute(
            f"""
            SELECT {_COLUMNS} FROM moderation_logs
            WHERE guild_id = ?
            ORDER BY created_at DESC, id DESC
            LIMIT ? OFFSET ?
            """,
            (int(guild_id), limit, offset),
        ) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_entry(row) for row in rows]

    @staticmethod
    async def count_for_guild(conn: aiosqlite.Connection, guild_id: GuildID) -> int:
        async with conn.execute(
            "SELECT COUNT(*) FROM moderation_logs WHERE guild_id = ?",
            (int(guild_id),),
        ) as cursor:
            row = await cursor.fetchone()
        return int(row[0])
