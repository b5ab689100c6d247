"""Append-only storage for the ``usage_logs`` table."""

from __future__ import annotations

from typing import List

import aiosqlite

from relaycord.datatypes.discord_datatypes import GuildID, UserID
from relaycord.datatypes.relay_datatypes import UsageLogEntry
from relaycord.util.time_utils import from_unix, to_unix, utcnow


class UsageLogRepository:
    """Insert and read usage log entries. Rows are never updated or deleted."""

    @staticmethod
    async def insert(conn: aiosqlite.Connection, entry: UsageLogEntry) -> None:
        await conn.execute(
            """
            INSERT INTO usage_logs (guild_id, user_id, source_language, target_language, character_count, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                int(entry.guild_id),
                int(entry.user_id),
                entry.source_language,
                entry.target_languages,
                entry.character_count,
                to_unix(entry.created_at or utcnow()),
            ),
        )

    @staticmethod
    async def get_recent_for_guild(
        conn: aiosqlite.Connection, guild_id: GuildID, limit: int = 50
    ) -> List[UsageLogEntry]:
        async with conn.execute(
            """
            SELECT guild_id, user_id, source_language, target_language, character_count, created_at
            FROM usage_logs
            WHERE guild_id = ?
            ORDER BY created_at DESC, id DESC
            LIMIT ?
            """,
            (int(guild_id), limit),
        ) as cursor:
            rows = await cursor.fetchall()

        return [
            UsageLogEntry(
                guild_id=GuildID(row[0]),
                user_id=UserID(row[1]),
                source_language=row[2],
                target_languages=row[3],
                character_count=int(row[4]),
                created_at=from_unix(row[5]),
            )
            for row in rows
        ]
