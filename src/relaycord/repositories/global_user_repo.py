"""Repository for the cross-guild ``global_users`` table."""

from __future__ import annotations

import aiosqlite

from relaycord.datatypes.discord_datatypes import UserID
from relaycord.datatypes.relay_datatypes import GlobalUser


class GlobalUserRepository:
    """CRUD for global user records."""

    @staticmethod
    async def get_by_user_id(conn: aiosqlite.Connection, user_id: UserID) -> GlobalUser | None:
        async with conn.execute(
            """
            SELECT id, user_id, username, avatar, subscription_tier,
                   total_translations_all_time, total_characters_all_time
            FROM global_users
            WHERE user_id = ?
            """,
            (int(user_id),),
        ) as cursor:
            row = await cursor.fetchone()

        if row is None:
            return None

        return GlobalUser(
            id=row[0],
            user_id=UserID(row[1]),
            username=row[2] or "",
            avatar=row[3],
            subscription_tier=row[4] or "free",
            total_translations_all_time=int(row[5]),
            total_characters_all_time=int(row[6]),
        )

    @staticmethod
    async def create(conn: aiosqlite.Connection, user_id: UserID, username: str, avatar: str | None) -> None:
        await conn.execute(
            """
            INSERT INTO global_users (user_id, username, avatar)
            VALUES (?, ?, ?)
            ON CONFLICT(user_id) DO NOTHING
            """,
            (int(user_id), username, avatar),
        )

    @staticmethod
    async def update_profile(conn: aiosqlite.Connection, global_user_id: int, username: str, avatar: str | None) -> None:
        await conn.execute(
            "UPDATE global_users SET username = ?, avatar = ? WHERE id = ?",
            (username, avatar, global_user_id),
        )

    @staticmethod
    async def set_subscription_tier(conn: aiosqlite.Connection, user_id: UserID, tier: str) -> None:
        await conn.execute(
            "UPDATE global_users SET subscription_tier = ? WHERE user_id = ?",
            (tier, int(user_id)),
        )

    @staticmethod
    async def increment_lifetime(conn: aiosqlite.Connection, global_user_id: int, characters: int) -> None:
        await conn.execute(
            """
            UPDATE global_users
            SET total_translations_all_time = total_translations_all_time + 1,
                total_characters_all_time   = total_characters_all_time + ?
            WHERE id = ?
            """,
            (characters, global_user_id),
        )
