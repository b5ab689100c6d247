"""
Database schema initialization.

Creates the relay tables, indexes and the schema version marker. Timestamps
are INTEGER unix seconds; calendar dates (usage reset, last active day) are
ISO ``YYYY-MM-DD`` text.
"""

import aiosqlite
from relaycord.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates and versions the relay database schema."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create all tables and indexes if they do not exist yet.

        Args:
            db: Open database connection
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._update_schema_version(db)
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized (version %d)", SCHEMA_VERSION)

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        await db.execute("""
            CREATE TABLE IF NOT EXISTS guild_configs (
                guild_id INTEGER PRIMARY KEY,
                subscription_tier TEXT NOT NULL DEFAULT 'free',
                monthly_usage INTEGER NOT NULL DEFAULT 0,
                usage_reset_date TEXT NOT NULL,
                enabled_languages TEXT NOT NULL DEFAULT '[]',
                mod_log_channel_id INTEGER,
                created_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now'))
            )
        """)

        # One row per (guild, language); replaces per-language columns
        await db.execute("""
            CREATE TABLE IF NOT EXISTS guild_language_channels (
                guild_id INTEGER NOT NULL,
                language_code TEXT NOT NULL,
                channel_id INTEGER,
                webhook_id TEXT,
                webhook_token TEXT,
                PRIMARY KEY (guild_id, language_code),
                FOREIGN KEY (guild_id) REFERENCES guild_configs(guild_id) ON DELETE CASCADE
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS global_users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL UNIQUE,
                username TEXT NOT NULL DEFAULT '',
                avatar TEXT,
                subscription_tier TEXT NOT NULL DEFAULT 'free',
                total_translations_all_time INTEGER NOT NULL DEFAULT 0,
                total_characters_all_time INTEGER NOT NULL DEFAULT 0
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS verified_users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id INTEGER NOT NULL,
                user_id INTEGER NOT NULL,
                immersion_enabled INTEGER NOT NULL DEFAULT 1,
                monthly_usage INTEGER NOT NULL DEFAULT 0,
                usage_reset_date TEXT NOT NULL,
                current_streak INTEGER NOT NULL DEFAULT 0,
                longest_streak INTEGER NOT NULL DEFAULT 0,
                last_active_date TEXT,
                total_translations INTEGER NOT NULL DEFAULT 0,
                achievements TEXT NOT NULL DEFAULT '[]',
                global_user_id INTEGER,
                show_on_leaderboard INTEGER NOT NULL DEFAULT 1,
                verified_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now')),
                UNIQUE (guild_id, user_id),
                FOREIGN KEY (global_user_id) REFERENCES global_users(id) ON DELETE SET NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS usage_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id INTEGER NOT NULL,
                user_id INTEGER NOT NULL,
                source_language TEXT NOT NULL,
                target_language TEXT NOT NULL,
                character_count INTEGER NOT NULL,
                created_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now'))
            )
        """)

        # Uniqueness of the active ban is checked on write, not constrained here
        await db.execute("""
            CREATE TABLE IF NOT EXISTS immersion_bans (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id INTEGER NOT NULL,
                user_id INTEGER NOT NULL,
                reason TEXT,
                banned_by INTEGER NOT NULL,
                banned_at INTEGER NOT NULL,
                expires_at INTEGER,
                active INTEGER NOT NULL DEFAULT 1,
                unbanned_by INTEGER,
                unbanned_at INTEGER,
                unban_reason TEXT
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS immersion_warnings (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id INTEGER NOT NULL,
                user_id INTEGER NOT NULL,
                reason TEXT NOT NULL,
                warned_by INTEGER NOT NULL,
                created_at INTEGER NOT NULL,
                active INTEGER NOT NULL DEFAULT 1
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS moderation_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id INTEGER NOT NULL,
                target_id INTEGER NOT NULL,
                moderator_id INTEGER NOT NULL,
                action TEXT NOT NULL,
                reason TEXT,
                duration INTEGER,
                metadata TEXT,
                created_at INTEGER NOT NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        await db.execute("CREATE INDEX IF NOT EXISTS idx_language_channels_channel ON guild_language_channels(channel_id)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_usage_logs_guild ON usage_logs(guild_id, created_at DESC)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_usage_logs_user ON usage_logs(user_id, created_at DESC)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_bans_lookup ON immersion_bans(guild_id, user_id, active)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_warnings_lookup ON immersion_warnings(guild_id, user_id, active)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_moderation_logs_guild ON moderation_logs(guild_id, created_at DESC)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_moderation_logs_target ON moderation_logs(guild_id, target_id, created_at DESC)")

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        await db.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
