"""
Database lifecycle coordinator.

Opens the shared connection, creates the schema and closes everything on
shutdown. Repositories and services do their own SQL through the connection
manager; this module only owns startup and teardown.
"""

from __future__ import annotations

from pathlib import Path

from relaycord.database.db_connection import ConnectionManager, db_connection
from relaycord.database.db_schema import SchemaManager
from relaycord.util.logger import get_logger

logger = get_logger("database")

DB_PATH = Path("./data/relaycord.db").resolve()


class Database:
    """
    Startup/shutdown wrapper around a :class:`ConnectionManager`.

    Lifecycle:
        1. ``await initialize()`` at program startup
        2. repositories use ``connection_manager.read()`` / ``transaction()``
        3. ``await shutdown()`` at program end
    """

    def __init__(self, db_path: Path = DB_PATH, connection_manager: ConnectionManager | None = None):
        self.db_path = db_path
        self.connection_manager = connection_manager or db_connection
        self._initialized = False

    async def initialize(self) -> bool:
        """
        Open the connection and create the schema.

        Returns:
            True if initialization succeeded, False otherwise
        """
        if self._initialized:
            logger.debug("[DATABASE] Already initialized, skipping")
            return True

        try:
            await self.connection_manager.open(self.db_path)
            await SchemaManager.initialize_schema(self.connection_manager.connection)
        except Exception as e:
            logger.error("[DATABASE] Database initialization failed: %s", e)
            return False

        self._initialized = True
        logger.info("[DATABASE] Database initialized at %s", self.db_path)
        return True

    async def shutdown(self) -> None:
        if not self._initialized:
            return

        await self.connection_manager.close()
        self._initialized = False
        logger.info("[DATABASE] Database shutdown complete")


database = Database()


def get_db() -> Database:
    return database
