"""
Pytest configuration and fixtures for Relaycord tests.
"""

import sys
from pathlib import Path

import pytest_asyncio

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from relaycord.database.database import Database  # noqa: E402
from relaycord.database.db_connection import ConnectionManager  # noqa: E402


@pytest_asyncio.fixture
async def connection_manager(tmp_path):
    """A fresh database file with the full schema, closed after the test."""
    manager = ConnectionManager()
    database = Database(tmp_path / "relaycord.db", manager)
    assert await database.initialize()
    yield manager
    await database.shutdown()
