"""
Database package for Relaycord.

Provides the shared aiosqlite connection with serialized write transactions,
the schema manager and the startup/shutdown coordinator.
"""
