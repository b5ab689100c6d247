"""
Utility functions and helpers for Relaycord.

- **logger**: Colour console and rotating file logging
- **time_utils**: Conversions for timestamps and dates stored in SQLite
"""
