"""
Scheduled background tasks.

- **periodic_scheduler**: Runs a coroutine on a fixed interval
"""
