"""
Discord integration for Relaycord.

This package connects the platform-neutral relay core to py-cord:

- **discord_platform**: ``PlatformClient`` implementation, notice rendering
  and ``discord.Message`` conversion
- **cogs**: Event listeners registered on the bot
"""
