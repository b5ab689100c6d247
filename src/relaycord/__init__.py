"""
Relaycord - Discord Language Immersion Relay

Relaycord turns a set of per-language channels into one conversation: a message
posted in one language channel is machine translated and re-posted, under the
author's name and avatar, in every other enabled language channel of the guild.

Core Components:

- **Relay Pipeline**: Gates every message on verification, opt-out, immersion
  bans and monthly budgets, then translates, fans out and records usage
- **Usage Ledger**: Per-guild and per-member monthly character counters with
  lazy monthly rollover, daily streaks and lifetime totals
- **Moderation Store**: Immersion bans, timeouts and warnings with lazy ban
  expiry and an audit log mirrored to a mod-log channel
- **Delivery Cache**: Bounded LRU/TTL pool of webhook handles used for fan-out
- **Translation Gateway**: All-or-nothing fan-out over the DeepL API
- **Achievements**: Milestones for translations, streaks and characters

Usage:
    from relaycord.main import main
    main()  # Starts the bot
"""
