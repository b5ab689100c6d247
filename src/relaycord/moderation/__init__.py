"""
Immersion moderation for Relaycord.

Bans, timeouts and warnings scoped to the immersion channels of one guild,
independent of Discord's own server bans.
"""
