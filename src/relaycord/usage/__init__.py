"""Monthly usage accounting for guilds and members."""
