"""Administrative guild configuration: language channels, plans, verification."""
