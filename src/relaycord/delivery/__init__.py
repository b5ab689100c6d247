"""Outbound webhook delivery and the handle cache."""
