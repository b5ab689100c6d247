"""Milestone achievements unlocked by relay activity."""
