"""Cogs registered on the bot at startup."""
