"""Crypto portfolio tracker: technical analysis and entry-signal engine."""
