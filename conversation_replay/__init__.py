"""Conversation Replay — animated conversation demos from YAML."""

__version__ = "1.0.0"
