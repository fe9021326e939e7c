"""Reliable submission and idempotent scoring of practice-session answers."""

__version__ = "0.1.0"
