"""Slash commands exposed by the potluck bot."""

from .register import register_commands

__all__ = ["register_commands"]
