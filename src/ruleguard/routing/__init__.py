"""Trigger matching: decide which optional rule modules a change activates."""

from ruleguard.routing.triggers import match_triggers, select_modules

__all__ = [
    "match_triggers",
    "select_modules",
]
