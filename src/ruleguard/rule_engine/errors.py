"""Error types raised by the rule engine."""

from __future__ import annotations


class ConfigError(Exception):
    """Raised when the catalog or engine configuration is malformed or inconsistent."""

    def __init__(self, message: str, *, source: str | None = None) -> None:
        self.source = source
        super().__init__(f"{source}: {message}" if source else message)


class NotFoundError(LookupError):
    """Raised when a caller asks for an unknown rule or module id."""

    def __init__(self, kind: str, key: str) -> None:
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} '{key}' not found")
