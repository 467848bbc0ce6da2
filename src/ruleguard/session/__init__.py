"""Session log: audit trail of module selection and check results."""

from ruleguard.session.log import LogEntry, SessionLog, SessionSummary

__all__ = [
    "LogEntry",
    "SessionLog",
    "SessionSummary",
]
