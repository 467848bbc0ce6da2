"""SessionLog: append-only record of loaded modules, applied rules, and violations."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ruleguard.rule_engine.active import ActiveRuleSet
from ruleguard.rule_engine.models import (
    ChangeDescriptor,
    DuplicateRuleWarning,
    Module,
    Severity,
    TriggerMatch,
    Violation,
)

logger = logging.getLogger(__name__)


class LogEntry(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    sequence: int
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    touched_areas: tuple[str, ...] = ()
    loaded_modules: tuple[str, ...] = ()
    activations: tuple[TriggerMatch, ...] = ()
    applied_rules: tuple[str, ...] = ()
    violations: tuple[Violation, ...] = ()
    duplicate_warnings: tuple[DuplicateRuleWarning, ...] = ()


class SessionSummary(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    touched_areas: list[str]
    loaded_modules: list[str]
    blocking_count: int
    advisory_count: int
    superseded_count: int = 0


class SessionLog:
    """In-memory, append-only. Entries are frozen once recorded.

    With ``max_entries`` only the most recent entries stay in memory; ``recorded``
    still counts every entry and sequence numbers keep increasing.
    """

    def __init__(
        self, entries: Iterable[LogEntry] = (), *, max_entries: int | None = None
    ) -> None:
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be positive")
        self._entries: list[LogEntry] = list(entries)
        self._recorded = self._entries[-1].sequence if self._entries else 0
        self._written = len(self._entries)
        self._max_entries = max_entries
        self._lock = threading.Lock()

    @property
    def entries(self) -> tuple[LogEntry, ...]:
        return tuple(self._entries)

    @property
    def recorded(self) -> int:
        """Entries recorded over the log's lifetime, including ones no longer held."""
        return self._recorded

    @property
    def max_entries(self) -> int | None:
        return self._max_entries

    def __len__(self) -> int:
        return len(self._entries)

    def record(
        self,
        selected_modules: Iterable[Module],
        active_rule_set: ActiveRuleSet,
        violations: Sequence[Violation],
        *,
        change: ChangeDescriptor | None = None,
        activations: Iterable[TriggerMatch] = (),
    ) -> LogEntry:
        touched: list[str] = []
        if change is not None:
            touched = [*change.tags, *change.paths]
        with self._lock:
            self._recorded += 1
            entry = LogEntry(
                sequence=self._recorded,
                touched_areas=tuple(touched),
                loaded_modules=tuple(m.id for m in selected_modules),
                activations=tuple(activations),
                applied_rules=tuple(active_rule_set.rule_ids),
                violations=tuple(violations),
                duplicate_warnings=active_rule_set.warnings,
            )
            self._entries.append(entry)
            if self._max_entries is not None and len(self._entries) > self._max_entries:
                overflow = len(self._entries) - self._max_entries
                del self._entries[:overflow]
                self._written = max(0, self._written - overflow)
        return entry

    @staticmethod
    def summarize(entry: LogEntry) -> SessionSummary:
        blocking = sum(1 for v in entry.violations if v.is_blocking)
        advisory = sum(1 for v in entry.violations if v.severity == Severity.ADVISORY)
        superseded = sum(1 for v in entry.violations if v.superseded_by is not None)
        return SessionSummary(
            touched_areas=list(entry.touched_areas),
            loaded_modules=list(entry.loaded_modules),
            blocking_count=blocking,
            advisory_count=advisory,
            superseded_count=superseded,
        )

    def write_jsonl(self, path: Path) -> int:
        """Append entries not yet written to a JSONL file. Returns how many were written."""
        with self._lock:
            pending = self._entries[self._written :]
            if not pending:
                return 0
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as fh:
                for entry in pending:
                    fh.write(entry.model_dump_json(by_alias=True) + "\n")
            self._written = len(self._entries)
        logger.debug(f"Wrote {len(pending)} session log entries to {path}")
        return len(pending)

    @classmethod
    def read_jsonl(cls, path: Path) -> SessionLog:
        """Rebuild a log from a JSONL file written by ``write_jsonl``."""
        entries: list[LogEntry] = []
        with path.open(encoding="utf-8") as fh:
            for line in fh:
                if line.strip():
                    entries.append(LogEntry.model_validate_json(line))
        return cls(entries)
