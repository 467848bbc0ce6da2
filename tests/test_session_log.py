"""Tests for session/log.py: recording, summaries, and JSONL persistence."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from ruleguard.rule_engine.active import ActiveRuleSet
from ruleguard.rule_engine.models import (
    ChangeDescriptor,
    FileChange,
    Module,
    Rule,
    Severity,
    TriggerMatch,
    Violation,
)
from ruleguard.session.log import SessionLog


def _rule(rule_id: str) -> Rule:
    return Rule(id=rule_id, title=rule_id, body="", pillar="p", precedence_tier=1)


def _violation(rule_id: str, severity: Severity, superseded_by: str | None = None) -> Violation:
    return Violation(
        rule_id=rule_id,
        severity=severity,
        location="a.ts:1",
        message=rule_id,
        superseded_by=superseded_by,
    )


@pytest.fixture
def modules() -> list[Module]:
    return [
        Module(id="base", rules=(_rule("r1"),)),
        Module(id="ui", triggers=("tag:ui",), rules=(_rule("r2"),)),
    ]


class TestRecord:
    def test_record_captures_modules_rules_and_violations(self, modules):
        log = SessionLog()
        active = ActiveRuleSet.resolve(modules)
        change = ChangeDescriptor(tags=("ui",), files=(FileChange(path="web/App.tsx"),))
        violations = [_violation("r1", Severity.BLOCKING)]

        entry = log.record(modules, active, violations, change=change)

        assert entry.sequence == 1
        assert entry.loaded_modules == ("base", "ui")
        assert entry.applied_rules == ("r1", "r2")
        assert entry.touched_areas == ("ui", "web/App.tsx")
        assert entry.violations == tuple(violations)
        assert log.entries == (entry,)

    def test_sequence_increments(self, modules):
        log = SessionLog()
        active = ActiveRuleSet.resolve(modules)
        first = log.record(modules, active, [])
        second = log.record(modules[:1], active, [])
        assert (first.sequence, second.sequence) == (1, 2)
        assert len(log) == 2

    def test_entries_are_immutable(self, modules):
        log = SessionLog()
        entry = log.record(modules, ActiveRuleSet.resolve(modules), [])
        with pytest.raises(ValidationError):
            entry.loaded_modules = ("other",)
        assert isinstance(log.entries, tuple)

    def test_activations_recorded(self, modules):
        log = SessionLog()
        match = TriggerMatch(module_id="ui", trigger="tag:ui", target="tag", value="ui")
        entry = log.record(modules, ActiveRuleSet.resolve(modules), [], activations=[match])
        assert entry.activations == (match,)

    def test_duplicate_warnings_recorded(self):
        base = Module(id="base", rules=(_rule("X"),))
        ui = Module(id="ui", triggers=("ui",), rules=(_rule("X"),))
        active = ActiveRuleSet.resolve([base, ui])
        entry = SessionLog().record([base, ui], active, [])
        assert [w.rule_id for w in entry.duplicate_warnings] == ["X"]


class TestSummarize:
    def test_counts_by_severity(self, modules):
        log = SessionLog()
        change = ChangeDescriptor(tags=("ui",))
        entry = log.record(
            modules,
            ActiveRuleSet.resolve(modules),
            [
                _violation("r1", Severity.BLOCKING),
                _violation("r2", Severity.ADVISORY),
                _violation("r2", Severity.BLOCKING, superseded_by="r1"),
            ],
            change=change,
        )
        summary = SessionLog.summarize(entry)
        assert summary.touched_areas == ["ui"]
        assert summary.loaded_modules == ["base", "ui"]
        assert summary.blocking_count == 1
        assert summary.advisory_count == 1
        assert summary.superseded_count == 1

    def test_camel_case_serialisation(self, modules):
        entry = SessionLog().record(modules, ActiveRuleSet.resolve(modules), [])
        data = SessionLog.summarize(entry).model_dump(by_alias=True)
        assert set(data) == {
            "touchedAreas",
            "loadedModules",
            "blockingCount",
            "advisoryCount",
            "supersededCount",
        }


class TestJsonl:
    def test_write_appends_only_new_entries(self, tmp_path: Path, modules):
        path = tmp_path / "logs" / "session.jsonl"
        log = SessionLog()
        active = ActiveRuleSet.resolve(modules)
        log.record(modules, active, [])
        assert log.write_jsonl(path) == 1
        assert log.write_jsonl(path) == 0

        log.record(modules, active, [_violation("r1", Severity.BLOCKING)])
        assert log.write_jsonl(path) == 1

        lines = path.read_text().splitlines()
        assert [json.loads(line)["sequence"] for line in lines] == [1, 2]
        assert "loadedModules" in json.loads(lines[0])

    def test_round_trip(self, tmp_path: Path, modules):
        path = tmp_path / "session.jsonl"
        log = SessionLog()
        log.record(modules, ActiveRuleSet.resolve(modules), [_violation("r2", Severity.ADVISORY)])
        log.write_jsonl(path)

        restored = SessionLog.read_jsonl(path)
        assert restored.entries == log.entries
        assert restored.write_jsonl(path) == 0


class TestBounded:
    def test_oldest_entries_dropped(self, modules):
        log = SessionLog(max_entries=2)
        active = ActiveRuleSet.resolve(modules)
        for _ in range(5):
            log.record(modules, active, [])
        assert len(log) == 2
        assert [e.sequence for e in log.entries] == [4, 5]
        assert log.recorded == 5

    def test_unbounded_by_default(self, modules):
        log = SessionLog()
        active = ActiveRuleSet.resolve(modules)
        for _ in range(3):
            log.record(modules, active, [])
        assert log.max_entries is None
        assert len(log) == log.recorded == 3

    @pytest.mark.parametrize("limit", [0, -1])
    def test_rejects_non_positive_limit(self, limit):
        with pytest.raises(ValueError, match="max_entries"):
            SessionLog(max_entries=limit)

    def test_write_after_trimming_skips_nothing(self, tmp_path: Path, modules):
        path = tmp_path / "session.jsonl"
        log = SessionLog(max_entries=2)
        active = ActiveRuleSet.resolve(modules)
        log.record(modules, active, [])
        assert log.write_jsonl(path) == 1
        for _ in range(3):
            log.record(modules, active, [])
        assert log.write_jsonl(path) == 2

        sequences = [json.loads(line)["sequence"] for line in path.read_text().splitlines()]
        assert sequences == [1, 3, 4]

    def test_write_each_record_keeps_every_entry(self, tmp_path: Path, modules):
        path = tmp_path / "session.jsonl"
        log = SessionLog(max_entries=1)
        active = ActiveRuleSet.resolve(modules)
        for _ in range(3):
            log.record(modules, active, [])
            log.write_jsonl(path)
        sequences = [json.loads(line)["sequence"] for line in path.read_text().splitlines()]
        assert sequences == [1, 2, 3]

    def test_read_restores_recorded_count(self, tmp_path: Path, modules):
        path = tmp_path / "session.jsonl"
        log = SessionLog()
        active = ActiveRuleSet.resolve(modules)
        log.record(modules, active, [])
        log.record(modules, active, [])
        log.write_jsonl(path)

        restored = SessionLog.read_jsonl(path)
        assert restored.recorded == 2
        assert restored.record(modules, active, []).sequence == 3
