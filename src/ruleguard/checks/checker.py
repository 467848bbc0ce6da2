"""PatternChecker: apply the pattern specs of an active rule set to a change."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from ruleguard.checks.detectors import DETECTORS, Detector, Finding
from ruleguard.checks.source import SourceView, path_matches
from ruleguard.rule_engine.active import ActiveRuleSet
from ruleguard.rule_engine.errors import ConfigError
from ruleguard.rule_engine.models import (
    ChangeDescriptor,
    CheckResult,
    FileChange,
    PatternKind,
    PatternSpec,
    Rule,
    Violation,
)

logger = logging.getLogger(__name__)

CheckInput = ChangeDescriptor | FileChange | Iterable[FileChange]


def _files(content: CheckInput) -> list[FileChange]:
    if isinstance(content, ChangeDescriptor):
        return list(content.files)
    if isinstance(content, FileChange):
        return [content]
    return list(content)


def _violation_key(v: Violation) -> tuple[str, int, int, str, str]:
    return (v.path, v.line or 0, v.column or 0, v.rule_id, v.message)


class PatternChecker:
    """Stateless checker. ``check`` is a pure function of its arguments."""

    def __init__(self, detectors: Mapping[PatternKind, Detector] | None = None) -> None:
        self._detectors = dict(DETECTORS if detectors is None else detectors)

    def check(self, content: CheckInput, active_rule_set: ActiveRuleSet) -> CheckResult:
        """Scan every file against every pattern of every checked rule.

        Violations are ordered by path, line, column and rule id. Conflicting
        violations are annotated by ``active_rule_set.arbitrate``.
        """
        files = _files(content)
        violations: list[Violation] = []
        for change in files:
            view = SourceView.from_change(change)
            for rule in active_rule_set:
                for spec in rule.patterns:
                    violations.extend(self._apply(rule, spec, view))

        violations.sort(key=_violation_key)
        result = CheckResult(violations=tuple(active_rule_set.arbitrate(violations)))
        logger.debug(
            f"Checked {len(files)} file(s) against {len(active_rule_set)} rule(s): "
            f"{len(result.violations)} violation(s), ok={result.ok}"
        )
        return result

    def _apply(self, rule: Rule, spec: PatternSpec, view: SourceView) -> list[Violation]:
        if spec.applies_to and not path_matches(view.path, spec.applies_to):
            return []
        detector = self._detectors.get(spec.kind)
        if detector is None:
            raise ConfigError(f"no detector registered for pattern kind '{spec.kind}'")

        if not view.line_numbers and spec.kind != PatternKind.FILE_LENGTH:
            return []

        findings = detector(spec, view)
        exempt = view.region_lines(spec.exempt_region) if spec.exempt_region else frozenset()

        violations: list[Violation] = []
        for finding in findings:
            if finding.line is not None:
                if not view.is_reportable(finding.lines or (finding.line,)):
                    continue
                if finding.line in exempt:
                    continue
            violations.append(_to_violation(rule, spec, view.path, finding))
        return violations


def _to_violation(rule: Rule, spec: PatternSpec, path: str, finding: Finding) -> Violation:
    message = f"{rule.title}: {finding.detail}" if finding.detail else rule.title
    if finding.line is None:
        location = f"file:{path}"
    else:
        location = f"{path}:{finding.line}"
    return Violation(
        rule_id=rule.id,
        severity=spec.severity,
        location=location,
        message=message,
        path=path,
        line=finding.line,
        column=finding.column,
    )


def check(content: CheckInput, active_rule_set: ActiveRuleSet) -> CheckResult:
    """Module-level shortcut for ``PatternChecker().check``."""
    return PatternChecker().check(content, active_rule_set)
