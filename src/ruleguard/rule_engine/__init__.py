"""Rule engine: models, catalog loading, and active rule set resolution."""

from ruleguard.rule_engine.active import ActiveRuleSet
from ruleguard.rule_engine.catalog import MODULE_ORDER, RuleCatalog, load_catalog
from ruleguard.rule_engine.errors import ConfigError, NotFoundError
from ruleguard.rule_engine.models import (
    ChangeDescriptor,
    CheckReport,
    CheckResult,
    DuplicateRuleWarning,
    FileChange,
    Module,
    PatternKind,
    PatternSpec,
    Rule,
    Severity,
    TriggerMatch,
    Violation,
)

__all__ = [
    "MODULE_ORDER",
    "ActiveRuleSet",
    "ChangeDescriptor",
    "CheckReport",
    "CheckResult",
    "ConfigError",
    "DuplicateRuleWarning",
    "FileChange",
    "Module",
    "NotFoundError",
    "PatternKind",
    "PatternSpec",
    "Rule",
    "RuleCatalog",
    "Severity",
    "TriggerMatch",
    "Violation",
    "load_catalog",
]
