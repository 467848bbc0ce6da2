"""RuleEngine: select modules, resolve rules, check content, log, and report."""

from __future__ import annotations

import logging
from pathlib import Path

from ruleguard.checks.checker import PatternChecker
from ruleguard.config import EngineConfig, load_config
from ruleguard.routing.triggers import match_triggers, select_modules
from ruleguard.rule_engine.active import ActiveRuleSet
from ruleguard.rule_engine.catalog import RuleCatalog, load_catalog
from ruleguard.rule_engine.errors import ConfigError
from ruleguard.rule_engine.models import ChangeDescriptor, CheckReport, Module
from ruleguard.session.log import SessionLog

logger = logging.getLogger(__name__)


class RuleEngine:
    """Holds the immutable catalog; every evaluate() call is independent."""

    def __init__(
        self,
        catalog: RuleCatalog,
        *,
        log: SessionLog | None = None,
        checker: PatternChecker | None = None,
        log_path: Path | None = None,
    ) -> None:
        self.catalog = catalog
        self.log = log if log is not None else SessionLog()
        self.log_path = log_path  # when set, every evaluation is appended here at once
        self._checker = checker or PatternChecker()

    @classmethod
    def from_config(
        cls, config: EngineConfig | None = None, *, log: SessionLog | None = None
    ) -> RuleEngine:
        """Load the catalog named by the config (bundled catalog when unset)."""
        if config is None:
            config = load_config()
        return cls(load_catalog(config.catalog_path), log=log, log_path=config.log_path)

    def select(self, change: ChangeDescriptor) -> list[Module]:
        return select_modules(change, self.catalog.modules())

    def active_rules(self, change: ChangeDescriptor) -> ActiveRuleSet:
        return ActiveRuleSet.resolve(self.select(change), self.catalog)

    def evaluate(self, change: ChangeDescriptor) -> CheckReport:
        selected = self.select(change)
        activations = [match for module in selected for match in match_triggers(module, change)]
        active = ActiveRuleSet.resolve(selected, self.catalog)
        result = self._checker.check(change, active)
        self.log.record(selected, active, result.violations, change=change, activations=activations)
        if self.log_path is not None:
            try:
                self.log.write_jsonl(self.log_path)
            except OSError as e:
                source = str(self.log_path)
                raise ConfigError(f"cannot write session log: {e}", source=source) from e

        report = CheckReport(
            ok=result.ok,
            loaded_modules=[m.id for m in selected],
            violations=list(result.violations),
            duplicate_warnings=list(active.warnings),
            unchecked_rules=[r.id for r in active.unchecked_rules()],
        )
        blocking = sum(1 for v in report.violations if v.is_blocking)
        logger.info(
            f"Evaluated change: modules={report.loaded_modules}, "
            f"violations={len(report.violations)}, blocking={blocking}, ok={report.ok}"
        )
        return report
