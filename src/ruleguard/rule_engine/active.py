"""ActiveRuleSet: the resolved, deduplicated, precedence-ordered rules for one change."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence

from ruleguard.rule_engine.catalog import RuleCatalog, module_sort_key, rule_sort_key
from ruleguard.rule_engine.errors import NotFoundError
from ruleguard.rule_engine.models import DuplicateRuleWarning, Module, Rule, Violation

logger = logging.getLogger(__name__)


class ActiveRuleSet:
    """Request-scoped view over the rules of the selected modules. Never persisted."""

    def __init__(
        self,
        rules: Iterable[Rule],
        *,
        module_ids: Sequence[str] = (),
        warnings: Sequence[DuplicateRuleWarning] = (),
    ) -> None:
        self._rules: tuple[Rule, ...] = tuple(sorted(rules, key=rule_sort_key))
        self._by_id: dict[str, Rule] = {r.id: r for r in self._rules}
        self.module_ids: tuple[str, ...] = tuple(module_ids)
        self.warnings: tuple[DuplicateRuleWarning, ...] = tuple(warnings)

    @classmethod
    def resolve(
        cls,
        selected_modules: Iterable[Module],
        catalog: RuleCatalog | None = None,
    ) -> ActiveRuleSet:
        """Merge the rules of the selected modules.

        Modules are walked in fixed module order. A rule id authored by two modules
        keeps the later module's rule and records a DuplicateRuleWarning. Referenced
        rules are looked up in the catalog (or among the selected modules).
        """
        modules: list[Module] = []
        seen: set[str] = set()
        for module in sorted(selected_modules, key=lambda m: module_sort_key(m.id)):
            if module.id not in seen:
                seen.add(module.id)
                modules.append(module)

        chosen: dict[str, Rule] = {}
        author: dict[str, str] = {}
        warnings: list[DuplicateRuleWarning] = []
        for module in modules:
            for rule in module.rules:
                previous = author.get(rule.id)
                if previous is not None:
                    warning = DuplicateRuleWarning(
                        rule_id=rule.id,
                        kept_module=module.id,
                        dropped_module=previous,
                        message=(
                            f"Rule '{rule.id}' declared by '{previous}' and '{module.id}'; "
                            f"using '{module.id}'"
                        ),
                    )
                    logger.warning(warning.message)
                    warnings.append(warning)
                chosen[rule.id] = rule
                author[rule.id] = module.id

        for module in modules:
            for ref in module.references:
                if ref in chosen:
                    continue
                if catalog is not None:
                    chosen[ref] = catalog.get_rule(ref)
                else:
                    raise NotFoundError("rule", ref)

        return cls(chosen.values(), module_ids=[m.id for m in modules], warnings=warnings)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._by_id

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules

    @property
    def rule_ids(self) -> list[str]:
        return [r.id for r in self._rules]

    def get(self, rule_id: str) -> Rule:
        try:
            return self._by_id[rule_id]
        except KeyError:
            raise NotFoundError("rule", rule_id) from None

    def unchecked_rules(self) -> list[Rule]:
        return [r for r in self._rules if not r.checked]

    def arbitrate(self, violations: Sequence[Violation]) -> list[Violation]:
        """Annotate violations whose fix conflicts with a higher-precedence violation.

        Two violations conflict when they share a location and either rule lists the
        other in conflicts_with. The lower tier (then lower id) wins; the other is
        kept and marked superseded.
        """
        by_location: dict[str, list[Violation]] = {}
        for v in violations:
            by_location.setdefault(v.location, []).append(v)

        winners: dict[int, Rule] = {}
        for group in by_location.values():
            for v in group:
                rule = self._by_id.get(v.rule_id)
                if rule is None:
                    continue
                for other in group:
                    other_rule = self._by_id.get(other.rule_id)
                    if other_rule is None or other_rule.id == rule.id:
                        continue
                    if not _conflict(rule, other_rule):
                        continue
                    if rule_sort_key(other_rule) < rule_sort_key(rule):
                        best = winners.get(id(v))
                        if best is None or rule_sort_key(other_rule) < rule_sort_key(best):
                            winners[id(v)] = other_rule

        result: list[Violation] = []
        for v in violations:
            winner = winners.get(id(v))
            if winner is None:
                result.append(v)
                continue
            note = f"superseded by tier-{winner.precedence_tier} rule {winner.id}"
            result.append(v.model_copy(update={"superseded_by": winner.id, "note": note}))
        return result


def _conflict(a: Rule, b: Rule) -> bool:
    return b.id in a.conflicts_with or a.id in b.conflicts_with
