"""RuleCatalog: load module files, validate them, and query rules."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Sequence
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from types import MappingProxyType
from typing import Any

from pydantic import ValidationError

from ruleguard.rule_engine.errors import ConfigError, NotFoundError
from ruleguard.rule_engine.models import BASE_MODULE_ID, Module, Rule

logger = logging.getLogger(__name__)

# Fixed declaration order; later modules win rule id clashes.
MODULE_ORDER: tuple[str, ...] = (
    BASE_MODULE_ID,
    "ui",
    "backend-data",
    "perf-scale",
    "workflow-debugging",
)

_ORDER_INDEX: dict[str, int] = {mid: i for i, mid in enumerate(MODULE_ORDER)}


def module_sort_key(module_id: str) -> tuple[int, str]:
    """Known modules in MODULE_ORDER, then any other module by id."""
    return (_ORDER_INDEX.get(module_id, len(MODULE_ORDER)), module_id)


def rule_sort_key(rule: Rule) -> tuple[int, str]:
    return (rule.precedence_tier, rule.id)


class RuleCatalog:
    """Immutable set of modules and the rules they author."""

    def __init__(self, modules: Iterable[Module], *, source: str = "<memory>") -> None:
        ordered = sorted(modules, key=lambda m: module_sort_key(m.id))
        _validate(ordered, source)
        self.source = source
        self._modules: tuple[Module, ...] = tuple(ordered)
        self._modules_by_id = MappingProxyType({m.id: m for m in ordered})

        by_id: dict[str, Rule] = {}
        owners: dict[str, list[str]] = {}
        for module in ordered:
            for rule in module.rules:
                by_id[rule.id] = rule
                owners.setdefault(rule.id, []).append(module.id)
        self._rules_by_id = MappingProxyType(by_id)
        self._owners = MappingProxyType({k: tuple(v) for k, v in owners.items()})
        self._sorted: tuple[Rule, ...] = tuple(sorted(by_id.values(), key=rule_sort_key))

    def __repr__(self) -> str:
        return f"RuleCatalog(source={self.source!r}, modules={[m.id for m in self._modules]})"

    def get_rule(self, rule_id: str) -> Rule:
        try:
            return self._rules_by_id[rule_id]
        except KeyError:
            raise NotFoundError("rule", rule_id) from None

    def all_rules(self) -> list[Rule]:
        """Rules ordered by (precedence tier, id), one per id."""
        return list(self._sorted)

    def unchecked_rules(self) -> list[Rule]:
        return [r for r in self._sorted if not r.checked]

    def modules(self) -> list[Module]:
        return list(self._modules)

    def get_module(self, module_id: str) -> Module:
        try:
            return self._modules_by_id[module_id]
        except KeyError:
            raise NotFoundError("module", module_id) from None

    @property
    def base_module(self) -> Module:
        return self._modules_by_id[BASE_MODULE_ID]

    def owners(self, rule_id: str) -> tuple[str, ...]:
        """Ids of the modules authoring a rule, in module order."""
        return self._owners.get(rule_id, ())


def _validate(modules: Sequence[Module], source: str) -> None:
    seen_modules: set[str] = set()
    for module in modules:
        if module.id in seen_modules:
            raise ConfigError(f"duplicate module id '{module.id}'", source=source)
        seen_modules.add(module.id)

        seen_rules: set[str] = set()
        for rule in module.rules:
            if rule.id in seen_rules:
                raise ConfigError(
                    f"module '{module.id}' declares rule id '{rule.id}' more than once",
                    source=source,
                )
            seen_rules.add(rule.id)

    if BASE_MODULE_ID not in seen_modules:
        raise ConfigError(f"catalog has no '{BASE_MODULE_ID}' module", source=source)

    known_rules = {r.id for m in modules for r in m.rules}
    for module in modules:
        for ref in module.references:
            if ref not in known_rules:
                raise ConfigError(
                    f"module '{module.id}' references unknown rule '{ref}'", source=source
                )
        for rule in module.rules:
            for other in rule.conflicts_with:
                if other not in known_rules:
                    raise ConfigError(
                        f"rule '{rule.id}' in module '{module.id}' "
                        f"conflicts with unknown rule '{other}'",
                        source=source,
                    )


def _format_validation_error(err: ValidationError) -> str:
    parts = []
    for item in err.errors():
        loc = ".".join(str(p) for p in item["loc"]) or "<root>"
        parts.append(f"{loc}: {item['msg']}")
    return "; ".join(parts)


def parse_module(data: Any, *, source: str) -> Module:
    """Validate one decoded module document and stamp its rules with the module id."""
    if not isinstance(data, dict):
        raise ConfigError("module document must be a JSON object", source=source)
    try:
        module = Module.model_validate(data)
    except ValidationError as e:
        module_id = data.get("id", "?")
        raise ConfigError(
            f"invalid module '{module_id}': {_format_validation_error(e)}", source=source
        ) from e
    rules = tuple(r.model_copy(update={"module_id": module.id}) for r in module.rules)
    return module.model_copy(update={"rules": rules})


def _read_module(entry: Path | Traversable) -> Module:
    source = str(entry)
    try:
        with entry.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid JSON: {e}", source=source) from e
    except OSError as e:
        raise ConfigError(f"cannot read module file: {e}", source=source) from e
    return parse_module(data, source=source)


def _module_entries(source: Path | str | None) -> tuple[str, list[Path | Traversable]]:
    if source is None:
        pkg = resources.files("ruleguard.catalog")
        entries: list[Path | Traversable] = [
            e for e in pkg.iterdir() if e.is_file() and e.name.endswith(".json")
        ]
        return "ruleguard.catalog", sorted(entries, key=lambda e: e.name)

    path = Path(source)
    if path.is_dir():
        return str(path), sorted(path.glob("*.json"))
    if path.is_file():
        return str(path), [path]
    raise ConfigError("catalog source does not exist", source=str(path))


def load_catalog(source: Path | str | None = None) -> RuleCatalog:
    """Load a catalog from a directory of module files, one module file, or the bundled set.

    Raises ConfigError on the first problem; no partial catalog is ever returned.
    """
    label, entries = _module_entries(source)
    if not entries:
        raise ConfigError("no module files (*.json) found", source=label)

    modules = [_read_module(entry) for entry in entries]
    catalog = RuleCatalog(modules, source=label)
    logger.info(
        f"Loaded catalog {label}: {len(modules)} modules, {len(catalog.all_rules())} rules"
    )
    return catalog
