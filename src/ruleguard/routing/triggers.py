"""Deterministic module selection from a change's tags and file paths."""

from __future__ import annotations

import fnmatch
import logging
from collections.abc import Iterable
from pathlib import PurePosixPath

from ruleguard.rule_engine.catalog import module_sort_key
from ruleguard.rule_engine.models import ChangeDescriptor, Module, TriggerMatch, split_trigger

logger = logging.getLogger(__name__)

_GLOB_CHARS = frozenset("*?[")


def _is_glob(pattern: str) -> bool:
    return any(c in _GLOB_CHARS for c in pattern)


def _path_candidates(path: str) -> tuple[str, list[str]]:
    """Return the normalised path and its segments, lowercased."""
    normalised = path.replace("\\", "/").lower()
    segments = [s for s in PurePosixPath(normalised).parts if s not in ("/", ".")]
    return normalised, segments


def _matches_tag(pattern: str, tag: str) -> bool:
    if _is_glob(pattern):
        return fnmatch.fnmatchcase(tag, pattern)
    return pattern in tag


def _matches_path(pattern: str, path: str) -> bool:
    normalised, segments = _path_candidates(path)
    if _is_glob(pattern):
        if fnmatch.fnmatchcase(normalised, pattern):
            return True
        return any(fnmatch.fnmatchcase(s, pattern) for s in segments)
    return any(pattern in s for s in segments)


def match_triggers(module: Module, change: ChangeDescriptor) -> list[TriggerMatch]:
    """Every (trigger, tag/path) pair of a module that matches the change."""
    tags = [t.strip().lower() for t in change.tags if t.strip()]
    matches: list[TriggerMatch] = []
    for trigger in module.triggers:
        scope, pattern = split_trigger(trigger)
        if scope in (None, "tag"):
            for tag in tags:
                if _matches_tag(pattern, tag):
                    matches.append(
                        TriggerMatch(module_id=module.id, trigger=trigger, target="tag", value=tag)
                    )
        if scope in (None, "path"):
            for path in change.paths:
                if _matches_path(pattern, path):
                    matches.append(
                        TriggerMatch(
                            module_id=module.id, trigger=trigger, target="path", value=path
                        )
                    )
    return matches


def select_modules(change: ChangeDescriptor, modules: Iterable[Module]) -> list[Module]:
    """Base module always, other modules iff at least one trigger matches.

    The result is in fixed module order so the same input always yields the same list.
    """
    selected: list[Module] = []
    for module in sorted(modules, key=lambda m: module_sort_key(m.id)):
        if module.is_base or match_triggers(module, change):
            selected.append(module)
    logger.debug(f"Selected modules: {[m.id for m in selected]}")
    return selected
