"""Shared fixtures for ruleguard tests."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from ruleguard.rule_engine.catalog import RuleCatalog, load_catalog


def make_rule(rule_id: str, *, tier: int = 1, patterns: list[dict] | None = None, **extra: Any):
    """Build a minimal rule document (catalog JSON shape)."""
    doc: dict[str, Any] = {
        "id": rule_id,
        "title": f"Title of {rule_id}",
        "body": f"Body of {rule_id}",
        "pillar": "architecture",
        "precedenceTier": tier,
        "patterns": patterns or [],
    }
    doc.update(extra)
    return doc


def make_module(module_id: str, *rules: dict, triggers: list[str] | None = None, **extra: Any):
    """Build a minimal module document (catalog JSON shape)."""
    doc: dict[str, Any] = {
        "id": module_id,
        "title": f"{module_id} rules",
        "triggers": triggers or [],
        "rules": list(rules),
    }
    doc.update(extra)
    return doc


@pytest.fixture
def write_catalog(tmp_path: Path) -> Callable[..., Path]:
    """Return a helper that writes module documents into a fresh catalog directory."""
    counter = {"n": 0}

    def _write(*modules: dict) -> Path:
        counter["n"] += 1
        catalog_dir = tmp_path / f"catalog{counter['n']}"
        catalog_dir.mkdir()
        for module in modules:
            (catalog_dir / f"{module['id']}.json").write_text(json.dumps(module))
        return catalog_dir

    return _write


@pytest.fixture
def small_catalog_dir(write_catalog: Callable[..., Path]) -> Path:
    """Base module with one checked and one unchecked rule, plus a tagged 'ui' module."""
    base = make_module(
        "base",
        make_rule(
            "no-empty-handlers",
            tier=0,
            patterns=[{"kind": "empty_handler", "severity": "blocking"}],
        ),
        make_rule("pure-logic", tier=2),
    )
    ui = make_module(
        "ui",
        make_rule(
            "ui-memo",
            tier=4,
            patterns=[{"kind": "memo_callback", "severity": "advisory"}],
        ),
        triggers=["tag:ui", "*.tsx"],
        references=["pure-logic"],
    )
    return write_catalog(base, ui)


@pytest.fixture(scope="session")
def bundled_catalog() -> RuleCatalog:
    return load_catalog()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Isolate tests from RULEGUARD_* variables and any ./.ruleguard.json."""
    for name in ("RULEGUARD_CATALOG", "RULEGUARD_LOG", "RULEGUARD_PORT"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
