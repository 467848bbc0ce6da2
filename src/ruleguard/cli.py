"""CLI entry point for ruleguard."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import NoReturn, cast

from pydantic import ValidationError

from ruleguard import __version__
from ruleguard.checks.source import split_unified_diff
from ruleguard.config import EngineConfig, load_config
from ruleguard.engine import RuleEngine
from ruleguard.rule_engine.catalog import load_catalog
from ruleguard.rule_engine.errors import ConfigError, NotFoundError
from ruleguard.rule_engine.models import (
    ChangeDescriptor,
    CheckReport,
    FileChange,
    Rule,
    Severity,
)

EXIT_OK = 0
EXIT_BLOCKING = 1  # the change violates a blocking rule
EXIT_USAGE = 2  # bad arguments or unreadable input (argparse uses 2 as well)
EXIT_CONFIG_ERROR = 3  # the rule system itself is broken
EXIT_NOT_FOUND = 4


def _config(args: argparse.Namespace) -> EngineConfig:
    config = load_config(cast(Path | None, args.config))
    catalog = cast(Path | None, getattr(args, "catalog", None))
    if catalog is not None:
        config.catalog_path = catalog
    return config


def _fail(message: str, code: int) -> NoReturn:
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(code)


def _read_input(path: Path) -> str:
    if not path.exists():
        _fail(f"file not found: {path}", EXIT_USAGE)
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        _fail(f"cannot read {path}: {e}", EXIT_USAGE)


def _read_descriptor(source: str | None) -> ChangeDescriptor:
    if source is None:
        return ChangeDescriptor()
    if source == "-":
        try:
            text = sys.stdin.read()
        except UnicodeDecodeError as e:
            _fail(f"cannot read stdin: {e}", EXIT_USAGE)
    else:
        text = _read_input(Path(source))
    try:
        return ChangeDescriptor.model_validate_json(text)
    except ValidationError as e:
        _fail(f"invalid change descriptor: {e}", EXIT_USAGE)


def _build_change(args: argparse.Namespace) -> ChangeDescriptor:
    base = _read_descriptor(cast(str | None, getattr(args, "descriptor", None)))
    tags = list(base.tags) + list(cast(list[str], args.tag or []))
    files = list(base.files)

    for path in cast(list[Path], args.file or []):
        files.append(FileChange(path=str(path), content=_read_input(path)))

    for path in cast(list[Path], getattr(args, "diff", None) or []):
        for target, hunk_text in split_unified_diff(_read_input(path)):
            files.append(FileChange(path=target, diff=hunk_text))

    return ChangeDescriptor(tags=tuple(tags), files=tuple(files))


def _print_report(report: CheckReport) -> None:
    print(f"Modules: {', '.join(report.loaded_modules)}")
    for warning in report.duplicate_warnings:
        print(f"warning: {warning.message}")
    if not report.violations:
        print("No violations.")
    for v in report.violations:
        label = v.severity.upper()
        line = f"{label:<9} {v.rule_id:<32} {v.location}  {v.message}"
        if v.superseded_by:
            line += f"  ({v.note})"
        print(line)
    blocking = sum(1 for v in report.violations if v.is_blocking)
    advisory = sum(1 for v in report.violations if v.severity == Severity.ADVISORY)
    status = "OK" if report.ok else "FAILED"
    print(f"\n{status}: {blocking} blocking, {advisory} advisory")


def _cmd_check(args: argparse.Namespace) -> None:
    config = _config(args)
    if args.log is not None:
        config.log_path = cast(Path, args.log)
    change = _build_change(args)
    engine = RuleEngine.from_config(config)
    report = engine.evaluate(change)

    if args.format == "json":
        print(report.to_json())
    else:
        _print_report(report)

    if not report.ok:
        sys.exit(EXIT_BLOCKING)


def _format_rule_line(rule: Rule) -> str:
    status = "" if rule.checked else "  [unchecked]"
    return f"tier {rule.precedence_tier}  {rule.id:<32} {rule.module_id:<20} {rule.title}{status}"


def _cmd_rules(args: argparse.Namespace) -> None:
    config = _config(args)
    engine = RuleEngine.from_config(config)
    if args.tag or args.file:
        change = ChangeDescriptor(
            tags=tuple(args.tag or []),
            files=tuple(FileChange(path=str(p)) for p in args.file or []),
        )
        rules = list(engine.active_rules(change))
    else:
        rules = engine.catalog.all_rules()
    for rule in rules:
        print(_format_rule_line(rule))


def _cmd_rule(args: argparse.Namespace) -> None:
    config = _config(args)
    catalog = load_catalog(config.catalog_path)
    rule = catalog.get_rule(cast(str, args.rule_id))
    print(f"{rule.id}: {rule.title}")
    print(f"Module: {rule.module_id}  Pillar: {rule.pillar}  Tier: {rule.precedence_tier}")
    if rule.conflicts_with:
        print(f"Conflicts with: {', '.join(rule.conflicts_with)}")
    print()
    print(rule.body)
    print()
    if not rule.patterns:
        print("Patterns: none (unchecked, advisory only)")
    for spec in rule.patterns:
        extra = f" exempt in @{spec.exempt_region}" if spec.exempt_region else ""
        print(f"Pattern: {spec.kind} [{spec.severity}]{extra}")


def _cmd_modules(args: argparse.Namespace) -> None:
    config = _config(args)
    catalog = load_catalog(config.catalog_path)
    for module in catalog.modules():
        triggers = "always active" if module.is_base else ", ".join(module.triggers)
        print(f"{module.id:<20} {len(module.rule_ids):>3} rules  {triggers}")


def _cmd_validate_catalog(args: argparse.Namespace) -> None:
    config = _config(args)
    catalog = load_catalog(config.catalog_path)
    rules = catalog.all_rules()
    unchecked = catalog.unchecked_rules()
    print(
        f"Catalog OK: {len(catalog.modules())} modules, {len(rules)} rules "
        f"({len(unchecked)} unchecked)"
    )


def _cmd_serve(args: argparse.Namespace) -> None:
    from ruleguard.server.runner import run_server

    run_server(_config(args))


def _add_catalog_arg(parser: argparse.ArgumentParser) -> None:
    _ = parser.add_argument(
        "--catalog", type=Path, default=None, help="Catalog directory or module file"
    )


def _add_scope_args(parser: argparse.ArgumentParser) -> None:
    _ = parser.add_argument(
        "--tag", action="append", default=None, help="Touched-area tag (repeatable)"
    )
    _ = parser.add_argument(
        "--file", action="append", type=Path, default=None, help="File to check (repeatable)"
    )


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="ruleguard",
        description="Route rule modules for a change and check it against them",
    )
    _ = parser.add_argument(
        "-V", "--version", action="version", version=f"ruleguard {__version__}"
    )
    _ = parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    _ = parser.add_argument(
        "--config", type=Path, default=None, help="Config file (default: ./.ruleguard.json)"
    )
    subparsers = parser.add_subparsers(dest="command")

    # check subcommand
    check_p = subparsers.add_parser("check", help="Check a change against the active rules")
    _ = check_p.add_argument(
        "descriptor", nargs="?", default=None, help="ChangeDescriptor JSON file, or - for stdin"
    )
    _add_scope_args(check_p)
    _ = check_p.add_argument(
        "--diff", action="append", type=Path, default=None, help="Unified diff file (repeatable)"
    )
    _ = check_p.add_argument("--log", type=Path, default=None, help="Append session log JSONL")
    _ = check_p.add_argument("--format", choices=["text", "json"], default="text")
    _add_catalog_arg(check_p)

    # rules subcommand
    rules_p = subparsers.add_parser("rules", help="List rules (active ones with --tag/--file)")
    _add_scope_args(rules_p)
    _add_catalog_arg(rules_p)

    # rule subcommand
    rule_p = subparsers.add_parser("rule", help="Show one rule")
    _ = rule_p.add_argument("rule_id", help="Rule id")
    _add_catalog_arg(rule_p)

    # modules subcommand
    modules_p = subparsers.add_parser("modules", help="List modules and their triggers")
    _add_catalog_arg(modules_p)

    # validate-catalog subcommand
    validate_p = subparsers.add_parser("validate-catalog", help="Load and validate the catalog")
    _add_catalog_arg(validate_p)

    # serve subcommand
    serve_p = subparsers.add_parser("serve", help="Start the HTTP API server")
    _add_catalog_arg(serve_p)

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    dispatch = {
        "check": _cmd_check,
        "rules": _cmd_rules,
        "rule": _cmd_rule,
        "modules": _cmd_modules,
        "validate-catalog": _cmd_validate_catalog,
        "serve": _cmd_serve,
    }
    command = cast(str | None, args.command)
    handler = dispatch.get(command) if command is not None else None
    if handler is None:
        parser.print_help()
        sys.exit(EXIT_USAGE)

    try:
        handler(args)
    except ConfigError as e:
        _fail(f"catalog/config error: {e}", EXIT_CONFIG_ERROR)
    except NotFoundError as e:
        _fail(str(e), EXIT_NOT_FOUND)
