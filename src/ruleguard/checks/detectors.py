"""Detectors: one pure function per pattern kind.

Each detector takes a PatternSpec and a SourceView and returns Findings.
A finding with ``line=None`` applies to the whole file.
"""

from __future__ import annotations

import ast
import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass

from ruleguard.checks.source import SourceView
from ruleguard.rule_engine.models import PatternKind, PatternSpec


@dataclass(frozen=True)
class Finding:
    line: int | None
    column: int | None = None
    detail: str = ""
    lines: tuple[int, ...] = ()


Detector = Callable[[PatternSpec, SourceView], list[Finding]]


def _span_finding(view: SourceView, start: int, end: int, detail: str) -> Finding:
    line, column = view.position(start)
    return Finding(line=line, column=column, detail=detail, lines=view.span_lines(start, end))


# --- empty exception handlers ---

_JS_EMPTY_CATCH_RE = re.compile(
    r"\bcatch\b\s*(?:\([^)]*\))?\s*\{(?:\s|//[^\n]*|/\*.*?\*/)*\}",
    re.DOTALL,
)
_JS_EMPTY_PROMISE_CATCH_RE = re.compile(
    r"\.catch\(\s*(?:\([^)]*\)|\w+)\s*=>\s*\{\s*\}\s*\)",
)
_PY_EXCEPT_RE = re.compile(
    r"^([ \t]*)except\b[^\n]*?:[ \t]*(?P<inline>[^\n#]*?)[ \t]*(?:#[^\n]*)?$"
)
_PY_NOOP = frozenset({"pass", "..."})


def _python_empty_handlers_ast(view: SourceView, tree: ast.AST) -> list[Finding]:
    findings: list[Finding] = []
    for node in ast.walk(tree):
        if not isinstance(node, ast.ExceptHandler):
            continue
        if all(_is_noop(stmt) for stmt in node.body):
            first = view.real_line(node.lineno - 1)
            last = view.real_line((node.end_lineno or node.lineno) - 1)
            findings.append(
                Finding(
                    line=first,
                    column=node.col_offset + 1,
                    detail="exception handler swallows the error",
                    lines=tuple(n for n in view.line_numbers if first <= n <= last),
                )
            )
    return findings


def _is_noop(stmt: ast.stmt) -> bool:
    if isinstance(stmt, ast.Pass):
        return True
    return (
        isinstance(stmt, ast.Expr)
        and isinstance(stmt.value, ast.Constant)
        and stmt.value.value is Ellipsis
    )


def _python_empty_handlers_lines(view: SourceView) -> list[Finding]:
    """Indentation-based scan for sources that do not parse (snippets, diff hunks)."""
    findings: list[Finding] = []
    lines = view.lines
    for index, line in enumerate(lines):
        m = _PY_EXCEPT_RE.match(line)
        if m is None:
            continue
        indent = len(m.group(1).expandtabs())
        inline = m.group("inline").strip()
        body: list[str] = []
        last = index
        if inline:
            body.append(inline)
        else:
            for j in range(index + 1, len(lines)):
                stripped = lines[j].strip()
                if not stripped or stripped.startswith("#"):
                    continue
                if len(lines[j]) - len(lines[j].lstrip()) <= indent:
                    break
                body.append(stripped.split("#", 1)[0].strip())
                last = j
        if body and all(stmt in _PY_NOOP for stmt in body):
            findings.append(
                Finding(
                    line=view.real_line(index),
                    column=indent + 1,
                    detail="exception handler swallows the error",
                    lines=tuple(view.real_line(k) for k in range(index, last + 1)),
                )
            )
    return findings


def detect_empty_handler(spec: PatternSpec, view: SourceView) -> list[Finding]:
    if view.is_python:
        try:
            tree = ast.parse(view.text)
        except (SyntaxError, ValueError):
            return _python_empty_handlers_lines(view)
        return _python_empty_handlers_ast(view, tree)

    findings = [
        _span_finding(view, m.start(), m.end(), "catch block swallows the error")
        for m in _JS_EMPTY_CATCH_RE.finditer(view.text)
    ]
    findings.extend(
        _span_finding(view, m.start(), m.end(), "promise rejection handler swallows the error")
        for m in _JS_EMPTY_PROMISE_CATCH_RE.finditer(view.text)
    )
    return findings


# --- boundary-masking fallbacks ---

_LITERAL = (
    r"(?:\"(?:[^\"\\\n]|\\.)*\"|'(?:[^'\\\n]|\\.)*'|`[^`]*`"
    r"|-?\d+(?:\.\d+)?\b|\[\s*\]|\{\s*\}"
)
_JS_FALLBACK_RE = re.compile(
    r"(?P<op>\|\||\?\?)(?!=)\s*" + _LITERAL + r"|null\b|undefined\b|true\b|false\b)"
)
_PY_FALLBACK_RE = re.compile(
    r"(?<![\w.])(?P<op>or)\s+" + _LITERAL + r"|\(\s*\)|None\b|True\b|False\b)"
)


def detect_fallback_masking(spec: PatternSpec, view: SourceView) -> list[Finding]:
    pattern = _PY_FALLBACK_RE if view.is_python else _JS_FALLBACK_RE
    findings: list[Finding] = []
    for m in pattern.finditer(view.code_text):
        op = m.group("op")
        findings.append(
            _span_finding(
                view,
                m.start("op"),
                m.end(),
                f"'{op}' substitutes a default instead of failing on missing data",
            )
        )
    return findings


# --- file length ---


def detect_file_length(spec: PatternSpec, view: SourceView) -> list[Finding]:
    threshold = spec.threshold
    if threshold is None or view.line_count is None:
        return []
    if view.line_count > threshold:
        detail = f"{view.line_count} lines exceeds limit of {threshold}"
        return [Finding(line=None, detail=detail)]
    return []


# --- version-suffixed identifiers ---

_VERSION_SUFFIX_RE = re.compile(
    r"\b[A-Za-z_][A-Za-z0-9_]*?(?:V\d+|_v\d+|Legacy|_legacy|Old|_old)\b",
)


def detect_version_suffix(spec: PatternSpec, view: SourceView) -> list[Finding]:
    return [
        _span_finding(
            view, m.start(), m.end(), f"identifier '{m.group(0)}' carries a version suffix"
        )
        for m in _VERSION_SUFFIX_RE.finditer(view.code_text)
    ]


# --- non-memoized callbacks passed to memoized components ---

_MEMO_COMPONENT_RE = re.compile(r"\b(?:const|let|var)\s+([A-Z]\w*)\s*=\s*(?:React\.)?memo\s*\(")
_INNER_ARROW_RE = re.compile(
    r"^[ \t]+(?:const|let|var)\s+(\w+)\s*=\s*(?:async\s+)?(?:\([^)]*\)|\w+)\s*=>",
    re.MULTILINE,
)
_INNER_FUNCTION_RE = re.compile(r"^[ \t]+(?:async\s+)?function\s+(\w+)\s*\(", re.MULTILINE)
_INLINE_FUNCTION_RE = re.compile(r"^(?:async\s+)?(?:\([^)]*\)|\w+)\s*=>|^(?:async\s+)?function\b")
_PROP_EXPR_RE = re.compile(r"(\w+)\s*=\s*\{")
_PROP_STRING_RE = re.compile(r"\w+\s*=\s*(?:\"[^\"]*\"|'[^']*')")


def _jsx_props(text: str, pos: int) -> Iterator[tuple[str, str, int]]:
    """Yield (name, expression, offset) for ``name={...}`` props of the tag opened before pos."""
    n = len(text)
    i = pos
    while i < n:
        if text[i] == ">" or text.startswith("/>", i):
            return
        m = _PROP_EXPR_RE.match(text, i)
        if m:
            depth = 1
            j = m.end()
            while j < n and depth:
                if text[j] == "{":
                    depth += 1
                elif text[j] == "}":
                    depth -= 1
                j += 1
            yield m.group(1), text[m.end() : j - 1], m.start()
            i = j
            continue
        m = _PROP_STRING_RE.match(text, i)
        i = m.end() if m else i + 1


def detect_memo_callback(spec: PatternSpec, view: SourceView) -> list[Finding]:
    memoized = set(_MEMO_COMPONENT_RE.findall(view.text))
    if not memoized:
        return []
    unstable = set(_INNER_ARROW_RE.findall(view.text)) | set(
        _INNER_FUNCTION_RE.findall(view.text)
    )

    findings: list[Finding] = []
    tag_re = re.compile(r"<(" + "|".join(sorted(re.escape(c) for c in memoized)) + r")\b")
    for tag in tag_re.finditer(view.text):
        component = tag.group(1)
        for name, expr, offset in _jsx_props(view.text, tag.end()):
            value = expr.strip()
            if _INLINE_FUNCTION_RE.match(value) or (".bind(" in value and value.endswith(")")):
                reason = "an inline function"
            elif value in unstable:
                reason = f"'{value}', which is not wrapped in useCallback"
            else:
                continue
            findings.append(
                _span_finding(
                    view,
                    offset,
                    offset + len(name),
                    f"prop '{name}' of memoized <{component}> receives {reason}",
                )
            )
    return findings


# --- generic regular expressions ---


def detect_forbidden_regex(spec: PatternSpec, view: SourceView) -> list[Finding]:
    pattern = re.compile(spec.regex or "", re.MULTILINE)
    detail = spec.description or f"matches forbidden pattern {spec.regex!r}"
    return [
        _span_finding(view, m.start(), m.end(), detail)
        for m in pattern.finditer(view.text)
        if m.end() > m.start()
    ]


def detect_required_regex(spec: PatternSpec, view: SourceView) -> list[Finding]:
    if not view.complete:
        return []  # a partial diff cannot prove absence
    if re.search(spec.regex or "", view.text, re.MULTILINE):
        return []
    detail = spec.description or f"missing required pattern {spec.regex!r}"
    return [Finding(line=None, detail=detail)]


DETECTORS: dict[PatternKind, Detector] = {
    PatternKind.EMPTY_HANDLER: detect_empty_handler,
    PatternKind.FALLBACK_MASKING: detect_fallback_masking,
    PatternKind.FILE_LENGTH: detect_file_length,
    PatternKind.VERSION_SUFFIX: detect_version_suffix,
    PatternKind.MEMO_CALLBACK: detect_memo_callback,
    PatternKind.FORBIDDEN_REGEX: detect_forbidden_regex,
    PatternKind.REQUIRED_REGEX: detect_required_regex,
}
