"""Scannable views over file contents and unified diffs."""

from __future__ import annotations

import fnmatch
import io
import re
import tokenize
from collections.abc import Iterable
from dataclasses import dataclass, field
from functools import cached_property

from ruleguard.rule_engine.models import FileChange

_HUNK_RE = re.compile(r"^@@ -\d+(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")

PYTHON_SUFFIXES = (".py", ".pyi")

# Comments and quoted spans, for sources tokenize cannot handle.
_C_LIKE_NON_CODE_RE = re.compile(
    r"(?P<comment>//[^\n]*|/\*.*?(?:\*/|\Z))"
    r"|(?P<string>\"(?:[^\"\\\n]|\\.)*\"|'(?:[^'\\\n]|\\.)*'|`(?:[^`\\]|\\.)*`)",
    re.DOTALL,
)
_PY_NON_CODE_RE = re.compile(
    r"(?P<comment>#[^\n]*)"
    r"|(?P<string>[rRbBuUfF]{0,2}(?:\"\"\".*?(?:\"\"\"|\Z)|'''.*?(?:'''|\Z)"
    r"|\"(?:[^\"\\\n]|\\.)*\"|'(?:[^'\\\n]|\\.)*'))",
    re.DOTALL,
)
# Token types whose whole span is string content (f-string parts on 3.12+).
_PY_STRING_BODY_TOKENS = frozenset(
    getattr(tokenize, name)
    for name in ("FSTRING_MIDDLE", "TSTRING_MIDDLE")
    if hasattr(tokenize, name)
)


def parse_unified_diff(diff: str) -> list[tuple[int, str, bool]]:
    """Return (new-file line number, text, added) for context and added lines of all hunks."""
    rows: list[tuple[int, str, bool]] = []
    new_line = 0
    old_left = new_left = 0
    for raw in diff.splitlines():
        if old_left <= 0 and new_left <= 0:
            header = _HUNK_RE.match(raw)
            if header:
                old_left = int(header.group(1) or 1)
                new_line = int(header.group(2))
                new_left = int(header.group(3) or 1)
            continue  # file headers and "\ No newline" markers
        if raw.startswith("\\"):
            continue
        if raw.startswith("+"):
            rows.append((new_line, raw[1:], True))
            new_line += 1
            new_left -= 1
        elif raw.startswith("-"):
            old_left -= 1
        else:
            rows.append((new_line, raw[1:], False))
            new_line += 1
            old_left -= 1
            new_left -= 1
    return rows


def split_unified_diff(diff: str) -> list[tuple[str, str]]:
    """Split a multi-file unified diff into (new path, per-file diff) pairs.

    Deleted files (``+++ /dev/null``) are skipped; ``a/`` and ``b/`` prefixes are stripped.
    """
    files: list[tuple[str, list[str]]] = []
    pending_old: str | None = None
    old_left = new_left = 0
    for raw in diff.splitlines():
        if old_left > 0 or new_left > 0:
            if files:
                files[-1][1].append(raw)
            if raw.startswith("+"):
                new_left -= 1
            elif raw.startswith("-"):
                old_left -= 1
            elif not raw.startswith("\\"):
                old_left -= 1
                new_left -= 1
            continue
        if raw.startswith("--- "):
            pending_old = raw
            continue
        if raw.startswith("+++ ") and pending_old is not None:
            target = raw[4:].split("\t", 1)[0].strip()
            pending_old = None
            if target == "/dev/null":
                files.append(("", []))
                continue
            if target.startswith(("a/", "b/")):
                target = target[2:]
            files.append((target, [raw]))
            continue
        header = _HUNK_RE.match(raw)
        if header and files:
            old_left = int(header.group(1) or 1)
            new_left = int(header.group(3) or 1)
            files[-1][1].append(raw)
    return [(path, "\n".join(lines)) for path, lines in files if path]


def _added_lines(rows: list[tuple[int, str, bool]]) -> frozenset[int]:
    return frozenset(n for n, _, is_added in rows if is_added)


def path_matches(path: str, globs: Iterable[str]) -> bool:
    """True if the path or its basename matches any glob (case-insensitive)."""
    normalised = path.replace("\\", "/").lower()
    basename = normalised.rsplit("/", 1)[-1]
    return any(
        fnmatch.fnmatchcase(normalised, g.lower()) or fnmatch.fnmatchcase(basename, g.lower())
        for g in globs
    )


def _blank(chars: list[str], start: int, end: int) -> None:
    for i in range(max(start, 0), min(end, len(chars))):
        if chars[i] != "\n":
            chars[i] = " "


def _string_body(literal: str) -> tuple[int, int]:
    """Offsets of the content between a literal's quotes; prefix and quotes stay."""
    head = len(literal) - len(literal.lstrip("rRbBuUfFtT"))
    quote = literal[head : head + 3]
    if quote not in ('"""', "'''"):
        quote = literal[head]
    closed = len(literal) >= head + 2 * len(quote) and literal.endswith(quote)
    return head + len(quote), len(literal) - (len(quote) if closed else 0)


def _mask_with_regex(text: str, pattern: re.Pattern[str]) -> str:
    chars = list(text)
    for m in pattern.finditer(text):
        if m.group("comment") is not None:
            _blank(chars, m.start(), m.end())
        else:
            lo, hi = _string_body(m.group(0))
            _blank(chars, m.start() + lo, m.start() + hi)
    return "".join(chars)


def _mask_python(text: str, line_starts: tuple[int, ...]) -> str:
    chars = list(text)
    for tok in tokenize.generate_tokens(io.StringIO(text).readline):
        if tok.type == tokenize.STRING:
            start = line_starts[tok.start[0] - 1] + tok.start[1]
            lo, hi = _string_body(tok.string)
            _blank(chars, start + lo, start + hi)
        elif tok.type == tokenize.COMMENT or tok.type in _PY_STRING_BODY_TOKENS:
            start = line_starts[tok.start[0] - 1] + tok.start[1]
            end = line_starts[tok.end[0] - 1] + tok.end[1]
            _blank(chars, start, end)
    return "".join(chars)


@dataclass(frozen=True)
class SourceView:
    """The new-file text of one FileChange, with real line numbers.

    ``added`` is None when every line is part of the change (plain content);
    for diffs it holds the new-file numbers of the added lines.
    """

    path: str
    text: str
    line_numbers: tuple[int, ...]
    added: frozenset[int] | None = None
    line_count: int | None = None
    complete: bool = True
    _line_starts: tuple[int, ...] = field(default=(), repr=False, compare=False)

    @classmethod
    def from_change(cls, change: FileChange) -> SourceView:
        if change.content is not None:
            lines = change.content.split("\n")
            added = None
            if change.diff is not None:
                added = _added_lines(parse_unified_diff(change.diff))
            line_count = change.line_count
            if line_count is None:
                line_count = len(change.content.splitlines())
            return cls._build(
                change.path,
                lines,
                tuple(range(1, len(lines) + 1)),
                added=added,
                line_count=line_count,
                complete=True,
            )

        if change.diff is not None:
            rows = parse_unified_diff(change.diff)
            return cls._build(
                change.path,
                [text for _, text, _ in rows],
                tuple(n for n, _, _ in rows),
                added=_added_lines(rows),
                line_count=change.line_count,
                complete=False,
            )

        return cls._build(change.path, [], (), line_count=change.line_count, complete=False)

    @classmethod
    def _build(
        cls,
        path: str,
        lines: list[str],
        line_numbers: tuple[int, ...],
        *,
        added: frozenset[int] | None = None,
        line_count: int | None = None,
        complete: bool = True,
    ) -> SourceView:
        starts: list[int] = []
        offset = 0
        for line in lines:
            starts.append(offset)
            offset += len(line) + 1
        return cls(
            path=path,
            text="\n".join(lines),
            line_numbers=line_numbers,
            added=added,
            line_count=line_count,
            complete=complete,
            _line_starts=tuple(starts),
        )

    @property
    def is_python(self) -> bool:
        return self.path.lower().endswith(PYTHON_SUFFIXES)

    @cached_property
    def lines(self) -> list[str]:
        return self.text.split("\n") if self.line_numbers else []

    @cached_property
    def code_text(self) -> str:
        """``text`` with comments and string contents blanked; offsets and newlines kept."""
        if not self.is_python:
            return _mask_with_regex(self.text, _C_LIKE_NON_CODE_RE)
        try:
            return _mask_python(self.text, self._line_starts)
        except (tokenize.TokenError, SyntaxError):
            return _mask_with_regex(self.text, _PY_NON_CODE_RE)

    def real_line(self, index: int) -> int:
        """Map a 0-based view line index to the real 1-based line number."""
        return self.line_numbers[index]

    def position(self, offset: int) -> tuple[int, int]:
        """Map a character offset in ``text`` to (real line, 1-based column)."""
        lo, hi = 0, len(self._line_starts) - 1
        while lo < hi:
            mid = (lo + hi + 1) // 2
            if self._line_starts[mid] <= offset:
                lo = mid
            else:
                hi = mid - 1
        return self.line_numbers[lo], offset - self._line_starts[lo] + 1

    def span_lines(self, start: int, end: int) -> tuple[int, ...]:
        """Real line numbers touched by the text span [start, end)."""
        first, _ = self.position(start)
        last, _ = self.position(max(start, end - 1))
        return tuple(n for n in self.line_numbers if first <= n <= last)

    def is_reportable(self, lines: Iterable[int]) -> bool:
        if self.added is None:
            return True
        return any(n in self.added for n in lines)

    def region_lines(self, name: str) -> frozenset[int]:
        """Real line numbers inside ``@<name>:start`` ... ``@<name>:end`` markers.

        Marker lines count as inside; an unclosed region runs to the end of the view.
        """
        start_re = re.compile(rf"@{re.escape(name)}:start\b", re.IGNORECASE)
        end_re = re.compile(rf"@{re.escape(name)}:end\b", re.IGNORECASE)
        inside: set[int] = set()
        open_region = False
        for index, line in enumerate(self.lines):
            if start_re.search(line):
                open_region = True
            if open_region:
                inside.add(self.line_numbers[index])
            if end_re.search(line):
                open_region = False
        return frozenset(inside)
