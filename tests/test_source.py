"""Tests for checks/source.py: diff parsing and source views."""

from __future__ import annotations

from ruleguard.checks.source import (
    SourceView,
    parse_unified_diff,
    path_matches,
    split_unified_diff,
)
from ruleguard.rule_engine.models import FileChange

HUNK = """\
--- a/app.py
+++ b/app.py
@@ -10,4 +10,6 @@ def helper():
 def load():
     try:
         read()
+    except OSError:
+        pass
     return 1
"""

MULTI = """\
diff --git a/keep.py b/keep.py
--- a/keep.py
+++ b/keep.py
@@ -1,2 +1,2 @@
-x = 1
+x = 2
 y = 3
diff --git a/gone.py b/gone.py
--- a/gone.py
+++ /dev/null
@@ -1 +0,0 @@
-print("bye")
diff --git a/new.ts b/new.ts
--- /dev/null
+++ b/new.ts
@@ -0,0 +1,2 @@
+export const a = 1;
+export const b = 2;
"""


class TestParseUnifiedDiff:
    def test_new_file_line_numbers(self):
        rows = parse_unified_diff(HUNK)
        assert [n for n, _, _ in rows] == [10, 11, 12, 13, 14, 15]
        assert [n for n, _, added in rows if added] == [13, 14]
        assert rows[3][1] == "    except OSError:"

    def test_removed_lines_skipped(self):
        diff = "@@ -1,2 +1,2 @@\n keep\n--- removed looks like a header\n+added\n"
        rows = parse_unified_diff(diff)
        assert rows == [(1, "keep", False), (2, "added", True)]

    def test_no_newline_marker_ignored(self):
        diff = "@@ -1 +1 @@\n-old\n\\ No newline at end of file\n+new\n"
        assert parse_unified_diff(diff) == [(1, "new", True)]

    def test_multiple_hunks(self):
        diff = "@@ -1,1 +1,1 @@\n-a\n+b\n@@ -20,1 +20,2 @@\n c\n+d\n"
        rows = parse_unified_diff(diff)
        assert [(n, added) for n, _, added in rows] == [(1, True), (20, False), (21, True)]


class TestSplitUnifiedDiff:
    def test_splits_per_file_and_skips_deleted(self):
        parts = split_unified_diff(MULTI)
        assert [path for path, _ in parts] == ["keep.py", "new.ts"]

    def test_per_file_diff_parses(self):
        parts = dict(split_unified_diff(MULTI))
        rows = parse_unified_diff(parts["new.ts"])
        assert [(n, text) for n, text, _ in rows] == [
            (1, "export const a = 1;"),
            (2, "export const b = 2;"),
        ]


class TestSourceView:
    def test_from_content(self):
        view = SourceView.from_change(FileChange(path="a.py", content="one\ntwo\n"))
        assert view.complete
        assert view.added is None
        assert view.line_count == 2
        assert view.lines[:2] == ["one", "two"]

    def test_explicit_line_count_wins(self):
        view = SourceView.from_change(FileChange(path="a.py", content="x\n", line_count=1200))
        assert view.line_count == 1200

    def test_from_diff_only(self):
        view = SourceView.from_change(FileChange(path="app.py", diff=HUNK))
        assert not view.complete
        assert view.line_numbers == (10, 11, 12, 13, 14, 15)
        assert view.added == frozenset({13, 14})
        assert view.line_count is None

    def test_position_maps_offsets_to_real_lines(self):
        view = SourceView.from_change(FileChange(path="app.py", diff=HUNK))
        offset = view.text.index("pass")
        assert view.position(offset) == (14, 9)

    def test_is_reportable(self):
        view = SourceView.from_change(FileChange(path="app.py", diff=HUNK))
        assert view.is_reportable([12, 13])
        assert not view.is_reportable([10, 11])

    def test_region_lines(self):
        content = "a\n// @gateway:start\nb\n// @gateway:end\nc\n"
        view = SourceView.from_change(FileChange(path="x.ts", content=content))
        assert view.region_lines("gateway") == frozenset({2, 3, 4})
        assert view.region_lines("persisted-schema") == frozenset()

    def test_unclosed_region_runs_to_end(self):
        view = SourceView.from_change(FileChange(path="x.ts", content="a\n@gateway:start\nb"))
        assert view.region_lines("gateway") == frozenset({2, 3})

    def test_empty_change(self):
        view = SourceView.from_change(FileChange(path="x.ts"))
        assert view.line_numbers == ()
        assert view.lines == []


class TestCodeText:
    def test_python_comment_and_string_blanked(self):
        view = SourceView.from_change(
            FileChange(path="a.py", content='s = "or 1"  # or None\nt = 2\n')
        )
        assert view.code_text == 's = "    "' + " " * 11 + "\nt = 2\n"

    def test_python_docstring_keeps_line_structure(self):
        content = 'def f():\n    """First.\n\n    Second or 0.\n    """\n    return 1\n'
        view = SourceView.from_change(FileChange(path="a.py", content=content))
        assert len(view.code_text) == len(view.text)
        assert view.code_text.count("\n") == view.text.count("\n")
        assert "Second" not in view.code_text
        assert view.code_text.splitlines()[-1] == "    return 1"

    def test_string_prefix_and_quotes_kept(self):
        view = SourceView.from_change(FileChange(path="a.py", content="x = rb'ab'\n"))
        assert view.code_text == "x = rb'  '\n"

    def test_js_comments_and_literals_blanked(self):
        content = "const a = \"x\"; // note\n/* block\nspans */ const b = `t`;\n"
        view = SourceView.from_change(FileChange(path="a.ts", content=content))
        assert view.code_text == "const a = \" \";        \n        \n         const b = ` `;\n"

    def test_unterminated_python_string_falls_back(self):
        content = 'a = 1  # one\nb = """open\n'
        view = SourceView.from_change(FileChange(path="a.py", content=content))
        assert view.code_text == "a = 1" + " " * 7 + '\nb = """    \n'


class TestPathMatches:
    def test_basename_and_full_path(self):
        assert path_matches("tests/test_api.py", ["test_*.py"])
        assert path_matches("db/migrations/0001.py", ["*migrations*"])
        assert not path_matches("src/api.py", ["test_*.py"])

    def test_case_insensitive(self):
        assert path_matches("web/Hero.TSX", ["*.tsx"])
