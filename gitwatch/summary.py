"""
Summary Layer - Generate mechanical summaries from Git diffs.

Reduces ``git diff -U0`` output to the changed content lines, each
prefixed with the file path and the line number it has in the new file,
and extracts the per-file lines of ``git diff --stat``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

MAX_LINE_WIDTH = 150

_ESC = "\x1b"
_COLOR = r"^(?:" + _ESC + r"\[[0-9;]*m)*"
OLD_PATH_RE = re.compile(_COLOR + r"--- (a/)?([^\s" + _ESC + r"]+)")
NEW_PATH_RE = re.compile(_COLOR + r"\+\+\+ (b/)?([^\s" + _ESC + r"]+)")
HUNK_RE = re.compile(_COLOR + r"@@ -[0-9]+(?:,([0-9]+))? \+([0-9]+)(?:,([0-9]+))? @@")
CONTENT_RE = re.compile(r"^(" + _ESC + r"\[[0-9;]*m)*([ +-])")

DEV_NULL = "/dev/null"


@dataclass(frozen=True)
class DiffLine:
    """One rendered line of a diff summary.

    ``deleted`` marks the single entry that reports a deleted or moved
    file, which carries no line number. ``content`` is the raw diff line
    cut to ``MAX_LINE_WIDTH``.
    """
    path: str
    line: Optional[int]
    content: str
    deleted: bool = False

    def render(self) -> str:
        if self.deleted:
            return f"File {self.path} deleted or moved."
        line = "" if self.line is None else str(self.line)
        return f"{self.path}:{line}: {self.content}"


def _count(value: Optional[str]) -> int:
    return 1 if value is None else int(value)


def parse_diff(diff_text: str) -> List[DiffLine]:
    """Parse unified diff text into ordered DiffLine entries.

    File and hunk headers are only recognized between hunks; inside a hunk
    every line is content until the old and new line counts announced by
    its ``@@`` header are used up. Leading color codes are skipped so that
    ``--color=always`` output parses the same as plain output. A file whose
    new path is ``/dev/null`` yields exactly one deletion entry.
    """
    entries: List[DiffLine] = []
    path = ""
    previous_path = ""
    line: Optional[int] = None
    old_left = new_left = 0
    deletion_reported = False

    for raw in diff_text.splitlines():
        if old_left <= 0 and new_left <= 0:
            match = OLD_PATH_RE.match(raw)
            if match:
                previous_path = match.group(2)
                continue

            match = NEW_PATH_RE.match(raw)
            if match:
                path = match.group(2)
                deletion_reported = False
                continue

            match = HUNK_RE.match(raw)
            if match:
                old_left = _count(match.group(1))
                line = int(match.group(2))
                new_left = _count(match.group(3))
            continue

        match = CONTENT_RE.match(raw)
        if not match:
            # "\ No newline at end of file" and the like.
            continue

        marker = match.group(2)
        if marker != "+":
            old_left -= 1
        if marker != "-":
            new_left -= 1

        if path == DEV_NULL:
            if not deletion_reported:
                entries.append(DiffLine(previous_path, None, "", deleted=True))
                deletion_reported = True
            continue

        entries.append(DiffLine(path, line, raw[:MAX_LINE_WIDTH]))

        # Deleted lines do not exist in the new file.
        if marker != "-" and line is not None:
            line += 1

    return entries


def summarize_diff(diff_text: str) -> List[str]:
    """Render a unified diff as ``path:line: content`` lines."""
    return [entry.render() for entry in parse_diff(diff_text)]


def stat_summary(stat_output: str) -> List[str]:
    """Per-file lines of ``git diff --stat`` output (the ones carrying ``|``)."""
    return [line for line in stat_output.splitlines() if "|" in line]


def format_summary(lines: Iterable[str]) -> str:
    return "\n".join(lines)
