"""
Commit message synthesis for one settled batch.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from .git import Git
from .summary import format_summary, stat_summary, summarize_diff

PLACEHOLDER = "%d"
DEFAULT_COMMIT_MESSAGE = "Scripted auto-commit on change (%d) by gitwatch"
DEFAULT_DATE_FORMAT = "+%Y-%m-%d %H:%M:%S"
NEW_FILES_PREFIX = "New files added: "


def format_timestamp(date_format: str, now: Optional[datetime] = None) -> str:
    """Format ``now`` with a strftime pattern; date(1)-style ``+fmt`` is accepted."""
    if not date_format:
        return ""
    if date_format.startswith("+"):
        date_format = date_format[1:]
    return (now or datetime.now()).strftime(date_format)


@dataclass
class CommitMessageBuilder:
    """Builds the commit message from the template or from the pending diff.

    ``list_changes`` is None when diff-based messages are disabled. Otherwise
    the message lists changed lines while they number at most ``list_changes``
    and falls back to the ``--stat`` overview beyond that; 0 always uses the
    overview.
    """

    template: str = DEFAULT_COMMIT_MESSAGE
    date_format: str = DEFAULT_DATE_FORMAT
    list_changes: Optional[int] = None
    color: bool = True
    clock: Callable[[], datetime] = datetime.now

    def timestamp_message(self) -> str:
        # A template without the placeholder is committed verbatim.
        if PLACEHOLDER not in self.template:
            return self.template
        return self.template.replace(PLACEHOLDER, format_timestamp(self.date_format, self.clock()))

    def build(self, git: Git) -> str:
        if self.list_changes is None:
            return self.timestamp_message()

        diff_lines = summarize_diff(git.diff_unified0(color=self.color))
        return self.choose(
            diff_lines,
            stat=lambda: stat_summary(git.diff_stat()),
            status=git.status_short,
        )

    def choose(
        self,
        diff_lines: list[str],
        stat: Callable[[], list[str]],
        status: Callable[[], str],
    ) -> str:
        """Apply the line-count policy to an already summarized diff."""
        threshold = self.list_changes or 0

        if threshold >= 1 and len(diff_lines) <= threshold:
            if diff_lines:
                return format_summary(diff_lines)
            return NEW_FILES_PREFIX + status()

        overview = stat()
        if overview:
            return format_summary(overview)
        return NEW_FILES_PREFIX + status()
