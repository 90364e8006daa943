"""
Push target resolution.

The HEAD state is captured once at startup; later branch switches in the
watched repository do not change where commits are pushed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .git import Git

HEADS_PREFIX = "refs/heads/"


@dataclass(frozen=True)
class RepositoryState:
    """HEAD state at launch: the attached branch name, or None when detached."""
    branch: Optional[str] = None

    @property
    def detached(self) -> bool:
        return self.branch is None

    @classmethod
    def from_head_ref(cls, head_ref: Optional[str]) -> "RepositoryState":
        if not head_ref:
            return cls(None)
        if head_ref.startswith(HEADS_PREFIX):
            return cls(head_ref[len(HEADS_PREFIX):])
        return cls(head_ref)


def capture_repository_state(git: Git) -> RepositoryState:
    return RepositoryState.from_head_ref(git.symbolic_ref_head())


@dataclass(frozen=True)
class PushTargetResolver:
    remote: str = ""
    branch: str = ""
    state: RepositoryState = RepositoryState()

    def resolve(self) -> Optional[list[str]]:
        """Git arguments for the push after each commit, or None for no push."""
        if not self.remote:
            return None
        if not self.branch:
            return ["push", self.remote]
        if self.state.detached:
            return ["push", self.remote, self.branch]
        return ["push", self.remote, f"{self.state.branch}:{self.branch}"]
