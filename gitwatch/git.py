"""
Git Layer - All Git repository interactions.

Wraps the git binary as an external collaborator: status, add, commit,
diff, symbolic-ref and push. Every invocation is a structured argument
list; nothing is passed through a shell.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from .core.util import CmdResult, join_args, run

logger = logging.getLogger(__name__)


class GitError(Exception):
    """Exception raised for Git operation failures."""

    def __init__(self, message: str, args: Sequence[str] = (), code: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.command = list(args)
        self.code = code
        self.stderr = stderr


class GitCommandError(GitError):
    """Exception raised when the git binary cannot be run at all."""
    pass


class GitCommitError(GitError):
    """Exception raised for Git commit operation failures."""
    pass


class GitPushError(GitError):
    """Exception raised when a push is rejected or fails."""
    pass


class GitRepositoryError(GitError):
    """Exception raised for Git repository state issues."""
    pass


class Git:
    """Runs git commands against one work tree.

    ``git_dir`` selects an alternate metadata directory; when given, every
    command is bound to ``work_tree`` with ``--work-tree``/``--git-dir`` the
    same way for the life of the process.
    """

    def __init__(
        self,
        cwd: str,
        git_bin: str = "git",
        git_dir: Optional[str] = None,
        work_tree: Optional[str] = None,
    ):
        self.cwd = cwd
        self.git_bin = git_bin
        self.git_dir = git_dir
        self.work_tree = work_tree or cwd

    def base_command(self) -> list[str]:
        cmd = [self.git_bin]
        if self.git_dir:
            cmd += ["--no-pager", "--work-tree", self.work_tree, "--git-dir", self.git_dir]
        return cmd

    def _run_git_command(self, args: list[str]) -> CmdResult:
        """Run git command and translate failures into GitError subclasses."""
        cmd = self.base_command() + args
        logger.debug("running %s", join_args(cmd))
        try:
            res = run(cmd, cwd=self.cwd)
        except FileNotFoundError:
            raise GitCommandError(f"Git is not installed or not found: {self.git_bin}", cmd)
        except OSError as e:
            raise GitCommandError(f"Unexpected error running git command: {e}", cmd)

        if res.code == 0:
            return res

        error_msg = res.stderr or res.stdout.strip() or f"exit status {res.code}"
        lowered = error_msg.lower()

        if args and args[0] == "push":
            raise GitPushError(f"Git push failed: {error_msg}", cmd, res.code, error_msg)

        if "not a git repository" in lowered:
            raise GitRepositoryError(f"Not a Git repository: {self.cwd}", cmd, res.code, error_msg)

        if args and args[0] == "commit":
            if "nothing to commit" in lowered or "working tree clean" in lowered:
                raise GitCommitError("No changes to commit", cmd, res.code, error_msg)
            raise GitCommitError(f"Git commit failed: {error_msg}", cmd, res.code, error_msg)

        raise GitError(f"Git command failed: {join_args(args)}\nError: {error_msg}", cmd, res.code, error_msg)

    def status_short(self) -> str:
        """Short-format working tree status; empty when there is nothing to commit."""
        return self._run_git_command(["status", "-s"]).stdout

    def add(self, paths: Sequence[str]) -> None:
        self._run_git_command(["add"] + list(paths))

    def commit(self, message: str, extra_args: Sequence[str] = ()) -> str:
        """Commit the index and return the new HEAD hash."""
        self._run_git_command(["commit"] + list(extra_args) + ["-m", message])
        return self._run_git_command(["rev-parse", "HEAD"]).stdout.strip()

    def diff_unified0(self, color: bool = True) -> str:
        args = ["diff", "-U0"]
        if color:
            args.append("--color=always")
        return self._run_git_command(args).stdout

    def diff_stat(self) -> str:
        return self._run_git_command(["diff", "--stat"]).stdout

    def symbolic_ref_head(self) -> Optional[str]:
        """Full ref HEAD points to, or None when HEAD is detached."""
        try:
            return self._run_git_command(["symbolic-ref", "HEAD"]).stdout.strip() or None
        except GitRepositoryError:
            raise
        except GitError:
            return None

    def push(self, args: Sequence[str]) -> None:
        self._run_git_command(list(args))
