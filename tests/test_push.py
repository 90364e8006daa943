"""
Tests for push target resolution.
"""

from unittest.mock import MagicMock

import pytest

from gitwatch.git import GitError, GitRepositoryError
from gitwatch.push import PushTargetResolver, RepositoryState, capture_repository_state


class TestResolve:
    """Test the remote/branch/HEAD decision table."""

    def test_no_remote(self):
        """Test no push without a remote, whatever the branch."""
        assert PushTargetResolver("", "", RepositoryState("dev")).resolve() is None
        assert PushTargetResolver("", "main", RepositoryState("dev")).resolve() is None
        assert PushTargetResolver("", "main", RepositoryState(None)).resolve() is None

    def test_remote_without_branch(self):
        """Test a default push to the remote."""
        assert PushTargetResolver("origin", "", RepositoryState("dev")).resolve() == ["push", "origin"]

    def test_attached_head(self):
        """Test pushing the startup branch onto the configured one."""
        resolver = PushTargetResolver("origin", "main", RepositoryState("dev"))

        assert resolver.resolve() == ["push", "origin", "dev:main"]

    def test_detached_head(self):
        """Test pushing the configured branch from a detached HEAD."""
        resolver = PushTargetResolver("origin", "main", RepositoryState(None))

        assert resolver.resolve() == ["push", "origin", "main"]

    def test_state_is_fixed(self):
        """Test the resolver never asks git again."""
        git = MagicMock()
        git.symbolic_ref_head.return_value = "refs/heads/dev"
        resolver = PushTargetResolver("origin", "main", capture_repository_state(git))

        git.symbolic_ref_head.return_value = "refs/heads/other"
        resolver.resolve()
        resolver.resolve()

        assert resolver.resolve() == ["push", "origin", "dev:main"]
        assert git.symbolic_ref_head.call_count == 1


class TestRepositoryState:
    """Test HEAD state capture."""

    def test_from_branch_ref(self):
        """Test the heads prefix is stripped."""
        state = RepositoryState.from_head_ref("refs/heads/feature/x")

        assert state.branch == "feature/x"
        assert not state.detached

    def test_detached(self):
        """Test a missing ref means detached."""
        assert RepositoryState.from_head_ref(None).detached
        assert RepositoryState.from_head_ref("").detached

    def test_capture_propagates_repository_errors(self):
        """Test a broken repository is not mistaken for a detached HEAD."""
        git = MagicMock()
        git.symbolic_ref_head.side_effect = GitRepositoryError("Not a Git repository: /tmp")

        with pytest.raises(GitError):
            capture_repository_state(git)
