"""
Tests for the git collaborator against real repositories.
"""

import pytest

from gitwatch.git import (
    Git,
    GitCommandError,
    GitCommitError,
    GitPushError,
    GitRepositoryError,
)

from conftest import commit_count, git, requires_git

pytestmark = requires_git


class TestStatusAndCommit:
    """Test status, add and commit."""

    def test_clean_status(self, repo):
        """Test a clean tree has empty short status."""
        assert Git(str(repo)).status_short() == ""

    def test_untracked_file_in_status(self, repo):
        """Test a new file shows in short status with its leading marker."""
        (repo / "new.txt").write_text("x\n")

        assert Git(str(repo)).status_short() == "?? new.txt"

    def test_modified_status_keeps_leading_space(self, repo):
        """Test unstaged modifications keep the column layout."""
        (repo / "README.md").write_text("changed\n")

        assert Git(str(repo)).status_short() == " M README.md"

    def test_add_and_commit(self, repo):
        """Test committing returns the new HEAD and cleans the tree."""
        (repo / "new.txt").write_text("x\n")
        client = Git(str(repo))

        client.add(["--all", "."])
        head = client.commit("add new.txt")

        assert head == git(repo, "rev-parse", "HEAD")
        assert git(repo, "log", "-1", "--pretty=%s") == "add new.txt"
        assert client.status_short() == ""
        assert commit_count(repo) == 2

    def test_nothing_to_commit(self, repo):
        """Test an empty commit raises GitCommitError."""
        with pytest.raises(GitCommitError):
            Git(str(repo)).commit("nothing")

    def test_not_a_repository(self, tmp_path, git_env):
        """Test commands outside a repository raise GitRepositoryError."""
        plain = tmp_path / "plain"
        plain.mkdir()

        with pytest.raises(GitRepositoryError):
            Git(str(plain)).status_short()

    def test_missing_binary(self, repo):
        """Test a missing git binary raises GitCommandError."""
        with pytest.raises(GitCommandError):
            Git(str(repo), git_bin="gitwatch-no-such-git").status_short()


class TestDiff:
    """Test diff helpers."""

    def test_unified0_plain(self, repo):
        """Test the zero-context diff of a tracked change."""
        (repo / "README.md").write_text("hello world\n")

        diff = Git(str(repo)).diff_unified0(color=False)

        assert "@@ -1 +1 @@" in diff
        assert "-hello" in diff
        assert "+hello world" in diff
        assert "\x1b[" not in diff

    def test_unified0_color(self, repo):
        """Test colored output is forced."""
        (repo / "README.md").write_text("hello world\n")

        assert "\x1b[" in Git(str(repo)).diff_unified0(color=True)

    def test_diff_stat(self, repo):
        """Test the stat overview names the file."""
        (repo / "README.md").write_text("hello world\n")

        assert "README.md |" in Git(str(repo)).diff_stat()


class TestHeadAndPush:
    """Test HEAD inspection and pushing."""

    def test_attached_head(self, repo):
        """Test the full ref of the current branch."""
        assert Git(str(repo)).symbolic_ref_head() == "refs/heads/main"

    def test_detached_head(self, repo):
        """Test detached HEAD yields None."""
        git(repo, "checkout", "-q", "--detach")

        assert Git(str(repo)).symbolic_ref_head() is None

    def test_push_to_bare_remote(self, repo, tmp_path):
        """Test pushing to a local bare repository."""
        remote = tmp_path / "remote.git"
        git(tmp_path, "init", "-q", "--bare", str(remote))
        git(repo, "remote", "add", "origin", str(remote))

        Git(str(repo)).push(["push", "origin", "main:backup"])

        assert git(remote, "rev-parse", "backup") == git(repo, "rev-parse", "HEAD")

    def test_push_failure(self, repo):
        """Test pushing to an unknown remote raises GitPushError."""
        with pytest.raises(GitPushError):
            Git(str(repo)).push(["push", "nowhere"])


class TestSeparateGitDir:
    """Test running against a git dir outside the work tree."""

    def test_commit_through_git_dir(self, tmp_path, git_env):
        """Test --git-dir/--work-tree binding when the work tree has no .git."""
        work = tmp_path / "tree"
        meta = tmp_path / "meta"
        git(tmp_path, "init", "-q", "--separate-git-dir", str(meta), str(work))
        (work / ".git").unlink()
        (work / "new.txt").write_text("x\n")

        client = Git(str(work), git_dir=str(meta), work_tree=str(work))

        assert client.status_short() == "?? new.txt"
        client.add(["--all", "."])
        client.commit("first")
        assert client.status_short() == ""
