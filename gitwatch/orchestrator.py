"""
Commit Layer - Turn a settled batch into a commit and an optional push.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum
from typing import Callable, Optional, Sequence

from .core.util import join_args
from .git import Git, GitError
from .message import CommitMessageBuilder
from .push import PushTargetResolver

logger = logging.getLogger(__name__)


class Outcome(Enum):
    SKIPPED = "skipped"
    COMMITTED = "committed"
    PUSHED = "pushed"
    FAILED = "failed"


class CommitOrchestrator:
    """Runs status → add → commit → push for one settled batch.

    Failures are logged and reported through the returned Outcome; nothing
    is retried, since the next change produces a fresh batch anyway.
    """

    def __init__(
        self,
        git: Git,
        add_paths: Sequence[str],
        messages: CommitMessageBuilder,
        push: PushTargetResolver,
        commit_args: Sequence[str] = (),
    ):
        self.git = git
        self.add_paths = list(add_paths)
        self.messages = messages
        self.push = push
        self.commit_args = list(commit_args)

    def run(self) -> Outcome:
        try:
            status = self.git.status_short()
        except GitError as e:
            logger.error("status check failed: %s", e)
            return Outcome.FAILED

        # Only commit if status shows changes.
        if not status.strip():
            logger.debug("settled with a clean tree, nothing to commit")
            return Outcome.SKIPPED

        try:
            # The message describes the unstaged diff, so build it before adding.
            message = self.messages.build(self.git)
            self.git.add(self.add_paths)
            commit_hash = self.git.commit(message, self.commit_args)
        except GitError as e:
            logger.error("auto-commit failed: %s", e)
            return Outcome.FAILED

        logger.info("committed %s", commit_hash[:8])

        push_args = self.push.resolve()
        if not push_args:
            return Outcome.COMMITTED

        logger.info("Push command is %s", join_args(self.git.base_command() + push_args))
        try:
            self.git.push(push_args)
        except GitError as e:
            logger.error("push failed: %s", e)
            return Outcome.FAILED
        return Outcome.PUSHED


class CommitDispatcher:
    """Runs each settled batch as its own task.

    By default tasks run concurrently, so a slow commit never holds back
    the next batch. With ``serialize`` a single worker runs them one at a
    time in the order they settled.
    """

    def __init__(self, task: Callable[[], Outcome], serialize: bool = False):
        self.task = task
        self.serialize = serialize
        self.executor = ThreadPoolExecutor(
            max_workers=1 if serialize else None,
            thread_name_prefix="gitwatch-commit",
        )

    def submit(self) -> Future:
        future = self.executor.submit(self.task)
        future.add_done_callback(self._log_failure)
        return future

    @staticmethod
    def _log_failure(future: Future) -> None:
        if future.cancelled():
            return
        error: Optional[BaseException] = future.exception()
        if error is not None:
            logger.error("commit task crashed: %s", error, exc_info=error)

    def shutdown(self, wait: bool = True) -> None:
        self.executor.shutdown(wait=wait)
