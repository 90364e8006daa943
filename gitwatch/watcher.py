"""
Watcher Layer - Filesystem monitoring.

Produces a sequential stream of change notifications for the watched
target, either from watchdog observers or from an external inotifywait
(fswatch on macOS) process, and feeds them to the debouncer.
"""

from __future__ import annotations

import logging
import os
import queue
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional, Set

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .debounce import Debouncer

logger = logging.getLogger(__name__)

DEFAULT_EVENTS = "close_write,move,move_self,delete,create,modify"
DEFAULT_DARWIN_EVENTS = "--event=414"
GIT_EXCLUDE = r"(\.git/|\.git$)"

# inotify event names mapped onto watchdog event types.
INOTIFY_EVENT_TYPES = {
    "create": {"created"},
    "modify": {"modified"},
    "close_write": {"closed"},
    "delete": {"deleted"},
    "delete_self": {"deleted"},
    "move": {"moved"},
    "moved_to": {"moved"},
    "moved_from": {"moved"},
    "move_self": {"moved"},
}
WATCHDOG_EVENT_TYPES = {"created", "modified", "closed", "deleted", "moved"}

_STOP = object()


@dataclass(frozen=True)
class WatchTarget:
    """The resolved thing being watched.

    ``directory`` is where git runs: the target itself for a directory, or
    the file's parent for a single file.
    """
    path: str
    is_dir: bool

    @property
    def directory(self) -> str:
        return self.path if self.is_dir else os.path.dirname(self.path)

    @property
    def add_paths(self) -> List[str]:
        if self.is_dir:
            return ["--all", "."]
        return [self.path]


def parse_events(events: str) -> Optional[Set[str]]:
    """Translate an inotify-style event list into watchdog event types.

    Returns None (no filtering) when the list is empty, is an fswatch flag,
    or names nothing recognizable.
    """
    if not events or events.startswith("-"):
        return None
    types: Set[str] = set()
    for name in events.split(","):
        name = name.strip().lower()
        if name in INOTIFY_EVENT_TYPES:
            types |= INOTIFY_EVENT_TYPES[name]
        elif name in WATCHDOG_EVENT_TYPES:
            types.add(name)
        elif name:
            logger.warning("ignoring unknown event type %r", name)
    return types or None


class GitwatchEventHandler(FileSystemEventHandler):
    """Forwards relevant watchdog events to ``sink``."""

    def __init__(
        self,
        target: WatchTarget,
        sink: Callable[[FileSystemEvent], None],
        event_types: Optional[Set[str]] = None,
    ):
        super().__init__()
        self.target = target
        self.sink = sink
        self.event_types = event_types

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        if self.event_types is not None and event.event_type not in self.event_types:
            return

        paths = [p for p in (event.src_path, getattr(event, "dest_path", "")) if p]
        paths = [os.fsdecode(p) for p in paths]
        if all(self._should_ignore_path(p) for p in paths):
            return
        self.sink(event)

    def _should_ignore_path(self, path: str) -> bool:
        """Check if path should be ignored based on filtering rules."""
        if not self.target.is_dir:
            return os.path.abspath(path) != self.target.path

        try:
            rel_path = Path(path).relative_to(self.target.path)
        except ValueError:
            return True
        # Ignore anything in .git/
        return ".git" in rel_path.parts


class WatchdogSource:
    """Notifications from a watchdog Observer, read through a queue."""

    def __init__(self, target: WatchTarget, event_types: Optional[Set[str]] = None, poll_interval: float = 1.0):
        self.target = target
        self.poll_interval = poll_interval
        self.events: "queue.Queue[object]" = queue.Queue()
        self.handler = GitwatchEventHandler(target, self.events.put, event_types)
        self.observer = Observer()

    def start(self) -> None:
        self.observer.schedule(self.handler, self.target.directory, recursive=self.target.is_dir)
        self.observer.start()

    def __iter__(self) -> Iterator[object]:
        while True:
            try:
                item = self.events.get(timeout=self.poll_interval)
            except queue.Empty:
                if not self.observer.is_alive():
                    logger.error("filesystem observer stopped unexpectedly")
                    return
                continue
            if item is _STOP:
                return
            yield item

    def close(self) -> None:
        if self.observer.is_alive():
            self.observer.stop()
            self.observer.join()
        self.events.put(_STOP)


def inotify_command(inw_bin: str, target: WatchTarget, events: str, darwin: bool = False) -> List[str]:
    """Argument list for the external watcher binary."""
    if darwin:
        if target.is_dir:
            return [inw_bin, "--recursive", events, "-E", "--exclude", GIT_EXCLUDE, target.path]
        return [inw_bin, events, target.path]
    if target.is_dir:
        return [inw_bin, "-qmr", "-e", events, "--exclude", GIT_EXCLUDE, target.path]
    return [inw_bin, "-qm", "-e", events, target.path]


class InotifySource:
    """Notifications read line by line from an external watcher process."""

    def __init__(self, command: List[str]):
        self.command = command
        self.proc: Optional[subprocess.Popen] = None

    def start(self) -> None:
        self.proc = subprocess.Popen(
            self.command,
            stdout=subprocess.PIPE,
            text=True,
        )

    def __iter__(self) -> Iterator[str]:
        if self.proc is None or self.proc.stdout is None:
            return
        for line in self.proc.stdout:
            yield line.rstrip("\n")
        code = self.proc.wait()
        if code != 0:
            logger.error("watcher process exited with status %s", code)

    def close(self) -> None:
        if self.proc is not None and self.proc.poll() is None:
            self.proc.terminate()
            try:
                self.proc.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self.proc.kill()
                self.proc.wait()


def watch_loop(notifications: Iterable[object], debouncer: Debouncer) -> int:
    """Feed notifications to the debouncer in arrival order until the stream ends."""
    count = 0
    for notification in notifications:
        logger.debug("change: %s", notification)
        debouncer.notify(notification)
        count += 1
    return count
