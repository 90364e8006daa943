from __future__ import annotations

import argparse
import logging
import os
import platform
import signal
import sys
from dataclasses import dataclass, field, replace
from typing import Mapping, Optional, Sequence

from gitwatch.core import paths
from gitwatch.core.util import is_command
from gitwatch.debounce import DEFAULT_SLEEP_TIME, Debouncer
from gitwatch.git import Git, GitError
from gitwatch.message import DEFAULT_COMMIT_MESSAGE, DEFAULT_DATE_FORMAT, CommitMessageBuilder
from gitwatch.orchestrator import CommitDispatcher, CommitOrchestrator
from gitwatch.push import PushTargetResolver, RepositoryState, capture_repository_state
from gitwatch.watcher import (
    DEFAULT_DARWIN_EVENTS,
    DEFAULT_EVENTS,
    InotifySource,
    WatchdogSource,
    WatchTarget,
    inotify_command,
    parse_events,
    watch_loop,
)

logger = logging.getLogger(__name__)

EXIT_USAGE = 1
EXIT_MISSING_COMMAND = 2
EXIT_BAD_TARGET = 3
EXIT_BAD_GIT_DIR = 4
EXIT_CHDIR_FAILED = 5
EXIT_WATCH_FAILED = 1
EXIT_ROOT_TARGET = 11

WATCHERS = ("watchdog", "inotify")

DESCRIPTION = """\
gitwatch - watch file or directory and git commit all changes as they happen

<target> is the file or folder which should be watched. It needs to be in a
Git repository, or in the case of a folder, it may also be the top folder of
the repo.
"""

EPILOG = """\
Several conditions (notably the HEAD state used for pushing) are only checked
once at launch. Changing the repo state or configuration while gitwatch runs
may lead to unpredictable behavior; stop it first and restart afterwards.

Every option can also be set through the environment: GW_SLEEP_TIME,
GW_DATE_FMT, GW_REMOTE, GW_GIT_BRANCH, GW_GIT_DIR, GW_LISTCHANGES,
GW_LISTCHANGES_COLOR, GW_COMMITMSG, GW_EVENTS, GW_WATCHER, GW_SERIALIZE,
GW_VERBOSE and GW_WATCH. GW_GIT_BIN, GW_INW_BIN and GW_RL_BIN replace the
git, inotifywait/fswatch and readlink binaries.

Whichever of -l and -L appears last takes precedence.
"""


class StartupError(Exception):
    """Fatal configuration problem detected before watching starts."""

    def __init__(self, message: str, exit_code: int, show_help: bool = False):
        super().__init__(message)
        self.exit_code = exit_code
        self.show_help = show_help


@dataclass
class Config:
    target: str = ""
    sleep_time: float = DEFAULT_SLEEP_TIME
    date_format: str = DEFAULT_DATE_FORMAT
    remote: str = ""
    branch: str = ""
    git_dir: str = ""
    list_changes: Optional[int] = None
    color: bool = True
    commit_message: str = DEFAULT_COMMIT_MESSAGE
    events: str = DEFAULT_EVENTS
    watcher: str = "watchdog"
    serialize: bool = False
    verbose: bool = False
    git_bin: str = "git"
    inw_bin: str = "inotifywait"
    readlink: Optional[str] = None
    darwin: bool = field(default=False, repr=False)


def _is_darwin() -> bool:
    return platform.system() == "Darwin"


def _env_flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


def _threshold(value: str) -> Optional[int]:
    try:
        lines = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid line count: {value!r}")
    # Negative counts disable diff-based messages.
    return lines if lines >= 0 else None


def config_from_env(environ: Mapping[str, str], darwin: Optional[bool] = None) -> Config:
    """Defaults overridden by GW_* environment variables."""
    darwin = _is_darwin() if darwin is None else darwin
    config = Config(darwin=darwin)
    if darwin:
        config.events = DEFAULT_DARWIN_EVENTS
        config.inw_bin = "fswatch"

    try:
        if environ.get("GW_SLEEP_TIME"):
            config.sleep_time = float(environ["GW_SLEEP_TIME"])
        if environ.get("GW_LISTCHANGES"):
            config.list_changes = _threshold(environ["GW_LISTCHANGES"])
    except (ValueError, argparse.ArgumentTypeError) as e:
        raise StartupError(f"invalid environment setting: {e}", EXIT_USAGE)

    if "GW_LISTCHANGES_COLOR" in environ:
        config.color = _env_flag(environ["GW_LISTCHANGES_COLOR"])
    if "GW_DATE_FMT" in environ:
        config.date_format = environ["GW_DATE_FMT"]

    config.target = environ.get("GW_WATCH", config.target)
    config.remote = environ.get("GW_REMOTE", config.remote)
    config.branch = environ.get("GW_GIT_BRANCH", config.branch)
    config.git_dir = environ.get("GW_GIT_DIR", config.git_dir)
    config.commit_message = environ.get("GW_COMMITMSG", config.commit_message)
    config.events = environ.get("GW_EVENTS", config.events)
    config.watcher = environ.get("GW_WATCHER", config.watcher)
    if config.watcher not in WATCHERS:
        raise StartupError(f"unknown watcher backend: {config.watcher}", EXIT_USAGE)
    config.serialize = _env_flag(environ.get("GW_SERIALIZE"))
    config.verbose = _env_flag(environ.get("GW_VERBOSE"))
    config.git_bin = environ.get("GW_GIT_BIN", config.git_bin)
    config.inw_bin = environ.get("GW_INW_BIN", config.inw_bin)
    config.readlink = environ.get("GW_RL_BIN")
    if not config.readlink and darwin and is_command("greadlink"):
        config.readlink = "greadlink"
    return config


class _ListChangesAction(argparse.Action):
    """Shared by -l and -L so that the last occurrence wins."""

    def __call__(self, parser, namespace, values, option_string=None):
        namespace.list_changes = values
        namespace.color = option_string == "-l"


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        self.print_help(sys.stderr)
        self.exit(EXIT_USAGE, f"\nError: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _Parser(
        prog="gitwatch",
        description=DESCRIPTION,
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-s", dest="sleep_time", type=float, metavar="<secs>",
        help="after a change, wait <secs> seconds of quiet before committing (default 2)",
    )
    parser.add_argument(
        "-d", dest="date_format", metavar="<fmt>",
        help="strftime format for the timestamp in the commit message "
        f"(default '{DEFAULT_DATE_FORMAT.replace('%', '%%')}'); empty disables the timestamp",
    )
    parser.add_argument(
        "-r", "-p", dest="remote", metavar="<remote>",
        help="push to <remote> after every commit; default is no push",
    )
    parser.add_argument(
        "-b", dest="branch", metavar="<branch>",
        help="branch to push to; without it a default 'git push <remote>' is used",
    )
    parser.add_argument(
        "-g", dest="git_dir", metavar="<path>",
        help="location of the .git directory, if stored elsewhere",
    )
    parser.add_argument(
        "-l", dest="list_changes", type=_threshold, action=_ListChangesAction, metavar="<lines>",
        help="log the changed lines in the commit message, up to <lines> lines; "
        "0 always uses the per-file overview",
    )
    parser.add_argument(
        "-L", dest="list_changes", type=_threshold, action=_ListChangesAction, metavar="<lines>",
        help="same as -l but without colored formatting",
    )
    parser.add_argument(
        "-m", dest="commit_message", metavar="<msg>",
        help="commit message; every %%d is replaced by the formatted date/time",
    )
    parser.add_argument(
        "-e", dest="events", metavar="<events>",
        help=f"events to watch (default '{DEFAULT_EVENTS}')",
    )
    parser.add_argument(
        "-w", dest="watcher", choices=WATCHERS,
        help="event source: watchdog observers or an external inotifywait/fswatch process",
    )
    parser.add_argument(
        "-S", dest="serialize", action="store_const", const=True,
        help="run commits one at a time instead of concurrently",
    )
    parser.add_argument(
        "-v", dest="verbose", action="store_const", const=True,
        help="debug logging",
    )
    parser.add_argument("target", nargs="?", help="file or directory to watch")
    return parser


def load_config(
    argv: Optional[Sequence[str]] = None,
    environ: Optional[Mapping[str, str]] = None,
    darwin: Optional[bool] = None,
) -> Config:
    """Environment first, then command line options on top."""
    environ = os.environ if environ is None else environ
    config = config_from_env(environ, darwin)
    args = build_parser().parse_args(argv)

    overrides = {
        key: value
        for key, value in vars(args).items()
        if value is not None and key not in ("list_changes", "color")
    }
    config = replace(config, **overrides)
    if getattr(args, "color", None) is not None:
        config.list_changes = args.list_changes
        config.color = args.color

    if not config.target:
        raise StartupError("no target to watch", EXIT_USAGE, show_help=True)
    return config


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[gitwatch] %(levelname)s %(message)s",
        stream=sys.stderr,
    )


def check_commands(config: Config) -> None:
    required = [config.git_bin]
    if config.watcher == "inotify":
        required.append(config.inw_bin)
    if config.readlink:
        required.append(config.readlink)
    for cmd in required:
        if not is_command(cmd):
            raise StartupError(f"Required command '{cmd}' not found.", EXIT_MISSING_COMMAND)


def resolve_target(config: Config) -> WatchTarget:
    resolved = paths.expand_path(config.target, config.readlink)

    if os.path.isdir(resolved):
        directory = resolved.rstrip("/")
        if not directory:
            raise StartupError(
                f"Not watching entire file system. {config.target} resolves to '/'.",
                EXIT_ROOT_TARGET,
            )
        return WatchTarget(directory, is_dir=True)

    if os.path.isfile(resolved):
        return WatchTarget(resolved, is_dir=False)

    raise StartupError("The target is neither a regular file nor a directory.", EXIT_BAD_TARGET)


def setup_git(config: Config, target: WatchTarget) -> Git:
    git_dir = None
    if config.git_dir:
        git_dir = os.path.abspath(config.git_dir)
        if not os.path.isdir(git_dir):
            raise StartupError(f".git location is not a directory: {config.git_dir}", EXIT_BAD_GIT_DIR)

    try:
        os.chdir(target.directory)
    except OSError:
        raise StartupError(f"Can't change directory to '{target.directory}'.", EXIT_CHDIR_FAILED)

    return Git(target.directory, git_bin=config.git_bin, git_dir=git_dir, work_tree=target.directory)


def _capture_state(git: Git) -> RepositoryState:
    try:
        return capture_repository_state(git)
    except GitError as e:
        logger.warning("could not read HEAD: %s", e)
        return RepositoryState(None)


def _make_source(config: Config, target: WatchTarget):
    if config.watcher == "inotify":
        return InotifySource(inotify_command(config.inw_bin, target, config.events, config.darwin))
    return WatchdogSource(target, parse_events(config.events))


def _terminate(signum, frame) -> None:
    raise KeyboardInterrupt


def run_watch(config: Config) -> int:
    check_commands(config)
    target = resolve_target(config)
    git = setup_git(config, target)

    orchestrator = CommitOrchestrator(
        git,
        target.add_paths,
        CommitMessageBuilder(
            template=config.commit_message,
            date_format=config.date_format,
            list_changes=config.list_changes,
            color=config.color,
        ),
        PushTargetResolver(config.remote, config.branch, _capture_state(git)),
    )
    dispatcher = CommitDispatcher(orchestrator.run, serialize=config.serialize)
    debouncer = Debouncer(dispatcher.submit, config.sleep_time)
    source = _make_source(config, target)

    signal.signal(signal.SIGTERM, _terminate)
    try:
        try:
            source.start()
        except OSError as e:
            raise StartupError(f"Can't start the filesystem watcher: {e}", EXIT_WATCH_FAILED)
        print(f"Watching {target.path} for changes (settle time: {config.sleep_time}s)")
        print("Press Ctrl+C to stop watching...")

        watch_loop(source, debouncer)
    except KeyboardInterrupt:
        print("\nStopping filesystem watcher...")
    finally:
        debouncer.cancel()
        source.close()
        dispatcher.shutdown(wait=True)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    try:
        config = load_config(argv)
        configure_logging(config.verbose)
        return run_watch(config)
    except StartupError as exc:
        if exc.show_help:
            build_parser().print_help(sys.stderr)
        print(f"Error: {exc}", file=sys.stderr)
        return exc.exit_code


if __name__ == "__main__":
    sys.exit(main())
