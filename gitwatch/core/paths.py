from __future__ import annotations

import os

from .util import run


def expand_path(path: str, readlink: str | None = None) -> str:
    """Resolve ``path`` to an absolute path with symlinks expanded.

    With a ``readlink`` binary the resolution is delegated to ``readlink -f``,
    falling back to plain ``readlink`` for implementations without ``-f``.
    """
    if not readlink:
        return os.path.realpath(path)
    res = run([readlink, "-f", path])
    if res.code == 0 and res.stdout:
        return res.stdout.strip()
    print("Seems like your readlink doesn't support '-f'. Running without.")
    res = run([readlink, path])
    if res.code == 0 and res.stdout:
        return os.path.abspath(res.stdout.strip())
    return os.path.abspath(path)
