from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class CmdResult:
    code: int
    stdout: str
    stderr: str


def run(cmd: list[str], cwd: str | None = None) -> CmdResult:
    proc = subprocess.run(
        cmd,
        cwd=cwd,
        text=True,
        capture_output=True,
        check=False,
    )
    return CmdResult(proc.returncode, proc.stdout.rstrip("\n"), proc.stderr.strip())


def is_command(name: str) -> bool:
    return shutil.which(name) is not None


def join_args(args: Iterable[str]) -> str:
    return " ".join(args).strip()
