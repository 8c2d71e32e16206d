from __future__ import annotations

import os
from pathlib import Path
import subprocess
from typing import Mapping


def script_environment(cwd: Path, base: Mapping[str, str] | None = None) -> dict[str, str]:
    env = dict(os.environ if base is None else base)
    bin_dir = str(cwd / "node_modules" / ".bin")
    current = env.get("PATH", "")
    env["PATH"] = bin_dir + (os.pathsep + current if current else "")
    return env


def run_script(command: str, cwd: Path) -> int:
    """Run ``command`` through the shell in ``cwd`` with inherited stdio; return its exit code."""

    proc = subprocess.run(command, shell=True, cwd=str(cwd), env=script_environment(cwd), check=False)
    return proc.returncode
