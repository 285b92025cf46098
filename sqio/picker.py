"""Discovering SQL files and picking one, interactively when possible."""

from __future__ import annotations

import os
import shutil
import subprocess
from typing import Sequence


def _is_sql(path: str) -> bool:
    return os.path.splitext(path)[1].lower() == ".sql"


def sql_files(root: str) -> list[str]:
    """Return all .sql files under root, skipping hidden directories, sorted."""
    os.lstat(root)
    if not os.path.isdir(root):
        return [root] if _is_sql(root) else []
    files: list[str] = []
    errors: list[OSError] = []
    for dirpath, dirnames, filenames in os.walk(root, onerror=errors.append):
        if errors:
            raise errors[0]
        dirnames[:] = [name for name in dirnames if not name.startswith(".")]
        files.extend(os.path.join(dirpath, name) for name in filenames if _is_sql(name))
    if errors:
        raise errors[0]
    return sorted(files)


def pick(options: Sequence[str]) -> str:
    """Return an option chosen with fzf, or the first option as a fallback."""
    if not options:
        raise ValueError("no candidates")
    fzf = shutil.which("fzf")
    if fzf:
        completed = subprocess.run(
            [fzf],
            input="\n".join(options),
            stdout=subprocess.PIPE,
            text=True,
        )
        selected = completed.stdout.strip()
        if completed.returncode == 0 and selected:
            return selected
    return options[0]