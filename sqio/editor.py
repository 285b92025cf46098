"""Opening SQL text in the user's preferred external editor."""

from __future__ import annotations

import os
import subprocess
import tempfile
from pathlib import Path

_EDITOR_VARIABLES = ("DBTUI_EDITOR", "VISUAL", "EDITOR")


def select_editor() -> str:
    """Choose the editor from the environment, falling back to vi."""
    for key in _EDITOR_VARIABLES:
        value = os.environ.get(key)
        if value:
            return value
    return "vi"


def edit(initial: str) -> str:
    """Open initial SQL in the editor and return the edited text.

    Raises subprocess.CalledProcessError when the editor exits unsuccessfully.
    """
    directory = Path(tempfile.gettempdir()) / "sqio-editor"
    directory.mkdir(mode=0o700, parents=True, exist_ok=True)
    fd, name = tempfile.mkstemp(prefix="query-", suffix=".sql", dir=directory)
    path = Path(name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(initial)
        subprocess.run([select_editor(), str(path)], stdout=2, stderr=2, check=True)
        return path.read_text(encoding="utf-8")
    finally:
        path.unlink(missing_ok=True)