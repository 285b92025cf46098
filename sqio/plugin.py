"""Discovery and execution of external sqio-plugin-* executables."""

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass
from typing import Any, Sequence

_PREFIX = "sqio-plugin-"


@dataclass(frozen=True)
class Plugin:
    """One executable plugin found on PATH."""

    name: str
    path: str


def list_plugins(path_env: str | None = None) -> list[Plugin]:
    """Discover executable files named sqio-plugin-* on the search path."""
    if not path_env:
        path_env = os.environ.get("PATH", "")
    seen: set[str] = set()
    plugins: list[Plugin] = []
    for directory in path_env.split(os.pathsep):
        if not directory:
            continue
        try:
            with os.scandir(directory) as iterator:
                entries = sorted(iterator, key=lambda e: e.name)
        except OSError:
            continue
        for entry in entries:
            if not entry.name.startswith(_PREFIX):
                continue
            try:
                if entry.is_dir(follow_symlinks=False):
                    continue
                mode = entry.stat(follow_symlinks=False).st_mode
            except OSError:
                continue
            plugin_name = entry.name[len(_PREFIX):]
            if not plugin_name or plugin_name in seen or not mode & 0o111:
                continue
            seen.add(plugin_name)
            plugins.append(Plugin(plugin_name, os.path.join(directory, entry.name)))
    return sorted(plugins, key=lambda p: p.name)


def run_plugin(
    name: str,
    args: Sequence[str] = (),
    path_env: str | None = None,
    **kwargs: Any,
) -> subprocess.CompletedProcess:
    """Run the named plugin with args; extra keyword arguments go to subprocess.run."""
    executable = _PREFIX + name
    if path_env:
        for plugin in list_plugins(path_env):
            if plugin.name == name:
                executable = plugin.path
                break
        env = dict(kwargs.pop("env", None) or os.environ)
        env["PATH"] = path_env
        kwargs["env"] = env
    return subprocess.run([executable, *args], **kwargs)


def validate_name(name: str) -> None:
    """Reject plugin names that could escape the sqio-plugin-* convention."""
    if not name:
        raise ValueError("plugin name is required")
    if "/" in name or "\\" in name or name.startswith("-"):
        raise ValueError(f"invalid plugin name: {name}")