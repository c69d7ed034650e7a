"""External executable lookup used by PDF extraction.

Responsibilities:
- Resolve tools such as `pdftotext` from an app-local `bin/` directory first,
  then from `PATH`.
- Report whether a tool is runnable so callers can pick a pure-Python fallback.
"""

from __future__ import annotations

from pathlib import Path
import shutil
import sys


def resolve_executable(command_name: str) -> str:
    """Return the path to run for `command_name`.

    Falls back to the bare name when nothing is found so `subprocess`
    raises its own `FileNotFoundError`.
    """

    name = command_name.strip()
    if not name:
        return command_name

    local = _local_tool(name)
    if local is not None:
        return str(local)
    return shutil.which(name) or name


def executable_available(command_name: str) -> bool:
    """Return whether `command_name` resolves to an existing executable."""

    name = command_name.strip()
    if not name:
        return False
    return _local_tool(name) is not None or shutil.which(name) is not None


def _local_tool(name: str) -> Path | None:
    """Find `name` (or `name.exe`) under the application's `bin/` directory."""

    bin_dir = _app_root() / "bin"
    variants = (name,) if name.lower().endswith(".exe") else (name, f"{name}.exe")
    for variant in variants:
        candidate = bin_dir / variant
        if candidate.is_file():
            return candidate
    return None


def _app_root() -> Path:
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parents[1]
