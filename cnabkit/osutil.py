"""Small filesystem helpers."""

from __future__ import annotations

import os


def exists(path: str | os.PathLike) -> bool:
    """Return whether path exists; other stat errors propagate."""
    try:
        os.stat(path)
    except FileNotFoundError:
        return False
    return True


def ensure_directory(path: str | os.PathLike) -> None:
    """Create the directory if it is missing; raise if path is not a directory."""
    name = os.fspath(path)
    try:
        is_dir = os.path.isdir(name) if os.stat(name) else False
    except OSError:
        try:
            os.makedirs(name, 0o755, exist_ok=True)
        except OSError as err:
            raise OSError(f"Could not create {name}: {err}") from err
        return
    if not is_dir:
        raise NotADirectoryError(f"{name} must be a directory")


def ensure_file(path: str | os.PathLike) -> None:
    """Create an empty file if it is missing; raise if path is a directory."""
    name = os.fspath(path)
    try:
        os.stat(name)
    except OSError:
        try:
            with open(name, "ab"):
                pass
        except OSError as err:
            raise OSError(f"Could not create {name}: {err}") from err
        return
    if os.path.isdir(name):
        raise IsADirectoryError(f"{name} must not be a directory")