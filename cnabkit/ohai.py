"""Prefixed informational, success and warning messages."""

from __future__ import annotations

import sys
from typing import IO, Any

_OHAI = "==> "
_SUCCESS = "✓✓✓ "
_WARNING = "!!! "


def _write(out: IO[str], prefix: str, fmt: str, args: tuple) -> int:
    text = prefix + (fmt % args if args else fmt)
    out.write(text)
    return len(text.encode("utf-8"))


def _join(args: tuple) -> str:
    return " ".join(str(a) for a in args)


def ohai(*args: Any) -> int:
    """Print an informative message."""
    return _write(sys.stdout, _OHAI, _join(args), ())


def ohaif(fmt: str, *args: Any) -> int:
    """Print a formatted informative message."""
    return _write(sys.stdout, _OHAI, fmt, args)


def ohailn(*args: Any) -> int:
    """Print an informative message and a newline."""
    return _write(sys.stdout, _OHAI, _join(args) + "\n", ())


def fohai(out: IO[str], *args: Any) -> int:
    """Write an informative message to out."""
    return _write(out, _OHAI, _join(args), ())


def fohaif(out: IO[str], fmt: str, *args: Any) -> int:
    """Write a formatted informative message to out."""
    return _write(out, _OHAI, fmt, args)


def fohailn(out: IO[str], *args: Any) -> int:
    """Write an informative message and a newline to out."""
    return _write(out, _OHAI, _join(args) + "\n", ())


def success(*args: Any) -> int:
    """Print a success message."""
    return _write(sys.stdout, _SUCCESS, _join(args), ())


def successf(fmt: str, *args: Any) -> int:
    """Print a formatted success message."""
    return _write(sys.stdout, _SUCCESS, fmt, args)


def successln(*args: Any) -> int:
    """Print a success message and a newline."""
    return _write(sys.stdout, _SUCCESS, _join(args) + "\n", ())


def fsuccess(out: IO[str], *args: Any) -> int:
    """Write a success message to out."""
    return _write(out, _OHAI, _join(args), ())


def fsuccessf(out: IO[str], fmt: str, *args: Any) -> int:
    """Write a formatted success message to out."""
    return _write(out, _OHAI, fmt, args)


def fsuccessln(out: IO[str], *args: Any) -> int:
    """Write a success message and a newline to out."""
    return _write(out, _OHAI, _join(args) + "\n", ())


def warning(*args: Any) -> int:
    """Print a warning message."""
    return _write(sys.stdout, _WARNING, _join(args), ())


def warningf(fmt: str, *args: Any) -> int:
    """Print a formatted warning message."""
    return _write(sys.stdout, _WARNING, fmt, args)


def warningln(*args: Any) -> int:
    """Print a warning message and a newline."""
    return _write(sys.stdout, _WARNING, _join(args) + "\n", ())


def fwarning(out: IO[str], *args: Any) -> int:
    """Write a warning message to out."""
    return _write(out, _OHAI, _join(args), ())


def fwarningf(out: IO[str], fmt: str, *args: Any) -> int:
    """Write a formatted warning message to out."""
    return _write(out, _OHAI, fmt, args)


def fwarningln(out: IO[str], *args: Any) -> int:
    """Write a warning message and a newline to out."""
    return _write(out, _OHAI, _join(args) + "\n", ())