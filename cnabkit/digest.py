"""Truncated SHA-256 checksums of streams and buffers."""

from __future__ import annotations

import hashlib
import io
from typing import BinaryIO

_TAG_LENGTH = 40


def of_reader(reader: BinaryIO) -> tuple[io.BytesIO, str]:
    """Read a stream fully; return a copy of its content and its truncated checksum."""
    data = reader.read()
    return io.BytesIO(data), of_buffer(data)


def of_buffer(data: bytes) -> str:
    """Return the first 40 hex digits of the SHA-256 checksum of data."""
    return hashlib.sha256(data).hexdigest()[:_TAG_LENGTH]