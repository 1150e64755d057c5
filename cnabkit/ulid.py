"""Universally unique lexicographically sortable identifiers."""

from __future__ import annotations

import random
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Protocol

_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_MAX_TIME = (1 << 48) - 1
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MILLISECOND = timedelta(milliseconds=1)


class RandomSource(Protocol):
    """Anything able to supply random bits."""

    def getrandbits(self, k: int) -> int: ...


def _millis(timestamp: datetime | int) -> int:
    if isinstance(timestamp, datetime):
        if timestamp.tzinfo is None:
            timestamp = timestamp.astimezone()
        return (timestamp - _EPOCH) // _MILLISECOND
    return int(timestamp)


def new_ulid(timestamp: datetime | int, rng: RandomSource) -> str:
    """Build a ULID string from a timestamp (datetime or Unix milliseconds) and entropy."""
    ms = _millis(timestamp)
    if not 0 <= ms <= _MAX_TIME:
        raise ValueError(f"timestamp {ms} is outside the ULID range")
    value = (ms << 80) | (rng.getrandbits(80) & ((1 << 80) - 1))
    return "".join(_ALPHABET[(value >> shift) & 0x1F] for shift in range(125, -1, -5))


_rng = random.Random(time.time_ns())
_lock = threading.Lock()


def getulid() -> str:
    """Return a fresh ULID for the current time."""
    with _lock:
        return new_ulid(datetime.now(timezone.utc), _rng)