"""A readable stream that concatenates several closable streams."""

from __future__ import annotations

import io
from typing import IO, Iterable


class MultiReadCloser(io.RawIOBase):
    """Reads its streams one after another; closing it closes all of them."""

    def __init__(self, readers: Iterable[IO[bytes]]) -> None:
        super().__init__()
        self._readers: list[IO[bytes]] = list(readers)

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        view = memoryview(buffer).cast("B")
        if not len(view):
            return 0
        while self._readers:
            if len(self._readers) == 1 and isinstance(self._readers[0], MultiReadCloser):
                self._readers = self._readers[0]._readers
                continue
            chunk = self._readers[0].read(len(view))
            if not chunk:
                self._readers.pop(0)
                continue
            view[: len(chunk)] = chunk
            return len(chunk)
        return 0

    def close(self) -> None:
        """Close every underlying stream, stopping at the first failure."""
        if self.closed:
            return
        try:
            for reader in self._readers:
                reader.close()
        finally:
            super().close()


def multi_read_closer(*args: IO[bytes]) -> MultiReadCloser:
    """Return a stream that is the concatenation of the given streams."""
    return MultiReadCloser(args)