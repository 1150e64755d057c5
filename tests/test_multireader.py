import io

import pytest

from cnabkit.multireader import MultiReadCloser, multi_read_closer


def buf(data):
    return io.BytesIO(data.encode("utf-8"))


def test_multi_read_closer():
    mrc = multi_read_closer(buf("first"), buf("second"), buf("third"))
    assert mrc.read() == b"firstsecondthird"


def test_small_reads_cross_boundaries():
    mrc = multi_read_closer(buf("ab"), buf("cde"))
    parts = []
    while True:
        chunk = mrc.read(2)
        if not chunk:
            break
        assert len(chunk) <= 2
        parts.append(chunk)
    assert b"".join(parts) == b"abcde"


def test_nested_readers_flatten():
    inner = multi_read_closer(buf("x"), buf("y"))
    outer = multi_read_closer(inner)
    assert outer.read() == b"xy"


def test_empty_reader_returns_eof():
    assert multi_read_closer().read() == b""


def test_close_closes_all():
    readers = [buf("a"), buf("b")]
    mrc = MultiReadCloser(readers)
    mrc.close()
    assert all(r.closed for r in readers)
    assert mrc.closed


def test_close_error_propagates():
    class Broken(io.BytesIO):
        def close(self):
            raise OSError("broken")

    mrc = multi_read_closer(Broken(b""), buf("b"))
    with pytest.raises(OSError, match="broken"):
        mrc.close()