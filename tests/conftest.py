"""
Pytest configuration and fixtures for fsg tests.
"""

import io

import pytest

import fsg


SAMPLE = b"\x00hello\x00world\x01test\x00"


class FakeClock:
    """Returns the given times in order, then keeps returning the last one."""

    def __init__(self, *times):
        self.times = list(times)

    def __call__(self):
        if len(self.times) > 1:
            return self.times.pop(0)
        return self.times[0]


@pytest.fixture
def extract():
    """Runs a full scan over in-memory data and returns the output lines."""

    def run(data, min_size=fsg.DEFAULT_MIN_SIZE, rules=None, offset=0,
            chunk_size=fsg.CHUNK_SIZE, progress=None):
        sink = io.BytesIO()
        fsg.scan(fsg.ByteSource(data, offset), sink, rules, min_size, progress, chunk_size)
        return sink.getvalue().splitlines()

    return run


@pytest.fixture
def sample_file(tmp_path):
    path = tmp_path / "sample.bin"
    path.write_bytes(SAMPLE)
    return path


@pytest.fixture
def binary_blob():
    """A few kilobytes of mixed binary and text."""
    parts = []
    for i in range(200):
        parts.append(bytes(range(i % 7)))
        parts.append(b"token%03d\tvalue" % i)
        parts.append(b"\xff\xfe")
        parts.append(b"ab" * (i % 5))
    return b"".join(parts)
