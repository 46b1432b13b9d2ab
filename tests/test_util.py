import asyncio
import io

import pytest

from memorage.errors import EntityNotFoundError, IoError
from memorage.util import WIDE_COPY_BUFFER_SIZE, async_wide_copy, wide_copy


def test_wide_copy_copies_everything():
    data = bytes(range(256)) * 600
    out = io.BytesIO()
    total = wide_copy(io.BytesIO(data), out)
    assert total == len(data)
    assert out.getvalue() == data


def test_wide_copy_empty_reader():
    out = io.BytesIO()
    assert wide_copy(io.BytesIO(b""), out) == 0
    assert out.getvalue() == b""


class _InterruptingReader:
    def __init__(self, data):
        self._inner = io.BytesIO(data)
        self.interrupted = False

    def read(self, size):
        if not self.interrupted:
            self.interrupted = True
            raise InterruptedError()
        return self._inner.read(size)


def test_wide_copy_retries_after_interrupt():
    reader = _InterruptingReader(b"abcdef")
    out = io.BytesIO()
    assert wide_copy(reader, out) == 6
    assert out.getvalue() == b"abcdef"
    assert reader.interrupted


class _FailingReader:
    def __init__(self, error):
        self._error = error

    def read(self, size):
        raise self._error


def test_wide_copy_maps_not_found():
    with pytest.raises(EntityNotFoundError):
        wide_copy(_FailingReader(FileNotFoundError()), io.BytesIO())


def test_wide_copy_maps_other_errors():
    with pytest.raises(IoError):
        wide_copy(_FailingReader(ConnectionResetError()), io.BytesIO())


class _RecordingWriter:
    def __init__(self):
        self.chunks = []
        self.drains = 0

    def write(self, data):
        self.chunks.append(bytes(data))

    async def drain(self):
        self.drains += 1


@pytest.mark.asyncio
async def test_async_wide_copy_copies_and_drains():
    data = b"x" * (WIDE_COPY_BUFFER_SIZE * 2 + 17)
    reader = asyncio.StreamReader()
    reader.feed_data(data)
    reader.feed_eof()
    writer = _RecordingWriter()

    total = await async_wide_copy(reader, writer)

    assert total == len(data)
    assert b"".join(writer.chunks) == data
    assert writer.drains == len(writer.chunks)
    assert all(len(c) <= WIDE_COPY_BUFFER_SIZE for c in writer.chunks)


class _AsyncWriter:
    def __init__(self):
        self.received = bytearray()

    async def write(self, data):
        self.received += data


@pytest.mark.asyncio
async def test_async_wide_copy_awaits_async_write():
    reader = asyncio.StreamReader()
    reader.feed_data(b"hello world")
    reader.feed_eof()
    writer = _AsyncWriter()
    assert await async_wide_copy(reader, writer) == 11
    assert bytes(writer.received) == b"hello world"