"""Compact little-endian binary encoding with fixed-width integers.

Integers are little endian at their full width, lengths of byte strings
and text are unsigned 64-bit prefixes, and booleans are a single byte.
"""

from __future__ import annotations

import struct

from memorage.errors import SerdeError


class Encoder:
    """Accumulates encoded values into a byte string."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def _pack(self, fmt: str, value: int) -> None:
        try:
            self._buffer += struct.pack(fmt, value)
        except struct.error as exc:
            raise SerdeError(f"cannot encode {value!r}: {exc}") from exc

    def write_u8(self, value: int) -> None:
        self._pack("<B", value)

    def write_u16(self, value: int) -> None:
        self._pack("<H", value)

    def write_u32(self, value: int) -> None:
        self._pack("<I", value)

    def write_u64(self, value: int) -> None:
        self._pack("<Q", value)

    def write_bool(self, value: bool) -> None:
        self.write_u8(1 if value else 0)

    def write_fixed(self, data: bytes) -> None:
        """Write raw bytes with no length prefix."""
        self._buffer += data

    def write_bytes(self, data: bytes) -> None:
        """Write a length-prefixed byte string."""
        self.write_u64(len(data))
        self._buffer += data

    def write_str(self, value: str) -> None:
        self.write_bytes(value.encode("utf-8"))

    def getvalue(self) -> bytes:
        return bytes(self._buffer)


class Decoder:
    """Reads encoded values back out of a byte string."""

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def _unpack(self, fmt: str) -> int:
        size = struct.calcsize(fmt)
        if self.remaining < size:
            raise SerdeError("unexpected end of input")
        (value,) = struct.unpack_from(fmt, self._data, self._pos)
        self._pos += size
        return value

    def read_u8(self) -> int:
        return self._unpack("<B")

    def read_u16(self) -> int:
        return self._unpack("<H")

    def read_u32(self) -> int:
        return self._unpack("<I")

    def read_u64(self) -> int:
        return self._unpack("<Q")

    def read_bool(self) -> bool:
        value = self.read_u8()
        if value > 1:
            raise SerdeError(f"invalid boolean value {value}")
        return value == 1

    def read_fixed(self, size: int) -> bytes:
        """Read exactly ``size`` raw bytes."""
        if size < 0 or self.remaining < size:
            raise SerdeError("unexpected end of input")
        chunk = self._data[self._pos : self._pos + size]
        self._pos += size
        return chunk

    def read_bytes(self) -> bytes:
        """Read a length-prefixed byte string."""
        return self.read_fixed(self.read_u64())

    def read_str(self) -> str:
        raw = self.read_bytes()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise SerdeError("invalid UTF-8 in string") from exc

    def finish(self) -> None:
        """Check that the whole input was consumed."""
        if self.remaining:
            raise SerdeError(f"{self.remaining} trailing bytes after value")