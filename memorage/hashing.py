"""BLAKE3 hashing with a 32-byte output."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Any

from memorage.util import wide_copy

_MASK = 0xFFFFFFFF
_BLOCK_LEN = 64
_CHUNK_LEN = 1024

_CHUNK_START = 1 << 0
_CHUNK_END = 1 << 1
_PARENT = 1 << 2
_ROOT = 1 << 3

_IV = (
    0x6A09E667,
    0xBB67AE85,
    0x3C6EF372,
    0xA54FF53A,
    0x510E527F,
    0x9B05688C,
    0x1F83D9AB,
    0x5BE0CD19,
)

_PERMUTATION = (2, 6, 3, 10, 7, 0, 4, 13, 1, 11, 12, 5, 9, 14, 15, 8)

_G_SCHEDULE = (
    (0, 4, 8, 12),
    (1, 5, 9, 13),
    (2, 6, 10, 14),
    (3, 7, 11, 15),
    (0, 5, 10, 15),
    (1, 6, 11, 12),
    (2, 7, 8, 13),
    (3, 4, 9, 14),
)


def _rotr(x: int, n: int) -> int:
    return ((x >> n) | (x << (32 - n))) & _MASK


def _g(s: list[int], a: int, b: int, c: int, d: int, x: int, y: int) -> None:
    s[a] = (s[a] + s[b] + x) & _MASK
    s[d] = _rotr(s[d] ^ s[a], 16)
    s[c] = (s[c] + s[d]) & _MASK
    s[b] = _rotr(s[b] ^ s[c], 12)
    s[a] = (s[a] + s[b] + y) & _MASK
    s[d] = _rotr(s[d] ^ s[a], 8)
    s[c] = (s[c] + s[d]) & _MASK
    s[b] = _rotr(s[b] ^ s[c], 7)


def _compress(
    cv: tuple[int, ...] | list[int],
    block_words: tuple[int, ...] | list[int],
    counter: int,
    block_len: int,
    flags: int,
) -> list[int]:
    state = [
        *cv,
        *_IV[:4],
        counter & _MASK,
        (counter >> 32) & _MASK,
        block_len,
        flags,
    ]
    message = list(block_words)
    for round_number in range(7):
        for k, (a, b, c, d) in enumerate(_G_SCHEDULE):
            _g(state, a, b, c, d, message[2 * k], message[2 * k + 1])
        if round_number < 6:
            message = [message[i] for i in _PERMUTATION]
    for i, word in enumerate(cv):
        state[i] ^= state[i + 8]
        state[i + 8] ^= word
    return state


def _words(block: bytes) -> tuple[int, ...]:
    return struct.unpack("<16I", block.ljust(_BLOCK_LEN, b"\0"))


@dataclass(frozen=True)
class _Output:
    cv: tuple[int, ...]
    block_words: tuple[int, ...]
    counter: int
    block_len: int
    flags: int

    def chaining_value(self) -> tuple[int, ...]:
        return tuple(
            _compress(self.cv, self.block_words, self.counter, self.block_len, self.flags)[:8]
        )

    def root_bytes(self) -> bytes:
        words = _compress(self.cv, self.block_words, 0, self.block_len, self.flags | _ROOT)
        return struct.pack("<8I", *words[:8])


def _parent_output(left: tuple[int, ...], right: tuple[int, ...]) -> _Output:
    return _Output(_IV, left + right, 0, _BLOCK_LEN, _PARENT)


class _ChunkState:
    def __init__(self, counter: int) -> None:
        self.cv: tuple[int, ...] = _IV
        self.counter = counter
        self.block = bytearray()
        self.blocks_compressed = 0

    def __len__(self) -> int:
        return _BLOCK_LEN * self.blocks_compressed + len(self.block)

    def _start_flag(self) -> int:
        return _CHUNK_START if self.blocks_compressed == 0 else 0

    def update(self, data: memoryview) -> None:
        while data:
            if len(self.block) == _BLOCK_LEN:
                self.cv = tuple(
                    _compress(
                        self.cv,
                        _words(bytes(self.block)),
                        self.counter,
                        _BLOCK_LEN,
                        self._start_flag(),
                    )[:8]
                )
                self.blocks_compressed += 1
                self.block.clear()
            take = _BLOCK_LEN - len(self.block)
            self.block += data[:take]
            data = data[take:]

    def output(self) -> _Output:
        return _Output(
            self.cv,
            _words(bytes(self.block)),
            self.counter,
            len(self.block),
            self._start_flag() | _CHUNK_END,
        )


class Blake3:
    """Incremental BLAKE3 hasher producing 32-byte digests."""

    digest_size = 32

    def __init__(self, data: bytes = b"") -> None:
        self._cv_stack: list[tuple[int, ...]] = []
        self._chunk = _ChunkState(0)
        if data:
            self.update(data)

    def _push_chunk(self, cv: tuple[int, ...], total_chunks: int) -> None:
        while total_chunks & 1 == 0:
            cv = _parent_output(self._cv_stack.pop(), cv).chaining_value()
            total_chunks >>= 1
        self._cv_stack.append(cv)

    def update(self, data: bytes) -> None:
        view = memoryview(data).cast("B")
        while view:
            if len(self._chunk) == _CHUNK_LEN:
                cv = self._chunk.output().chaining_value()
                total_chunks = self._chunk.counter + 1
                self._push_chunk(cv, total_chunks)
                self._chunk = _ChunkState(total_chunks)
            take = _CHUNK_LEN - len(self._chunk)
            self._chunk.update(view[:take])
            view = view[take:]

    def digest(self) -> bytes:
        output = self._chunk.output()
        for left in reversed(self._cv_stack):
            output = _parent_output(left, output.chaining_value())
        return output.root_bytes()

    def hexdigest(self) -> str:
        return self.digest().hex()


class _HashSink:
    def __init__(self, hasher: Blake3) -> None:
        self._hasher = hasher

    def write(self, data: bytes) -> None:
        self._hasher.update(data)


def blake3(data: bytes) -> bytes:
    """Return the BLAKE3 digest of ``data``."""
    return Blake3(data).digest()


def hash_reader(reader: Any) -> bytes:
    """Hash everything readable from a binary file-like ``reader``."""
    hasher = Blake3()
    wide_copy(reader, _HashSink(hasher))
    return hasher.digest()