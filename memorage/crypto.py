"""Authenticated XChaCha20-Poly1305 encryption of values and frames."""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from Crypto.Cipher import ChaCha20_Poly1305

from memorage.bincode import Decoder, Encoder
from memorage.errors import (
    DecryptionError,
    EncryptionError,
    FrameTooShortError,
    SerdeError,
)

NONCE_LENGTH = 24
TAG_LENGTH = 16
KEY_LENGTH = 32

T = TypeVar("T")


def _cipher(key: bytes, nonce: bytes) -> Any:
    raw = bytes(key)
    if len(raw) != KEY_LENGTH:
        raise ValueError(f"key must be {KEY_LENGTH} bytes, got {len(raw)}")
    return ChaCha20_Poly1305.new(key=raw, nonce=bytes(nonce))


def _new_nonce() -> bytes:
    return secrets.token_bytes(NONCE_LENGTH)


def _serialize(value: Any) -> bytes:
    encoder = Encoder()
    if isinstance(value, (bytes, bytearray, memoryview)):
        encoder.write_bytes(bytes(value))
    elif isinstance(value, str):
        encoder.write_str(value)
    elif hasattr(value, "encode"):
        value.encode(encoder)
    else:
        raise SerdeError(f"cannot serialize value of type {type(value).__name__}")
    return encoder.getvalue()


def _deserialize(data: bytes, kind: Any) -> Any:
    decoder = Decoder(data)
    if kind is bytes:
        value: Any = decoder.read_bytes()
    elif kind is str:
        value = decoder.read_str()
    elif hasattr(kind, "decode"):
        value = kind.decode(decoder)
    else:
        raise SerdeError(f"cannot deserialize into {kind!r}")
    decoder.finish()
    return value


@dataclass(frozen=True)
class Encrypted(Generic[T]):
    """A serialized value sealed with a random nonce.

    ``value`` holds the ciphertext followed by the 16-byte tag.
    """

    nonce: bytes
    value: bytes

    def __post_init__(self) -> None:
        nonce = bytes(self.nonce)
        if len(nonce) != NONCE_LENGTH:
            raise ValueError(f"nonce must be {NONCE_LENGTH} bytes, got {len(nonce)}")
        object.__setattr__(self, "nonce", nonce)
        object.__setattr__(self, "value", bytes(self.value))

    @classmethod
    def encrypt(cls, value: T, key: bytes) -> Encrypted[T]:
        """Serialize ``value`` and encrypt it under ``key``."""
        plaintext = _serialize(value)
        nonce = _new_nonce()
        try:
            ciphertext, tag = _cipher(key, nonce).encrypt_and_digest(plaintext)
        except (TypeError, ValueError) as exc:
            if isinstance(exc, ValueError) and "key must be" in str(exc):
                raise
            raise EncryptionError() from exc
        return cls(nonce, ciphertext + tag)

    def decrypt(self, key: bytes, kind: Any) -> T:
        """Decrypt and deserialize into ``kind``.

        ``kind`` is ``bytes``, ``str`` or a class with a ``decode(decoder)``
        class method.
        """
        if len(self.value) < TAG_LENGTH:
            raise DecryptionError()
        ciphertext, tag = self.value[:-TAG_LENGTH], self.value[-TAG_LENGTH:]
        cipher = _cipher(key, self.nonce)
        try:
            plaintext = cipher.decrypt_and_verify(ciphertext, tag)
        except ValueError as exc:
            raise DecryptionError() from exc
        return _deserialize(plaintext, kind)

    def encode(self, encoder: Encoder) -> None:
        encoder.write_fixed(self.nonce)
        encoder.write_bytes(self.value)

    @classmethod
    def decode(cls, decoder: Decoder) -> Encrypted[Any]:
        nonce = decoder.read_fixed(NONCE_LENGTH)
        value = decoder.read_bytes()
        return cls(nonce, value)


def split_encrypted_buf(buf: bytes) -> tuple[bytes, bytes, bytes]:
    """Split a frame of nonce, data and tag into those three parts."""
    if len(buf) < NONCE_LENGTH + TAG_LENGTH:
        raise FrameTooShortError()
    data_end = len(buf) - TAG_LENGTH
    return (
        bytes(buf[:NONCE_LENGTH]),
        bytes(buf[NONCE_LENGTH:data_end]),
        bytes(buf[data_end:]),
    )


def encrypt_detached(data: bytes, key: bytes) -> tuple[bytes, bytes, bytes]:
    """Encrypt ``data`` with a fresh nonce.

    Returns the nonce, the ciphertext and the tag, in frame order.
    """
    nonce = _new_nonce()
    cipher = _cipher(key, nonce)
    try:
        ciphertext, tag = cipher.encrypt_and_digest(bytes(data))
    except (TypeError, ValueError) as exc:
        raise EncryptionError() from exc
    return nonce, ciphertext, tag


def decrypt_detached(key: bytes, buf: bytes) -> bytes:
    """Decrypt a frame holding nonce, data and tag, returning the plaintext."""
    nonce, data, tag = split_encrypted_buf(buf)
    cipher = _cipher(key, nonce)
    try:
        return cipher.decrypt_and_verify(data, tag)
    except ValueError as exc:
        raise DecryptionError() from exc