"""Peer-to-peer request and response messages and their framing."""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, ClassVar

from memorage.bincode import Decoder, Encoder
from memorage.crypto import NONCE_LENGTH, TAG_LENGTH, Encrypted
from memorage.errors import (
    MemorageError,
    MissedSynchronisationError,
    PeerError,
    SerdeError,
    TooLargeError,
    UnexpectedEofError,
    from_os_error,
)
from memorage.fs import HashedPath

logger = logging.getLogger(__name__)

FILE_FRAME_SIZE = 65536
ENCRYPTED_FILE_FRAME_SIZE = NONCE_LENGTH + FILE_FRAME_SIZE + TAG_LENGTH
MAX_PACKET_LENGTH = 0xFFFF

_OK = 0
_ERR = 1
_GENERIC_ERROR = 0


class ProtocolError(PeerError):
    """An error reported by the peer; the wire format carries no detail."""

    default_message = "generic error"


class _Message:
    def _encode(self, encoder: Encoder) -> None:
        pass

    @classmethod
    def _decode(cls, decoder: Decoder) -> Any:
        return cls()


def _write_optional_encrypted(encoder: Encoder, value: Encrypted[Any] | None) -> None:
    if value is None:
        encoder.write_u8(0)
    else:
        encoder.write_u8(1)
        value.encode(encoder)


def _read_option_tag(decoder: Decoder) -> bool:
    tag = decoder.read_u8()
    if tag > 1:
        raise SerdeError(f"invalid option tag {tag}")
    return tag == 1


# Responses


@dataclass(frozen=True)
class PingResponse(_Message):
    pass


@dataclass(frozen=True)
class GetIndexResponse(_Message):
    index: Encrypted[Any] | None = None

    def _encode(self, encoder: Encoder) -> None:
        _write_optional_encrypted(encoder, self.index)

    @classmethod
    def _decode(cls, decoder: Decoder) -> GetIndexResponse:
        if _read_option_tag(decoder):
            return cls(Encrypted.decode(decoder))
        return cls(None)


@dataclass(frozen=True)
class GetFileResponse(_Message):
    length: int | None = None

    def _encode(self, encoder: Encoder) -> None:
        if self.length is None:
            encoder.write_u8(0)
        else:
            encoder.write_u8(1)
            encoder.write_u64(self.length)

    @classmethod
    def _decode(cls, decoder: Decoder) -> GetFileResponse:
        if _read_option_tag(decoder):
            return cls(decoder.read_u64())
        return cls(None)


@dataclass(frozen=True)
class WriteResponse(_Message):
    pass


@dataclass(frozen=True)
class RenameResponse(_Message):
    pass


@dataclass(frozen=True)
class DeleteResponse(_Message):
    pass


@dataclass(frozen=True)
class SetIndexResponse(_Message):
    pass


@dataclass(frozen=True)
class CompleteResponse(_Message):
    pass


# Requests


@dataclass(frozen=True)
class PingRequest(_Message):
    response: ClassVar[type] = PingResponse


@dataclass(frozen=True)
class GetIndexRequest(_Message):
    response: ClassVar[type] = GetIndexResponse


@dataclass(frozen=True)
class GetFileRequest(_Message):
    name: HashedPath
    response: ClassVar[type] = GetFileResponse

    def _encode(self, encoder: Encoder) -> None:
        encoder.write_str(self.name.name)

    @classmethod
    def _decode(cls, decoder: Decoder) -> GetFileRequest:
        return cls(HashedPath(decoder.read_str()))


@dataclass(frozen=True)
class WriteRequest(_Message):
    name: HashedPath
    length: int
    response: ClassVar[type] = WriteResponse

    def _encode(self, encoder: Encoder) -> None:
        encoder.write_str(self.name.name)
        encoder.write_u64(self.length)

    @classmethod
    def _decode(cls, decoder: Decoder) -> WriteRequest:
        name = HashedPath(decoder.read_str())
        return cls(name, decoder.read_u64())


@dataclass(frozen=True)
class RenameRequest(_Message):
    """Rename a stored file."""

    from_name: HashedPath
    to_name: HashedPath
    response: ClassVar[type] = RenameResponse

    def _encode(self, encoder: Encoder) -> None:
        encoder.write_str(self.from_name.name)
        encoder.write_str(self.to_name.name)

    @classmethod
    def _decode(cls, decoder: Decoder) -> RenameRequest:
        from_name = HashedPath(decoder.read_str())
        return cls(from_name, HashedPath(decoder.read_str()))


@dataclass(frozen=True)
class DeleteRequest(_Message):
    """Delete the stored file with the given name."""

    name: HashedPath
    response: ClassVar[type] = DeleteResponse

    def _encode(self, encoder: Encoder) -> None:
        encoder.write_str(self.name.name)

    @classmethod
    def _decode(cls, decoder: Decoder) -> DeleteRequest:
        return cls(HashedPath(decoder.read_str()))


@dataclass(frozen=True)
class SetIndexRequest(_Message):
    """Replace the index stored on the peer."""

    index: Encrypted[Any]
    response: ClassVar[type] = SetIndexResponse

    def _encode(self, encoder: Encoder) -> None:
        self.index.encode(encoder)

    @classmethod
    def _decode(cls, decoder: Decoder) -> SetIndexRequest:
        return cls(Encrypted.decode(decoder))


@dataclass(frozen=True)
class CompleteRequest(_Message):
    """Signal that syncing is complete."""

    response: ClassVar[type] = CompleteResponse


_REQUEST_TYPES: tuple[type, ...] = (
    PingRequest,
    GetIndexRequest,
    GetFileRequest,
    WriteRequest,
    RenameRequest,
    DeleteRequest,
    SetIndexRequest,
    CompleteRequest,
)
_REQUEST_TAGS = {kind: tag for tag, kind in enumerate(_REQUEST_TYPES)}
_RESPONSE_TYPES = frozenset(kind.response for kind in _REQUEST_TYPES)


def serialize_request(request: Any) -> bytes:
    """Encode a request as its tagged wire form."""
    tag = _REQUEST_TAGS.get(type(request))
    if tag is None:
        raise SerdeError(f"{type(request).__name__} is not a request")
    encoder = Encoder()
    encoder.write_u32(tag)
    request._encode(encoder)
    return encoder.getvalue()


def deserialize_request(data: bytes) -> Any:
    """Decode a request of any kind from its wire form."""
    decoder = Decoder(data)
    tag = decoder.read_u32()
    if tag >= len(_REQUEST_TYPES):
        raise SerdeError(f"unknown request variant {tag}")
    request = _REQUEST_TYPES[tag]._decode(decoder)
    decoder.finish()
    return request


def serialize_response(response: Any) -> bytes:
    """Encode a response, or an error to be reported to the peer."""
    encoder = Encoder()
    if isinstance(response, MemorageError):
        encoder.write_u32(_ERR)
        encoder.write_u32(_GENERIC_ERROR)
    elif type(response) in _RESPONSE_TYPES:
        encoder.write_u32(_OK)
        response._encode(encoder)
    else:
        raise SerdeError(f"{type(response).__name__} is not a response")
    return encoder.getvalue()


def deserialize_response(data: bytes, kind: type) -> Any:
    """Decode a response of type ``kind``.

    Raises :class:`ProtocolError` when the peer reported an error.
    """
    if kind not in _RESPONSE_TYPES:
        raise SerdeError(f"{getattr(kind, '__name__', kind)!r} is not a response type")
    decoder = Decoder(data)
    tag = decoder.read_u32()
    if tag == _OK:
        response = kind._decode(decoder)
        decoder.finish()
        return response
    if tag == _ERR:
        variant = decoder.read_u32()
        if variant != _GENERIC_ERROR:
            raise SerdeError(f"unknown error variant {variant}")
        decoder.finish()
        raise ProtocolError()
    raise SerdeError(f"invalid result variant {tag}")


def encode_packet(payload: bytes) -> bytes:
    """Prefix ``payload`` with its length as a big-endian 16-bit integer."""
    payload = bytes(payload)
    if len(payload) > MAX_PACKET_LENGTH:
        raise TooLargeError()
    return len(payload).to_bytes(2, "big") + payload


def _read_exact(reader: Any, size: int) -> bytes:
    buf = bytearray()
    while len(buf) < size:
        try:
            chunk = reader.read(size - len(buf))
        except OSError as exc:
            raise from_os_error(exc) from exc
        if not chunk:
            raise UnexpectedEofError()
        buf += chunk
    return bytes(buf)


def read_packet(reader: Any) -> bytes:
    """Read one length-prefixed packet from a binary file-like ``reader``."""
    length = int.from_bytes(_read_exact(reader, 2), "big")
    return _read_exact(reader, length)


async def send_packet(writer: Any, payload: bytes) -> None:
    """Write one length-prefixed packet to an asynchronous ``writer``."""
    packet = encode_packet(payload)
    logger.debug("sending packet of %d bytes", len(payload))
    try:
        result = writer.write(packet)
        if inspect.isawaitable(result):
            await result
        drain = getattr(writer, "drain", None)
        if drain is not None:
            await drain()
    except OSError as exc:
        raise from_os_error(exc) from exc


async def receive_packet(reader: Any) -> bytes:
    """Read one length-prefixed packet from an asynchronous stream reader."""
    try:
        header = await reader.readexactly(2)
        payload = await reader.readexactly(int.from_bytes(header, "big"))
    except asyncio.IncompleteReadError as exc:
        raise UnexpectedEofError() from exc
    except OSError as exc:
        raise from_os_error(exc) from exc
    logger.debug("received packet of %d bytes", len(payload))
    return payload


async def sleep_till(time: datetime) -> None:
    """Sleep until ``time``; raise if it has already passed."""
    if time.tzinfo is None:
        time = time.replace(tzinfo=timezone.utc)
    delay = time - datetime.now(timezone.utc)
    logger.info("waiting for synchronisation at %s (in %s)", time, delay)
    if delay < timedelta(0):
        raise MissedSynchronisationError()
    await asyncio.sleep(delay.total_seconds())