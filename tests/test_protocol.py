import asyncio
import io
from datetime import datetime, timedelta, timezone

import pytest

from memorage.crypto import Encrypted
from memorage.errors import (
    IoError,
    MissedSynchronisationError,
    PeerError,
    SerdeError,
    TooLargeError,
    UnexpectedEofError,
)
from memorage.fs import HashedPath
from memorage.protocol import (
    MAX_PACKET_LENGTH,
    CompleteRequest,
    CompleteResponse,
    DeleteRequest,
    DeleteResponse,
    GetFileRequest,
    GetFileResponse,
    GetIndexRequest,
    GetIndexResponse,
    PingRequest,
    PingResponse,
    ProtocolError,
    RenameRequest,
    RenameResponse,
    SetIndexRequest,
    SetIndexResponse,
    WriteRequest,
    WriteResponse,
    deserialize_request,
    deserialize_response,
    encode_packet,
    read_packet,
    receive_packet,
    send_packet,
    serialize_request,
    serialize_response,
    sleep_till,
)

ENCRYPTED = Encrypted(bytes(24), b"ciphertext and tag")
NAME_A = HashedPath.from_path("a")
NAME_B = HashedPath.from_path("b")

REQUESTS = [
    PingRequest(),
    GetIndexRequest(),
    GetFileRequest(NAME_A),
    WriteRequest(NAME_A, 12345),
    RenameRequest(NAME_A, NAME_B),
    DeleteRequest(NAME_B),
    SetIndexRequest(ENCRYPTED),
    CompleteRequest(),
]

RESPONSES = [
    PingResponse(),
    GetIndexResponse(None),
    GetIndexResponse(ENCRYPTED),
    GetFileResponse(None),
    GetFileResponse(70000),
    WriteResponse(),
    RenameResponse(),
    DeleteResponse(),
    SetIndexResponse(),
    CompleteResponse(),
]


def test_ping_request_wire_bytes():
    assert serialize_request(PingRequest()) == bytes(4)


def test_ok_unit_response_wire_bytes():
    assert serialize_response(CompleteResponse()) == bytes(4)


def test_error_response_wire_bytes():
    assert serialize_response(ProtocolError()) == b"\x01\x00\x00\x00\x00\x00\x00\x00"


@pytest.mark.parametrize("request_", REQUESTS)
def test_request_round_trip(request_):
    assert deserialize_request(serialize_request(request_)) == request_


def test_request_tags_are_distinct():
    tags = {serialize_request(r)[:4] for r in REQUESTS}
    assert len(tags) == len(REQUESTS)


@pytest.mark.parametrize("response", RESPONSES)
def test_response_round_trip(response):
    assert deserialize_response(serialize_response(response), type(response)) == response


@pytest.mark.parametrize("request_", REQUESTS)
def test_request_pairs_with_its_response(request_):
    response_type = request_.response
    unit = response_type()
    assert deserialize_response(serialize_response(unit), response_type) == unit


def test_error_response_raises_protocol_error():
    data = serialize_response(ProtocolError())
    with pytest.raises(ProtocolError) as info:
        deserialize_response(data, PingResponse)
    assert isinstance(info.value, PeerError)


def test_any_package_error_is_sent_as_generic():
    assert serialize_response(IoError()) == serialize_response(ProtocolError())


def test_unknown_request_variant():
    with pytest.raises(SerdeError):
        deserialize_request((len(REQUESTS) + 5).to_bytes(4, "little"))


def test_trailing_bytes_rejected():
    with pytest.raises(SerdeError):
        deserialize_request(serialize_request(PingRequest()) + b"\x00")
    with pytest.raises(SerdeError):
        deserialize_response(serialize_response(PingResponse()) + b"\x00", PingResponse)


def test_truncated_request_rejected():
    data = serialize_request(WriteRequest(NAME_A, 1))
    with pytest.raises(SerdeError):
        deserialize_request(data[:-1])


def test_invalid_result_variant():
    with pytest.raises(SerdeError):
        deserialize_response((2).to_bytes(4, "little"), PingResponse)


def test_non_request_rejected():
    with pytest.raises(SerdeError):
        serialize_request(PingResponse())
    with pytest.raises(SerdeError):
        serialize_response(PingRequest())


def test_encode_packet_prefixes_big_endian_length():
    payload = b"payload bytes"
    packet = encode_packet(payload)
    assert int.from_bytes(packet[:2], "big") == len(payload)
    assert packet[2:] == payload


def test_encode_packet_too_large():
    with pytest.raises(TooLargeError):
        encode_packet(bytes(MAX_PACKET_LENGTH + 1))


def test_read_packet_round_trip():
    first = serialize_request(GetFileRequest(NAME_A))
    second = serialize_request(CompleteRequest())
    stream = io.BytesIO(encode_packet(first) + encode_packet(second))
    assert read_packet(stream) == first
    assert read_packet(stream) == second


def test_read_packet_short():
    stream = io.BytesIO(encode_packet(b"abcdef")[:-2])
    with pytest.raises(UnexpectedEofError):
        read_packet(stream)


class _CollectingWriter:
    def __init__(self):
        self.data = bytearray()
        self.drained = 0

    def write(self, chunk):
        self.data += chunk

    async def drain(self):
        self.drained += 1


@pytest.mark.asyncio
async def test_send_and_receive_packet():
    payload = serialize_response(GetFileResponse(42))
    writer = _CollectingWriter()
    await send_packet(writer, payload)
    assert writer.drained == 1

    reader = asyncio.StreamReader()
    reader.feed_data(bytes(writer.data))
    reader.feed_eof()
    received = await receive_packet(reader)
    assert received == payload
    assert deserialize_response(received, GetFileResponse) == GetFileResponse(42)


@pytest.mark.asyncio
async def test_receive_packet_truncated():
    reader = asyncio.StreamReader()
    reader.feed_data(encode_packet(b"abcdef")[:-3])
    reader.feed_eof()
    with pytest.raises(UnexpectedEofError):
        await receive_packet(reader)


@pytest.mark.asyncio
async def test_sleep_till_past_time():
    with pytest.raises(MissedSynchronisationError):
        await sleep_till(datetime.now(timezone.utc) - timedelta(seconds=1))


@pytest.mark.asyncio
async def test_sleep_till_future_time():
    target = datetime.now(timezone.utc) + timedelta(milliseconds=50)
    await sleep_till(target)
    assert datetime.now(timezone.utc) >= target - timedelta(milliseconds=5)