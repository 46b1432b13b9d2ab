import pytest

from memorage.bincode import Decoder, Encoder
from memorage.errors import SerdeError


def test_u16_is_little_endian():
    enc = Encoder()
    enc.write_u16(0x0102)
    assert enc.getvalue() == b"\x02\x01"


def test_string_has_u64_length_prefix():
    enc = Encoder()
    enc.write_str("abc")
    assert enc.getvalue() == b"\x03\x00\x00\x00\x00\x00\x00\x00abc"


def test_bool_is_single_byte():
    enc = Encoder()
    enc.write_bool(True)
    enc.write_bool(False)
    assert enc.getvalue() == b"\x01\x00"


def test_round_trip_all_kinds():
    enc = Encoder()
    enc.write_u8(255)
    enc.write_u16(65535)
    enc.write_u32(2**32 - 1)
    enc.write_u64(2**64 - 1)
    enc.write_bool(True)
    enc.write_fixed(b"\x01" * 24)
    enc.write_bytes(b"payload")
    enc.write_str("h\u00e9llo")

    dec = Decoder(enc.getvalue())
    assert dec.read_u8() == 255
    assert dec.read_u16() == 65535
    assert dec.read_u32() == 2**32 - 1
    assert dec.read_u64() == 2**64 - 1
    assert dec.read_bool() is True
    assert dec.read_fixed(24) == b"\x01" * 24
    assert dec.read_bytes() == b"payload"
    assert dec.read_str() == "h\u00e9llo"
    dec.finish()
    assert dec.remaining == 0


def test_encoded_size_matches_widths():
    enc = Encoder()
    enc.write_u8(1)
    enc.write_u16(1)
    enc.write_u32(1)
    enc.write_u64(1)
    assert len(enc.getvalue()) == 1 + 2 + 4 + 8


@pytest.mark.parametrize(
    "method, value",
    [("write_u8", 256), ("write_u16", 65536), ("write_u32", -1), ("write_u64", 2**64)],
)
def test_out_of_range_values_rejected(method, value):
    with pytest.raises(SerdeError):
        getattr(Encoder(), method)(value)


def test_short_input_raises():
    with pytest.raises(SerdeError):
        Decoder(b"\x01\x02").read_u32()


def test_length_beyond_input_raises():
    enc = Encoder()
    enc.write_u64(100)
    enc.write_fixed(b"short")
    with pytest.raises(SerdeError):
        Decoder(enc.getvalue()).read_bytes()


def test_invalid_bool_raises():
    with pytest.raises(SerdeError):
        Decoder(b"\x02").read_bool()


def test_invalid_utf8_raises():
    enc = Encoder()
    enc.write_bytes(b"\xff\xfe")
    with pytest.raises(SerdeError):
        Decoder(enc.getvalue()).read_str()


def test_finish_rejects_trailing_bytes():
    dec = Decoder(b"\x01\x02")
    assert dec.read_u8() == 1
    with pytest.raises(SerdeError):
        dec.finish()