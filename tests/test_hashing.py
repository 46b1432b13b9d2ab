import io

import pytest

from memorage.errors import EntityNotFoundError
from memorage.hashing import Blake3, blake3, hash_reader


def test_empty_input_digest():
    assert (
        Blake3().hexdigest()
        == "af1349b9f5f9a1a6a0404dea36dcc9499bcb25c9adc112b7cc9a93cae41f3262"
    )


def test_digest_length_and_hexdigest_agree():
    hasher = Blake3(b"some data")
    assert len(hasher.digest()) == 32
    assert hasher.hexdigest() == hasher.digest().hex()


def test_digest_does_not_consume_state():
    hasher = Blake3(b"first")
    before = hasher.digest()
    assert hasher.digest() == before
    hasher.update(b"second")
    assert hasher.digest() == blake3(b"firstsecond")


@pytest.mark.parametrize("size", [63, 64, 65, 1023, 1024, 1025, 2048, 3073, 5000])
def test_incremental_matches_one_shot(size):
    data = bytes((i * 7 + 3) % 251 for i in range(size))
    one_shot = blake3(data)
    for split in (1, 64, 1000, size // 2):
        hasher = Blake3()
        hasher.update(data[:split])
        hasher.update(data[split:])
        assert hasher.digest() == one_shot


def test_byte_at_a_time_matches_one_shot():
    data = bytes(range(256)) * 5
    hasher = Blake3()
    for b in data:
        hasher.update(bytes([b]))
    assert hasher.digest() == blake3(data)


def test_distinct_inputs_hash_differently():
    digests = {blake3(bytes(n)) for n in (0, 1, 64, 1024, 1025)}
    assert len(digests) == 5


def test_single_bit_change_changes_digest():
    data = bytearray(2000)
    original = blake3(bytes(data))
    data[1500] ^= 1
    assert blake3(bytes(data)) != original
    assert len(blake3(bytes(data))) == 32


def test_hash_reader_matches_blake3():
    data = bytes((i * 13) % 256 for i in range(70000))
    assert hash_reader(io.BytesIO(data)) == blake3(data)


def test_hash_reader_propagates_io_errors():
    class Broken:
        def read(self, size):
            raise FileNotFoundError()

    with pytest.raises(EntityNotFoundError):
        hash_reader(Broken())