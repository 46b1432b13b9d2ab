"""Self-signed Ed25519 certificates and their verification."""

from __future__ import annotations

import ipaddress
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.x509.oid import NameOID

from memorage.errors import (
    CertError,
    CertificateDataError,
    CertificateGenerationError,
    IntermediatesNotEmptyError,
    InvalidCertificateError,
    KeyNotPermittedError,
)

PUBLIC_KEY_LENGTH = 32
PRIVATE_KEY_LENGTH = 32

_COMMON_NAME = "self signed cert"
_NOT_BEFORE = datetime(1975, 1, 1, tzinfo=timezone.utc)
_NOT_AFTER = datetime(4096, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class PublicKey:
    """A raw 32-byte Ed25519 public key."""

    data: bytes

    def __post_init__(self) -> None:
        raw = bytes(self.data)
        if len(raw) != PUBLIC_KEY_LENGTH:
            raise ValueError(
                f"public key must be {PUBLIC_KEY_LENGTH} bytes, got {len(raw)}"
            )
        object.__setattr__(self, "data", raw)

    def __bytes__(self) -> bytes:
        return self.data

    def __str__(self) -> str:
        return self.data.hex()


def _signing_key(private: bytes) -> Ed25519PrivateKey:
    return Ed25519PrivateKey.from_private_bytes(private)


def _raw_public(key: Ed25519PublicKey) -> bytes:
    return key.public_bytes(serialization.Encoding.Raw, serialization.PublicFormat.Raw)


@dataclass(frozen=True)
class KeyPair:
    """An Ed25519 key pair; ``private`` is the 32-byte seed."""

    private: bytes = field(repr=False)
    public: PublicKey = field(init=False)

    def __post_init__(self) -> None:
        seed = bytes(self.private)
        if len(seed) != PRIVATE_KEY_LENGTH:
            raise ValueError(
                f"private key must be {PRIVATE_KEY_LENGTH} bytes, got {len(seed)}"
            )
        object.__setattr__(self, "private", seed)
        public = _raw_public(_signing_key(seed).public_key())
        object.__setattr__(self, "public", PublicKey(public))

    @classmethod
    def from_entropy(cls) -> KeyPair:
        """Generate a fresh random key pair."""
        key = Ed25519PrivateKey.generate()
        seed = key.private_bytes(
            serialization.Encoding.Raw,
            serialization.PrivateFormat.Raw,
            serialization.NoEncryption(),
        )
        return cls(seed)

    def to_pkcs8(self) -> bytes:
        """Return the private key as a DER-encoded PKCS#8 document."""
        return _signing_key(self.private).private_bytes(
            serialization.Encoding.DER,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )

    @classmethod
    def from_pkcs8(cls, data: bytes) -> KeyPair:
        """Load a key pair from a DER-encoded PKCS#8 document."""
        try:
            key = serialization.load_der_private_key(bytes(data), None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise ValueError("invalid PKCS#8 key") from exc
        if not isinstance(key, Ed25519PrivateKey):
            raise ValueError("PKCS#8 key is not an Ed25519 key")
        seed = key.private_bytes(
            serialization.Encoding.Raw,
            serialization.PrivateFormat.Raw,
            serialization.NoEncryption(),
        )
        return cls(seed)


def gen_cert(
    public_address: str | ipaddress.IPv4Address | ipaddress.IPv6Address,
    key_pair: KeyPair,
) -> tuple[bytes, bytes]:
    """Create a self-signed certificate for ``public_address``.

    Returns the DER certificate and the DER PKCS#8 private key.
    """
    try:
        address = ipaddress.ip_address(public_address)
        signing_key = _signing_key(key_pair.private)
        name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, _COMMON_NAME)])
        certificate = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(signing_key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(_NOT_BEFORE)
            .not_valid_after(_NOT_AFTER)
            .add_extension(
                x509.SubjectAlternativeName([x509.IPAddress(address)]),
                critical=False,
            )
            .sign(signing_key, None)
        )
    except (ValueError, TypeError) as exc:
        raise CertificateGenerationError() from exc
    return certificate.public_bytes(serialization.Encoding.DER), key_pair.to_pkcs8()


def _parse(der: bytes) -> x509.Certificate:
    try:
        return x509.load_der_x509_certificate(bytes(der))
    except ValueError as exc:
        raise InvalidCertificateError() from exc


def _subject_key(certificate: x509.Certificate) -> Ed25519PublicKey:
    try:
        key = certificate.public_key()
    except (ValueError, UnsupportedAlgorithm) as exc:
        raise InvalidCertificateError() from exc
    if not isinstance(key, Ed25519PublicKey):
        raise InvalidCertificateError()
    return key


class CertVerifier:
    """Accepts self-signed certificates, optionally of one permitted key only."""

    def __init__(self, permitted_key: PublicKey | None = None) -> None:
        self.permitted_key = permitted_key

    def _verify_cert(self, end_entity: bytes, intermediates: Sequence[bytes]) -> PublicKey:
        if intermediates:
            raise IntermediatesNotEmptyError()

        certificate = _parse(end_entity)
        key = _subject_key(certificate)
        try:
            key.verify(certificate.signature, certificate.tbs_certificate_bytes)
        except InvalidSignature as exc:
            raise InvalidCertificateError() from exc

        subject = PublicKey(_raw_public(key))
        if self.permitted_key is not None and subject != self.permitted_key:
            raise KeyNotPermittedError()
        return subject

    def _verify(self, end_entity: bytes, intermediates: Sequence[bytes]) -> PublicKey:
        try:
            return self._verify_cert(end_entity, intermediates)
        except CertError as exc:
            raise InvalidCertificateError("invalid certificate signature") from exc

    def verify_client_cert(
        self, end_entity: bytes, intermediates: Sequence[bytes]
    ) -> PublicKey:
        """Verify a client's certificate and return its subject key."""
        return self._verify(end_entity, intermediates)

    def verify_server_cert(
        self, end_entity: bytes, intermediates: Sequence[bytes]
    ) -> PublicKey:
        """Verify a server's certificate and return its subject key."""
        return self._verify(end_entity, intermediates)


def get_key_unchecked(certificates: Sequence[bytes]) -> PublicKey:
    """Return the subject key of an already verified peer certificate chain.

    The certificate is not checked for validity or authenticity.
    """
    if len(certificates) != 1:
        raise CertificateDataError()
    key = _subject_key(_parse(certificates[0]))
    return PublicKey(_raw_public(key))