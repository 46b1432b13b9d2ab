"""Configuration and key data kept on disk as TOML."""

from __future__ import annotations

import ipaddress
import math
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, ClassVar

import platformdirs
import tomli_w

from memorage.cert import KeyPair, PublicKey
from memorage.errors import ConfigReadError, ConfigWriteError, from_os_error
from memorage.fs import RootDirectory

APP_NAME = "Memorage"
PORT = 43721
DEFAULT_SERVER_ADDRESS = "45.79.238.170"

_DIRS = platformdirs.PlatformDirs(APP_NAME, appauthor=False)
CONFIG_PATH = Path(_DIRS.user_config_dir) / "config.toml"
DATA_PATH = Path(_DIRS.user_data_dir) / "data.toml"

IpAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


# Field conversion helpers


def _field(document: Mapping[str, Any], name: str) -> Any:
    if name not in document:
        raise ConfigReadError(f"missing field `{name}`")
    return document[name]


def _table(value: Any, name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ConfigReadError(f"`{name}` must be a table")
    return value


def _string(value: Any, name: str) -> str:
    if not isinstance(value, str):
        raise ConfigReadError(f"`{name}` must be a string")
    return value


def _count(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigReadError(f"`{name}` must be a non-negative integer")
    return value


def _duration(value: Any, name: str) -> timedelta:
    if not isinstance(value, float) or not math.isfinite(value) or value < 0:
        raise ConfigReadError(f"`{name}` must be a non-negative float")
    try:
        return timedelta(seconds=value)
    except OverflowError as exc:
        raise ConfigReadError(f"`{name}` is too large") from exc


def _byte_list(value: Any, name: str) -> bytes:
    if not isinstance(value, list) or not all(
        isinstance(b, int) and not isinstance(b, bool) and 0 <= b <= 255 for b in value
    ):
        raise ConfigReadError(f"`{name}` must be an array of bytes")
    return bytes(value)


def _key_pair(value: Any) -> KeyPair:
    try:
        return KeyPair.from_pkcs8(_byte_list(value, "key_pair"))
    except ValueError as exc:
        raise ConfigReadError(str(exc)) from exc


def _public_key(value: Any) -> PublicKey:
    try:
        return PublicKey(_byte_list(value, "peer"))
    except ValueError as exc:
        raise ConfigReadError(str(exc)) from exc


def _seconds(duration: timedelta) -> float:
    return float(duration.total_seconds())


# Persistence


def _target(path: str | Path | None, default: Path) -> Path:
    return default if path is None else Path(path)


def _read_document(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ConfigReadError("file is not valid UTF-8") from exc
    except OSError as exc:
        raise from_os_error(exc) from exc
    try:
        return tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigReadError(str(exc)) from exc


def _write_document(document: Mapping[str, Any], path: Path) -> None:
    try:
        text = tomli_w.dumps(document)
    except (TypeError, ValueError) as exc:
        raise ConfigWriteError(str(exc)) from exc
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise from_os_error(exc) from exc


# Config


@dataclass(frozen=True)
class RetryConfig:
    """How often to try an operation and how long to wait between tries."""

    tries: int
    ping_delay: timedelta

    def _to_document(self) -> dict[str, Any]:
        return {"tries": self.tries, "ping_delay": _seconds(self.ping_delay)}

    @classmethod
    def _from_document(cls, value: Any, name: str) -> RetryConfig:
        table = _table(value, name)
        return cls(
            tries=_count(_field(table, "tries"), "tries"),
            ping_delay=_duration(_field(table, "ping_delay"), "ping_delay"),
        )


def _default_register_response() -> RetryConfig:
    return RetryConfig(tries=20, ping_delay=timedelta(seconds=3))


def _default_request_connection() -> RetryConfig:
    return RetryConfig(tries=4, ping_delay=timedelta(seconds=5))


def _default_server_address() -> list[IpAddress]:
    return [ipaddress.ip_address(DEFAULT_SERVER_ADDRESS)]


def _default_peer_storage_path() -> RootDirectory:
    return RootDirectory(Path(_DIRS.user_data_dir) / "peer_data")


@dataclass
class Config:
    """User configuration of the backup client."""

    default_path: ClassVar[Path] = CONFIG_PATH

    server_address: list[IpAddress] = field(default_factory=_default_server_address)
    backup_path: Path = field(default_factory=Path)
    peer_storage_path: RootDirectory = field(default_factory=_default_peer_storage_path)
    outgoing_schedule_delay: timedelta = timedelta(seconds=600)
    schedule_outgoing_interval: timedelta = timedelta(seconds=2 * 60 * 60)
    check_incoming_interval: timedelta = timedelta(seconds=580)
    register_response: RetryConfig = field(default_factory=_default_register_response)
    request_connection: RetryConfig = field(default_factory=_default_request_connection)

    def index_path(self) -> Path:
        """Path of the peer's encrypted index inside the peer storage."""
        return self.peer_storage_path.file_path("index")

    def server_socket_addresses(self) -> list[tuple[str, int]]:
        """The coordination servers as ``(host, port)`` pairs."""
        return [(str(address), PORT) for address in self.server_address]

    def save(self, path: str | Path | None = None) -> None:
        """Write to ``path``, creating parent directories as needed."""
        _write_document(self._to_document(), _target(path, self.default_path))

    @classmethod
    def load(cls, path: str | Path | None = None) -> Config:
        """Read from ``path``, or from the default location."""
        return cls._from_document(_read_document(_target(path, cls.default_path)))

    def _to_document(self) -> dict[str, Any]:
        return {
            "server_address": [str(a) for a in self.server_address],
            "backup_path": str(self.backup_path),
            "peer_storage_path": str(self.peer_storage_path),
            "outgoing_schedule_delay": _seconds(self.outgoing_schedule_delay),
            "schedule_outgoing_interval": _seconds(self.schedule_outgoing_interval),
            "check_incoming_interval": _seconds(self.check_incoming_interval),
            "register_response": self.register_response._to_document(),
            "request_connection": self.request_connection._to_document(),
        }

    @classmethod
    def _from_document(cls, document: Mapping[str, Any]) -> Config:
        addresses = _field(document, "server_address")
        if not isinstance(addresses, list):
            raise ConfigReadError("`server_address` must be an array")
        try:
            server_address = [
                ipaddress.ip_address(_string(a, "server_address")) for a in addresses
            ]
        except ValueError as exc:
            raise ConfigReadError(str(exc)) from exc

        def duration(name: str) -> timedelta:
            return _duration(_field(document, name), name)

        def retry(name: str) -> RetryConfig:
            return RetryConfig._from_document(_field(document, name), name)

        return cls(
            server_address=server_address,
            backup_path=Path(_string(_field(document, "backup_path"), "backup_path")),
            peer_storage_path=RootDirectory(
                Path(_string(_field(document, "peer_storage_path"), "peer_storage_path"))
            ),
            outgoing_schedule_delay=duration("outgoing_schedule_delay"),
            schedule_outgoing_interval=duration("schedule_outgoing_interval"),
            check_incoming_interval=duration("check_incoming_interval"),
            register_response=retry("register_response"),
            request_connection=retry("request_connection"),
        )


# Key data


@dataclass
class Data:
    """The user's key pair together with the paired peer's key."""

    default_path: ClassVar[Path] = DATA_PATH

    key_pair: KeyPair
    peer: PublicKey

    def save(self, path: str | Path | None = None) -> None:
        """Write to ``path``, creating parent directories as needed."""
        _write_document(self._to_document(), _target(path, self.default_path))

    @classmethod
    def load(cls, path: str | Path | None = None) -> Data:
        """Read from ``path``, or from the default location."""
        return cls._from_document(_read_document(_target(path, cls.default_path)))

    def _to_document(self) -> dict[str, Any]:
        return {
            "key_pair": list(self.key_pair.to_pkcs8()),
            "peer": list(self.peer.data),
        }

    @classmethod
    def _from_document(cls, document: Mapping[str, Any]) -> Data:
        return cls(
            key_pair=_key_pair(_field(document, "key_pair")),
            peer=_public_key(_field(document, "peer")),
        )


@dataclass
class DataWithoutPeer:
    """The user's key pair, with a peer only once pairing is done."""

    default_path: ClassVar[Path] = DATA_PATH

    key_pair: KeyPair
    peer: PublicKey | None = None

    @classmethod
    def from_key_pair(cls, key_pair: KeyPair) -> DataWithoutPeer:
        return cls(key_pair=key_pair, peer=None)

    def save(self, path: str | Path | None = None) -> None:
        """Write to ``path``, creating parent directories as needed."""
        _write_document(self._to_document(), _target(path, self.default_path))

    @classmethod
    def load(cls, path: str | Path | None = None) -> DataWithoutPeer:
        """Read from ``path``, or from the default location."""
        return cls._from_document(_read_document(_target(path, cls.default_path)))

    def _to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {"key_pair": list(self.key_pair.to_pkcs8())}
        if self.peer is not None:
            document["peer"] = list(self.peer.data)
        return document

    @classmethod
    def _from_document(cls, document: Mapping[str, Any]) -> DataWithoutPeer:
        peer = document.get("peer")
        return cls(
            key_pair=_key_pair(_field(document, "key_pair")),
            peer=None if peer is None else _public_key(peer),
        )