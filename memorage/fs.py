"""File indexing, hashed storage names and the peer storage directory."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Any, Union

from memorage.bincode import Decoder, Encoder
from memorage.crypto import Encrypted
from memorage.errors import (
    MaliciousFileNameError,
    NotDirectoryError,
    SerdeError,
    from_os_error,
)
from memorage.hashing import blake3, hash_reader

logger = logging.getLogger(__name__)

DIGEST_LENGTH = 32


@dataclass(frozen=True)
class HashedPath:
    """The name under which an encrypted file is stored on the peer."""

    name: str

    @classmethod
    def from_path(cls, path: str | os.PathLike[str]) -> HashedPath:
        """Derive the stored name from the BLAKE3 hash of ``path``."""
        text = os.fsencode(path).decode("utf-8", "replace")
        return cls(blake3(text.encode("utf-8")).hex())

    def __fspath__(self) -> str:
        return self.name

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class RootDirectory:
    """A directory that only hands out paths of files directly inside it."""

    path: Path = Path()

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", Path(self.path))

    def file_path(self, name: str | os.PathLike[str]) -> Path:
        """Return the path of the file called ``name`` in this directory.

        ``name`` must be a single normal path component; anything else
        raises :class:`MaliciousFileNameError`.
        """
        raw = os.fsdecode(os.fspath(name))
        pure = PurePath(raw)
        parts = pure.parts
        leading_dot = any(
            raw.startswith("." + sep) for sep in (os.sep, os.altsep) if sep
        )
        if (
            len(parts) == 1
            and not pure.anchor
            and parts[0] not in (".", "..")
            and not leading_dot
        ):
            return self.path / parts[0]
        logger.error("peer sent malicious file name")
        raise MaliciousFileNameError()

    def __fspath__(self) -> str:
        return os.fspath(self.path)

    def __str__(self) -> str:
        return str(self.path)


@dataclass(frozen=True)
class WriteDifference:
    """A file that must be written to the peer."""

    path: Path


@dataclass(frozen=True)
class RenameDifference:
    """A file whose contents are unchanged but whose path moved."""

    from_path: Path
    to_path: Path


@dataclass(frozen=True)
class DeleteDifference:
    """A file that no longer exists locally."""

    path: Path


Difference = Union[WriteDifference, RenameDifference, DeleteDifference]


def _walk_files(root: Path) -> Iterator[Path]:
    with os.scandir(root) as entries:
        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                yield from _walk_files(Path(entry.path))
            elif entry.is_file(follow_symlinks=False):
                yield Path(entry.path)


class Index:
    """A one-to-one mapping between relative file paths and content hashes."""

    def __init__(
        self,
        entries: Mapping[Any, bytes] | Iterable[tuple[Any, bytes]] | None = None,
    ) -> None:
        self._by_path: dict[Path, bytes] = {}
        self._by_digest: dict[bytes, Path] = {}
        if entries is None:
            return
        items = entries.items() if isinstance(entries, Mapping) else entries
        for path, digest in items:
            self.insert(path, digest)

    def insert(self, path: str | os.PathLike[str], digest: bytes) -> None:
        """Map ``path`` to ``digest``, dropping any pair using either."""
        path = Path(path)
        digest = bytes(digest)
        if len(digest) != DIGEST_LENGTH:
            raise ValueError(f"digest must be {DIGEST_LENGTH} bytes, got {len(digest)}")
        old_digest = self._by_path.pop(path, None)
        if old_digest is not None:
            del self._by_digest[old_digest]
        old_path = self._by_digest.pop(digest, None)
        if old_path is not None:
            del self._by_path[old_path]
        self._by_path[path] = digest
        self._by_digest[digest] = path

    @classmethod
    def from_directory(cls, path: str | os.PathLike[str]) -> Index:
        """Hash every regular file below ``path``.

        Empty directories and symbolic links are not included.
        """
        root = Path(path)
        try:
            if root.exists() and not root.is_dir():
                raise NotDirectoryError(root)
            files = sorted(_walk_files(root))
        except OSError as exc:
            raise from_os_error(exc) from exc

        index = cls()
        for file_path in files:
            try:
                with file_path.open("rb") as handle:
                    digest = hash_reader(handle)
            except OSError as exc:
                raise from_os_error(exc) from exc
            index.insert(file_path.relative_to(root), digest)
        return index

    def difference(self, other: Index) -> list[Difference]:
        """List the changes that turn ``other`` into this index."""
        diff: list[Difference] = []
        for path, digest in self:
            in_other = path in other._by_path
            old_path = other._by_digest.get(digest)
            if in_other and old_path is not None:
                continue
            if old_path is not None:
                diff.append(RenameDifference(old_path, path))
            else:
                diff.append(WriteDifference(path))

        for path, digest in other:
            if path not in self._by_path and digest not in self._by_digest:
                diff.append(DeleteDifference(path))
        return diff

    def encode(self, encoder: Encoder) -> None:
        encoder.write_u64(len(self._by_path))
        for path, digest in self:
            encoder.write_str(path.as_posix())
            encoder.write_fixed(digest)

    @classmethod
    def decode(cls, decoder: Decoder) -> Index:
        index = cls()
        for _ in range(decoder.read_u64()):
            path = decoder.read_str()
            digest = decoder.read_fixed(DIGEST_LENGTH)
            index.insert(path, digest)
        return index

    def __iter__(self) -> Iterator[tuple[Path, bytes]]:
        return iter(list(self._by_path.items()))

    def __len__(self) -> int:
        return len(self._by_path)

    def __contains__(self, path: object) -> bool:
        if isinstance(path, (str, os.PathLike)):
            return Path(path) in self._by_path
        return False

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Index):
            return NotImplemented
        return self._by_path == other._by_path

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Index({ {str(p): d.hex() for p, d in self} })"


def load_encrypted_index(path: str | os.PathLike[str]) -> Encrypted[Index] | None:
    """Read an encrypted index from disk, or ``None`` if there is none."""
    try:
        buf = Path(path).read_bytes()
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise from_os_error(exc) from exc
    decoder = Decoder(buf)
    encrypted = Encrypted.decode(decoder)
    decoder.finish()
    return encrypted


def save_encrypted_index(encrypted: Encrypted[Index], path: str | os.PathLike[str]) -> None:
    """Write an encrypted index to disk, replacing any existing file."""
    if not isinstance(encrypted, Encrypted):
        raise SerdeError("only encrypted indexes can be saved")
    encoder = Encoder()
    encrypted.encode(encoder)
    try:
        Path(path).write_bytes(encoder.getvalue())
    except OSError as exc:
        raise from_os_error(exc) from exc