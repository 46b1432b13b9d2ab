"""Exception hierarchy shared by the whole package."""

from __future__ import annotations

import errno
from pathlib import Path


class MemorageError(Exception):
    """Base class of every error raised by the package."""

    default_message = "memorage error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(self.default_message if message is None else message)


class NotDirectoryError(MemorageError):
    """A path that had to be a directory is something else."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        super().__init__(f"{self.path} is not a directory")


class IoError(MemorageError):
    default_message = "unknown I/O error"


class EntityNotFoundError(MemorageError):
    default_message = "entity not found"


class AlreadyExistsError(MemorageError):
    default_message = "entity already exists"


class EncryptionError(MemorageError):
    default_message = "error encrypting file"


class DecryptionError(MemorageError):
    default_message = "error decrypting file"


class SerdeError(MemorageError):
    """An error that occurs during serialization or deserialization."""

    default_message = "error serializing or deserializing"


class ConfigReadError(MemorageError):
    default_message = "error reading config"


class ConfigWriteError(MemorageError):
    default_message = "error writing config"


class PeerNoResponseError(MemorageError):
    default_message = "peer didn't respond to connection request"


class UnauthorisedConnectionRequestError(MemorageError):
    default_message = "unauthorised connection request"


class PeerError(MemorageError):
    default_message = "peer encountered error"


class PeerClosedConnectionError(MemorageError):
    default_message = "peer closed connection"


class FailedConnectionError(MemorageError):
    default_message = "failed to establish connection to peer"


class IncorrectPeerError(MemorageError):
    default_message = "incorrect peer"


class MaliciousFileNameError(MemorageError):
    default_message = "peer sent malicious file name"


class MissedSynchronisationError(MemorageError):
    default_message = "missed peer synchronisation"


class NotFoundOnPeerError(MemorageError):
    default_message = "attempted retrieval of file that didn't exist on peer"


class UnexpectedEofError(MemorageError):
    default_message = "end of stream reached prematurely"


class TooLargeError(MemorageError):
    default_message = "response too large"


class FrameTooShortError(MemorageError):
    default_message = "frame too short"


class UserCancelledError(MemorageError):
    default_message = "user cancelled operation"


class CertError(MemorageError):
    """Base class of certificate errors."""

    default_message = "certificate error"


class CertificateGenerationError(CertError):
    default_message = "error generating certificate"


class InvalidCertificateError(CertError):
    default_message = "invalid certificate"


class CertificateDataError(CertError):
    default_message = "error obtaining certificate from connection data"


class IntermediatesNotEmptyError(CertError):
    default_message = "incoming connection provided intermediate certificates"


class KeyNotPermittedError(CertError):
    default_message = "key not permitted"


def from_os_error(error: BaseException) -> MemorageError:
    """Map an operating-system error onto the matching package error.

    The original error is kept as the ``__cause__`` of the returned one.
    """
    code = getattr(error, "errno", None)
    wrapped: MemorageError
    if isinstance(error, EOFError):
        wrapped = UnexpectedEofError()
    elif isinstance(error, FileNotFoundError) or code == errno.ENOENT:
        wrapped = EntityNotFoundError()
    elif isinstance(error, FileExistsError) or code == errno.EEXIST:
        wrapped = AlreadyExistsError()
    else:
        wrapped = IoError()
    wrapped.__cause__ = error
    return wrapped