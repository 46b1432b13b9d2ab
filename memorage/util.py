"""Stream copying helpers."""

from __future__ import annotations

import inspect
from typing import Any

from memorage.errors import from_os_error

WIDE_COPY_BUFFER_SIZE = 65536


def wide_copy(reader: Any, writer: Any) -> int:
    """Copy everything from ``reader`` to ``writer`` in large chunks.

    Returns the number of bytes copied.
    """
    total = 0
    while True:
        try:
            chunk = reader.read(WIDE_COPY_BUFFER_SIZE)
        except InterruptedError:
            continue
        except OSError as exc:
            raise from_os_error(exc) from exc
        if not chunk:
            return total
        try:
            writer.write(chunk)
        except OSError as exc:
            raise from_os_error(exc) from exc
        total += len(chunk)


async def async_wide_copy(reader: Any, writer: Any) -> int:
    """Copy everything from an asynchronous ``reader`` to ``writer``.

    ``writer.write`` may be plain or awaitable; a ``drain`` coroutine is
    awaited after each chunk when the writer has one. Returns the number of
    bytes copied.
    """
    drain = getattr(writer, "drain", None)
    total = 0
    while True:
        try:
            chunk = await reader.read(WIDE_COPY_BUFFER_SIZE)
        except InterruptedError:
            continue
        except OSError as exc:
            raise from_os_error(exc) from exc
        if not chunk:
            return total
        try:
            result = writer.write(chunk)
            if inspect.isawaitable(result):
                await result
            if drain is not None:
                await drain()
        except OSError as exc:
            raise from_os_error(exc) from exc
        total += len(chunk)