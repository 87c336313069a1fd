"""Best-effort clearing of buffers that hold keys or plaintext.

Python cannot guarantee that no copy of a secret survives (immutable ``bytes``
handed to or returned by third-party libraries cannot be overwritten), so the
package keeps its own copies in ``bytearray`` objects and zeroes them on every
exit path through :func:`wiped`.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional, Union

Buffer = Union[bytearray, memoryview]


def wipe(buf: Optional[Buffer]) -> None:
    """Overwrite a mutable buffer with zeros; immutable inputs are ignored."""
    if buf is None:
        return
    if isinstance(buf, memoryview):
        if buf.readonly:
            return
        buf[:] = bytes(len(buf))
        return
    if isinstance(buf, bytearray):
        for i in range(len(buf)):
            buf[i] = 0


def secure_copy(data) -> bytearray:
    """Return a wipeable copy of ``data`` (str is UTF-8 encoded)."""
    if isinstance(data, str):
        return bytearray(data.encode("utf-8"))
    return bytearray(data)


@contextmanager
def wiped(*buffers: Optional[Buffer]) -> Iterator[None]:
    """Zero every buffer when the block exits, normally or by exception."""
    try:
        yield
    finally:
        for buf in buffers:
            wipe(buf)
