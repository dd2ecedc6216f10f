"""
Channel Classes for Communication

Provides the Channel protocol that the line reader and writer drive, plus the
would-block errno set shared by the socket and serial implementations.
"""

import errno
from typing import Protocol, Optional, runtime_checkable

# errno values that mean "try again later" on a non-blocking descriptor
WOULD_BLOCK_ERRNOS = frozenset({errno.EAGAIN, errno.EWOULDBLOCK})


@runtime_checkable
class Channel(Protocol):
    """Protocol defining the duplex byte-stream the line protocol runs over."""

    address: str
    non_blocking: bool
    last_error: int

    def read(self, size: int, timeout: Optional[float] = None) -> Optional[bytes]:
        """
        Reads up to size bytes.

        Returns the data, b'' if the peer closed the connection, or None if
        nothing arrived within timeout seconds (None waits forever, 0 polls).
        Raises OSError on a hard I/O error.
        """
        ...

    def write(self, data: bytes) -> int:
        """
        Writes data without waiting for the channel to become writable.

        Returns the number of bytes written, 0 if the peer is backed up.
        Raises OSError on a hard I/O error.
        """
        ...

    def close(self) -> bool:
        """Closes the channel."""
        ...


def is_would_block(exc: OSError, non_blocking: bool) -> bool:
    """True if exc is a transient would-block signal rather than a hard error."""
    if not non_blocking:
        return False
    return isinstance(exc, BlockingIOError) or exc.errno in WOULD_BLOCK_ERRNOS
