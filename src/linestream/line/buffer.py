import threading
import time
from typing import Optional

# Longest inbound line, terminator included
LINE_BUFFER_SIZE = 512


class LineBuffer:
    """
    Fixed-capacity accumulation buffer for one inbound line.

    Owned by a LineReader and its EchoPolicy. Every field is only touched while
    holding `lock`, the read-side lock of the connection.
    """

    def __init__(self, capacity: int = LINE_BUFFER_SIZE):
        if capacity < 2:
            raise ValueError("Line buffer needs room for at least one byte and a terminator")
        self.lock = threading.Lock()
        self.data = bytearray(capacity)
        self.pos = 0
        self.last_echoed = 0
        self.got_escape_chars = False
        self.got_complete = False
        self.have_echoed = False
        self.last_line_read_time = time.monotonic()

    @property
    def capacity(self) -> int:
        return len(self.data)

    @property
    def full(self) -> bool:
        return self.pos >= len(self.data)

    def append(self, byte: int) -> None:
        self.data[self.pos] = byte
        self.pos += 1

    def pending(self) -> bytes:
        """Bytes accumulated but not yet terminated."""
        return bytes(self.data[:self.pos])

    def unechoed(self) -> bytes:
        return bytes(self.data[self.last_echoed:self.pos])

    def reset(self) -> None:
        self.pos = 0
        self.last_echoed = 0

    def touch(self) -> None:
        self.last_line_read_time = time.monotonic()


class PartialBufferInspector:
    """Read-only and clear access to the unterminated line a reader is holding."""

    def __init__(self, buffer: LineBuffer):
        self.buffer = buffer

    def clear_partial(self) -> None:
        """Discard any partially read line."""
        with self.buffer.lock:
            self.buffer.reset()

    def compare_partial(self, prefix: bytes) -> int:
        """
        Compare prefix against the start of the partial line, like strncmp.

        Only len(prefix) bytes of the partial line take part, so this answers
        "does the partial line start with prefix" with 0. Returns -1, 0 or 1.
        """
        if isinstance(prefix, str):
            prefix = prefix.encode('latin-1')
        with self.buffer.lock:
            head = self.buffer.pending()[:len(prefix)]
        # A shorter partial line sorts before the prefix that extends it
        if prefix == head:
            return 0
        return -1 if prefix < head else 1

    def peek_partial(self) -> Optional[bytes]:
        """The partial line, or None if nothing is buffered."""
        with self.buffer.lock:
            pending = self.buffer.pending()
        return pending or None
