import logging
from collections import deque
from typing import Iterable, List, Optional, Union

from .streams import Channel

# A script entry: bytes to deliver, None for would-block, b'' for closed,
# or an exception instance to raise from read().
ScriptEntry = Union[bytes, None, BaseException]


class ScriptedChannel(Channel):
    """A channel that replays scripted read chunks and records writes, for tests."""

    def __init__(self, script: Iterable[ScriptEntry] = (), address: str = "scripted",
                 eof_when_exhausted: bool = False):
        self.log = logging.getLogger("ScriptedChannel")
        self.address = address
        self.non_blocking = True
        self.last_error = 0
        self.is_open = True
        self.eof_when_exhausted = eof_when_exhausted
        self.script = deque(script)
        self.sent_data: List[bytes] = []
        self.read_timeouts: List[Optional[float]] = []
        # Bytes accepted per write call; None accepts everything
        self.write_limit: Optional[int] = None
        self.write_error: Optional[OSError] = None
        self.log.debug(f"Initialized ScriptedChannel for {address}")

    # --- Channel Protocol Methods --- #

    def read(self, size: int, timeout: Optional[float] = None) -> Optional[bytes]:
        self.read_timeouts.append(timeout)
        if not self.is_open:
            return b''
        if not self.script:
            return b'' if self.eof_when_exhausted else None

        entry = self.script[0]
        if entry is None or isinstance(entry, BaseException) or entry == b'':
            self.script.popleft()
            if isinstance(entry, OSError):
                self.last_error = entry.errno or 0
            if isinstance(entry, BaseException):
                raise entry
            return entry

        data, rest = entry[:size], entry[size:]
        if rest:
            self.script[0] = rest
        else:
            self.script.popleft()
        return data

    def write(self, data: bytes) -> int:
        if self.write_error is not None:
            self.last_error = self.write_error.errno or 0
            raise self.write_error
        if not self.is_open:
            return 0
        accepted = data if self.write_limit is None else data[:self.write_limit]
        if accepted:
            self.sent_data.append(bytes(accepted))
        return len(accepted)

    def close(self) -> bool:
        self.is_open = False
        return True

    # --- Test Helper Methods --- #

    def feed(self, *entries: ScriptEntry) -> None:
        """Appends entries to the read script."""
        self.script.extend(entries)

    def get_sent_data(self) -> bytes:
        """Returns everything written so far as one byte string."""
        return b''.join(self.sent_data)

    def clear_sent_data(self):
        self.sent_data.clear()
