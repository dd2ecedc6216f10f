"""
Line Reader

Incremental, non-blocking reader for CR/LF terminated text lines. Each call to
read_line() picks up where the previous one stopped, so a line may arrive over
any number of calls and any fragmentation of the underlying stream.
"""

import logging
import time
from enum import Enum
from typing import NamedTuple, Optional

from linestream.line.buffer import LineBuffer
from linestream.line.echo import EchoPolicy
from linestream.line.tracking import TrackedChannel
from linestream.line.writer import LineWriter

CR = 0x0D
LF = 0x0A
ESCAPE_BIT = 0x80
# Every byte with the high bit set
ESCAPE_BYTES = bytes(range(ESCAPE_BIT, 0x100))

OVERFLOW_MESSAGE = "String too long"


class LineStatus(Enum):
    COMPLETE = "complete"      # a terminated line was read
    PARTIAL = "partial"        # no terminator yet; call again later
    CLOSED = "closed"          # peer closed the connection
    IO_ERROR = "io_error"      # hard error reading from the channel
    OVERFLOWED = "overflowed"  # line did not fit the buffer


class ReadResult(NamedTuple):
    status: LineStatus
    line: Optional[bytes] = None

    @property
    def ok(self) -> bool:
        """True unless the connection should be torn down."""
        return self.status in (LineStatus.COMPLETE, LineStatus.PARTIAL)

    def text(self, encoding: str = 'utf-8') -> Optional[str]:
        if self.line is None:
            return None
        return self.line.decode(encoding, errors='replace')


class LineReader:
    """Accumulates channel bytes into lines, one byte per channel read."""

    def __init__(self, buffer: LineBuffer, tracked: TrackedChannel, echo: EchoPolicy,
                 writer: LineWriter, ignore_return: bool = False, debug: bool = False):
        self.buffer = buffer
        self.tracked = tracked
        self.echo = echo
        self.writer = writer
        self.ignore_return = ignore_return
        self.debug = debug
        self.log = logging.getLogger(f"LineReader({tracked.address})")

    def read_line(self, timeout: Optional[float] = 0) -> ReadResult:
        """
        Read until a line terminator, the timeout, or a failure.

        Args:
            timeout: Total seconds to wait for data. 0 only takes what is
                     already available, None waits forever.

        Returns:
            A ReadResult. COMPLETE carries the line without its terminator and
            without leading escape bytes. PARTIAL carries the bytes gathered so
            far, which stay buffered for the next call. CLOSED, IO_ERROR and
            OVERFLOWED carry no data; the caller should drop the connection on
            the first two.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        buf = self.buffer
        progressed = False
        late_skip = False

        with buf.lock:
            while True:
                if buf.full:
                    return self._overflowed()

                try:
                    data = self.tracked.read(1, self._remaining(deadline))
                except OSError as e:
                    self.log.error(f"Error in reading from {self.tracked.address} "
                                   f"(errno {e.errno}): {e}", exc_info=self.debug)
                    return self._trace(ReadResult(LineStatus.IO_ERROR))

                if data is None:
                    self.echo.echo_tail()
                    if progressed:
                        buf.touch()
                    return self._trace(ReadResult(LineStatus.PARTIAL, buf.pending()))

                if not data:
                    self.log.info(f"Connection closed by {self.tracked.address}")
                    return self._trace(ReadResult(LineStatus.CLOSED))

                byte = data[0]
                if buf.pos == 0 and byte & ESCAPE_BIT:
                    buf.got_escape_chars = True

                if self.ignore_return and byte == CR:
                    continue

                if byte == LF or byte == CR:
                    if buf.pos > 0:
                        return self._completed()
                    # A terminator with nothing before it is the second half
                    # of CR LF; an empty line would look like "no data"
                    buf.touch()
                    if deadline is not None and time.monotonic() >= deadline:
                        # One late skip lets a poll get past the LF of a CR LF pair
                        if late_skip:
                            return self._trace(ReadResult(LineStatus.PARTIAL, b''))
                        late_skip = True
                    if self.debug:
                        self.log.debug("Skipping terminator at start of line")
                    continue

                buf.append(byte)
                progressed = True
                self.echo.echo_tail()

    @staticmethod
    def _remaining(deadline: Optional[float]) -> Optional[float]:
        if deadline is None:
            return None
        return max(0.0, deadline - time.monotonic())

    def _completed(self) -> ReadResult:
        buf = self.buffer
        line = buf.pending()
        buf.got_complete = True
        buf.reset()

        if line[0] & ESCAPE_BIT:
            buf.got_escape_chars = True
            line = line.lstrip(ESCAPE_BYTES)

        self.echo.echo_tail()
        buf.touch()
        return self._trace(ReadResult(LineStatus.COMPLETE, line))

    def _overflowed(self) -> ReadResult:
        self.log.warning(f"Some trouble reading from {self.tracked.address} "
                         f"(cannot fit line into {self.buffer.capacity} byte buffer)")
        self.buffer.reset()
        # Best effort; the writer logs its own failures
        self.writer.write_line(OVERFLOW_MESSAGE)
        return self._trace(ReadResult(LineStatus.OVERFLOWED))

    def _trace(self, result: ReadResult) -> ReadResult:
        if self.debug:
            self.log.debug(f"read_line: {result.status.value} {result.line!r}")
        return result
