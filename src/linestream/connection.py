import logging
from typing import Optional, Union

from linestream.line.buffer import LINE_BUFFER_SIZE, LineBuffer, PartialBufferInspector
from linestream.line.echo import EchoPolicy
from linestream.line.reader import LineReader, ReadResult
from linestream.line.tracking import FaultState, TrackedChannel
from linestream.line.writer import LineWriter
from linestream.streams.streams import Channel


class LineConnection:
    """
    Line-oriented text protocol over one Channel.

    Reads and writes are guarded by separate locks, so one thread may sit in
    read_line() while another calls write_line() on the same connection.
    Concurrent readers are serialized against each other, as are concurrent
    writers.
    """

    def __init__(self, channel: Channel, echo: bool = False, auto_echo: bool = True,
                 ignore_return: bool = False, wrong_end_chars: bool = False,
                 log_write_strings: bool = False, error_tracking: bool = True,
                 fake_writes: bool = False, buffer_size: int = LINE_BUFFER_SIZE,
                 encoding: str = 'utf-8', debug: bool = False):
        """
        Args:
            channel: An already opened Channel (SocketChannel, SerialChannel, ...).
            echo: Echo received characters back to the peer.
            auto_echo: Echo unless the peer sends escape bytes at a line start.
            ignore_return: Drop CR bytes, so only LF ends a line.
            wrong_end_chars: Terminate outbound lines with LF CR instead of CR LF.
            log_write_strings: Log every line sent.
            error_tracking: Latch bad_read/bad_write on hard I/O errors.
            fake_writes: Report writes as successful without sending anything.
            buffer_size: Longest inbound line, terminator included.
            encoding: Text encoding for str messages passed to write_line.
            debug: Trace every read_line outcome.
        """
        self.log = logging.getLogger("LineConnection")
        self.echo = echo
        self.auto_echo = auto_echo
        self.ignore_return = ignore_return
        self.wrong_end_chars = wrong_end_chars
        self.log_write_strings = log_write_strings
        self.error_tracking = error_tracking
        self.fake_writes = fake_writes
        self.buffer_size = buffer_size
        self.encoding = encoding
        self.debug = debug
        self.channel: Optional[Channel] = None
        self.set_channel(channel)

    def set_channel(self, channel: Channel) -> None:
        """Run the protocol over a new channel, starting from a clean slate."""
        if channel is None:
            raise ValueError("LineConnection requires a valid Channel object.")
        self.channel = channel
        self.log = logging.getLogger(f"LineConnection({channel.address})")

        self._tracked = TrackedChannel(channel, error_tracking=self.error_tracking,
                                       fake_writes=self.fake_writes)
        self._buffer = LineBuffer(self.buffer_size)
        self._writer = LineWriter(self._tracked, wrong_end_chars=self.wrong_end_chars,
                                  log_write_strings=self.log_write_strings,
                                  encoding=self.encoding)
        self._echo = EchoPolicy(self._buffer, self._writer, echo=self.echo,
                                auto_echo=self.auto_echo)
        self._reader = LineReader(self._buffer, self._tracked, self._echo, self._writer,
                                  ignore_return=self.ignore_return, debug=self.debug)
        self._inspector = PartialBufferInspector(self._buffer)
        self.log.debug(f"LineConnection attached to {channel.address}")

    def close(self) -> bool:
        """Close the channel and drop any partial line."""
        if not self.channel:
            self.log.debug("Close called but no active channel.")
            return True
        try:
            return self.channel.close()
        finally:
            self._inspector.clear_partial()
            self.channel = None

    @property
    def is_open(self) -> bool:
        return self.channel is not None

    # --- Line I/O --- #

    def read_line(self, timeout: Optional[float] = 0) -> ReadResult:
        """See LineReader.read_line."""
        return self._reader.read_line(timeout)

    def write_line(self, message: Union[str, bytes], *args) -> int:
        """See LineWriter.write_line."""
        return self._writer.write_line(message, *args)

    def clear_partial(self) -> None:
        self._inspector.clear_partial()

    def compare_partial(self, prefix: Union[str, bytes]) -> int:
        return self._inspector.compare_partial(prefix)

    def peek_partial(self) -> Optional[bytes]:
        return self._inspector.peek_partial()

    # --- Settings that take effect immediately --- #

    def set_echo(self, echo: bool) -> None:
        self.echo = self._echo.echo = echo

    def set_auto_echo(self, auto_echo: bool) -> None:
        self.auto_echo = self._echo.auto_echo = auto_echo

    def set_ignore_return(self, ignore_return: bool) -> None:
        self.ignore_return = self._reader.ignore_return = ignore_return

    def set_wrong_end_chars(self, wrong_end_chars: bool) -> None:
        self.wrong_end_chars = self._writer.wrong_end_chars = wrong_end_chars

    def set_log_write_strings(self, log_write_strings: bool) -> None:
        self.log_write_strings = self._writer.log_write_strings = log_write_strings

    # --- Tracking --- #

    @property
    def bad_read(self) -> FaultState:
        return self._tracked.bad_read

    @property
    def bad_write(self) -> FaultState:
        return self._tracked.bad_write

    @property
    def bytes_sent(self) -> int:
        return self._tracked.bytes_sent

    @property
    def bytes_received(self) -> int:
        return self._tracked.bytes_received

    @property
    def send_count(self) -> int:
        return self._tracked.send_count

    @property
    def recv_count(self) -> int:
        return self._tracked.recv_count

    @property
    def got_escape_chars(self) -> bool:
        return self._buffer.got_escape_chars

    @property
    def last_line_read_time(self) -> float:
        """time.monotonic() of the last read_line call that made progress."""
        return self._buffer.last_line_read_time

    def reset_tracking(self) -> None:
        """
        Zero the transfer counters.

        The send counters are reset under the write lock and released before
        the receive counters are reset under the read lock. A read_line call in
        progress delays only the receive half; writes carry on meanwhile.
        """
        with self._writer.lock:
            self._tracked.reset_send_tracking()
        with self._buffer.lock:
            self._tracked.reset_receive_tracking()
