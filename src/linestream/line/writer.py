import logging
import threading
from typing import Union

from linestream.line.tracking import TrackedChannel

# Scratch space for one formatted line: message, 2-byte terminator, and the
# trailing NUL the diagnostics reserve
WRITE_BUFFER_SIZE = 10000
MAX_MESSAGE_SIZE = WRITE_BUFFER_SIZE - 3

CRLF = b'\r\n'
LFCR = b'\n\r'

# write_line result for a hard send error
SEND_FAILED = -1


def terminator_for(wrong_end_chars: bool) -> bytes:
    """Line terminator for a connection: CR LF, or LF CR for legacy peers."""
    return LFCR if wrong_end_chars else CRLF


class LineWriter:
    """
    Formats and sends terminated lines.

    Holds the write-side lock of a connection. Every channel write made on the
    connection's behalf goes through here, echo included, so the send counters
    are only ever updated under this lock.
    """

    def __init__(self, tracked: TrackedChannel, wrong_end_chars: bool = False,
                 log_write_strings: bool = False, encoding: str = 'utf-8'):
        self.tracked = tracked
        self.wrong_end_chars = wrong_end_chars
        self.log_write_strings = log_write_strings
        self.encoding = encoding
        self.lock = threading.Lock()
        self.log = logging.getLogger(f"LineWriter({tracked.address})")

    @property
    def terminator(self) -> bytes:
        return terminator_for(self.wrong_end_chars)

    def format_line(self, message: Union[str, bytes], *args) -> bytes:
        """Render message (with %-style args) into a terminated, size-bounded line."""
        if args:
            message = message % args
        if isinstance(message, str):
            message = message.encode(self.encoding, errors='replace')
        return bytes(message[:MAX_MESSAGE_SIZE]) + self.terminator

    def write_line(self, message: Union[str, bytes], *args) -> int:
        """
        Send one line followed by the terminator.

        Never waits for the channel to become writable. Returns the bytes
        written, 0 if the peer is backed up, or SEND_FAILED on a hard error.
        """
        line = self.format_line(message, *args)
        shown = line[:-2].decode(self.encoding, errors='replace')

        with self.lock:
            try:
                ret = self.tracked.write(line)
            except OSError as e:
                self.log.error(f"Problem sending (errno {e.errno}) to {self.tracked.address}: {shown}")
                return SEND_FAILED

        if ret == 0:
            self.log.warning(f"Problem sending (backed up) to {self.tracked.address}: {shown}")
        elif self.log_write_strings:
            self.log.info(f"Sent to {self.tracked.address}: {shown}")
        return ret

    def write_raw(self, data: bytes) -> int:
        """Send bytes as-is under the write lock. Returns SEND_FAILED on a hard error."""
        with self.lock:
            try:
                return self.tracked.write(data)
            except OSError as e:
                self.log.debug(f"Raw write of {len(data)} bytes failed: {e}")
                return SEND_FAILED
