import logging

from linestream.line.buffer import LineBuffer
from linestream.line.writer import LineWriter


class EchoPolicy:
    """
    Writes received bytes back to the peer for interactive, telnet-style clients.

    Characters are echoed as they arrive; the line terminator is echoed
    separately once the reader hands the complete line out. With auto_echo,
    echo stops as soon as a line starts with escape bytes, since such clients
    negotiate and echo locally. echo turns echoing on even without auto_echo.
    """

    def __init__(self, buffer: LineBuffer, writer: LineWriter,
                 echo: bool = False, auto_echo: bool = True):
        self.buffer = buffer
        self.writer = writer
        self.echo = echo
        self.auto_echo = auto_echo
        self.log = logging.getLogger(f"EchoPolicy({writer.tracked.address})")

    @property
    def enabled(self) -> bool:
        return self.echo or self.auto_echo

    def echo_tail(self) -> None:
        """Echo whatever arrived since the last call. Caller holds the buffer lock."""
        if not self.enabled:
            return

        buf = self.buffer
        if buf.got_complete:
            if buf.have_echoed:
                self.writer.write_raw(self.writer.terminator)
            buf.got_complete = False
            buf.have_echoed = False

        if buf.last_echoed >= buf.pos:
            return

        if self.auto_echo and buf.got_escape_chars:
            return

        self.writer.write_raw(buf.unechoed())
        buf.have_echoed = True
        buf.last_echoed = buf.pos
