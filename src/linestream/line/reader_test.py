import errno
import unittest
import logging
import time

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

from ..connection import LineConnection
from ..streams.dummy import ScriptedChannel
from .buffer import LINE_BUFFER_SIZE
from .reader import LineStatus, OVERFLOW_MESSAGE
from .tracking import FaultState


def fragment(data: bytes, sizes):
    """Split data into chunks cycling through sizes, with a would-block between chunks."""
    chunks = []
    pos = 0
    i = 0
    while pos < len(data):
        size = sizes[i % len(sizes)]
        chunks.append(data[pos:pos + size])
        chunks.append(None)
        pos += size
        i += 1
    return chunks


class TestLineReader(unittest.TestCase):

    def make(self, script, **kwargs):
        """Connection over a scripted channel, echo off unless asked for."""
        kwargs.setdefault('auto_echo', False)
        eof = kwargs.pop('eof_when_exhausted', False)
        self.channel = ScriptedChannel(script, eof_when_exhausted=eof)
        self.conn = LineConnection(self.channel, **kwargs)
        return self.conn

    def read_all(self, limit=10000):
        """Drive read_line until the channel closes, collecting complete lines."""
        lines = []
        for _ in range(limit):
            result = self.conn.read_line(0)
            if result.status is LineStatus.COMPLETE:
                lines.append(result.line)
            elif result.status is LineStatus.CLOSED:
                return lines
            else:
                self.assertEqual(result.status, LineStatus.PARTIAL)
        self.fail("channel never reported closed")

    def test_lines_survive_any_fragmentation(self):
        """The same lines come out however the stream is chunked."""
        lines = [b"alpha", b"beta gamma", b"x" * 100, b"with\ttab", b"last"]
        stream = b"".join(line + b"\r\n" for line in lines)

        for sizes in ([1], [2], [3, 7], [5, 1, 9], [len(stream)]):
            with self.subTest(sizes=sizes):
                self.make(fragment(stream, sizes), eof_when_exhausted=True)
                self.assertEqual(self.read_all(), lines)

    def test_lf_only_terminators(self):
        self.make([b"one\ntwo\n"], eof_when_exhausted=True)
        self.assertEqual(self.read_all(), [b"one", b"two"])

    def test_partial_line_carries_over(self):
        conn = self.make([b"hel", None, b"lo\r\n"])

        first = conn.read_line(0)
        self.assertEqual(first.status, LineStatus.PARTIAL)
        self.assertEqual(first.line, b"hel")

        second = conn.read_line(0)
        self.assertEqual(second.status, LineStatus.COMPLETE)
        self.assertEqual(second.line, b"hello")

    def test_no_data_on_non_blocking_channel_is_partial(self):
        result = self.make([]).read_line(0)
        self.assertEqual(result.status, LineStatus.PARTIAL)
        self.assertEqual(result.line, b"")
        self.assertTrue(result.ok)

    def test_immediate_close(self):
        conn = self.make([b""])
        result = conn.read_line(0)
        self.assertEqual(result.status, LineStatus.CLOSED)
        self.assertIsNone(result.line)
        self.assertFalse(result.ok)
        self.assertEqual(conn.compare_partial(""), 0)

    def test_close_keeps_partial_line_inspectable(self):
        conn = self.make([b"abc", b""])
        self.assertEqual(conn.read_line(0).status, LineStatus.CLOSED)
        self.assertEqual(conn.peek_partial(), b"abc")
        self.assertEqual(conn.compare_partial(b"ab"), 0)

    def test_bare_terminator_is_never_an_empty_line(self):
        conn = self.make([b"\r\n", b"ok\r\n"])
        result = conn.read_line(1.0)
        self.assertEqual(result.status, LineStatus.COMPLETE)
        self.assertEqual(result.line, b"ok")

    def test_bare_terminator_then_nothing_is_partial(self):
        conn = self.make([b"\r\n", None])
        result = conn.read_line(1.0)
        self.assertEqual(result.status, LineStatus.PARTIAL)
        self.assertEqual(result.line, b"")

    def test_bare_terminators_respect_expired_deadline(self):
        """A stream of terminators cannot keep a zero-timeout call looping."""
        conn = self.make([b"\r\n" * 50 + b"hi\r\n"])
        result = conn.read_line(0)
        self.assertEqual(result.status, LineStatus.PARTIAL)
        self.assertEqual(result.line, b"")
        self.assertEqual(len(self.channel.read_timeouts), 2, "Only one terminator pair should have been consumed")

    def test_polling_reads_back_to_back_lines(self):
        """Zero-timeout calls get past the LF left over from the previous CR LF."""
        conn = self.make([b"a\r\nb\r\n"])
        self.assertEqual(conn.read_line(0).line, b"a")
        second = conn.read_line(0)
        self.assertEqual(second.status, LineStatus.COMPLETE)
        self.assertEqual(second.line, b"b")

    def test_wait_forever_passes_no_timeout(self):
        conn = self.make([b"x\r\n"])
        self.assertEqual(conn.read_line(None).line, b"x")
        self.assertEqual(self.channel.read_timeouts, [None, None])

    def test_timeout_budget_shrinks(self):
        conn = self.make([b"abc\r\n"])
        conn.read_line(5.0)
        timeouts = self.channel.read_timeouts
        self.assertTrue(all(0 <= t <= 5.0 for t in timeouts))
        self.assertEqual(timeouts, sorted(timeouts, reverse=True))

    def test_ignore_return_drops_carriage_returns(self):
        conn = self.make([b"a\rb\n"], ignore_return=True)
        result = conn.read_line(0)
        self.assertEqual(result.status, LineStatus.COMPLETE)
        self.assertEqual(result.line, b"ab")

    def test_escape_prefix_is_stripped(self):
        conn = self.make([b"\x80\x81OK\r\n"], auto_echo=True)
        result = conn.read_line(0)
        self.assertEqual(result.status, LineStatus.COMPLETE)
        self.assertEqual(result.line, b"OK")
        self.assertTrue(conn.got_escape_chars)
        self.assertEqual(self.channel.get_sent_data(), b"", "Escape bytes must never be echoed")

    def test_only_leading_escape_run_is_stripped(self):
        conn = self.make([b"\xff\xfb\x01set\xe9\r\n"])
        self.assertEqual(conn.read_line(0).line, b"\x01set\xe9")

    def test_longest_line_that_fits(self):
        line = b"a" * (LINE_BUFFER_SIZE - 1)
        conn = self.make([line + b"\r\n"])
        result = conn.read_line(0)
        self.assertEqual(result.status, LineStatus.COMPLETE)
        self.assertEqual(result.line, line)

    def test_overflow_reported_once(self):
        conn = self.make([b"b" * LINE_BUFFER_SIZE, None])

        statuses = [conn.read_line(0).status for _ in range(3)]
        self.assertEqual(statuses.count(LineStatus.OVERFLOWED), 1)
        self.assertEqual(statuses[0], LineStatus.OVERFLOWED)
        self.assertEqual(self.channel.get_sent_data(), OVERFLOW_MESSAGE.encode() + b"\r\n")
        self.assertIsNone(conn.peek_partial(), "Overflowed bytes should be discarded")

    def test_overflow_notice_failure_is_ignored(self):
        conn = self.make([b"b" * LINE_BUFFER_SIZE])
        self.channel.write_error = OSError(errno.EPIPE, "Broken pipe")
        self.assertEqual(conn.read_line(0).status, LineStatus.OVERFLOWED)

    def test_hard_error(self):
        conn = self.make([b"ab", OSError(errno.ECONNRESET, "Connection reset")])
        with self.assertLogs(level='ERROR'):
            result = conn.read_line(0)
        self.assertEqual(result.status, LineStatus.IO_ERROR)
        self.assertIsNone(result.line)
        self.assertEqual(conn.bad_read, FaultState.FAULTED)
        self.assertEqual(self.channel.last_error, errno.ECONNRESET)

    def test_last_line_read_time_advances(self):
        conn = self.make([b"x\r\n"])
        before = conn.last_line_read_time
        conn.read_line(0)
        self.assertGreaterEqual(conn.last_line_read_time, before)

    def test_last_line_read_time_unchanged_without_data(self):
        conn = self.make([None, None])
        before = conn.last_line_read_time
        time.sleep(0.02)
        self.assertEqual(conn.read_line(0).status, LineStatus.PARTIAL)
        self.assertEqual(conn.last_line_read_time, before)

        self.channel.feed(b"ab", None)
        conn.read_line(0)
        conn.read_line(0)
        self.assertGreater(conn.last_line_read_time, before)

    def test_text_decoding(self):
        conn = self.make(["héllo\r\n".encode('utf-8')])
        self.assertEqual(conn.read_line(0).text(), "héllo")


if __name__ == '__main__':
    unittest.main()
