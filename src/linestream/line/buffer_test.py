import unittest

from .buffer import LineBuffer, PartialBufferInspector


class TestPartialBufferInspector(unittest.TestCase):

    def setUp(self):
        self.buffer = LineBuffer(capacity=16)
        self.inspector = PartialBufferInspector(self.buffer)
        for byte in b"hello":
            self.buffer.append(byte)

    def test_compare_matching_prefix(self):
        self.assertEqual(self.inspector.compare_partial(b"he"), 0)
        self.assertEqual(self.inspector.compare_partial(b"hello"), 0)
        self.assertEqual(self.inspector.compare_partial("hel"), 0)

    def test_compare_empty_prefix_always_equal(self):
        self.assertEqual(self.inspector.compare_partial(b""), 0)

    def test_compare_ordering(self):
        self.assertEqual(self.inspector.compare_partial(b"hf"), 1)
        self.assertEqual(self.inspector.compare_partial(b"ha"), -1)
        self.assertEqual(self.inspector.compare_partial(b"hello world"), 1)

    def test_compare_does_not_consume(self):
        self.inspector.compare_partial(b"he")
        self.assertEqual(self.buffer.pending(), b"hello")

    def test_clear_is_idempotent(self):
        self.inspector.clear_partial()
        once = (self.buffer.pos, self.buffer.last_echoed, self.buffer.pending())
        self.inspector.clear_partial()
        twice = (self.buffer.pos, self.buffer.last_echoed, self.buffer.pending())
        self.assertEqual(once, (0, 0, b""))
        self.assertEqual(once, twice)
        self.assertIsNone(self.inspector.peek_partial())

    def test_peek(self):
        self.assertEqual(self.inspector.peek_partial(), b"hello")


class TestLineBuffer(unittest.TestCase):

    def test_full(self):
        buffer = LineBuffer(capacity=2)
        buffer.append(ord("a"))
        self.assertFalse(buffer.full)
        buffer.append(ord("b"))
        self.assertTrue(buffer.full)

    def test_too_small(self):
        with self.assertRaises(ValueError):
            LineBuffer(capacity=1)


if __name__ == '__main__':
    unittest.main()
