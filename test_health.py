import os
import tempfile
import unittest

from relaybot.health import STALE_AFTER_SECONDS, is_healthy, main, write_heartbeat


class TestHeartbeat(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.path = os.path.join(self.tmp.name, ".bot-ready")

    def test_writes_millisecond_timestamp(self):
        write_heartbeat(self.path, now=1700000000.5)
        with open(self.path, encoding="utf-8") as f:
            self.assertEqual(f.read(), "1700000000500")

    def test_fresh_file_is_healthy(self):
        write_heartbeat(self.path, now=1000.0)
        self.assertTrue(is_healthy(self.path, now=1000.0 + STALE_AFTER_SECONDS - 1))

    def test_stale_file_is_unhealthy(self):
        write_heartbeat(self.path, now=1000.0)
        self.assertFalse(is_healthy(self.path, now=1000.0 + STALE_AFTER_SECONDS + 1))

    def test_missing_or_garbage_file_is_unhealthy(self):
        self.assertFalse(is_healthy(self.path))
        with open(self.path, "w", encoding="utf-8") as f:
            f.write("not-a-timestamp")
        self.assertFalse(is_healthy(self.path))

    def test_write_failure_is_logged(self):
        bad_path = os.path.join(self.tmp.name, "missing-dir", ".bot-ready")
        with self.assertLogs(level="WARNING"):
            write_heartbeat(bad_path)

    def test_cli_exit_codes(self):
        self.assertEqual(main([self.path]), 1)
        write_heartbeat(self.path)
        self.assertEqual(main([self.path]), 0)


if __name__ == "__main__":
    unittest.main()
