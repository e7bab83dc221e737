"""Tests for milton.audit."""
import tempfile
import unittest
from pathlib import Path

from milton.audit import AuditLog


class TestAuditLog(unittest.TestCase):
    def test_log_and_tail(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            audit = AuditLog(Path(tmpdir) / "nested" / "audit.jsonl")
            for i in range(5):
                audit.log("model.call", {"i": i})
            audit.log("resolution.committed", {"index": "1"})

            self.assertEqual(len(audit.tail(limit=0)), 6)
            last_calls = audit.tail(limit=2, event="model.call")
            self.assertEqual([e["data"]["i"] for e in last_calls], [3, 4])
            self.assertEqual(audit.tail(event="resolution.committed")[0]["data"], {"index": "1"})

    def test_tail_skips_corrupt_lines(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "audit.jsonl"
            audit = AuditLog(path)
            audit.log("a")
            with path.open("a", encoding="utf-8") as handle:
                handle.write("{truncated\n")
            audit.log("b")
            self.assertEqual([e["event"] for e in audit.tail()], ["a", "b"])

    def test_missing_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            self.assertEqual(AuditLog(Path(tmpdir) / "none.jsonl").tail(), [])


if __name__ == "__main__":
    unittest.main()
