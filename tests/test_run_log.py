from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from e6dl.run_log import RunLogger


def _records(path: Path) -> list[dict]:
    return [json.loads(ln) for ln in path.read_text(encoding="utf-8").splitlines() if ln.strip()]


class TestRunLogger(unittest.TestCase):
    def test_context_fields_are_top_level(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "logs" / "run.log"
            with RunLogger.open(path, session_id="abc") as log:
                log.info("search_page_processed", tags="fox", page=2, kept=10)
                log.warning("slow")

            first, second = _records(path)
            self.assertEqual(first["session_id"], "abc")
            self.assertEqual(first["level"], "INFO")
            self.assertEqual(first["tags"], "fox")
            self.assertEqual(first["page"], 2)
            self.assertEqual(first["data"], {"kept": 10})
            self.assertEqual(second["level"], "WARN")
            self.assertNotIn("tags", second)
            self.assertNotIn("data", second)

    def test_bound_logger_shares_file_and_session(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "run.log"
            with RunLogger.open(path) as log:
                pool_log = log.bind(collection="Pools/comic")
                pool_log.debug("file_saved", post_id=42, bytes=10)
                pool_log.close()
                log.info("download_completed")

            saved, done = _records(path)
            self.assertEqual(saved["collection"], "Pools/comic")
            self.assertEqual(saved["post_id"], 42)
            self.assertEqual(saved["data"], {"bytes": 10})
            self.assertEqual(saved["session_id"], done["session_id"])
            self.assertNotIn("collection", done)
            self.assertEqual(log.context, {})
            self.assertEqual(pool_log.context, {"collection": "Pools/comic"})

    def test_exception_records_type_and_message(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "run.log"
            with RunLogger.open(path) as log:
                try:
                    raise ValueError("boom")
                except ValueError as e:
                    log.exception("download_failed", e, post_id=3)

            record = _records(path)[0]
            self.assertEqual(record["level"], "ERROR")
            self.assertEqual(record["post_id"], 3)
            self.assertEqual(record["error"]["type"], "ValueError")
            self.assertEqual(record["error"]["message"], "boom")
            self.assertIn("ValueError", record["error"]["traceback"])

    def test_append_keeps_earlier_records_and_default_truncates(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "run.log"
            with RunLogger.open(path) as log:
                log.info("first")
            with RunLogger.open(path, append=True) as log:
                log.info("second")
            self.assertEqual([r["event"] for r in _records(path)], ["first", "second"])

            with RunLogger.open(path) as log:
                log.info("fresh")
                self.assertEqual(log.path, path)

            self.assertEqual([r["event"] for r in _records(path)], ["fresh"])

    def test_closed_logger_refuses_writes(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            log = RunLogger.open(Path(td) / "run.log")
            log.close()
            with self.assertRaises(ValueError):
                log.info("late")


if __name__ == "__main__":
    unittest.main()
