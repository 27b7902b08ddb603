from __future__ import annotations

import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path


class TestSearchCommandWritesLog(unittest.TestCase):
    def test_search_creates_run_log_on_config_error(self) -> None:
        repo_root = Path(__file__).resolve().parents[1]

        with tempfile.TemporaryDirectory() as td:
            out_dir = Path(td) / "out"
            out_dir.mkdir(parents=True, exist_ok=True)

            missing_cfg = Path(td) / "missing_config.yaml"

            env = dict(os.environ)
            existing_pp = env.get("PYTHONPATH", "")
            env["PYTHONPATH"] = (
                f"{repo_root}{os.pathsep}{existing_pp}" if existing_pp else str(repo_root)
            )

            proc = subprocess.run(
                [
                    sys.executable,
                    "-m",
                    "e6dl",
                    "search",
                    "--config",
                    str(missing_cfg),
                    "--tags",
                    "fox",
                    "--out",
                    str(out_dir),
                ],
                cwd=repo_root,
                env=env,
                capture_output=True,
                text=True,
            )

            self.assertEqual(proc.returncode, 2, msg=proc.stderr)

            log_path = out_dir / "run.log"
            self.assertTrue(log_path.exists())
            self.assertFalse((out_dir / "posts.json").exists())

            events: list[str] = []
            for ln in log_path.read_text(encoding="utf-8").splitlines():
                if not ln.strip():
                    continue
                obj = json.loads(ln)
                ev = obj.get("event")
                if isinstance(ev, str):
                    events.append(ev)

            self.assertIn("search_command_started", events)
            self.assertIn("search_command_failed", events)


class TestDownloadCommandWritesLog(unittest.TestCase):
    def test_download_without_declarations_exits_2(self) -> None:
        repo_root = Path(__file__).resolve().parents[1]

        with tempfile.TemporaryDirectory() as td:
            cfg_path = Path(td) / "config.yaml"
            cfg_path.write_text("download:\n  favorites: true\n", encoding="utf-8")
            log_path = Path(td) / "logs" / "run.log"

            env = dict(os.environ)
            env.pop("E621_API_KEY", None)
            existing_pp = env.get("PYTHONPATH", "")
            env["PYTHONPATH"] = (
                f"{repo_root}{os.pathsep}{existing_pp}" if existing_pp else str(repo_root)
            )

            proc = subprocess.run(
                [
                    sys.executable,
                    "-m",
                    "e6dl",
                    "download",
                    "--config",
                    str(cfg_path),
                    "--out",
                    str(Path(td) / "downloads"),
                    "--log",
                    str(log_path),
                ],
                cwd=repo_root,
                env=env,
                capture_output=True,
                text=True,
            )

            self.assertEqual(proc.returncode, 2, msg=proc.stderr)
            self.assertIn("Nothing to download", proc.stderr)
            self.assertFalse((Path(td) / "downloads").exists())

            events = [
                json.loads(ln)["event"]
                for ln in log_path.read_text(encoding="utf-8").splitlines()
                if ln.strip()
            ]
            self.assertEqual(
                events,
                ["download_command_started", "config_loaded", "download_command_failed"],
            )


if __name__ == "__main__":
    unittest.main()
