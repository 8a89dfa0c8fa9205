import io
import json
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest.mock import patch

from agent_usage import cli, config
from agent_usage.models import Source, SyncSummary


def _codex_line(session_id: str) -> str:
    return json.dumps({"timestamp": "2026-03-01T10:00:00Z", "type": "session_meta", "payload": {"id": session_id}})


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.root = Path(tmpdir.name)
        self.db_path = self.root / "usage.db"
        self.logs = self.root / "codex"
        self.logs.mkdir()
        for name, value in (
            ("CODEX_SESSIONS_DIR", self.logs),
            ("CLAUDE_SESSIONS_DIR", self.root / "claude"),
            ("AUTOSYNC", False),
            ("CODEX_ENABLED", True),
            ("CLAUDE_ENABLED", True),
        ):
            patcher = patch.object(config, name, value)
            patcher.start()
            self.addCleanup(patcher.stop)

    def _run(self, *argv: str) -> tuple[int, str]:
        out = io.StringIO()
        with redirect_stdout(out):
            code = cli.main(["--db", str(self.db_path), *argv])
        return code, out.getvalue()

    def test_sync_then_usage_json(self) -> None:
        (self.logs / "rollout-one.jsonl").write_text(_codex_line("one"), encoding="utf-8")

        code, output = self._run("--json", "sync", "--source", "codex", "--dir", str(self.logs))
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(output)[0]["inserted"], 1)

        code, output = self._run("--json", "usage", "--source", "codex")
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(output)[0]["totalSessions"], 1)

    def test_sync_of_empty_directory_succeeds(self) -> None:
        code, output = self._run("sync", "--source", "codex", "--dir", str(self.logs))
        self.assertEqual(code, 0)
        self.assertIn("codex: inserted=0", output)

    def test_usage_syncs_configured_directories_unless_disabled(self) -> None:
        (self.logs / "rollout-auto.jsonl").write_text(_codex_line("auto"), encoding="utf-8")

        with patch.object(config, "AUTOSYNC", True):
            code, output = self._run("--json", "usage", "--source", "codex", "--no-sync")
            self.assertEqual(code, 0)
            self.assertEqual(json.loads(output)[0]["totalSessions"], 0)

            code, output = self._run("--json", "usage", "--source", "codex")
            self.assertEqual(code, 0)
            self.assertEqual(json.loads(output)[0]["totalSessions"], 1)

    def test_usage_without_autosync_reads_store_only(self) -> None:
        (self.logs / "rollout-manual.jsonl").write_text(_codex_line("manual"), encoding="utf-8")
        code, output = self._run("--json", "usage", "--source", "codex")
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(output)[0]["totalSessions"], 0)

    def test_info_reports_database(self) -> None:
        latest = self.logs / "2026" / "rollout-latest.jsonl"
        latest.parent.mkdir()
        latest.write_text(_codex_line("latest"), encoding="utf-8")

        code, output = self._run("--json", "info")
        self.assertEqual(code, 0)
        payload = json.loads(output)
        self.assertEqual(payload["dbPath"], str(self.db_path))
        self.assertEqual(payload["sessionCount"], 0)
        sources = {s["source"]: s for s in payload["sources"]}
        self.assertEqual(set(sources), {"codex", "claude"})
        self.assertEqual(sources["codex"]["latestFile"], str(latest))
        self.assertIsNone(sources["claude"]["latestFile"])

    def test_sessions_find_prints_log_path(self) -> None:
        target = self.logs / "2026" / "03" / "rollout-abc.jsonl"
        target.parent.mkdir(parents=True)
        target.write_text(_codex_line("abc"), encoding="utf-8")

        code, output = self._run("--json", "sessions", "--find", "abc")
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(output), [{"source": "codex", "path": str(target)}])

        code, output = self._run("sessions", "--source", "codex", "--find", "missing")
        self.assertEqual(code, 1)
        self.assertEqual(output, "")

    def test_serve_honours_db_override(self) -> None:
        with patch("agent_usage.main.run") as run:
            code = cli.main(["--db", str(self.db_path), "serve"])

        self.assertEqual(code, 0)
        settings = run.call_args.args[0]
        self.assertEqual(settings.db_path, self.db_path)
        self.assertEqual(settings.codex_sessions_dir, self.logs)

    def test_invalid_arguments_exit_with_usage_error(self) -> None:
        with self.assertRaises(SystemExit) as ctx:
            cli.build_parser().parse_args(["stats", "--period", "year"])
        self.assertEqual(ctx.exception.code, 2)
        with self.assertRaises(SystemExit):
            self._run("sync", "--dir", str(self.logs))

    def test_sync_failed_only_when_nothing_was_handled(self) -> None:
        broken = SyncSummary(source=Source.CODEX, filesSeen=2, errors=2)
        partial = SyncSummary(source=Source.CLAUDE, filesSeen=1, inserted=1)
        anonymous = SyncSummary(source=Source.CLAUDE, filesSeen=1, unidentified=1)
        self.assertTrue(cli._sync_failed([broken]))
        self.assertFalse(cli._sync_failed([broken, partial]))
        self.assertFalse(cli._sync_failed([anonymous]))
        self.assertFalse(cli._sync_failed([SyncSummary(source=Source.CODEX)]))

    def test_format_duration(self) -> None:
        self.assertEqual(cli._format_duration(0), "0m")
        self.assertEqual(cli._format_duration(3_900), "1h 5m")
        self.assertEqual(cli._format_duration(-5), "0m")


if __name__ == "__main__":
    unittest.main()
