import json
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

from agent_usage.models import Source
from agent_usage.parsers.platforms.claude_code.parser import extract_content, parse_session_file


class ClaudeCodeParserTests(unittest.TestCase):
    def _write_jsonl(self, lines: list[dict], name: str = "session.jsonl") -> Path:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / name
        path.write_text("\n".join(json.dumps(line) for line in lines), encoding="utf-8")
        return path

    def test_usage_accumulates_and_cost_is_computed(self) -> None:
        path = self._write_jsonl(
            [
                {
                    "type": "user",
                    "sessionId": "c-1",
                    "cwd": "/work/app",
                    "timestamp": "2026-03-02T09:00:00Z",
                    "message": {"role": "user", "content": "hello"},
                },
                {
                    "type": "assistant",
                    "sessionId": "c-1",
                    "timestamp": "2026-03-02T09:00:10Z",
                    "message": {
                        "role": "assistant",
                        "model": "claude-sonnet-4",
                        "content": [{"type": "text", "text": "hi"}],
                        "usage": {
                            "input_tokens": 600,
                            "output_tokens": 300,
                            "cache_creation_input_tokens": 200,
                            "cache_read_input_tokens": 0,
                        },
                    },
                },
                {
                    "type": "assistant",
                    "sessionId": "c-1",
                    "timestamp": "2026-03-02T09:01:00Z",
                    "message": {
                        "role": "assistant",
                        "content": [{"type": "text", "text": "more"}],
                        "usage": {"input_tokens": 400, "output_tokens": 200, "cache_read_input_tokens": 100},
                    },
                },
            ]
        )

        session = parse_session_file(path)

        self.assertEqual(session.source, Source.CLAUDE)
        self.assertEqual(session.provider, "anthropic")
        self.assertEqual(session.externalId, "c-1")
        self.assertEqual(session.projectPath, "/work/app")
        self.assertEqual(session.model, "claude-sonnet-4")
        self.assertEqual(session.tokens.input, 1000)
        self.assertEqual(session.tokens.output, 500)
        self.assertEqual(session.tokens.cacheCreation, 200)
        self.assertEqual(session.tokens.cacheRead, 100)
        self.assertEqual(session.tokens.total, 1800)
        self.assertAlmostEqual(session.cost, 0.01128, places=12)
        self.assertEqual(session.startedAt, datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc))
        self.assertEqual(session.endedAt, datetime(2026, 3, 2, 9, 1, 0, tzinfo=timezone.utc))
        self.assertEqual([m.content for m in session.messages], ["hello", "hi", "more"])

    def test_identity_is_first_wins(self) -> None:
        path = self._write_jsonl(
            [
                {"type": "user", "sessionId": "first", "cwd": "/a", "message": {"role": "user", "content": "x"}},
                {"type": "user", "sessionId": "second", "cwd": "/b", "message": {"role": "user", "content": "y"}},
            ]
        )
        session = parse_session_file(path)
        self.assertEqual(session.externalId, "first")
        self.assertEqual(session.projectPath, "/a")

    def test_snake_case_identity_keys_are_accepted(self) -> None:
        path = self._write_jsonl([{"type": "summary", "session_id": "snake", "project_path": "/p"}])
        session = parse_session_file(path)
        self.assertEqual(session.externalId, "snake")
        self.assertEqual(session.projectPath, "/p")

    def test_message_model_is_last_wins(self) -> None:
        path = self._write_jsonl(
            [
                {"type": "assistant", "model": "top-level", "message": {"role": "assistant", "model": "m1", "content": "a"}},
                {"type": "assistant", "message": {"role": "assistant", "model": "m2", "content": "b"}},
            ]
        )
        self.assertEqual(parse_session_file(path).model, "m2")

    def test_top_level_model_seeds_empty_model(self) -> None:
        path = self._write_jsonl([{"type": "user", "model": "seed", "message": {"role": "user", "content": "a"}}])
        self.assertEqual(parse_session_file(path).model, "seed")

    def test_user_direct_input_takes_precedence(self) -> None:
        path = self._write_jsonl(
            [{"type": "user", "input": "typed prompt", "message": {"role": "user", "content": "ignored"}}]
        )
        session = parse_session_file(path)
        self.assertEqual(len(session.messages), 1)
        self.assertEqual(session.messages[0].role, "user")
        self.assertEqual(session.messages[0].content, "typed prompt")

    def test_system_records_are_skipped(self) -> None:
        path = self._write_jsonl(
            [
                {"type": "system", "message": {"role": "system", "content": "boot"}},
                {"type": "event", "role": "tool", "content": "generic"},
                {"type": "event", "content": "no role"},
            ]
        )
        session = parse_session_file(path)
        self.assertEqual([(m.role, m.content) for m in session.messages], [("tool", "generic")])

    def test_last_timestamp_ignores_unparsable_values(self) -> None:
        path = self._write_jsonl(
            [
                {"type": "user", "timestamp": "2026-03-02T09:00:00Z", "message": {"role": "user", "content": "a"}},
                {"type": "user", "timestamp": "2026-03-02T09:30:00+02:00", "message": {"role": "user", "content": "b"}},
                {"type": "user", "timestamp": "garbage", "message": {"role": "user", "content": "c"}},
            ]
        )
        session = parse_session_file(path)
        self.assertEqual(session.endedAt, datetime(2026, 3, 2, 7, 30, 0, tzinfo=timezone.utc))
        self.assertIsNone(session.messages[2].timestamp)

    def test_overflowing_usage_values_are_ignored(self) -> None:
        path = self._write_jsonl([])
        path.write_text(
            "\n".join(
                [
                    '{"type": "assistant", "sessionId": "c-big", "message": {"role": "assistant", '
                    '"content": "a", "usage": {"input_tokens": 1e400, "output_tokens": 3}}}',
                    '{"type": "assistant", "message": {"role": "assistant", '
                    '"content": "b", "usage": {"input_tokens": Infinity}}}',
                    '{"type": "assistant", "message": {"role": "assistant", '
                    '"content": "c", "usage": {"input_tokens": 5}}}',
                ]
            ),
            encoding="utf-8",
        )

        session = parse_session_file(path)

        self.assertEqual(session.externalId, "c-big")
        self.assertEqual(session.tokens.input, 5)
        self.assertEqual(session.tokens.output, 3)
        self.assertEqual([m.content for m in session.messages], ["a", "c"])

    def test_empty_file_parses_to_empty_session(self) -> None:
        path = self._write_jsonl([])
        session = parse_session_file(path)
        self.assertEqual(session.externalId, "")
        self.assertIsNone(session.startedAt)
        self.assertIsNone(session.endedAt)
        self.assertEqual(session.tokens.total, 0)
        self.assertEqual(session.cost, 0.0)
        self.assertEqual(session.messages, [])
        self.assertEqual(session.toolCalls, [])


class ExtractContentTests(unittest.TestCase):
    def test_string_passes_through(self) -> None:
        self.assertEqual(extract_content("plain"), "plain")

    def test_blocks_are_flattened(self) -> None:
        blocks = [
            {"type": "text", "text": "hello"},
            {"type": "thinking", "thinking": "pondering"},
            {"type": "tool_use", "name": "Read", "input": {"file_path": "a.py"}},
            {"type": "tool_use"},
            {"type": "tool_result", "content": "file body"},
            {"type": "tool_result"},
            {"type": "other", "text": "t", "content": "c"},
        ]
        self.assertEqual(
            extract_content(blocks),
            "hello\npondering\n[tool_use:Read]\n[tool_use]\nfile body\n[tool_result]\nt\nc",
        )

    def test_object_uses_text_then_content(self) -> None:
        self.assertEqual(extract_content({"text": "a", "content": "b"}), "a")
        self.assertEqual(extract_content({"content": "b"}), "b")

    def test_unknown_shapes_are_empty(self) -> None:
        self.assertEqual(extract_content(None), "")
        self.assertEqual(extract_content(42), "")


if __name__ == "__main__":
    unittest.main()
