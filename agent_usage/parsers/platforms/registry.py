"""Session parser registry keyed by log source."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from agent_usage import config
from agent_usage.models import ParsedSession, Source
from agent_usage.parsers.platforms.claude_code import parser as claude_code_parser
from agent_usage.parsers.platforms.codex import parser as codex_parser


@dataclass(frozen=True)
class SessionParser:
    source: Source
    parse: Callable[[Path], ParsedSession]
    default_dir: Path


_PARSERS: dict[Source, SessionParser] = {
    Source.CODEX: SessionParser(Source.CODEX, codex_parser.parse_session_file, config.CODEX_SESSIONS_DIR),
    Source.CLAUDE: SessionParser(Source.CLAUDE, claude_code_parser.parse_session_file, config.CLAUDE_SESSIONS_DIR),
}


def get_parser(source: Source) -> SessionParser:
    return _PARSERS[Source(source)]


def parse_session_file(source: Source, path: Path) -> ParsedSession:
    """Parse ``path`` with the parser registered for ``source``."""
    return get_parser(source).parse(path)


def _mtime(path: Path) -> float:
    try:
        return path.stat().st_mtime
    except OSError:
        return 0.0


def find_session_files(sessions_dir: Path) -> list[Path]:
    """All ``*.jsonl`` files below ``sessions_dir``, newest first."""
    if not sessions_dir.is_dir():
        return []
    files = [p for p in sessions_dir.rglob("*.jsonl") if p.is_file()]
    return sorted(files, key=_mtime, reverse=True)


def find_latest_session(sessions_dir: Path) -> Path | None:
    files = find_session_files(sessions_dir)
    return files[0] if files else None


def find_session_by_id(sessions_dir: Path, session_id: str) -> Path | None:
    """Locate ``rollout-<id>.jsonl`` or ``<id>.jsonl`` below ``sessions_dir``."""
    names = {f"rollout-{session_id}.jsonl", f"{session_id}.jsonl"}
    for path in find_session_files(sessions_dir):
        if path.name in names:
            return path
    return None
