"""agent-usage configuration."""
import os
from dataclasses import dataclass
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    value = os.getenv(name)
    if not value:
        return default
    return Path(value).expanduser()


HOME_DIR = Path.home()
DATA_DIR = HOME_DIR / ".agent-usage"

# Database
DB_PATH = _env_path("AGENT_USAGE_DB_PATH", DATA_DIR / "usage.db")

# Sources
CODEX_ENABLED = _env_bool("AGENT_USAGE_CODEX_ENABLED", True)
CLAUDE_ENABLED = _env_bool("AGENT_USAGE_CLAUDE_ENABLED", True)
CODEX_SESSIONS_DIR = _env_path("AGENT_USAGE_CODEX_SESSIONS_DIR", HOME_DIR / ".codex" / "sessions")
CLAUDE_SESSIONS_DIR = _env_path("AGENT_USAGE_CLAUDE_SESSIONS_DIR", HOME_DIR / ".claude" / "projects")
AUTOSYNC = _env_bool("AGENT_USAGE_AUTOSYNC", True)

# Query tuning
TOP_MODELS_LIMIT = _env_int("AGENT_USAGE_TOP_MODELS_LIMIT", 3)
RECENT_SESSIONS_LIMIT = _env_int("AGENT_USAGE_RECENT_SESSIONS_LIMIT", 5)

# Observability
OTEL_ENABLED = _env_bool("AGENT_USAGE_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("AGENT_USAGE_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("AGENT_USAGE_OTEL_SERVICE_NAME", "agent-usage")

# Server settings
HOST = os.getenv("AGENT_USAGE_HOST", "127.0.0.1")
PORT = _env_int("AGENT_USAGE_PORT", 8000)


@dataclass(frozen=True)
class Settings:
    """Snapshot of the module-level settings handed to a single invocation."""

    db_path: Path
    codex_enabled: bool
    claude_enabled: bool
    codex_sessions_dir: Path
    claude_sessions_dir: Path
    autosync: bool
    top_models_limit: int
    recent_sessions_limit: int


def load_settings(**overrides) -> Settings:
    values = {
        "db_path": DB_PATH,
        "codex_enabled": CODEX_ENABLED,
        "claude_enabled": CLAUDE_ENABLED,
        "codex_sessions_dir": CODEX_SESSIONS_DIR,
        "claude_sessions_dir": CLAUDE_SESSIONS_DIR,
        "autosync": AUTOSYNC,
        "top_models_limit": TOP_MODELS_LIMIT,
        "recent_sessions_limit": RECENT_SESSIONS_LIMIT,
    }
    values.update({key: value for key, value in overrides.items() if value is not None})
    return Settings(**values)
