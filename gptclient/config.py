"""Configuration helpers and defaults."""
from __future__ import annotations

import re
from dataclasses import dataclass
from os import getenv
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigurationError

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"

# Retry policy for 429/500/503
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BASE_DELAY_MS = 1000
DEFAULT_MAX_DELAY_MS = 30000

# Tool-call loop guard
DEFAULT_MAX_TOOL_TURNS = 4

DEFAULT_REQUEST_TIMEOUT_MS: Optional[int] = None

# Track if we've loaded .env
_dotenv_loaded = False


def ensure_dotenv_loaded() -> None:
    """Load .env file from current directory if not already loaded."""
    global _dotenv_loaded
    if _dotenv_loaded:
        return

    env_file = Path.cwd() / ".env"
    if env_file.exists():
        load_dotenv(env_file)
    else:
        # Also try parent directories up to home
        for parent in Path.cwd().parents:
            env_file = parent / ".env"
            if env_file.exists():
                load_dotenv(env_file)
                break
            if parent == Path.home():
                break

    _dotenv_loaded = True


def env_int(name: str, fallback: int) -> int:
    raw = getenv(name)
    if raw is None:
        return fallback
    try:
        value = int(raw)
    except ValueError:
        return fallback
    return value if value > 0 else fallback


def env_float(name: str, fallback: float) -> float:
    raw = getenv(name)
    if raw is None:
        return fallback
    try:
        value = float(raw)
    except ValueError:
        return fallback
    return value if value > 0 else fallback


def env_first(*names: str) -> Optional[str]:
    for name in names:
        value = getenv(name)
        if value:
            return value
    return None


_REASONING_MODEL = re.compile(r"^o\d")


def is_reasoning_model(model: Optional[str]) -> bool:
    """Check if model is a reasoning model that takes instructions via the developer role.

    Covers the o-series (o1, o3-mini, o4-mini, ...) and the gpt-5 family.
    """
    if not model:
        return False
    model_lower = model.lower()
    return bool(_REASONING_MODEL.match(model_lower)) or model_lower.startswith("gpt-5")


def get_system_role(model: Optional[str]) -> str:
    return "developer" if is_reasoning_model(model) else "system"


@dataclass(frozen=True)
class ClientSettings:
    api_key: str
    base_url: str = DEFAULT_BASE_URL
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay_ms: int = DEFAULT_BASE_DELAY_MS
    max_delay_ms: int = DEFAULT_MAX_DELAY_MS
    jitter: bool = False
    max_tool_turns: int = DEFAULT_MAX_TOOL_TURNS
    request_timeout_ms: Optional[int] = DEFAULT_REQUEST_TIMEOUT_MS
    log_json_path: Optional[str] = None

    @classmethod
    def from_env(cls) -> "ClientSettings":
        ensure_dotenv_loaded()
        api_key = env_first("GPTCLIENT_OPENAI_API_KEY", "OPENAI_API_KEY")
        if not api_key:
            raise ConfigurationError("GPTCLIENT_OPENAI_API_KEY (or OPENAI_API_KEY) is required")
        return cls(
            api_key=api_key,
            base_url=env_first("GPTCLIENT_OPENAI_BASE_URL", "OPENAI_BASE_URL") or DEFAULT_BASE_URL,
            max_attempts=env_int("GPTCLIENT_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS),
            base_delay_ms=env_int("GPTCLIENT_BASE_DELAY_MS", DEFAULT_BASE_DELAY_MS),
            max_delay_ms=env_int("GPTCLIENT_MAX_DELAY_MS", DEFAULT_MAX_DELAY_MS),
            max_tool_turns=env_int("GPTCLIENT_MAX_TOOL_TURNS", DEFAULT_MAX_TOOL_TURNS),
            request_timeout_ms=env_int("GPTCLIENT_REQUEST_TIMEOUT_MS", 0) or None,
            log_json_path=getenv("GPTCLIENT_LOG_JSON") or None,
        )
