from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, default))


class Settings(BaseModel):
    """Runtime configuration resolved from the environment."""

    ollama_host: str = "http://localhost:11434"
    ollama_model: str = "llama3"
    temperature: float = 0.15
    top_k: int = 40
    top_p: float = 0.9
    repeat_penalty: float = 1.25
    repeat_last_n: int = 256
    context_tokens: int = 4096
    max_tokens: int = 256
    stop: list[str] = Field(default_factory=lambda: ["Usuario autenticado:", "Contexto (", "Normas:"])
    history_limit: int = 60
    max_message_chars: int = 2000
    uploads_root: Path = Path(__file__).resolve().parents[2] / "uploads"
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"])
    reports_window_start: datetime = datetime(2000, 1, 1)

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        origins_env = os.getenv("API_CORS_ORIGINS", "")
        origins = [origin.strip() for origin in origins_env.split(",") if origin.strip()]

        uploads_env = os.getenv("UPLOADS_ROOT")
        uploads_root = Path(uploads_env).expanduser().resolve() if uploads_env else defaults.uploads_root

        window_start = defaults.reports_window_start
        window_env = os.getenv("REPORTS_WINDOW_START")
        if window_env:
            try:
                window_start = datetime.fromisoformat(window_env)
            except ValueError:
                window_start = defaults.reports_window_start

        return cls(
            ollama_host=(os.getenv("OLLAMA_HOST") or defaults.ollama_host).rstrip("/"),
            ollama_model=os.getenv("OLLAMA_MODEL") or defaults.ollama_model,
            temperature=_env_float("AI_TEMPERATURE", defaults.temperature),
            top_k=_env_int("AI_TOP_K", defaults.top_k),
            top_p=_env_float("AI_TOP_P", defaults.top_p),
            repeat_penalty=_env_float("AI_REPEAT_PENALTY", defaults.repeat_penalty),
            repeat_last_n=_env_int("AI_REPEAT_LAST_N", defaults.repeat_last_n),
            context_tokens=_env_int("AI_CONTEXT_TOKENS", defaults.context_tokens),
            max_tokens=_env_int("AI_MAX_TOKENS", defaults.max_tokens),
            history_limit=_env_int("CHAT_HISTORY_LIMIT", defaults.history_limit),
            max_message_chars=_env_int("CHAT_MAX_MESSAGE_CHARS", defaults.max_message_chars),
            uploads_root=uploads_root,
            cors_origins=origins or defaults.cors_origins,
            reports_window_start=window_start,
        )


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""

    global _settings
    _settings = None
