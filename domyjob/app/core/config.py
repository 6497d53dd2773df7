"""Environment-driven settings.

Values are read from the process environment (``.env`` is loaded by
``main.py``) every time ``get_settings()`` is called, so tests can
``monkeypatch.setenv`` without reloading modules.
"""
import os
from dataclasses import dataclass

DEV_ENCRYPTION_KEY = 'default-encryption-key-for-development-only'


def _int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    database_url: str
    session_secret: str
    encryption_key: str | None
    openai_api_key: str | None
    openai_base_url: str
    openai_model: str
    llm_timeout: float
    mail_timeout: float
    classify_max_body_chars: int
    context_max_chars: int
    max_prompt_contexts: int
    summarize_max_chars: int
    upload_max_bytes: int
    sync_lookback_days: int


def get_settings() -> Settings:
    return Settings(
        database_url=os.getenv('DATABASE_URL', 'sqlite:///./domyjob.db'),
        session_secret=os.getenv('SESSION_SECRET', 'dev-session-secret'),
        encryption_key=os.getenv('ENCRYPTION_KEY') or None,
        openai_api_key=os.getenv('OPENAI_API_KEY') or None,
        openai_base_url=os.getenv('OPENAI_BASE_URL', 'https://api.openai.com/v1').rstrip('/'),
        openai_model=os.getenv('OPENAI_MODEL', 'gpt-4o'),
        llm_timeout=_float('LLM_TIMEOUT', 60.0),
        mail_timeout=_float('MAIL_TIMEOUT', 30.0),
        classify_max_body_chars=_int('CLASSIFY_MAX_BODY_CHARS', 5000),
        context_max_chars=_int('CONTEXT_MAX_CHARS', 1000),
        max_prompt_contexts=_int('MAX_PROMPT_CONTEXTS', 5),
        summarize_max_chars=_int('SUMMARIZE_MAX_CHARS', 15000),
        upload_max_bytes=_int('UPLOAD_MAX_BYTES', 10 * 1024 * 1024),
        sync_lookback_days=_int('SYNC_LOOKBACK_DAYS', 3),
    )
