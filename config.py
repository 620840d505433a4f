"""
Configuration for Mockup Studio.
Values come from the environment (a local .env file is loaded first).
"""

import os
import secrets
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

DEFAULT_IMAGE_MODEL = "imagen-4.0-generate-001"
DEFAULT_EDIT_MODEL = "gemini-2.5-flash-image"


def _int_env(name, default):
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    api_key: str | None
    image_model: str = DEFAULT_IMAGE_MODEL
    edit_model: str = DEFAULT_EDIT_MODEL
    timeout_ms: int | None = None
    # 0 means unbounded
    max_prompt_chars: int = 0
    max_logo_bytes: int = 0
    secret_key: str = ""
    port: int = 5001
    # in-memory workflows kept, and how long an idle one survives
    max_sessions: int = 1000
    session_ttl_seconds: int = 3600


def get_settings():
    """Read settings from the current environment."""
    timeout_ms = _int_env("GEMINI_TIMEOUT_MS", 0)
    return Settings(
        api_key=os.environ.get("GEMINI_API_KEY") or None,
        image_model=os.environ.get("MOCKUP_IMAGE_MODEL") or DEFAULT_IMAGE_MODEL,
        edit_model=os.environ.get("LOGO_EDIT_MODEL") or DEFAULT_EDIT_MODEL,
        timeout_ms=timeout_ms or None,
        max_prompt_chars=_int_env("MAX_PROMPT_CHARS", 0),
        max_logo_bytes=_int_env("MAX_LOGO_BYTES", 0),
        secret_key=os.environ.get("FLASK_SECRET_KEY") or secrets.token_hex(32),
        port=_int_env("PORT", 5001),
        max_sessions=_int_env("MAX_SESSIONS", 1000),
        session_ttl_seconds=_int_env("SESSION_TTL_SECONDS", 3600),
    )
