# src/taskline/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Everything that needs settings also accepts them injected (tests use SimpleNamespace).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKLINE"

DEFAULT_API_BASE_URL = "https://efetosun.com"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Backend ----
    api_base_url: str
    token: str | None
    request_timeout_seconds: float
    connect_timeout_seconds: float

    # ---- Polling ----
    task_poll_seconds: float
    contact_poll_seconds: float
    conversation_poll_seconds: float
    conversation_limit: int

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    session_path: Path

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "taskline").strip() or "taskline"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        api_base_url = (_env(_k("API_BASE_URL"), DEFAULT_API_BASE_URL).strip() or DEFAULT_API_BASE_URL)
        token = _env(_k("TOKEN"), "").strip() or None

        connect_timeout = _env_float(_k("CONNECT_TIMEOUT_SECONDS"), 5.0)
        request_timeout = _env_float(_k("REQUEST_TIMEOUT_SECONDS"), 15.0)
        # keep read >= connect as a sane baseline
        request_timeout = max(request_timeout, connect_timeout)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskline"))
        session_path = _env_path(_k("SESSION_PATH"), data_dir / "session.json")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            api_base_url=api_base_url.rstrip("/"),
            token=token,
            request_timeout_seconds=request_timeout,
            connect_timeout_seconds=connect_timeout,
            task_poll_seconds=_env_float(_k("TASK_POLL_SECONDS"), 5.0),
            contact_poll_seconds=_env_float(_k("CONTACT_POLL_SECONDS"), 5.0),
            conversation_poll_seconds=_env_float(_k("CONVERSATION_POLL_SECONDS"), 2.5),
            conversation_limit=_env_int(_k("CONVERSATION_LIMIT"), 200),
            data_dir=data_dir,
            session_path=session_path,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
