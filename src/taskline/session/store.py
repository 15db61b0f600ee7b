# src/taskline/session/store.py

from __future__ import annotations

import contextlib
import json
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


def _load_json(path: Path) -> dict[str, str]:
    raw = path.read_text("utf-8")
    val = json.loads(raw)
    if not isinstance(val, dict):
        raise ValueError("Expected JSON object")
    return {str(k): str(v) for k, v in val.items() if v is not None}


def _atomic_write_json(path: Path, data: dict[str, str]) -> None:
    tmp = path.with_suffix(".tmp")
    tmp.write_text(json.dumps(data, ensure_ascii=False), "utf-8")
    os.replace(tmp, path)
    with contextlib.suppress(OSError):
        # Credentials: keep the file private where the filesystem allows it.
        os.chmod(path, 0o600)


class JsonSessionStore:
    """
    Credential storage in a single JSON file under a gitignored local dir.

    Every write rewrites the whole file atomically (tmp + replace).
    A missing or corrupt file reads as empty.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            return _load_json(self._path)
        except Exception as e:
            logger.warning("Failed to read session file %s: %r", self._path, e)
            return {}

    def get(self, key: str) -> str | None:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = str(value)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        _atomic_write_json(self._path, data)

    def remove(self, *keys: str) -> None:
        data = self._read()
        if not any(k in data for k in keys):
            return
        for k in keys:
            data.pop(k, None)
        _atomic_write_json(self._path, data)


class MemorySessionStore:
    """In-process storage for tests and token-from-env runs."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = str(value)

    def remove(self, *keys: str) -> None:
        for k in keys:
            self.data.pop(k, None)
