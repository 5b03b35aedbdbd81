"""Persistent bearer token storage."""

from __future__ import annotations

import json
import logging
import os
import uuid
from contextlib import suppress
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

TOKEN_KEY = "auth_token"


class TokenSource(Protocol):
    def read(self) -> str | None: ...

    def write(self, token: str) -> None: ...

    def clear(self) -> None: ...


def _normalize(token: object) -> str | None:
    if not isinstance(token, str):
        return None
    stripped = token.strip()
    return stripped or None


def _atomic_write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".tmp-{path.name}-{uuid.uuid4().hex}")
    try:
        tmp_path.write_text(content, encoding="utf-8")
        os.replace(tmp_path, path)
    except OSError:
        with suppress(FileNotFoundError):
            tmp_path.unlink()
        raise


class TokenStore:
    """File-backed store holding one bearer token under a fixed key."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()

    def _load(self) -> dict[str, object]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            logger.warning("token file unreadable: %s (%s)", self.path, exc)
            return {}
        if not raw.strip():
            return {}
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("token file is not valid JSON: %s", self.path)
            return {}
        return payload if isinstance(payload, dict) else {}

    def read(self) -> str | None:
        return _normalize(self._load().get(TOKEN_KEY))

    def write(self, token: str) -> None:
        normalized = _normalize(token)
        if normalized is None:
            raise ValueError("refusing to store an empty token")
        payload = self._load()
        payload[TOKEN_KEY] = normalized
        _atomic_write_text(self.path, json.dumps(payload, sort_keys=True, indent=2) + "\n")

    def clear(self) -> None:
        payload = self._load()
        if TOKEN_KEY not in payload:
            return
        del payload[TOKEN_KEY]
        if payload:
            _atomic_write_text(self.path, json.dumps(payload, sort_keys=True, indent=2) + "\n")
            return
        with suppress(FileNotFoundError):
            self.path.unlink()


class MemoryTokenStore:
    """In-memory token holder."""

    def __init__(self, token: str | None = None) -> None:
        self._token = _normalize(token)

    def read(self) -> str | None:
        return self._token

    def write(self, token: str) -> None:
        normalized = _normalize(token)
        if normalized is None:
            raise ValueError("refusing to store an empty token")
        self._token = normalized

    def clear(self) -> None:
        self._token = None
