"""Runtime configuration loader (TOML file, env overrides on top)."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from taller_client.errors import ConfigError

DEFAULT_CONFIG_PATH = Path("~/.config/taller/runtime.toml")
DEFAULT_TOKEN_PATH = "~/.config/taller/token.json"
DEFAULT_BASE_URL = "http://localhost:5000"

ON_401_CHOICES: tuple[str, ...] = ("raise", "return_none")
LOG_LEVEL_CHOICES: tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass(frozen=True)
class RuntimeConfig:
    """Materialized runtime configuration."""

    config_path: Path | None
    base_url: str
    timeout_s: float | None
    token_path: Path
    on_401: str
    stale_after_s: float | None
    log_level: str

    def as_settings_values(self) -> dict[str, Any]:
        return {
            "base_url": self.base_url,
            "timeout_s": self.timeout_s,
            "token_path": str(self.token_path),
            "on_401": self.on_401,
            "stale_after_s": self.stale_after_s,
            "log_level": self.log_level,
        }


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        payload = tomllib.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"failed reading runtime config: {path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"invalid runtime config TOML: {path}") from exc
    return payload


def _as_table(payload: dict[str, Any], key: str) -> dict[str, Any]:
    value = payload.get(key, {})
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"runtime config section [{key}] must be a table")
    return value


def _as_str(value: Any, *, default: str) -> str:
    if isinstance(value, str):
        stripped = value.strip()
        if stripped:
            return stripped
    return default


def _as_optional_seconds(value: Any, *, field: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{field} must be a number of seconds")
    if value <= 0:
        return None
    return float(value)


def _as_choice(value: Any, *, default: str, choices: tuple[str, ...], field: str) -> str:
    resolved = _as_str(value, default=default)
    if resolved not in choices:
        raise ConfigError(f"{field} must be one of {', '.join(choices)}; got {resolved!r}")
    return resolved


def _resolve_path(raw: Any, *, default: str, base_dir: Path) -> Path:
    path = Path(_as_str(raw, default=default)).expanduser()
    if not path.is_absolute():
        path = (base_dir / path).resolve()
    return path


def default_runtime_config() -> RuntimeConfig:
    return RuntimeConfig(
        config_path=None,
        base_url=DEFAULT_BASE_URL,
        timeout_s=None,
        token_path=Path(DEFAULT_TOKEN_PATH).expanduser(),
        on_401="raise",
        stale_after_s=None,
        log_level="WARNING",
    )


def load_runtime_config(config_path: Path | None = None) -> RuntimeConfig:
    """Load ``[api]``, ``[auth]``, ``[cache]`` and ``[logging]`` from a TOML file.

    Without an explicit path the default location is used when present,
    otherwise built-in defaults apply. An explicit path that does not exist is
    an error.
    """
    if config_path is None:
        candidate = DEFAULT_CONFIG_PATH.expanduser()
        if not candidate.exists():
            return default_runtime_config()
        source = candidate.resolve()
    else:
        source = config_path.expanduser().resolve()
        if not source.exists():
            raise ConfigError(f"runtime config file not found: {source}")

    payload = _read_toml(source)
    api = _as_table(payload, "api")
    auth = _as_table(payload, "auth")
    cache = _as_table(payload, "cache")
    logging_table = _as_table(payload, "logging")
    base_dir = source.parent

    return RuntimeConfig(
        config_path=source,
        base_url=_as_str(api.get("base_url"), default=DEFAULT_BASE_URL),
        timeout_s=_as_optional_seconds(api.get("timeout_s"), field="api.timeout_s"),
        token_path=_resolve_path(
            auth.get("token_path"), default=DEFAULT_TOKEN_PATH, base_dir=base_dir
        ),
        on_401=_as_choice(
            cache.get("on_401"), default="raise", choices=ON_401_CHOICES, field="cache.on_401"
        ),
        stale_after_s=_as_optional_seconds(cache.get("stale_after_s"), field="cache.stale_after_s"),
        log_level=_as_choice(
            str(logging_table.get("level", "")).upper(),
            default="WARNING",
            choices=LOG_LEVEL_CHOICES,
            field="logging.level",
        ),
    )
