"""Application settings for taller-client."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from dotenv import dotenv_values
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from taller_client.runtime_config import DEFAULT_BASE_URL, DEFAULT_TOKEN_PATH, load_runtime_config

ENV_PREFIX = "TALLER_"


class Settings(BaseSettings):
    """Runtime settings for the backend connection and cache policy."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_url: str = DEFAULT_BASE_URL
    timeout_s: float | None = None
    token_path: str = DEFAULT_TOKEN_PATH
    on_401: Literal["raise", "return_none"] = "raise"
    stale_after_s: float | None = Field(default=None, gt=0)
    log_level: str = "WARNING"

    def resolved_token_path(self) -> Path:
        return Path(self.token_path).expanduser()

    @classmethod
    def _env_names(cls) -> set[str]:
        """Upper-cased names set in the process env or the ``.env`` file."""
        names = {name.upper() for name, value in os.environ.items() if value.strip()}
        env_file = cls.model_config.get("env_file")
        if isinstance(env_file, (str, Path)) and Path(env_file).is_file():
            names.update(
                name.upper()
                for name, value in dotenv_values(env_file).items()
                if value is not None and value.strip()
            )
        return names

    @classmethod
    def from_runtime(cls, config_path: Path | None = None, **overrides: object) -> Settings:
        """Construct settings from the runtime TOML; env vars and overrides win."""
        runtime = load_runtime_config(config_path)
        env_names = cls._env_names()
        values: dict[str, object] = {}
        for name, value in runtime.as_settings_values().items():
            if f"{ENV_PREFIX}{name.upper()}" in env_names:
                continue
            values[name] = value
        values.update({name: value for name, value in overrides.items() if value is not None})
        return cls(**values)
