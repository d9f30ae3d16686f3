"""Environment configuration.

Values come from the process environment, with a ``.env`` file in the
working directory loaded first (existing variables win).
"""

from __future__ import annotations

import os
from collections.abc import Mapping

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

DEFAULT_API_BASE_URL = "http://localhost:3001"


class ConfigError(Exception):
    """The environment does not describe a usable configuration.

    Args:
        problems: One human-readable line per invalid setting.
    """

    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__("Environment validation failed: " + "; ".join(problems))


class Settings(BaseModel):
    """Validated client settings.

    Field aliases are the environment variable names.
    """

    api_base_url: str = Field(default=DEFAULT_API_BASE_URL, alias="API_BASE_URL")
    zai_api_key: str = Field(alias="ZAI_API_KEY", min_length=1)
    log_level: str = Field(default="INFO", alias="ZAI_LOG_LEVEL")
    log_file: str = Field(default="zai_cli.log", alias="ZAI_LOG_FILE")
    history_file: str = Field(default=".terminal_history", alias="ZAI_HISTORY_FILE")
    log_dir: str = Field(default=os.path.join("logs", "terminal"), alias="ZAI_LOG_DIR")

    model_config = {"populate_by_name": True}

    @field_validator("api_base_url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("must be an http:// or https:// URL")
        return value.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def _check_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level '{value}'")
        return level


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build :class:`Settings` from *environ* (default: ``.env`` + ``os.environ``).

    Raises:
        ConfigError: If a required variable is missing or a value is invalid.
    """
    if environ is None:
        load_dotenv(find_dotenv(usecwd=True))
        environ = os.environ

    fields = {
        f.alias: environ[f.alias]
        for f in Settings.model_fields.values()
        if f.alias in environ
    }
    try:
        return Settings(**fields)
    except ValidationError as e:
        problems = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in e.errors()
        ]
        raise ConfigError(problems) from e
