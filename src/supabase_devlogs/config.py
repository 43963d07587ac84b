"""Configuration management for the Supabase dev-logs application."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from supabase_devlogs.environment import get_environment

_config_logger = logging.getLogger(__name__)


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO", description="Python logging level name")
    file: str | None = Field(default=None, description="Optional log file path")


class ServerSettings(BaseModel):
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000, ge=1024, le=65535)


class SupabaseSettings(BaseModel):
    url: str | None = Field(default=None)
    anon_key: str | None = Field(default=None, repr=False)
    project_id: str | None = Field(default=None)
    access_token: str | None = Field(default=None, repr=False)
    management_api_url: str = Field(default="https://api.supabase.com")
    host_pattern: str = Field(
        default="supabase.co",
        description="Substring identifying outbound calls to the hosted backend.",
    )
    request_timeout_seconds: float = Field(default=30.0, ge=0.1)

    @field_validator("management_api_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("host_pattern")
    @classmethod
    def _validate_host_pattern(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("host_pattern must not be empty")
        return value


class DevLogSettings(BaseModel):
    max_logs: int = Field(default=1000, ge=1, le=100_000)
    default_limit: int = Field(default=100, ge=1)
    poll_interval_seconds: int = Field(default=5, ge=1, le=3600)
    trace_ingest_url: str | None = Field(
        default=None,
        description="Where tapped backend errors are forwarded. Defaults to this server.",
    )
    forward_timeout_seconds: float = Field(default=2.0, ge=0.1, le=60.0)


class Settings(BaseModel):
    environment: Literal["development", "preview", "production"] = Field(default="development")
    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    supabase: SupabaseSettings = Field(default_factory=SupabaseSettings)
    devlogs: DevLogSettings = Field(default_factory=DevLogSettings)

    @property
    def trace_ingest_url(self) -> str:
        if self.devlogs.trace_ingest_url:
            return self.devlogs.trace_ingest_url
        return f"http://{self.server.host}:{self.server.port}/api/traces"


ENV_KEYS = {
    "host": "APP_HOST",
    "port": "APP_PORT",
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
    "supabase_url": "SUPABASE_URL",
    "supabase_anon_key": "SUPABASE_ANON_KEY",
    "supabase_project_id": "SUPABASE_PROJECT_ID",
    "supabase_access_token": "SUPABASE_ACCESS_TOKEN",
    "management_api_url": "SUPABASE_MANAGEMENT_API_URL",
    "host_pattern": "SUPABASE_HOST_PATTERN",
    "request_timeout": "SUPABASE_REQUEST_TIMEOUT_SECONDS",
    "max_logs": "DEVLOGS_MAX_LOGS",
    "default_limit": "DEVLOGS_DEFAULT_LIMIT",
    "poll_interval": "DEVLOGS_POLL_INTERVAL_SECONDS",
    "trace_ingest_url": "TRACE_INGEST_URL",
    "forward_timeout": "TRACE_FORWARD_TIMEOUT_SECONDS",
}


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _resolve_path(path: str) -> str:
    candidate = Path(path)
    if candidate.is_absolute():
        return str(candidate.resolve())
    return str((_project_root() / candidate).resolve())


def _env_str(key: str) -> str | None:
    value = os.getenv(key)
    if value is None:
        return None
    return value.strip() or None


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        _config_logger.warning(
            "Invalid integer value for %s: %r, using default %d", key, value, default
        )
        return default


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        _config_logger.warning(
            "Invalid float value for %s: %r, using default %s", key, value, default
        )
        return default


def load_settings() -> Settings:
    """Load configuration and cache the result."""

    return _load_settings_cached()


@lru_cache(maxsize=1)
def _load_settings_cached() -> Settings:
    load_dotenv(dotenv_path=_project_root() / ".env")
    log_file_env = _env_str(ENV_KEYS["log_file"])

    settings_data: dict[str, object] = {
        "environment": get_environment(),
        "server": {
            "host": os.getenv(ENV_KEYS["host"], ServerSettings().host),
            "port": _env_int(ENV_KEYS["port"], ServerSettings().port),
        },
        "logging": {
            "level": os.getenv(ENV_KEYS["log_level"], LoggingSettings().level),
            "file": _resolve_path(log_file_env) if log_file_env else None,
        },
        "supabase": {
            "url": _env_str(ENV_KEYS["supabase_url"]),
            "anon_key": _env_str(ENV_KEYS["supabase_anon_key"]),
            "project_id": _env_str(ENV_KEYS["supabase_project_id"]),
            "access_token": _env_str(ENV_KEYS["supabase_access_token"]),
            "management_api_url": os.getenv(
                ENV_KEYS["management_api_url"], SupabaseSettings().management_api_url
            ),
            "host_pattern": os.getenv(
                ENV_KEYS["host_pattern"], SupabaseSettings().host_pattern
            ),
            "request_timeout_seconds": _env_float(
                ENV_KEYS["request_timeout"],
                SupabaseSettings().request_timeout_seconds,
            ),
        },
        "devlogs": {
            "max_logs": _env_int(ENV_KEYS["max_logs"], DevLogSettings().max_logs),
            "default_limit": _env_int(
                ENV_KEYS["default_limit"], DevLogSettings().default_limit
            ),
            "poll_interval_seconds": _env_int(
                ENV_KEYS["poll_interval"], DevLogSettings().poll_interval_seconds
            ),
            "trace_ingest_url": _env_str(ENV_KEYS["trace_ingest_url"]),
            "forward_timeout_seconds": _env_float(
                ENV_KEYS["forward_timeout"], DevLogSettings().forward_timeout_seconds
            ),
        },
    }

    try:
        settings = Settings.model_validate(settings_data)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}") from exc

    if settings.logging.file:
        Path(settings.logging.file).parent.mkdir(parents=True, exist_ok=True)

    return settings
