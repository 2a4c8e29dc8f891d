"""Configuration management for credential refresh and repository setup."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

_config_logger = logging.getLogger(__name__)

DEFAULT_TOKEN_URL = "https://claude.ai/api/oauth/token"
DEFAULT_GITHUB_API_URL = "https://api.github.com"


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO", description="Python logging level name")
    file: str | None = Field(default=None, description="Optional log file path")


class ProviderSettings(BaseModel):
    token_url: str = Field(default=DEFAULT_TOKEN_URL)
    timeout_seconds: float = Field(default=30.0, ge=0.1, le=300.0)

    @field_validator("token_url")
    @classmethod
    def _validate_token_url(cls, value: str) -> str:
        if not value.startswith("https://"):
            raise ValueError("token_url must use https")
        return value


class RefreshSettings(BaseModel):
    buffer_minutes: int = Field(default=5, ge=0, le=24 * 60)
    min_interval_seconds: float = Field(default=60.0, ge=0.0, le=3600.0)


class GitHubSettings(BaseModel):
    """Secret-store access.

    ``token`` authorizes secret writes; it is never logged.
    """

    api_url: str = Field(default=DEFAULT_GITHUB_API_URL)
    token: str | None = Field(default=None, repr=False)
    repository: str | None = Field(default=None, description="owner/repo")

    @field_validator("api_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class CredentialInputs(BaseModel):
    """Raw credential values as supplied by the workflow."""

    access_token: str | None = Field(default=None, repr=False)
    refresh_token: str | None = Field(default=None, repr=False)
    expires_at: str | None = None


class RunContext(BaseModel):
    in_actions: bool = Field(default=False)
    actor: str | None = None
    run_id: str | None = None
    output_path: str | None = None
    summary_path: str | None = None


class SetupSettings(BaseModel):
    use_oauth: bool = Field(default=True)
    custom_instructions: str | None = None
    allowed_tools: str | None = None
    model: str | None = None


class Settings(BaseModel):
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    provider: ProviderSettings = Field(default_factory=ProviderSettings)
    refresh: RefreshSettings = Field(default_factory=RefreshSettings)
    github: GitHubSettings = Field(default_factory=GitHubSettings)
    credentials: CredentialInputs = Field(default_factory=CredentialInputs)
    run: RunContext = Field(default_factory=RunContext)
    setup: SetupSettings = Field(default_factory=SetupSettings)


ENV_KEYS = {
    "access_token": "CLAUDE_ACCESS_TOKEN",
    "refresh_token": "CLAUDE_REFRESH_TOKEN",
    "expires_at": "CLAUDE_EXPIRES_AT",
    "github_token": "GITHUB_TOKEN",
    "repository": "GITHUB_REPOSITORY",
    "github_api_url": "GITHUB_API_URL",
    "in_actions": "GITHUB_ACTIONS",
    "actor": "GITHUB_ACTOR",
    "run_id": "GITHUB_RUN_ID",
    "output_path": "GITHUB_OUTPUT",
    "summary_path": "GITHUB_STEP_SUMMARY",
    "token_url": "OAUTH_TOKEN_URL",
    "buffer_minutes": "OAUTH_REFRESH_BUFFER_MINUTES",
    "min_interval": "OAUTH_REFRESH_MIN_INTERVAL_SECONDS",
    "http_timeout": "HTTP_TIMEOUT_SECONDS",
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
    "use_oauth": "USE_OAUTH",
    "custom_instructions": "CUSTOM_INSTRUCTIONS",
    "allowed_tools": "ALLOWED_TOOLS",
    "model": "MODEL",
}

_TRUE_VALUES = frozenset({"1", "true", "yes"})


def _env_str(key: str) -> str | None:
    value = os.getenv(key)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


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
    load_dotenv(dotenv_path=Path.cwd() / ".env")

    settings_data: dict[str, object] = {
        "logging": {
            "level": os.getenv(ENV_KEYS["log_level"], LoggingSettings().level),
            "file": _env_str(ENV_KEYS["log_file"]),
        },
        "provider": {
            "token_url": _env_str(ENV_KEYS["token_url"]) or DEFAULT_TOKEN_URL,
            "timeout_seconds": _env_float(
                ENV_KEYS["http_timeout"], ProviderSettings().timeout_seconds
            ),
        },
        "refresh": {
            "buffer_minutes": _env_int(
                ENV_KEYS["buffer_minutes"], RefreshSettings().buffer_minutes
            ),
            "min_interval_seconds": _env_float(
                ENV_KEYS["min_interval"], RefreshSettings().min_interval_seconds
            ),
        },
        "github": {
            "api_url": _env_str(ENV_KEYS["github_api_url"]) or DEFAULT_GITHUB_API_URL,
            "token": _env_str(ENV_KEYS["github_token"]),
            "repository": _env_str(ENV_KEYS["repository"]),
        },
        "credentials": {
            "access_token": _env_str(ENV_KEYS["access_token"]),
            "refresh_token": _env_str(ENV_KEYS["refresh_token"]),
            "expires_at": _env_str(ENV_KEYS["expires_at"]),
        },
        "run": {
            "in_actions": _env_bool(ENV_KEYS["in_actions"], False),
            "actor": _env_str(ENV_KEYS["actor"]),
            "run_id": _env_str(ENV_KEYS["run_id"]),
            "output_path": _env_str(ENV_KEYS["output_path"]),
            "summary_path": _env_str(ENV_KEYS["summary_path"]),
        },
        "setup": {
            "use_oauth": _env_bool(ENV_KEYS["use_oauth"], SetupSettings().use_oauth),
            "custom_instructions": os.getenv(ENV_KEYS["custom_instructions"]) or None,
            "allowed_tools": _env_str(ENV_KEYS["allowed_tools"]),
            "model": _env_str(ENV_KEYS["model"]),
        },
    }

    try:
        return Settings.model_validate(settings_data)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}") from exc
