"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

An optional YAML file (``CONFIG_FILE``, default ``config/config.yaml``) can
provide the same values in the layout used by existing deployments::

    server:
      port: "8080"
    rate_limiter:
      limit: 3
      interval: 30
    cache:
      url: redis://localhost:6379/0
      ttl: 5

Environment variables always take precedence over the YAML file.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


DEFAULT_CONFIG_FILE = PROJECT_ROOT / "config" / "config.yaml"

# YAML section -> (settings group, {yaml key: field name})
_YAML_SECTIONS: dict[str, tuple[str, dict[str, str]]] = {
    "server": ("server", {"host": "host", "port": "port"}),
    "rate_limiter": (
        "rate_limit",
        {
            "enabled": "enabled",
            "limit": "limit",
            "interval": "interval_seconds",
            "interval_seconds": "interval_seconds",
            "lock_scope": "lock_scope",
            "key_prefix": "key_prefix",
            "forwarded_header": "forwarded_header",
            "forwarded_hop": "forwarded_hop",
            "include_headers": "include_headers",
        },
    ),
    "cache": (
        "cache",
        {
            "backend": "backend",
            "url": "url",
            "host": "host",
            "port": "port",
            "password": "password",
            "db": "db",
            "ttl": "ttl_minutes",
            "ttl_minutes": "ttl_minutes",
            "operation_timeout_seconds": "operation_timeout_seconds",
        },
    ),
    "log": (
        "log",
        {
            "level": "level",
            "format": "format",
            "output": "output",
            "file_path": "file_path",
        },
    ),
}


def load_yaml_config(path: str | Path | None = None) -> dict[str, dict[str, Any]]:
    """Read the optional YAML config file into per-group override dicts.

    Args:
        path: Explicit file path. Defaults to ``CONFIG_FILE`` env var, then
            ``config/config.yaml`` under the project root.

    Returns:
        Mapping of settings group name to field overrides. Empty when the
        file does not exist.

    Raises:
        ValueError: If the file is not a YAML mapping.
        yaml.YAMLError: If the YAML is malformed.
    """

    resolved = Path(path or os.getenv("CONFIG_FILE") or DEFAULT_CONFIG_FILE)
    if not resolved.is_file():
        return {}

    data = yaml.safe_load(resolved.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {resolved} must contain a YAML mapping")

    overrides: dict[str, dict[str, Any]] = {}
    for section, (group, fields) in _YAML_SECTIONS.items():
        raw = data.get(section) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"Section '{section}' in {resolved} must be a mapping")
        values = {fields[k]: v for k, v in raw.items() if k in fields}
        if values:
            overrides[group] = values
    return overrides


def _env_overrides(settings_cls: type[BaseSettings]) -> set[str]:
    """Return field names that are explicitly set through the environment."""

    prefix = (settings_cls.model_config.get("env_prefix") or "").upper()
    return {
        name
        for name in settings_cls.model_fields
        if f"{prefix}{name}".upper() in {key.upper() for key in os.environ}
    }


def _build_group(settings_cls: type[BaseSettings], yaml_values: dict[str, Any]) -> Any:
    """Build a settings group, letting env vars win over YAML values.

    Pydantic Settings gives init kwargs priority over environment variables,
    so YAML values for fields present in the environment are dropped first.
    """

    env_fields = _env_overrides(settings_cls)
    init_values = {k: v for k, v in yaml_values.items() if k not in env_fields}
    return settings_cls(**init_values)  # type: ignore[call-arg]


class ServerSettings(BaseSettings):
    """HTTP server binding."""

    host: str = Field("0.0.0.0", description="Interface uvicorn binds to")
    port: int = Field(8080, description="Port uvicorn listens on", ge=1, le=65535)

    model_config = SettingsConfigDict(
        env_prefix="SERVER_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Fixed-window admission policy."""

    enabled: bool = Field(
        True,
        description="Enforce the rate limit (disable to admit every request)",
    )
    limit: int = Field(
        10,
        description="Maximum number of admitted requests per window (per client)",
        ge=1,
    )
    interval_seconds: int = Field(
        60,
        description="Window length in seconds, measured from the last admitted request",
        ge=1,
    )
    lock_scope: Literal["per_key", "global"] = Field(
        "per_key",
        description="Critical section granularity for read-modify-write on the store",
    )
    key_prefix: str = Field(
        "",
        description="Prefix prepended to client identifiers to build store keys",
    )
    forwarded_header: str = Field(
        "X-Forwarded-For",
        description="Header holding the client address when behind a proxy",
    )
    forwarded_hop: Literal["first", "raw"] = Field(
        "first",
        description=(
            "Which part of the forwarding header identifies the client: the first "
            "hop, or the raw header value (matches keys written by existing deployments)"
        ),
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers in responses",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class CacheSettings(BaseSettings):
    """Key-value store backing the visitor counters."""

    backend: Literal["redis", "memory"] = Field(
        "redis",
        description="Store backend (memory is per-process, for local use only)",
    )
    url: str | None = Field(
        None,
        description="Redis URL (e.g. redis://localhost:6379/0); overrides host/port/db",
    )
    host: str = Field("localhost", description="Redis host")
    port: int = Field(6379, description="Redis port")
    db: int = Field(0, description="Redis database index")
    password: str | None = Field(None, description="Redis password")
    ttl_minutes: int = Field(
        5,
        description="Lifetime of a visitor record in the store, independent of the window",
        ge=1,
    )
    operation_timeout_seconds: float = Field(
        1.0,
        description="Deadline applied to each store operation",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    api_key_required: bool = Field(
        True,
        description="Whether API key authentication is required on admin endpoints",
    )
    api_keys: str | None = Field(
        None,
        description="Comma-separated list of valid API keys for admin endpoints",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field("json", description="Log line format")
    output: Literal["stdout", "file"] = Field("stdout", description="Log destination")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10_485_760,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated log files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file and the
    optional YAML config file. Raises validation errors on startup if values
    are out of range.

    Environments:
    - development: Local development (DEBUG=true)
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    server: ServerSettings
    rate_limit: RateLimitSettings
    cache: CacheSettings
    app: AppSettings
    log: LogSettings

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


def build_settings(config_file: str | Path | None = None) -> Settings:
    """Compose settings from the YAML file and the environment.

    Args:
        config_file: Optional explicit YAML path (mainly for tests).

    Returns:
        Fully validated Settings instance.
    """

    overrides = load_yaml_config(config_file)
    return Settings(
        server=_build_group(ServerSettings, overrides.get("server", {})),
        rate_limit=_build_group(RateLimitSettings, overrides.get("rate_limit", {})),
        cache=_build_group(CacheSettings, overrides.get("cache", {})),
        app=_build_group(AppSettings, overrides.get("app", {})),
        log=_build_group(LogSettings, overrides.get("log", {})),
    )


# Global settings instance - composed from domain-specific settings
settings = build_settings()
