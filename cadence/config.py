"""Configuration utilities for Cadence."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import os
from pathlib import Path
import socket
from typing import Any

from cadence.logging import get_logger

logger = get_logger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///./cadence.db"
DEFAULT_CLIENT_NAME = "Cadence"
DEFAULT_API_VERSION = "1.16.1"
DEFAULT_SUBSONIC_TIMEOUT_MS = 15_000
MIN_SALT_LENGTH = 20
DEFAULT_ALBUM_LIST_SIZE = 500
DEFAULT_THUMBNAIL_SIZE = 512

_RUNTIME_ENV_CACHE: dict[str, str] | None = None


@dataclass(slots=True, frozen=True)
class DatabaseConfig:
    url: str


@dataclass(slots=True, frozen=True)
class SubsonicConfig:
    client_name: str
    api_version: str
    timeout_ms: int
    salt_length: int
    album_list_size: int


@dataclass(slots=True, frozen=True)
class LocalProviderConfig:
    name: str
    thumbnail_size: int


@dataclass(slots=True, frozen=True)
class LoggingConfig:
    level: str
    log_file: str | None


@dataclass(slots=True, frozen=True)
class CadenceConfig:
    database: DatabaseConfig
    subsonic: SubsonicConfig
    local: LocalProviderConfig
    logging: LoggingConfig


def _load_env_file(path: Path) -> dict[str, str]:
    try:
        contents = path.read_text(encoding="utf-8")
    except OSError:
        return {}
    env_values: dict[str, str] = {}
    for line in contents.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        key, sep, value = stripped.partition("=")
        if not sep:
            continue
        env_values[key.strip()] = value.strip().strip('"').strip("'")
    return env_values


def load_runtime_env(
    *,
    env_file: str | os.PathLike[str] | None = None,
    base_env: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Load runtime environment values applying .env before explicit environment."""

    env: dict[str, str] = {}
    source = dict(base_env or os.environ)

    path = Path(env_file) if env_file is not None else Path(".env")
    if path.exists() and path.is_file():
        env.update(_load_env_file(path))

    env.update({key: str(value) for key, value in source.items() if value is not None})
    return env


def get_runtime_env() -> Mapping[str, str]:
    """Return the cached runtime environment mapping."""

    global _RUNTIME_ENV_CACHE
    if _RUNTIME_ENV_CACHE is None:
        _RUNTIME_ENV_CACHE = load_runtime_env()
    return _RUNTIME_ENV_CACHE


def override_runtime_env(runtime_env: Mapping[str, str] | None) -> None:
    """Override the cached runtime environment (primarily for testing)."""

    global _RUNTIME_ENV_CACHE
    if runtime_env is None:
        _RUNTIME_ENV_CACHE = None
    else:
        _RUNTIME_ENV_CACHE = dict(runtime_env)


def get_env(name: str, default: str | None = None) -> str | None:
    """Return an environment variable honoring ENV > .env > defaults."""

    env = get_runtime_env()
    return env.get(name, default)


def _env_value(env: Mapping[str, Any], key: str) -> str | None:
    value = env.get(key)
    if value is None:
        return None
    stripped = str(value).strip()
    return stripped or None


def _as_bool(value: str | None, *, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _as_int(value: str | None, *, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _bounded_int(
    value: str | None,
    *,
    default: int,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int:
    resolved = _as_int(value, default=default)
    if minimum is not None:
        resolved = max(minimum, resolved)
    if maximum is not None:
        resolved = min(maximum, resolved)
    return resolved


def _default_local_name() -> str:
    try:
        hostname = socket.gethostname()
    except OSError:
        hostname = ""
    return hostname.strip() or "Local"


def load_config(runtime_env: Mapping[str, Any] | None = None) -> CadenceConfig:
    """Build the immutable configuration snapshot from the environment."""

    env = runtime_env if runtime_env is not None else get_runtime_env()

    salt_length = _as_int(_env_value(env, "SUBSONIC_SALT_LENGTH"), default=MIN_SALT_LENGTH)
    if salt_length < MIN_SALT_LENGTH:
        logger.warning(
            "SUBSONIC_SALT_LENGTH=%s is below the minimum; using %s",
            salt_length,
            MIN_SALT_LENGTH,
        )
        salt_length = MIN_SALT_LENGTH

    return CadenceConfig(
        database=DatabaseConfig(
            url=_env_value(env, "DATABASE_URL") or DEFAULT_DATABASE_URL,
        ),
        subsonic=SubsonicConfig(
            client_name=_env_value(env, "CADENCE_CLIENT_NAME") or DEFAULT_CLIENT_NAME,
            api_version=_env_value(env, "SUBSONIC_API_VERSION") or DEFAULT_API_VERSION,
            timeout_ms=_bounded_int(
                _env_value(env, "SUBSONIC_TIMEOUT_MS"),
                default=DEFAULT_SUBSONIC_TIMEOUT_MS,
                minimum=100,
            ),
            salt_length=salt_length,
            album_list_size=_bounded_int(
                _env_value(env, "SUBSONIC_ALBUM_LIST_SIZE"),
                default=DEFAULT_ALBUM_LIST_SIZE,
                minimum=1,
                maximum=500,
            ),
        ),
        local=LocalProviderConfig(
            name=_env_value(env, "LOCAL_PROVIDER_NAME") or _default_local_name(),
            thumbnail_size=_bounded_int(
                _env_value(env, "LOCAL_THUMBNAIL_SIZE"),
                default=DEFAULT_THUMBNAIL_SIZE,
                minimum=16,
            ),
        ),
        logging=LoggingConfig(
            level=(_env_value(env, "LOG_LEVEL") or "INFO").upper(),
            log_file=_env_value(env, "LOG_FILE"),
        ),
    )


__all__ = [
    "CadenceConfig",
    "DatabaseConfig",
    "LocalProviderConfig",
    "LoggingConfig",
    "SubsonicConfig",
    "get_env",
    "get_runtime_env",
    "load_config",
    "load_runtime_env",
    "override_runtime_env",
]
