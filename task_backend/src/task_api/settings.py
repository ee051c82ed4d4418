from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - PERSISTENCE_BACKEND: 'sqlite' (default) or 'memory'
    - DATABASE_URL: sqlite connection string. Default 'sqlite:///./data/tasks.db'
    - SERVER_HOST: interface to bind. Default '0.0.0.0'
    - SERVER_PORT: port to listen on. Default 8080
    - LOG_LEVEL: root log level name. Default 'INFO'
    - REQUEST_TIMEOUT_SECONDS: storage deadline per request; 0 disables it. Default 5
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    """

    persistence_backend: str = "sqlite"
    database_url: str = "sqlite:///./data/tasks.db"
    server_host: str = "0.0.0.0"
    server_port: int = 8080
    log_level: str = "INFO"
    request_timeout: Optional[float] = 5.0
    cors_allow_origins: List[str] = field(default_factory=lambda: ["*"])


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_port(value: str, default: int) -> int:
    try:
        port = int(value.strip())
    except ValueError:
        return default
    if not (0 < port < 65536):
        return default
    return port


def _parse_timeout(value: str, default: Optional[float]) -> Optional[float]:
    try:
        seconds = float(value.strip())
    except ValueError:
        return default
    if seconds < 0:
        return default
    # zero means "no deadline"
    return seconds or None


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    defaults = Settings()

    backend = _get_env("PERSISTENCE_BACKEND", defaults.persistence_backend).strip().lower()
    if backend not in {"memory", "sqlite"}:
        backend = defaults.persistence_backend

    log_level = _get_env("LOG_LEVEL", defaults.log_level).strip().upper()

    return Settings(
        persistence_backend=backend,
        database_url=_get_env("DATABASE_URL", defaults.database_url).strip(),
        server_host=_get_env("SERVER_HOST", defaults.server_host).strip(),
        server_port=_parse_port(_get_env("SERVER_PORT", str(defaults.server_port)), defaults.server_port),
        log_level=log_level,
        request_timeout=_parse_timeout(
            _get_env("REQUEST_TIMEOUT_SECONDS", str(defaults.request_timeout)), defaults.request_timeout
        ),
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*")),
    )
