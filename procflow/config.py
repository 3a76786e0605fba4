"""
Runtime configuration from environment variables.

Environment Variables:
    PROCFLOW_STORE: memory, file or sqlite - default: file
    PROCFLOW_STORE_PATH: Store directory (file) or database path (sqlite) - default: /tmp/procflow/store
    PROCFLOW_ACTION_TIMEOUT: Seconds before an action counts as failed; 0 disables - default: 30
    PROCFLOW_ACTION_WORKERS: Worker threads for timed actions - default: 4
    PROCFLOW_LOG_LEVEL / PROCFLOW_LOG_FORMAT: see procflow.logging_config
    METRICS_ENABLED / METRICS_PORT: see procflow.metrics
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .core.errors import ConfigError
from .log import FileProcessStore, InMemoryProcessStore, ProcessStore, SQLiteProcessStore

STORE_TYPES = ("memory", "file", "sqlite")


def _env_float(env: Mapping[str, str], key: str, default: float) -> float:
    val = env.get(key)
    if val is None or val == "":
        return default
    try:
        parsed = float(val)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {val!r}")
    if parsed < 0:
        raise ConfigError(f"{key} must not be negative")
    return parsed


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    val = env.get(key)
    if val is None or val == "":
        return default
    try:
        parsed = int(val)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {val!r}")
    if parsed <= 0:
        raise ConfigError(f"{key} must be positive")
    return parsed


@dataclass(frozen=True)
class Settings:
    store: str = "file"
    store_path: str = "/tmp/procflow/store"
    action_timeout: float = 30.0
    action_workers: int = 4
    log_level: str = "INFO"
    log_format: str = "json"
    metrics_enabled: bool = False
    metrics_port: int = 8080

    @staticmethod
    def from_env(env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        store = env.get("PROCFLOW_STORE", "file").lower()
        if store not in STORE_TYPES:
            raise ConfigError(f"PROCFLOW_STORE must be one of {', '.join(STORE_TYPES)}, got {store!r}")
        log_format = env.get("PROCFLOW_LOG_FORMAT", "json").lower()
        if log_format not in ("json", "text"):
            raise ConfigError(f"PROCFLOW_LOG_FORMAT must be json or text, got {log_format!r}")
        return Settings(
            store=store,
            store_path=env.get("PROCFLOW_STORE_PATH", "/tmp/procflow/store"),
            action_timeout=_env_float(env, "PROCFLOW_ACTION_TIMEOUT", 30.0),
            action_workers=_env_int(env, "PROCFLOW_ACTION_WORKERS", 4),
            log_level=env.get("PROCFLOW_LOG_LEVEL", "INFO").upper(),
            log_format=log_format,
            metrics_enabled=env.get("METRICS_ENABLED", "false").lower() == "true",
            metrics_port=_env_int(env, "METRICS_PORT", 8080),
        )


def open_store(settings: Settings, clock=None) -> ProcessStore:
    """Create the configured store backend."""
    if settings.store == "memory":
        return InMemoryProcessStore(clock=clock)
    if settings.store == "sqlite":
        directory = os.path.dirname(settings.store_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        return SQLiteProcessStore(settings.store_path, clock=clock)
    return FileProcessStore(settings.store_path, clock=clock)
