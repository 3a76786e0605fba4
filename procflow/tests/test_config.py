"""
Tests for environment configuration.
"""

import os
import tempfile

import pytest

from procflow.config import Settings, open_store
from procflow.core import ConfigError
from procflow.log import FileProcessStore, InMemoryProcessStore, SQLiteProcessStore


def test_defaults():
    settings = Settings.from_env({})
    assert settings.store == "file"
    assert settings.action_timeout == 30.0
    assert settings.log_format == "json"
    assert settings.metrics_enabled is False


def test_overrides():
    settings = Settings.from_env(
        {
            "PROCFLOW_STORE": "SQLite",
            "PROCFLOW_STORE_PATH": "/data/p.db",
            "PROCFLOW_ACTION_TIMEOUT": "0",
            "PROCFLOW_ACTION_WORKERS": "8",
            "PROCFLOW_LOG_LEVEL": "debug",
            "PROCFLOW_LOG_FORMAT": "text",
            "METRICS_ENABLED": "true",
            "METRICS_PORT": "9100",
        }
    )
    assert settings.store == "sqlite"
    assert settings.store_path == "/data/p.db"
    assert settings.action_timeout == 0.0
    assert settings.action_workers == 8
    assert settings.log_level == "DEBUG"
    assert settings.log_format == "text"
    assert settings.metrics_enabled is True
    assert settings.metrics_port == 9100


@pytest.mark.parametrize(
    "env",
    [
        {"PROCFLOW_STORE": "redis"},
        {"PROCFLOW_ACTION_TIMEOUT": "soon"},
        {"PROCFLOW_ACTION_TIMEOUT": "-1"},
        {"PROCFLOW_ACTION_WORKERS": "0"},
        {"PROCFLOW_LOG_FORMAT": "xml"},
        {"METRICS_PORT": "http"},
    ],
)
def test_invalid_values(env):
    with pytest.raises(ConfigError):
        Settings.from_env(env)


def test_open_store_backends():
    with tempfile.TemporaryDirectory() as tmpdir:
        assert isinstance(open_store(Settings(store="memory")), InMemoryProcessStore)
        assert isinstance(open_store(Settings(store="file", store_path=tmpdir)), FileProcessStore)
        db = open_store(Settings(store="sqlite", store_path=os.path.join(tmpdir, "db", "p.db")))
        try:
            assert isinstance(db, SQLiteProcessStore)
        finally:
            db.close()
