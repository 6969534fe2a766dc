"""Configuration fixtures for testing."""

import json

import pytest

from secure_fs.config.constants import (
    ENV_ALLOWED_DIRECTORIES,
    ENV_LOG_FILE,
    ENV_LOG_LEVEL,
    ENV_MAX_FILE_SIZE,
)


@pytest.fixture
def isolated_env(monkeypatch):
    """Remove every SECURE_FS_* override from the environment."""
    for name in (ENV_ALLOWED_DIRECTORIES, ENV_LOG_LEVEL, ENV_LOG_FILE, ENV_MAX_FILE_SIZE):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def config_file(tmp_path, allowed_dir):
    """JSON configuration file exposing ``allowed_dir``."""
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "allowed_directories": [str(allowed_dir)],
                "log_level": "debug",
                "cache": {"max_size": 50, "ttl_seconds": 5},
                "security": {"max_file_size": 2048},
            }
        )
    )
    return path
