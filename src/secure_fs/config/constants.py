"""Configuration constants for the secure filesystem server.

Single source of truth for default values, kept apart from schema.py and
manager.py to avoid circular imports.
"""

from pathlib import Path

# Default paths
DEFAULT_CONFIG_DIR = Path.home() / ".secure-fs"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.json"

# Server identity
DEFAULT_SERVER_NAME = "secure-filesystem-server"
DEFAULT_SERVER_VERSION = "0.4.0"

# Logging
DEFAULT_LOG_LEVEL = "info"
VALID_LOG_LEVELS = {"debug", "info", "warning", "error"}

# Path validation cache
DEFAULT_CACHE_MAX_SIZE = 1000
DEFAULT_CACHE_TTL_SECONDS = 60.0

# Metrics
DEFAULT_METRICS_REPORT_INTERVAL_SECONDS = 60.0

# Security
DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB

# Environment variable overrides
ENV_ALLOWED_DIRECTORIES = "SECURE_FS_ALLOWED_DIRECTORIES"
ENV_LOG_LEVEL = "SECURE_FS_LOG_LEVEL"
ENV_LOG_FILE = "SECURE_FS_LOG_FILE"
ENV_MAX_FILE_SIZE = "SECURE_FS_MAX_FILE_SIZE"
