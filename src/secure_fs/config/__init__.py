"""Configuration management for the secure filesystem server."""

from .manager import (
    ConfigurationError,
    check_allowed_directories,
    create_sample_config,
    deep_merge,
    get_config_path,
    load_config,
    merge_with_env,
    resolve_settings,
    save_config,
    validate_config,
)
from .schema import CacheConfig, MetricsConfig, SecurityConfig, ServerSettings

__all__ = [
    "CacheConfig",
    "ConfigurationError",
    "MetricsConfig",
    "SecurityConfig",
    "ServerSettings",
    "check_allowed_directories",
    "create_sample_config",
    "deep_merge",
    "get_config_path",
    "load_config",
    "merge_with_env",
    "resolve_settings",
    "save_config",
    "validate_config",
]
