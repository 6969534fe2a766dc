"""Configuration file manager for loading, saving, and validating server settings."""

import json
import os
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .constants import (
    DEFAULT_CONFIG_PATH,
    ENV_ALLOWED_DIRECTORIES,
    ENV_LOG_FILE,
    ENV_LOG_LEVEL,
    ENV_MAX_FILE_SIZE,
)
from .schema import ServerSettings


class ConfigurationError(Exception):
    """Raised when configuration operations fail."""

    pass


def get_config_path() -> Path:
    """Get the path to the configuration file.

    Returns:
        Path to ~/.secure-fs/config.json
    """
    return DEFAULT_CONFIG_PATH


def load_config(config_path: Path | None = None) -> ServerSettings:
    """Load configuration from JSON file.

    Args:
        config_path: Optional path to config file. Defaults to ~/.secure-fs/config.json

    Returns:
        ServerSettings loaded from file, or default settings if the file doesn't exist

    Raises:
        ConfigurationError: If file exists but is invalid JSON or fails validation

    Example:
        >>> settings = load_config(Path("config.json"))
        >>> settings.security.max_file_size
        10485760
    """
    if config_path is None:
        config_path = get_config_path()

    # Return defaults if file doesn't exist
    if not config_path.exists():
        return ServerSettings()

    try:
        with open(config_path, encoding="utf-8") as f:
            data = json.load(f)
        return ServerSettings(**data)

    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in configuration file {config_path}: {e}") from e
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed for {config_path}:\n{e}") from e
    except (OSError, TypeError) as e:
        raise ConfigurationError(f"Failed to load configuration from {config_path}: {e}") from e


def save_config(settings: ServerSettings, config_path: Path | None = None) -> None:
    """Save configuration to JSON file, omitting null values.

    Args:
        settings: ServerSettings instance to save
        config_path: Optional path to config file. Defaults to ~/.secure-fs/config.json

    Raises:
        ConfigurationError: If save operation fails
    """
    if config_path is None:
        config_path = get_config_path()

    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(settings.model_dump_json_minimal())
            f.write("\n")
    except OSError as e:
        raise ConfigurationError(f"Failed to save configuration to {config_path}: {e}") from e


def create_sample_config(config_path: Path) -> ServerSettings:
    """Write a sample configuration exposing the current working directory.

    Args:
        config_path: Destination of the sample file

    Returns:
        The settings that were written

    Raises:
        ConfigurationError: If the file already exists or cannot be written
    """
    if config_path.exists():
        raise ConfigurationError(f"Configuration file already exists: {config_path}")

    settings = ServerSettings(allowed_directories=[str(Path.cwd())])
    save_config(settings, config_path)
    return settings


def merge_with_env(settings: ServerSettings) -> dict[str, Any]:
    """Collect environment variable overrides for the file settings.

    Environment variables take precedence over file settings. The returned
    dictionary has the shape of the settings model and is meant to be
    combined with :func:`deep_merge`.

    Args:
        settings: ServerSettings instance from file

    Returns:
        Dictionary of environment variable overrides

    Raises:
        ConfigurationError: If an override has an invalid value
    """
    env_overrides: dict[str, Any] = {}

    if directories := os.getenv(ENV_ALLOWED_DIRECTORIES):
        env_overrides["allowed_directories"] = [
            d for d in directories.split(os.pathsep) if d.strip()
        ]

    if log_level := os.getenv(ENV_LOG_LEVEL):
        env_overrides["log_level"] = log_level

    if log_file := os.getenv(ENV_LOG_FILE):
        env_overrides["log_file"] = log_file

    if max_file_size := os.getenv(ENV_MAX_FILE_SIZE):
        try:
            env_overrides.setdefault("security", {})["max_file_size"] = int(max_file_size)
        except ValueError as e:
            raise ConfigurationError(
                f"{ENV_MAX_FILE_SIZE} must be an integer byte count, got {max_file_size!r}"
            ) from e

    return env_overrides


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence.

    Args:
        base: Base dictionary
        override: Override dictionary (takes precedence)

    Returns:
        Merged dictionary
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def resolve_settings(
    config_path: Path | None = None, cli_directories: Sequence[str] | None = None
) -> ServerSettings:
    """Load the file settings, apply env overrides, then fall back to CLI directories.

    Command-line directories are used only when neither the file nor the
    environment supplies any allowed directory.

    Raises:
        ConfigurationError: If loading fails or the merged settings are invalid
    """
    settings = load_config(config_path)
    merged = deep_merge(settings.model_dump(), merge_with_env(settings))
    if not merged.get("allowed_directories") and cli_directories:
        merged["allowed_directories"] = list(cli_directories)

    try:
        return ServerSettings(**merged)
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed:\n{e}") from e


def validate_config(settings: ServerSettings) -> list[str]:
    """Validate configuration and return list of errors.

    Args:
        settings: ServerSettings instance to validate

    Returns:
        List of validation error messages (empty if valid)

    Example:
        >>> errors = validate_config(ServerSettings())
        >>> errors
        ['No allowed directories configured']
    """
    errors = []
    if not settings.allowed_directories:
        errors.append("No allowed directories configured")
    for directory in settings.allowed_directories:
        path = Path(directory)
        if not path.exists():
            errors.append(f"Allowed directory does not exist: {directory}")
        elif not path.is_dir():
            errors.append(f"Allowed directory is not a directory: {directory}")
    if settings.metrics.enabled and settings.metrics.report_interval_seconds < 0:
        errors.append("metrics.report_interval_seconds must not be negative")
    return errors


def check_allowed_directories(directories: Sequence[str]) -> None:
    """Fail fast when an allowed directory is missing or not a directory.

    Raises:
        ConfigurationError: Naming the first offending directory
    """
    if not directories:
        raise ConfigurationError(
            "No allowed directories configured. Pass directories on the command line, "
            f"set {ENV_ALLOWED_DIRECTORIES} or add allowed_directories to the config file."
        )
    for directory in directories:
        path = Path(directory).expanduser()
        if not path.exists():
            raise ConfigurationError(f"Allowed directory does not exist: {directory}")
        if not path.is_dir():
            raise ConfigurationError(f"Allowed directory is not a directory: {directory}")
