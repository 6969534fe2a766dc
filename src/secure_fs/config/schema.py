"""Pydantic models for server configuration schema."""

import json
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from secure_fs.config.constants import (
    DEFAULT_CACHE_MAX_SIZE,
    DEFAULT_CACHE_TTL_SECONDS,
    DEFAULT_LOG_LEVEL,
    DEFAULT_MAX_FILE_SIZE,
    DEFAULT_METRICS_REPORT_INTERVAL_SECONDS,
    DEFAULT_SERVER_NAME,
    DEFAULT_SERVER_VERSION,
    VALID_LOG_LEVELS,
)


class CacheConfig(BaseModel):
    """Path validation cache configuration."""

    enabled: bool = True
    max_size: int = Field(default=DEFAULT_CACHE_MAX_SIZE, gt=0)
    ttl_seconds: float = Field(default=DEFAULT_CACHE_TTL_SECONDS, gt=0)


class MetricsConfig(BaseModel):
    """Operation metrics configuration."""

    enabled: bool = True
    report_interval_seconds: float = Field(
        default=DEFAULT_METRICS_REPORT_INTERVAL_SECONDS,
        ge=0,
        description="How often metrics are logged; 0 disables periodic reporting",
    )


class SecurityConfig(BaseModel):
    """Security limits applied by the filesystem tools."""

    max_file_size: int = Field(
        default=DEFAULT_MAX_FILE_SIZE, ge=0, description="Byte ceiling for reads and writes; 0 = no limit"
    )
    allow_symlinks: bool = True
    writes_enabled: bool = True


class ServerSettings(BaseModel):
    """Root configuration model for the server."""

    server_name: str = DEFAULT_SERVER_NAME
    server_version: str = DEFAULT_SERVER_VERSION
    allowed_directories: list[str] = Field(default_factory=list)
    log_level: str = DEFAULT_LOG_LEVEL
    log_file: str | None = None
    cache: CacheConfig = Field(default_factory=CacheConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level; ``warn`` is accepted as ``warning``."""
        level = v.lower()
        if level == "warn":
            level = "warning"
        if level not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {v}. Valid levels: {sorted(VALID_LOG_LEVELS)}")
        return level

    @field_validator("allowed_directories")
    @classmethod
    def expand_allowed_directories(cls, v: list[str]) -> list[str]:
        """Expand user home directory in every allowed directory."""
        return [str(Path(d).expanduser()) for d in v if d.strip()]

    @field_validator("log_file")
    @classmethod
    def expand_log_file(cls, v: str | None) -> str | None:
        if v:
            return str(Path(v).expanduser())
        return v

    def model_dump_json_minimal(self) -> str:
        """Dump model to JSON without null values."""
        return json.dumps(self.model_dump(exclude_none=True), indent=2)
